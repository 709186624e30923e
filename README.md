# burrowhttp

`burrowhttp` is the HTTP side of a Kafka consumer lag monitor. It serves a
JSON API for clusters, topics, consumer groups and their evaluated status,
reports the running configuration, and exposes lag figures in the Prometheus
text format at `/metrics`.

## What this package does not do

It does not talk to Kafka, store offsets or evaluate consumer status, and it
does not read configuration files or provide a command to run. Your
application supplies:

- a storage back end and an evaluator back end, which take requests from the
  queues of an `ApplicationContext` and answer them;
- a `Settings` object filled with the configuration;
- the code that creates, configures, starts and stops the `Coordinator`.

## Connecting the back ends

`burrowhttp.structs.ApplicationContext` holds two `queue.Queue` objects,
`storage_channel` and `evaluator_channel`. For each HTTP request the handlers
put a `StorageRequest` or `EvaluatorRequest` on the matching queue and block
until the back end calls `request.respond(value)`. If `reply_timeout` is set
(in seconds) and no reply arrives in time, `TimeoutError` is raised.

Storage replies by request type (`StorageRequestType`):

| Type | Reply |
| ---- | ----- |
| `FETCH_CLUSTERS` | list of cluster names |
| `FETCH_TOPICS` | list of topic names, or `None` if the cluster is unknown |
| `FETCH_TOPIC` | list of partition offsets, or `None` |
| `FETCH_CONSUMERS_FOR_TOPIC` | list of group names, or `None` |
| `FETCH_CONSUMERS` | list of group names, or `None` |
| `FETCH_CONSUMER` | mapping of topic to list of `ConsumerPartition`, or `None` |
| `SET_DELETE_GROUP` | nothing; no reply is awaited |

The evaluator always replies with a `ConsumerGroupStatus`; a status of
`StatusCode.NOTFOUND` turns into an HTTP 404. `EvaluatorRequest.show_all` is
`False` for `/status` and `True` for `/lag` and for metrics.

```python
import threading

from burrowhttp.structs import ApplicationContext, StorageRequestType

app = ApplicationContext(reply_timeout=5.0)

def storage_worker():
    while True:
        request = app.storage_channel.get()
        if request.request_type is StorageRequestType.FETCH_CLUSTERS:
            request.respond(["local"])
        elif request.request_type is not StorageRequestType.SET_DELETE_GROUP:
            request.respond(None)

threading.Thread(target=storage_worker, daemon=True).start()
```

## Endpoints

| Method | Path | Answer |
| ------ | ---- | ------ |
| GET | `/burrow/admin` | `GOOD` (health check) |
| GET | `/burrow/admin/ready` | `READY`, or `STARTING` with status 503 while `app.app_ready` is false |
| GET | `/metrics` | Prometheus exposition |
| GET | `/v3/kafka` | cluster list |
| GET | `/v3/kafka/<cluster>` | cluster configuration |
| GET | `/v3/kafka/<cluster>/topic` | topic list |
| GET | `/v3/kafka/<cluster>/topic/<topic>` | partition offsets of a topic |
| GET | `/v3/kafka/<cluster>/topic/<topic>/consumers` | consumer groups of a topic |
| GET | `/v3/kafka/<cluster>/consumer` | consumer group list |
| GET | `/v3/kafka/<cluster>/consumer/<group>` | stored offsets of a group |
| GET | `/v3/kafka/<cluster>/consumer/<group>/status` | evaluated status |
| GET | `/v3/kafka/<cluster>/consumer/<group>/lag` | evaluated status, all partitions |
| DELETE | `/v3/kafka/<cluster>/consumer/<group>` | remove a group |
| DELETE | `/v3/kafka/<cluster>/consumer/<group>/topic/<topic>` | remove a group's topic |
| GET | `/v3/config` | general, logging, zookeeper and listener settings |
| GET | `/v3/config/{storage,evaluator,cluster,consumer,notifier}` | configured module names, sorted |
| GET | `/v3/config/{storage,evaluator,cluster,consumer,notifier}/<name>` | one module's settings |
| GET | `/v3/admin/loglevel` | current log level |
| POST | `/v3/admin/loglevel` | set the log level from `{"level": "..."}` |

JSON replies carry `error`, `message` and a `request` object with the path
(`url`) and the serving `host`. Status values are written by name (`OK`,
`WARN`, ...). Unknown paths answer 404 with
`{"error":true,"message":"invalid request type","result":{}}`; a known path
with the wrong method answers 405. If `general.access-control-allow-origin` is
set, its value is sent as the `Access-Control-Allow-Origin` header.

Accepted log levels are `debug`, `trace`, `info`, `warning`, `warn`, `error`
and `fatal` (any case); an unknown one answers 404 and a body that is not a
JSON object answers 400. The new level is stored in `app.log_level` and set on
`app.logger`.

Notifier details are shaped by the notifier's `class-name`: `http`, `email`,
`slack` or `null`. Any other class gives an empty 200 reply.

## Configuration

`burrowhttp.settings.Settings` holds nested values read with case-insensitive
dotted keys. Values given with `set` override those given with `set_default`.
Typed readers (`get_str`, `get_int`, `get_bool`, `get_list`, `get_map`,
`get_str_map`) return an empty value of their type when a key is missing, and
`names` lists the entries of a section in sorted order.

```python
from burrowhttp.settings import Settings

settings = Settings({
    "general": {"access-control-allow-origin": "*"},
    "httpserver": {"main": {"address": ":8000", "timeout": 300}},
    "cluster": {"local": {"class-name": "kafka", "servers": ["localhost:9092"]}},
})
```

Every listener under `httpserver` needs a valid `host:port` address (the host
may be blank, a hostname, an IPv4 address or a bracketed IPv6 address);
`timeout` defaults to 300 seconds. A listener may name a profile under `tls`
whose `certfile` and `keyfile` are loaded, with an optional `cafile`. If no
listener is configured, a `default` listener on `:0` (a port chosen by the
system) is added.

## Running the server

```python
import logging

from burrowhttp.coordinator import Coordinator

coordinator = Coordinator(app, settings, logging.getLogger("burrow.httpserver"))
coordinator.configure()
coordinator.start()
print(coordinator.addresses)
# ... serve until shutdown ...
coordinator.stop()
```

- `configure()` checks every listener and builds the routes; it raises
  `ValueError` on a bad address or unreadable TLS files.
- `start()` binds every listener and serves each in a daemon thread. If one
  cannot be bound, those already bound are closed and the `OSError` is raised.
- `addresses` maps each running listener to the host and port it is bound to.
- `stop()` shuts every listener down and raises `RuntimeError` if any failed.

A `Coordinator` is also a WSGI application, so it can be mounted in any WSGI
server, and `Coordinator.dispatch(request)` takes a Werkzeug `Request` and
returns the `Response` directly.

## Metrics

`burrowhttp.metrics.BurrowMetrics` keeps these gauges, refreshed from the back
ends by `update(app)` on every request to `/metrics`:

- `burrow_kafka_consumer_lag_total{cluster,consumer_group}`
- `burrow_kafka_consumer_status{cluster,consumer_group}`
- `burrow_kafka_consumer_partition_lag{cluster,consumer_group,topic,partition}`
- `burrow_kafka_consumer_current_offset{cluster,consumer_group,topic,partition}` (only for partitions with `complete == 1.0`)
- `burrow_kafka_topic_partition_status{cluster,consumer_group,topic,partition}` (only for partitions with `complete == 1.0`)
- `burrow_kafka_topic_partition_offset{cluster,topic,partition}`

Groups the evaluator reports as not found are left out. Series are not removed
on their own: call `delete_consumer_metrics`, `delete_topic_metrics` or
`delete_consumer_topic_metrics` when a group or topic goes away. Each gauge is
a `GaugeVec` with `set`, `get`, `delete`, `delete_partial_match` and `render`.