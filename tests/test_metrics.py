import threading

import pytest

from burrowhttp.metrics import (
    BurrowMetrics,
    GaugeVec,
    get_topic_detail,
    list_clusters,
)
from burrowhttp.structs import (
    ApplicationContext,
    ConsumerGroupStatus,
    ConsumerOffset,
    PartitionStatus,
    StatusCode,
    StorageRequestType,
)


def _responder(channel, replies, seen):
    def run():
        for reply in replies:
            request = channel.get(timeout=5)
            seen.append(request)
            request.respond(reply)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread


def _partition(topic, number, lag, complete, offset):
    return PartitionStatus(
        topic=topic,
        partition=number,
        status=StatusCode.OK,
        current_lag=lag,
        complete=complete,
        end=ConsumerOffset(offset=offset),
    )


def test_update_and_render_full_scrape():
    app = ApplicationContext(reply_timeout=5)
    storage_seen, evaluator_seen = [], []
    storage = _responder(
        app.storage_channel,
        [["testcluster"], ["testgroup", "testgroup2"], ["testtopic", "testtopic1"], [6556, 5566], [54]],
        storage_seen,
    )
    status = ConsumerGroupStatus(
        cluster="testcluster",
        group="testgroup",
        status=StatusCode.OK,
        complete=1.0,
        partitions=[
            _partition("testtopic", 0, 100, 1.0, 22663),
            _partition("testtopic", 1, 10, 1.0, 2488),
            _partition("testtopic1", 0, 50, 1.0, 99888),
            _partition("incomplete", 0, 0, 0.2, 5335),
            _partition("incomplete", 1, 10, 1.0, 99888),
        ],
        total_partitions=2134,
        max_lag=PartitionStatus(),
        total_lag=2345,
    )
    not_found = ConsumerGroupStatus(cluster="testcluster", group="testgroup2", status=StatusCode.NOTFOUND)
    evaluator = _responder(app.evaluator_channel, [status, not_found], evaluator_seen)

    metrics = BurrowMetrics()
    metrics.update(app)
    storage.join(5)
    evaluator.join(5)
    text = metrics.render()

    assert [r.request_type for r in storage_seen] == [
        StorageRequestType.FETCH_CLUSTERS,
        StorageRequestType.FETCH_CONSUMERS,
        StorageRequestType.FETCH_TOPICS,
        StorageRequestType.FETCH_TOPIC,
        StorageRequestType.FETCH_TOPIC,
    ]
    assert storage_seen[1].cluster == "testcluster"
    assert [r.topic for r in storage_seen[3:]] == ["testtopic", "testtopic1"]
    assert [(r.group, r.show_all) for r in evaluator_seen] == [("testgroup", True), ("testgroup2", True)]

    assert 'burrow_kafka_consumer_status{cluster="testcluster",consumer_group="testgroup"} 1' in text
    assert 'burrow_kafka_consumer_lag_total{cluster="testcluster",consumer_group="testgroup"} 2345' in text

    lag = 'burrow_kafka_consumer_partition_lag{cluster="testcluster",consumer_group="testgroup",'
    assert lag + 'partition="0",topic="testtopic"} 100' in text
    assert lag + 'partition="1",topic="testtopic"} 10' in text
    assert lag + 'partition="0",topic="testtopic1"} 50' in text
    assert lag + 'partition="0",topic="incomplete"} 0' in text
    assert lag + 'partition="1",topic="incomplete"} 10' in text

    offset = 'burrow_kafka_consumer_current_offset{cluster="testcluster",consumer_group="testgroup",'
    assert offset + 'partition="0",topic="testtopic"} 22663' in text
    assert offset + 'partition="1",topic="testtopic"} 2488' in text
    assert offset + 'partition="0",topic="testtopic1"} 99888' in text
    assert offset + 'partition="0",topic="incomplete"} 5335' not in text
    assert offset + 'partition="1",topic="incomplete"} 99888' in text

    topic = 'burrow_kafka_topic_partition_offset{cluster="testcluster",'
    assert topic + 'partition="0",topic="testtopic"} 6556' in text
    assert topic + 'partition="1",topic="testtopic"} 5566' in text
    assert topic + 'partition="0",topic="testtopic1"} 54' in text
    assert (
        'burrow_kafka_topic_partition_offset{cluster="testcluster",consumer_group="testgroup",'
        'partition="0",topic="incomplete"} 0'
    ) not in text
    assert "testgroup2" not in text


def test_gauge_render_format():
    gauge = GaugeVec("sample_gauge", "A help\nline", ["b", "a"])
    gauge.set({"a": "x", "b": 'q"z'}, 2345)
    assert gauge.render() == (
        "# HELP sample_gauge A help\\nline\n"
        "# TYPE sample_gauge gauge\n"
        'sample_gauge{a="x",b="q\\"z"} 2345\n'
    )


def test_empty_gauge_renders_nothing():
    assert GaugeVec("empty", "nothing", ["a"]).render() == ""


@pytest.mark.parametrize(
    "value,text",
    [(1, "1"), (0, "0"), (22663, "22663"), (100, "100"), (0.5, "0.5"), (1000000, "1e+06"), (-3, "-3")],
)
def test_value_formatting(value, text):
    gauge = GaugeVec("g", "h", ["a"])
    gauge.set({"a": "1"}, value)
    assert gauge.render().splitlines()[-1] == f'g{{a="1"}} {text}'


def test_set_with_wrong_labels_raises():
    gauge = GaugeVec("g", "h", ["a", "b"])
    with pytest.raises(ValueError):
        gauge.set({"a": "1"}, 1)


def test_delete_exact_and_partial():
    gauge = GaugeVec("g", "h", ["cluster", "topic"])
    gauge.set({"cluster": "c", "topic": "t1"}, 1)
    gauge.set({"cluster": "c", "topic": "t2"}, 2)
    gauge.set({"cluster": "d", "topic": "t1"}, 3)
    assert gauge.delete({"cluster": "c"}) is False
    assert gauge.delete({"cluster": "c", "topic": "t1"}) is True
    assert gauge.get({"cluster": "c", "topic": "t1"}) is None
    assert gauge.delete_partial_match({"consumer_group": "x"}) == 0
    assert gauge.delete_partial_match({"cluster": "c"}) == 1
    assert gauge.get({"cluster": "d", "topic": "t1"}) == 3.0


def test_delete_consumer_metrics():
    metrics = BurrowMetrics()
    group = {"cluster": "c", "consumer_group": "g"}
    metrics.consumer_total_lag.set(group, 5)
    metrics.consumer_status.set(group, 1)
    metrics.consumer_partition_lag.set({**group, "topic": "t", "partition": "0"}, 3)
    metrics.topic_partition_offset.set({"cluster": "c", "topic": "t", "partition": "0"}, 9)
    metrics.delete_consumer_metrics("c", "g")
    text = metrics.render()
    assert "consumer_group" not in text
    assert 'burrow_kafka_topic_partition_offset{cluster="c",partition="0",topic="t"} 9' in text


def test_delete_topic_and_consumer_topic_metrics():
    metrics = BurrowMetrics()
    part = {"cluster": "c", "consumer_group": "g", "topic": "t", "partition": "0"}
    other = {"cluster": "c", "consumer_group": "g", "topic": "u", "partition": "0"}
    metrics.consumer_partition_lag.set(part, 1)
    metrics.consumer_partition_lag.set(other, 2)
    metrics.partition_status.set(part, 1)
    metrics.consumer_total_lag.set({"cluster": "c", "consumer_group": "g"}, 7)
    metrics.delete_consumer_topic_metrics("c", "g", "t")
    assert metrics.consumer_partition_lag.get(part) is None
    assert metrics.partition_status.get(part) is None
    assert metrics.consumer_partition_lag.get(other) == 2.0
    metrics.delete_topic_metrics("c", "u")
    assert metrics.consumer_partition_lag.get(other) is None
    assert metrics.consumer_total_lag.get({"cluster": "c", "consumer_group": "g"}) == 7.0


def test_fetch_helpers_treat_none_as_empty():
    app = ApplicationContext(reply_timeout=5)
    seen = []
    thread = _responder(app.storage_channel, [None, None], seen)
    assert list_clusters(app) == []
    assert get_topic_detail(app, "c", "t") == []
    thread.join(5)
    assert seen[1].request_type == StorageRequestType.FETCH_TOPIC