import threading

import pytest

from burrowhttp.structs import (
    ApplicationContext,
    ConsumerGroupStatus,
    ConsumerOffset,
    ConsumerPartition,
    EmailNotifierConfig,
    EvaluatorRequest,
    NullNotifierConfig,
    PartitionStatus,
    StatusCode,
    StorageRequest,
    StorageRequestType,
    TLSProfile,
    to_json,
)


def test_status_codes_serialise_by_name():
    assert to_json([StatusCode.NOTFOUND, StatusCode.OK, StatusCode.WARN, StatusCode.ERR]) == [
        "NOTFOUND",
        "OK",
        "WARN",
        "ERR",
    ]
    assert float(StatusCode.OK) == 1.0


def test_request_type_serialises_by_value():
    assert to_json(StorageRequestType.FETCH_CLUSTERS) == "fetch-clusters"


def test_group_status_json_keys_and_status_name():
    status = ConsumerGroupStatus(
        cluster="testcluster",
        group="testgroup",
        status=StatusCode.OK,
        complete=1.0,
        total_partitions=2134,
        max_lag=PartitionStatus(
            topic="testtopic",
            status=StatusCode.OK,
            end=ConsumerOffset(offset=9837458, timestamp=12837487, lag=2355),
        ),
        total_lag=2345,
    )
    data = to_json(status)
    assert data["status"] == "OK"
    assert data["partition_count"] == 2134
    assert data["totallag"] == 2345
    assert data["partitions"] == []
    assert data["maxlag"]["topic"] == "testtopic"
    assert data["maxlag"]["end"] == {"offset": 9837458, "timestamp": 12837487, "lag": 2355}
    assert "current_lag" in data["maxlag"]


def test_consumer_partition_json():
    partition = ConsumerPartition(
        offsets=[ConsumerOffset(offset=9837458, timestamp=12837487, lag=2355)],
        owner="somehost",
        current_lag=2345,
    )
    data = to_json({"testtopic": [partition]})
    assert data["testtopic"][0]["owner"] == "somehost"
    assert data["testtopic"][0]["current-lag"] == 2345
    assert data["testtopic"][0]["offsets"][0]["offset"] == 9837458


def test_profile_and_notifier_json_names():
    tls = to_json(TLSProfile(name="t", no_verify=True, cert_file="c", key_file="k", ca_file="a"))
    assert tls == {"name": "t", "noverify": True, "certfile": "c", "keyfile": "k", "cafile": "a"}
    null = to_json(NullNotifierConfig(class_name="null", extras={"x": "y"}))
    assert null["class-name"] == "null"
    assert null["extra"] == {"x": "y"}
    email = to_json(EmailNotifierConfig(from_address="burrow@example.com"))
    assert email["from"] == "burrow@example.com"


def test_request_reply_roundtrip():
    request = StorageRequest(StorageRequestType.FETCH_CLUSTERS)
    request.respond(["testcluster"])
    assert request.wait_reply(1) == ["testcluster"]


def test_evaluator_request_reply_roundtrip():
    request = EvaluatorRequest("c", "g", show_all=True)
    request.respond(ConsumerGroupStatus(cluster="c", group="g", status=StatusCode.OK))
    assert request.wait_reply(1).status is StatusCode.OK


def test_request_answered_twice_raises():
    request = EvaluatorRequest("c", "g")
    request.respond(None)
    with pytest.raises(RuntimeError):
        request.respond(None)


def test_wait_reply_times_out():
    request = StorageRequest(StorageRequestType.FETCH_TOPICS, cluster="c")
    with pytest.raises(TimeoutError):
        request.wait_reply(0.01)


def test_ask_storage_goes_through_channel():
    app = ApplicationContext(reply_timeout=5)
    seen = []

    def responder():
        request = app.storage_channel.get(timeout=5)
        seen.append((request.request_type, request.cluster))
        request.respond(["testtopic"])

    thread = threading.Thread(target=responder)
    thread.start()
    reply = app.ask_storage(StorageRequest(StorageRequestType.FETCH_TOPICS, cluster="testcluster"))
    thread.join()
    assert reply == ["testtopic"]
    assert seen == [(StorageRequestType.FETCH_TOPICS, "testcluster")]


def test_ask_evaluator_goes_through_channel():
    app = ApplicationContext(reply_timeout=5)

    def responder():
        request = app.evaluator_channel.get(timeout=5)
        request.respond(ConsumerGroupStatus(cluster=request.cluster, group=request.group,
                                            status=StatusCode.NOTFOUND))

    thread = threading.Thread(target=responder)
    thread.start()
    reply = app.ask_evaluator(EvaluatorRequest("nocluster", "testgroup", show_all=True))
    thread.join()
    assert reply.status is StatusCode.NOTFOUND
    assert reply.cluster == "nocluster"