"""Request, status and configuration records exchanged by the HTTP layer."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum, IntEnum
from typing import Any, Optional


def _named(json_name: str, **kwargs: Any) -> Any:
    return field(metadata={"json": json_name}, **kwargs)


class StorageRequestType(Enum):
    FETCH_CLUSTERS = "fetch-clusters"
    FETCH_TOPICS = "fetch-topics"
    FETCH_TOPIC = "fetch-topic"
    FETCH_CONSUMERS_FOR_TOPIC = "fetch-consumers-for-topic"
    FETCH_CONSUMERS = "fetch-consumers"
    FETCH_CONSUMER = "fetch-consumer"
    SET_DELETE_GROUP = "set-delete-group"


class StatusCode(IntEnum):
    """Consumer and partition status; serialised by name."""

    NOTFOUND = 0
    OK = 1
    WARN = 2
    ERR = 3
    STOP = 4
    STALL = 5
    REWIND = 6


class _ReplySlot:
    """A single-use slot that one thread fills and another waits on."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._value: Any = None

    def put(self, value: Any) -> None:
        with self._lock:
            if self._event.is_set():
                raise RuntimeError("request already answered")
            self._value = value
            self._event.set()

    def wait(self, timeout: Optional[float]) -> Any:
        if not self._event.wait(timeout):
            raise TimeoutError("no reply received")
        return self._value


@dataclass
class StorageRequest:
    request_type: StorageRequestType
    cluster: str = ""
    topic: str = ""
    group: str = ""
    _reply: _ReplySlot = field(default_factory=_ReplySlot, init=False, repr=False, compare=False)

    def respond(self, value: Any) -> None:
        """Answer the request; None means nothing was found."""
        self._reply.put(value)

    def wait_reply(self, timeout: Optional[float] = None) -> Any:
        """Block until answered; raise TimeoutError after timeout seconds."""
        return self._reply.wait(timeout)


@dataclass
class EvaluatorRequest:
    cluster: str
    group: str
    show_all: bool = False
    _reply: _ReplySlot = field(default_factory=_ReplySlot, init=False, repr=False, compare=False)

    def respond(self, value: Any) -> None:
        """Answer the request with a ConsumerGroupStatus."""
        self._reply.put(value)

    def wait_reply(self, timeout: Optional[float] = None) -> Any:
        """Block until answered; raise TimeoutError after timeout seconds."""
        return self._reply.wait(timeout)


@dataclass
class ConsumerOffset:
    offset: int = 0
    timestamp: int = 0
    lag: Optional[int] = None


@dataclass
class ConsumerPartition:
    offsets: list = field(default_factory=list)
    owner: str = ""
    client_id: str = _named("client_id", default="")
    current_lag: int = 0


@dataclass
class PartitionStatus:
    topic: str = ""
    partition: int = 0
    owner: str = ""
    client_id: str = _named("client_id", default="")
    status: StatusCode = StatusCode.NOTFOUND
    start: Optional[ConsumerOffset] = None
    end: Optional[ConsumerOffset] = None
    current_lag: int = _named("current_lag", default=0)
    complete: float = 0.0


@dataclass
class ConsumerGroupStatus:
    cluster: str = ""
    group: str = ""
    status: StatusCode = StatusCode.NOTFOUND
    complete: float = 0.0
    partitions: list = field(default_factory=list)
    total_partitions: int = _named("partition_count", default=0)
    max_lag: Optional[PartitionStatus] = _named("maxlag", default=None)
    total_lag: int = _named("totallag", default=0)


@dataclass
class ApplicationContext:
    """Shared state: the queues to the storage and evaluator subsystems."""

    storage_channel: queue.Queue = field(default_factory=queue.Queue)
    evaluator_channel: queue.Queue = field(default_factory=queue.Queue)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("burrow"))
    log_level: int = logging.INFO
    app_ready: bool = False
    reply_timeout: Optional[float] = None

    def ask_storage(self, request: StorageRequest) -> Any:
        """Send a request to storage and return its reply."""
        self.storage_channel.put(request)
        return request.wait_reply(self.reply_timeout)

    def ask_evaluator(self, request: EvaluatorRequest) -> Any:
        """Send a request to the evaluator and return its reply."""
        self.evaluator_channel.put(request)
        return request.wait_reply(self.reply_timeout)


@dataclass
class RequestInfo:
    url: str = ""
    host: str = ""


@dataclass
class TLSProfile:
    name: str = ""
    no_verify: bool = _named("noverify", default=False)
    cert_file: str = _named("certfile", default="")
    key_file: str = _named("keyfile", default="")
    ca_file: str = _named("cafile", default="")


@dataclass
class SASLProfile:
    name: str = ""
    handshake_first: bool = False
    username: str = ""


@dataclass
class ClientProfile:
    name: str = ""
    client_id: str = ""
    kafka_version: str = ""
    tls: Optional[TLSProfile] = None
    sasl: Optional[SASLProfile] = None


@dataclass
class StorageModuleConfig:
    class_name: str = ""
    intervals: int = 0
    min_distance: int = 0
    group_allowlist: str = ""
    expire_group: int = 0


@dataclass
class ClusterModuleConfig:
    class_name: str = ""
    servers: list = field(default_factory=list)
    client_profile: ClientProfile = field(default_factory=ClientProfile)
    topic_refresh: int = 0
    offset_refresh: int = 0


@dataclass
class ConsumerModuleConfig:
    class_name: str = ""
    cluster: str = ""
    servers: list = field(default_factory=list)
    group_allowlist: str = ""
    zookeeper_path: str = ""
    zookeeper_timeout: int = 0
    client_profile: ClientProfile = field(default_factory=ClientProfile)
    offsets_topic: str = ""
    start_latest: bool = False


@dataclass
class EvaluatorModuleConfig:
    class_name: str = ""
    expire_cache: int = 0


@dataclass
class HTTPNotifierConfig:
    class_name: str = ""
    group_allowlist: str = ""
    interval: int = 0
    threshold: int = 0
    timeout: int = 0
    keepalive: int = 0
    url_open: str = ""
    url_close: str = ""
    method_open: str = ""
    method_close: str = ""
    template_open: str = ""
    template_close: str = ""
    extras: dict = _named("extra", default_factory=dict)
    send_close: bool = False
    extra_ca: str = ""
    no_verify: str = _named("noverify", default="")


@dataclass
class SlackNotifierConfig:
    class_name: str = ""
    group_allowlist: str = ""
    interval: int = 0
    threshold: int = 0
    timeout: int = 0
    keepalive: int = 0
    template_open: str = ""
    template_close: str = ""
    extras: dict = _named("extra", default_factory=dict)
    send_close: bool = False
    channel: str = ""
    username: str = ""
    icon_url: str = ""
    icon_emoji: str = ""


@dataclass
class EmailNotifierConfig:
    class_name: str = ""
    group_allowlist: str = ""
    interval: int = 0
    threshold: int = 0
    template_open: str = ""
    template_close: str = ""
    extras: dict = _named("extra", default_factory=dict)
    send_close: bool = False
    server: str = ""
    port: int = 0
    auth_type: str = ""
    username: str = ""
    from_address: str = _named("from", default="")
    to: str = ""
    extra_ca: str = ""
    no_verify: str = _named("noverify", default="")


@dataclass
class NullNotifierConfig:
    class_name: str = ""
    group_allowlist: str = ""
    interval: int = 0
    threshold: int = 0
    template_open: str = ""
    template_close: str = ""
    extras: dict = _named("extra", default_factory=dict)
    send_close: bool = False


def to_json(obj: Any) -> Any:
    """Convert records, enums and containers into JSON-ready plain data."""
    if isinstance(obj, StatusCode):
        return obj.name
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.metadata.get("json", f.name.replace("_", "-")): to_json(getattr(obj, f.name))
            for f in fields(obj)
            if not f.name.startswith("_")
        }
    if isinstance(obj, dict):
        return {str(key): to_json(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_json(item) for item in obj]
    return obj