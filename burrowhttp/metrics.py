"""Prometheus gauges for consumer lag, status and topic offsets."""

from __future__ import annotations

import math
import threading
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from .structs import (
    ApplicationContext,
    ConsumerGroupStatus,
    EvaluatorRequest,
    StatusCode,
    StorageRequest,
    StorageRequestType,
)

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def _format_value(value: float) -> str:
    """Format a sample value the way the text exposition format writes it."""
    number = float(value)
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    if number == 0:
        return "0"
    sign, digit_tuple, exponent = Decimal(repr(number)).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    count = len(digits)
    point = count + exponent
    exp10 = point - 1
    precision = 6
    if precision > count and count >= point:
        precision = count
    prefix = "-" if sign else ""
    if exp10 < -4 or exp10 >= precision:
        mantissa = digits[0] + ("." + digits[1:] if count > 1 else "")
        exp_sign = "-" if exp10 < 0 else "+"
        return f"{prefix}{mantissa}e{exp_sign}{abs(exp10):02d}"
    if point <= 0:
        return f"{prefix}0.{'0' * -point}{digits}"
    if point >= count:
        return f"{prefix}{digits}{'0' * (point - count)}"
    return f"{prefix}{digits[:point]}.{digits[point:]}"


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


class GaugeVec:
    """A family of gauges distinguished by a fixed set of label names."""

    def __init__(self, name: str, help_text: str, label_names: Iterable[str]) -> None:
        self.name = name
        self.help_text = help_text
        self.label_names = tuple(label_names)
        self._values: dict[tuple[str, ...], float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Mapping[str, str]) -> tuple[str, ...]:
        if set(labels) != set(self.label_names):
            raise ValueError(
                f"{self.name}: expected labels {sorted(self.label_names)}, got {sorted(labels)}"
            )
        return tuple(str(labels[name]) for name in self.label_names)

    def set(self, labels: Mapping[str, str], value: float) -> None:
        """Set the gauge with exactly these labels to value."""
        key = self._key(labels)
        with self._lock:
            self._values[key] = float(value)

    def get(self, labels: Mapping[str, str]) -> Optional[float]:
        """The value of the gauge with these labels, or None."""
        key = self._key(labels)
        with self._lock:
            return self._values.get(key)

    def delete(self, labels: Mapping[str, str]) -> bool:
        """Remove the gauge with exactly these labels; report whether it existed."""
        if set(labels) != set(self.label_names):
            return False
        key = tuple(str(labels[name]) for name in self.label_names)
        with self._lock:
            return self._values.pop(key, None) is not None

    def delete_partial_match(self, labels: Mapping[str, str]) -> int:
        """Remove every gauge whose labels include all the given pairs."""
        try:
            wanted = [(self.label_names.index(name), str(value)) for name, value in labels.items()]
        except ValueError:
            return 0
        with self._lock:
            doomed = [
                key for key in self._values if all(key[index] == value for index, value in wanted)
            ]
            for key in doomed:
                del self._values[key]
        return len(doomed)

    def render(self) -> str:
        """The family in text exposition format, or "" when it has no series."""
        with self._lock:
            items = list(self._values.items())
        if not items:
            return ""
        order = sorted(range(len(self.label_names)), key=lambda i: self.label_names[i])
        samples = []
        for key, value in items:
            pairs = ",".join(f'{self.label_names[i]}="{_escape_label(key[i])}"' for i in order)
            samples.append(f"{self.name}{{{pairs}}} {_format_value(value)}")
        samples.sort()
        header = f"# HELP {self.name} {_escape_help(self.help_text)}\n# TYPE {self.name} gauge\n"
        return header + "\n".join(samples) + "\n"


class BurrowMetrics:
    """The gauges exported for the clusters and consumers being monitored."""

    def __init__(self) -> None:
        self.consumer_total_lag = GaugeVec(
            "burrow_kafka_consumer_lag_total",
            "The sum of all partition current lag values for the group",
            ["cluster", "consumer_group"],
        )
        self.consumer_status = GaugeVec(
            "burrow_kafka_consumer_status",
            "The status of the consumer group. It is calculated from the highest status for the "
            "individual partitions. Statuses are an index list from NOTFOUND, OK, WARN, or ERR",
            ["cluster", "consumer_group"],
        )
        self.partition_status = GaugeVec(
            "burrow_kafka_topic_partition_status",
            "The status of topic partition. It is calculated from the highest status for the "
            "individual partitions. Statuses are an index list from OK, WARN, STOP, STALL, REWIND",
            ["cluster", "consumer_group", "topic", "partition"],
        )
        self.consumer_partition_current_offset = GaugeVec(
            "burrow_kafka_consumer_current_offset",
            "Latest offset that Burrow is storing for this partition",
            ["cluster", "consumer_group", "topic", "partition"],
        )
        self.consumer_partition_lag = GaugeVec(
            "burrow_kafka_consumer_partition_lag",
            "Number of messages the consumer group is behind by for a partition as reported by Burrow",
            ["cluster", "consumer_group", "topic", "partition"],
        )
        self.topic_partition_offset = GaugeVec(
            "burrow_kafka_topic_partition_offset",
            "Latest offset the topic that Burrow is storing for this partition",
            ["cluster", "topic", "partition"],
        )

    @property
    def gauges(self) -> list[GaugeVec]:
        return [
            self.consumer_total_lag,
            self.consumer_status,
            self.partition_status,
            self.consumer_partition_current_offset,
            self.consumer_partition_lag,
            self.topic_partition_offset,
        ]

    def delete_consumer_metrics(self, cluster: str, consumer: str) -> None:
        """Drop every series labelled with the consumer group."""
        labels = {"cluster": cluster, "consumer_group": consumer}
        self.consumer_total_lag.delete(labels)
        self.consumer_status.delete(labels)
        self.consumer_partition_lag.delete_partial_match(labels)
        self.consumer_partition_current_offset.delete_partial_match(labels)
        self.partition_status.delete_partial_match(labels)

    def delete_topic_metrics(self, cluster: str, topic: str) -> None:
        """Drop every series labelled with the topic."""
        labels = {"cluster": cluster, "topic": topic}
        self.topic_partition_offset.delete_partial_match(labels)
        self.consumer_partition_lag.delete_partial_match(labels)
        self.consumer_partition_current_offset.delete_partial_match(labels)
        self.consumer_total_lag.delete_partial_match(labels)
        self.consumer_status.delete_partial_match(labels)

    def delete_consumer_topic_metrics(self, cluster: str, consumer: str, topic: str) -> None:
        """Drop the series labelled with both the consumer group and the topic."""
        labels = {"cluster": cluster, "consumer_group": consumer, "topic": topic}
        self.partition_status.delete_partial_match(labels)
        self.consumer_partition_current_offset.delete_partial_match(labels)
        self.consumer_partition_lag.delete_partial_match(labels)

    def update(self, app: ApplicationContext) -> None:
        """Refresh the gauges from storage and the evaluator."""
        for cluster in list_clusters(app):
            for consumer in list_consumers(app, cluster):
                status = get_full_consumer_status(app, cluster, consumer)
                if status is None or status.status == StatusCode.NOTFOUND:
                    continue
                labels = {"cluster": cluster, "consumer_group": consumer}
                self.consumer_total_lag.set(labels, status.total_lag)
                self.consumer_status.set(labels, int(status.status))
                for partition in status.partitions:
                    partition_labels = {
                        "cluster": cluster,
                        "consumer_group": consumer,
                        "topic": partition.topic,
                        "partition": str(partition.partition),
                    }
                    self.consumer_partition_lag.set(partition_labels, partition.current_lag)
                    if partition.complete == 1.0 and partition.end is not None:
                        self.consumer_partition_current_offset.set(
                            partition_labels, partition.end.offset
                        )
                        self.partition_status.set(partition_labels, int(partition.status))
            for topic in list_topics(app, cluster):
                for number, offset in enumerate(get_topic_detail(app, cluster, topic)):
                    self.topic_partition_offset.set(
                        {"cluster": cluster, "topic": topic, "partition": str(number)}, offset
                    )

    def render(self) -> str:
        """All non-empty families in text exposition format, sorted by name."""
        ordered = sorted(self.gauges, key=lambda gauge: gauge.name)
        return "".join(gauge.render() for gauge in ordered)


def _fetch_list(app: ApplicationContext, request: StorageRequest) -> list:
    response = app.ask_storage(request)
    return [] if response is None else list(response)


def list_clusters(app: ApplicationContext) -> list[str]:
    return _fetch_list(app, StorageRequest(StorageRequestType.FETCH_CLUSTERS))


def list_consumers(app: ApplicationContext, cluster: str) -> list[str]:
    return _fetch_list(app, StorageRequest(StorageRequestType.FETCH_CONSUMERS, cluster=cluster))


def get_full_consumer_status(
    app: ApplicationContext, cluster: str, consumer: str
) -> Optional[ConsumerGroupStatus]:
    return app.ask_evaluator(EvaluatorRequest(cluster=cluster, group=consumer, show_all=True))


def list_topics(app: ApplicationContext, cluster: str) -> list[str]:
    return _fetch_list(app, StorageRequest(StorageRequestType.FETCH_TOPICS, cluster=cluster))


def get_topic_detail(app: ApplicationContext, cluster: str, topic: str) -> list[int]:
    return _fetch_list(
        app, StorageRequest(StorageRequestType.FETCH_TOPIC, cluster=cluster, topic=topic)
    )