"""
Pipeline stage metrics.

Stat records emitted by the pipeline carry a ``stage`` field (``Pick``,
``Parse`` or ``Sink``) plus label and count fields. StageMetrics turns them
into prometheus counters and gauges on its own registry.
"""

import uuid
from enum import Enum

from prometheus_client import CollectorRegistry, Counter, Gauge

from ferry.core.record import DataRecord


class Stage(str, Enum):
    """Pipeline stage a stat record reports on."""

    PICK = "Pick"
    PARSE = "Parse"
    SINK = "Sink"


RECV_LABELS = ("pid", "key", "source_type")
SOURCE_TYPE_LABELS = ("pid", "source_type")
PARSE_LABELS = ("pid", "rule_name", "wp_src_ip", "log_business", "log_type", "log_desc", "pos_sn")
PARSE_ALL_LABELS = ("pid", "parse", "log_source", "log_type")
SINK_LABELS = (
    "pid",
    "name",
    "wp_src_ip",
    "pos_sn",
    "log_type",
    "log_desc",
    "log_business",
    "sink_type",
    "sink_business",
    "sink_category",
)
SINK_TYPE_LABELS = ("pid", "sink_type", "sink_category")

# Optional labels copied verbatim from the record when present
_EXTENDED_LABELS = ("pos_sn", "wp_src_ip", "log_desc", "log_type")


def _text(record: DataRecord, name: str) -> str:
    item = record.get(name)
    if item is None or not isinstance(item.value, str):
        return ""
    return item.value


def _count(record: DataRecord, name: str) -> int:
    item = record.get(name)
    if item is None or isinstance(item.value, bool) or not isinstance(item.value, int):
        return 0
    return item.value


class StageMetrics:
    """
    Counters and gauges fed by pipeline stat records.

    Every series carries a ``pid`` label identifying this process instance,
    so several exporters can push to the same VictoriaMetrics cluster.

    Usage:
        metrics = StageMetrics()
        metrics.observe(DataRecord.from_dict({"stage": "Pick", "target": "kafka", "total": 10}))
    """

    def __init__(self, registry: CollectorRegistry | None = None, pid: str | None = None) -> None:
        self._registry = registry or CollectorRegistry()
        self._pid = pid or str(uuid.uuid4())

        self.receive_data = Counter(
            "wparse_receive_data",
            "Number of logs obtained from the data source.",
            RECV_LABELS,
            registry=self._registry,
        )
        self.parse_success = Counter(
            "wparse_parse_success",
            "Number of logs parsed successfully.",
            PARSE_LABELS,
            registry=self._registry,
        )
        self.parse_all = Counter(
            "wparse_parse_all",
            "Number of logs parsed.",
            PARSE_ALL_LABELS,
            registry=self._registry,
        )
        self.send_to_sink = Counter(
            "wparse_send_to_sink",
            "Number of records sent to sinks.",
            SINK_LABELS,
            registry=self._registry,
        )
        self.source_types = Gauge(
            "wparse_source_types",
            "Source types seen by the pipeline.",
            SOURCE_TYPE_LABELS,
            registry=self._registry,
        )
        self.sink_types = Gauge(
            "wparse_sink_types",
            "Sink types seen by the pipeline.",
            SINK_TYPE_LABELS,
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    @property
    def pid(self) -> str:
        return self._pid

    def observe(self, record: DataRecord) -> Stage | None:
        """
        Update the series matching the record's stage.

        Returns:
            The stage handled, or None when the record has no known stage.
        """
        try:
            stage = Stage(_text(record, "stage"))
        except ValueError:
            return None

        if stage is Stage.PICK:
            self._observe_pick(record)
        elif stage is Stage.PARSE:
            self._observe_parse(record)
        else:
            self._observe_sink(record)
        return stage

    def _extended(self, record: DataRecord) -> dict[str, str]:
        return {name: _text(record, name) for name in _EXTENDED_LABELS}

    def _observe_pick(self, record: DataRecord) -> None:
        target = _text(record, "target")
        total = _count(record, "total")
        if total > 0:
            self.receive_data.labels(pid=self._pid, key=target, source_type=target).inc(total)
        self.source_types.labels(pid=self._pid, source_type=target).set(1)

    def _observe_parse(self, record: DataRecord) -> None:
        target = _text(record, "target")
        success = _count(record, "success")
        if success > 0:
            self.parse_success.labels(
                pid=self._pid,
                rule_name=target,
                log_business=target,
                **self._extended(record),
            ).inc(success)

        total = _count(record, "total")
        if total > 0:
            self.parse_all.labels(
                pid=self._pid,
                parse="parse",
                log_source="",
                log_type="",
            ).inc(total)

    def _observe_sink(self, record: DataRecord) -> None:
        target = _text(record, "target")
        category = _text(record, "sink_category")
        success = _count(record, "success")
        if success > 0:
            self.send_to_sink.labels(
                pid=self._pid,
                name=target,
                log_business=_text(record, "log_business"),
                sink_type=target,
                sink_business=_text(record, "sink_business"),
                sink_category=category,
                **self._extended(record),
            ).inc(success)
        self.sink_types.labels(pid=self._pid, sink_type=target, sink_category=category).set(1)
