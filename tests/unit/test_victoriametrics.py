"""Tests for stage metrics and the VictoriaMetrics exporter."""

import asyncio

import httpx
import pytest

from ferry.connectors.victoriametrics.config import VictoriaMetricsConfig
from ferry.connectors.victoriametrics.exporter import VictoriaMetricsExporter
from ferry.connectors.victoriametrics.metrics import Stage, StageMetrics
from ferry.core.base import ConnectorState
from ferry.core.exceptions import UnsupportedOperationError
from ferry.core.record import DataRecord


@pytest.fixture
def stage_metrics() -> StageMetrics:
    return StageMetrics(pid="test-pid")


class TestStageMetrics:
    def test_pick_counts_received(self, stage_metrics):
        record = DataRecord.from_dict({"stage": "Pick", "target": "kafka", "total": 10})

        assert stage_metrics.observe(record) is Stage.PICK

        value = stage_metrics.registry.get_sample_value(
            "wparse_receive_data_total",
            {"pid": "test-pid", "key": "kafka", "source_type": "kafka"},
        )
        assert value == 10
        gauge = stage_metrics.registry.get_sample_value(
            "wparse_source_types",
            {"pid": "test-pid", "source_type": "kafka"},
        )
        assert gauge == 1

    def test_parse_counts_success_and_all(self, stage_metrics):
        record = DataRecord.from_dict({
            "stage": "Parse",
            "target": "nginx",
            "success": 7,
            "total": 9,
            "log_type": "access",
        })
        stage_metrics.observe(record)

        success = stage_metrics.registry.get_sample_value(
            "wparse_parse_success_total",
            {
                "pid": "test-pid",
                "rule_name": "nginx",
                "wp_src_ip": "",
                "log_business": "nginx",
                "log_type": "access",
                "log_desc": "",
                "pos_sn": "",
            },
        )
        total = stage_metrics.registry.get_sample_value(
            "wparse_parse_all_total",
            {"pid": "test-pid", "parse": "parse", "log_source": "", "log_type": ""},
        )
        assert success == 7
        assert total == 9

    def test_sink_counts_sent(self, stage_metrics):
        record = DataRecord.from_dict({
            "stage": "Sink",
            "target": "mysql",
            "sink_category": "business",
            "success": 3,
        })
        stage_metrics.observe(record)

        gauge = stage_metrics.registry.get_sample_value(
            "wparse_sink_types",
            {"pid": "test-pid", "sink_type": "mysql", "sink_category": "business"},
        )
        assert gauge == 1

    def test_unknown_stage_ignored(self, stage_metrics):
        assert stage_metrics.observe(DataRecord.from_dict({"stage": "Other"})) is None
        assert stage_metrics.observe(DataRecord.from_dict({"x": 1})) is None


def make_exporter(stage_metrics, interval=60.0) -> tuple[VictoriaMetricsExporter, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    config = VictoriaMetricsConfig(insert_url="http://vm.test/api/v1/import/prometheus", flush_interval_secs=interval)
    exporter = VictoriaMetricsExporter(
        config,
        "vm",
        stage_metrics=stage_metrics,
        transport=httpx.MockTransport(handler),
    )
    return exporter, seen


class TestVictoriaMetricsExporter:
    @pytest.mark.asyncio
    async def test_stop_pushes_once_and_cancels_task(self, stage_metrics):
        exporter, seen = make_exporter(stage_metrics)
        await exporter.connect()
        assert exporter.is_flushing

        await exporter.sink_records([DataRecord.from_dict({"stage": "Pick", "target": "kafka", "total": 2})])
        await exporter.stop()

        assert len(seen) == 1
        assert b"wparse_receive_data_total" in seen[0].content
        assert not exporter.is_flushing
        assert exporter.state == ConnectorState.STOPPED

    @pytest.mark.asyncio
    async def test_periodic_push(self, stage_metrics):
        exporter, seen = make_exporter(stage_metrics, interval=0.01)
        await exporter.connect()
        await exporter.sink_record(DataRecord.from_dict({"stage": "Pick", "target": "kafka", "total": 1}))

        for _ in range(100):
            if seen:
                break
            await asyncio.sleep(0.01)

        assert seen
        await exporter.stop()

    @pytest.mark.asyncio
    async def test_raw_rejected(self, stage_metrics):
        exporter, _ = make_exporter(stage_metrics)
        with pytest.raises(UnsupportedOperationError):
            await exporter.sink_bytes(b"metric 1")

    def test_config_from_params(self):
        config = VictoriaMetricsConfig.from_params({"insert_url": "http://vm/import", "flush_interval_secs": "2.5"})
        assert config.flush_interval_secs == 2.5
