"""
Unit tests for flow report construction and CSV export.
"""

import csv

import pytest
from loguru import logger

from flowbench.simulation.errors import ExportError
from flowbench.simulation.metrics import FlowReport
from flowbench.simulation.processor import (
    CSV_COLUMNS,
    build_flow_report,
    export_to_csv,
    log_flow_report,
    read_metrics_csv,
    select_flows,
)
from flowbench.simulation.selectors import match_flow, select_all, any_of

EXPECTED_HEADER = [
    "FlowID",
    "Source",
    "Destination",
    "TxPackets",
    "RxPackets",
    "Throughput(Mbps)",
    "Goodput(Mbps)",
    "AverageDelay(s)",
    "PacketLossRatio(%)",
    "PacketDeliveryRatio(%)",
    "AverageJitter(s)",
    "BandwidthUtilization(%)",
    "Retransmissions",
]


@pytest.fixture
def server_flows():
    return any_of(
        match_flow("10.1.1.1", "10.1.1.2", source_port=6969),
        match_flow("10.1.2.1", "10.1.2.2", source_port=6969),
    )


class TestBuildFlowReport:
    def test_flows_ordered_by_id(self, flow_stats):
        selected = select_flows(flow_stats, select_all)
        assert [counters.flow_id for _, counters in selected] == [1, 2, 3]

    def test_selector_filters_flows(self, flow_stats, server_flows):
        report = build_flow_report(flow_stats, server_flows, 60.0, case_id=2)

        assert [m.flow_id for m in report.flows] == [2, 3]
        assert report.total_flows_observed == 3
        assert report.case_id == 2
        assert report.link_capacity_mbps == 60.0

    def test_fairness_over_selected_flows(self, flow_stats, server_flows):
        report = build_flow_report(flow_stats, server_flows, 60.0, case_id=2)
        # throughputs 1.064 and 0.532 Mbps
        assert report.fairness_index == pytest.approx(0.9)

    def test_nothing_selected(self, flow_stats):
        report = build_flow_report(flow_stats, lambda key: False, 60.0, case_id=1)
        assert report.flows == []
        assert report.fairness_index == 0.0


class TestExport:
    def test_header_and_one_line_per_flow(self, flow_stats, tmp_path):
        report = build_flow_report(flow_stats, select_all, 60.0, case_id=1)
        path = tmp_path / "flowmon_metrics_case_1.csv"
        export_to_csv(report, str(path))

        with open(path, newline="") as f:
            rows = list(csv.reader(f))
        assert rows[0] == EXPECTED_HEADER
        assert list(CSV_COLUMNS) == EXPECTED_HEADER
        assert len(rows) == 4

    def test_round_trip(self, flow_stats, tmp_path):
        report = build_flow_report(flow_stats, select_all, 60.0, case_id=1)
        path = str(tmp_path / "metrics.csv")
        export_to_csv(report, path)

        parsed = read_metrics_csv(path)
        assert len(parsed) == len(report.flows)
        for written, loaded in zip(report.flows, parsed):
            assert loaded.flow_id == written.flow_id
            assert loaded.source == written.source
            assert loaded.retransmissions == written.retransmissions
            assert loaded.throughput_mbps == pytest.approx(written.throughput_mbps)
            assert loaded.average_jitter_s == pytest.approx(written.average_jitter_s)

    def test_empty_report_writes_header_only(self, tmp_path):
        path = tmp_path / "empty.csv"
        export_to_csv(FlowReport(case_id=5, link_capacity_mbps=5.0), str(path))

        with open(path, newline="") as f:
            rows = list(csv.reader(f))
        assert rows == [EXPECTED_HEADER]

    def test_unwritable_path_raises_export_error(self, flow_stats, tmp_path):
        report = build_flow_report(flow_stats, select_all, 60.0, case_id=1)
        path = str(tmp_path / "missing" / "metrics.csv")

        with pytest.raises(ExportError) as exc_info:
            export_to_csv(report, path)
        assert exc_info.value.path == path
        assert exc_info.value.report is report


class TestConsoleSink:
    def test_logs_every_flow_and_fairness(self, flow_stats):
        messages = []
        handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="INFO")
        try:
            log_flow_report(build_flow_report(flow_stats, select_all, 60.0, case_id=1))
        finally:
            logger.remove(handler_id)

        assert sum(m.startswith("Flow ") for m in messages) == 3
        assert any(m.startswith("Jain's Fairness Index") for m in messages)
