"""
Flow report construction and export.

This module turns the kernel's raw per-flow counters into a FlowReport and
writes it to the CSV sink and the console log.
"""

import csv
import typing as tp

from loguru import logger

from flowbench.simulation.calculations import calculate_flow_metrics, fairness_of
from flowbench.simulation.errors import ExportError
from flowbench.simulation.metrics import FlowKey, FlowMetrics, FlowReport, RawFlowCounters
from flowbench.simulation.selectors import FlowSelector, select_all

# CSV header -> FlowMetrics field
CSV_COLUMNS = {
    "FlowID": "flow_id",
    "Source": "source",
    "Destination": "destination",
    "TxPackets": "tx_packets",
    "RxPackets": "rx_packets",
    "Throughput(Mbps)": "throughput_mbps",
    "Goodput(Mbps)": "goodput_mbps",
    "AverageDelay(s)": "average_delay_s",
    "PacketLossRatio(%)": "packet_loss_ratio",
    "PacketDeliveryRatio(%)": "packet_delivery_ratio",
    "AverageJitter(s)": "average_jitter_s",
    "BandwidthUtilization(%)": "bandwidth_utilization",
    "Retransmissions": "retransmissions",
}

_INT_FIELDS = {"flow_id", "tx_packets", "rx_packets", "retransmissions"}
_STR_FIELDS = {"source", "destination"}


def select_flows(
    flow_stats: tp.Dict[FlowKey, RawFlowCounters],
    selector: FlowSelector = select_all,
) -> tp.List[tp.Tuple[FlowKey, RawFlowCounters]]:
    """
    Keep the flows accepted by `selector`, ordered by kernel flow id.

    Args:
        flow_stats: Counters keyed by flow 5-tuple
        selector: Predicate deciding which flows are reported

    Returns:
        List of (FlowKey, RawFlowCounters) pairs
    """
    selected = [(key, counters) for key, counters in flow_stats.items() if selector(key)]
    selected.sort(key=lambda item: item[1].flow_id)
    return selected


def build_flow_report(
    flow_stats: tp.Dict[FlowKey, RawFlowCounters],
    selector: FlowSelector,
    link_capacity_mbps: float,
    case_id: int,
) -> FlowReport:
    """
    Compute per-flow metrics for the selected flows and their fairness index.

    Args:
        flow_stats: Counters collected from the kernel after the run
        selector: Predicate deciding which flows are reported
        link_capacity_mbps: Capacity used for bandwidth utilization
        case_id: Scenario that produced the counters

    Returns:
        FlowReport with metrics ordered by flow id
    """
    flows = [
        calculate_flow_metrics(key, counters, link_capacity_mbps)
        for key, counters in select_flows(flow_stats, selector)
    ]
    report = FlowReport(
        case_id=case_id,
        link_capacity_mbps=link_capacity_mbps,
        flows=flows,
        fairness_index=fairness_of(flows),
        total_flows_observed=len(flow_stats),
    )
    logger.info(
        f"Selected {len(flows)} of {len(flow_stats)} flows for case {case_id}"
    )
    return report


def metrics_to_row(metrics: FlowMetrics) -> tp.Dict[str, tp.Any]:
    return {column: getattr(metrics, name) for column, name in CSV_COLUMNS.items()}


def export_to_csv(report: FlowReport, output_path: str) -> None:
    """
    Write the report's flows to a CSV file, header first.

    The fairness index is not part of the file; it is logged instead.

    Args:
        report: Finalized flow report
        output_path: Path of the CSV file

    Raises:
        ExportError: If the file cannot be opened or written
    """
    if not report.flows:
        logger.warning(f"No flows selected for case {report.case_id}; writing header only")

    try:
        with open(output_path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=list(CSV_COLUMNS))
            writer.writeheader()
            writer.writerows(metrics_to_row(m) for m in report.flows)
    except OSError as e:
        raise ExportError(output_path, e, report) from e

    logger.info(f"Exported {len(report.flows)} flow records to {output_path}")


def read_metrics_csv(path: str) -> tp.List[FlowMetrics]:
    """Parse a file written by export_to_csv back into FlowMetrics records."""
    records = []
    with open(path, "r", newline="") as f:
        for row in csv.DictReader(f):
            values: tp.Dict[str, tp.Any] = {}
            for column, name in CSV_COLUMNS.items():
                raw = row[column]
                if name in _STR_FIELDS:
                    values[name] = raw
                elif name in _INT_FIELDS:
                    values[name] = int(raw)
                else:
                    values[name] = float(raw)
            records.append(FlowMetrics(**values))
    return records


def log_flow_report(report: FlowReport) -> None:
    """Emit the per-flow table and the fairness index through the logger."""
    logger.info(
        f"Case {report.case_id}: {len(report.flows)} flows, "
        f"link capacity {report.link_capacity_mbps:g} Mbps"
    )
    for m in report.flows:
        logger.info(
            f"Flow {m.flow_id} ({m.source} -> {m.destination}) | "
            f"Tx {m.tx_packets} Rx {m.rx_packets} | "
            f"Throughput {m.throughput_mbps:.4f} Mbps | "
            f"Goodput {m.goodput_mbps:.4f} Mbps | "
            f"Delay {m.average_delay_s:.6f} s | "
            f"Loss {m.packet_loss_ratio:.2f}% | "
            f"PDR {m.packet_delivery_ratio:.2f}% | "
            f"Jitter {m.average_jitter_s:.6f} s | "
            f"Utilization {m.bandwidth_utilization:.2f}% | "
            f"Retransmissions {m.retransmissions}"
        )
    logger.info(f"Jain's Fairness Index: {report.fairness_index:.6f}")
