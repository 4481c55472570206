"""
Flow statistics calculations.

Pure functions deriving per-flow performance metrics from the raw counters
reported by the simulation kernel, and the fairness index across flows.
Every division is guarded: degenerate flows (single packet, zero duration,
nothing received) yield zero-valued metrics instead of NaN or exceptions.
"""

import typing as tp

import numpy as np

from flowbench.simulation.metrics import FlowKey, FlowMetrics, RawFlowCounters


def flow_duration(counters: RawFlowCounters) -> float:
    """Seconds between the first transmission and the last reception."""
    return counters.time_last_rx - counters.time_first_tx


def calculate_throughput_mbps(counters: RawFlowCounters) -> float:
    """
    Received throughput in Mbps.

    Returns 0 when the duration is not positive (one packet, nothing
    received, or clock skew).
    """
    duration = flow_duration(counters)
    if duration <= 0:
        return 0.0
    return counters.rx_bytes * 8.0 / duration / 1e6


def calculate_goodput_mbps(counters: RawFlowCounters) -> float:
    """
    Goodput in Mbps.

    Protocol overhead is not modelled, so goodput equals throughput.
    """
    return calculate_throughput_mbps(counters)


def calculate_average_delay(counters: RawFlowCounters) -> float:
    if counters.rx_packets > 0:
        return counters.delay_sum / counters.rx_packets
    return 0.0


def calculate_packet_loss_ratio(counters: RawFlowCounters) -> float:
    """Lost percentage of transmitted packets, clamped at 0 for duplicates."""
    if counters.tx_packets > 0:
        lost = counters.tx_packets - counters.rx_packets
        return max(0.0, lost / counters.tx_packets * 100.0)
    return 0.0


def calculate_packet_delivery_ratio(counters: RawFlowCounters) -> float:
    if counters.tx_packets > 0:
        return counters.rx_packets / counters.tx_packets * 100.0
    return 0.0


def calculate_average_jitter(counters: RawFlowCounters) -> float:
    # n received packets give n - 1 delay differences
    if counters.rx_packets > 1:
        return counters.jitter_sum / (counters.rx_packets - 1)
    return 0.0


def calculate_bandwidth_utilization(
    throughput_mbps: float,
    link_capacity_mbps: float,
) -> float:
    if link_capacity_mbps > 0:
        return throughput_mbps / link_capacity_mbps * 100.0
    return 0.0


def estimate_retransmissions(counters: RawFlowCounters) -> int:
    """
    Approximate retransmissions as packets sent but not received.

    This counts losses as well; the kernel does not expose a true
    retransmission counter.
    """
    return max(0, counters.tx_packets - counters.rx_packets)


def calculate_flow_metrics(
    flow_key: FlowKey,
    counters: RawFlowCounters,
    link_capacity_mbps: float,
) -> FlowMetrics:
    """
    Derive the full metrics record of one flow.

    Args:
        flow_key: 5-tuple of the flow
        counters: Raw counters reported by the kernel
        link_capacity_mbps: Capacity of the link relevant to this flow's path

    Returns:
        FlowMetrics record
    """
    throughput = calculate_throughput_mbps(counters)

    return FlowMetrics(
        flow_id=counters.flow_id,
        source=flow_key.source_address,
        destination=flow_key.destination_address,
        tx_packets=counters.tx_packets,
        rx_packets=counters.rx_packets,
        throughput_mbps=throughput,
        goodput_mbps=calculate_goodput_mbps(counters),
        average_delay_s=calculate_average_delay(counters),
        packet_loss_ratio=calculate_packet_loss_ratio(counters),
        packet_delivery_ratio=calculate_packet_delivery_ratio(counters),
        average_jitter_s=calculate_average_jitter(counters),
        bandwidth_utilization=calculate_bandwidth_utilization(
            throughput, link_capacity_mbps
        ),
        retransmissions=estimate_retransmissions(counters),
    )


def jain_fairness_index(throughputs: tp.Iterable[float]) -> float:
    """
    Jain's fairness index: (sum x)^2 / (n * sum x^2).

    Returns 0 for an empty set and for a set where every flow has zero
    throughput.
    """
    values = np.asarray(list(throughputs), dtype=np.float64)
    if values.size == 0:
        return 0.0

    sum_sq = float(np.sum(values * values))
    if sum_sq == 0.0:
        return 0.0

    total = float(np.sum(values))
    return (total * total) / (values.size * sum_sq)


def fairness_of(flows: tp.Sequence[FlowMetrics]) -> float:
    """Fairness index over the throughput of finalized flow records."""
    return jain_fairness_index(flow.throughput_mbps for flow in flows)
