"""
Data classes for per-flow simulation statistics.

This module contains the raw counter snapshot the simulation kernel reports
for each flow, the flow identification key, and the derived metrics record
computed from them. Each class is documented at field level.
"""

from dataclasses import dataclass, field
from typing import List

PROTOCOL_NAMES = {6: "TCP", 17: "UDP", 1: "ICMP"}


@dataclass(frozen=True)
class FlowKey:
    """
    5-tuple identifying a unidirectional flow.

    Flows are created implicitly by the kernel when it observes the first
    packet of a new 5-tuple.
    """

    source_address: str
    """Source IPv4 address."""

    destination_address: str
    """Destination IPv4 address."""

    source_port: int = 0
    """Source transport port (0 when not applicable)."""

    destination_port: int = 0
    """Destination transport port (0 when not applicable)."""

    protocol: int = 17
    """IP protocol number (17 = UDP, 6 = TCP)."""

    @property
    def protocol_name(self) -> str:
        return PROTOCOL_NAMES.get(self.protocol, str(self.protocol))

    def __str__(self) -> str:
        return (
            f"{self.protocol_name} {self.source_address}:{self.source_port} -> "
            f"{self.destination_address}:{self.destination_port}"
        )


@dataclass(frozen=True)
class RawFlowCounters:
    """
    Counter snapshot for one flow, taken once after the run.

    Timestamps and sums are in seconds of simulated time.
    """

    flow_id: int
    """Kernel-assigned flow identifier."""

    tx_packets: int = 0
    """Packets transmitted by the source."""

    rx_packets: int = 0
    """Packets received at the destination."""

    tx_bytes: int = 0
    """Bytes transmitted by the source."""

    rx_bytes: int = 0
    """Bytes received at the destination."""

    time_first_tx: float = 0.0
    """Time the first packet was transmitted."""

    time_last_rx: float = 0.0
    """Time the last packet was received."""

    delay_sum: float = 0.0
    """Sum of one-way delays over all received packets."""

    jitter_sum: float = 0.0
    """Sum of delay differences between consecutive received packets."""

    lost_packets: int = 0
    """Packets the kernel declared lost."""


@dataclass(frozen=True)
class FlowMetrics:
    """
    Derived metrics for one reported flow.

    Computed once from RawFlowCounters and never mutated afterwards.
    """

    flow_id: int
    """Kernel-assigned flow identifier."""

    source: str
    """Source IPv4 address."""

    destination: str
    """Destination IPv4 address."""

    tx_packets: int
    """Packets transmitted by the source."""

    rx_packets: int
    """Packets received at the destination."""

    throughput_mbps: float
    """Received bits per second of flow duration, in Mbps."""

    goodput_mbps: float
    """Application-level throughput; equal to throughput (zero-overhead approximation)."""

    average_delay_s: float
    """Mean one-way delay of received packets."""

    packet_loss_ratio: float
    """Percentage of transmitted packets not received (never negative)."""

    packet_delivery_ratio: float
    """Percentage of transmitted packets received."""

    average_jitter_s: float
    """Mean delay variation between consecutive received packets."""

    bandwidth_utilization: float
    """Throughput as a percentage of the declared link capacity."""

    retransmissions: int
    """max(0, tx - rx): conflates loss and retransmission."""


@dataclass
class FlowReport:
    """Finalized metrics of one scenario run."""

    case_id: int
    """Scenario that produced the report."""

    link_capacity_mbps: float
    """Capacity used to normalize bandwidth utilization."""

    flows: List[FlowMetrics] = field(default_factory=list)
    """One record per selected flow, ordered by flow id."""

    fairness_index: float = 0.0
    """Jain's fairness index over the selected flows' throughput."""

    total_flows_observed: int = 0
    """Flows reported by the kernel before selection."""
