"""Simulation kernel interface consumed by the harness."""

import ipaddress
import typing as tp
from abc import ABC, abstractmethod

from flowbench.simulation.applications import ScheduledApplication
from flowbench.simulation.context import SimulationContext
from flowbench.simulation.metrics import FlowKey, RawFlowCounters
from flowbench.simulation.network import Link, Node


class SimulationKernel(ABC):
    """Abstract base class for discrete-event simulation kernels."""

    def __init__(self, context: SimulationContext, app_logging: bool = False):
        """Initialize the kernel for one scenario run.

        Args:
            context: Context of the run this kernel instance belongs to
            app_logging: Enable the stream applications' own logging
        """
        self.context = context
        self.app_logging = app_logging

    @abstractmethod
    def create_node(self, node: Node) -> tp.Any:
        """Create a kernel node.

        Args:
            node: Harness-side node description

        Returns:
            Opaque kernel handle for the node
        """
        pass

    @abstractmethod
    def create_link(self, link: Link) -> tp.Any:
        """Install devices for a link between already created nodes.

        Args:
            link: Link description; endpoints carry their kernel handles

        Returns:
            Opaque device container, ordered like the link's endpoints
        """
        pass

    @abstractmethod
    def assign_addresses(
        self,
        link: Link,
        subnet: ipaddress.IPv4Network,
        addresses: tp.Sequence[ipaddress.IPv4Address],
    ) -> tp.Any:
        """Assign the subnet's host addresses to the link's devices.

        Args:
            link: Link whose devices are addressed
            subnet: Subnet allocated to the link
            addresses: Addresses in endpoint order, starting at the first host

        Returns:
            Opaque interface container
        """
        pass

    @abstractmethod
    def set_position(self, node: Node) -> None:
        """Apply a node's position and mobility model."""
        pass

    @abstractmethod
    def install_application(self, app: ScheduledApplication) -> tp.Any:
        """Install a stream server or client with its start/stop window."""
        pass

    @abstractmethod
    def populate_routes(self) -> None:
        """Compute shortest-path routes over the constructed network."""
        pass

    @abstractmethod
    def run_until(self, stop_time: float) -> None:
        """Run the simulation clock until stop_time (blocking)."""
        pass

    @abstractmethod
    def collect_flow_stats(self) -> tp.Dict[FlowKey, RawFlowCounters]:
        """Snapshot per-flow counters after the run."""
        pass

    @abstractmethod
    def destroy(self) -> None:
        """Release every kernel object created for this run."""
        pass

    def enable_animation(self, path: str, nodes: tp.Sequence[Node]) -> None:
        """Write an animation trace (no-op unless the kernel supports it)."""
        pass

    def enable_pcap(self, prefix: str) -> None:
        """Capture packets on every device (no-op unless supported)."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.destroy()
