"""
Pytest configuration and shared fixtures for flowbench tests.
"""

import typing as tp

import pytest

from flowbench.harness_config import HarnessConfig, KernelConfig, SimulationConfig
from flowbench.simulation.addressing import AddressAllocator
from flowbench.simulation.context import SimulationContext
from flowbench.simulation.kernels.offline import OfflineKernel
from flowbench.simulation.metrics import FlowKey, RawFlowCounters
from flowbench.simulation.topology import TopologyBuilder


# ============== Run Fixtures ==============

@pytest.fixture
def context(tmp_path) -> SimulationContext:
    """Context of a 100 s run writing into a temporary directory."""
    return SimulationContext(case_id=1, stop_time=100.0, output_dir=str(tmp_path))


@pytest.fixture
def kernel(context: SimulationContext) -> OfflineKernel:
    return OfflineKernel(context)


@pytest.fixture
def allocator() -> AddressAllocator:
    return AddressAllocator()


@pytest.fixture
def builder_factory(context, kernel, allocator) -> tp.Callable[[str], TopologyBuilder]:
    """Create a builder for a shape on the shared context and kernel."""

    def make(shape: str = "test") -> TopologyBuilder:
        return TopologyBuilder(context, kernel, allocator, shape)

    return make


@pytest.fixture
def harness_config(tmp_path) -> HarnessConfig:
    """Configuration running on the offline kernel."""
    return HarnessConfig(
        case=1,
        kernel=KernelConfig(
            module_name="flowbench.simulation.kernels.offline",
            class_name="OfflineKernel",
        ),
        simulation=SimulationConfig(output_dir=str(tmp_path), app_logging=False),
    )


# ============== Counter Fixtures ==============

def make_counters(flow_id: int = 1, **overrides) -> RawFlowCounters:
    """Counters of a healthy flow: 100 packets sent, 95 received over 10 s."""
    values = dict(
        flow_id=flow_id,
        tx_packets=100,
        rx_packets=95,
        tx_bytes=140_000,
        rx_bytes=1_330_000,
        time_first_tx=0.0,
        time_last_rx=10.0,
        delay_sum=0.95,
        jitter_sum=0.094,
        lost_packets=5,
    )
    values.update(overrides)
    return RawFlowCounters(**values)


@pytest.fixture
def counters() -> RawFlowCounters:
    return make_counters()


@pytest.fixture
def flow_stats() -> tp.Dict[FlowKey, RawFlowCounters]:
    """Two forward flows from the server and one reverse flow."""
    return {
        FlowKey("10.1.1.1", "10.1.1.2", 6969, 49153): make_counters(2),
        FlowKey("10.1.1.2", "10.1.1.1", 49153, 6969): make_counters(
            1, tx_packets=10, rx_packets=10, rx_bytes=400, time_last_rx=1.0
        ),
        FlowKey("10.1.2.1", "10.1.2.2", 6969, 49153): make_counters(3, rx_bytes=665_000),
    }


@pytest.fixture
def counters_factory() -> tp.Callable[..., RawFlowCounters]:
    return make_counters
