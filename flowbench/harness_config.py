"""
Dataclass configuration for the experiment harness.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class KernelConfig:
    """Simulation kernel adapter to load."""

    # Dotted module path of the adapter
    module_name: str = "flowbench.simulation.kernels.ns3_kernel"
    # Class name to import from the module
    class_name: str = "Ns3Kernel"


@dataclass
class AddressingConfig:
    """Address pool carved into one subnet per link."""

    pool: str = "10.1.0.0/16"
    prefix_length: int = 24
    # Skip 10.1.0.0/24 so the first link gets 10.1.1.0/24
    first_subnet: int = 1


@dataclass
class TrafficConfig:
    """Attributes of the video stream applications."""

    max_packet_size: int = 1400
    # Frame size list replayed by the stream server
    frame_file: str = "./scratch/videoStreamer/frameList.txt"
    # Shorter frame list used by the multi-path and wireless cases
    small_frame_file: str = "./scratch/videoStreamer/small.txt"
    # Port offset of the reverse stream in bidirectional pairs
    reverse_port_offset: int = 10


@dataclass
class SimulationConfig:
    """Run-level settings."""

    # Output directory for metrics and traces
    output_dir: str = "dumps"
    # Kernel RNG seed (None keeps the kernel default)
    seed: Optional[int] = None
    # Enable the stream applications' own INFO logging
    app_logging: bool = True


@dataclass
class TraceConfig:
    """Side-effect sinks; they never feed back into the statistics."""

    animation: bool = False
    pcap: bool = False


@dataclass
class HarnessConfig:
    """Root configuration for one scenario run."""

    # Scenario case to run
    case: int = 1
    # When non-empty, run these cases in sequence instead of `case`
    cases: List[int] = field(default_factory=list)
    kernel: KernelConfig = field(default_factory=KernelConfig)
    addressing: AddressingConfig = field(default_factory=AddressingConfig)
    traffic: TrafficConfig = field(default_factory=TrafficConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    trace: TraceConfig = field(default_factory=TraceConfig)
