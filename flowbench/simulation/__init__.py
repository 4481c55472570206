"""
Network experiment modules for topology assembly and flow statistics.

This package provides components for:
- Per-link subnet allocation
- Parameterized topology shapes (linear, star, bottleneck, hierarchical, wireless)
- Video stream application scheduling
- Per-flow metrics, fairness and CSV export
- A registry of experiment scenarios and the run pipeline
"""

from flowbench.simulation.addressing import AddressAllocator
from flowbench.simulation.applications import (
    AppAttributes,
    ApplicationScheduler,
    AppRole,
    ScheduledApplication,
)
from flowbench.simulation.calculations import (
    calculate_flow_metrics,
    fairness_of,
    jain_fairness_index,
)
from flowbench.simulation.context import SimulationContext
from flowbench.simulation.errors import (
    AddressSpaceExhaustedError,
    ConfigurationError,
    DuplicatePortBindingError,
    ExportError,
    HarnessError,
    InvalidScheduleError,
    InvalidShapeParametersError,
    UnknownScenarioError,
)
from flowbench.simulation.metrics import FlowKey, FlowMetrics, FlowReport, RawFlowCounters
from flowbench.simulation.network import (
    Link,
    LinkKind,
    MobilityModel,
    Node,
    NodeRole,
    Topology,
    ensure_dir,
    load_kernel_class,
)
from flowbench.simulation.processor import (
    build_flow_report,
    export_to_csv,
    read_metrics_csv,
)
from flowbench.simulation.runner import run_cases, run_scenario
from flowbench.simulation.scenarios import (
    SCENARIOS,
    ScenarioBundle,
    get_scenario,
    register_scenario,
)
from flowbench.simulation.selectors import any_of, match_flow, match_pairs, select_all
from flowbench.simulation.topology import TopologyBuilder

__all__ = [
    "AddressAllocator",
    "AddressSpaceExhaustedError",
    "AppAttributes",
    "AppRole",
    "ApplicationScheduler",
    "ConfigurationError",
    "DuplicatePortBindingError",
    "ExportError",
    "FlowKey",
    "FlowMetrics",
    "FlowReport",
    "HarnessError",
    "InvalidScheduleError",
    "InvalidShapeParametersError",
    "Link",
    "LinkKind",
    "MobilityModel",
    "Node",
    "NodeRole",
    "RawFlowCounters",
    "SCENARIOS",
    "ScenarioBundle",
    "ScheduledApplication",
    "SimulationContext",
    "Topology",
    "TopologyBuilder",
    "UnknownScenarioError",
    "any_of",
    "build_flow_report",
    "calculate_flow_metrics",
    "ensure_dir",
    "export_to_csv",
    "fairness_of",
    "get_scenario",
    "jain_fairness_index",
    "load_kernel_class",
    "match_flow",
    "match_pairs",
    "read_metrics_csv",
    "register_scenario",
    "run_cases",
    "run_scenario",
    "select_all",
]
