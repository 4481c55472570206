"""
Scenario run pipeline.

Scenario -> topology -> applications -> kernel run -> counters -> flow
report -> CSV and console sinks. Each run owns its context, kernel, topology
and scheduler; nothing is shared between consecutive runs.
"""

import typing as tp

from loguru import logger
from tqdm import tqdm

from flowbench.harness_config import HarnessConfig
from flowbench.simulation.context import SimulationContext
from flowbench.simulation.errors import ExportError
from flowbench.simulation.kernels.base import SimulationKernel
from flowbench.simulation.metrics import FlowReport
from flowbench.simulation.network import ensure_dir, load_kernel_class
from flowbench.simulation.processor import build_flow_report, export_to_csv, log_flow_report
from flowbench.simulation.scenarios import build_scenario, get_scenario


def create_context(cfg: HarnessConfig, case_id: tp.Optional[int] = None) -> SimulationContext:
    case_id = cfg.case if case_id is None else case_id
    spec = get_scenario(case_id)
    return SimulationContext(
        case_id=case_id,
        stop_time=spec.stop_time,
        output_dir=cfg.simulation.output_dir,
        seed=cfg.simulation.seed,
    )


def create_kernel(cfg: HarnessConfig, context: SimulationContext) -> SimulationKernel:
    kernel_class = load_kernel_class(cfg.kernel.module_name, cfg.kernel.class_name)
    return kernel_class(context, app_logging=cfg.simulation.app_logging)


def run_scenario(
    cfg: HarnessConfig,
    case_id: tp.Optional[int] = None,
    kernel: tp.Optional[SimulationKernel] = None,
) -> FlowReport:
    """
    Build, run and report one scenario.

    Args:
        cfg: Harness configuration
        case_id: Scenario to run (defaults to cfg.case)
        kernel: Kernel to run on; created from cfg.kernel when omitted

    Returns:
        The scenario's FlowReport

    Raises:
        ConfigurationError: If the scenario cannot be built
        ExportError: If the CSV sink cannot be written (the report is
            attached to the exception)
    """
    spec = get_scenario(cfg.case if case_id is None else case_id)
    context = kernel.context if kernel is not None else create_context(cfg, spec.case_id)
    if kernel is None:
        kernel = create_kernel(cfg, context)

    logger.info(f"Running case {spec.case_id}: {spec.name} (stop at {spec.stop_time}s)")
    try:
        ensure_dir(context.output_dir)
    except OSError as e:
        # export reports the failure once the statistics exist
        logger.error(f"Could not create output directory {context.output_dir}: {e}")

    with kernel:
        bundle = build_scenario(spec.case_id, context, kernel, cfg)

        if cfg.trace.animation and spec.animation_file:
            kernel.enable_animation(
                context.output_path(spec.animation_file), bundle.topology.nodes
            )
        if cfg.trace.pcap:
            kernel.enable_pcap(context.output_path(spec.pcap_prefix))

        bundle.scheduler.install(kernel)
        kernel.run_until(context.stop_time)
        flow_stats = kernel.collect_flow_stats()

    report = build_flow_report(
        flow_stats,
        bundle.flow_selector,
        bundle.link_capacity_mbps,
        spec.case_id,
    )
    log_flow_report(report)

    try:
        export_to_csv(report, context.metrics_file)
    except ExportError as e:
        e.report = report
        raise
    return report


def run_cases(cfg: HarnessConfig, case_ids: tp.Sequence[int]) -> tp.Dict[int, FlowReport]:
    """Run several scenarios one after another, each on a fresh kernel."""
    reports: tp.Dict[int, FlowReport] = {}
    for case_id in tqdm(case_ids, desc="Scenarios", unit="case"):
        reports[case_id] = run_scenario(cfg, case_id)
    return reports
