"""
Video streaming experiment runner.

Builds the selected scenario, runs it on the configured simulation kernel and
exports per-flow metrics to `<output_dir>/flowmon_metrics_case_<id>.csv`.

Usage:
    python scripts/run_case.py case=6
    python scripts/run_case.py --multirun case=1,2,6
    python scripts/run_case.py cases=[8,9] trace.animation=true
"""

import sys

import hydra
from hydra.core.config_store import ConfigStore
from loguru import logger
from omegaconf import DictConfig, OmegaConf

from flowbench.harness_config import HarnessConfig
from flowbench.simulation.errors import ConfigurationError, ExportError
from flowbench.simulation.runner import run_cases, run_scenario
from flowbench.simulation.scenarios import list_scenarios

EXIT_EXPORT_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2

cs = ConfigStore.instance()
cs.store(name="harness_schema", node=HarnessConfig)


@hydra.main(
    version_base="1.2",
    config_path="../config",
    config_name="harness",
)
def main(cfg: DictConfig) -> None:
    """Main entry point with Hydra configuration."""
    schema = OmegaConf.structured(HarnessConfig)
    cfg = OmegaConf.merge(schema, cfg)

    logger.info("Configuration:")
    logger.info(OmegaConf.to_yaml(cfg))

    config: HarnessConfig = OmegaConf.to_object(cfg)
    logger.info(
        "Available scenarios: "
        + ", ".join(f"{s.case_id}={s.name}" for s in list_scenarios())
    )

    try:
        if config.cases:
            run_cases(config, config.cases)
        else:
            run_scenario(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(EXIT_CONFIGURATION_ERROR)
    except ExportError as e:
        logger.error(f"Export failed: {e}")
        if e.report is not None:
            logger.error(
                f"Computed {len(e.report.flows)} flow records before the failure "
                f"(fairness index {e.report.fairness_index:.6f})"
            )
        sys.exit(EXIT_EXPORT_ERROR)


if __name__ == "__main__":
    main()
