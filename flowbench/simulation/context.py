"""
Run-scoped simulation context.

Every component that schedules or reads simulated time receives the same
SimulationContext instead of consulting a process-wide clock, so several
scenario runs can execute one after another in a single process.
"""

import os
import typing as tp
from dataclasses import dataclass, field


@dataclass
class SimulationContext:
    """State owned by exactly one scenario run."""

    case_id: int
    """Identifier of the scenario being run."""

    stop_time: float
    """Simulated time (seconds) at which the kernel is stopped."""

    output_dir: str = "dumps"
    """Directory receiving exported metrics and trace sinks."""

    seed: tp.Optional[int] = None
    """Kernel RNG seed (None keeps the kernel default)."""

    now: float = field(default=0.0, init=False)
    """Current simulated time, advanced only by the kernel."""

    finished: bool = field(default=False, init=False)

    def advance_to(self, time_s: float) -> None:
        if time_s < self.now:
            raise ValueError(
                f"Simulated time cannot go backwards ({self.now}s -> {time_s}s)"
            )
        self.now = time_s

    def output_path(self, file_name: str) -> str:
        return os.path.join(self.output_dir, file_name)

    @property
    def metrics_file(self) -> str:
        return self.output_path(f"flowmon_metrics_case_{self.case_id}.csv")
