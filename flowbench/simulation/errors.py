"""
Exception hierarchy for the experiment harness.

Configuration errors are raised while a scenario is being assembled, before
the simulation kernel runs. Export errors are raised after the run, once the
statistics have already been computed.
"""

import typing as tp


class HarnessError(Exception):
    """Base class for all harness errors."""


class ConfigurationError(HarnessError):
    """A scenario cannot be built as configured."""


class AddressSpaceExhaustedError(ConfigurationError):
    """The address pool has no subnet (or host address) left for a link."""

    def __init__(self, link_index: int, pool: str, detail: str = ""):
        self.link_index = link_index
        self.pool = pool
        message = f"Address space {pool} exhausted at link index {link_index}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DuplicatePortBindingError(ConfigurationError):
    """Two applications on the same node bind the same (role, port) pair."""

    def __init__(self, node_name: str, role: str, port: int):
        self.node_name = node_name
        self.role = role
        self.port = port
        super().__init__(
            f"Node '{node_name}' already has a {role} application bound to port {port}"
        )


class InvalidShapeParametersError(ConfigurationError):
    """Shape-specific topology parameters are out of range."""

    def __init__(self, shape: str, parameter: str, reason: str):
        self.shape = shape
        self.parameter = parameter
        super().__init__(f"Invalid {shape} parameter '{parameter}': {reason}")


class InvalidScheduleError(ConfigurationError):
    """An application's start/stop window is inconsistent."""


class UnknownScenarioError(ConfigurationError):
    """No scenario is registered under the requested case id."""

    def __init__(self, case_id: int, known: tp.Iterable[int]):
        self.case_id = case_id
        self.known = sorted(known)
        super().__init__(f"Unknown scenario case {case_id} (known cases: {self.known})")


class ExportError(HarnessError):
    """The metrics sink could not be written."""

    def __init__(self, path: str, cause: Exception, report: tp.Any = None):
        self.path = path
        self.report = report
        super().__init__(f"Could not write metrics to {path}: {cause}")
