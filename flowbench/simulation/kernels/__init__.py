"""
Simulation kernel adapters.

The ns-3 adapter is not imported here: it needs the ns-3 Python bindings
and is loaded on demand through load_kernel_class().
"""

from flowbench.simulation.kernels.base import SimulationKernel
from flowbench.simulation.kernels.offline import OfflineKernel

__all__ = ["OfflineKernel", "SimulationKernel"]
