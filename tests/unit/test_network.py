"""
Unit tests for the topology data model, the run context and the kernel loader.
"""

import networkx as nx
import pytest

from flowbench.simulation.context import SimulationContext
from flowbench.simulation.kernels.base import SimulationKernel
from flowbench.simulation.kernels.offline import OfflineKernel
from flowbench.simulation.network import NodeRole, load_kernel_class
from flowbench.simulation.topology import LinearParams, LinkTier, build_linear


class TestTopology:
    def test_graph_connects_shared_segment_members(self, builder_factory):
        topology = build_linear(
            builder_factory("linear"), LinearParams(3, LinkTier(5e6, 0.002))
        )
        graph = topology.graph()

        assert isinstance(graph, nx.Graph)
        assert graph.number_of_nodes() == 4
        # every pair on the bus is adjacent
        assert graph.number_of_edges() == 6
        assert graph.nodes[0]["role"] == NodeRole.SERVER.value

    def test_address_of_unknown_link(self, builder_factory):
        builder = builder_factory()
        a = builder.add_node("A", NodeRole.SERVER)
        with pytest.raises(KeyError):
            builder.topology.address_of(a)

    def test_summary(self, builder_factory):
        topology = build_linear(builder_factory("linear"), LinearParams(1))
        assert topology.summary() == "linear: 2 nodes, 1 links, 2 interfaces"


class TestSimulationContext:
    def test_clock_moves_forward_only(self):
        context = SimulationContext(case_id=1, stop_time=10.0)
        context.advance_to(5.0)
        with pytest.raises(ValueError):
            context.advance_to(4.0)

    def test_metrics_file_name(self, tmp_path):
        context = SimulationContext(case_id=7, stop_time=10.0, output_dir=str(tmp_path))
        assert context.metrics_file == str(tmp_path / "flowmon_metrics_case_7.csv")


class TestLoadKernelClass:
    def test_loads_offline_kernel(self):
        kernel_class = load_kernel_class("flowbench.simulation.kernels.offline", "OfflineKernel")
        assert kernel_class is OfflineKernel
        assert issubclass(kernel_class, SimulationKernel)

    def test_missing_class(self):
        with pytest.raises(ImportError, match="Could not find class"):
            load_kernel_class("flowbench.simulation.kernels.offline", "NoSuchKernel")


class TestOfflineKernel:
    def test_destroy_clears_state(self, context, builder_factory, kernel):
        build_linear(builder_factory("linear"), LinearParams(1))
        kernel.destroy()
        assert kernel.nodes == {}
        assert not kernel.routes_populated

    def test_context_manager_destroys(self, context):
        with OfflineKernel(context) as kernel:
            kernel.graph.add_node(0)
        assert kernel.graph.number_of_nodes() == 0
