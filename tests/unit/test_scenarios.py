"""
Unit tests for the scenario registry.

Every registered case is built on the offline kernel; the checks cover
addressing, the application schedule and the flows each case reports.
"""

import pytest

from flowbench.simulation.applications import AppRole
from flowbench.simulation.context import SimulationContext
from flowbench.simulation.errors import UnknownScenarioError
from flowbench.simulation.kernels.offline import OfflineKernel
from flowbench.simulation.metrics import FlowKey
from flowbench.simulation.network import LinkKind, NodeRole
from flowbench.simulation.scenarios import (
    SCENARIOS,
    build_scenario,
    get_scenario,
    list_scenarios,
    register_scenario,
)


@pytest.fixture
def build_case(harness_config, tmp_path):
    def build(case_id):
        spec = get_scenario(case_id)
        context = SimulationContext(case_id, spec.stop_time, str(tmp_path))
        kernel = OfflineKernel(context)
        return build_scenario(case_id, context, kernel, harness_config), kernel

    return build


class TestRegistry:
    def test_all_cases_registered(self):
        assert sorted(SCENARIOS) == list(range(1, 11))

    def test_unknown_case(self):
        with pytest.raises(UnknownScenarioError) as exc_info:
            get_scenario(42)
        assert exc_info.value.case_id == 42
        assert exc_info.value.known == list(range(1, 11))

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ValueError):
            register_scenario(1, "again", stop_time=1.0)(lambda c, k, cfg: None)

    def test_descriptions_come_from_docstrings(self):
        assert get_scenario(8).description.startswith("Two clients behind")

    def test_list_is_ordered_by_case(self):
        assert [s.case_id for s in list_scenarios()] == list(range(1, 11))

    def test_build_unknown_case(self, context, kernel, harness_config):
        with pytest.raises(UnknownScenarioError):
            build_scenario(42, context, kernel, harness_config)
        assert kernel.nodes == {}


@pytest.mark.parametrize("case_id", sorted(SCENARIOS))
class TestEveryCase:
    def test_subnets_are_disjoint(self, build_case, case_id):
        bundle, _ = build_case(case_id)
        subnets = [link.subnet for link in bundle.topology.links]
        for i, a in enumerate(subnets):
            for b in subnets[i + 1 :]:
                assert not a.overlaps(b)

    def test_schedule_installs(self, build_case, case_id):
        bundle, kernel = build_case(case_id)
        bundle.scheduler.install(kernel)
        assert len(kernel.applications) == len(bundle.scheduler.applications) > 0

    def test_every_client_has_a_server(self, build_case, case_id):
        bundle, _ = build_case(case_id)
        for client in bundle.scheduler.clients():
            assert bundle.scheduler._find_server(client) is not None

    def test_clients_reach_their_server(self, build_case, case_id):
        bundle, kernel = build_case(case_id)
        for client in bundle.scheduler.clients():
            path = kernel.route(client.node, client.peer_address)
            assert path[-1] == client.peer_node.node_id

    def test_capacity_positive(self, build_case, case_id):
        bundle, _ = build_case(case_id)
        assert bundle.link_capacity_mbps > 0


class TestCaseDetails:
    def test_case_1_reports_every_flow(self, build_case):
        bundle, _ = build_case(1)
        assert bundle.flow_selector(FlowKey("10.9.9.9", "10.8.8.8"))
        assert get_scenario(1).stop_time == 101.0
        assert all(app.stop == 100.0 for app in bundle.scheduler.applications)

    def test_case_2_one_link_per_client(self, build_case):
        bundle, _ = build_case(2)
        topology = bundle.topology
        server = topology.node("Server")

        assert len(topology.links) == 2
        assert all(link.bandwidth_mbps == 20.0 for link in topology.links)
        starts = {app.node.name: app.start for app in bundle.scheduler.clients()}
        assert starts == {"Client1": 1.0, "Client2": 0.5}

        link2 = topology.link_between(server, topology.node("Client2"))
        assert bundle.flow_selector(
            FlowKey(topology.address_of(server, link2), "10.1.2.2", 6969, 49153)
        )
        assert not bundle.flow_selector(FlowKey("10.1.2.2", "10.1.2.1", 49153, 6969))

    def test_case_4_station_k_streams_from_ap_k(self, build_case):
        bundle, _ = build_case(4)
        for client in bundle.scheduler.clients():
            assert client.node.name.replace("STA", "AP") == client.peer_node.name
        assert bundle.topology.links[0].options["mode"] == "infrastructure"

    def test_case_5_shared_segment(self, build_case):
        bundle, _ = build_case(5)
        assert [link.kind for link in bundle.topology.links] == [LinkKind.SHARED]
        assert bundle.link_capacity_mbps == 5.0
        assert all(app.port == 5000 for app in bundle.scheduler.servers())
        assert all(app.peer_port == 5000 for app in bundle.scheduler.clients())

    def test_case_6_reverse_stream_on_next_port(self, build_case):
        bundle, _ = build_case(6)
        topology = bundle.topology
        server = topology.address_of(topology.node("Server"))
        client = topology.address_of(topology.node("Client1"))

        ports = sorted(app.port for app in bundle.scheduler.servers())
        assert ports == [6969, 6970]
        assert bundle.flow_selector(FlowKey(server, client, 6969, 49153))
        assert bundle.flow_selector(FlowKey(client, server, 6970, 49153))
        assert not bundle.flow_selector(FlowKey(client, server, 49153, 6969))

    def test_case_7_all_paths(self, build_case):
        bundle, _ = build_case(7)
        topology = bundle.topology
        server = topology.address_of(topology.node("Server"))
        client1 = topology.address_of(topology.node("Client1"))
        client2 = topology.address_of(topology.node("Client2"))

        assert len(bundle.scheduler.applications) == 12
        servers = {(app.node.name, app.port) for app in bundle.scheduler.servers()}
        assert servers == {
            ("Server", 7000),
            ("Server", 7001),
            ("Client1", 7010),
            ("Client2", 7011),
            ("Client1", 7002),
            ("Client2", 7012),
        }

        selected = [
            FlowKey(server, client1, 7000, 49153),
            FlowKey(client1, server, 7010, 49153),
            FlowKey(server, client2, 7001, 49153),
            FlowKey(client2, server, 7011, 49153),
            FlowKey(client1, client2, 7002, 49153),
            FlowKey(client2, client1, 7012, 49153),
        ]
        assert all(bundle.flow_selector(key) for key in selected)
        assert not bundle.flow_selector(FlowKey(client1, server, 49153, 7000))

    def test_case_7_peer_to_peer_starts_later(self, build_case):
        bundle, _ = build_case(7)
        starts = {
            (app.role, app.node.name, app.port or app.peer_port): app.start
            for app in bundle.scheduler.applications
        }
        assert starts[(AppRole.SERVER, "Client1", 7002)] == 2.0
        assert starts[(AppRole.CLIENT, "Client2", 7002)] == 2.5
        assert starts[(AppRole.SERVER, "Client2", 7012)] == 3.0
        assert starts[(AppRole.CLIENT, "Client1", 7012)] == 3.5

    def test_case_8_capacity_is_bottleneck(self, build_case):
        bundle, _ = build_case(8)
        assert bundle.link_capacity_mbps == 5.0
        assert len(bundle.topology.nodes_with_role(NodeRole.BOTTLENECK)) == 1

    def test_case_9_one_stream_per_edge_client(self, build_case):
        bundle, _ = build_case(9)
        assert len(bundle.scheduler.clients()) == 4
        assert bundle.link_capacity_mbps == 10.0

    def test_case_10_staggered_clients(self, build_case):
        bundle, _ = build_case(10)
        assert [app.start for app in bundle.scheduler.clients()] == [1.0, 2.0, 3.0]
        assert bundle.topology.links[0].options["data_mode"] == "HtMcs7"
        assert bundle.topology.node("AP1").position.x == 0.0
