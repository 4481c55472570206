"""
In-process kernel that builds the network graph without simulating packets.

Routes are computed with networkx over the constructed links. No traffic is
generated: collect_flow_stats() returns whatever counters the kernel was
given, which makes the kernel suitable for dry runs, schedule validation and
replaying counters recorded elsewhere.
"""

import ipaddress
import typing as tp

import networkx as nx
from loguru import logger

from flowbench.simulation.applications import ScheduledApplication
from flowbench.simulation.context import SimulationContext
from flowbench.simulation.kernels.base import SimulationKernel
from flowbench.simulation.metrics import FlowKey, RawFlowCounters
from flowbench.simulation.network import Link, Node


class OfflineKernel(SimulationKernel):
    def __init__(
        self,
        context: SimulationContext,
        app_logging: bool = False,
        flow_stats: tp.Optional[tp.Dict[FlowKey, RawFlowCounters]] = None,
    ):
        super().__init__(context, app_logging)
        self.flow_stats = dict(flow_stats or {})
        self.graph = nx.Graph()
        self.nodes: tp.Dict[int, Node] = {}
        self.links: tp.List[Link] = []
        self.addresses: tp.Dict[str, int] = {}
        self.applications: tp.List[ScheduledApplication] = []
        # node id -> destination address -> next hop node id
        self.routing_tables: tp.Dict[int, tp.Dict[str, int]] = {}
        self.routes_populated = False

    def create_node(self, node: Node) -> int:
        self.nodes[node.node_id] = node
        self.graph.add_node(node.node_id, name=node.name)
        return node.node_id

    def create_link(self, link: Link) -> tp.Tuple[int, ...]:
        for endpoint in link.endpoints:
            if endpoint.node_id not in self.nodes:
                raise KeyError(f"Node '{endpoint.name}' was not created in this kernel")

        members = link.endpoints
        for i, a in enumerate(members):
            for b in members[i + 1 :]:
                self.graph.add_edge(
                    a.node_id,
                    b.node_id,
                    link_id=link.link_id,
                    delay_s=link.delay_s,
                    bandwidth_bps=link.bandwidth_bps,
                )
        self.links.append(link)
        return tuple(n.node_id for n in members)

    def assign_addresses(
        self,
        link: Link,
        subnet: ipaddress.IPv4Network,
        addresses: tp.Sequence[ipaddress.IPv4Address],
    ) -> tp.List[str]:
        assigned = []
        for node, address in zip(link.endpoints, addresses):
            if address not in subnet:
                raise ValueError(f"{address} is outside {subnet}")
            self.addresses[str(address)] = node.node_id
            assigned.append(str(address))
        return assigned

    def set_position(self, node: Node) -> None:
        self.graph.nodes[node.node_id]["position"] = node.position

    def install_application(self, app: ScheduledApplication) -> int:
        self.applications.append(app)
        return len(self.applications) - 1

    def populate_routes(self) -> None:
        """Fill per-node routing tables with delay-weighted shortest paths."""
        self.routing_tables = {node_id: {} for node_id in self.graph.nodes}
        paths = dict(nx.all_pairs_dijkstra_path(self.graph, weight="delay_s"))

        for address, owner in self.addresses.items():
            for node_id, table in self.routing_tables.items():
                path = paths.get(node_id, {}).get(owner)
                if path is None:
                    continue
                table[address] = path[1] if len(path) > 1 else node_id

        self.routes_populated = True
        logger.info(
            f"Populated routes for {len(self.routing_tables)} nodes "
            f"over {self.graph.number_of_edges()} edges"
        )

    def route(self, source: Node, destination_address: str) -> tp.List[int]:
        """
        Follow routing tables from `source` to the owner of an address.

        Raises:
            KeyError: If some hop has no route to the destination
        """
        path = [source.node_id]
        current = source.node_id
        owner = self.addresses[destination_address]
        while current != owner:
            next_hop = self.routing_tables.get(current, {}).get(destination_address)
            if next_hop is None or next_hop in path:
                raise KeyError(
                    f"No route from node {current} to {destination_address}"
                )
            path.append(next_hop)
            current = next_hop
        return path

    def run_until(self, stop_time: float) -> None:
        if not self.routes_populated:
            logger.warning("Running without populated routes")
        self.context.advance_to(stop_time)
        self.context.finished = True
        logger.info(f"Offline run advanced clock to {stop_time}s")

    def collect_flow_stats(self) -> tp.Dict[FlowKey, RawFlowCounters]:
        return dict(self.flow_stats)

    def destroy(self) -> None:
        self.graph.clear()
        self.nodes.clear()
        self.links.clear()
        self.addresses.clear()
        self.applications.clear()
        self.routing_tables.clear()
        self.routes_populated = False
