"""
Network data model and helpers for experiment topologies.

This module holds the node/link/interface bookkeeping shared by the
topology builders, plus small helpers for loading kernel adapters and
preparing output directories.
"""

import importlib
import ipaddress
import os
import typing as tp
from dataclasses import dataclass, field
from enum import Enum

import networkx as nx
from loguru import logger


class NodeRole(Enum):
    SERVER = "server"
    ROUTER = "router"
    CLIENT = "client"
    BOTTLENECK = "bottleneck"
    ACCESS_POINT = "access_point"
    STATION = "station"


class LinkKind(Enum):
    POINT_TO_POINT = "point_to_point"
    SHARED = "shared"
    WIRELESS = "wireless"


class MobilityModel(Enum):
    CONSTANT = "constant"
    RANDOM_WALK = "random_walk"


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Bounds:
    """Rectangle (x_min, x_max, y_min, y_max) confining random-walk mobility."""

    x_min: float = -50.0
    x_max: float = 50.0
    y_min: float = -50.0
    y_max: float = 50.0


@dataclass
class Node:
    """A simulated node. Positions and colors only matter for visualization."""

    node_id: int
    name: str
    role: NodeRole
    position: tp.Optional[Position] = None
    mobility: MobilityModel = MobilityModel.CONSTANT
    bounds: tp.Optional[Bounds] = None
    # RGB triple used by the animation sink
    color: tp.Optional[tp.Tuple[int, int, int]] = None
    handle: tp.Any = field(default=None, repr=False, compare=False)

    def __hash__(self) -> int:
        return hash(self.node_id)


@dataclass
class Link:
    """
    A link between two nodes, or a shared medium between several.

    Endpoints are ordered: the first endpoint gets the first host address
    of the link's subnet.
    """

    link_id: int
    endpoints: tp.Tuple[Node, ...]
    kind: LinkKind
    bandwidth_bps: float
    delay_s: float
    subnet: tp.Optional[ipaddress.IPv4Network] = None
    # Kernel-specific settings (wifi mode, station manager, ...)
    options: tp.Dict[str, tp.Any] = field(default_factory=dict)
    devices: tp.Any = field(default=None, repr=False, compare=False)

    @property
    def bandwidth_mbps(self) -> float:
        return self.bandwidth_bps / 1e6

    def has_node(self, node: Node) -> bool:
        return any(n.node_id == node.node_id for n in self.endpoints)


@dataclass(frozen=True)
class Interface:
    """One node-link incidence resolved to an address."""

    node: Node
    link: Link
    address: ipaddress.IPv4Address

    @property
    def subnet(self) -> ipaddress.IPv4Network:
        return self.link.subnet


class Topology:
    """
    Nodes, links and interfaces of one scenario run.

    Built incrementally by TopologyBuilder and frozen once routes have
    been populated.
    """

    def __init__(self, shape: str):
        self.shape = shape
        self.nodes: tp.List[Node] = []
        self.links: tp.List[Link] = []
        self.interfaces: tp.List[Interface] = []
        self.frozen = False

    def node(self, name: str) -> Node:
        for node in self.nodes:
            if node.name == name:
                return node
        raise KeyError(f"No node named '{name}' in {self.shape} topology")

    def nodes_with_role(self, role: NodeRole) -> tp.List[Node]:
        return [n for n in self.nodes if n.role == role]

    def interfaces_of(self, node: Node) -> tp.List[Interface]:
        return [i for i in self.interfaces if i.node.node_id == node.node_id]

    def links_of(self, node: Node) -> tp.List[Link]:
        return [link for link in self.links if link.has_node(node)]

    def address_of(self, node: Node, link: tp.Optional[Link] = None) -> str:
        """
        Address of a node, on a given link or on its first interface.

        Raises:
            KeyError: If the node has no interface (on that link)
        """
        for iface in self.interfaces_of(node):
            if link is None or iface.link.link_id == link.link_id:
                return str(iface.address)
        where = f" on link {link.link_id}" if link is not None else ""
        raise KeyError(f"Node '{node.name}' has no interface{where}")

    def link_between(self, a: Node, b: Node) -> Link:
        for link in self.links:
            if link.has_node(a) and link.has_node(b):
                return link
        raise KeyError(f"No link between '{a.name}' and '{b.name}'")

    def graph(self) -> nx.Graph:
        """
        Undirected graph of the topology.

        Shared media and wireless cells connect every pair of their
        endpoints. Edges carry bandwidth, delay and link id.
        """
        graph = nx.Graph()
        for node in self.nodes:
            graph.add_node(node.node_id, name=node.name, role=node.role.value)
        for link in self.links:
            members = link.endpoints
            for i, a in enumerate(members):
                for b in members[i + 1 :]:
                    graph.add_edge(
                        a.node_id,
                        b.node_id,
                        link_id=link.link_id,
                        bandwidth_bps=link.bandwidth_bps,
                        delay_s=link.delay_s,
                    )
        return graph

    def summary(self) -> str:
        return (
            f"{self.shape}: {len(self.nodes)} nodes, {len(self.links)} links, "
            f"{len(self.interfaces)} interfaces"
        )


def load_kernel_class(module_name: str, class_name: str) -> type:
    """
    Dynamically load a simulation kernel adapter class.

    Args:
        module_name: Dotted module path (e.g., "flowbench.simulation.kernels.ns3_kernel")
        class_name: Name of the class to import (e.g., "Ns3Kernel")

    Returns:
        The kernel class

    Raises:
        ImportError: If module or class cannot be found
    """
    try:
        module = importlib.import_module(module_name)
        kernel_class = getattr(module, class_name)
        logger.info(f"Loaded kernel class '{class_name}' from '{module_name}'")
        return kernel_class
    except ModuleNotFoundError as e:
        raise ImportError(f"Could not find module '{module_name}': {e}")
    except AttributeError as e:
        raise ImportError(
            f"Could not find class '{class_name}' in module '{module_name}': {e}"
        )


def ensure_dir(directory: str) -> None:
    """
    Create directory if it doesn't exist.

    Args:
        directory: Path to directory to create
    """
    if not os.path.exists(directory):
        os.makedirs(directory)
