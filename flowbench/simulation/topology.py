"""
Topology construction for experiment scenarios.

A TopologyBuilder creates nodes and links through the simulation kernel and
gives every link its own subnet the moment the link is created. The shape
functions at the bottom of the module assemble the supported scenario
shapes from validated parameter dataclasses:

- Linear: server-client, or server-client x N
- Star: server-router-client(s)
- Bottleneck tree: server-router-bottleneck-client(s)
- Hierarchical tree: server-core-aggregation-edge-client
- Wireless cell: access node(s) and stations sharing one channel
"""

import typing as tp
from dataclasses import dataclass, field

from loguru import logger

from flowbench.simulation.addressing import AddressAllocator
from flowbench.simulation.context import SimulationContext
from flowbench.simulation.errors import ConfigurationError, InvalidShapeParametersError
from flowbench.simulation.network import (
    Bounds,
    Interface,
    Link,
    LinkKind,
    MobilityModel,
    Node,
    NodeRole,
    Position,
    Topology,
)

if tp.TYPE_CHECKING:
    from flowbench.simulation.kernels.base import SimulationKernel

GREEN = (0, 255, 0)
YELLOW = (255, 255, 0)
ORANGE = (255, 165, 0)
PINK = (255, 192, 203)
BLUE = (0, 0, 255)

WIRELESS_MODES = ("adhoc", "infrastructure")


class TopologyBuilder:
    """
    Incrementally builds one scenario's topology.

    Args:
        context: Context of the run
        kernel: Kernel the nodes and links are created in
        allocator: Subnet allocator for this run
        shape: Shape name, used in logs and errors
    """

    def __init__(
        self,
        context: SimulationContext,
        kernel: "SimulationKernel",
        allocator: AddressAllocator,
        shape: str,
    ):
        self.context = context
        self.kernel = kernel
        self.allocator = allocator
        self.topology = Topology(shape)

    def _check_open(self) -> None:
        if self.topology.frozen:
            raise ConfigurationError(
                f"{self.topology.shape} topology is finalized; no more nodes or links"
            )

    def add_node(
        self,
        name: str,
        role: NodeRole,
        position: tp.Optional[Position] = None,
        mobility: MobilityModel = MobilityModel.CONSTANT,
        bounds: tp.Optional[Bounds] = None,
        color: tp.Optional[tp.Tuple[int, int, int]] = None,
    ) -> Node:
        self._check_open()
        if any(n.name == name for n in self.topology.nodes):
            raise ConfigurationError(f"Duplicate node name '{name}'")

        node = Node(
            node_id=len(self.topology.nodes),
            name=name,
            role=role,
            position=position,
            mobility=mobility,
            bounds=bounds,
            color=color,
        )
        node.handle = self.kernel.create_node(node)
        self.topology.nodes.append(node)
        return node

    def add_link(
        self,
        endpoints: tp.Sequence[Node],
        bandwidth_bps: float,
        delay_s: float,
        kind: LinkKind = LinkKind.POINT_TO_POINT,
        **options: tp.Any,
    ) -> Link:
        """
        Create a link, allocate its subnet and address its interfaces.

        Raises:
            ConfigurationError: On a malformed endpoint list
            AddressSpaceExhaustedError: If no subnet or host address is left
        """
        self._check_open()
        endpoints = tuple(endpoints)
        link_index = len(self.topology.links)

        if kind == LinkKind.POINT_TO_POINT and len(endpoints) != 2:
            raise ConfigurationError(
                f"Point-to-point link {link_index} needs 2 endpoints, got {len(endpoints)}"
            )
        if len(endpoints) < 2:
            raise ConfigurationError(f"Link {link_index} needs at least 2 endpoints")
        if len({n.node_id for n in endpoints}) != len(endpoints):
            raise ConfigurationError(f"Link {link_index} lists a node twice")
        if bandwidth_bps <= 0 or delay_s < 0:
            raise ConfigurationError(
                f"Link {link_index} has invalid bandwidth {bandwidth_bps} or delay {delay_s}"
            )

        subnet = self.allocator.allocate(link_index)
        addresses = self.allocator.host_addresses(subnet, len(endpoints), link_index)

        link = Link(
            link_id=link_index,
            endpoints=endpoints,
            kind=kind,
            bandwidth_bps=bandwidth_bps,
            delay_s=delay_s,
            subnet=subnet,
            options=dict(options),
        )
        link.devices = self.kernel.create_link(link)
        self.kernel.assign_addresses(link, subnet, addresses)

        self.topology.links.append(link)
        for node, address in zip(endpoints, addresses):
            self.topology.interfaces.append(Interface(node, link, address))

        names = "-".join(n.name for n in endpoints)
        logger.debug(
            f"Link {link_index} ({kind.value}) {names}: {subnet}, "
            f"{bandwidth_bps / 1e6:g}Mbps, {delay_s * 1e3:g}ms"
        )
        return link

    def finalize(self) -> Topology:
        """Place nodes, populate routes and freeze the topology."""
        self._check_open()
        for node in self.topology.nodes:
            if node.position is not None or node.mobility != MobilityModel.CONSTANT:
                self.kernel.set_position(node)
        self.kernel.populate_routes()
        self.topology.frozen = True
        logger.info(f"Built topology {self.topology.summary()}")
        return self.topology


def _require(shape: str, parameter: str, condition: bool, reason: str) -> None:
    if not condition:
        raise InvalidShapeParametersError(shape, parameter, reason)


def _spread(count: int, step: float) -> tp.List[float]:
    """`count` values spaced by `step`, centred on zero."""
    return [(i - (count - 1) / 2.0) * step for i in range(count)]


@dataclass(frozen=True)
class LinkTier:
    bandwidth_bps: float
    delay_s: float

    def validate(self, shape: str, name: str) -> None:
        _require(shape, f"{name}.bandwidth_bps", self.bandwidth_bps > 0, "must be > 0")
        _require(shape, f"{name}.delay_s", self.delay_s >= 0, "must be >= 0")


@dataclass(frozen=True)
class GridLayout:
    """Grid placement, filled row by row (or column by column)."""

    min_x: float = 0.0
    min_y: float = 0.0
    delta_x: float = 30.0
    delta_y: float = 30.0
    grid_width: int = 2
    row_first: bool = True

    def position(self, index: int) -> Position:
        major, minor = divmod(index, self.grid_width)
        if self.row_first:
            return Position(self.min_x + self.delta_x * minor, self.min_y + self.delta_y * major)
        return Position(self.min_x + self.delta_x * major, self.min_y + self.delta_y * minor)

    def positions(self, count: int, offset: int = 0) -> tp.List[Position]:
        return [self.position(offset + i) for i in range(count)]


@dataclass(frozen=True)
class LinearParams:
    client_count: int = 1
    link: LinkTier = LinkTier(60e6, 0.002)
    # With several clients: one shared segment, or one point-to-point link each
    shared_link: bool = True

    def validate(self) -> None:
        _require("linear", "client_count", self.client_count >= 1, "must be >= 1")
        self.link.validate("linear", "link")


@dataclass(frozen=True)
class StarParams:
    client_count: int = 1
    link: LinkTier = LinkTier(60e6, 0.002)

    def validate(self) -> None:
        _require("star", "client_count", self.client_count >= 1, "must be >= 1")
        self.link.validate("star", "link")


@dataclass(frozen=True)
class BottleneckParams:
    client_count: int = 2
    access: LinkTier = LinkTier(100e6, 0.002)
    bottleneck: LinkTier = LinkTier(5e6, 0.010)

    def validate(self) -> None:
        _require("bottleneck", "client_count", self.client_count >= 1, "must be >= 1")
        self.access.validate("bottleneck", "access")
        self.bottleneck.validate("bottleneck", "bottleneck")
        _require(
            "bottleneck",
            "bottleneck.bandwidth_bps",
            self.bottleneck.bandwidth_bps < self.access.bandwidth_bps,
            "must be lower than the access bandwidth",
        )


@dataclass(frozen=True)
class HierarchicalParams:
    aggregation_count: int = 2
    edge_count: int = 4
    high: LinkTier = LinkTier(100e6, 0.002)
    medium: LinkTier = LinkTier(50e6, 0.005)
    low: LinkTier = LinkTier(10e6, 0.010)

    @property
    def client_count(self) -> int:
        # one client per edge router
        return self.edge_count

    def validate(self) -> None:
        _require("hierarchical", "aggregation_count", self.aggregation_count >= 1, "must be >= 1")
        _require(
            "hierarchical",
            "edge_count",
            self.edge_count >= self.aggregation_count,
            "must be >= aggregation_count",
        )
        for name in ("high", "medium", "low"):
            getattr(self, name).validate("hierarchical", name)


@dataclass(frozen=True)
class WirelessParams:
    station_count: int = 3
    access_count: int = 1
    mode: str = "adhoc"
    station_manager: str = "ns3::ConstantRateWifiManager"
    data_mode: tp.Optional[str] = None
    control_mode: tp.Optional[str] = None
    ssid: str = "ns-3-ssid"
    # Nominal channel rate, used for the link record and utilization
    bandwidth_bps: float = 6e6
    grid: GridLayout = GridLayout()
    station_mobility: MobilityModel = MobilityModel.RANDOM_WALK
    bounds: Bounds = Bounds()
    # Grid slots go to stations first unless access_first is set
    access_first: bool = False
    access_position: tp.Optional[Position] = None
    extra: tp.Dict[str, tp.Any] = field(default_factory=dict)

    def validate(self) -> None:
        _require("wireless", "station_count", self.station_count >= 1, "must be >= 1")
        _require("wireless", "access_count", self.access_count >= 1, "must be >= 1")
        _require("wireless", "mode", self.mode in WIRELESS_MODES, f"must be one of {WIRELESS_MODES}")
        _require("wireless", "bandwidth_bps", self.bandwidth_bps > 0, "must be > 0")
        _require("wireless", "grid.grid_width", self.grid.grid_width >= 1, "must be >= 1")


def build_linear(builder: TopologyBuilder, params: LinearParams) -> Topology:
    params.validate()
    server = builder.add_node("Server", NodeRole.SERVER, Position(1.0, 2.0), color=GREEN)
    clients = [
        builder.add_node(
            f"Client{i + 1}",
            NodeRole.CLIENT,
            Position(10.0 * (i + 1), 10.0 * (i + 2)),
            color=BLUE,
        )
        for i in range(params.client_count)
    ]

    tier = params.link
    if len(clients) > 1 and params.shared_link:
        builder.add_link([server, *clients], tier.bandwidth_bps, tier.delay_s, LinkKind.SHARED)
    else:
        for client in clients:
            builder.add_link([server, client], tier.bandwidth_bps, tier.delay_s)
    return builder.finalize()


def build_star(builder: TopologyBuilder, params: StarParams) -> Topology:
    params.validate()
    tier = params.link
    server = builder.add_node("Server", NodeRole.SERVER, Position(0.0, 0.0), color=GREEN)
    router = builder.add_node("Router", NodeRole.ROUTER, Position(5.0, 0.0), color=YELLOW)
    builder.add_link([server, router], tier.bandwidth_bps, tier.delay_s)

    for i, y in enumerate(_spread(params.client_count, 4.0)):
        client = builder.add_node(f"Client{i + 1}", NodeRole.CLIENT, Position(10.0, y), color=BLUE)
        builder.add_link([router, client], tier.bandwidth_bps, tier.delay_s)
    return builder.finalize()


def build_bottleneck(builder: TopologyBuilder, params: BottleneckParams) -> Topology:
    params.validate()
    access, narrow = params.access, params.bottleneck

    server = builder.add_node("Server", NodeRole.SERVER, Position(0.0, 0.0), color=GREEN)
    router = builder.add_node("Router", NodeRole.ROUTER, Position(10.0, 0.0), color=YELLOW)
    bottleneck = builder.add_node(
        "BottleneckNode", NodeRole.BOTTLENECK, Position(20.0, 0.0), color=ORANGE
    )
    builder.add_link([server, router], access.bandwidth_bps, access.delay_s)
    builder.add_link([router, bottleneck], narrow.bandwidth_bps, narrow.delay_s)

    for i in range(params.client_count):
        client = builder.add_node(
            f"Client{i + 1}", NodeRole.CLIENT, Position(30.0, i * 5.0 - 5.0), color=BLUE
        )
        builder.add_link([bottleneck, client], access.bandwidth_bps, access.delay_s)
    return builder.finalize()


def build_hierarchical(builder: TopologyBuilder, params: HierarchicalParams) -> Topology:
    params.validate()
    high, medium, low = params.high, params.medium, params.low

    server = builder.add_node("Server", NodeRole.SERVER, Position(0.0, 0.0), color=GREEN)
    core = builder.add_node("CoreRouter", NodeRole.ROUTER, Position(10.0, 0.0), color=YELLOW)
    aggregation = [
        builder.add_node(f"AggRouter{i + 1}", NodeRole.ROUTER, Position(20.0, y), color=ORANGE)
        for i, y in enumerate(_spread(params.aggregation_count, 20.0))
    ]
    edge_y = _spread(params.edge_count, 10.0)
    edges = [
        builder.add_node(f"EdgeR{i + 1}", NodeRole.ROUTER, Position(30.0, y), color=PINK)
        for i, y in enumerate(edge_y)
    ]
    clients = [
        builder.add_node(f"Client{i + 1}", NodeRole.CLIENT, Position(40.0, y), color=BLUE)
        for i, y in enumerate(edge_y)
    ]

    builder.add_link([server, core], high.bandwidth_bps, high.delay_s)
    for agg in aggregation:
        builder.add_link([core, agg], high.bandwidth_bps, high.delay_s)
    for i, edge in enumerate(edges):
        agg = aggregation[i * params.aggregation_count // params.edge_count]
        builder.add_link([agg, edge], medium.bandwidth_bps, medium.delay_s)
    for edge, client in zip(edges, clients):
        builder.add_link([edge, client], low.bandwidth_bps, low.delay_s)
    return builder.finalize()


def build_wireless(builder: TopologyBuilder, params: WirelessParams) -> Topology:
    params.validate()
    grid = params.grid

    if params.access_first:
        access_slots = grid.positions(params.access_count)
        station_slots = grid.positions(params.station_count, offset=params.access_count)
    else:
        station_slots = grid.positions(params.station_count)
        access_slots = grid.positions(params.access_count, offset=params.station_count)
    if params.access_position is not None:
        access_slots = [params.access_position] * params.access_count

    access_nodes = [
        builder.add_node(f"AP{i + 1}", NodeRole.ACCESS_POINT, position, color=GREEN)
        for i, position in enumerate(access_slots)
    ]
    station_bounds = params.bounds if params.station_mobility == MobilityModel.RANDOM_WALK else None
    stations = [
        builder.add_node(
            f"STA{i + 1}",
            NodeRole.STATION,
            position,
            mobility=params.station_mobility,
            bounds=station_bounds,
            color=BLUE,
        )
        for i, position in enumerate(station_slots)
    ]

    options = {
        "mode": params.mode,
        "access_count": params.access_count,
        "station_manager": params.station_manager,
        "ssid": params.ssid,
        **params.extra,
    }
    if params.data_mode:
        options["data_mode"] = params.data_mode
        options["control_mode"] = params.control_mode or params.data_mode

    builder.add_link(
        [*access_nodes, *stations],
        params.bandwidth_bps,
        0.0,
        LinkKind.WIRELESS,
        **options,
    )
    return builder.finalize()
