"""
Scenario registry.

Each experiment case is a constructor registered under an integer id. A
constructor builds the topology, schedules the stream applications and
returns them together with the flow selector and link capacity used to
report the run.
"""

import typing as tp
from dataclasses import dataclass

from loguru import logger

from flowbench.harness_config import HarnessConfig
from flowbench.simulation.addressing import AddressAllocator
from flowbench.simulation.applications import AppAttributes, ApplicationScheduler
from flowbench.simulation.context import SimulationContext
from flowbench.simulation.errors import UnknownScenarioError
from flowbench.simulation.kernels.base import SimulationKernel
from flowbench.simulation.network import MobilityModel, NodeRole, Position, Topology
from flowbench.simulation.selectors import FlowSelector, any_of, match_flow, select_all
from flowbench.simulation.topology import (
    BottleneckParams,
    GridLayout,
    HierarchicalParams,
    LinearParams,
    LinkTier,
    StarParams,
    TopologyBuilder,
    WirelessParams,
    build_bottleneck,
    build_hierarchical,
    build_linear,
    build_star,
    build_wireless,
)

VIDEO_PORT = 6969
WIRELESS_PORT = 5000


@dataclass
class ScenarioBundle:
    """Everything the runner needs from a built scenario."""

    topology: Topology
    scheduler: ApplicationScheduler
    flow_selector: FlowSelector
    link_capacity_mbps: float


ScenarioConstructor = tp.Callable[
    [SimulationContext, SimulationKernel, HarnessConfig], ScenarioBundle
]


@dataclass(frozen=True)
class ScenarioSpec:
    case_id: int
    name: str
    stop_time: float
    build: ScenarioConstructor
    animation_file: str = ""
    description: str = ""

    @property
    def pcap_prefix(self) -> str:
        return f"videoStream_case_{self.case_id}"


SCENARIOS: tp.Dict[int, ScenarioSpec] = {}


def register_scenario(
    case_id: int,
    name: str,
    stop_time: float,
    animation_file: str = "",
) -> tp.Callable[[ScenarioConstructor], ScenarioConstructor]:
    """Register a scenario constructor under `case_id`."""

    def decorator(build: ScenarioConstructor) -> ScenarioConstructor:
        if case_id in SCENARIOS:
            raise ValueError(f"Scenario case {case_id} registered twice")
        SCENARIOS[case_id] = ScenarioSpec(
            case_id=case_id,
            name=name,
            stop_time=stop_time,
            build=build,
            animation_file=animation_file,
            description=(build.__doc__ or "").strip(),
        )
        return build

    return decorator


def get_scenario(case_id: int) -> ScenarioSpec:
    try:
        return SCENARIOS[case_id]
    except KeyError:
        raise UnknownScenarioError(case_id, SCENARIOS.keys()) from None


def list_scenarios() -> tp.List[ScenarioSpec]:
    return [SCENARIOS[k] for k in sorted(SCENARIOS)]


def build_scenario(
    case_id: int,
    context: SimulationContext,
    kernel: SimulationKernel,
    cfg: HarnessConfig,
) -> ScenarioBundle:
    spec = get_scenario(case_id)
    logger.info(f"Building scenario {case_id} ({spec.name})")
    return spec.build(context, kernel, cfg)


def _builder(
    context: SimulationContext,
    kernel: SimulationKernel,
    cfg: HarnessConfig,
    shape: str,
) -> TopologyBuilder:
    allocator = AddressAllocator(
        cfg.addressing.pool,
        cfg.addressing.prefix_length,
        cfg.addressing.first_subnet,
    )
    return TopologyBuilder(context, kernel, allocator, shape)


def _attributes(cfg: HarnessConfig, small: bool = False) -> AppAttributes:
    frame_file = cfg.traffic.small_frame_file if small else cfg.traffic.frame_file
    return AppAttributes(cfg.traffic.max_packet_size, frame_file)


@register_scenario(1, "p2p_single_client", stop_time=101.0, animation_file="case_1.xml")
def point_to_point_single_client(context, kernel, cfg) -> ScenarioBundle:
    """Server and one client on a 60Mbps point-to-point link."""
    topology = build_linear(_builder(context, kernel, cfg, "linear"), LinearParams(1))
    server = topology.node("Server")
    client = topology.node("Client1")

    scheduler = ApplicationScheduler(context)
    scheduler.add_stream(
        server,
        topology.address_of(server),
        client,
        VIDEO_PORT,
        _attributes(cfg),
        server_start=0.0,
        client_start=0.5,
        stop=100.0,
    )
    return ScenarioBundle(topology, scheduler, select_all, link_capacity_mbps=60.0)


@register_scenario(2, "p2p_two_clients", stop_time=100.0, animation_file="case_2.xml")
def point_to_point_two_clients(context, kernel, cfg) -> ScenarioBundle:
    """Server with one 20Mbps point-to-point link per client."""
    params = LinearParams(2, LinkTier(20e6, 0.002), shared_link=False)
    topology = build_linear(_builder(context, kernel, cfg, "linear"), params)
    server = topology.node("Server")

    scheduler = ApplicationScheduler(context)
    scheduler.add_server(server, VIDEO_PORT, _attributes(cfg), 0.0, 100.0)

    selectors = []
    for client, start in zip(topology.nodes_with_role(NodeRole.CLIENT), (1.0, 0.5)):
        link = topology.link_between(server, client)
        server_address = topology.address_of(server, link)
        client_address = topology.address_of(client, link)
        scheduler.add_client(
            client, server_address, VIDEO_PORT, _attributes(cfg), start, 100.0, peer_node=server
        )
        selectors.append(match_flow(server_address, client_address))

    return ScenarioBundle(topology, scheduler, any_of(*selectors), link_capacity_mbps=20.0)


def _wireless_streams(
    topology: Topology,
    scheduler: ApplicationScheduler,
    attributes: AppAttributes,
    pair_with_own_access: bool,
    client_starts: tp.Sequence[float],
) -> FlowSelector:
    access_nodes = topology.nodes_with_role(NodeRole.ACCESS_POINT)
    for access in access_nodes:
        scheduler.add_server(access, WIRELESS_PORT, attributes, 0.0)

    selectors = []
    for k, station in enumerate(topology.nodes_with_role(NodeRole.STATION)):
        access = access_nodes[k % len(access_nodes)] if pair_with_own_access else access_nodes[0]
        access_address = topology.address_of(access)
        scheduler.add_client(
            station,
            access_address,
            WIRELESS_PORT,
            attributes,
            client_starts[k],
            peer_node=access,
        )
        selectors.append(
            match_flow(access_address, topology.address_of(station), source_port=WIRELESS_PORT)
        )
    return any_of(*selectors)


@register_scenario(3, "wifi_adhoc_three_stations", stop_time=10.0, animation_file="wifi-1-3.xml")
def wifi_adhoc(context, kernel, cfg) -> ScenarioBundle:
    """One access node and three random-walking stations in adhoc mode."""
    params = WirelessParams(
        station_count=3,
        access_count=1,
        mode="adhoc",
        station_manager="ns3::ConstantRateWifiManager",
        ssid="ns-3-aqiao",
        bandwidth_bps=6e6,
        grid=GridLayout(0.0, 0.0, 30.0, 30.0, grid_width=2),
        station_mobility=MobilityModel.RANDOM_WALK,
    )
    topology = build_wireless(_builder(context, kernel, cfg, "wireless"), params)

    scheduler = ApplicationScheduler(context)
    selector = _wireless_streams(
        topology, scheduler, _attributes(cfg, small=True), False, [0.5] * 3
    )
    return ScenarioBundle(topology, scheduler, selector, link_capacity_mbps=6.0)


@register_scenario(4, "wifi_three_access_points", stop_time=10.0, animation_file="wifi-1-3.xml")
def wifi_infrastructure(context, kernel, cfg) -> ScenarioBundle:
    """Three access points, each serving one fixed station."""
    params = WirelessParams(
        station_count=3,
        access_count=3,
        mode="infrastructure",
        station_manager="ns3::IdealWifiManager",
        ssid="ns-3-aqiao",
        bandwidth_bps=54e6,
        grid=GridLayout(0.0, 0.0, 50.0, 30.0, grid_width=3),
        station_mobility=MobilityModel.CONSTANT,
        access_first=True,
    )
    topology = build_wireless(_builder(context, kernel, cfg, "wireless"), params)

    scheduler = ApplicationScheduler(context)
    selector = _wireless_streams(
        topology, scheduler, _attributes(cfg, small=True), True, [0.5] * 3
    )
    return ScenarioBundle(topology, scheduler, selector, link_capacity_mbps=54.0)


@register_scenario(5, "shared_link_two_clients", stop_time=100.0, animation_file="case_5.xml")
def shared_link_two_clients(context, kernel, cfg) -> ScenarioBundle:
    """Server and two clients on one shared 5Mbps segment."""
    params = LinearParams(2, LinkTier(5e6, 0.002), shared_link=True)
    topology = build_linear(_builder(context, kernel, cfg, "linear"), params)
    server = topology.node("Server")
    server_address = topology.address_of(server)

    scheduler = ApplicationScheduler(context)
    scheduler.add_server(server, WIRELESS_PORT, _attributes(cfg, small=True), 0.0, 100.0)

    selectors = []
    for client, start in zip(topology.nodes_with_role(NodeRole.CLIENT), (1.0, 0.5)):
        scheduler.add_client(
            client,
            server_address,
            WIRELESS_PORT,
            _attributes(cfg, small=True),
            start,
            100.0,
            peer_node=server,
        )
        selectors.append(match_flow(server_address, topology.address_of(client)))

    return ScenarioBundle(topology, scheduler, any_of(*selectors), link_capacity_mbps=5.0)


@register_scenario(
    6,
    "router_bidirectional",
    stop_time=100.0,
    animation_file="video_stream_with_router_case_6.xml",
)
def router_bidirectional(context, kernel, cfg) -> ScenarioBundle:
    """Server-router-client with a stream in each direction."""
    topology = build_star(_builder(context, kernel, cfg, "star"), StarParams(1))
    server = topology.node("Server")
    client = topology.node("Client1")
    server_address = topology.address_of(server)
    client_address = topology.address_of(client)
    reverse_port = VIDEO_PORT + 1

    scheduler = ApplicationScheduler(context)
    scheduler.add_bidirectional_stream(
        server,
        server_address,
        client,
        client_address,
        VIDEO_PORT,
        _attributes(cfg),
        reverse_port_offset=reverse_port - VIDEO_PORT,
        starts=(0.0, 0.5, 1.0, 1.5),
        stop=100.0,
    )
    selector = any_of(
        match_flow(server_address, client_address, source_port=VIDEO_PORT),
        match_flow(client_address, server_address, source_port=reverse_port),
    )
    return ScenarioBundle(topology, scheduler, selector, link_capacity_mbps=60.0)


@register_scenario(
    7,
    "router_two_clients_all_paths",
    stop_time=100.0,
    animation_file="video_stream_with_router_two_clients_all_paths_case_7.xml",
)
def router_all_paths(context, kernel, cfg) -> ScenarioBundle:
    """Server-router-two clients with bidirectional streams on every node pair."""
    topology = build_star(_builder(context, kernel, cfg, "star"), StarParams(2))
    server = topology.node("Server")
    client1 = topology.node("Client1")
    client2 = topology.node("Client2")
    offset = cfg.traffic.reverse_port_offset
    attributes = _attributes(cfg, small=True)

    pairs = [
        (server, client1, 7000, (0.0, 0.5, 1.0, 1.5)),
        (server, client2, 7001, (0.0, 0.5, 1.0, 1.5)),
        (client1, client2, 7002, (2.0, 2.5, 3.0, 3.5)),
    ]

    scheduler = ApplicationScheduler(context)
    selectors = []
    for a, b, port, starts in pairs:
        a_address = topology.address_of(a)
        b_address = topology.address_of(b)
        scheduler.add_bidirectional_stream(
            a, a_address, b, b_address, port, attributes, offset, starts, 100.0
        )
        selectors.append(match_flow(a_address, b_address, source_port=port))
        selectors.append(match_flow(b_address, a_address, source_port=port + offset))

    return ScenarioBundle(topology, scheduler, any_of(*selectors), link_capacity_mbps=60.0)


def _server_to_clients(
    topology: Topology,
    cfg: HarnessConfig,
    context: SimulationContext,
    client_start: float,
) -> tp.Tuple[ApplicationScheduler, FlowSelector]:
    server = topology.node("Server")
    server_address = topology.address_of(server)

    scheduler = ApplicationScheduler(context)
    scheduler.add_server(server, VIDEO_PORT, _attributes(cfg), 0.0, 100.0)

    selectors = []
    for client in topology.nodes_with_role(NodeRole.CLIENT):
        scheduler.add_client(
            client,
            server_address,
            VIDEO_PORT,
            _attributes(cfg),
            client_start,
            100.0,
            peer_node=server,
        )
        selectors.append(
            match_flow(server_address, topology.address_of(client), source_port=VIDEO_PORT)
        )
    return scheduler, any_of(*selectors)


@register_scenario(8, "bottleneck_tree", stop_time=100.0, animation_file="video_stream_bottleneck.xml")
def bottleneck_tree(context, kernel, cfg) -> ScenarioBundle:
    """Two clients behind a 5Mbps router-bottleneck link."""
    params = BottleneckParams()
    topology = build_bottleneck(_builder(context, kernel, cfg, "bottleneck"), params)
    scheduler, selector = _server_to_clients(topology, cfg, context, client_start=1.0)
    return ScenarioBundle(
        topology,
        scheduler,
        selector,
        link_capacity_mbps=params.bottleneck.bandwidth_bps / 1e6,
    )


@register_scenario(
    9, "hierarchical_tree", stop_time=100.0, animation_file="video_stream_hierarchical.xml"
)
def hierarchical_tree(context, kernel, cfg) -> ScenarioBundle:
    """Core, aggregation and edge tiers with one client per edge router."""
    params = HierarchicalParams()
    topology = build_hierarchical(_builder(context, kernel, cfg, "hierarchical"), params)
    scheduler, selector = _server_to_clients(topology, cfg, context, client_start=1.0)
    return ScenarioBundle(
        topology,
        scheduler,
        selector,
        link_capacity_mbps=params.low.bandwidth_bps / 1e6,
    )


@register_scenario(10, "wifi_adhoc_ht", stop_time=100.0, animation_file="wifi_topo_10.xml")
def wifi_adhoc_ht(context, kernel, cfg) -> ScenarioBundle:
    """Adhoc cell at HtMcs7 with staggered client start times."""
    params = WirelessParams(
        station_count=3,
        access_count=1,
        mode="adhoc",
        station_manager="ns3::ConstantRateWifiManager",
        data_mode="HtMcs7",
        control_mode="HtMcs0",
        ssid="ns-3-ssid",
        bandwidth_bps=65e6,
        grid=GridLayout(0.0, 0.0, 5.0, 5.0, grid_width=3),
        station_mobility=MobilityModel.RANDOM_WALK,
        access_position=Position(0.0, 0.0),
    )
    topology = build_wireless(_builder(context, kernel, cfg, "wireless"), params)

    scheduler = ApplicationScheduler(context)
    selector = _wireless_streams(
        topology, scheduler, _attributes(cfg, small=True), False, [1.0, 2.0, 3.0]
    )
    return ScenarioBundle(topology, scheduler, selector, link_capacity_mbps=65.0)
