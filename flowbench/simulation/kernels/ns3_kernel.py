"""
ns-3 kernel adapter (ns-3.37+ cppyy Python bindings).

Requires ns-3 built with Python bindings and the videoStreamer application
module, which provides VideoStreamServerHelper / VideoStreamClientHelper.
"""

import ipaddress
import typing as tp

from loguru import logger
from ns import ns

from flowbench.simulation.applications import AppRole, ScheduledApplication
from flowbench.simulation.context import SimulationContext
from flowbench.simulation.kernels.base import SimulationKernel
from flowbench.simulation.metrics import FlowKey, RawFlowCounters
from flowbench.simulation.network import Link, LinkKind, MobilityModel, Node

WIFI_MAC_TYPES = {
    "adhoc": ("ns3::AdhocWifiMac", "ns3::AdhocWifiMac"),
    "infrastructure": ("ns3::StaWifiMac", "ns3::ApWifiMac"),
}


def _rate(bandwidth_bps: float) -> str:
    return f"{int(bandwidth_bps)}bps"


class Ns3Kernel(SimulationKernel):
    def __init__(self, context: SimulationContext, app_logging: bool = False):
        super().__init__(context, app_logging)

        ns.Time.SetResolution(ns.Time.NS)
        if context.seed is not None:
            ns.RngSeedManager.SetSeed(context.seed)

        if app_logging:
            ns.LogComponentEnable("VideoStreamClientApplication", ns.LOG_LEVEL_INFO)
            ns.LogComponentEnable("VideoStreamServerApplication", ns.LOG_LEVEL_INFO)

        self._stack = ns.InternetStackHelper()
        self._address = ns.Ipv4AddressHelper()
        self._mobility = ns.MobilityHelper()
        self._flowmon_helper = ns.FlowMonitorHelper()
        self._monitor = None
        self._animation = None
        # Helpers must outlive Simulator::Run for pcap tracing
        self._p2p_helpers: tp.List[tp.Tuple[tp.Any, tp.Any]] = []
        self._csma_helpers: tp.List[tp.Tuple[tp.Any, tp.Any]] = []
        self._wifi_phys: tp.List[tp.Tuple[tp.Any, tp.Any]] = []
        self._apps: tp.List[tp.Any] = []

    def create_node(self, node: Node) -> tp.Any:
        container = ns.NodeContainer()
        container.Create(1)
        handle = container.Get(0)
        self._stack.Install(handle)
        return handle

    def _container(self, nodes: tp.Sequence[Node]) -> tp.Any:
        container = ns.NodeContainer()
        for node in nodes:
            container.Add(node.handle)
        return container

    def create_link(self, link: Link) -> tp.Any:
        if link.kind == LinkKind.POINT_TO_POINT:
            helper = ns.PointToPointHelper()
            helper.SetDeviceAttribute("DataRate", ns.StringValue(_rate(link.bandwidth_bps)))
            helper.SetChannelAttribute("Delay", ns.TimeValue(ns.Seconds(link.delay_s)))
            a, b = link.endpoints
            devices = helper.Install(a.handle, b.handle)
            self._p2p_helpers.append((helper, devices))
            return devices

        if link.kind == LinkKind.SHARED:
            helper = ns.CsmaHelper()
            helper.SetChannelAttribute("DataRate", ns.StringValue(_rate(link.bandwidth_bps)))
            helper.SetChannelAttribute("Delay", ns.TimeValue(ns.Seconds(link.delay_s)))
            devices = helper.Install(self._container(link.endpoints))
            self._csma_helpers.append((helper, devices))
            return devices

        return self._create_wifi_cell(link)

    def _create_wifi_cell(self, link: Link) -> tp.Any:
        options = link.options
        access_count = options.get("access_count", 1)
        access_nodes = link.endpoints[:access_count]
        stations = link.endpoints[access_count:]

        channel = ns.YansWifiChannelHelper.Default()
        phy = ns.YansWifiPhyHelper()
        phy.SetChannel(channel.Create())

        wifi = ns.WifiHelper()
        manager = options.get("station_manager", "ns3::ConstantRateWifiManager")
        data_mode = options.get("data_mode")
        if data_mode:
            wifi.SetRemoteStationManager(
                manager,
                "DataMode",
                ns.StringValue(data_mode),
                "ControlMode",
                ns.StringValue(options.get("control_mode", data_mode)),
            )
        else:
            wifi.SetRemoteStationManager(manager)

        ssid = ns.Ssid(options.get("ssid", "ns-3-ssid"))
        station_mac, access_mac = WIFI_MAC_TYPES[options.get("mode", "adhoc")]

        mac = ns.WifiMacHelper()
        if station_mac == "ns3::StaWifiMac":
            mac.SetType(
                station_mac,
                "Ssid",
                ns.SsidValue(ssid),
                "ActiveProbing",
                ns.BooleanValue(False),
            )
        else:
            mac.SetType(station_mac, "Ssid", ns.SsidValue(ssid))
        station_devices = wifi.Install(phy, mac, self._container(stations))

        mac.SetType(access_mac, "Ssid", ns.SsidValue(ssid))
        access_devices = wifi.Install(phy, mac, self._container(access_nodes))

        # Endpoint order: access nodes first, then stations
        devices = ns.NetDeviceContainer()
        devices.Add(access_devices)
        devices.Add(station_devices)
        self._wifi_phys.append((phy, access_devices))
        return devices

    def assign_addresses(
        self,
        link: Link,
        subnet: ipaddress.IPv4Network,
        addresses: tp.Sequence[ipaddress.IPv4Address],
    ) -> tp.Any:
        # Ipv4AddressHelper hands out .1, .2, ... in device order, which is
        # the order the harness computed
        self._address.SetBase(
            ns.Ipv4Address(str(subnet.network_address)),
            ns.Ipv4Mask(str(subnet.netmask)),
        )
        return self._address.Assign(link.devices)

    def set_position(self, node: Node) -> None:
        if node.mobility == MobilityModel.RANDOM_WALK and node.bounds is not None:
            b = node.bounds
            self._mobility.SetMobilityModel(
                "ns3::RandomWalk2dMobilityModel",
                "Bounds",
                ns.RectangleValue(ns.Rectangle(b.x_min, b.x_max, b.y_min, b.y_max)),
            )
        else:
            self._mobility.SetMobilityModel("ns3::ConstantPositionMobilityModel")
        self._mobility.Install(node.handle)

        if node.position is not None:
            model = node.handle.GetObject[ns.MobilityModel]()
            model.SetPosition(ns.Vector(node.position.x, node.position.y, 0.0))

    def install_application(self, app: ScheduledApplication) -> tp.Any:
        if app.role == AppRole.SERVER:
            helper = ns.VideoStreamServerHelper(app.port)
            helper.SetAttribute(
                "MaxPacketSize", ns.UintegerValue(app.attributes.max_packet_size)
            )
            helper.SetAttribute("FrameFile", ns.StringValue(app.attributes.frame_file))
        else:
            if app.port is not None:
                logger.warning(
                    f"VideoStreamClient binds an ephemeral port; ignoring local port {app.port}"
                )
            peer = ns.Ipv4Address(app.peer_address).ConvertTo()
            helper = ns.VideoStreamClientHelper(peer, app.peer_port)

        container = helper.Install(app.node.handle)
        container.Start(ns.Seconds(app.start))
        container.Stop(ns.Seconds(app.stop))
        self._apps.append(container)
        return container

    def populate_routes(self) -> None:
        ns.Ipv4GlobalRoutingHelper.PopulateRoutingTables()

    def enable_animation(self, path: str, nodes: tp.Sequence[Node]) -> None:
        self._animation = ns.AnimationInterface(path)
        self._animation.EnablePacketMetadata(True)
        for node in nodes:
            self._animation.UpdateNodeDescription(node.handle, node.name)
            if node.color is not None:
                r, g, b = node.color
                self._animation.UpdateNodeColor(node.handle, r, g, b)
        logger.info(f"Animation trace enabled: {path}")

    def enable_pcap(self, prefix: str) -> None:
        for index, (helper, devices) in enumerate(self._p2p_helpers):
            helper.EnablePcap(f"{prefix}_p2p_{index}", devices.Get(1), False)
        for index, (helper, devices) in enumerate(self._csma_helpers):
            helper.EnablePcap(f"{prefix}_csma_{index}", devices.Get(0), False)
        for index, (phy, devices) in enumerate(self._wifi_phys):
            phy.EnablePcap(f"{prefix}_wifi_{index}", devices.Get(0))
        logger.info(f"Pcap tracing enabled with prefix {prefix}")

    def run_until(self, stop_time: float) -> None:
        self._monitor = self._flowmon_helper.InstallAll()
        ns.Simulator.Stop(ns.Seconds(stop_time))
        logger.info(f"Running ns-3 until {stop_time}s")
        ns.Simulator.Run()
        self.context.advance_to(stop_time)
        self.context.finished = True

    def collect_flow_stats(self) -> tp.Dict[FlowKey, RawFlowCounters]:
        if self._monitor is None:
            raise RuntimeError("Flow monitor not installed; call run_until() first")

        self._monitor.CheckForLostPackets()
        classifier = ns.DynamicCast[ns.Ipv4FlowClassifier](
            self._flowmon_helper.GetClassifier()
        )

        stats: tp.Dict[FlowKey, RawFlowCounters] = {}
        for flow_id, flow_stats in self._monitor.GetFlowStats():
            t = classifier.FindFlow(flow_id)
            key = FlowKey(
                source_address=str(t.sourceAddress),
                destination_address=str(t.destinationAddress),
                source_port=int(t.sourcePort),
                destination_port=int(t.destinationPort),
                protocol=int(t.protocol),
            )
            stats[key] = RawFlowCounters(
                flow_id=int(flow_id),
                tx_packets=int(flow_stats.txPackets),
                rx_packets=int(flow_stats.rxPackets),
                tx_bytes=int(flow_stats.txBytes),
                rx_bytes=int(flow_stats.rxBytes),
                time_first_tx=flow_stats.timeFirstTxPacket.GetSeconds(),
                time_last_rx=flow_stats.timeLastRxPacket.GetSeconds(),
                delay_sum=flow_stats.delaySum.GetSeconds(),
                jitter_sum=flow_stats.jitterSum.GetSeconds(),
                lost_packets=int(flow_stats.lostPackets),
            )

        logger.info(f"Collected counters for {len(stats)} flows")
        return stats

    def destroy(self) -> None:
        ns.Simulator.Destroy()
        self._animation = None
        self._monitor = None
        self._apps.clear()
        self._p2p_helpers.clear()
        self._csma_helpers.clear()
        self._wifi_phys.clear()
