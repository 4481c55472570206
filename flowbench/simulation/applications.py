"""
Video stream application scheduling.
"""

import typing as tp
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from flowbench.simulation.context import SimulationContext
from flowbench.simulation.errors import DuplicatePortBindingError, InvalidScheduleError
from flowbench.simulation.network import Node

if tp.TYPE_CHECKING:
    from flowbench.simulation.kernels.base import SimulationKernel


class AppRole(Enum):
    SERVER = "server"
    CLIENT = "client"


@dataclass(frozen=True)
class AppAttributes:
    """Attributes passed through to the stream server."""

    max_packet_size: int = 1400
    frame_file: str = "./scratch/videoStreamer/frameList.txt"


@dataclass
class ScheduledApplication:
    """
    One application instance attached to a node.

    `port` is the port the application binds on its own node: the listening
    port of a server, or a client's local port (None for an ephemeral one).
    A client streams from `peer_address`:`peer_port`.
    """

    role: AppRole
    node: Node
    port: tp.Optional[int]
    start: float
    stop: float
    attributes: AppAttributes = field(default_factory=AppAttributes)
    peer_address: tp.Optional[str] = None
    peer_port: tp.Optional[int] = None
    peer_node: tp.Optional[Node] = None
    handle: tp.Any = field(default=None, repr=False, compare=False)

    def describe(self) -> str:
        if self.role == AppRole.SERVER:
            return f"server on {self.node.name}:{self.port} [{self.start}s-{self.stop}s]"
        return (
            f"client on {self.node.name} -> {self.peer_address}:{self.peer_port} "
            f"[{self.start}s-{self.stop}s]"
        )


class ApplicationScheduler:
    """
    Attaches stream servers and clients to topology nodes.

    Each node may run any number of applications, but never two with the
    same (role, bound port) pair. Clients bind ephemeral ports unless a
    local port is given. Bindings are checked as applications are added;
    start/stop windows are checked by validate() before installation.
    """

    def __init__(self, context: SimulationContext):
        self.context = context
        self.applications: tp.List[ScheduledApplication] = []
        self._bindings: tp.Set[tp.Tuple[int, AppRole, int]] = set()

    def _attach(self, app: ScheduledApplication) -> ScheduledApplication:
        # ephemeral client ports (None) never collide
        if app.port is not None:
            binding = (app.node.node_id, app.role, app.port)
            if binding in self._bindings:
                raise DuplicatePortBindingError(app.node.name, app.role.value, app.port)
            self._bindings.add(binding)
        self.applications.append(app)
        logger.debug(f"Scheduled {app.describe()}")
        return app

    def add_server(
        self,
        node: Node,
        port: int,
        attributes: tp.Optional[AppAttributes] = None,
        start: float = 0.0,
        stop: tp.Optional[float] = None,
    ) -> ScheduledApplication:
        return self._attach(
            ScheduledApplication(
                role=AppRole.SERVER,
                node=node,
                port=port,
                start=start,
                stop=self.context.stop_time if stop is None else stop,
                attributes=attributes or AppAttributes(),
            )
        )

    def add_client(
        self,
        node: Node,
        peer_address: str,
        peer_port: int,
        attributes: tp.Optional[AppAttributes] = None,
        start: float = 0.0,
        stop: tp.Optional[float] = None,
        peer_node: tp.Optional[Node] = None,
        local_port: tp.Optional[int] = None,
    ) -> ScheduledApplication:
        return self._attach(
            ScheduledApplication(
                role=AppRole.CLIENT,
                node=node,
                port=local_port,
                start=start,
                stop=self.context.stop_time if stop is None else stop,
                attributes=attributes or AppAttributes(),
                peer_address=peer_address,
                peer_port=peer_port,
                peer_node=peer_node,
            )
        )

    def add_stream(
        self,
        server: Node,
        server_address: str,
        client: Node,
        port: int,
        attributes: tp.Optional[AppAttributes] = None,
        server_start: float = 0.0,
        client_start: float = 0.5,
        stop: tp.Optional[float] = None,
    ) -> tp.Tuple[ScheduledApplication, ScheduledApplication]:
        """Schedule a server on `server` and a client on `client` streaming from it."""
        server_app = self.add_server(server, port, attributes, server_start, stop)
        client_app = self.add_client(
            client,
            server_address,
            port,
            attributes,
            client_start,
            stop,
            peer_node=server,
        )
        return server_app, client_app

    def add_bidirectional_stream(
        self,
        a: Node,
        a_address: str,
        b: Node,
        b_address: str,
        port: int,
        attributes: tp.Optional[AppAttributes] = None,
        reverse_port_offset: int = 10,
        starts: tp.Tuple[float, float, float, float] = (0.0, 0.5, 1.0, 1.5),
        stop: tp.Optional[float] = None,
    ) -> tp.List[ScheduledApplication]:
        """
        Stream a -> b on `port` and b -> a on `port + reverse_port_offset`.

        `starts` holds the start times of (server on a, client on b,
        server on b, client on a).
        """
        forward = self.add_stream(
            a, a_address, b, port, attributes, starts[0], starts[1], stop
        )
        reverse = self.add_stream(
            b,
            b_address,
            a,
            port + reverse_port_offset,
            attributes,
            starts[2],
            starts[3],
            stop,
        )
        return [*forward, *reverse]

    def servers(self) -> tp.List[ScheduledApplication]:
        return [a for a in self.applications if a.role == AppRole.SERVER]

    def clients(self) -> tp.List[ScheduledApplication]:
        return [a for a in self.applications if a.role == AppRole.CLIENT]

    def _find_server(self, client: ScheduledApplication) -> tp.Optional[ScheduledApplication]:
        for server in self.servers():
            if server.port != client.peer_port:
                continue
            if client.peer_node is not None and server.node.node_id == client.peer_node.node_id:
                return server
        return None

    def validate(self) -> None:
        """
        Check every start/stop window.

        Raises:
            InvalidScheduleError: On a negative start or start after stop

        A client starting before its peer server, or an application running
        past the simulation stop time, is only logged.
        """
        for app in self.applications:
            if app.start < 0:
                raise InvalidScheduleError(f"Negative start time for {app.describe()}")
            if app.start > app.stop:
                raise InvalidScheduleError(f"Start after stop for {app.describe()}")
            if app.stop > self.context.stop_time:
                logger.warning(
                    f"{app.describe()} outlives the simulation stop time "
                    f"({self.context.stop_time}s)"
                )

        for client in self.clients():
            server = self._find_server(client)
            if server is not None and client.start < server.start:
                logger.warning(
                    f"{client.describe()} starts before its server "
                    f"({server.describe()})"
                )

    def install(self, kernel: "SimulationKernel") -> None:
        """Validate the schedule and install every application in order."""
        self.validate()
        logger.info(
            f"Installing {len(self.servers())} servers and {len(self.clients())} clients"
        )
        for app in self.applications:
            app.handle = kernel.install_application(app)
