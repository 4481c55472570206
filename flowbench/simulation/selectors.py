"""
Flow selection predicates.

Scenarios rarely want statistics for every flow the kernel observed (routing
or control traffic, reverse acknowledgements). A selector is any callable
taking a FlowKey and returning whether the flow is reported.
"""

import typing as tp

from flowbench.simulation.metrics import FlowKey

FlowSelector = tp.Callable[[FlowKey], bool]


def select_all(flow_key: FlowKey) -> bool:
    return True


def match_flow(
    source: str,
    destination: str,
    source_port: tp.Optional[int] = None,
    destination_port: tp.Optional[int] = None,
    protocol: tp.Optional[int] = None,
) -> FlowSelector:
    """
    Match one direction between two addresses.

    Ports and protocol are only compared when given.
    """

    def predicate(flow_key: FlowKey) -> bool:
        if flow_key.source_address != source:
            return False
        if flow_key.destination_address != destination:
            return False
        if source_port is not None and flow_key.source_port != source_port:
            return False
        if destination_port is not None and flow_key.destination_port != destination_port:
            return False
        if protocol is not None and flow_key.protocol != protocol:
            return False
        return True

    return predicate


def match_pairs(pairs: tp.Iterable[tp.Tuple[str, str]]) -> FlowSelector:
    """Match any (source, destination) address pair in the list."""
    wanted = {(str(src), str(dst)) for src, dst in pairs}

    def predicate(flow_key: FlowKey) -> bool:
        return (flow_key.source_address, flow_key.destination_address) in wanted

    return predicate


def any_of(*selectors: FlowSelector) -> FlowSelector:
    def predicate(flow_key: FlowKey) -> bool:
        return any(selector(flow_key) for selector in selectors)

    return predicate
