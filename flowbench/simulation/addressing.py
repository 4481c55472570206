"""
Subnet allocation for topology links.

Each link built for a scenario receives its own subnet, carved in order from
a private address pool. The default pool reproduces the classic 10.1.N.0/24
numbering: link 0 gets 10.1.1.0/24, link 1 gets 10.1.2.0/24 and so on.
"""

import ipaddress
import typing as tp

from loguru import logger

from flowbench.simulation.errors import AddressSpaceExhaustedError, ConfigurationError


class AddressAllocator:
    """
    Hands out non-overlapping subnets keyed by a monotonically increasing
    link index.

    Args:
        pool: Private address block to split (e.g. "10.1.0.0/16")
        prefix_length: Prefix length of each link subnet
        first_subnet: Number of leading subnets of the pool to skip
    """

    def __init__(
        self,
        pool: str = "10.1.0.0/16",
        prefix_length: int = 24,
        first_subnet: int = 1,
    ):
        try:
            self.pool = ipaddress.IPv4Network(pool)
        except ValueError as e:
            raise ConfigurationError(f"Invalid address pool '{pool}': {e}") from e
        if prefix_length < self.pool.prefixlen or prefix_length > 30:
            raise ConfigurationError(
                f"Subnet prefix /{prefix_length} does not fit pool {self.pool}"
            )
        if first_subnet < 0:
            raise ConfigurationError(f"first_subnet must be >= 0, got {first_subnet}")

        self.prefix_length = prefix_length
        self.first_subnet = first_subnet
        self._capacity = 2 ** (prefix_length - self.pool.prefixlen) - first_subnet
        self._allocated: tp.List[ipaddress.IPv4Network] = []
        self._last_index: tp.Optional[int] = None

    @property
    def capacity(self) -> int:
        """Number of link subnets the pool can provide."""
        return max(self._capacity, 0)

    def allocate(self, link_index: int) -> ipaddress.IPv4Network:
        """
        Return the subnet for a link.

        Raises:
            ConfigurationError: If the index is negative or not greater than
                the previously allocated index
            AddressSpaceExhaustedError: If the pool has no subnet left
        """
        if link_index < 0:
            raise ConfigurationError(f"Link index must be >= 0, got {link_index}")
        if self._last_index is not None and link_index <= self._last_index:
            raise ConfigurationError(
                f"Link index {link_index} already passed "
                f"(last allocated index is {self._last_index})"
            )
        if link_index >= self.capacity:
            raise AddressSpaceExhaustedError(
                link_index,
                str(self.pool),
                f"only {self.capacity} /{self.prefix_length} subnets available",
            )

        block_size = 2 ** (32 - self.prefix_length)
        base = int(self.pool.network_address) + (
            self.first_subnet + link_index
        ) * block_size
        subnet = ipaddress.IPv4Network((base, self.prefix_length))

        self._allocated.append(subnet)
        self._last_index = link_index
        logger.debug(f"Link {link_index} -> {subnet}")
        return subnet

    def next_subnet(self) -> ipaddress.IPv4Network:
        """Allocate the subnet following the last allocated one."""
        index = 0 if self._last_index is None else self._last_index + 1
        return self.allocate(index)

    def allocated(self) -> tp.List[ipaddress.IPv4Network]:
        return list(self._allocated)

    @staticmethod
    def host_addresses(
        subnet: ipaddress.IPv4Network,
        count: int,
        link_index: int = -1,
    ) -> tp.List[ipaddress.IPv4Address]:
        """
        First `count` usable host addresses of a subnet, starting at .1.

        Raises:
            AddressSpaceExhaustedError: If the subnet holds fewer hosts
        """
        usable = subnet.num_addresses - 2
        if count > usable:
            raise AddressSpaceExhaustedError(
                link_index,
                str(subnet),
                f"{count} interfaces requested, {usable} host addresses available",
            )
        first = int(subnet.network_address) + 1
        return [ipaddress.IPv4Address(first + i) for i in range(count)]
