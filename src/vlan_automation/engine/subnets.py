"""Routed subnet allocation and host subnet arithmetic.

A server asks for a routed subnet through a tag such as ``routed48``. The
/48 is carved from a divisible pool exactly 8 bits shorter (/40), so every
pool yields 256 children.
"""
import ipaddress
import logging
import re
from typing import Optional

from ..client import PlatformClient, PlatformError, SubnetPool
from ..client.models import IpAssignment
from ..errors import NoMatchingPool, NoMatchingTag, PoolExhausted
from .schema import SubnetPair

logger = logging.getLogger(__name__)

# Parent pool prefix = child prefix - POOL_SPLIT_BITS
POOL_SPLIT_BITS = 8
HOST_PREFIXLEN = 64


def host_subnet(entry: str) -> str:
    """Normalize an address or CIDR from an event to its /64 network."""
    address = ipaddress.ip_interface(entry.strip()).ip
    if address.version != 6:
        raise ValueError(f"Not an IPv6 entry: {entry}")
    return str(ipaddress.ip_network(f"{address}/{HOST_PREFIXLEN}", strict=False))


def gateway_address(host: str) -> str:
    """First address of the host subnet in CIDR form, e.g. 2001:db8::1/64."""
    network = ipaddress.ip_network(host, strict=False)
    return f"{network.network_address + 1}/{network.prefixlen}"


def host_address(host: str) -> str:
    """Address handed to the server itself, e.g. 2001:db8::2."""
    network = ipaddress.ip_network(host, strict=False)
    return str(network.network_address + 2)


def is_routed_assignment(assignment: IpAssignment) -> bool:
    """IPv6 subnet assignments other than the /64 host subnet are routed."""
    return (
        assignment.is_ipv6
        and assignment.is_subnet
        and assignment.prefixlen is not None
        and assignment.prefixlen != HOST_PREFIXLEN
    )


def build_subnet_pair(host: str, routed: Optional[str]) -> SubnetPair:
    return SubnetPair(
        host=host,
        routed=routed,
        gateway=gateway_address(host),
        host_address=host_address(host),
    )


class SubnetAllocator:
    """Find, allocate and release a server's routed subnet."""

    def __init__(self, client: PlatformClient, tag_prefix: str = "routed"):
        self.client = client
        self.tag_pattern = re.compile(rf"^{re.escape(tag_prefix)}(\d{{1,3}})$", re.IGNORECASE)

    async def child_prefixlen(self, server_id: int) -> int:
        """Prefix length requested by the server's routed tag.

        Raises:
            NoMatchingTag: server has no routed tag
        """
        tags = await self.client.get_server_tags(server_id)
        for tag in tags:
            match = self.tag_pattern.match(tag.strip())
            if match:
                logger.debug(f"Server {server_id}: tag '{tag}' asks for /{match.group(1)}")
                return int(match.group(1))
        raise NoMatchingTag(f"Server {server_id} has no routed subnet tag (tags: {tags})")

    async def determine_parent_pool(self, server_id: int) -> SubnetPool:
        """Pick the pool the routed subnet is carved from.

        Raises:
            NoMatchingTag: server wants no routed subnet
            NoMatchingPool: no divisible pool with prefix child - 8
        """
        child = await self.child_prefixlen(server_id)
        wanted = child - POOL_SPLIT_BITS

        pools = await self.client.get_assignable_subnets(server_id)
        for pool in pools:
            if pool.divisible and pool.prefixlen == wanted:
                logger.info(
                    f"Server {server_id}: using pool {pool.pool_id} ({pool.network}) for /{child}"
                )
                return pool

        raise NoMatchingPool(
            f"Server {server_id}: no divisible /{wanted} pool among "
            f"{[p.network for p in pools]}"
        )

    async def allocate(self, server_id: int, pool: SubnetPool) -> str:
        """Assign the pool's first free child subnet to the server.

        Raises:
            PoolExhausted: pool has no free child left
            PlatformError: API call failed
        """
        child = pool.prefixlen + POOL_SPLIT_BITS
        candidates = await self.client.get_assignable_ips(server_id, pool.pool_id, child)
        for candidate in candidates:
            if candidate.endswith(f"/{child}"):
                await self.client.assign_subnet(server_id, pool.pool_id, candidate)
                logger.info(f"Server {server_id}: allocated routed subnet {candidate}")
                return candidate

        raise PoolExhausted(f"Pool {pool.pool_id} ({pool.network}) has no free /{child}")

    async def lookup_routed(self, server_id: int) -> Optional[str]:
        """Routed subnet already recorded against the server, if any."""
        assignments = await self.client.get_ip_assignments(server_id)
        for assignment in assignments:
            if is_routed_assignment(assignment):
                return assignment.ip
        return None

    async def ensure_routed(self, server_id: int) -> Optional[str]:
        """Reuse the recorded routed subnet or allocate one.

        Returns:
            Routed CIDR, or None if the server wants none
        """
        existing = await self.lookup_routed(server_id)
        if existing:
            logger.info(f"Server {server_id}: reusing routed subnet {existing}")
            return existing

        try:
            pool = await self.determine_parent_pool(server_id)
        except NoMatchingTag as e:
            logger.info(f"{e}, continuing without routed subnet")
            return None
        return await self.allocate(server_id, pool)

    async def deallocate(self, server_id: int, routed: str) -> bool:
        """Delete the routed subnet assignment. Returns False on API failure."""
        try:
            await self.client.delete_assignment(server_id, routed)
        except PlatformError as e:
            logger.error(f"Server {server_id}: failed to release routed subnet {routed}: {e}")
            return False
        logger.info(f"Server {server_id}: released routed subnet {routed}")
        return True
