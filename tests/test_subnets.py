"""Tests for routed subnet allocation and host subnet arithmetic."""
import pytest

from vlan_automation.client import IpAssignment, PlatformResponseError, SubnetPool
from vlan_automation.engine.subnets import (
    SubnetAllocator,
    build_subnet_pair,
    gateway_address,
    host_address,
    host_subnet,
    is_routed_assignment,
)
from vlan_automation.errors import NoMatchingPool, NoMatchingTag, PoolExhausted


class TestHostSubnet:
    """Tests for /64 arithmetic."""

    def test_cidr_normalized(self):
        assert host_subnet("2602:f937:1:186::/64") == "2602:f937:1:186::/64"

    def test_address_normalized(self):
        assert host_subnet("2602:f937:1:186::2") == "2602:f937:1:186::/64"

    def test_ipv4_rejected(self):
        with pytest.raises(ValueError):
            host_subnet("203.0.113.36")

    def test_gateway_and_host(self):
        assert gateway_address("2602:f937:1:186::/64") == "2602:f937:1:186::1/64"
        assert host_address("2602:f937:1:186::/64") == "2602:f937:1:186::2"

    def test_build_pair(self):
        pair = build_subnet_pair("2602:f937:1:186::/64", None)
        assert pair.routed is None
        assert pair.gateway == "2602:f937:1:186::1/64"


class TestIsRoutedAssignment:
    """Tests for telling routed subnets from host subnets."""

    def test_routed_48(self):
        assert is_routed_assignment(IpAssignment("2602:f937:100::/48", is_subnet=True))

    def test_host_64(self):
        assert not is_routed_assignment(IpAssignment("2602:f937:1:186::/64", is_subnet=True))

    def test_single_address(self):
        assert not is_routed_assignment(IpAssignment("2602:f937:1:186::2"))

    def test_ipv4_subnet(self):
        assert not is_routed_assignment(IpAssignment("203.0.113.0/29", is_subnet=True))


class TestSubnetAllocator:
    """Tests for pool selection and allocation against the fake platform."""

    @pytest.mark.asyncio
    async def test_routed48_selects_40_pool(self, platform):
        allocator = SubnetAllocator(platform)
        pool = await allocator.determine_parent_pool(36)
        assert pool.pool_id == 5
        assert pool.prefixlen == 40

    @pytest.mark.asyncio
    async def test_routed56_selects_48_pool(self, platform):
        platform.tags[36] = ["ROUTED56"]
        platform.pools[36].append(
            SubnetPool(pool_id=9, network="2602:f937:300::/48", prefixlen=48, divisible=True)
        )
        allocator = SubnetAllocator(platform)
        assert (await allocator.determine_parent_pool(36)).pool_id == 9

    @pytest.mark.asyncio
    async def test_non_divisible_pool_ignored(self, platform):
        platform.pools[36] = [
            SubnetPool(pool_id=5, network="2602:f937:100::/40", prefixlen=40, divisible=False)
        ]
        allocator = SubnetAllocator(platform)
        with pytest.raises(NoMatchingPool):
            await allocator.determine_parent_pool(36)

    @pytest.mark.asyncio
    async def test_no_tag(self, platform):
        platform.tags[36] = ["rack-b", "routedxl"]
        allocator = SubnetAllocator(platform)
        with pytest.raises(NoMatchingTag):
            await allocator.determine_parent_pool(36)

    @pytest.mark.asyncio
    async def test_custom_tag_prefix(self, platform):
        platform.tags[36] = ["v6route48"]
        allocator = SubnetAllocator(platform, tag_prefix="v6route")
        assert await allocator.child_prefixlen(36) == 48

    @pytest.mark.asyncio
    async def test_allocate_first_free(self, platform):
        allocator = SubnetAllocator(platform)
        pool = await allocator.determine_parent_pool(36)
        routed = await allocator.allocate(36, pool)
        assert routed == "2602:f937:100::/48"
        assert platform.assigned == [(36, 5, "2602:f937:100::/48")]

    @pytest.mark.asyncio
    async def test_pool_exhausted(self, platform):
        platform.free[5] = []
        allocator = SubnetAllocator(platform)
        pool = await allocator.determine_parent_pool(36)
        with pytest.raises(PoolExhausted):
            await allocator.allocate(36, pool)

    @pytest.mark.asyncio
    async def test_ensure_reuses_existing(self, platform):
        platform.assignments[36].append(IpAssignment("2602:f937:1ff::/48", is_subnet=True))
        allocator = SubnetAllocator(platform)
        assert await allocator.ensure_routed(36) == "2602:f937:1ff::/48"
        assert platform.assigned == []

    @pytest.mark.asyncio
    async def test_ensure_without_tag(self, platform):
        platform.tags[36] = []
        allocator = SubnetAllocator(platform)
        assert await allocator.ensure_routed(36) is None

    @pytest.mark.asyncio
    async def test_ensure_allocates(self, platform):
        allocator = SubnetAllocator(platform)
        assert await allocator.ensure_routed(36) == "2602:f937:100::/48"
        assert await allocator.lookup_routed(36) == "2602:f937:100::/48"

    @pytest.mark.asyncio
    async def test_deallocate(self, platform):
        allocator = SubnetAllocator(platform)
        assert await allocator.deallocate(36, "2602:f937:100::/48") is True
        assert platform.deleted == [(36, "2602:f937:100::/48")]

    @pytest.mark.asyncio
    async def test_deallocate_failure(self, platform):
        platform.delete_error = PlatformResponseError("DELETE", "/x", 404)
        allocator = SubnetAllocator(platform)
        assert await allocator.deallocate(36, "2602:f937:100::/48") is False
