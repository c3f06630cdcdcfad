"""Async client for the server-management platform API.

All endpoints live under ``{base_url}/api`` and answer ``{"result": ...}``.
Requests are authenticated with a bearer token.
"""
import logging
from typing import Any, Optional

import httpx

from ..config.schema import ApiSettings
from ..utils.logging_config import timed
from .errors import (
    PlatformParseError,
    PlatformRequestError,
    PlatformResponseError,
)
from .models import (
    DeviceDetails,
    IpAssignment,
    ServerInfo,
    SubnetDetails,
    SubnetPool,
    SwitchConnection,
)

logger = logging.getLogger(__name__)

# Tells the platform not to fire the IP lifecycle events for this change
SUPPRESS_VLAN_ACTIONS = "none"


class PlatformClient:
    """Thin typed wrapper around the platform's REST endpoints.

    Usage:
        async with PlatformClient(config.api) as client:
            connections = await client.get_connections(36)
    """

    def __init__(self, settings: ApiSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.device_id = "platform"
        headers = {"Accept": "application/json"}
        if settings.token:
            headers["Authorization"] = f"Bearer {settings.token}"

        self._http = httpx.AsyncClient(
            base_url=f"{settings.base_url}/api",
            headers=headers,
            timeout=httpx.Timeout(settings.timeout, connect=settings.connect_timeout),
            verify=settings.verify_tls,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def has_token(self) -> bool:
        return bool(self.settings.token)

    def _lookup_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.settings.lookup_timeout, connect=self.settings.connect_timeout)

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        timeout: Optional[httpx.Timeout] = None,
    ) -> Any:
        """Send a request and return the ``result`` member of the body.

        Raises:
            PlatformRequestError: transport failure or timeout
            PlatformResponseError: non-2xx status
            PlatformParseError: body is not JSON
        """
        kwargs: dict[str, Any] = {}
        if json is not None:
            kwargs["json"] = json
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise PlatformRequestError(f"{method} {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise PlatformRequestError(f"{method} {path} failed: {e}") from e

        logger.debug(f"{method} {path} -> {response.status_code}")
        if not response.is_success:
            raise PlatformResponseError(method, path, response.status_code, response.text)

        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError as e:
            raise PlatformParseError(path, f"invalid JSON ({e})", response.text) from e

        if isinstance(body, dict) and "result" in body:
            return body["result"]
        return body

    @staticmethod
    def _expect(path: str, value: Any, kind: type) -> Any:
        if value is None:
            return kind()
        if not isinstance(value, kind):
            raise PlatformParseError(path, f"expected {kind.__name__}, got {type(value).__name__}")
        return value

    # === Servers ===

    @timed("get_server")
    async def get_server(self, server_id: int) -> ServerInfo:
        path = f"/servers/{server_id}"
        result = self._expect(path, await self._request("GET", path), dict)
        return ServerInfo.from_api(server_id, result)

    async def get_server_tags(self, server_id: int) -> list[str]:
        """Get the tag names attached to a server."""
        server = await self.get_server(server_id)
        return server.tags

    @timed("get_connections")
    async def get_connections(self, server_id: int) -> list[SwitchConnection]:
        """Get the switch ports a server is cabled to."""
        path = f"/servers/{server_id}/connections"
        items = self._expect(path, await self._request("GET", path), list)
        connections = []
        for item in items:
            connection = SwitchConnection.from_api(item)
            if connection:
                connections.append(connection)
        return connections

    # === Network devices ===

    @timed("get_device_details")
    async def get_device_details(self, switch_id: int, lookup: bool = False) -> DeviceDetails:
        """Get switch identity and per-interface VLAN state.

        Args:
            switch_id: Platform id of the switch
            lookup: Use the longer timeout reserved for VLAN lookups
        """
        path = f"/networkDevices/{switch_id}/extendedDetails"
        timeout = self._lookup_timeout() if lookup else None
        result = self._expect(path, await self._request("GET", path, timeout=timeout), dict)
        return DeviceDetails.from_api(switch_id, result)

    # === IP assignments and subnets ===

    @timed("get_ip_assignments")
    async def get_ip_assignments(self, server_id: int) -> list[IpAssignment]:
        path = f"/servers/{server_id}/ipassignments"
        items = self._expect(path, await self._request("GET", path, timeout=self._lookup_timeout()), list)
        return [IpAssignment.from_api(item) for item in items if isinstance(item, dict)]

    @timed("get_subnet_details")
    async def get_subnet_details(self, subnet_id: int) -> SubnetDetails:
        path = f"/subnets/{subnet_id}/withDetails"
        result = self._expect(path, await self._request("GET", path, timeout=self._lookup_timeout()), dict)
        return SubnetDetails.from_api(subnet_id, result)

    @timed("get_assignable_subnets")
    async def get_assignable_subnets(self, server_id: int) -> list[SubnetPool]:
        path = f"/servers/{server_id}/ipassignments/getAssignableSubnets"
        items = self._expect(path, await self._request("GET", path), list)
        pools = []
        for item in items:
            pool = SubnetPool.from_api(item) if isinstance(item, dict) else None
            if pool:
                pools.append(pool)
        return pools

    @timed("get_assignable_ips")
    async def get_assignable_ips(self, server_id: int, pool_id: int, prefixlen: int) -> list[str]:
        """Get free child subnets of a pool, in the platform's order.

        Args:
            server_id: Server the subnet is meant for
            pool_id: Parent pool id
            prefixlen: Prefix length of the child subnets wanted
        """
        path = f"/servers/{server_id}/ipassignments/getAssignableIpsOfSubnet"
        body = {"subnetId": pool_id, "cidr": prefixlen}
        items = self._expect(path, await self._request("POST", path, json=body), list)

        candidates = []
        for item in items:
            ip = item.get("ip") if isinstance(item, dict) else item
            if not ip:
                continue
            ip = str(ip)
            candidates.append(ip if "/" in ip else f"{ip}/{prefixlen}")
        return candidates

    @timed("assign_subnet")
    async def assign_subnet(self, server_id: int, pool_id: int, subnet: str) -> None:
        """Record a subnet against a server without triggering VLAN automation."""
        path = f"/servers/{server_id}/ipassignments"
        body = {
            "subnetId": pool_id,
            "ip": subnet,
            "performVlanActions": SUPPRESS_VLAN_ACTIONS,
        }
        await self._request("POST", path, json=body)
        logger.info(f"Assigned {subnet} to server {server_id}")

    @timed("delete_assignment")
    async def delete_assignment(self, server_id: int, ip: str) -> None:
        """Delete an IP assignment without triggering VLAN automation."""
        path = f"/servers/{server_id}/ipassignments/0"
        body = {"ip": ip, "performVlanActions": SUPPRESS_VLAN_ACTIONS}
        await self._request("DELETE", path, json=body)
        logger.info(f"Deleted assignment {ip} from server {server_id}")
