"""Provisioning engine - one workflow for IP assignment and removal.

Assign:
1. Skip if no IPv6 host subnet, or the event was raised by our own API calls
2. Discover switch connections, require exactly one automation-enabled switch
3. Resolve MLAG peers (once per switch)
4. Read the VLAN from the automation-enabled port and validate it
5. Resolve host + routed subnet (allocating the routed subnet if needed)
6. Configure the automation-enabled switch, then its peers
7. Create the gateway on the router

Remove runs the same steps with the removal templates, configures peers
before the automation-enabled switch, deletes the gateway and releases
the routed subnet.
"""
import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from ..client import DeviceDetails, PlatformClient, PlatformError, SwitchConnection
from ..config.schema import AutomationConfig
from ..devices import create_session
from ..errors import AutomationError, MisconfigurationError, PortUnresolved, VlanLookupError
from .executor import ConfigApplicator, SessionFactory
from .mlag import compute_role, detect_peer, pair_for_switch
from .renderer import ConfigRenderer, SwitchContext
from .resolver import resolve_port, resolve_vendor
from .router import RouterTool
from .schema import (
    ApplyResult,
    Direction,
    MlagPeerInfo,
    Outcome,
    RouterResult,
    ServerAddressingEvent,
    SubnetPair,
    WorkflowResult,
)
from .subnets import HOST_PREFIXLEN, SubnetAllocator, build_subnet_pair, host_subnet
from .vlans import VlanLocator, check_vlan

logger = logging.getLogger(__name__)


@dataclass
class _EventRun:
    """Per-event working state."""
    event: ServerAddressingEvent
    direction: Direction
    result: WorkflowResult
    connections: list[SwitchConnection] = field(default_factory=list)
    peers: dict[int, Optional[MlagPeerInfo]] = field(default_factory=dict)
    details: dict[int, DeviceDetails] = field(default_factory=dict)

    @property
    def server_id(self) -> int:
        return self.event.server_id

    @property
    def connected_ids(self) -> list[int]:
        return [c.switch_id for c in self.connections]

    def connection(self, switch_id: int) -> Optional[SwitchConnection]:
        for conn in self.connections:
            if conn.switch_id == switch_id:
                return conn
        return None


class _Skip(Exception):
    """Nothing to do for this event."""


def select_host_subnet(event: ServerAddressingEvent) -> Optional[str]:
    """The /64 host subnet named by the event, if any.

    A /64 CIDR wins over a bare address; other prefix lengths are routed
    subnets and never count as host subnets.
    """
    bare = None
    for entry in event.ipv6_entries:
        if "/" in entry:
            if entry.rsplit("/", 1)[1] == str(HOST_PREFIXLEN):
                return host_subnet(entry)
        elif bare is None:
            bare = entry
    return host_subnet(bare) if bare else None


class ProvisioningEngine:
    """
    Orchestrates VLAN provisioning across an MLAG pair and the router.

    Usage:
        async with PlatformClient(config.api) as client:
            engine = ProvisioningEngine(config, client)
            result = await engine.assign(event)
    """

    def __init__(
        self,
        config: AutomationConfig,
        client: PlatformClient,
        session_factory: Optional[SessionFactory] = None,
        router: Optional[RouterTool] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the engine.

        Args:
            config: Loaded configuration
            client: Platform API client
            session_factory: Device session factory (defaults to SSH sessions
                from the config's device inventory)
            router: Router tool wrapper
            clock: Source of the timestamps written into templates
        """
        self.config = config
        self.client = client
        self.clock = clock
        self.vlans = VlanLocator(client, config.vlans)
        self.subnets = SubnetAllocator(client, config.subnet_tag_prefix)
        self.renderer = ConfigRenderer(config)
        self.applicator = ConfigApplicator(
            session_factory or functools.partial(create_session, config),
            debug_level=config.debug_level,
        )
        self.router = router or RouterTool(config.router)

    async def assign(self, event: ServerAddressingEvent) -> WorkflowResult:
        return await self.handle(event, Direction.CREATE)

    async def remove(self, event: ServerAddressingEvent) -> WorkflowResult:
        return await self.handle(event, Direction.REMOVE)

    async def handle(self, event: ServerAddressingEvent, direction: Direction) -> WorkflowResult:
        """Process one IP lifecycle event. Never raises."""
        result = WorkflowResult(server_id=event.server_id, direction=direction)
        run = _EventRun(event=event, direction=direction, result=result)
        logger.info(f"=== Server {event.server_id}: processing IP {direction.value} ===")

        try:
            await self._run(run)
        except _Skip as e:
            result.outcome = Outcome.SKIPPED
            result.reason = str(e)
            logger.info(f"Server {event.server_id}: skipping, {e}")
        except AutomationError as e:
            result.outcome = Outcome.FAILED
            result.reason = str(e)
            logger.error(f"Server {event.server_id}: {type(e).__name__}: {e}")
        except PlatformError as e:
            result.outcome = Outcome.FAILED
            result.reason = f"Platform API error: {e}"
            logger.error(f"Server {event.server_id}: {result.reason}")
        except Exception as e:
            result.outcome = Outcome.FAILED
            result.reason = f"Unexpected error: {e}"
            logger.exception(f"Server {event.server_id}: unexpected error")

        logger.info(
            f"=== Server {event.server_id}: {direction.value} {result.outcome.value}"
            f"{' (' + result.reason + ')' if result.reason else ''} ==="
        )
        return result

    async def _run(self, run: _EventRun) -> None:
        event, direction, result = run.event, run.direction, run.result

        # Step 1: cheap no-op checks
        if event.skip_automation:
            raise _Skip("performVlanActions=none")
        if not event.ips:
            raise _Skip("no IPs in event")
        if not event.ipv6_entries:
            raise _Skip("no IPv6 address in event")
        host = select_host_subnet(event)
        if host is None:
            raise _Skip("no IPv6 host subnet in event")
        logger.info(f"Server {run.server_id}: host subnet {host}")

        # Step 2: switches
        automation_switch, queue = await self._discover_switches(run)

        # Step 3-4: VLAN
        if direction is Direction.CREATE:
            port_name = await self._port_name(run, automation_switch)
            vlan_id = await self.vlans.assigned_vlan(automation_switch.switch_id, port_name)
            restrictions = await self.vlans.restrictions(run.server_id)
        else:
            restrictions = await self.vlans.restrictions(run.server_id)
            vlan_range = None
            if restrictions is not None and restrictions.has_range:
                vlan_range = (restrictions.range_start, restrictions.range_end)
            vlan_id = await self._removal_vlan(run, queue, vlan_range)
        result.vlan_id = vlan_id
        check_vlan(vlan_id, restrictions)

        # Step 5: subnets
        if direction is Direction.CREATE:
            routed = await self.subnets.ensure_routed(run.server_id)
        else:
            routed = await self.subnets.lookup_routed(run.server_id)
        subnets = build_subnet_pair(host, routed)
        result.subnets = subnets
        logger.info(
            f"Server {run.server_id}: VLAN {vlan_id}, host {subnets.host}, "
            f"routed {subnets.routed or 'none'}, gateway {subnets.gateway}"
        )

        # Step 6: switches, in queue order
        ipv4 = await self._ipv4_address(run)
        for conn in queue:
            apply_result = await self._configure_switch(run, conn, vlan_id, subnets, ipv4)
            result.switches.append(apply_result)

        # Step 7: router
        result.router = await self._run_router(direction, vlan_id, subnets)

        if direction is Direction.REMOVE and routed:
            result.deallocated = await self.subnets.deallocate(run.server_id, routed)

        self._set_outcome(result)

    async def _discover_switches(self, run: _EventRun) -> tuple[SwitchConnection, list[SwitchConnection]]:
        """Find the automation-enabled switch and build the processing queue.

        Returns:
            Tuple of (automation-enabled connection, ordered queue)
        """
        run.connections = await self.client.get_connections(run.server_id)
        if not run.connections:
            raise _Skip("no switch connections")

        capable = [c for c in run.connections if c.automation_available]
        if not capable:
            raise _Skip("no automation-capable switch connection")
        logger.info(f"Server {run.server_id}: {len(capable)} automation-capable switch(es)")

        enabled = [c for c in capable if c.automation_enabled]
        if len(enabled) > 1:
            raise MisconfigurationError(
                f"{len(enabled)} switches have automation enabled "
                f"({[c.switch_id for c in enabled]}), expected exactly one"
            )
        if not enabled:
            raise MisconfigurationError("No switch has automation enabled")
        automation_switch = enabled[0]

        others: list[SwitchConnection] = []
        if self.config.mlag.enabled:
            peer = self._peer(run, automation_switch.switch_id)
            peer_conn = run.connection(peer.peer_id) if peer else None
            if peer_conn:
                others.append(peer_conn)
                logger.info(f"Including MLAG peer: switch {peer.peer_id}")
        chosen = {automation_switch.switch_id} | {c.switch_id for c in others}
        skipped = [c.switch_id for c in capable if c.switch_id not in chosen]
        if skipped:
            logger.info(f"Not configuring switch(es) {skipped}: neither automation-enabled nor MLAG peer")

        if run.direction is Direction.CREATE:
            queue = [automation_switch] + others
        else:
            queue = others + [automation_switch]
        logger.info(
            f"Processing queue: {', '.join(f'switch {c.switch_id}' for c in queue)}"
        )
        return automation_switch, queue

    def _peer(self, run: _EventRun, switch_id: int) -> Optional[MlagPeerInfo]:
        """MLAG peer of a switch, computed once per event."""
        if switch_id not in run.peers:
            run.peers[switch_id] = detect_peer(
                switch_id, run.connected_ids, self.config.mlag.pairs
            )
        return run.peers[switch_id]

    async def _device_details(self, run: _EventRun, switch_id: int) -> DeviceDetails:
        if switch_id not in run.details:
            run.details[switch_id] = await self.client.get_device_details(switch_id)
        return run.details[switch_id]

    async def _port_name(self, run: _EventRun, conn: SwitchConnection) -> str:
        """Interface name of the server port on a switch."""
        if conn.port_name:
            return conn.port_name
        if conn.port_id is not None:
            details = await self._device_details(run, conn.switch_id)
            iface = details.interface_by_port_id(conn.port_id)
            if iface:
                return iface.name
        raise VlanLookupError(
            f"Switch {conn.switch_id}: cannot map port id {conn.port_id} to an interface"
        )

    def _port_format(self, switch_id: int) -> str:
        pair = pair_for_switch(switch_id, self.config.mlag.pairs)
        return pair.port_format if pair else "#"

    async def _removal_vlan(
        self,
        run: _EventRun,
        queue: list[SwitchConnection],
        vlan_range: Optional[tuple[int, int]],
    ) -> int:
        """Read the VLAN from the first switch in the queue that still has it."""
        errors = []
        for conn in queue:
            try:
                port_name = await self._port_name(run, conn)
                return await self.vlans.removal_vlan(
                    conn.switch_id, port_name, self._port_format(conn.switch_id), vlan_range
                )
            except VlanLookupError as e:
                logger.warning(str(e))
                errors.append(str(e))
        raise VlanLookupError("; ".join(errors) or "no switch to read the VLAN from")

    async def _ipv4_address(self, run: _EventRun) -> str:
        for entry in run.event.ips:
            if ":" not in entry:
                return entry.split("/")[0]
        try:
            assignments = await self.client.get_ip_assignments(run.server_id)
        except PlatformError as e:
            logger.warning(f"Server {run.server_id}: could not look up IPv4 address: {e}")
            return ""
        for assignment in assignments:
            if not assignment.is_ipv6 and not assignment.is_subnet:
                return assignment.ip.split("/")[0]
        return ""

    async def _configure_switch(
        self,
        run: _EventRun,
        conn: SwitchConnection,
        vlan_id: int,
        subnets: SubnetPair,
        ipv4: str,
    ) -> ApplyResult:
        """Render and apply the configuration of one switch.

        Missing device details, an unknown vendor or a session that will
        not open abort the event (raised). A port that cannot be parsed on
        an MLAG switch fails only this switch.
        """
        switch_id = conn.switch_id
        details = await self._device_details(run, switch_id)
        vendor = resolve_vendor(
            details.management_vendor,
            self.config.template_map(removal=run.direction is Direction.REMOVE),
            self.config.vendor_suffix,
        )
        template = self.renderer.load_template(vendor, run.direction)
        port_name = await self._port_name(run, conn)
        logger.info(f"[Switch {switch_id}] {details.name} ({vendor}), port {port_name}")

        peer = self._peer(run, switch_id) if self.config.mlag.enabled else None
        port_format = peer.port_format if peer else self._port_format(switch_id)
        port = resolve_port(port_name, self.config.interface_patterns, port_format)
        role = None
        if peer:
            if port is None:
                error = PortUnresolved(port_name)
                logger.error(f"[Switch {switch_id}] {error}, skipping MLAG configuration")
                return ApplyResult(switch_id=switch_id, error=str(error))
            role = compute_role(vlan_id, peer.position)
            logger.info(
                f"[Switch {switch_id}] MLAG peer {peer.peer_id}, position {peer.position}, "
                f"role {role.value}"
            )

        ctx = SwitchContext(
            switch_id=switch_id,
            server_id=run.server_id,
            vlan_id=vlan_id,
            port_name=port_name,
            subnets=subnets,
            port=port,
            peer=peer,
            role=role,
            ipv4_address=ipv4,
        )
        rendered, values = self.renderer.render(template, ctx, run.direction, self.clock())
        return await self.applicator.apply(
            switch_id, run.server_id, run.direction, rendered, values, role
        )

    async def _run_router(self, direction: Direction, vlan_id: int, subnets: SubnetPair) -> RouterResult:
        if vlan_id in self.config.vlans.reserved:
            logger.warning(f"VLAN {vlan_id} is reserved, not touching the router")
            return RouterResult(invoked=False, reason=f"VLAN {vlan_id} reserved")
        if not subnets.routed:
            logger.info("No routed subnet, not touching the router")
            return RouterResult(invoked=False, reason="no routed subnet")
        return await self.router.run(direction, subnets.gateway, subnets.routed, vlan_id)

    def _set_outcome(self, result: WorkflowResult) -> None:
        failed = [s.switch_id for s in result.switches if not s.success]
        if result.switches and len(failed) == len(result.switches):
            result.outcome = Outcome.FAILED
            result.reason = f"configuration failed on switch(es) {failed}"
            return

        problems = []
        if failed:
            problems.append(f"configuration failed on switch(es) {failed}")
        if result.router and result.router.invoked and not result.router.success:
            problems.append(f"router {result.router.reason}")
        if result.deallocated is False:
            problems.append("routed subnet not released")

        if problems:
            result.outcome = Outcome.PARTIAL
            result.reason = "; ".join(problems)
        else:
            result.outcome = Outcome.COMPLETED
