"""Shared fakes for the platform API, device sessions and the router tool."""
from pathlib import Path
from typing import Optional

import pytest

from vlan_automation.client import (
    DeviceDetails,
    DeviceInterface,
    IpAssignment,
    PlatformRequestError,
    PortVlan,
    SubnetDetails,
    SubnetPool,
    SwitchConnection,
)
from vlan_automation.config import parse_config
from vlan_automation.devices.base import DeviceSession
from vlan_automation.engine.schema import RouterResult
from vlan_automation.utils.connection import CommandResult

ASSIGN_TEMPLATE = """!
! Server {SERVER_ID} - VLAN {VLAN_ID}
!
vlan {VLAN_ID}
   name {VLAN_NAME}
interface {PORT_NAME}
   description {PORT_DESCRIPTION}
   switchport access vlan {VLAN_ID}
   {LACP_CONFIG}
{PORT_CHANNEL_CONFIG}
"""

REMOVE_TEMPLATE = """!
! Server {SERVER_ID} - remove VLAN {VLAN_ID}
!
interface {PORT_NAME}
   {LACP_CONFIG_REMOVAL}
   no switchport access vlan {VLAN_ID}
{PORT_CHANNEL_CONFIG_REMOVAL}
no vlan {VLAN_ID}
"""


class FakePlatform:
    """In-memory stand-in for PlatformClient."""

    def __init__(self):
        self.device_id = "platform"
        self.has_token = True
        self.connections: dict[int, list[SwitchConnection]] = {}
        self.details: dict[int, DeviceDetails] = {}
        self.assignments: dict[int, list[IpAssignment]] = {}
        self.subnets: dict[int, SubnetDetails] = {}
        self.tags: dict[int, list[str]] = {}
        self.pools: dict[int, list[SubnetPool]] = {}
        self.free: dict[int, list[str]] = {}
        self.assigned: list[tuple[int, int, str]] = []
        self.deleted: list[tuple[int, str]] = []
        self.detail_failures = 0
        self.detail_calls = 0
        self.delete_error: Optional[Exception] = None

    async def get_connections(self, server_id):
        return list(self.connections.get(server_id, []))

    async def get_device_details(self, switch_id, lookup=False):
        self.detail_calls += 1
        if self.detail_failures > 0:
            self.detail_failures -= 1
            raise PlatformRequestError(f"GET /networkDevices/{switch_id} timed out")
        return self.details[switch_id]

    async def get_ip_assignments(self, server_id):
        return list(self.assignments.get(server_id, []))

    async def get_subnet_details(self, subnet_id):
        return self.subnets[subnet_id]

    async def get_server_tags(self, server_id):
        return list(self.tags.get(server_id, []))

    async def get_assignable_subnets(self, server_id):
        return list(self.pools.get(server_id, []))

    async def get_assignable_ips(self, server_id, pool_id, prefixlen):
        return [ip for ip in self.free.get(pool_id, []) if ip.endswith(f"/{prefixlen}")]

    async def assign_subnet(self, server_id, pool_id, subnet):
        self.assigned.append((server_id, pool_id, subnet))
        self.free[pool_id].remove(subnet)
        self.assignments.setdefault(server_id, []).append(
            IpAssignment(ip=subnet, is_subnet=True, subnet_id=pool_id)
        )

    async def delete_assignment(self, server_id, ip):
        if self.delete_error:
            raise self.delete_error
        self.deleted.append((server_id, ip))
        self.assignments[server_id] = [
            a for a in self.assignments.get(server_id, []) if a.ip != ip
        ]


class FakeSession(DeviceSession):
    """Records commands instead of sending them."""

    def __init__(self, switch_id, server_id, action_type, fail_on=None,
                 fail_open=False, fail_commit=False, fail_initial_commit=False):
        super().__init__(switch_id, server_id, action_type)
        self.fail_on = fail_on
        self.fail_open = fail_open
        self.fail_commit = fail_commit
        self.fail_initial_commit = fail_initial_commit
        self.commands: list[str] = []
        self.commits = 0
        self.closed = False

    async def open(self):
        if self.fail_open:
            raise ConnectionError(f"{self.device_id} unreachable")
        self._open = True

    async def execute(self, command):
        self.commands.append(command)
        if self.fail_on and self.fail_on in command:
            return CommandResult(
                success=False,
                output="% Invalid input",
                error="% Invalid input",
                device_id=self.device_id,
                command=command,
            )
        return CommandResult(success=True, device_id=self.device_id, command=command)

    async def commit(self):
        self.commits += 1
        failing = self.fail_initial_commit if self.commits == 1 else self.fail_commit
        if failing:
            return CommandResult(success=False, error="commit rejected", device_id=self.device_id)
        return CommandResult(success=True, device_id=self.device_id, command="write memory")

    async def close(self):
        self.closed = True
        self._open = False


class SessionFactory:
    """Creates FakeSessions and keeps them per switch id."""

    def __init__(self):
        self.sessions: dict[int, list[FakeSession]] = {}
        self.options: dict[int, dict] = {}

    def configure(self, switch_id, **options):
        self.options[switch_id] = options

    def __call__(self, switch_id, server_id, action_type):
        session = FakeSession(switch_id, server_id, action_type, **self.options.get(switch_id, {}))
        self.sessions.setdefault(switch_id, []).append(session)
        return session

    def commands(self, switch_id) -> list[str]:
        return [c for s in self.sessions.get(switch_id, []) for c in s.commands]

    @property
    def order(self) -> list[int]:
        return list(self.sessions)


class FakeRouter:
    """Stand-in for RouterTool that records invocations."""

    def __init__(self, success=True):
        self.success = success
        self.calls: list[list[str]] = []

    async def run(self, direction, gateway, routed, vlan_id):
        args = ["create" if direction.value == "create" else "delete", gateway, routed, str(vlan_id)]
        self.calls.append(args)
        return RouterResult(
            invoked=True,
            success=self.success,
            args=args,
            returncode=0 if self.success else 1,
            reason="" if self.success else "exit code 1",
        )


def arista_details(switch_id, port_name="Ethernet39", vlans=(), description=""):
    return DeviceDetails(
        switch_id=switch_id,
        name=f"arista-{switch_id}",
        management_vendor="aristaSsh",
        interfaces=(
            DeviceInterface(
                name=port_name,
                port_type="ethernet",
                description=description,
                port_id=1000 + switch_id,
                vlans=tuple(vlans),
            ),
        ),
    )


def access_vlan(vlan_id):
    return PortVlan(vlan_id=vlan_id, access=True)


@pytest.fixture
def template_dir(tmp_path) -> Path:
    """Directory with a minimal arista assign/remove template pair."""
    directory = tmp_path / "templates"
    directory.mkdir()
    (directory / "arista.txt").write_text(ASSIGN_TEMPLATE)
    (directory / "arista-removal.txt").write_text(REMOVE_TEMPLATE)
    return directory


@pytest.fixture
def raw_config(template_dir) -> dict:
    """Config mapping for the server 36 MLAG setup."""
    return {
        "api": {"base_url": "https://platform.test", "token": "secret"},
        "templates": {"arista": str(template_dir / "arista.txt")},
        "removal_templates": {"arista": str(template_dir / "arista-removal.txt")},
        "vlans": {"reserved": [1], "lookup_attempts": 3, "lookup_delay": 0},
        "mlag": {"enabled": True, "pairs": [[23, 25, "#"], [19, 11, "#/#"]]},
    }


@pytest.fixture
def config(raw_config, tmp_path):
    return parse_config(raw_config, base_dir=tmp_path)


@pytest.fixture
def platform() -> FakePlatform:
    """Platform state for server 36 cabled to switches 25 and 23."""
    fake = FakePlatform()
    fake.connections[36] = [
        SwitchConnection(
            switch_id=25,
            port_id=1025,
            port_name="Ethernet39",
            automation_enabled=True,
            automation_available=True,
        ),
        SwitchConnection(
            switch_id=23,
            port_id=1023,
            port_name="Ethernet39",
            automation_enabled=False,
            automation_available=True,
        ),
    ]
    fake.details[25] = arista_details(25, vlans=[access_vlan(101)])
    fake.details[23] = arista_details(23)
    fake.assignments[36] = [
        IpAssignment(ip="2602:f937:1:186::/64", is_subnet=True, subnet_id=7, vlan_automation=True),
        IpAssignment(ip="203.0.113.36", is_subnet=False),
    ]
    fake.subnets[7] = SubnetDetails(subnet_id=7, range_start=100, range_end=200)
    fake.tags[36] = ["rack-b", "routed48"]
    fake.pools[36] = [
        SubnetPool(pool_id=4, network="2602:f937:200::/44", prefixlen=44, divisible=True),
        SubnetPool(pool_id=5, network="2602:f937:100::/40", prefixlen=40, divisible=True),
    ]
    fake.free[5] = ["2602:f937:100::/48", "2602:f937:101::/48"]
    return fake


@pytest.fixture
def sessions() -> SessionFactory:
    return SessionFactory()


@pytest.fixture
def router() -> FakeRouter:
    return FakeRouter()


@pytest.fixture
def failing_router() -> FakeRouter:
    return FakeRouter(success=False)
