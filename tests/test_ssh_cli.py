"""Tests for the SSH CLI session with the shell replaced by a script."""
import pytest

from vlan_automation.config.schema import AutomationConfig, ApiSettings, DeviceAccess
from vlan_automation.devices import SSHCLISession, create_session
from vlan_automation.devices import ssh_cli


class ScriptedShell:
    """Replays canned output per command."""

    instances = []

    def __init__(self, host, port, username, password, timeout=30):
        self.host = host
        self.password = password
        self.sent = []
        self.closed = False
        self.replies = {}
        ScriptedShell.instances.append(self)

    async def connect(self):
        pass

    async def close(self):
        self.closed = True

    async def send_command(self, command, timeout=30):
        self.sent.append(command)
        return self.replies.get(command, "")


@pytest.fixture
def access():
    return DeviceAccess(switch_id=25, host="192.0.2.25", password="secret")


@pytest.fixture
def shell(monkeypatch):
    ScriptedShell.instances = []
    monkeypatch.setattr(ssh_cli, "SSHShell", ScriptedShell)
    return ScriptedShell


class TestHasError:
    """Tests for CLI error detection."""

    @pytest.fixture
    def session(self, access):
        return SSHCLISession(access, 36, "automation")

    def test_invalid_input(self, session):
        output = "switchport access vlan 9999\n% Invalid input at '^' marker."
        assert session._has_error(output).startswith("% Invalid input")

    def test_incomplete(self, session):
        assert session._has_error("% Incomplete command")

    def test_clean_output(self, session):
        assert session._has_error("Copy completed successfully.") is None

    def test_percent_mid_line_ignored(self, session):
        assert session._has_error("Utilization 45 % Error-free") is None


class TestSSHCLISession:
    """Tests for the session lifecycle."""

    @pytest.mark.asyncio
    async def test_config_mode_entered_once(self, access, shell):
        async with SSHCLISession(access, 36, "automation") as session:
            assert session.is_open
            await session.execute("vlan 101")
            await session.execute("name VLAN_101")

        (sh,) = shell.instances
        assert sh.sent == ["configure terminal", "vlan 101", "name VLAN_101"]
        assert sh.closed
        assert not session.is_open

    @pytest.mark.asyncio
    async def test_commit_leaves_config_mode_and_saves(self, access, shell):
        session = SSHCLISession(access, 36, "automation")
        await session.open()
        await session.execute("vlan 101")
        result = await session.commit()
        await session.close()

        assert not result.failed
        assert shell.instances[0].sent[-2:] == ["end", "write memory"]

    @pytest.mark.asyncio
    async def test_empty_commit_only_saves(self, access, shell):
        session = SSHCLISession(access, 36, "automation")
        await session.open()
        await session.commit()
        assert shell.instances[0].sent == ["write memory"]

    @pytest.mark.asyncio
    async def test_command_error(self, access, shell):
        session = SSHCLISession(access, 36, "automation")
        await session.open()
        shell.instances[0].replies["vlan 9999"] = "% Invalid input"

        result = await session.execute("vlan 9999")

        assert result.failed
        assert result.error == "% Invalid input"
        assert result.device_id == "switch-25"

    @pytest.mark.asyncio
    async def test_password_passed(self, access, shell):
        session = SSHCLISession(access, 36, "automation")
        await session.open()
        assert shell.instances[0].password == "secret"


class TestCreateSession:
    """Tests for the session factory."""

    def test_known_switch(self, access):
        config = AutomationConfig(api=ApiSettings("https://p"), devices={25: access})
        session = create_session(config, 25, 36, "removal")
        assert isinstance(session, SSHCLISession)
        assert session.action_type == "removal"
        assert session.server_id == 36

    def test_unknown_switch(self):
        config = AutomationConfig(api=ApiSettings("https://p"))
        with pytest.raises(KeyError):
            create_session(config, 25, 36, "automation")
