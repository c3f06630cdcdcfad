"""Tests for the router tool wrapper using a throwaway shell script."""
import pytest

from vlan_automation.config.schema import RouterSettings
from vlan_automation.engine.router import RouterTool
from vlan_automation.engine.schema import Direction

GATEWAY = "2602:f937:1:186::1/64"
ROUTED = "2602:f937:100::/48"


@pytest.fixture
def script(tmp_path):
    """Router tool that records its arguments and exits with $ROUTER_EXIT."""
    path = tmp_path / "router-tool"
    path.write_text(
        "#!/bin/sh\n"
        f'echo "$@" >> "{tmp_path}/calls.txt"\n'
        'echo "gateway $1 done"\n'
        'exit "${ROUTER_EXIT:-0}"\n'
    )
    path.chmod(0o755)
    return path


class TestRouterTool:
    """Tests for RouterTool.run()."""

    @pytest.mark.asyncio
    async def test_create(self, script, tmp_path):
        tool = RouterTool(RouterSettings(path=str(script)))

        result = await tool.run(Direction.CREATE, GATEWAY, ROUTED, 101)

        assert result.invoked and result.success
        assert result.args == ["create", GATEWAY, ROUTED, "101"]
        assert result.returncode == 0
        assert "gateway create done" in result.output
        assert (tmp_path / "calls.txt").read_text().strip() == f"create {GATEWAY} {ROUTED} 101"

    @pytest.mark.asyncio
    async def test_delete(self, script, tmp_path):
        tool = RouterTool(RouterSettings(path=str(script)))
        result = await tool.run(Direction.REMOVE, GATEWAY, ROUTED, 101)
        assert result.args[0] == "delete"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, script, monkeypatch):
        monkeypatch.setenv("ROUTER_EXIT", "3")
        tool = RouterTool(RouterSettings(path=str(script)))

        result = await tool.run(Direction.CREATE, GATEWAY, ROUTED, 101)

        assert result.invoked
        assert not result.success
        assert result.returncode == 3
        assert result.reason == "exit code 3"

    @pytest.mark.asyncio
    async def test_interpreter_prefix(self, script, tmp_path):
        script.chmod(0o644)
        tool = RouterTool(RouterSettings(path=str(script), interpreter="sh"))

        assert tool.command(Direction.CREATE, GATEWAY, ROUTED, 101)[:2] == ["sh", str(script)]
        result = await tool.run(Direction.CREATE, GATEWAY, ROUTED, 101)
        assert result.success

    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path):
        path = tmp_path / "slow-tool"
        path.write_text("#!/bin/sh\nexec sleep 5\n")
        path.chmod(0o755)
        tool = RouterTool(RouterSettings(path=str(path), timeout=0.2))

        result = await tool.run(Direction.CREATE, GATEWAY, ROUTED, 101)

        assert result.invoked
        assert not result.success
        assert result.reason == "timeout"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        tool = RouterTool(RouterSettings())
        result = await tool.run(Direction.CREATE, GATEWAY, ROUTED, 101)
        assert not result.invoked

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        tool = RouterTool(RouterSettings(path=str(tmp_path / "nope")))
        assert not tool.available
        result = await tool.run(Direction.CREATE, GATEWAY, ROUTED, 101)
        assert not result.invoked
