"""Tests for MLAG peer detection and LACP roles."""
import pytest

from vlan_automation.config.schema import MlagPair, MlagSettings
from vlan_automation.engine.mlag import compute_role, detect_peer, pair_for_switch, role_settings
from vlan_automation.engine.schema import LacpRole

PAIRS = (MlagPair(19, 11, "#/#"), MlagPair(23, 25, "#"))


class TestComputeRole:
    """Tests for the parity rule."""

    @pytest.mark.parametrize("vlan_id", range(100, 111))
    def test_exactly_one_primary_per_vlan(self, vlan_id):
        """The two positions always get opposite roles."""
        roles = {compute_role(vlan_id, 0), compute_role(vlan_id, 1)}
        assert roles == {LacpRole.PRIMARY, LacpRole.SECONDARY}

    def test_even_vlan_primary_at_position_0(self):
        assert compute_role(100, 0) == LacpRole.PRIMARY
        assert compute_role(100, 1) == LacpRole.SECONDARY

    def test_odd_vlan_primary_at_position_1(self):
        assert compute_role(101, 1) == LacpRole.PRIMARY
        assert compute_role(101, 0) == LacpRole.SECONDARY

    def test_parity_balance(self):
        """Over a VLAN range each position is PRIMARY for half of the VLANs."""
        primaries = [
            sum(compute_role(v, position) == LacpRole.PRIMARY for v in range(100, 200))
            for position in (0, 1)
        ]
        assert primaries == [50, 50]

    def test_invalid_position(self):
        with pytest.raises(ValueError):
            compute_role(101, 2)


class TestRoleSettings:
    """Tests for mapping roles to LACP values."""

    def test_defaults(self):
        mlag = MlagSettings()
        primary = role_settings(LacpRole.PRIMARY, mlag)
        secondary = role_settings(LacpRole.SECONDARY, mlag)
        assert (primary.lacp_mode, primary.lacp_priority) == ("active", 1)
        assert (secondary.lacp_mode, secondary.lacp_priority) == ("passive", 100)


class TestDetectPeer:
    """Tests for peer detection."""

    def test_peer_found(self):
        peer = detect_peer(25, [25, 23], PAIRS)
        assert peer.peer_id == 23
        assert peer.pair_index == 1
        assert peer.position == 1
        assert peer.port_format == "#"

    def test_symmetric(self):
        peer = detect_peer(23, [25, 23], PAIRS)
        assert peer.peer_id == 25
        assert peer.position == 0

    def test_single_connection(self):
        """A single-homed server has no MLAG."""
        assert detect_peer(25, [25], PAIRS) is None

    def test_peer_not_connected(self):
        assert detect_peer(25, [25, 19], PAIRS) is None

    def test_switch_not_paired(self):
        assert detect_peer(42, [42, 25], PAIRS) is None


class TestPairForSwitch:
    """Tests for pair lookup."""

    def test_member(self):
        assert pair_for_switch(11, PAIRS).port_format == "#/#"

    def test_not_member(self):
        assert pair_for_switch(99, PAIRS) is None
