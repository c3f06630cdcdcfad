"""MLAG peer detection and LACP role assignment.

Position 0 in a pair is the EVEN side, position 1 the ODD side. A switch
is PRIMARY for a VLAN when the VLAN's parity equals its position, which
spreads the active LACP role evenly over the pair. Removal must compute
the same role so the same mode and priority get torn down.
"""
import logging
from typing import Iterable, Optional

from ..config.schema import LacpRoleSettings, MlagPair, MlagSettings
from .schema import LacpRole, MlagPeerInfo

logger = logging.getLogger(__name__)


def compute_role(vlan_id: int, position: int) -> LacpRole:
    if position not in (0, 1):
        raise ValueError(f"Pair position must be 0 or 1, got {position}")
    return LacpRole.PRIMARY if vlan_id % 2 == position else LacpRole.SECONDARY


def role_settings(role: LacpRole, mlag: MlagSettings) -> LacpRoleSettings:
    return mlag.primary if role is LacpRole.PRIMARY else mlag.secondary


def pair_for_switch(switch_id: int, pairs: Iterable[MlagPair]) -> Optional[MlagPair]:
    """First configured pair containing switch_id."""
    for pair in pairs:
        if pair.position(switch_id) is not None:
            return pair
    return None


def detect_peer(
    switch_id: int,
    connected_switch_ids: Iterable[int],
    pairs: Iterable[MlagPair],
) -> Optional[MlagPeerInfo]:
    """Find the MLAG peer of switch_id among the server's connections.

    Args:
        switch_id: Managed switch
        connected_switch_ids: Switch ids of all the server's connections
        pairs: Configured MLAG pairs

    Returns:
        MlagPeerInfo, or None when MLAG does not apply (single-homed server,
        switch not paired, peer not cabled)
    """
    connected = list(connected_switch_ids)
    if len(connected) < 2:
        logger.debug(f"Switch {switch_id}: server has {len(connected)} connection(s), no MLAG")
        return None

    for index, pair in enumerate(pairs):
        position = pair.position(switch_id)
        if position is None:
            continue
        peer_id = pair.peer_of(switch_id)
        if peer_id in connected:
            logger.debug(
                f"Switch {switch_id}: MLAG peer {peer_id} (pair {index}, position {position})"
            )
            return MlagPeerInfo(
                peer_id=peer_id,
                pair_index=index,
                position=position,
                port_format=pair.port_format,
            )

    logger.debug(f"Switch {switch_id}: no configured MLAG peer among connections")
    return None
