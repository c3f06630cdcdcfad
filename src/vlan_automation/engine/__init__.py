"""Provisioning engine."""
from .engine import ProvisioningEngine
from .schema import (
    ApplyResult,
    Direction,
    LacpRole,
    Outcome,
    ServerAddressingEvent,
    WorkflowResult,
)

__all__ = [
    "ProvisioningEngine",
    "ApplyResult",
    "Direction",
    "LacpRole",
    "Outcome",
    "ServerAddressingEvent",
    "WorkflowResult",
]
