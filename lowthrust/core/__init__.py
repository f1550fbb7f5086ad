"""Core types and utilities for leg evaluation."""

from lowthrust.core.errors import (
    BufferSizeMismatch,
    IncompleteLeg,
    InvalidPhysicalParameter,
    InvalidTimeOrder,
    LegError,
    PropagationFailure,
)
from lowthrust.core.types import (
    Epoch,
    LegConfig,
    Spacecraft,
    SpacecraftState,
    Throttle,
)

__all__ = [
    "BufferSizeMismatch",
    "IncompleteLeg",
    "InvalidPhysicalParameter",
    "InvalidTimeOrder",
    "LegError",
    "PropagationFailure",
    "Epoch",
    "LegConfig",
    "Spacecraft",
    "SpacecraftState",
    "Throttle",
]
