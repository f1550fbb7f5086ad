"""Errors raised when a leg cannot be evaluated at all.

A leg that evaluates but is infeasible (non-zero mismatch, positive throttle
constraint) is a valid result and never raises.
"""

from __future__ import annotations


class LegError(Exception):
    """Base class for leg evaluation failures."""


class InvalidTimeOrder(LegError, ValueError):
    """An end epoch is not strictly after its start epoch."""


class InvalidPhysicalParameter(LegError, ValueError):
    """A gravitational parameter, thrust, Isp or mass is not positive."""


class BufferSizeMismatch(LegError, ValueError):
    """A caller-provided output buffer has the wrong length."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Output buffer has length {actual}, expected {expected}")
        self.expected = expected
        self.actual = actual


class PropagationFailure(LegError, RuntimeError):
    """The Kepler propagator could not produce a state."""


class IncompleteLeg(LegError, ValueError):
    """Evaluation was requested before the leg was fully populated."""
