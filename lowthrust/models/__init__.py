"""Propagation, propulsion and leg models."""
from __future__ import annotations

from lowthrust.models.kepler import propagate_lagrangian
from lowthrust.models.leg import Leg
from lowthrust.models.propulsion import ImpulseModel, throttle_constraint

__all__ = [
    "propagate_lagrangian",
    "Leg",
    "ImpulseModel",
    "throttle_constraint",
]
