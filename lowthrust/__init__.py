"""Sims-Flanagan low-thrust leg evaluation."""

from lowthrust.engine import evaluate_leg
from lowthrust.models.leg import Leg

__version__ = "0.1.0"
__all__ = ["Leg", "evaluate_leg"]
