"""Impulsive low-thrust propulsion model for Sims-Flanagan segments."""
from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from lowthrust.core.constants import DEFAULT_CONSTANTS, PhysicalConstants
from lowthrust.core.types import Spacecraft


class ImpulseModel:
    """
    Lumps a thrust arc into a single impulse and tracks propellant use.

    Each segment of duration dt is replaced by the impulse
    dv = (T_max / m) * dt * u, where u is the normalized throttle vector.
    """

    def __init__(self, spacecraft: Spacecraft, constants: PhysicalConstants = DEFAULT_CONSTANTS):
        """
        Initialize impulse model.

        Args:
            spacecraft: Propulsion parameters (thrust in N, Isp in s)
            constants: Physical constants (g0 in m/s^2 for SI runs)
        """
        self.spacecraft = spacecraft
        self.constants = constants

    @property
    def exhaust_velocity(self) -> float:
        """Effective exhaust velocity Isp * g0."""
        return self.spacecraft.isp * self.constants.g0

    def compute_delta_v(
        self, thrust_duration_s: float, spacecraft_mass: float, throttle: ArrayLike
    ) -> NDArray[np.float64]:
        """
        Compute the impulse replacing one thrust segment.

        Args:
            thrust_duration_s: Segment duration in seconds
            spacecraft_mass: Current spacecraft mass
            throttle: Normalized throttle vector

        Returns:
            Delta-V vector
        """
        # F = m * a, so a = F / m
        acceleration = self.spacecraft.thrust / spacecraft_mass
        return acceleration * thrust_duration_s * np.asarray(throttle, dtype=np.float64)

    def deplete_mass(self, spacecraft_mass: float, delta_v: float) -> float:
        """
        Mass after delivering ``delta_v``.

        Uses Tsiolkovsky rocket equation: m1 = m0 * exp(-dv / ve)
        """
        return spacecraft_mass * np.exp(-delta_v / self.exhaust_velocity)

    def inflate_mass(self, spacecraft_mass: float, delta_v: float) -> float:
        """Mass before delivering ``delta_v``, given the mass after it."""
        return spacecraft_mass * np.exp(delta_v / self.exhaust_velocity)

    def compute_propellant_used(self, delta_v: float, spacecraft_mass: float) -> float:
        """Propellant consumed for ``delta_v`` starting at ``spacecraft_mass``."""
        return float(spacecraft_mass - self.deplete_mass(spacecraft_mass, delta_v))


def throttle_constraint(throttle: ArrayLike) -> float:
    """
    Magnitude constraint |u|^2 - 1 of a throttle.

    Non-positive values mean the throttle stays within the rated thrust.
    """
    u = np.asarray(throttle, dtype=np.float64)
    return float(np.dot(u, u) - 1.0)
