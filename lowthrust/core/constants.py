"""Physical constants shared by the propagator and the leg evaluator."""

from __future__ import annotations

from dataclasses import dataclass

# Seconds per day
DAY2SEC = 86400.0

# Standard gravity (m/s^2)
G0 = 9.80665

# Astronomical unit (m)
AU = 149597870691.0

# Sun gravitational parameter (m^3/s^2)
MU_SUN = 1.32712440018e20

# Julian date of the MJD2000 origin (2000-01-01 00:00:00)
MJD2000_JD = 2451544.5


@dataclass(frozen=True)
class PhysicalConstants:
    """Constants injected into a leg so tests can run in canonical units."""

    day2sec: float = DAY2SEC
    g0: float = G0


DEFAULT_CONSTANTS = PhysicalConstants()
