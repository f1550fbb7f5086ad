"""Core data structures for low-thrust leg evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, Field, field_validator, model_validator

from lowthrust.core.constants import MJD2000_JD, MU_SUN
from lowthrust.core.errors import InvalidPhysicalParameter, InvalidTimeOrder
from lowthrust.core.time_utils import (
    datetime_to_mjd2000,
    mjd2000_to_datetime,
    parse_epoch,
)


def _as_vector3(values, name: str) -> NDArray[np.float64]:
    arr = np.array(values, dtype=np.float64).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"{name} must have 3 components, got {arr.shape[0]}")
    return arr


@dataclass(frozen=True, order=True)
class Epoch:
    """A time instant as a day count from 2000-01-01 00:00:00 UTC (MJD2000)."""

    mjd2000: float = 0.0

    @classmethod
    def from_datetime(cls, dt: datetime) -> "Epoch":
        """Create from a datetime (naive datetimes are taken as UTC)."""
        return cls(datetime_to_mjd2000(dt))

    @classmethod
    def coerce(cls, value: Union["Epoch", float, int, str, datetime]) -> "Epoch":
        """Accept an Epoch, an MJD2000 number, an ISO string or a datetime."""
        if isinstance(value, Epoch):
            return value
        return cls(parse_epoch(value))

    def to_datetime(self) -> datetime:
        """Convert to a UTC datetime."""
        return mjd2000_to_datetime(self.mjd2000)

    @property
    def jd(self) -> float:
        """Julian date."""
        return self.mjd2000 + MJD2000_JD

    def days_until(self, other: "Epoch") -> float:
        """Signed number of days from this epoch to ``other``."""
        return other.mjd2000 - self.mjd2000


@dataclass
class SpacecraftState:
    """Position, velocity and mass of the spacecraft at an instant."""

    position: NDArray[np.float64]
    velocity: NDArray[np.float64]
    mass: float

    def __post_init__(self):
        """Validate state."""
        self.position = _as_vector3(self.position, "position")
        self.velocity = _as_vector3(self.velocity, "velocity")
        self.mass = float(self.mass)
        if not self.mass > 0:
            raise InvalidPhysicalParameter(f"mass must be > 0, got {self.mass}")

    def copy(self) -> "SpacecraftState":
        """Create a copy of this state."""
        return SpacecraftState(
            position=self.position.copy(),
            velocity=self.velocity.copy(),
            mass=self.mass,
        )

    def to_array(self) -> NDArray[np.float64]:
        """Pack as ``(x, y, z, vx, vy, vz, m)``."""
        return np.concatenate([self.position, self.velocity, [self.mass]])

    @classmethod
    def from_array(cls, arr) -> "SpacecraftState":
        """Create from a 7-element ``(r, v, m)`` array."""
        arr = np.asarray(arr, dtype=np.float64)
        if arr.shape != (7,):
            raise ValueError(f"state array must have 7 elements, got {arr.shape}")
        return cls(position=arr[0:3], velocity=arr[3:6], mass=arr[6])


@dataclass
class Throttle:
    """
    One Sims-Flanagan segment: a validity window and a normalized thrust vector.

    The vector is expressed as a fraction of the maximum thrust; a feasible
    throttle has norm <= 1.
    """

    start: Epoch
    end: Epoch
    value: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        """Validate throttle window."""
        self.start = Epoch.coerce(self.start)
        self.end = Epoch.coerce(self.end)
        self.value = _as_vector3(self.value, "throttle value")
        if not self.end.mjd2000 > self.start.mjd2000:
            raise InvalidTimeOrder(
                f"Throttle end ({self.end.mjd2000}) must be after start ({self.start.mjd2000})"
            )

    @property
    def duration_days(self) -> float:
        """Window length in days."""
        return self.end.mjd2000 - self.start.mjd2000

    @property
    def midpoint(self) -> float:
        """Window midpoint as an MJD2000 day count."""
        return (self.start.mjd2000 + self.end.mjd2000) / 2.0

    @property
    def norm(self) -> float:
        """Throttle magnitude."""
        return float(np.linalg.norm(self.value))

    def copy(self) -> "Throttle":
        """Create a copy of this throttle."""
        return Throttle(start=self.start, end=self.end, value=self.value.copy())


@dataclass(frozen=True)
class Spacecraft:
    """Spacecraft propulsion model, constant for the duration of a leg."""

    mass: float  # kg, reference mass
    thrust: float  # N, maximum thrust
    isp: float  # s, specific impulse

    def __post_init__(self):
        """Validate model parameters."""
        for name in ("mass", "thrust", "isp"):
            value = getattr(self, name)
            if not value > 0:
                raise InvalidPhysicalParameter(f"{name} must be > 0, got {value}")


EpochLike = Union[float, str]


class SpacecraftConfig(BaseModel):
    """Spacecraft configuration."""

    mass: float = Field(gt=0)
    thrust: float = Field(gt=0)
    isp: float = Field(gt=0)

    def to_spacecraft(self) -> Spacecraft:
        return Spacecraft(mass=self.mass, thrust=self.thrust, isp=self.isp)


class StateConfig(BaseModel):
    """Boundary state configuration."""

    epoch: EpochLike
    position: list[float] = Field(min_length=3, max_length=3)
    velocity: list[float] = Field(min_length=3, max_length=3)
    mass: float = Field(gt=0)

    @field_validator("epoch")
    @classmethod
    def _check_epoch(cls, v):
        parse_epoch(v)
        return v

    def to_epoch(self) -> Epoch:
        return Epoch.coerce(self.epoch)

    def to_state(self) -> SpacecraftState:
        return SpacecraftState(position=self.position, velocity=self.velocity, mass=self.mass)


class ThrottleConfig(BaseModel):
    """Explicit throttle segment configuration."""

    start: EpochLike
    end: EpochLike
    value: list[float] = Field(min_length=3, max_length=3)

    def to_throttle(self) -> Throttle:
        return Throttle(start=Epoch.coerce(self.start), end=Epoch.coerce(self.end), value=self.value)


class LegConfig(BaseModel):
    """Complete leg definition as read from a configuration file."""

    mu: float = Field(default=MU_SUN, gt=0)
    spacecraft: SpacecraftConfig
    start: StateConfig
    end: StateConfig
    throttles: list[ThrottleConfig] = Field(default_factory=list)
    throttle_vector: Optional[list[float]] = None

    @model_validator(mode="after")
    def _check_throttles(self) -> "LegConfig":
        if self.throttles and self.throttle_vector is not None:
            raise ValueError("Give either 'throttles' or 'throttle_vector', not both")
        if self.throttle_vector is not None and len(self.throttle_vector) % 3 != 0:
            raise ValueError(
                f"throttle_vector length must be a multiple of 3, got {len(self.throttle_vector)}"
            )
        return self

    def config_hash(self) -> str:
        """Generate hash for caching."""
        import hashlib
        import json

        data = self.model_dump()
        return hashlib.sha256(json.dumps(data, sort_keys=True).encode()).hexdigest()[:16]
