"""
Sims-Flanagan low-thrust leg.

A leg transfers a spacecraft from an initial to a final state in a fixed
time. The thrust arc is replaced by one impulse per throttle segment, applied
at the segment midpoint, with Keplerian coasts in between. The leg is
feasible when :meth:`Leg.get_mismatch_con` returns all zeros and
:meth:`Leg.get_throttles_con` returns only non-positive values.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from lowthrust.core.constants import DEFAULT_CONSTANTS, PhysicalConstants
from lowthrust.core.errors import (
    BufferSizeMismatch,
    IncompleteLeg,
    InvalidPhysicalParameter,
    InvalidTimeOrder,
)
from lowthrust.core.types import Epoch, Spacecraft, SpacecraftState, Throttle
from lowthrust.models.kepler import Propagator, propagate_lagrangian
from lowthrust.models.propulsion import ImpulseModel, throttle_constraint


logger = logging.getLogger(__name__)

MISMATCH_SIZE = 7

EpochInput = Union[Epoch, float, str]


def _check_mu(mu: float) -> float:
    mu = float(mu)
    if not mu > 0:
        raise InvalidPhysicalParameter(f"Gravitational parameter must be > 0, got {mu}")
    return mu


def _check_buffer(out, expected: int) -> None:
    if out is not None and len(out) != expected:
        raise BufferSizeMismatch(expected, len(out))


class Leg:
    """
    A low-thrust trajectory leg as a series of impulsive manoeuvres.

    The leg is a mutable record: construct it empty, then populate it with
    :meth:`configure` or the individual setters in any order. Setters only
    validate their own field; the cross-field checks run once at the start of
    every mismatch evaluation. Nothing is cached between evaluations.

    Units must be consistent: positions and velocities in the units of ``mu``
    (length^3/s^2), epochs in days, thrust in mass*length/s^2 with ``g0`` in
    length/s^2.
    """

    def __init__(
        self,
        propagator: Propagator = propagate_lagrangian,
        constants: PhysicalConstants = DEFAULT_CONSTANTS,
    ):
        """
        Initialize an empty leg.

        Args:
            propagator: Kepler propagator ``(r, v, dt, mu) -> (r, v)``
            constants: Day length and standard gravity used for bookkeeping
        """
        self.propagator = propagator
        self.constants = constants

        self._t_i: Optional[Epoch] = None
        self._x_i: Optional[SpacecraftState] = None
        self._t_f: Optional[Epoch] = None
        self._x_f: Optional[SpacecraftState] = None
        self._throttles: List[Throttle] = []
        self._spacecraft: Optional[Spacecraft] = None
        self._mu: Optional[float] = None

    def configure(
        self,
        start_epoch: EpochInput,
        start_state: SpacecraftState,
        throttles: Iterable[Throttle],
        end_epoch: EpochInput,
        end_state: SpacecraftState,
        mu: float,
    ) -> None:
        """
        Replace boundary conditions and throttles in one step.

        Everything is validated before any field is assigned, so a failed
        call leaves the leg exactly as it was.

        Raises:
            InvalidTimeOrder: If ``end_epoch`` is not after ``start_epoch``
            InvalidPhysicalParameter: If ``mu`` is not positive
        """
        t_i = Epoch.coerce(start_epoch)
        t_f = Epoch.coerce(end_epoch)
        if not t_f.mjd2000 > t_i.mjd2000:
            raise InvalidTimeOrder(
                f"Final epoch ({t_f.mjd2000}) is not after initial epoch ({t_i.mjd2000})"
            )
        mu = _check_mu(mu)
        new_throttles = [t.copy() for t in throttles]
        x_i = start_state.copy()
        x_f = end_state.copy()

        self._t_i, self._x_i = t_i, x_i
        self._t_f, self._x_f = t_f, x_f
        self._throttles = new_throttles
        self._mu = mu

        logger.debug(
            f"Leg configured: {t_i.mjd2000} -> {t_f.mjd2000} days, "
            f"{len(new_throttles)} throttles"
        )
        for issue in self.check_throttle_grid():
            logger.warning(issue)

    def set_spacecraft(self, spacecraft: Spacecraft) -> None:
        """Set the propulsion model used to convert throttles into impulses."""
        self._spacecraft = spacecraft

    def set_mu(self, mu: float) -> None:
        """Set the central body gravitational parameter."""
        self._mu = _check_mu(mu)

    def set_throttles(self, throttles: Iterable[Throttle]) -> None:
        """Replace the throttle sequence."""
        self._throttles = [t.copy() for t in throttles]

    def set_throttle(self, index: int, throttle: Throttle) -> None:
        """Replace the throttle at ``index``."""
        self._throttles[index] = throttle.copy()

    def set_throttles_from_vector(self, values: ArrayLike) -> None:
        """
        Lay throttles on a uniform grid spanning the leg.

        Args:
            values: Flat decision vector (x1, y1, z1, ..., xn, yn, zn)

        Raises:
            IncompleteLeg: If the leg epochs are not set
            InvalidTimeOrder: If the leg epochs are not ordered
            ValueError: If the vector length is not a multiple of 3
        """
        values = np.asarray(values, dtype=np.float64).reshape(-1)
        if values.size % 3 != 0:
            raise ValueError(f"Throttle vector length must be a multiple of 3, got {values.size}")
        if self._t_i is None or self._t_f is None:
            raise IncompleteLeg("Leg epochs must be set before laying out throttles")
        if not self._t_f.mjd2000 > self._t_i.mjd2000:
            raise InvalidTimeOrder(
                f"Final epoch ({self._t_f.mjd2000}) is not after initial epoch ({self._t_i.mjd2000})"
            )

        n_seg = values.size // 3
        grid = np.linspace(self._t_i.mjd2000, self._t_f.mjd2000, n_seg + 1)
        self._throttles = [
            Throttle(start=Epoch(grid[k]), end=Epoch(grid[k + 1]), value=values[3 * k:3 * k + 3])
            for k in range(n_seg)
        ]

    def set_start_epoch(self, epoch: EpochInput) -> None:
        self._t_i = Epoch.coerce(epoch)

    def set_end_epoch(self, epoch: EpochInput) -> None:
        self._t_f = Epoch.coerce(epoch)

    def set_start_state(self, state: SpacecraftState) -> None:
        self._x_i = state.copy()

    def set_end_state(self, state: SpacecraftState) -> None:
        self._x_f = state.copy()

    @property
    def start_epoch(self) -> Optional[Epoch]:
        return self._t_i

    @property
    def end_epoch(self) -> Optional[Epoch]:
        return self._t_f

    @property
    def start_state(self) -> Optional[SpacecraftState]:
        return None if self._x_i is None else self._x_i.copy()

    @property
    def end_state(self) -> Optional[SpacecraftState]:
        return None if self._x_f is None else self._x_f.copy()

    @property
    def spacecraft(self) -> Optional[Spacecraft]:
        return self._spacecraft

    @property
    def mu(self) -> Optional[float]:
        return self._mu

    @property
    def throttles(self) -> List[Throttle]:
        """Copies of the throttle sequence."""
        return [t.copy() for t in self._throttles]

    def get_throttle(self, index: int) -> Throttle:
        return self._throttles[index].copy()

    def throttle_count(self) -> int:
        """Number of throttle segments."""
        return len(self._throttles)

    def validate(self) -> None:
        """
        Check that the leg can be evaluated.

        Raises:
            IncompleteLeg: If a boundary state, epoch, spacecraft or mu is missing
            InvalidTimeOrder: If the final epoch is not after the initial epoch
        """
        missing = [
            name
            for name, value in (
                ("start epoch", self._t_i),
                ("start state", self._x_i),
                ("end epoch", self._t_f),
                ("end state", self._x_f),
                ("spacecraft", self._spacecraft),
                ("mu", self._mu),
            )
            if value is None
        ]
        if missing:
            raise IncompleteLeg(f"Leg is missing: {', '.join(missing)}")
        if not self._t_f.mjd2000 > self._t_i.mjd2000:
            raise InvalidTimeOrder(
                f"Final epoch ({self._t_f.mjd2000}) is not after initial epoch ({self._t_i.mjd2000})"
            )

    def check_throttle_grid(self) -> List[str]:
        """
        Report throttles that overlap, are out of order or leave the leg window.

        These are not errors: the mismatch is still computed, but the result
        rarely describes a physical trajectory.
        """
        issues = []
        previous_end = None
        for index, throttle in enumerate(self._throttles):
            if previous_end is not None and throttle.start.mjd2000 < previous_end:
                issues.append(f"Throttle {index} starts before throttle {index - 1} ends")
            previous_end = throttle.end.mjd2000
        if self._throttles and self._t_i is not None and self._t_f is not None:
            if self._throttles[0].start.mjd2000 < self._t_i.mjd2000:
                issues.append("First throttle starts before the leg start epoch")
            if self._throttles[-1].end.mjd2000 > self._t_f.mjd2000:
                issues.append("Last throttle ends after the leg end epoch")
        return issues

    def get_mismatch_con(self, out: Optional[Sequence[float]] = None) -> NDArray[np.float64]:
        """
        Evaluate the state mismatch at the leg mid-point.

        The initial state is propagated through the first half of the
        throttles, the final state backwards through the second half, and
        the forward state then coasts to the epoch the backward pass stopped
        at. The difference between the two is the mismatch.

        Args:
            out: Optional buffer of length 7 to receive the result

        Returns:
            Array ``(dx, dy, dz, dvx, dvy, dvz, dm)``

        Raises:
            BufferSizeMismatch: If ``out`` does not have length 7
            IncompleteLeg: If the leg is not fully populated
            PropagationFailure: If a Kepler propagation fails
        """
        _check_buffer(out, MISMATCH_SIZE)
        self.validate()

        day2sec = self.constants.day2sec
        impulses = ImpulseModel(self._spacecraft, self.constants)
        mu = self._mu

        n_seg = len(self._throttles)
        n_seg_fwd = (n_seg + 1) // 2
        n_seg_back = n_seg // 2

        # Forward propagation
        r_fwd = self._x_i.position.copy()
        v_fwd = self._x_i.velocity.copy()
        m_fwd = self._x_i.mass
        current_time_fwd = self._t_i.mjd2000 * day2sec
        for throttle in self._throttles[:n_seg_fwd]:
            thrust_duration = throttle.duration_days * day2sec
            manoeuvre_time = throttle.midpoint * day2sec
            r_fwd, v_fwd = self.propagator(r_fwd, v_fwd, manoeuvre_time - current_time_fwd, mu)
            current_time_fwd = manoeuvre_time

            dv = impulses.compute_delta_v(thrust_duration, m_fwd, throttle.value)
            v_fwd = v_fwd + dv
            m_fwd = impulses.deplete_mass(m_fwd, float(np.linalg.norm(dv)))

        # Backward propagation, last throttle first
        r_back = self._x_f.position.copy()
        v_back = self._x_f.velocity.copy()
        m_back = self._x_f.mass
        current_time_back = self._t_f.mjd2000 * day2sec
        for throttle in reversed(self._throttles[n_seg - n_seg_back:]):
            thrust_duration = throttle.duration_days * day2sec
            manoeuvre_time = throttle.midpoint * day2sec
            # Negative time of flight
            r_back, v_back = self.propagator(r_back, v_back, manoeuvre_time - current_time_back, mu)
            current_time_back = manoeuvre_time

            dv = impulses.compute_delta_v(thrust_duration, m_back, throttle.value)
            v_back = v_back - dv
            m_back = impulses.inflate_mass(m_back, float(np.linalg.norm(dv)))

        # Coast the forward state to the epoch where the backward pass stopped
        r_fwd, v_fwd = self.propagator(r_fwd, v_fwd, current_time_back - current_time_fwd, mu)

        mismatch = np.empty(MISMATCH_SIZE)
        mismatch[0:3] = r_fwd - r_back
        mismatch[3:6] = v_fwd - v_back
        mismatch[6] = m_fwd - m_back

        if out is not None:
            out[:] = mismatch
        return mismatch

    def get_throttles_con(self, out: Optional[Sequence[float]] = None) -> NDArray[np.float64]:
        """
        Evaluate the throttle magnitude constraints |u_i|^2 - 1.

        Args:
            out: Optional buffer with one slot per throttle

        Returns:
            Array of constraint values, feasible where <= 0

        Raises:
            BufferSizeMismatch: If ``out`` length differs from the throttle count
        """
        _check_buffer(out, len(self._throttles))
        constraints = np.array(
            [throttle_constraint(t.value) for t in self._throttles], dtype=np.float64
        )
        if out is not None:
            out[:] = constraints
        return constraints

    def evaluate_dv(self) -> float:
        """
        Rough delta-v figure for the throttle sequence.

        This is not the delta-v actually delivered: every segment is scaled
        by the spacecraft reference mass instead of the depleted mass, so
        the estimate is low whenever propellant is burnt. Use it as a cheap
        ranking heuristic only.

        Raises:
            IncompleteLeg: If no spacecraft is set
        """
        if self._spacecraft is None:
            raise IncompleteLeg("Leg is missing: spacecraft")
        sc = self._spacecraft
        day2sec = self.constants.day2sec
        return float(
            sum(t.duration_days * day2sec * t.norm * sc.thrust / sc.mass for t in self._throttles)
        )

    def __repr__(self) -> str:
        t_i = None if self._t_i is None else self._t_i.mjd2000
        t_f = None if self._t_f is None else self._t_f.mjd2000
        return f"Leg(t_i={t_i}, t_f={t_f}, throttles={len(self._throttles)}, mu={self._mu})"
