"""Tests for the Sims-Flanagan leg evaluator."""

import numpy as np
import pytest

from lowthrust.core.constants import AU, DAY2SEC, MU_SUN, PhysicalConstants
from lowthrust.core.errors import (
    BufferSizeMismatch,
    IncompleteLeg,
    InvalidPhysicalParameter,
    InvalidTimeOrder,
    PropagationFailure,
)
from lowthrust.core.types import Epoch, Spacecraft, SpacecraftState, Throttle
from lowthrust.models.kepler import propagate_lagrangian
from lowthrust.models.leg import Leg

# Canonical units: mu = 1, one "day" = one time unit, g0 = 1
CANONICAL = PhysicalConstants(day2sec=1.0, g0=1.0)
SPACECRAFT = Spacecraft(mass=1000.0, thrust=10.0, isp=10.0)


def _grid_throttles(values, t0=0.0, step=1.0):
    return [
        Throttle(start=Epoch(t0 + k * step), end=Epoch(t0 + (k + 1) * step), value=u)
        for k, u in enumerate(values)
    ]


def _apply_impulse(v, m, duration, u, spacecraft=SPACECRAFT, g0=1.0):
    dv = spacecraft.thrust / m * duration * np.asarray(u, dtype=float)
    return v + dv, m * np.exp(-np.linalg.norm(dv) / (spacecraft.isp * g0))


def _forward_simulate(state, throttles, t_start, t_end, mu=1.0):
    """Coast to each throttle midpoint, fire, and coast to ``t_end``."""
    r, v, m = state.position, state.velocity, state.mass
    t = t_start
    for throttle in throttles:
        r, v = propagate_lagrangian(r, v, throttle.midpoint - t, mu)
        v, m = _apply_impulse(v, m, throttle.duration_days, throttle.value)
        t = throttle.midpoint
    r, v = propagate_lagrangian(r, v, t_end - t, mu)
    return SpacecraftState(position=r, velocity=v, mass=m)


@pytest.fixture
def start_state():
    return SpacecraftState(position=[1.0, 0.0, 0.0], velocity=[0.0, 1.0, 0.0], mass=1000.0)


@pytest.fixture
def coast_leg(start_state):
    """Zero-throttle canonical leg whose end state is the Kepler image of the start."""
    r_f, v_f = propagate_lagrangian(start_state.position, start_state.velocity, 3.0, 1.0)
    leg = Leg(constants=CANONICAL)
    leg.set_spacecraft(SPACECRAFT)
    leg.configure(
        start_epoch=Epoch(0.0),
        start_state=start_state,
        throttles=[],
        end_epoch=Epoch(3.0),
        end_state=SpacecraftState(position=r_f, velocity=v_f, mass=1000.0),
        mu=1.0,
    )
    return leg


class TestLegConfiguration:
    """Test leg construction and mutation."""

    def test_empty_leg(self):
        leg = Leg()

        assert leg.throttle_count() == 0
        assert leg.start_epoch is None
        assert leg.mu is None

    def test_configure_sets_fields(self, coast_leg, start_state):
        assert coast_leg.start_epoch == Epoch(0.0)
        assert coast_leg.end_epoch == Epoch(3.0)
        assert coast_leg.mu == 1.0
        np.testing.assert_array_equal(coast_leg.start_state.position, start_state.position)

    def test_configure_copies_inputs(self, start_state):
        throttles = _grid_throttles([[0.1, 0.0, 0.0]])
        leg = Leg()
        leg.configure(0.0, start_state, throttles, 1.0, start_state, 1.0)

        throttles[0].value[0] = 9.0
        start_state.position[0] = 9.0

        assert leg.get_throttle(0).value[0] == 0.1
        assert leg.start_state.position[0] == 1.0

    @pytest.mark.parametrize("end_epoch", [5.0, 4.0])
    def test_configure_rejects_time_order(self, coast_leg, start_state, end_epoch):
        """A failed configure leaves every field untouched."""
        before_state = coast_leg.end_state

        with pytest.raises(InvalidTimeOrder):
            coast_leg.configure(
                start_epoch=Epoch(5.0),
                start_state=start_state,
                throttles=_grid_throttles([[0.5, 0.0, 0.0]] * 2, t0=5.0),
                end_epoch=Epoch(end_epoch),
                end_state=start_state,
                mu=2.0,
            )

        assert coast_leg.start_epoch == Epoch(0.0)
        assert coast_leg.end_epoch == Epoch(3.0)
        assert coast_leg.throttle_count() == 0
        assert coast_leg.mu == 1.0
        np.testing.assert_array_equal(coast_leg.end_state.position, before_state.position)

    @pytest.mark.parametrize("end_epoch", [float("nan"), "nan"])
    def test_configure_rejects_nan_epoch(self, coast_leg, start_state, end_epoch):
        with pytest.raises(InvalidTimeOrder):
            coast_leg.configure(0.0, start_state, [], end_epoch, start_state, 1.0)

        assert coast_leg.end_epoch == Epoch(3.0)
        assert coast_leg.mu == 1.0

    def test_nan_epoch_set_directly_fails_validation(self, coast_leg):
        coast_leg.set_end_epoch(float("nan"))

        with pytest.raises(InvalidTimeOrder):
            coast_leg.get_mismatch_con()
        with pytest.raises(InvalidTimeOrder):
            coast_leg.set_throttles_from_vector([0.0, 0.0, 0.0])

    @pytest.mark.parametrize("mu", [0.0, -1.0])
    def test_configure_rejects_mu(self, coast_leg, start_state, mu):
        with pytest.raises(InvalidPhysicalParameter):
            coast_leg.configure(0.0, start_state, _grid_throttles([[0, 0, 0]]), 1.0, start_state, mu)

        assert coast_leg.mu == 1.0
        assert coast_leg.end_epoch == Epoch(3.0)
        assert coast_leg.throttle_count() == 0

    def test_set_mu_rejects_non_positive(self):
        leg = Leg()
        with pytest.raises(InvalidPhysicalParameter):
            leg.set_mu(0.0)
        assert leg.mu is None

    def test_setters_any_order(self, start_state):
        leg = Leg(constants=CANONICAL)
        leg.set_end_state(start_state)
        leg.set_throttles(_grid_throttles([[0.0, 0.0, 0.0]] * 2))
        leg.set_mu(1.0)
        leg.set_start_state(start_state)
        leg.set_end_epoch(2.0)
        leg.set_spacecraft(SPACECRAFT)
        leg.set_start_epoch(Epoch(0.0))

        assert leg.throttle_count() == 2
        assert leg.get_mismatch_con().shape == (7,)

    def test_setters_defer_time_order_check(self, start_state):
        """Setters accept inverted epochs; evaluation rejects them."""
        leg = Leg(constants=CANONICAL)
        leg.set_start_epoch(5.0)
        leg.set_end_epoch(1.0)
        leg.set_start_state(start_state)
        leg.set_end_state(start_state)
        leg.set_spacecraft(SPACECRAFT)
        leg.set_mu(1.0)

        with pytest.raises(InvalidTimeOrder):
            leg.get_mismatch_con()

    def test_set_throttle_replaces_one(self, coast_leg):
        coast_leg.set_throttles(_grid_throttles([[0.0, 0.0, 0.0]] * 3))
        coast_leg.set_throttle(1, Throttle(start=1.0, end=2.0, value=[0.0, 0.7, 0.0]))

        assert coast_leg.get_throttle(1).value[1] == 0.7
        assert coast_leg.get_throttle(0).value[1] == 0.0

    def test_throttles_returns_copies(self, coast_leg):
        coast_leg.set_throttles(_grid_throttles([[0.2, 0.0, 0.0]]))
        coast_leg.throttles[0].value[0] = 5.0

        assert coast_leg.get_throttle(0).value[0] == 0.2

    def test_set_throttles_from_vector(self, coast_leg):
        coast_leg.set_throttles_from_vector([0.1, 0.0, 0.0, 0.0, 0.2, 0.0, 0.0, 0.0, 0.3])

        assert coast_leg.throttle_count() == 3
        assert coast_leg.get_throttle(0).start == Epoch(0.0)
        assert coast_leg.get_throttle(1).start.mjd2000 == pytest.approx(1.0)
        assert coast_leg.get_throttle(2).end == Epoch(3.0)
        assert coast_leg.get_throttle(2).value[2] == 0.3

    def test_set_throttles_from_vector_bad_length(self, coast_leg):
        with pytest.raises(ValueError):
            coast_leg.set_throttles_from_vector([0.1, 0.2])

    def test_set_throttles_from_vector_needs_epochs(self):
        with pytest.raises(IncompleteLeg):
            Leg().set_throttles_from_vector([0.0, 0.0, 0.0])

    def test_check_throttle_grid(self, coast_leg):
        assert coast_leg.check_throttle_grid() == []

        coast_leg.set_throttles([
            Throttle(start=-1.0, end=1.0),
            Throttle(start=0.5, end=4.0),
        ])
        issues = coast_leg.check_throttle_grid()

        assert len(issues) == 3


class TestMismatchContract:
    """Test mismatch output contract and error paths."""

    def test_returns_seven_components(self, coast_leg):
        assert coast_leg.get_mismatch_con().shape == (7,)

    def test_fills_buffer(self, coast_leg):
        out = [0.0] * 7
        result = coast_leg.get_mismatch_con(out)

        np.testing.assert_array_equal(out, result)

    @pytest.mark.parametrize("size", [0, 6, 8])
    def test_wrong_buffer_size(self, coast_leg, size):
        out = np.full(size, 42.0)

        with pytest.raises(BufferSizeMismatch):
            coast_leg.get_mismatch_con(out)

        assert np.all(out == 42.0)

    def test_buffer_checked_before_validation(self):
        with pytest.raises(BufferSizeMismatch):
            Leg().get_mismatch_con([0.0] * 3)

    def test_incomplete_leg(self, start_state):
        leg = Leg()
        leg.set_start_state(start_state)

        with pytest.raises(IncompleteLeg, match="spacecraft"):
            leg.get_mismatch_con()

    def test_propagation_failure_surfaces(self):
        leg = Leg(constants=CANONICAL)
        leg.set_spacecraft(SPACECRAFT)
        origin = SpacecraftState(position=[0.0, 0.0, 0.0], velocity=[0.0, 1.0, 0.0], mass=1.0)
        leg.configure(0.0, origin, [], 1.0, origin, 1.0)

        with pytest.raises(PropagationFailure):
            leg.get_mismatch_con()

    def test_no_state_kept_between_calls(self, coast_leg):
        first = coast_leg.get_mismatch_con()
        second = coast_leg.get_mismatch_con()

        np.testing.assert_array_equal(first, second)


class TestMismatchDynamics:
    """Test the forward/backward propagation."""

    def test_coast_closes(self, coast_leg):
        np.testing.assert_allclose(coast_leg.get_mismatch_con(), np.zeros(7), atol=1e-12)

    def test_circular_heliocentric_coast(self):
        """1 AU circular orbit, 100 days, no throttles."""
        v_circ = np.sqrt(MU_SUN / AU)
        theta = v_circ / AU * 100.0 * DAY2SEC
        start = SpacecraftState(position=[AU, 0.0, 0.0], velocity=[0.0, v_circ, 0.0], mass=1000.0)
        end = SpacecraftState(
            position=[AU * np.cos(theta), AU * np.sin(theta), 0.0],
            velocity=[-v_circ * np.sin(theta), v_circ * np.cos(theta), 0.0],
            mass=1000.0,
        )
        leg = Leg()
        leg.set_spacecraft(Spacecraft(mass=1000.0, thrust=0.3, isp=3000.0))
        leg.configure(Epoch(0.0), start, [], Epoch(100.0), end, MU_SUN)

        mismatch = leg.get_mismatch_con()

        assert np.all(np.abs(mismatch[0:3]) / AU < 1e-8)
        assert np.all(np.abs(mismatch[3:6]) / v_circ < 1e-8)
        assert mismatch[6] == 0.0

    def test_zero_throttle_matches_coast(self, coast_leg):
        """A zero-magnitude throttle contributes nothing."""
        coast = coast_leg.get_mismatch_con()
        coast_leg.set_throttles([Throttle(start=0.0, end=3.0, value=[0.0, 0.0, 0.0])])

        np.testing.assert_allclose(coast_leg.get_mismatch_con(), coast, atol=1e-12)

    def test_split_zero_throttles_match_coast(self, coast_leg):
        coast = coast_leg.get_mismatch_con()
        coast_leg.set_throttles_from_vector(np.zeros(3 * 4))

        np.testing.assert_allclose(coast_leg.get_mismatch_con(), coast, atol=1e-12)

    @pytest.mark.parametrize(
        "values",
        [
            [[0.5, 0.2, 0.0]],
            [[0.5, 0.2, 0.0], [0.0, 0.0, 0.0]],
            [[0.0, 0.8, 0.1], [0.3, -0.4, 0.0], [0.0, 0.0, 0.0]],
        ],
    )
    def test_forward_thrust_closes(self, start_state, values):
        """Impulses in the forward half reproduce a forward simulation."""
        throttles = _grid_throttles(values)
        t_end = float(len(values))
        n_fwd = (len(values) + 1) // 2
        end_state = _forward_simulate(start_state, throttles[:n_fwd], 0.0, t_end)

        leg = Leg(constants=CANONICAL)
        leg.set_spacecraft(SPACECRAFT)
        leg.configure(0.0, start_state, throttles, t_end, end_state, 1.0)

        np.testing.assert_allclose(leg.get_mismatch_con(), np.zeros(7), atol=1e-10)

    def test_backward_thrust_closes(self):
        """The backward half removes impulses with the mass after the burn."""
        end_state = SpacecraftState(position=[0.0, 1.1, 0.0], velocity=[-0.9, 0.1, 0.0], mass=900.0)
        throttles = _grid_throttles([[0.0, 0.0, 0.0], [0.0, 0.5, 0.2]])

        # Undo the second throttle the way the backward pass does
        r, v = propagate_lagrangian(end_state.position, end_state.velocity, -0.5, 1.0)
        dv = SPACECRAFT.thrust / end_state.mass * 1.0 * throttles[1].value
        v = v - dv
        m = end_state.mass * np.exp(np.linalg.norm(dv) / SPACECRAFT.isp)
        r, v = propagate_lagrangian(r, v, -1.5, 1.0)
        start = SpacecraftState(position=r, velocity=v, mass=m)

        leg = Leg(constants=CANONICAL)
        leg.set_spacecraft(SPACECRAFT)
        leg.configure(0.0, start, throttles, 2.0, end_state, 1.0)

        np.testing.assert_allclose(leg.get_mismatch_con(), np.zeros(7), atol=1e-10)

    def test_thrust_spends_mass(self, coast_leg):
        """Burning in the forward half leaves the forward mass lighter."""
        coast_leg.set_throttles([Throttle(start=0.0, end=3.0, value=[0.0, 1.0, 0.0])])
        mismatch = coast_leg.get_mismatch_con()

        expected_dv = SPACECRAFT.thrust / 1000.0 * 3.0
        expected_mass = 1000.0 * np.exp(-expected_dv / SPACECRAFT.isp) - 1000.0
        assert mismatch[6] == pytest.approx(expected_mass)
        assert np.linalg.norm(mismatch[3:6]) > 0.0

    def test_segment_timeline(self, start_state):
        """Propagation steps follow the segment midpoints."""
        calls = []

        def free_flight(r, v, dt, mu):
            calls.append(dt)
            return np.asarray(r) + np.asarray(v) * dt, np.array(v, dtype=float)

        leg = Leg(propagator=free_flight, constants=CANONICAL)
        leg.set_spacecraft(SPACECRAFT)
        leg.configure(0.0, start_state, _grid_throttles([[0, 0, 0]] * 3), 3.0, start_state, 1.0)
        leg.get_mismatch_con()

        # forward 0 -> 0.5 -> 1.5, backward 3 -> 2.5, bridge 1.5 -> 2.5
        assert calls == pytest.approx([0.5, 1.0, -0.5, 1.0])

    def test_segment_timeline_even(self, start_state):
        calls = []

        def free_flight(r, v, dt, mu):
            calls.append(dt)
            return np.asarray(r) + np.asarray(v) * dt, np.array(v, dtype=float)

        leg = Leg(propagator=free_flight, constants=CANONICAL)
        leg.set_spacecraft(SPACECRAFT)
        leg.configure(0.0, start_state, _grid_throttles([[0, 0, 0]] * 4), 4.0, start_state, 1.0)
        mismatch = leg.get_mismatch_con()

        assert calls == pytest.approx([0.5, 1.0, -0.5, -1.0, 1.0])
        # Free flight over 4 time units at unit speed along y
        np.testing.assert_allclose(mismatch[0:3], [0.0, 4.0, 0.0])

    def test_day_conversion(self, start_state):
        """Epochs in days are converted with the injected day length."""
        calls = []

        def record(r, v, dt, mu):
            calls.append(dt)
            return np.array(r, dtype=float), np.array(v, dtype=float)

        leg = Leg(propagator=record)
        leg.set_spacecraft(SPACECRAFT)
        leg.configure(10.0, start_state, [], 12.0, start_state, 1.0)
        leg.get_mismatch_con()

        assert calls == [pytest.approx(2.0 * DAY2SEC)]


class TestThrottleConstraints:
    """Test throttle constraint evaluation."""

    def test_length_matches_count(self, coast_leg):
        coast_leg.set_throttles_from_vector(np.full(3 * 5, 0.1))

        assert coast_leg.get_throttles_con().shape == (5,)

    def test_empty(self, coast_leg):
        assert coast_leg.get_throttles_con().shape == (0,)

    def test_values(self, coast_leg):
        coast_leg.set_throttles(_grid_throttles([[1.0, 0.0, 0.0], [0.0, 2.0, 0.0], [0.0, 0.0, 0.5]]))
        con = coast_leg.get_throttles_con()

        assert con[0] == 0.0
        assert con[1] == pytest.approx(3.0)
        assert con[2] == pytest.approx(-0.75)

    def test_single_over_limit_throttle(self):
        """Norm 2 across the whole leg gives 2^2 - 1."""
        leg = Leg()
        leg.set_throttles([Throttle(start=0.0, end=100.0, value=[0.0, 2.0, 0.0])])

        np.testing.assert_allclose(leg.get_throttles_con(), [3.0])

    def test_fills_buffer(self, coast_leg):
        coast_leg.set_throttles_from_vector([0.0, 0.0, 0.0, 1.0, 1.0, 0.0])
        out = np.zeros(2)
        coast_leg.get_throttles_con(out)

        np.testing.assert_allclose(out, [-1.0, 1.0])

    @pytest.mark.parametrize("size", [0, 2, 4])
    def test_wrong_buffer_size(self, coast_leg, size):
        coast_leg.set_throttles_from_vector(np.full(9, 0.1))
        out = np.full(size, 42.0)

        with pytest.raises(BufferSizeMismatch):
            coast_leg.get_throttles_con(out)

        assert np.all(out == 42.0)


class TestDeltaVEstimate:
    """Test the nominal delta-v figure."""

    def test_uses_reference_mass(self, start_state):
        leg = Leg()
        leg.set_spacecraft(Spacecraft(mass=1000.0, thrust=0.5, isp=3000.0))
        leg.set_start_state(SpacecraftState(position=[1.0, 0.0, 0.0], velocity=[0.0, 1.0, 0.0], mass=10.0))
        leg.set_throttles([
            Throttle(start=0.0, end=1.0, value=[0.5, 0.0, 0.0]),
            Throttle(start=1.0, end=3.0, value=[0.0, 0.0, 1.0]),
        ])

        expected = (1.0 * DAY2SEC * 0.5 + 2.0 * DAY2SEC * 1.0) * 0.5 / 1000.0
        assert leg.evaluate_dv() == pytest.approx(expected)

    def test_zero_without_throttles(self):
        leg = Leg()
        leg.set_spacecraft(SPACECRAFT)
        assert leg.evaluate_dv() == 0.0

    def test_needs_spacecraft(self):
        with pytest.raises(IncompleteLeg):
            Leg().evaluate_dv()
