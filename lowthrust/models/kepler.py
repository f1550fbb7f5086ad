"""
Two-body state propagation with Lagrange coefficients.

The universal-variable form of Kepler's equation is solved by Newton
iteration, so elliptic, parabolic and hyperbolic orbits share one code path
and negative times of flight propagate backwards.
"""
from __future__ import annotations

from typing import Callable, Tuple

import numpy as np
from numpy.typing import ArrayLike, NDArray

from lowthrust.core.errors import PropagationFailure


# Signature shared by every propagator the leg can drive
Propagator = Callable[
    [ArrayLike, ArrayLike, float, float],
    Tuple[NDArray[np.float64], NDArray[np.float64]],
]

MAX_ITERATIONS = 100
TOLERANCE = 1e-12

# Below this |z| the Stumpff functions are evaluated from their series
_SERIES_THRESHOLD = 1e-3


def stumpff_c(z: float) -> float:
    """Stumpff function C(z) = (1 - cos sqrt(z)) / z."""
    if z > _SERIES_THRESHOLD:
        sz = np.sqrt(z)
        return (1.0 - np.cos(sz)) / z
    if z < -_SERIES_THRESHOLD:
        sz = np.sqrt(-z)
        return (np.cosh(sz) - 1.0) / (-z)
    return 1.0 / 2.0 - z / 24.0 + z * z / 720.0 - z**3 / 40320.0


def stumpff_s(z: float) -> float:
    """Stumpff function S(z) = (sqrt(z) - sin sqrt(z)) / sqrt(z)^3."""
    if z > _SERIES_THRESHOLD:
        sz = np.sqrt(z)
        return (sz - np.sin(sz)) / (z * sz)
    if z < -_SERIES_THRESHOLD:
        sz = np.sqrt(-z)
        return (np.sinh(sz) - sz) / ((-z) * sz)
    return 1.0 / 6.0 - z / 120.0 + z * z / 5040.0 - z**3 / 362880.0


def _initial_guess(r0_vec, v0_vec, r0: float, alpha: float, dt: float, mu: float) -> float:
    """Starting value of the universal anomaly (Vallado, Algorithm 8)."""
    sqrt_mu = np.sqrt(mu)
    if alpha > 1e-12:
        return sqrt_mu * dt * alpha
    if alpha < -1e-12:
        a = 1.0 / alpha
        sign = np.sign(dt)
        denom = np.dot(r0_vec, v0_vec) + sign * np.sqrt(-mu * a) * (1.0 - r0 * alpha)
        arg = (-2.0 * mu * alpha * dt) / denom if denom != 0.0 else np.nan
        if np.isfinite(arg) and arg > 0.0:
            return sign * np.sqrt(-a) * np.log(arg)
    return sqrt_mu * dt / r0


def propagate_lagrangian(
    position: ArrayLike,
    velocity: ArrayLike,
    dt: float,
    mu: float,
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Propagate a Keplerian state by ``dt``.

    Args:
        position: Initial position (any consistent length unit)
        velocity: Initial velocity (length unit per second)
        dt: Time of flight in seconds, negative to propagate backwards
        mu: Central body gravitational parameter (length^3 / s^2)

    Returns:
        (position, velocity) at ``dt`` as new arrays

    Raises:
        PropagationFailure: If the state is degenerate or Kepler's equation
            does not converge.
    """
    r0_vec = np.array(position, dtype=np.float64)
    v0_vec = np.array(velocity, dtype=np.float64)

    if not mu > 0:
        raise PropagationFailure(f"Gravitational parameter must be > 0, got {mu}")
    if dt == 0.0:
        return r0_vec, v0_vec

    r0 = float(np.linalg.norm(r0_vec))
    if r0 == 0.0 or not np.isfinite(r0):
        raise PropagationFailure(f"Cannot propagate from position with norm {r0}")

    sqrt_mu = np.sqrt(mu)
    v0_sq = float(np.dot(v0_vec, v0_vec))
    vr0 = float(np.dot(r0_vec, v0_vec)) / r0
    # Reciprocal semi-major axis: > 0 elliptic, 0 parabolic, < 0 hyperbolic
    alpha = 2.0 / r0 - v0_sq / mu

    chi = _initial_guess(r0_vec, v0_vec, r0, alpha, dt, mu)
    a1 = r0 * vr0 / sqrt_mu
    a2 = 1.0 - alpha * r0

    for _ in range(MAX_ITERATIONS):
        z = alpha * chi * chi
        c = stumpff_c(z)
        s = stumpff_s(z)
        f_chi = a1 * chi * chi * c + a2 * chi**3 * s + r0 * chi - sqrt_mu * dt
        df_chi = a1 * chi * (1.0 - z * s) + a2 * chi * chi * c + r0
        if df_chi == 0.0 or not np.isfinite(df_chi):
            raise PropagationFailure(
                f"Kepler iteration hit a singular derivative (dt={dt}, alpha={alpha})"
            )
        step = f_chi / df_chi
        chi -= step
        if abs(step) <= TOLERANCE * max(1.0, abs(chi)):
            break
    else:
        raise PropagationFailure(
            f"Kepler equation did not converge in {MAX_ITERATIONS} iterations "
            f"(dt={dt}, alpha={alpha})"
        )

    z = alpha * chi * chi
    c = stumpff_c(z)
    s = stumpff_s(z)

    f = 1.0 - chi * chi / r0 * c
    g = dt - chi**3 / sqrt_mu * s
    r_vec = f * r0_vec + g * v0_vec
    r = float(np.linalg.norm(r_vec))
    if r == 0.0 or not np.isfinite(r):
        raise PropagationFailure(f"Propagated position is degenerate (|r|={r})")

    fdot = sqrt_mu / (r * r0) * (alpha * chi**3 * s - chi)
    gdot = 1.0 - chi * chi / r * c
    v_vec = fdot * r0_vec + gdot * v0_vec

    if not (np.all(np.isfinite(r_vec)) and np.all(np.isfinite(v_vec))):
        raise PropagationFailure("Propagated state is not finite")

    return r_vec, v_vec


def circular_velocity(mu: float, radius: float) -> float:
    """Circular orbital speed at ``radius``."""
    return float(np.sqrt(mu / radius))


def orbital_period(mu: float, semi_major_axis: float) -> float:
    """Orbital period in seconds."""
    return float(2 * np.pi * np.sqrt(semi_major_axis**3 / mu))


def specific_energy(position: ArrayLike, velocity: ArrayLike, mu: float) -> float:
    """Specific orbital energy v^2/2 - mu/r."""
    r = np.asarray(position, dtype=np.float64)
    v = np.asarray(velocity, dtype=np.float64)
    return float(np.dot(v, v) / 2.0 - mu / np.linalg.norm(r))
