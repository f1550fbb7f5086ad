"""One-shot leg evaluation."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from lowthrust.core.config import build_leg
from lowthrust.core.constants import DEFAULT_CONSTANTS, PhysicalConstants
from lowthrust.core.types import LegConfig
from lowthrust.models.leg import Leg
from lowthrust.models.propulsion import ImpulseModel


logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-8


@dataclass
class LegEvaluation:
    """Feasibility figures for one leg."""

    mismatch: np.ndarray  # (dr, dv, dm) at the meeting epoch
    scaled_mismatch: np.ndarray  # mismatch over the start-state scales
    throttle_constraints: np.ndarray  # |u|^2 - 1 per throttle
    delta_v_estimate: float
    profile: pd.DataFrame  # one row per throttle
    propellant_estimate: float = 0.0  # rocket-equation propellant for delta_v_estimate
    tolerance: float = DEFAULT_TOLERANCE
    grid_issues: list[str] = field(default_factory=list)

    @property
    def dynamics_closed(self) -> bool:
        """True when every scaled mismatch component is within tolerance."""
        return bool(np.all(np.abs(self.scaled_mismatch) <= self.tolerance))

    @property
    def throttles_feasible(self) -> bool:
        """True when no throttle exceeds the rated thrust."""
        return bool(np.all(self.throttle_constraints <= 0.0))

    def is_feasible(self) -> bool:
        """Check whether the leg is a valid low-thrust transfer."""
        return self.dynamics_closed and self.throttles_feasible

    def violation_count(self) -> int:
        """Count throttles exceeding the rated thrust."""
        return int(np.sum(self.throttle_constraints > 0.0))

    def summary(self) -> dict[str, Any]:
        """Plain summary suitable for JSON output."""
        return {
            "mismatch": {
                "position": self.mismatch[0:3].tolist(),
                "velocity": self.mismatch[3:6].tolist(),
                "mass": float(self.mismatch[6]),
            },
            "scaled_mismatch_max": float(np.max(np.abs(self.scaled_mismatch))),
            "throttle_constraints": self.throttle_constraints.tolist(),
            "throttle_violations": self.violation_count(),
            "delta_v_estimate": self.delta_v_estimate,
            "propellant_estimate": self.propellant_estimate,
            "tolerance": self.tolerance,
            "feasible": self.is_feasible(),
            "grid_issues": list(self.grid_issues),
        }


def throttle_profile(leg: Leg) -> pd.DataFrame:
    """
    Tabulate the throttle sequence of a leg.

    Returns:
        DataFrame with window, vector, norm and constraint per throttle
    """
    constraints = leg.get_throttles_con()
    rows = []
    for throttle, constraint in zip(leg.throttles, constraints):
        rows.append({
            "start_mjd2000": throttle.start.mjd2000,
            "end_mjd2000": throttle.end.mjd2000,
            "midpoint_mjd2000": throttle.midpoint,
            "duration_days": throttle.duration_days,
            "ux": throttle.value[0],
            "uy": throttle.value[1],
            "uz": throttle.value[2],
            "norm": throttle.norm,
            "constraint": constraint,
        })
    columns = [
        "start_mjd2000", "end_mjd2000", "midpoint_mjd2000", "duration_days",
        "ux", "uy", "uz", "norm", "constraint",
    ]
    return pd.DataFrame(rows, columns=columns)


def _mismatch_scales(leg: Leg) -> np.ndarray:
    state = leg.start_state
    r_scale = float(np.linalg.norm(state.position)) or 1.0
    v_scale = float(np.linalg.norm(state.velocity)) or 1.0
    return np.array([r_scale] * 3 + [v_scale] * 3 + [state.mass])


def evaluate_leg(leg: Leg, tolerance: float = DEFAULT_TOLERANCE) -> LegEvaluation:
    """
    Evaluate mismatch, throttle constraints and delta-v estimate of a leg.

    Args:
        leg: Fully populated leg
        tolerance: Allowed mismatch relative to the start-state scales

    Returns:
        LegEvaluation with all feasibility figures

    Raises:
        LegError: If the leg cannot be evaluated
    """
    logger.info(f"Evaluating {leg!r}")

    mismatch = leg.get_mismatch_con()
    delta_v = leg.evaluate_dv()
    impulses = ImpulseModel(leg.spacecraft, leg.constants)
    result = LegEvaluation(
        mismatch=mismatch,
        scaled_mismatch=mismatch / _mismatch_scales(leg),
        throttle_constraints=leg.get_throttles_con(),
        delta_v_estimate=delta_v,
        profile=throttle_profile(leg),
        propellant_estimate=impulses.compute_propellant_used(delta_v, leg.spacecraft.mass),
        tolerance=tolerance,
        grid_issues=leg.check_throttle_grid(),
    )

    for issue in result.grid_issues:
        logger.warning(issue)
    if result.violation_count():
        logger.warning(f"{result.violation_count()} throttles exceed the rated thrust")
    logger.info(
        f"Mismatch (scaled max): {np.max(np.abs(result.scaled_mismatch)):.3e}, "
        f"feasible: {result.is_feasible()}"
    )
    return result


def evaluate_config(
    config: LegConfig,
    tolerance: float = DEFAULT_TOLERANCE,
    constants: PhysicalConstants = DEFAULT_CONSTANTS,
) -> LegEvaluation:
    """Build a leg from configuration and evaluate it."""
    return evaluate_leg(build_leg(config, constants), tolerance=tolerance)
