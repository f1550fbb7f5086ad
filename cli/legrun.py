"""CLI entrypoint for low-thrust leg evaluation."""
from __future__ import annotations

import json
import logging
import sys

import click
import numpy as np
import yaml
from pydantic import ValidationError

from lowthrust.core.config import load_leg_config, save_leg_config, setup_logging
from lowthrust.core.constants import AU, DAY2SEC, MU_SUN
from lowthrust.core.errors import LegError
from lowthrust.core.types import LegConfig
from lowthrust.engine import DEFAULT_TOLERANCE, evaluate_config
from lowthrust.models.kepler import circular_velocity, orbital_period


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, verbose):
    """Sims-Flanagan low-thrust leg evaluator CLI."""
    ctx.ensure_object(dict)
    level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level)


@cli.command()
@click.option("--leg", "-l", "leg_file", required=True, type=click.Path(exists=True), help="Leg file (YAML or JSON)")
@click.option("--tolerance", "-t", type=float, default=DEFAULT_TOLERANCE, help="Scaled mismatch tolerance")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.option("--output", "-o", type=click.Path(), help="Write the JSON result to a file")
def evaluate(leg_file, tolerance, as_json, output):
    """Evaluate mismatch and throttle constraints of a leg."""
    logger = logging.getLogger(__name__)

    try:
        config = load_leg_config(leg_file)
        result = evaluate_config(config, tolerance=tolerance)
    except (LegError, ValidationError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Leg evaluation failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if output:
        with open(output, "w") as f:
            json.dump(result.summary(), f, indent=2)
        click.echo(f"Result written to: {output}")

    if as_json:
        click.echo(json.dumps(result.summary(), indent=2))
        return

    summary = result.summary()
    click.echo("\n=== Leg Evaluation ===")
    click.echo(f"Throttles: {len(result.throttle_constraints)}")
    click.echo("Mismatch position: " + ", ".join(f"{x:.6e}" for x in summary["mismatch"]["position"]))
    click.echo("Mismatch velocity: " + ", ".join(f"{x:.6e}" for x in summary["mismatch"]["velocity"]))
    click.echo(f"Mismatch mass: {summary['mismatch']['mass']:.6e}")
    click.echo(f"Scaled mismatch (max): {summary['scaled_mismatch_max']:.3e}")
    click.echo(f"Throttle violations: {summary['throttle_violations']}")
    click.echo(f"Delta-V estimate: {result.delta_v_estimate:.3f}")
    click.echo(f"Propellant estimate: {result.propellant_estimate:.3f}")
    click.echo(f"Feasible: {'yes' if result.is_feasible() else 'no'}")


@cli.command()
@click.option("--days", "-d", type=float, default=100.0, help="Time of flight (days)")
@click.option("--start", "-s", type=float, default=0.0, help="Start epoch (MJD2000)")
@click.option("--mass", "-m", type=float, default=1000.0, help="Spacecraft mass (kg)")
@click.option("--output", "-o", type=click.Path(), help="Output file (.yaml or .json)")
def ballistic(days, start, mass, output):
    """Generate a coasting leg on a circular 1 AU heliocentric orbit."""
    if days <= 0:
        raise click.BadParameter("must be > 0", param_hint="--days")

    v_circ = circular_velocity(MU_SUN, AU)
    theta = 2 * np.pi * days * DAY2SEC / orbital_period(MU_SUN, AU)

    config = LegConfig(
        mu=MU_SUN,
        spacecraft={"mass": mass, "thrust": 0.3, "isp": 3000.0},
        start={
            "epoch": start,
            "position": [AU, 0.0, 0.0],
            "velocity": [0.0, v_circ, 0.0],
            "mass": mass,
        },
        end={
            "epoch": start + days,
            "position": [float(AU * np.cos(theta)), float(AU * np.sin(theta)), 0.0],
            "velocity": [float(-v_circ * np.sin(theta)), float(v_circ * np.cos(theta)), 0.0],
            "mass": mass,
        },
    )

    if output:
        save_leg_config(config, output)
        click.echo(f"Leg written to: {output}")
    else:
        click.echo(json.dumps(config.model_dump(exclude_none=True), indent=2))


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
