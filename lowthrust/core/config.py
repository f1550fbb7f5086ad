"""Configuration loading and leg construction."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from lowthrust.core.constants import DEFAULT_CONSTANTS, PhysicalConstants
from lowthrust.core.types import LegConfig


logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def _open_leg_file(path: str | Path):
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Leg file not found: {path}")
    return open(path)


def load_yaml_config(path: str | Path) -> Any:
    """
    Read a YAML leg file.

    Raises:
        FileNotFoundError: If the file does not exist
        yaml.YAMLError: If the file is not valid YAML
    """
    with _open_leg_file(path) as f:
        return yaml.safe_load(f)


def load_json_config(path: str | Path) -> Any:
    """
    Read a JSON leg file.

    Raises:
        FileNotFoundError: If the file does not exist
        json.JSONDecodeError: If the file is not valid JSON
    """
    with _open_leg_file(path) as f:
        return json.load(f)


def load_config(path: str | Path) -> dict[str, Any]:
    """
    Read a leg file, picking the parser from the file suffix.

    Args:
        path: ``.yaml``, ``.yml`` or ``.json`` file

    Returns:
        Raw leg definition mapping

    Raises:
        ValueError: If the suffix is unknown or the file holds no mapping
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in YAML_SUFFIXES:
        data = load_yaml_config(path)
    elif suffix == ".json":
        data = load_json_config(path)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    if not isinstance(data, dict):
        raise ValueError(f"Leg file {path} must contain a mapping, got {type(data).__name__}")
    return data


def load_leg_config(path: str | Path) -> LegConfig:
    """Load and validate a leg definition file."""
    config = LegConfig(**load_config(path))
    logger.info(f"Loaded leg config {path} (hash {config.config_hash()})")
    return config


def save_leg_config(config: LegConfig, path: str | Path) -> Path:
    """
    Write a leg definition as YAML or JSON, chosen by file suffix.

    Returns:
        Path written
    """
    path = Path(path)
    data = config.model_dump(exclude_none=True)
    suffix = path.suffix.lower()
    if suffix not in YAML_SUFFIXES and suffix != ".json":
        raise ValueError(f"Unsupported config format: {suffix}")

    with open(path, "w") as f:
        if suffix == ".json":
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(data, f, sort_keys=False)

    logger.info(f"Wrote leg config: {path}")
    return path


def build_leg(config: LegConfig, constants: PhysicalConstants = DEFAULT_CONSTANTS):
    """
    Create a populated Leg from a validated configuration.

    Args:
        config: Leg definition
        constants: Physical constants for the leg

    Returns:
        Leg ready for evaluation
    """
    from lowthrust.models.leg import Leg

    leg = Leg(constants=constants)
    leg.set_spacecraft(config.spacecraft.to_spacecraft())
    leg.configure(
        start_epoch=config.start.to_epoch(),
        start_state=config.start.to_state(),
        throttles=[t.to_throttle() for t in config.throttles],
        end_epoch=config.end.to_epoch(),
        end_state=config.end.to_state(),
        mu=config.mu,
    )
    if config.throttle_vector is not None:
        leg.set_throttles_from_vector(config.throttle_vector)
    return leg


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None):
    """
    Configure logging for leg evaluation runs.

    Args:
        level: Logging level
        log_file: Optional log file path
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
