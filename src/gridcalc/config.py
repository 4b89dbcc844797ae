"""Directory-level configuration loaded from ``gridcalc.yaml``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from gridcalc.formulas.context import DEFAULT_MAX_DEPTH

CONFIG_FILENAME = "gridcalc.yaml"

DEFAULT_CONFIG = {
    "max_resolution_depth": DEFAULT_MAX_DEPTH,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}


def load_config(directory: Path) -> dict[str, Any]:
    """Load configuration from ``gridcalc.yaml``, with defaults.

    Args:
        directory: Directory that may contain ``gridcalc.yaml``.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: If the file is not a mapping, or
            ``max_resolution_depth`` is not a positive integer.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(directory) / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{config_path} must contain a mapping")
        config.update(user_config)

    depth = config["max_resolution_depth"]
    if isinstance(depth, bool) or not isinstance(depth, int) or depth < 1:
        raise ValueError(
            f"max_resolution_depth must be a positive integer, got {depth!r}"
        )
    return config
