"""
YAML loader for foreign key override lists.

The file lets operators extend the include/exclude lists without touching
environment variables:

    include:
      - behavior_id
    exclude:
      - client_id
      - deployment_id
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import structlog
import yaml

logger = structlog.get_logger(__name__)

OVERRIDE_KEYS = ("include", "exclude")


@dataclass
class FkOverrides:
    """Foreign key columns to force-offset (include) or leave alone (exclude)."""

    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)


def load_fk_overrides(file_path: Path, required: bool = False) -> FkOverrides:
    """
    Load foreign key overrides from a YAML file.

    Behavior:
    - Missing file: raises ValueError when ``required``, otherwise returns
      empty overrides and logs a warning
    - Empty file: returns empty overrides
    - Invalid YAML or shape: raises ValueError with the filename

    Args:
        file_path: Path to the YAML file.
        required: Treat a missing file as an error (the path was named
            explicitly by the operator).

    Returns:
        FkOverrides with whitespace-stripped column names.

    Raises:
        ValueError: If a required file is missing, or the YAML is invalid or
            not a mapping of string lists.
    """
    if not file_path.exists():
        if required:
            raise ValueError(f"Override file not found: {file_path}")
        logger.warning("fk_overrides.file_not_found", file_path=str(file_path))
        return FkOverrides()

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("fk_overrides.yaml_parse_error", file_path=str(file_path), error=str(e))
        raise ValueError(f"Invalid YAML in {file_path}: {e}") from e

    if content is None:
        return FkOverrides()

    if not isinstance(content, dict):
        raise ValueError(
            f"Invalid override format in {file_path}: "
            f"expected mapping, got {type(content).__name__}"
        )

    unknown = sorted(set(content) - set(OVERRIDE_KEYS))
    if unknown:
        raise ValueError(f"Unknown override keys in {file_path}: {', '.join(map(str, unknown))}")

    lists = {}
    for key in OVERRIDE_KEYS:
        values = content.get(key) or []
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise ValueError(f"Invalid '{key}' entry in {file_path}: expected a list of strings")
        lists[key] = [v.strip() for v in values if v.strip()]

    logger.debug(
        "fk_overrides.file_loaded",
        file_path=str(file_path),
        include=len(lists["include"]),
        exclude=len(lists["exclude"]),
    )
    return FkOverrides(include=lists["include"], exclude=lists["exclude"])
