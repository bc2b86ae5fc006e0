"""YAML configuration loading.

Configuration files are parsed with ``yaml.safe_load`` so that untrusted
YAML can never instantiate Python objects. Used by
[RelayPool.from_yaml()][dvmkit.core.relay_pool.RelayPool.from_yaml] and
[BaseService.from_yaml()][dvmkit.core.base_service.BaseService.from_yaml].

Examples:
    ```python
    from dvmkit.core.yaml import load_yaml

    config = load_yaml("config/job_protocol.yaml")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Args:
        config_path: Path to the YAML file (absolute or relative).

    Returns:
        Parsed configuration as a nested dictionary; an empty dict if the
        file exists but contains no data.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid YAML or its top level
            is not a mapping.

    Warning:
        The structure is not validated here. Callers pass the result to a
        Pydantic model (e.g.
        [RelayPoolConfig][dvmkit.core.relay_pool.RelayPoolConfig]).
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {config_path} must contain a mapping, got {type(data).__name__}"
        )
    return data
