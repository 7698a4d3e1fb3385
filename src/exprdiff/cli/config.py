"""
Configuration file support for the exprdiff CLI.

Supports YAML and JSON config files. Values are laid over the pipeline's
config dataclass; explicit CLI flags are laid over the result, so the
priority is flags > file > dataclass defaults.
"""

import json
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid

    Examples:
        >>> config = load_config(Path("counts.yaml"))
        >>> print(config['reference'])
        normal
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {suffix}. "
                    f"Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def apply_config(config: Any, values: Mapping[str, Any]) -> Any:
    """
    Return a copy of a config dataclass with `values` laid over it.

    Keys may use dashes or underscores. The dataclass __post_init__ runs
    again on the copy, so type coercion and validation apply to file values.

    Raises:
        ValueError: On keys the dataclass does not define.
    """
    known = {f.name for f in fields(config)}
    updates = {str(k).replace('-', '_'): v for k, v in values.items()}

    unknown = sorted(set(updates) - known)
    if unknown:
        raise ValueError(
            f"Unknown config keys for {type(config).__name__}: {unknown}. "
            f"Valid keys: {sorted(known)}"
        )

    return replace(config, **updates)
