import copy
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from promptpanel_store.errors import PersistenceFailure
from promptpanel_store.fileio import atomic_write_text, path_lock

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY_ORDER = ["security", "testing", "domain_sme", "documentation", "frontend_ux", "clarity"]

DEFAULT_CONFIG: dict = {
    "enabled": True,
    "log_dir": "logs",
    "models": {
        "reviewer": "claude-haiku-4-5",
    },
    "editor": {
        "priority_order": list(DEFAULT_PRIORITY_ORDER),
    },
    "scoring": {
        "enabled": True,
        "display": True,
        "weights": {},  # role -> weight; roles not listed count as 1.0
        "weights_history": [],  # last HISTORY_LIMIT snapshots, oldest first
    },
    "reflection": {
        "min_reviews_for_adaptation": 5,
        "precision_threshold": 0.70,
        "weight_clamp_min": 0.5,
        "weight_clamp_max": 3.0,
    },
}

_FALSE_VALUES = {"0", "false", "no", "off"}


def deep_merge(target: dict, source: dict) -> dict:
    """Return a copy of target with source merged in; nested dicts merge, everything else replaces."""
    result = dict(target)
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def read_config_file(config_path: str) -> dict:
    """Read the raw YAML document, without defaults. Missing file -> {}.

    Raises yaml.YAMLError / OSError for unreadable files and ValueError when
    the document is not a mapping.
    """
    path = Path(config_path)
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{config_path} must contain a mapping, got {type(data).__name__}")
    return data


def load_config(config_path: str = ".promptpanel.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .promptpanel.yml in the current directory
      3. Environment variables (PROMPTPANEL_ENABLED, PROMPTPANEL_LOG_DIR)
      4. CLI argument overrides
    """
    config = deep_merge(copy.deepcopy(DEFAULT_CONFIG), read_config_file(config_path))

    enabled = os.environ.get("PROMPTPANEL_ENABLED")
    if enabled is not None:
        config["enabled"] = enabled.strip().lower() not in _FALSE_VALUES
    log_dir = os.environ.get("PROMPTPANEL_LOG_DIR")
    if log_dir:
        config["log_dir"] = log_dir

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    return config


def save_config(config: dict, config_path: str) -> None:
    """Rewrite the whole config file atomically.

    Raises PersistenceFailure when the file cannot be written: callers that
    change weights must know the change did not land.
    """
    text = yaml.safe_dump(config, default_flow_style=False, sort_keys=False)
    try:
        with path_lock(config_path):
            atomic_write_text(config_path, text)
    except OSError as e:
        logger.error("Could not write config %s: %s", config_path, e)
        raise PersistenceFailure(config_path, e) from e


def reflection_settings(config: dict) -> dict:
    """The reflection block with defaults filled in for missing or null keys.

    Explicit values, 0 included, are kept as written.
    """
    settings = dict(DEFAULT_CONFIG["reflection"])
    configured = config.get("reflection")
    if isinstance(configured, dict):
        for key, value in configured.items():
            if value is not None:
                settings[key] = value
    return settings
