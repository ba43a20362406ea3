"""YAML configuration loader for tunables that have no environment variable.

Configuration is split in two:

    1. config/config.yaml  -- static tunables checked into the repo
                              (supported file extensions, generation
                              sampling parameters, web loader user agent,
                              CORS origins, job source labels)
    2. Settings            -- everything deployment-specific (URLs,
                              credentials, sizes, intervals), read from the
                              environment and ``.env``; see
                              :mod:`refdata_rag.config.settings`

``load_config()`` deep-merges the YAML over built-in defaults so a partial
file only needs the keys it changes.  Components never read the same value
from both places.
"""

from pathlib import Path
from typing import Any

import yaml

from refdata_rag.utils.errors import ConfigurationError

_DEFAULT_CONFIG: dict[str, Any] = {
    "ingestion": {
        "source_label": "All Sources",
        "scheduled_source_label": "Scheduled",
        "supported_extensions": [".txt", ".md", ".json", ".pdf", ".docx"],
    },
    "generation": {
        "temperature": 0.7,
        "top_p": 0.9,
        "max_tokens": 1000,
    },
    "web_loader": {
        "user_agent": "Mozilla/5.0 (compatible; RefDataRagBot/1.0)",
        "timeout_seconds": 30.0,
    },
    "api": {
        "cors_origins": ["*"],
    },
}


def load_config(path: str = "config/config.yaml") -> dict:
    """Load the YAML config merged over built-in defaults.

    Args:
        path: Path to the YAML configuration file.  A missing file is not an
            error; built-in defaults are used instead.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the file exists but is not valid YAML or does
            not contain a mapping at the top level.
    """
    config: dict[str, Any] = _copy_defaults()

    config_path = Path(path)
    if not config_path.exists():
        return config

    try:
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(message=f"Invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(yaml_config, dict):
        raise ConfigurationError(
            message=f"Top level of {config_path} must be a mapping"
        )
    _deep_merge(config, yaml_config)
    return config


def _copy_defaults() -> dict[str, Any]:
    copied: dict[str, Any] = {}
    _deep_merge(copied, _DEFAULT_CONFIG)
    return copied


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        elif isinstance(value, dict):
            base[key] = {}
            _deep_merge(base[key], value)
        elif isinstance(value, list):
            base[key] = list(value)
        else:
            base[key] = value
