"""Configuration management for finport."""

import copy
import json
import os
from pathlib import Path
from typing import Any

# Default config filename
CONFIG_FILENAME = "config.json"
LOCAL_CONFIG_FILENAME = "finport.json"

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024  # 5 MB

DEFAULTS: dict[str, Any] = {
    "user": "local",
    "ledger_path": None,
    "presets_path": None,
    "default_category": "Uncategorized",
    "max_upload_bytes": DEFAULT_MAX_UPLOAD_BYTES,
    "sample_size": 5,
    "header_markers": ["transaction type", "date posted", "transaction amount"],
}


def get_config_dir() -> Path:
    """Get the config directory path (XDG compliant)."""
    xdg_config_home = os.getenv("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(xdg_config_home) / "finport"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_config_dir() / CONFIG_FILENAME


def find_config_file() -> Path | None:
    """Find the config file in standard locations.

    Searches for config in the following order:
    1. finport.json in current directory
    2. XDG config: ~/.config/finport/config.json
    """
    config_paths = [
        Path(LOCAL_CONFIG_FILENAME),
        get_config_path(),
    ]

    for path in config_paths:
        if path.exists():
            return path

    return None


def load_json_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(config_path) as f:
        return json.load(f)  # type: ignore[no-any-return]


def save_json_config(config: dict[str, Any], config_path: Path | None = None) -> Path:
    """Save configuration to a JSON file.

    Args:
        config: Configuration dictionary to save
        config_path: Path to save to (defaults to XDG config location)

    Returns:
        Path where config was saved
    """
    if config_path is None:
        config_path = get_config_path()

    # Ensure directory exists
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        json.dump(config, f, indent=2)
        f.write("\n")

    return config_path


def load_config(config_path: Path | None = None) -> dict[str, Any] | None:
    """Load configuration from config file.

    Args:
        config_path: Explicit path to a config JSON file

    Returns:
        Loaded config dict or None if not found
    """
    if config_path:
        return load_json_config(config_path)

    config_file = find_config_file()
    if config_file:
        return load_json_config(config_file)

    return None


def config_exists() -> bool:
    """Check if any config file exists."""
    return find_config_file() is not None


def create_default_config() -> dict[str, Any]:
    """Create a default configuration."""
    return copy.deepcopy(DEFAULTS)


def get_setting(config: dict[str, Any] | None, key: str) -> Any:
    """Return a config value, falling back to the built-in default."""
    if config and config.get(key) is not None:
        return config[key]
    return DEFAULTS.get(key)


def get_ledger_path(config: dict[str, Any] | None = None) -> Path:
    """Get the ledger file path (defaults to ledger.json in the config dir)."""
    configured = get_setting(config, "ledger_path")
    if configured:
        return Path(configured).expanduser()
    return get_config_dir() / "ledger.json"


def get_presets_path(config: dict[str, Any] | None = None) -> Path:
    """Get the saved column mappings file path."""
    configured = get_setting(config, "presets_path")
    if configured:
        return Path(configured).expanduser()
    return get_config_dir() / "presets.json"
