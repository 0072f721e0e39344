"""Configuration management for pf-ledger."""

import json
import os
from pathlib import Path
from typing import Any

from pf_ledger.models import DEFAULT_CURRENCY, AccountMapping, ImportOptions

# Default config filename
CONFIG_FILENAME = "config.json"
APP_DIR = "pf-ledger"
DEFAULT_LEDGER_FILENAME = "ledger.csv"


def get_config_dir() -> Path:
    """Get the config directory path (XDG compliant)."""
    xdg_config_home = os.getenv("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(xdg_config_home) / APP_DIR


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_config_dir() / CONFIG_FILENAME


def find_config_file() -> Path | None:
    """Find the config file in standard locations.

    Searches for config in the following order:
    1. config.json in current directory
    2. XDG config: ~/.config/pf-ledger/config.json
    """
    for path in (Path(CONFIG_FILENAME), get_config_path()):
        if path.exists():
            return path
    return None


def load_json_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(config_path, encoding="utf-8") as f:
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

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2, ensure_ascii=False)
        f.write("\n")

    return config_path


def load_config(config_path: Path | None = None) -> dict[str, Any] | None:
    """Load configuration from config file.

    Args:
        config_path: Explicit path to config.json file

    Returns:
        Loaded config dict or None if not found
    """
    if config_path:
        return load_json_config(config_path)

    config_file = find_config_file()
    if config_file:
        return load_json_config(config_file)

    return None


def get_account_mappings(config: dict[str, Any] | None = None) -> list[AccountMapping]:
    """Get card number to account name mappings from config.

    Args:
        config: Loaded JSON config

    Returns:
        List of AccountMapping objects
    """
    if not config or "accounts" not in config:
        return []

    return [
        AccountMapping(
            identifier=acc["card_number"],
            name=acc["name"],
            bank=acc.get("bank", ""),
            account_type=acc.get("type", "card"),
        )
        for acc in config["accounts"]
    ]


def get_account_name(
    identifier: str,
    mappings: list[AccountMapping] | None = None,
    config: dict[str, Any] | None = None,
) -> str | None:
    """Get the account name mapped to a card number, if any."""
    if mappings is None:
        mappings = get_account_mappings(config)

    for mapping in mappings:
        if mapping.matches(identifier):
            return mapping.name
    return None


def get_ledger_path(config: dict[str, Any] | None = None, override: Path | None = None) -> Path:
    """Ledger file location: explicit override, then config, then ./ledger.csv."""
    if override:
        return override
    if config and config.get("ledger_path"):
        return Path(config["ledger_path"]).expanduser()
    return Path(DEFAULT_LEDGER_FILENAME)


def build_import_options(config: dict[str, Any] | None = None, **overrides: Any) -> ImportOptions:
    """Import options from config defaults; non-None overrides win."""
    config = config or {}
    options = ImportOptions(
        default_account=config.get("default_account", ""),
        default_currency=config.get("default_currency", DEFAULT_CURRENCY),
        account_mappings=get_account_mappings(config),
    )
    for key, value in overrides.items():
        if value is not None:
            setattr(options, key, value)
    return options


def create_default_config() -> dict[str, Any]:
    """Create a default configuration."""
    return {
        "default_currency": DEFAULT_CURRENCY,
        "default_account": "",
        "ledger_path": DEFAULT_LEDGER_FILENAME,
        "accounts": [],
        "category_rules": [],
        "budgets": [],
        "recurring": [],
    }
