"""Configuration loaded from .anansi.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".anansi.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG = Path.home() / ".config" / "anansi" / "config.toml"


class StoreSectionConfig(BaseModel):
    """[store] section."""

    path: str = "anansi.db"
    timeout: float = 5.0


class SiteSectionConfig(BaseModel):
    """[site] section: general information about the site."""

    title: str = "Anansi"
    description: str = "A content tagging service for discovery and organization."


class AnansiConfig(BaseModel):
    """Top-level configuration model."""

    store: StoreSectionConfig = Field(default_factory=StoreSectionConfig)
    site: SiteSectionConfig = Field(default_factory=SiteSectionConfig)

    @property
    def db_path(self) -> Path:
        return Path(self.store.path).expanduser()


def load_config(path: str | Path | None = None) -> AnansiConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .anansi.toml in CWD
    3. ~/.config/anansi/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged AnansiConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG.exists():
            data = _load_toml(GLOBAL_CONFIG)
            logger.info("Loaded config from %s", GLOBAL_CONFIG)

    config = AnansiConfig.model_validate(data) if data else AnansiConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: AnansiConfig, **cli_kwargs: object) -> AnansiConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "db_path": ("store", "path"),
        "db_timeout": ("store", "timeout"),
        "site_title": ("site", "title"),
    }

    for key, value in cli_kwargs.items():
        if value is None or key not in mapping:
            continue
        section, field = mapping[key]
        data[section][field] = str(value) if isinstance(value, Path) else value

    return AnansiConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: AnansiConfig) -> AnansiConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "ANANSI_DB_PATH": ("store", "path"),
        "ANANSI_DB_TIMEOUT": ("store", "timeout"),
        "ANANSI_SITE_TITLE": ("site", "title"),
        "ANANSI_SITE_DESCRIPTION": ("site", "description"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    return AnansiConfig.model_validate(data)
