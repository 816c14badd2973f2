"""
SKILLTREE CONFIG - Typed settings from TOML

Configuration is read once from config/skilltree.toml (or the file named by
SKILLTREE_CONFIG) and converted into frozen msgspec structs. Unknown keys
and wrongly typed values are errors, not silent defaults.

Usage:
    from infrastructure.config import load_settings

    settings = load_settings()
    settings.storage.backend   # "memory" | "file" | "sqlite"
"""
import logging
import os
import tomllib
from pathlib import Path
from typing import Annotated, Any, Dict, Literal, Optional, Union

import msgspec
from msgspec import Meta

from core.ontology import DEFAULT_STORAGE_KEY

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SKILLTREE_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "skilltree.toml"


class ConfigError(Exception):
    """Raised when configuration cannot be parsed or is invalid."""
    pass


# =============================================================================
# SETTINGS STRUCTS
# =============================================================================

class StorageSettings(msgspec.Struct, kw_only=True, frozen=True, forbid_unknown_fields=True):
    backend: Literal["memory", "file", "sqlite"] = "memory"
    path: Optional[str] = None           # Directory (file) or database file (sqlite)
    key: Annotated[str, Meta(min_length=1)] = DEFAULT_STORAGE_KEY


class EngineSettings(msgspec.Struct, kw_only=True, frozen=True, forbid_unknown_fields=True):
    id_scheme: Literal["random", "counter"] = "random"
    log_buffer_size: Annotated[int, Meta(ge=1)] = 1000


class Settings(msgspec.Struct, kw_only=True, frozen=True, forbid_unknown_fields=True):
    storage: StorageSettings = msgspec.field(default_factory=StorageSettings)
    engine: EngineSettings = msgspec.field(default_factory=EngineSettings)


# =============================================================================
# LOADING
# =============================================================================

def load_toml_config(path: Union[Path, str, None] = None) -> Dict[str, Any]:
    """
    Load raw configuration from TOML.

    Resolution order: explicit path, then $SKILLTREE_CONFIG, then
    config/skilltree.toml next to the packages.

    Returns:
        Dict with all configuration sections ({} if the file is missing)

    Raises:
        ConfigError: If the file exists but is not valid TOML
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    config_path = Path(path)

    if not config_path.exists():
        logger.warning("Config file %s not found, using defaults", config_path)
        return {}

    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section] = {**merged[section], **values}
        else:
            merged[section] = values
    return merged


def load_settings(
    path: Union[Path, str, None] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """
    Load and validate settings.

    Args:
        path: Optional config file path
        overrides: Section-level values applied on top of the file,
            e.g. {"storage": {"backend": "memory"}}

    Raises:
        ConfigError: On invalid TOML or invalid values
    """
    raw = load_toml_config(path)
    if overrides:
        raw = _merge(raw, overrides)

    try:
        return msgspec.convert(raw, type=Settings, strict=True)
    except msgspec.ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
