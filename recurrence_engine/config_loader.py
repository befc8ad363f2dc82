"""recurrence_engine.config_loader

Config loader for the recurrence engine.

- Reads YAML with PyYAML (JSON files load too, JSON being a YAML subset).
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override; `RECURRENCE_ENGINE_CONFIG` names a default path.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "RECURRENCE_ENGINE_CONFIG"


@dataclass
class Config:
    """Typed configuration for the recurrence engine.

    Fields:
        cache_max_size: maximum number of cached expansions (LRU eviction beyond it)
        cache_ttl_seconds: lifetime of a cached expansion
        log_level: logging level name
        debug: enable debug logging for engine modules
    """

    cache_max_size: int = 512
    cache_ttl_seconds: int = 3600
    log_level: str = "INFO"
    debug: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int; values that are not ints fall
        back to the default and anything below 1 is raised to 1, with a
        warning in both cases.
        """
        if data is None:
            data = {}

        def _coerce_positive_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            if value < 1:
                logger.warning("Config %s=%d below minimum; coercing to 1", key, value)
                return 1
            return value

        cache_max_size = _coerce_positive_int("cache_max_size", 512)
        cache_ttl_seconds = _coerce_positive_int("cache_ttl_seconds", 3600)

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        debug_raw = data.get("debug", False)
        if isinstance(debug_raw, str):
            debug = debug_raw.strip().lower() in ("1", "true", "yes", "on")
        else:
            debug = bool(debug_raw)

        return cls(
            cache_max_size=cache_max_size,
            cache_ttl_seconds=cache_ttl_seconds,
            log_level=log_level,
            debug=debug,
        )


def _load_yaml(path: Path) -> Any:
    """Load a YAML (or JSON) document; an empty file yields an empty mapping."""
    text = path.read_text(encoding="utf-8")
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Unable to parse config file {path}: {exc}") from exc
    if loaded is None:
        return {}
    return loaded


def load_config(path: str | None = None) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to the value of
              RECURRENCE_ENGINE_CONFIG, then ./recurrence_engine/config.yaml
              (relative to the current working dir).

    Returns:
        Config dataclass instance with values from file (or defaults).

    Behavior:
    - If file is missing: returns Config() with defaults.
    - If file exists but is not valid YAML or its top level is not a mapping:
      raises ConfigError.
    """
    chosen = path or os.getenv(CONFIG_PATH_ENV)
    p = Path(chosen) if chosen else Path.cwd() / "recurrence_engine" / "config.yaml"
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return Config()

    raw = _load_yaml(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ConfigError("Config file must contain a mapping at top level")
    cfg = Config.from_dict(raw)
    logger.info("Loaded configuration from %s", p)
    logger.debug("Configuration values: %s", cfg)
    return cfg
