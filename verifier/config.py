"""
Price Verify — Environment Config Loader

Three-tier configuration loading:
  1. Base file (price_verify.yaml)
  2. Per-environment overlay files (config/{PV_ENV}.yaml merged over base)
  3. Environment variable overrides (PV_ prefixed)

Usage:
    from verifier.config import load_config, get_config_value

    cfg = load_config(base_path="price_verify.yaml", env="prod")
    timeout = get_config_value("validation.timeout_seconds", cfg, default=30)

Environment variables:
    PV_ENV          — active profile (dev, staging, prod)
    PV_CONFIG_DIR   — directory for overlay files (default: config/)
    PV_*            — overrides, "__" separates levels
                      (e.g., PV_VALIDATION__TIMEOUT_SECONDS=10)
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("price_verify.config")

DEFAULT_CONFIG_PATH = "price_verify.yaml"
DEFAULT_CANDIDATES = ["python", "python3", "py"]
DEFAULT_SCRIPT_PATH = "ml/price_model.py"


# ═══════════════════════════════════════════════════════════════════
# Deep Merge
# ═══════════════════════════════════════════════════════════════════

def deep_merge(base: dict, overlay: dict) -> dict:
    """
    Deep-merge overlay into base. Overlay values win.
    Lists are replaced (not appended). Dicts are recursed.
    """
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _set_nested(d: dict, keys: list[str], value: str):
    """Set a nested dict value from a list of keys, YAML-parsing the value."""
    for key in keys[:-1]:
        d = d.setdefault(key, {})
    try:
        d[keys[-1]] = yaml.safe_load(value)
    except yaml.YAMLError:
        d[keys[-1]] = value


# ═══════════════════════════════════════════════════════════════════
# Overlay Files
# ═══════════════════════════════════════════════════════════════════

def _load_overlay_file(
    base_path: str,
    env: str = "",
    config_dir: str = "",
) -> dict[str, Any]:
    """
    Load per-environment overlay file.
    Looks for {config_dir}/{env}.yaml next to the base file or in config/.
    Returns empty dict if not found.
    """
    env = env or os.environ.get("PV_ENV", "")
    if not env:
        return {}

    config_dir = config_dir or os.environ.get("PV_CONFIG_DIR", "config")

    candidates = [
        Path(config_dir) / f"{env}.yaml",
        Path(config_dir) / f"{env}.yml",
        Path(os.path.dirname(base_path)) / "config" / f"{env}.yaml",
    ]

    for path in candidates:
        if path.exists():
            with open(path) as f:
                overlay = yaml.safe_load(f) or {}
            logger.info("Loaded config overlay: %s (%d keys)", path, len(overlay))
            return overlay

    logger.debug("No config overlay found for env=%s", env)
    return {}


# ═══════════════════════════════════════════════════════════════════
# Environment Variable Overrides
# ═══════════════════════════════════════════════════════════════════

def _load_env_overrides(prefix: str = "PV_") -> dict[str, Any]:
    """
    Load PV_ prefixed environment variables as config overrides.

    Naming convention:
      PV_SECTION__KEY=value → {"section": {"key": value}}

    Values are YAML-parsed (numbers, booleans, lists). PV_ENV,
    PV_CONFIG_DIR and PV_VERSION are meta config and skipped.
    """
    excluded = {"PV_ENV", "PV_CONFIG_DIR", "PV_VERSION"}
    overrides: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix) or key in excluded:
            continue
        path = key[len(prefix):].lower().split("__")
        _set_nested(overrides, path, value)

    if overrides:
        logger.debug("Loaded %d env var overrides", len(overrides))
    return overrides


# ═══════════════════════════════════════════════════════════════════
# Main Loader
# ═══════════════════════════════════════════════════════════════════

def load_config(
    base_path: str = DEFAULT_CONFIG_PATH,
    env: str = "",
    config_dir: str = "",
    include_env_vars: bool = True,
) -> dict[str, Any]:
    """
    Load configuration with three-tier merging.

    Priority (highest wins):
      1. Environment variable overrides (PV_*)
      2. Per-environment overlay file (config/{env}.yaml)
      3. Base config file (price_verify.yaml)
    """
    config: dict[str, Any] = {}
    if os.path.exists(base_path):
        with open(base_path) as f:
            config = yaml.safe_load(f) or {}
        logger.debug("Loaded base config: %s", base_path)

    overlay = _load_overlay_file(base_path, env=env, config_dir=config_dir)
    if overlay:
        config = deep_merge(config, overlay)

    if include_env_vars:
        env_overrides = _load_env_overrides()
        if env_overrides:
            config = deep_merge(config, env_overrides)

    config["_active_env"] = env or os.environ.get("PV_ENV", "default")
    config["_config_source"] = base_path
    return config


def get_config_value(
    path: str,
    config: dict[str, Any] | None = None,
    default: Any = None,
) -> Any:
    """
    Get a nested config value by dotted path.

    Example:
        get_config_value("validation.script_path", cfg, "ml/price_model.py")
    """
    if config is None:
        config = load_config()

    current: Any = config
    for key in path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return default
    return current


# ═══════════════════════════════════════════════════════════════════
# Typed Settings
# ═══════════════════════════════════════════════════════════════════

@dataclass
class VerifierSettings:
    """Validation engine settings resolved from config."""
    candidates: list[str] = field(default_factory=lambda: list(DEFAULT_CANDIDATES))
    script_path: str = DEFAULT_SCRIPT_PATH
    operation: str = "check"
    timeout_seconds: float | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> VerifierSettings:
        candidates = get_config_value("validation.executors", config, DEFAULT_CANDIDATES)
        if isinstance(candidates, str):
            candidates = [c.strip() for c in candidates.split(",") if c.strip()]
        timeout = get_config_value("validation.timeout_seconds", config, None)
        return cls(
            candidates=list(candidates),
            script_path=str(get_config_value("validation.script_path", config, DEFAULT_SCRIPT_PATH)),
            operation=str(get_config_value("validation.operation", config, "check")),
            timeout_seconds=float(timeout) if timeout else None,
        )
