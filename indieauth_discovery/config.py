# indieauth_discovery/config.py
"""
Centralized configuration management.

Handles loading defaults, merging in settings from pyproject.toml,
and applying runtime overrides.
"""
from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import tomli

from indieauth_discovery.cache import DEFAULT_MAX_ENTRIES, CacheConfig

log = logging.getLogger(__name__)

# This is the baseline configuration dictionary.
DEFAULT_CONFIG: dict[str, Any] = {
    "timeout": 10.0,
    "user_agent": "indieauth_discovery (+https://indieauth.spec.indieweb.org/)",
    # Try a HEAD request first; GET is still used when HEAD finds nothing.
    "use_head_request": False,
    # Reject profile URLs that break the IndieAuth profile URL rules
    # before any network request is made.
    "strict_profile_url_validation": True,
    "cache": {
        "enabled": True,
        "backend": "memory",  # or "file"
        "directory": ".indieauth_cache",  # or "os-default"
        "expire_seconds": 300,
        "max_entries": DEFAULT_MAX_ENTRIES,
    },
}


def _deep_merge_dict(
    base: MutableMapping[str, Any], overrides: Mapping[str, Any]
) -> MutableMapping[str, Any]:
    """Recursively merge dicts."""
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), MutableMapping):
            base[key] = _deep_merge_dict(base[key], value)
        else:
            base[key] = value
    return base


def load_config(
    pyproject_path: Path | None = None, overrides: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """
    Loads configuration from defaults and merges settings from pyproject.toml.

    1. Starts with DEFAULT_CONFIG.
    2. Looks for `pyproject.toml` (current directory unless a path is given).
    3. Merges `[tool.indieauth_discovery]` over the defaults.
    4. Merges `overrides` last.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if pyproject_path is None:
        pyproject_path = Path.cwd() / "pyproject.toml"

    if not pyproject_path.exists():
        log.debug(
            "No pyproject.toml found at %s. Using default config.", pyproject_path
        )
    else:
        try:
            with pyproject_path.open("rb") as f:
                toml_data = tomli.load(f)
        except (OSError, tomli.TOMLDecodeError) as e:
            log.warning(
                "Failed to load or parse %s: %s. Using default config.",
                pyproject_path,
                e,
            )
        else:
            project_config = toml_data.get("tool", {}).get("indieauth_discovery", {})
            if project_config:
                log.info("Loading config from %s", pyproject_path)
                _deep_merge_dict(config, project_config)
            else:
                log.debug("No [tool.indieauth_discovery] section in %s.", pyproject_path)

    if overrides:
        _deep_merge_dict(config, overrides)
    return config


def cache_config(config: Mapping[str, Any]) -> CacheConfig:
    """Build a CacheConfig from the `cache` table of a loaded config."""
    section = config.get("cache") or {}
    defaults = CacheConfig()
    return CacheConfig(
        enabled=bool(section.get("enabled", defaults.enabled)),
        backend=str(section.get("backend", defaults.backend)),
        directory=str(section.get("directory", defaults.directory)),
        expire_seconds=float(section.get("expire_seconds", defaults.expire_seconds)),
        max_entries=int(section.get("max_entries", defaults.max_entries)),
    )
