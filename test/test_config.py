from __future__ import annotations

import pytest

from indieauth_discovery.cache import CacheConfig
from indieauth_discovery.config import DEFAULT_CONFIG, cache_config, load_config


def test_defaults_when_no_pyproject(tmp_path):
    config = load_config(tmp_path / "pyproject.toml")
    assert config == DEFAULT_CONFIG
    # a copy, not the module-level dict
    config["cache"]["enabled"] = False
    assert DEFAULT_CONFIG["cache"]["enabled"] is True


def test_pyproject_section_is_deep_merged(tmp_path):
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(
        """
[tool.indieauth_discovery]
timeout = 3.5
use_head_request = true

[tool.indieauth_discovery.cache]
backend = "file"
expire_seconds = 60
""",
        encoding="utf-8",
    )

    config = load_config(pyproject)

    assert config["timeout"] == 3.5
    assert config["use_head_request"] is True
    assert config["cache"]["backend"] == "file"
    assert config["cache"]["expire_seconds"] == 60
    # untouched keys keep their defaults
    assert config["cache"]["directory"] == ".indieauth_cache"
    assert config["strict_profile_url_validation"] is True


def test_other_tool_sections_are_ignored(tmp_path):
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text('[tool.other]\ntimeout = 1\n', encoding="utf-8")
    assert load_config(pyproject)["timeout"] == 10.0


def test_unparseable_pyproject_falls_back_to_defaults(tmp_path, caplog):
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text("this is = = not toml", encoding="utf-8")

    config = load_config(pyproject)

    assert config == DEFAULT_CONFIG
    assert "Failed to load or parse" in caplog.text


def test_overrides_win(tmp_path):
    config = load_config(tmp_path / "missing.toml", overrides={"cache": {"enabled": False}})
    assert config["cache"]["enabled"] is False
    assert config["cache"]["backend"] == "memory"


@pytest.mark.parametrize(
    "section, expected",
    [
        ({}, CacheConfig()),
        (
            {"enabled": False, "backend": "file", "directory": "os-default", "expire_seconds": 5, "max_entries": 3},
            CacheConfig(enabled=False, backend="file", directory="os-default", expire_seconds=5.0, max_entries=3),
        ),
    ],
)
def test_cache_config(section, expected):
    assert cache_config({"cache": section}) == expected
