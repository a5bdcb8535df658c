from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

import pytest

from indieauth_discovery.models import (
    DiscoveryMethod,
    DiscoveryResult,
    ErrorKind,
    IndieAuthProfile,
)


def test_discovery_result_is_immutable():
    result = DiscoveryResult(success=True)
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.method = DiscoveryMethod.CACHED  # type: ignore[misc]


def test_to_dict_is_json_safe():
    result = DiscoveryResult(
        success=True,
        authorization_endpoint="https://auth.example.com/auth",
        token_endpoint="https://auth.example.com/token",
        scopes_supported=("profile",),
        method=DiscoveryMethod.METADATA_HTML_LINK,
        discovered_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        discovered_urls=("https://example.com/",),
    )
    data = result.to_dict()
    assert data["method"] == "metadata-html-link"
    assert data["discovered_at"] == "2024-05-01T12:00:00+00:00"
    assert data["scopes_supported"] == ["profile"]
    assert data["code_challenge_methods"] is None
    assert data["error_kind"] == "none"
    assert DiscoveryResult.from_dict(data) == result


def test_from_dict_ignores_unknown_keys_and_fills_defaults():
    result = DiscoveryResult.from_dict({"success": False, "error_message": "x", "extra": 1})
    assert not result.success
    assert result.error_message == "x"
    assert result.method is DiscoveryMethod.UNKNOWN
    assert result.error_kind is ErrorKind.NONE
    assert result.discovered_urls == ()


def test_failure_constructor():
    result = DiscoveryResult.failure(
        "No IndieAuth endpoints found", ErrorKind.PROTOCOL, discovered_urls=["https://a.example/"]
    )
    assert not result.success
    assert result.authorization_endpoint == ""
    assert result.discovered_urls == ("https://a.example/",)
    assert result.discovered_at is None


@pytest.mark.parametrize(
    "profile, has_data",
    [(IndieAuthProfile(), False), (IndieAuthProfile(name="Alice"), True)],
)
def test_profile_has_data(profile, has_data):
    assert profile.has_data is has_data
