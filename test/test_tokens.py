# Refresh, revocation, introspection and userinfo clients.

from __future__ import annotations

import base64
from urllib.parse import parse_qs

import httpx
import pytest
import respx

from indieauth_discovery.tokens import (
    IntrospectionAuthMethod,
    get_userinfo,
    introspect_token,
    refresh_token,
    revoke_token,
    revoke_token_legacy,
)

TOKEN_ENDPOINT = "https://auth.example.com/token"
REVOKE_ENDPOINT = "https://auth.example.com/revoke"
INTROSPECT_ENDPOINT = "https://auth.example.com/introspect"
USERINFO_ENDPOINT = "https://auth.example.com/userinfo"


def _form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


# ---- refresh ---------------------------------------------------------------


@respx.mock
@pytest.mark.anyio
async def test_refresh_success():
    route = respx.post(TOKEN_ENDPOINT).mock(
        return_value=httpx.Response(
            200,
            json={
                "access_token": "new-access",
                "token_type": "Bearer",
                "refresh_token": "new-refresh",
                "expires_in": "3600",
                "scope": "profile",
                "me": "https://example.com/",
            },
        )
    )

    async with httpx.AsyncClient() as client:
        result = await refresh_token(
            client, TOKEN_ENDPOINT, "old-refresh", "https://app.example/", scope="profile"
        )

    assert result.success
    assert result.access_token == "new-access"
    assert result.refresh_token == "new-refresh"
    assert result.expires_in == 3600
    assert result.me == "https://example.com/"
    assert _form(route.calls.last.request) == {
        "grant_type": "refresh_token",
        "refresh_token": "old-refresh",
        "client_id": "https://app.example/",
        "scope": "profile",
    }
    assert route.calls.last.request.headers["accept"] == "application/json"


@pytest.mark.parametrize(
    "endpoint, token, client_id",
    [
        ("", "r", "c"),
        (TOKEN_ENDPOINT, "", "c"),
        (TOKEN_ENDPOINT, "r", ""),
    ],
)
@pytest.mark.anyio
async def test_refresh_requires_inputs(endpoint, token, client_id):
    async with httpx.AsyncClient() as client:
        result = await refresh_token(client, endpoint, token, client_id)
    assert not result.success
    assert result.error == "invalid_request"


@pytest.mark.parametrize(
    "status, body, error",
    [
        (400, {"json": {"error": "invalid_grant", "error_description": "expired"}}, "invalid_grant"),
        (500, {"content": b"<html>oops</html>"}, "http_error"),
        (200, {"content": b"not json"}, "invalid_response"),
        (200, {"json": {"token_type": "Bearer"}}, "invalid_response"),
    ],
)
@respx.mock
@pytest.mark.anyio
async def test_refresh_failures(status, body, error):
    respx.post(TOKEN_ENDPOINT).mock(return_value=httpx.Response(status, **body))

    async with httpx.AsyncClient() as client:
        result = await refresh_token(client, TOKEN_ENDPOINT, "r", "c")

    assert not result.success
    assert result.error == error


@respx.mock
@pytest.mark.anyio
async def test_refresh_network_error():
    respx.post(TOKEN_ENDPOINT).mock(side_effect=httpx.ConnectError("down"))

    async with httpx.AsyncClient() as client:
        result = await refresh_token(client, TOKEN_ENDPOINT, "r", "c")

    assert result.error == "network_error"
    assert result.error_description == "down"


@pytest.mark.parametrize("expires_in", [b"1e999", b"-1e999", b"NaN", b"Infinity"])
@respx.mock
@pytest.mark.anyio
async def test_refresh_ignores_non_finite_expires_in(expires_in):
    respx.post(TOKEN_ENDPOINT).mock(
        return_value=httpx.Response(
            200, content=b'{"access_token": "x", "expires_in": ' + expires_in + b"}"
        )
    )

    async with httpx.AsyncClient() as client:
        result = await refresh_token(client, TOKEN_ENDPOINT, "r", "c")

    assert result.success
    assert result.access_token == "x"
    assert result.expires_in is None


# ---- revocation ------------------------------------------------------------


@respx.mock
@pytest.mark.anyio
async def test_revoke_success_sends_hint():
    route = respx.post(REVOKE_ENDPOINT).mock(return_value=httpx.Response(200))

    async with httpx.AsyncClient() as client:
        result = await revoke_token(client, REVOKE_ENDPOINT, "tok", token_type_hint="access_token")

    assert result.success
    assert _form(route.calls.last.request) == {"token": "tok", "token_type_hint": "access_token"}


@respx.mock
@pytest.mark.anyio
async def test_revoke_legacy_posts_action():
    route = respx.post(TOKEN_ENDPOINT).mock(return_value=httpx.Response(200))

    async with httpx.AsyncClient() as client:
        result = await revoke_token_legacy(client, TOKEN_ENDPOINT, "tok")

    assert result.success
    assert _form(route.calls.last.request) == {"action": "revoke", "token": "tok"}


@pytest.mark.parametrize(
    "status, body, error",
    [
        (400, {"json": {"error": "unsupported_token_type"}}, "unsupported_token_type"),
        (503, {"content": b"busy"}, "http_error"),
    ],
)
@respx.mock
@pytest.mark.anyio
async def test_revoke_failures(status, body, error):
    respx.post(REVOKE_ENDPOINT).mock(return_value=httpx.Response(status, **body))

    async with httpx.AsyncClient() as client:
        result = await revoke_token(client, REVOKE_ENDPOINT, "tok")

    assert not result.success
    assert result.error == error


@pytest.mark.anyio
async def test_revoke_requires_token():
    async with httpx.AsyncClient() as client:
        assert (await revoke_token(client, REVOKE_ENDPOINT, "")).error == "invalid_request"
        assert (await revoke_token_legacy(client, "", "tok")).error == "invalid_request"


# ---- introspection ---------------------------------------------------------


@respx.mock
@pytest.mark.anyio
async def test_introspect_active_token():
    body = {
        "active": True,
        "me": "https://example.com/",
        "client_id": "https://app.example/",
        "scope": "create update",
        "exp": "1700000000",
        "iat": 1699990000,
    }
    respx.post(INTROSPECT_ENDPOINT).mock(return_value=httpx.Response(200, json=body))

    async with httpx.AsyncClient() as client:
        result = await introspect_token(client, INTROSPECT_ENDPOINT, "tok")

    assert result.success
    assert result.active
    assert result.me == "https://example.com/"
    assert result.scope == "create update"
    assert result.exp == 1700000000
    assert result.iat == 1699990000
    assert result.raw_response == body


@pytest.mark.parametrize("active", [False, "false"])
@respx.mock
@pytest.mark.anyio
async def test_introspect_inactive_token(active):
    respx.post(INTROSPECT_ENDPOINT).mock(return_value=httpx.Response(200, json={"active": active}))

    async with httpx.AsyncClient() as client:
        result = await introspect_token(client, INTROSPECT_ENDPOINT, "tok")

    assert result.success
    assert not result.active


@pytest.mark.parametrize(
    "status, body, error",
    [
        (401, {"content": b""}, "unauthorized"),
        (500, {"content": b""}, "server_error"),
        (200, {"content": b"not json"}, "invalid_response"),
        (200, {"json": {"me": "https://example.com/"}}, "invalid_response"),
        (200, {"json": {"active": 1}}, "invalid_response"),
        (200, {"json": {"active": True}}, "invalid_response"),
    ],
)
@respx.mock
@pytest.mark.anyio
async def test_introspect_failures(status, body, error):
    respx.post(INTROSPECT_ENDPOINT).mock(return_value=httpx.Response(status, **body))

    async with httpx.AsyncClient() as client:
        result = await introspect_token(client, INTROSPECT_ENDPOINT, "tok")

    assert not result.success
    assert result.error == error


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({"auth_method": IntrospectionAuthMethod.BEARER, "auth_token": "rs-token"}, "Bearer rs-token"),
        (
            {
                "auth_method": IntrospectionAuthMethod.CLIENT_CREDENTIALS,
                "client_id": "rs",
                "client_secret": "s3cret",
            },
            "Basic " + base64.b64encode(b"rs:s3cret").decode(),
        ),
        ({}, None),
    ],
)
@respx.mock
@pytest.mark.anyio
async def test_introspect_authentication_header(kwargs, expected):
    route = respx.post(INTROSPECT_ENDPOINT).mock(
        return_value=httpx.Response(200, json={"active": False})
    )

    async with httpx.AsyncClient() as client:
        await introspect_token(client, INTROSPECT_ENDPOINT, "tok", **kwargs)

    assert route.calls.last.request.headers.get("authorization") == expected


@respx.mock
@pytest.mark.anyio
async def test_introspect_ignores_non_finite_timestamps():
    respx.post(INTROSPECT_ENDPOINT).mock(
        return_value=httpx.Response(
            200, content=b'{"active": true, "me": "https://example.com/", "exp": NaN, "iat": 1e999}'
        )
    )

    async with httpx.AsyncClient() as client:
        result = await introspect_token(client, INTROSPECT_ENDPOINT, "tok")

    assert result.success
    assert result.active
    assert result.exp is None
    assert result.iat is None


# ---- userinfo --------------------------------------------------------------


@respx.mock
@pytest.mark.anyio
async def test_userinfo_success():
    route = respx.get(USERINFO_ENDPOINT).mock(
        return_value=httpx.Response(
            200,
            json={
                "name": "Alice",
                "url": "https://example.com/",
                "photo": "https://example.com/photo.jpg",
                "email": "alice@example.com",
            },
        )
    )

    async with httpx.AsyncClient() as client:
        result = await get_userinfo(client, USERINFO_ENDPOINT, "tok")

    assert result.success
    assert result.profile.name == "Alice"
    assert result.profile.email == "alice@example.com"
    assert result.profile.has_data
    assert route.calls.last.request.headers["authorization"] == "Bearer tok"


@pytest.mark.parametrize(
    "status, body, error",
    [
        (400, {"content": b""}, "invalid_request"),
        (401, {"content": b""}, "invalid_token"),
        (403, {"content": b""}, "insufficient_scope"),
        (502, {"content": b""}, "server_error"),
        (401, {"json": {"error": "token_revoked"}}, "token_revoked"),
        (200, {"content": b"nope"}, "invalid_response"),
    ],
)
@respx.mock
@pytest.mark.anyio
async def test_userinfo_failures(status, body, error):
    respx.get(USERINFO_ENDPOINT).mock(return_value=httpx.Response(status, **body))

    async with httpx.AsyncClient() as client:
        result = await get_userinfo(client, USERINFO_ENDPOINT, "tok")

    assert not result.success
    assert result.error == error


@pytest.mark.anyio
async def test_userinfo_requires_inputs():
    async with httpx.AsyncClient() as client:
        assert (await get_userinfo(client, "", "tok")).error == "invalid_request"
        assert (await get_userinfo(client, USERINFO_ENDPOINT, "")).error == "invalid_request"
