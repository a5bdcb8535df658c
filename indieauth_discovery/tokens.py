# indieauth_discovery/tokens.py
"""
Token lifecycle clients built on discovered endpoints.

- refresh_token: grant_type=refresh_token against the token endpoint
- revoke_token / revoke_token_legacy: RFC 7009 revocation, or the older
  `action=revoke` form posted to the token endpoint
- introspect_token: RFC 7662 introspection
- get_userinfo: profile information with a bearer token

Each function takes the httpx.AsyncClient to use and returns a result
object; expected remote failures never raise.
"""
from __future__ import annotations

import base64
import enum
import json
import logging
import math
from typing import Any, Dict, Optional, Tuple

import httpx

from indieauth_discovery.discovery import REQUEST_ERRORS
from indieauth_discovery.models import (
    IndieAuthProfile,
    TokenIntrospectionResult,
    TokenRefreshResult,
    TokenRevocationResult,
    UserinfoResult,
)

log = logging.getLogger(__name__)

JSON_ACCEPT = {"Accept": "application/json"}


class IntrospectionAuthMethod(enum.Enum):
    NONE = "none"
    BEARER = "bearer"
    CLIENT_CREDENTIALS = "client-credentials"


def _str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


def _int(data: Dict[str, Any], key: str) -> Optional[int]:
    """Numbers, or numeric strings some servers send instead."""
    value = data.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        # json.loads yields inf and nan for 1e999, NaN and Infinity.
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _json_object(body: str) -> Dict[str, Any]:
    data = json.loads(body)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def _oauth_error(body: str, default_error: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Return (error, error_description) from a standard OAuth error body, or
    (None, None) when the body is not JSON.
    """
    try:
        data = _json_object(body)
    except ValueError:
        return None, None
    return _str(data, "error") or default_error, _str(data, "error_description")


# ---- refresh ---------------------------------------------------------------


async def refresh_token(
    client: httpx.AsyncClient,
    token_endpoint: str,
    refresh_token: str,
    client_id: str,
    scope: str | None = None,
) -> TokenRefreshResult:
    if not token_endpoint:
        return TokenRefreshResult(False, error="invalid_request", error_description="Token endpoint is required")
    if not refresh_token:
        return TokenRefreshResult(False, error="invalid_request", error_description="Refresh token is required")
    if not client_id:
        return TokenRefreshResult(False, error="invalid_request", error_description="Client ID is required")

    log.info("Refreshing token at %s", token_endpoint)
    form = {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": client_id,
    }
    if scope:
        form["scope"] = scope

    try:
        response = await client.post(token_endpoint, data=form, headers=JSON_ACCEPT)
    except REQUEST_ERRORS as e:
        log.warning("Token refresh failed: %s", e)
        return TokenRefreshResult(False, error="network_error", error_description=str(e))

    if not response.is_success:
        error, description = _oauth_error(response.text, "unknown_error")
        if error is None:
            log.warning("Token refresh failed: HTTP %s", response.status_code)
            return TokenRefreshResult(
                False,
                error="http_error",
                error_description=f"Token endpoint returned {response.status_code}",
            )
        log.warning("Token refresh failed: %s: %s", error, description)
        return TokenRefreshResult(False, error=error, error_description=description)

    try:
        data = _json_object(response.text)
    except ValueError:
        log.warning("Token refresh returned an unparseable body")
        return TokenRefreshResult(
            False, error="invalid_response", error_description="Failed to parse token response"
        )

    access_token = _str(data, "access_token")
    if not access_token:
        log.warning("Token refresh response missing access_token")
        return TokenRefreshResult(
            False, error="invalid_response", error_description="Response missing access_token"
        )

    new_refresh = _str(data, "refresh_token")
    if new_refresh:
        log.debug("Token refresh issued a new refresh token")
    log.info("Token refresh succeeded")
    return TokenRefreshResult(
        True,
        access_token=access_token,
        token_type=_str(data, "token_type"),
        refresh_token=new_refresh,
        expires_in=_int(data, "expires_in"),
        scope=_str(data, "scope"),
        me=_str(data, "me"),
    )


# ---- revocation ------------------------------------------------------------


async def _post_revocation(
    client: httpx.AsyncClient, endpoint: str, form: Dict[str, str]
) -> TokenRevocationResult:
    try:
        response = await client.post(endpoint, data=form, headers=JSON_ACCEPT)
    except REQUEST_ERRORS as e:
        log.warning("Token revocation failed: %s", e)
        return TokenRevocationResult(False, error="network_error", error_description=str(e))

    if response.is_success:
        log.info("Token revoked")
        return TokenRevocationResult(True)

    error, description = _oauth_error(response.text, "unknown_error")
    if error is None:
        log.warning("Token revocation failed: HTTP %s", response.status_code)
        return TokenRevocationResult(
            False,
            error="http_error",
            error_description=f"Revocation endpoint returned {response.status_code}",
        )
    log.warning("Token revocation failed: %s: %s", error, description)
    return TokenRevocationResult(False, error=error, error_description=description)


async def revoke_token(
    client: httpx.AsyncClient,
    revocation_endpoint: str,
    token: str,
    token_type_hint: str | None = None,
) -> TokenRevocationResult:
    """RFC 7009 revocation. Any 2xx means the token is gone."""
    if not revocation_endpoint:
        return TokenRevocationResult(False, "invalid_request", "Revocation endpoint is required")
    if not token:
        return TokenRevocationResult(False, "invalid_request", "Token is required")

    log.info("Revoking token at %s", revocation_endpoint)
    form = {"token": token}
    if token_type_hint:
        form["token_type_hint"] = token_type_hint
    return await _post_revocation(client, revocation_endpoint, form)


async def revoke_token_legacy(
    client: httpx.AsyncClient, token_endpoint: str, token: str
) -> TokenRevocationResult:
    """Revocation for servers that predate a separate revocation endpoint."""
    if not token_endpoint:
        return TokenRevocationResult(False, "invalid_request", "Token endpoint is required")
    if not token:
        return TokenRevocationResult(False, "invalid_request", "Token is required")

    log.info("Revoking token at %s (legacy)", token_endpoint)
    return await _post_revocation(
        client, token_endpoint, {"action": "revoke", "token": token}
    )


# ---- introspection ---------------------------------------------------------


def _introspection_auth(
    auth_method: IntrospectionAuthMethod,
    auth_token: str | None,
    client_id: str | None,
    client_secret: str | None,
) -> Dict[str, str]:
    if auth_method is IntrospectionAuthMethod.BEARER and auth_token:
        return {"Authorization": f"Bearer {auth_token}"}
    if (
        auth_method is IntrospectionAuthMethod.CLIENT_CREDENTIALS
        and client_id
        and client_secret
    ):
        raw = f"{client_id}:{client_secret}".encode("utf-8")
        return {"Authorization": "Basic " + base64.b64encode(raw).decode("ascii")}
    return {}


async def introspect_token(
    client: httpx.AsyncClient,
    introspection_endpoint: str,
    token: str,
    auth_method: IntrospectionAuthMethod = IntrospectionAuthMethod.NONE,
    auth_token: str | None = None,
    client_id: str | None = None,
    client_secret: str | None = None,
    token_type_hint: str | None = None,
) -> TokenIntrospectionResult:
    """
    Ask the introspection endpoint whether `token` is active.

    An inactive token is a successful exchange (``success=True,
    active=False``). Active tokens must name the `me` they belong to.
    """
    if not introspection_endpoint:
        return TokenIntrospectionResult(
            False, error="invalid_request", error_description="Introspection endpoint is required"
        )
    if not token:
        return TokenIntrospectionResult(
            False, error="invalid_request", error_description="Token is required"
        )

    log.info("Introspecting token at %s", introspection_endpoint)
    form = {"token": token}
    if token_type_hint:
        form["token_type_hint"] = token_type_hint
    headers = dict(JSON_ACCEPT)
    headers.update(_introspection_auth(auth_method, auth_token, client_id, client_secret))

    try:
        response = await client.post(introspection_endpoint, data=form, headers=headers)
    except REQUEST_ERRORS as e:
        log.warning("Token introspection failed: %s", e)
        return TokenIntrospectionResult(False, error="network_error", error_description=str(e))

    if response.status_code == 401:
        log.warning("Introspection endpoint %s returned 401", introspection_endpoint)
        return TokenIntrospectionResult(
            False,
            error="unauthorized",
            error_description="Introspection endpoint returned 401 Unauthorized",
        )
    if not response.is_success:
        log.warning(
            "Introspection endpoint %s returned %s: %s",
            introspection_endpoint,
            response.status_code,
            response.text,
        )
        return TokenIntrospectionResult(
            False,
            error="server_error",
            error_description=f"Introspection endpoint returned {response.status_code}",
        )

    try:
        data = _json_object(response.text)
    except ValueError:
        log.warning("Introspection response is not a JSON object")
        return TokenIntrospectionResult(
            False,
            error="invalid_response",
            error_description="Failed to parse introspection response",
        )

    if "active" not in data:
        return TokenIntrospectionResult(
            False,
            error="invalid_response",
            error_description="Response missing required 'active' property",
        )
    active_value = data["active"]
    if isinstance(active_value, bool):
        active = active_value
    elif isinstance(active_value, str):
        active = active_value.strip().lower() == "true"
    else:
        return TokenIntrospectionResult(
            False,
            error="invalid_response",
            error_description="'active' property has invalid type",
        )

    if not active:
        log.info("Introspected token is inactive")
        return TokenIntrospectionResult(True, active=False)

    me = _str(data, "me")
    if not me:
        log.warning("Active token introspection response is missing 'me'")
        return TokenIntrospectionResult(
            False,
            error="invalid_response",
            error_description="Active token response missing required 'me' property",
        )

    log.info("Introspected token is active for %s", me)
    return TokenIntrospectionResult(
        True,
        active=True,
        me=me,
        client_id=_str(data, "client_id"),
        scope=_str(data, "scope"),
        exp=_int(data, "exp"),
        iat=_int(data, "iat"),
        raw_response=data,
    )


# ---- userinfo --------------------------------------------------------------

_USERINFO_STATUS_ERRORS = {
    400: "invalid_request",
    401: "invalid_token",
    403: "insufficient_scope",
}


def parse_profile(data: Any) -> Optional[IndieAuthProfile]:
    if not isinstance(data, dict):
        return None
    return IndieAuthProfile(
        name=_str(data, "name"),
        url=_str(data, "url"),
        photo=_str(data, "photo"),
        email=_str(data, "email"),
    )


async def get_userinfo(
    client: httpx.AsyncClient, userinfo_endpoint: str, access_token: str
) -> UserinfoResult:
    if not userinfo_endpoint:
        return UserinfoResult(False, error="invalid_request", error_description="Userinfo endpoint is required")
    if not access_token:
        return UserinfoResult(False, error="invalid_request", error_description="Access token is required")

    log.info("Fetching userinfo from %s", userinfo_endpoint)
    headers = dict(JSON_ACCEPT)
    headers["Authorization"] = f"Bearer {access_token}"

    try:
        response = await client.get(userinfo_endpoint, headers=headers)
    except REQUEST_ERRORS as e:
        log.warning("Userinfo request failed: %s", e)
        return UserinfoResult(False, error="network_error", error_description=str(e))

    if not response.is_success:
        default_error = _USERINFO_STATUS_ERRORS.get(response.status_code, "server_error")
        error, description = _oauth_error(response.text, default_error)
        if error is None:
            log.warning("Userinfo request failed: HTTP %s", response.status_code)
            return UserinfoResult(
                False,
                error=default_error,
                error_description=(
                    f"Userinfo endpoint returned {response.status_code} {response.reason_phrase}"
                ),
            )
        log.warning("Userinfo request failed: %s: %s", error, description)
        return UserinfoResult(False, error=error, error_description=description)

    try:
        data = _json_object(response.text)
    except ValueError:
        return UserinfoResult(
            False, error="invalid_response", error_description="Failed to parse userinfo response"
        )

    log.info("Userinfo retrieved")
    return UserinfoResult(True, profile=parse_profile(data))
