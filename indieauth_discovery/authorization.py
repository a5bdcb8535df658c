# indieauth_discovery/authorization.py
"""
The authorization-code leg of an IndieAuth sign-in.

- generate_pkce_pair / generate_state: per-request secrets (RFC 7636 S256)
- build_authorization_url: the redirect to the discovered authorization endpoint
- exchange_code: redeem the code at the token endpoint

Discovery, confirmation and issuer validation are separate steps the caller
runs around these (see discovery.py and confirmation.py).
"""
from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from indieauth_discovery.discovery import REQUEST_ERRORS
from indieauth_discovery.models import IndieAuthProfile
from indieauth_discovery.tokens import JSON_ACCEPT, parse_profile

log = logging.getLogger(__name__)

CODE_CHALLENGE_METHOD_S256 = "S256"


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


@dataclass(frozen=True)
class PkcePair:
    verifier: str
    challenge: str
    method: str = CODE_CHALLENGE_METHOD_S256


def code_challenge(verifier: str) -> str:
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_pkce_pair() -> PkcePair:
    # 32 random bytes encode to a 43-character verifier.
    verifier = _b64url(secrets.token_bytes(32))
    return PkcePair(verifier=verifier, challenge=code_challenge(verifier))


def generate_state() -> str:
    return secrets.token_urlsafe(32)


def build_authorization_url(
    authorization_endpoint: str,
    client_id: str,
    redirect_uri: str,
    state: str,
    code_challenge: str,
    me: str | None = None,
    scope: str | None = None,
) -> str:
    """
    Append the authorization request parameters to `authorization_endpoint`.

    Query parameters already on the endpoint are kept, in front of ours.
    """
    parts = urlsplit(authorization_endpoint)
    params = parse_qsl(parts.query, keep_blank_values=True)
    params += [
        ("response_type", "code"),
        ("client_id", client_id),
        ("redirect_uri", redirect_uri),
        ("state", state),
        ("code_challenge", code_challenge),
        ("code_challenge_method", CODE_CHALLENGE_METHOD_S256),
    ]
    if scope:
        params.append(("scope", scope))
    if me:
        params.append(("me", me))
    return urlunsplit(parts._replace(query=urlencode(params)))


@dataclass(frozen=True)
class TokenResponse:
    """Outcome of an authorization-code exchange. ``error`` is None on success."""

    access_token: Optional[str] = None
    token_type: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    me: Optional[str] = None
    profile: Optional[IndieAuthProfile] = None
    error: Optional[str] = None
    error_description: Optional[str] = None
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False)

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, error: str, description: str | None = None, raw=None) -> "TokenResponse":
        return cls(error=error, error_description=description, raw=raw)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TokenResponse":
        def text(key: str) -> Optional[str]:
            value = data.get(key)
            return value if isinstance(value, str) else None

        if isinstance(data.get("error"), str):
            return cls.failed(data["error"], text("error_description"), raw=data)

        me = text("me")
        if not me:
            return cls.failed(
                "invalid_response", "Token response missing required 'me' property", raw=data
            )

        expires_in = data.get("expires_in")
        if isinstance(expires_in, str) and expires_in.strip().isdigit():
            expires_in = int(expires_in)
        elif not isinstance(expires_in, int) or isinstance(expires_in, bool):
            expires_in = None

        return cls(
            access_token=text("access_token"),
            token_type=text("token_type"),
            refresh_token=text("refresh_token"),
            expires_in=expires_in,
            scope=text("scope"),
            me=me,
            profile=parse_profile(data.get("profile")),
            raw=data,
        )


async def exchange_code(
    client: httpx.AsyncClient,
    token_endpoint: str,
    code: str,
    client_id: str,
    redirect_uri: str,
    code_verifier: str | None = None,
) -> TokenResponse:
    """
    Redeem an authorization code. The `me` in a successful response still has
    to go through AuthorizationServerConfirmation before it is trusted.
    """
    if not token_endpoint:
        return TokenResponse.failed("invalid_request", "Token endpoint is required")
    if not code:
        return TokenResponse.failed("invalid_request", "Authorization code is required")

    form = {
        "grant_type": "authorization_code",
        "code": code,
        "client_id": client_id,
        "redirect_uri": redirect_uri,
    }
    if code_verifier:
        form["code_verifier"] = code_verifier

    log.info("Exchanging authorization code at %s", token_endpoint)
    try:
        response = await client.post(token_endpoint, data=form, headers=JSON_ACCEPT)
    except REQUEST_ERRORS as e:
        log.warning("Code exchange failed: %s", e)
        return TokenResponse.failed("network_error", str(e))

    try:
        data = response.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        if response.is_success:
            return TokenResponse.failed("invalid_response", "Failed to parse token response")
        log.warning("Code exchange failed: HTTP %s", response.status_code)
        return TokenResponse.failed(
            "http_error", f"Token endpoint returned {response.status_code}"
        )

    token = TokenResponse.from_json(data)
    if not response.is_success and token.success:
        token = TokenResponse.failed(
            "http_error", f"Token endpoint returned {response.status_code}", raw=data
        )

    if token.success:
        log.info("Code exchange succeeded for %s", token.me)
    else:
        log.warning("Code exchange failed: %s: %s", token.error, token.error_description)
    return token
