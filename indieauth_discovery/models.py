# Defines the data structures shared by discovery, confirmation and the token services.

from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Optional, Tuple


class DiscoveryMethod(enum.Enum):
    """Which precedence tier produced a discovery result."""

    UNKNOWN = "unknown"
    METADATA_LINK_HEADER = "metadata-link-header"
    METADATA_HTML_LINK = "metadata-html-link"
    LEGACY_LINK_HEADER = "legacy-link-header"
    LEGACY_HTML_LINK = "legacy-html-link"
    CACHED = "cached"


class ConfirmationMethod(enum.Enum):
    """How an authorization server was confirmed for a returned profile URL."""

    UNKNOWN = "unknown"
    EXACT_MATCH = "exact-match"
    REDIRECT_CHAIN_MATCH = "redirect-chain-match"
    RE_DISCOVERY_MATCH = "re-discovery-match"


class ErrorKind(enum.Enum):
    """
    Failure taxonomy.

    SECURITY marks a potential impersonation attempt (endpoint or issuer
    mismatch) rather than a misconfigured server.
    """

    NONE = "none"
    INPUT = "input"
    NETWORK = "network"
    HTTP_STATUS = "http-status"
    PROTOCOL = "protocol"
    SECURITY = "security"


class ProfileUrlValidationError(enum.Enum):
    NONE = "none"
    NULL_OR_EMPTY = "null-or-empty"
    MALFORMED_URL = "malformed-url"
    INVALID_SCHEME = "invalid-scheme"
    MISSING_PATH = "missing-path"
    DOT_PATH_SEGMENT = "dot-path-segment"
    CONTAINS_FRAGMENT = "contains-fragment"
    CONTAINS_USERNAME = "contains-username"
    CONTAINS_PASSWORD = "contains-password"
    CONTAINS_PORT = "contains-port"
    HOST_IS_IPV4_ADDRESS = "host-is-ipv4-address"
    HOST_IS_IPV6_ADDRESS = "host-is-ipv6-address"


def ordered_unique(values: Iterable[str] | None) -> Tuple[str, ...] | None:
    if values is None:
        return None
    out: list[str] = []
    for v in values:
        if isinstance(v, str) and v not in out:
            out.append(v)
    return tuple(out)


@dataclass(frozen=True)
class DiscoveryOptions:
    """Per-call discovery switches."""

    use_head_request: bool = False
    bypass_cache: bool = False
    cache_expiration: Optional[timedelta] = None


@dataclass(frozen=True)
class DiscoveryResult:
    """
    The outcome of one discovery attempt.

    Instances are immutable. A cached copy is handed back through
    ``dataclasses.replace`` with ``method`` set to CACHED, never edited in place.
    """

    success: bool
    authorization_endpoint: str = ""
    token_endpoint: str = ""
    error_message: Optional[str] = None
    issuer: Optional[str] = None
    userinfo_endpoint: Optional[str] = None
    revocation_endpoint: Optional[str] = None
    introspection_endpoint: Optional[str] = None
    scopes_supported: Optional[Tuple[str, ...]] = None
    code_challenge_methods: Optional[Tuple[str, ...]] = None
    method: DiscoveryMethod = DiscoveryMethod.UNKNOWN
    discovered_at: Optional[datetime] = None
    discovered_urls: Tuple[str, ...] = ()
    original_url: Optional[str] = None
    error_kind: ErrorKind = ErrorKind.NONE

    @classmethod
    def failure(
        cls,
        message: str,
        kind: ErrorKind,
        *,
        original_url: str | None = None,
        discovered_urls: Iterable[str] = (),
    ) -> "DiscoveryResult":
        return cls(
            success=False,
            error_message=message,
            error_kind=kind,
            original_url=original_url,
            discovered_urls=tuple(discovered_urls),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation, suitable for persisting across a redirect."""
        return {
            "success": self.success,
            "authorization_endpoint": self.authorization_endpoint,
            "token_endpoint": self.token_endpoint,
            "error_message": self.error_message,
            "issuer": self.issuer,
            "userinfo_endpoint": self.userinfo_endpoint,
            "revocation_endpoint": self.revocation_endpoint,
            "introspection_endpoint": self.introspection_endpoint,
            "scopes_supported": (
                list(self.scopes_supported) if self.scopes_supported is not None else None
            ),
            "code_challenge_methods": (
                list(self.code_challenge_methods)
                if self.code_challenge_methods is not None
                else None
            ),
            "method": self.method.value,
            "discovered_at": (
                self.discovered_at.isoformat() if self.discovered_at else None
            ),
            "discovered_urls": list(self.discovered_urls),
            "original_url": self.original_url,
            "error_kind": self.error_kind.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DiscoveryResult":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}

        values["success"] = bool(values.get("success", False))
        values["authorization_endpoint"] = values.get("authorization_endpoint") or ""
        values["token_endpoint"] = values.get("token_endpoint") or ""
        values["scopes_supported"] = ordered_unique(values.get("scopes_supported"))
        values["code_challenge_methods"] = ordered_unique(
            values.get("code_challenge_methods")
        )
        values["discovered_urls"] = tuple(values.get("discovered_urls") or ())
        values["method"] = DiscoveryMethod(
            values.get("method") or DiscoveryMethod.UNKNOWN.value
        )
        values["error_kind"] = ErrorKind(
            values.get("error_kind") or ErrorKind.NONE.value
        )
        stamp = values.get("discovered_at")
        values["discovered_at"] = datetime.fromisoformat(stamp) if stamp else None
        return cls(**values)


@dataclass(frozen=True)
class ConfirmationResult:
    success: bool
    error_message: Optional[str] = None
    method: ConfirmationMethod = ConfirmationMethod.UNKNOWN
    error_kind: ErrorKind = ErrorKind.NONE


@dataclass(frozen=True)
class IssuerValidationResult:
    """``skipped`` is True when discovery recorded no issuer to compare against."""

    success: bool
    error_message: Optional[str] = None
    skipped: bool = False
    error_kind: ErrorKind = ErrorKind.NONE


@dataclass(frozen=True)
class ProfileUrlValidationResult:
    valid: bool
    error_code: ProfileUrlValidationError = ProfileUrlValidationError.NONE
    error_message: Optional[str] = None


@dataclass(frozen=True)
class IndieAuthProfile:
    """Profile information an authorization server may return with the `me` URL."""

    name: Optional[str] = None
    url: Optional[str] = None
    photo: Optional[str] = None
    email: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return any(v is not None for v in (self.name, self.url, self.photo, self.email))


@dataclass(frozen=True)
class TokenRefreshResult:
    success: bool
    access_token: Optional[str] = None
    token_type: Optional[str] = None
    # A new refresh token replaces the old one; the caller must discard the old.
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    me: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


@dataclass(frozen=True)
class TokenRevocationResult:
    success: bool
    error: Optional[str] = None
    error_description: Optional[str] = None


@dataclass(frozen=True)
class TokenIntrospectionResult:
    """``success`` reports the exchange; ``active`` reports the token."""

    success: bool
    active: bool = False
    me: Optional[str] = None
    client_id: Optional[str] = None
    scope: Optional[str] = None
    exp: Optional[int] = None
    iat: Optional[int] = None
    error: Optional[str] = None
    error_description: Optional[str] = None
    raw_response: Optional[dict[str, Any]] = field(default=None, compare=False)


@dataclass(frozen=True)
class UserinfoResult:
    success: bool
    profile: Optional[IndieAuthProfile] = None
    error: Optional[str] = None
    error_description: Optional[str] = None
