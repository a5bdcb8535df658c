# indieauth_discovery/urls.py
"""
Profile URL helpers.

- canonicalize(): turn user input ("Example.com") into a comparable profile URL.
- validate_profile_url(): enforce the narrow URL shape IndieAuth allows for
  identity URLs. Pure, no I/O; the first failing check wins.
"""
from __future__ import annotations

import ipaddress
import logging
from urllib.parse import unquote, urlsplit, urlunsplit

from indieauth_discovery.models import (
    ProfileUrlValidationError,
    ProfileUrlValidationResult,
)

log = logging.getLogger(__name__)

ALLOWED_SCHEMES = {"http", "https"}


def canonicalize(url: str | None) -> str | None:
    """
    Normalize a profile URL.

    - Bare hosts ("example.com") get an https:// prefix.
    - Host is lowercased. Path case is left alone (servers decide that).
    - Empty path becomes "/". Fragment is dropped.
    - Scheme, port, query and non-empty path are kept.
    - Empty input comes back unchanged; malformed input comes back unchanged.
    """
    if not url:
        return url

    if "://" not in url:
        url = "https://" + url

    try:
        p = urlsplit(url)
    except ValueError:
        log.debug("Cannot canonicalize malformed URL: %s", url)
        return url

    userinfo, at, hostport = p.netloc.rpartition("@")
    netloc = f"{userinfo}{at}{hostport.lower()}"

    return urlunsplit((p.scheme, netloc, p.path or "/", p.query, ""))


def _fail(
    code: ProfileUrlValidationError, message: str
) -> ProfileUrlValidationResult:
    return ProfileUrlValidationResult(valid=False, error_code=code, error_message=message)


def _is_ipv4(host: str) -> bool:
    try:
        ipaddress.IPv4Address(host)
    except ValueError:
        return False
    return True


def validate_profile_url(url: str | None) -> ProfileUrlValidationResult:
    """
    Check a URL against the IndieAuth profile URL rules.

    Query strings, deep paths, IDN/punycode hosts, "localhost" and
    hidden-file segments such as "/.hidden" are all acceptable.
    """
    if url is None or not url.strip():
        return _fail(
            ProfileUrlValidationError.NULL_OR_EMPTY, "Profile URL is null or empty."
        )

    malformed = _fail(
        ProfileUrlValidationError.MALFORMED_URL, f"'{url}' is not a well-formed URL."
    )
    if any(ch.isspace() for ch in url):
        return malformed
    try:
        p = urlsplit(url)
        port = p.port  # raises on a non-numeric port
    except ValueError:
        return malformed
    if not p.scheme:
        return malformed

    if p.scheme not in ALLOWED_SCHEMES:
        return _fail(
            ProfileUrlValidationError.INVALID_SCHEME,
            f"Profile URL scheme '{p.scheme}' is not valid. Must be 'http' or 'https'.",
        )

    host = p.hostname or ""
    if not host:
        return malformed

    if not p.path:
        return _fail(
            ProfileUrlValidationError.MISSING_PATH,
            "Profile URL must contain a path component ('/' is valid).",
        )

    for segment in p.path.split("/"):
        if unquote(segment) in (".", ".."):
            return _fail(
                ProfileUrlValidationError.DOT_PATH_SEGMENT,
                f"Profile URL must not contain '{unquote(segment)}' path segments.",
            )

    if "#" in url:
        return _fail(
            ProfileUrlValidationError.CONTAINS_FRAGMENT,
            "Profile URL must not contain a fragment component.",
        )

    if p.username:
        return _fail(
            ProfileUrlValidationError.CONTAINS_USERNAME,
            "Profile URL must not contain a username component.",
        )
    if p.password:
        return _fail(
            ProfileUrlValidationError.CONTAINS_PASSWORD,
            "Profile URL must not contain a password component.",
        )

    if port is not None:
        return _fail(
            ProfileUrlValidationError.CONTAINS_PORT,
            f"Profile URL must not contain a port (found port {port}).",
        )

    if _is_ipv4(host):
        return _fail(
            ProfileUrlValidationError.HOST_IS_IPV4_ADDRESS,
            f"Profile URL host '{host}' is an IPv4 address. Host must be a domain name.",
        )
    if "[" in p.netloc:
        return _fail(
            ProfileUrlValidationError.HOST_IS_IPV6_ADDRESS,
            f"Profile URL host '{host}' is an IPv6 address. Host must be a domain name.",
        )

    return ProfileUrlValidationResult(valid=True)
