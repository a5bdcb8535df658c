# indieauth_discovery/api.py
# The primary, programmer-facing API for the library.

from __future__ import annotations

import contextlib
import logging
from datetime import timedelta
from typing import Any, AsyncIterator, Mapping, Optional, Union

import httpx

from indieauth_discovery.cache import DiscoveryCache, FileDiscoveryCache
from indieauth_discovery.config import cache_config, load_config
from indieauth_discovery.confirmation import (
    AuthorizationServerConfirmation,
    validate_issuer,
)
from indieauth_discovery.discovery import Discovery
from indieauth_discovery.models import (
    ConfirmationResult,
    DiscoveryOptions,
    DiscoveryResult,
    ErrorKind,
)
from indieauth_discovery.urls import canonicalize, validate_profile_url

log = logging.getLogger(__name__)

__all__ = [
    "canonicalize",
    "confirm_authorization_server",
    "discover_endpoints",
    "validate_issuer",
    "validate_profile_url",
]


def _as_timedelta(value: Union[timedelta, float, int, None]) -> Optional[timedelta]:
    if value is None or isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


@contextlib.asynccontextmanager
async def _engine(
    config: Mapping[str, Any],
    client: httpx.AsyncClient | None,
    cache: DiscoveryCache | None,
) -> AsyncIterator[Discovery]:
    """
    A Discovery wired from config.

    An explicit `cache` is used as given. Otherwise only a configured file
    cache is opened (and closed again afterwards); an in-memory cache has to
    be created and passed in by the caller so its lifetime is theirs.
    """
    cfg = cache_config(config)
    opened: FileDiscoveryCache | None = None
    if cache is None and cfg.enabled and cfg.backend == "file":
        opened = cache = FileDiscoveryCache(cfg)

    discovery = Discovery(
        client=client,
        cache=cache,
        default_cache_expiration=timedelta(seconds=cfg.expire_seconds),
        config=dict(config),
    )
    try:
        async with discovery:
            yield discovery
    finally:
        if opened is not None:
            opened.close()


async def discover_endpoints(
    profile_url: str | None,
    *,
    client: httpx.AsyncClient | None = None,
    cache: DiscoveryCache | None = None,
    use_head_request: bool | None = None,
    bypass_cache: bool = False,
    cache_expiration: Union[timedelta, float, None] = None,
    config: Mapping[str, Any] | None = None,
) -> DiscoveryResult:
    """
    Discover the IndieAuth endpoints for a profile URL.

    Args:
        profile_url: What the user typed; it is canonicalized first.
        client: An httpx.AsyncClient to reuse. One is opened and closed
            around this call when omitted.
        cache: The cache to read and populate. When omitted, the file cache
            is used if the config selects it, otherwise nothing is cached.
        use_head_request: Overrides the `use_head_request` config key.
        bypass_cache: Skip the cache read (a success is still stored).
        cache_expiration: Lifetime of the stored result (timedelta or seconds).
        config: A loaded config; defaults plus pyproject.toml when omitted.

    Returns:
        A DiscoveryResult. Failures are reported in the result, not raised.
    """
    config = config if config is not None else load_config()

    if (
        config.get("strict_profile_url_validation", True)
        and profile_url
        and profile_url.strip()
    ):
        validation = validate_profile_url(canonicalize(profile_url.strip()))
        if not validation.valid:
            log.warning(
                "Rejected profile URL %s: %s", profile_url, validation.error_message
            )
            return DiscoveryResult.failure(
                validation.error_message or "Invalid profile URL",
                ErrorKind.INPUT,
                original_url=profile_url,
            )

    if use_head_request is None:
        use_head_request = bool(config.get("use_head_request", False))
    options = DiscoveryOptions(
        use_head_request=use_head_request,
        bypass_cache=bypass_cache,
        cache_expiration=_as_timedelta(cache_expiration),
    )

    async with _engine(config, client, cache) as discovery:
        return await discovery.discover(profile_url, options)


async def confirm_authorization_server(
    original: DiscoveryResult,
    returned_me: str | None,
    canonicalized_input: str,
    *,
    client: httpx.AsyncClient | None = None,
    cache: DiscoveryCache | None = None,
    config: Mapping[str, Any] | None = None,
) -> ConfirmationResult:
    """Check that the authorization server may speak for `returned_me`."""
    config = config if config is not None else load_config()
    async with _engine(config, client, cache) as discovery:
        confirmation = AuthorizationServerConfirmation(discovery)
        return await confirmation.confirm(original, returned_me, canonicalized_input)
