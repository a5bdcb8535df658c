# indieauth_discovery/discovery.py
"""
HTTPX-based IndieAuth endpoint discovery.

Responsibilities:
- Fetch the profile URL (optionally HEAD first), following redirects.
- Apply the discovery precedence, first satisfied tier wins:
    1. `indieauth-metadata` in HTTP Link headers
    2. `indieauth-metadata` in HTML markup
    3. legacy `authorization_endpoint` + `token_endpoint` in Link headers
    4. the same legacy pair in HTML markup
- Fetch and validate the metadata document for tiers 1 and 2.
- Consult and populate the discovery cache (successes only).

All link parsing and URL resolution lives in link_logic.py. Remote failures
come back as failed DiscoveryResult values; nothing here retries.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from indieauth_discovery.cache import DEFAULT_EXPIRATION, DiscoveryCache
from indieauth_discovery.link_logic import (
    REL_AUTHORIZATION_ENDPOINT,
    REL_INDIEAUTH_METADATA,
    REL_TOKEN_ENDPOINT,
    find_first_by_rel_resolved,
    find_first_html_rel,
    parse_html_relations,
)
from indieauth_discovery.models import (
    DiscoveryMethod,
    DiscoveryOptions,
    DiscoveryResult,
    ErrorKind,
    ordered_unique,
)
from indieauth_discovery.urls import canonicalize

log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "indieauth_discovery (+https://indieauth.spec.indieweb.org/)"

# Raised by httpx for anything that never produced a response.
NETWORK_ERRORS = (httpx.RequestError, httpx.InvalidURL)
# httpx raises plain ValueErrors (idna.IDNAError among them) while building a
# request for a malformed host, before any transport runs.
REQUEST_ERRORS = NETWORK_ERRORS + (ValueError,)


def _redirect_chain(response: httpx.Response) -> List[str]:
    return [str(r.url) for r in response.history] + [str(response.url)]


def _status(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) and value else None


def _optional_list(data: Dict[str, Any], key: str):
    value = data.get(key)
    return ordered_unique(value) if isinstance(value, list) else None


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Discovery:
    """
    Discovers IndieAuth endpoints for profile URLs.

    Pass an existing httpx.AsyncClient to share connections with the rest of
    the application, or use ``async with Discovery(...)`` to let this object
    open and close its own client.

    Config keys consumed (when it opens its own client):
      - user_agent: str
      - timeout: float (seconds)
    """

    client: Optional[httpx.AsyncClient] = None
    cache: Optional[DiscoveryCache] = None
    default_cache_expiration: timedelta = DEFAULT_EXPIRATION
    config: Dict[str, Any] = field(default_factory=dict)

    _owns_client: bool = field(default=False, init=False, repr=False)

    async def __aenter__(self) -> "Discovery":
        if self.client is None:
            self.client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=self.config.get("timeout", 10.0),
                headers={"User-Agent": self.config.get("user_agent", DEFAULT_USER_AGENT)},
            )
            self._owns_client = True
            log.debug("httpx session opened for discovery.")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self.client is not None:
            await self.client.aclose()
            self.client = None
            self._owns_client = False
            log.debug("httpx session closed.")

    # ---- public ---------------------------------------------------------------

    async def discover(
        self, profile_url: str | None, options: DiscoveryOptions | None = None
    ) -> DiscoveryResult:
        """
        Discover the endpoints for `profile_url`.

        Never raises for malformed input, unreachable hosts or malformed
        remote responses; those come back as a failed result.
        """
        options = options or DiscoveryOptions()

        if not profile_url or not profile_url.strip():
            return DiscoveryResult.failure(
                "Profile URL is required", ErrorKind.INPUT, original_url=profile_url
            )
        if self.client is None:
            raise RuntimeError(
                "Discovery has no HTTP client; pass client= or use 'async with'."
            )

        target = canonicalize(profile_url.strip()) or profile_url

        if self.cache is not None and not options.bypass_cache:
            cached = self.cache.get(target)
            if cached is not None:
                log.debug("Discovery cache hit for %s", target)
                return dataclasses.replace(cached, method=DiscoveryMethod.CACHED)
            log.debug("Discovery cache miss for %s", target)

        log.info("Starting IndieAuth discovery for %s", target)

        result: DiscoveryResult | None = None
        if options.use_head_request:
            result = await self._discover_with_head(target)
        if result is None:
            result = await self._discover_with_get(target)

        result = dataclasses.replace(result, original_url=profile_url)

        if result.success:
            self._store(target, result, options)
        else:
            log.warning("Discovery failed for %s: %s", target, result.error_message)
        return result

    # ---- fetch strategies -----------------------------------------------------

    async def _discover_with_head(self, target: str) -> DiscoveryResult | None:
        """
        HEAD has no body, so only Link headers can be consulted. Returns None
        when the HEAD response is unusable or inconclusive so the caller falls
        through to GET.
        """
        log.debug("Trying HEAD discovery for %s", target)
        try:
            response = await self.client.request("HEAD", target, follow_redirects=True)
        except NETWORK_ERRORS as e:
            log.debug("HEAD request failed for %s: %s; falling back to GET", target, e)
            return None
        except ValueError as e:
            log.debug("HEAD request for %s could not be built: %s", target, e)
            return None

        if not response.is_success:
            log.debug("HEAD returned %s for %s; falling back to GET", _status(response), target)
            return None

        base = str(response.url)
        chain = _redirect_chain(response)
        links = response.headers.get_list("link")

        metadata_url = find_first_by_rel_resolved(links, REL_INDIEAUTH_METADATA, base)
        if metadata_url:
            log.info("HEAD found indieauth-metadata Link header: %s", metadata_url)
            return await self._fetch_metadata(
                metadata_url, DiscoveryMethod.METADATA_LINK_HEADER, chain
            )

        auth = find_first_by_rel_resolved(links, REL_AUTHORIZATION_ENDPOINT, base)
        token = find_first_by_rel_resolved(links, REL_TOKEN_ENDPOINT, base)
        if auth and token:
            log.info("HEAD found legacy endpoints in Link headers: %s, %s", auth, token)
            return self._legacy(auth, token, DiscoveryMethod.LEGACY_LINK_HEADER, chain)

        log.debug("HEAD for %s had no usable Link headers; falling back to GET", target)
        return None

    async def _discover_with_get(self, target: str) -> DiscoveryResult:
        try:
            response = await self.client.request("GET", target, follow_redirects=True)
        except NETWORK_ERRORS as e:
            return DiscoveryResult.failure(
                f"Failed to fetch profile URL: {e}", ErrorKind.NETWORK
            )
        except ValueError as e:
            return DiscoveryResult.failure(f"Invalid profile URL: {e}", ErrorKind.INPUT)

        chain = _redirect_chain(response)
        if not response.is_success:
            return DiscoveryResult.failure(
                f"Profile URL returned {_status(response)}",
                ErrorKind.HTTP_STATUS,
                discovered_urls=chain,
            )

        # Relative URLs resolve against where the redirects ended, not the input.
        base = str(response.url)
        log.info("Profile URL resolved to %s", base)

        links = response.headers.get_list("link")

        metadata_url = find_first_by_rel_resolved(links, REL_INDIEAUTH_METADATA, base)
        if metadata_url:
            log.info("Found indieauth-metadata in Link header: %s", metadata_url)
            return await self._fetch_metadata(
                metadata_url, DiscoveryMethod.METADATA_LINK_HEADER, chain
            )

        html_rels = parse_html_relations(response.text)

        metadata_url = find_first_html_rel(html_rels, REL_INDIEAUTH_METADATA, base)
        if metadata_url:
            log.info("Found indieauth-metadata in HTML: %s", metadata_url)
            return await self._fetch_metadata(
                metadata_url, DiscoveryMethod.METADATA_HTML_LINK, chain
            )

        auth = find_first_by_rel_resolved(links, REL_AUTHORIZATION_ENDPOINT, base)
        token = find_first_by_rel_resolved(links, REL_TOKEN_ENDPOINT, base)
        if auth and token:
            log.info("Found legacy endpoints in Link headers: %s, %s", auth, token)
            return self._legacy(auth, token, DiscoveryMethod.LEGACY_LINK_HEADER, chain)

        auth = find_first_html_rel(html_rels, REL_AUTHORIZATION_ENDPOINT, base)
        token = find_first_html_rel(html_rels, REL_TOKEN_ENDPOINT, base)
        if auth and token:
            log.info("Found legacy endpoints in HTML: %s, %s", auth, token)
            return self._legacy(auth, token, DiscoveryMethod.LEGACY_HTML_LINK, chain)

        log.info("No IndieAuth endpoints found for %s", target)
        return DiscoveryResult.failure(
            "No IndieAuth endpoints found", ErrorKind.PROTOCOL, discovered_urls=chain
        )

    async def _fetch_metadata(
        self, metadata_url: str, method: DiscoveryMethod, chain: List[str]
    ) -> DiscoveryResult:
        """A failure here is final: legacy tiers are not consulted afterwards."""
        log.debug("Fetching IndieAuth metadata from %s", metadata_url)
        try:
            response = await self.client.request(
                "GET",
                metadata_url,
                headers={"Accept": "application/json"},
                follow_redirects=True,
            )
        except NETWORK_ERRORS as e:
            return DiscoveryResult.failure(
                f"Failed to fetch metadata: {e}", ErrorKind.NETWORK, discovered_urls=chain
            )
        except ValueError as e:
            log.warning("Metadata URL %s is malformed: %s", metadata_url, e)
            return DiscoveryResult.failure(
                f"Invalid metadata URL: {e}", ErrorKind.PROTOCOL, discovered_urls=chain
            )

        if not response.is_success:
            return DiscoveryResult.failure(
                f"Metadata URL returned {_status(response)}",
                ErrorKind.HTTP_STATUS,
                discovered_urls=chain,
            )

        try:
            metadata = response.json()
        except ValueError as e:
            log.warning("Metadata at %s is not valid JSON: %s", metadata_url, e)
            return DiscoveryResult.failure(
                f"Invalid metadata JSON: {e}", ErrorKind.PROTOCOL, discovered_urls=chain
            )
        if not isinstance(metadata, dict):
            return DiscoveryResult.failure(
                "Invalid metadata JSON: expected an object",
                ErrorKind.PROTOCOL,
                discovered_urls=chain,
            )

        auth = _optional_str(metadata, "authorization_endpoint")
        token = _optional_str(metadata, "token_endpoint")
        if not auth or not token:
            log.warning("Metadata at %s is missing required endpoints", metadata_url)
            return DiscoveryResult.failure(
                "Metadata missing required endpoints",
                ErrorKind.PROTOCOL,
                discovered_urls=chain,
            )

        log.info("Endpoints from metadata: authorization=%s token=%s", auth, token)
        return DiscoveryResult(
            success=True,
            authorization_endpoint=auth,
            token_endpoint=token,
            issuer=_optional_str(metadata, "issuer"),
            userinfo_endpoint=_optional_str(metadata, "userinfo_endpoint"),
            revocation_endpoint=_optional_str(metadata, "revocation_endpoint"),
            introspection_endpoint=_optional_str(metadata, "introspection_endpoint"),
            scopes_supported=_optional_list(metadata, "scopes_supported"),
            code_challenge_methods=_optional_list(
                metadata, "code_challenge_methods_supported"
            ),
            method=method,
            discovered_at=_now(),
            discovered_urls=tuple(chain),
        )

    # ---- helpers --------------------------------------------------------------

    @staticmethod
    def _legacy(
        auth: str, token: str, method: DiscoveryMethod, chain: List[str]
    ) -> DiscoveryResult:
        return DiscoveryResult(
            success=True,
            authorization_endpoint=auth,
            token_endpoint=token,
            method=method,
            discovered_at=_now(),
            discovered_urls=tuple(chain),
        )

    def _store(
        self, target: str, result: DiscoveryResult, options: DiscoveryOptions
    ) -> None:
        if self.cache is None:
            return
        expiration = options.cache_expiration or self.default_cache_expiration
        self.cache.set(target, result, expiration)
        log.debug("Cached discovery result for %s for %s", target, expiration)
