# indieauth_discovery/confirmation.py
"""
Post-authentication checks.

The `me` URL an authorization server returns may legitimately differ from
what the user typed (subdomain delegation, path-based multi-user sites). The
server is only trusted for that URL if one of these holds, checked in order:

  1. it equals the canonicalized input URL
  2. it was visited during the original discovery's redirect chain
  3. discovering it again yields the same authorization endpoint

Anything else is rejected as a potential impersonation attempt.
"""
from __future__ import annotations

import logging

from indieauth_discovery.discovery import Discovery
from indieauth_discovery.models import (
    ConfirmationMethod,
    ConfirmationResult,
    DiscoveryOptions,
    DiscoveryResult,
    ErrorKind,
    IssuerValidationResult,
)
from indieauth_discovery.urls import canonicalize

log = logging.getLogger(__name__)


def _same_url(a: str | None, b: str | None) -> bool:
    return (a or "").lower() == (b or "").lower()


class AuthorizationServerConfirmation:
    """Verifies an authorization server's claim about a returned profile URL."""

    def __init__(self, discovery: Discovery):
        if discovery is None:
            raise TypeError("discovery is required")
        self.discovery = discovery

    async def confirm(
        self,
        original: DiscoveryResult,
        returned_me: str | None,
        canonicalized_input: str,
    ) -> ConfirmationResult:
        if not original.success:
            return ConfirmationResult(
                False, "Original discovery was not successful", error_kind=ErrorKind.INPUT
            )
        if not returned_me:
            return ConfirmationResult(
                False, "Returned 'me' URL is empty", error_kind=ErrorKind.INPUT
            )

        returned = canonicalize(returned_me)

        if _same_url(returned, canonicalized_input):
            log.debug("Authorization server confirmed by exact match: %s", returned_me)
            return ConfirmationResult(True, method=ConfirmationMethod.EXACT_MATCH)

        for visited in original.discovered_urls:
            if _same_url(returned, canonicalize(visited)):
                log.debug(
                    "Authorization server confirmed by redirect chain: %s via %s",
                    returned_me,
                    visited,
                )
                return ConfirmationResult(
                    True, method=ConfirmationMethod.REDIRECT_CHAIN_MATCH
                )

        log.info("Re-discovering %s to confirm its authorization server", returned)
        again = await self.discovery.discover(
            returned, DiscoveryOptions(bypass_cache=False)
        )
        if not again.success:
            log.warning(
                "Re-discovery failed for returned URL %s: %s",
                returned_me,
                again.error_message,
            )
            return ConfirmationResult(
                False,
                "Failed to discover authorization endpoint for returned URL: "
                f"{again.error_message}",
                error_kind=again.error_kind,
            )

        if _same_url(again.authorization_endpoint, original.authorization_endpoint):
            log.debug(
                "Authorization server confirmed by re-discovery: %s -> %s",
                returned_me,
                again.authorization_endpoint,
            )
            return ConfirmationResult(True, method=ConfirmationMethod.RE_DISCOVERY_MATCH)

        log.warning(
            "Authorization endpoint mismatch for %s: original=%s returned=%s",
            returned_me,
            original.authorization_endpoint,
            again.authorization_endpoint,
        )
        return ConfirmationResult(
            False,
            f"Authorization endpoint mismatch: original '{original.authorization_endpoint}' "
            f"does not match returned URL's endpoint '{again.authorization_endpoint}'",
            error_kind=ErrorKind.SECURITY,
        )


def validate_issuer(
    expected_issuer: str | None, received_issuer: str | None
) -> IssuerValidationResult:
    """
    Compare the `iss` callback parameter with the issuer recorded at discovery.

    Exact, case-sensitive comparison. With no expected issuer (legacy
    discovery, no metadata) the check is skipped; a missing `iss` when one was
    expected is a failure.
    """
    if not expected_issuer:
        log.debug("Issuer validation skipped: discovery recorded no issuer")
        return IssuerValidationResult(True, skipped=True)

    if not received_issuer:
        log.warning(
            "Issuer parameter missing from callback but expected issuer was %s",
            expected_issuer,
        )
        return IssuerValidationResult(
            False,
            "Missing 'iss' parameter in authorization callback. "
            f"Expected issuer: {expected_issuer}",
            error_kind=ErrorKind.SECURITY,
        )

    if expected_issuer != received_issuer:
        log.warning(
            "Issuer validation failed: expected=%s, received=%s",
            expected_issuer,
            received_issuer,
        )
        return IssuerValidationResult(
            False,
            f"Issuer mismatch: expected '{expected_issuer}', received '{received_issuer}'",
            error_kind=ErrorKind.SECURITY,
        )

    log.debug("Issuer validation successful: %s", received_issuer)
    return IssuerValidationResult(True)
