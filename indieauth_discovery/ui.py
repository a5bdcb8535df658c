# indieauth_discovery/ui.py
# Presentation-only utilities for CLI output.
from __future__ import annotations

from typing import IO

from indieauth_discovery.models import DiscoveryResult, ProfileUrlValidationResult


def _writeln(text: str = "", *, file: IO[str]) -> None:
    file.write(text + "\n")


def render_discover_header(url: str, *, file: IO[str]) -> None:
    _writeln(f"Discovering IndieAuth endpoints for: {url}...", file=file)


def render_discovery_result(result: DiscoveryResult, *, file: IO[str]) -> None:
    if not result.success:
        _writeln(f"\nDiscovery failed ({result.error_kind.value}): {result.error_message}", file=file)
        return

    _writeln(f"\nFound via: {result.method.value}", file=file)
    _writeln(f"  authorization_endpoint: {result.authorization_endpoint}", file=file)
    _writeln(f"  token_endpoint:         {result.token_endpoint}", file=file)
    optional = [
        ("issuer", result.issuer),
        ("userinfo_endpoint", result.userinfo_endpoint),
        ("revocation_endpoint", result.revocation_endpoint),
        ("introspection_endpoint", result.introspection_endpoint),
    ]
    for label, value in optional:
        if value:
            _writeln(f"  {label + ':':<23} {value}", file=file)
    if result.scopes_supported:
        _writeln(f"  scopes_supported:       {' '.join(result.scopes_supported)}", file=file)
    if result.code_challenge_methods:
        _writeln(
            f"  code_challenge_methods: {' '.join(result.code_challenge_methods)}",
            file=file,
        )


def render_redirect_chain(result: DiscoveryResult, *, file: IO[str]) -> None:
    if len(result.discovered_urls) < 2:
        return
    _writeln("\n--- Redirect Chain ---", file=file)
    for i, url in enumerate(result.discovered_urls):
        prefix = "└─" if i == len(result.discovered_urls) - 1 else "├─"
        _writeln(f"{prefix} {url}", file=file)


def render_validation(url: str, result: ProfileUrlValidationResult, *, file: IO[str]) -> None:
    if result.valid:
        _writeln(f"{url}: valid", file=file)
    else:
        _writeln(f"{url}: invalid [{result.error_code.value}] {result.error_message}", file=file)
