# Entrypoint for the indieauth_discovery package.
# This file makes the public API available to programmers.

from __future__ import annotations

from indieauth_discovery.__about__ import __version__
from indieauth_discovery.api import (
    confirm_authorization_server,
    discover_endpoints,
)
from indieauth_discovery.cache import (
    CacheConfig,
    DiscoveryCache,
    FileDiscoveryCache,
    InMemoryDiscoveryCache,
    build_cache,
)
from indieauth_discovery.config import cache_config, load_config
from indieauth_discovery.confirmation import (
    AuthorizationServerConfirmation,
    validate_issuer,
)
from indieauth_discovery.discovery import Discovery
from indieauth_discovery.link_logic import (
    LinkRelation,
    find_first_by_rel,
    parse_link_headers,
)
from indieauth_discovery.models import (
    ConfirmationMethod,
    ConfirmationResult,
    DiscoveryMethod,
    DiscoveryOptions,
    DiscoveryResult,
    ErrorKind,
    IssuerValidationResult,
    ProfileUrlValidationError,
    ProfileUrlValidationResult,
)
from indieauth_discovery.urls import canonicalize, validate_profile_url

# The __all__ variable defines the public API of the package.
# When a user writes `from indieauth_discovery import *`, only these names will be imported.
__all__ = [
    "AuthorizationServerConfirmation",
    "CacheConfig",
    "ConfirmationMethod",
    "ConfirmationResult",
    "Discovery",
    "DiscoveryCache",
    "DiscoveryMethod",
    "DiscoveryOptions",
    "DiscoveryResult",
    "ErrorKind",
    "FileDiscoveryCache",
    "InMemoryDiscoveryCache",
    "IssuerValidationResult",
    "LinkRelation",
    "ProfileUrlValidationError",
    "ProfileUrlValidationResult",
    "build_cache",
    "cache_config",
    "canonicalize",
    "confirm_authorization_server",
    "discover_endpoints",
    "find_first_by_rel",
    "load_config",
    "parse_link_headers",
    "validate_issuer",
    "validate_profile_url",
    "__version__",
]
