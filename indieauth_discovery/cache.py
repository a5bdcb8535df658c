# indieauth_discovery/cache.py
"""
Discovery result caches.

- Keys: profile URLs, lowercased with one trailing "/" removed, so
  "https://Example.com/" and "https://example.com" share an entry.
- Values: successful DiscoveryResult objects. Reads hand back a copy with
  method=CACHED; the stored value is never modified.
- Expiry is lazy: an entry past its deadline is dropped when read.

Two backends:
- InMemoryDiscoveryCache: a bounded dict guarded by a lock.
- FileDiscoveryCache: diskcache.Cache (survives restarts, shared between
  processes). Location is a visible folder in CWD, or an OS-specific app cache
  dir via platformdirs.
"""
from __future__ import annotations

import dataclasses
import logging
import os
import threading
import time
from datetime import timedelta
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, Tuple, Union

import diskcache
from platformdirs import user_cache_dir as _user_cache_dir

from indieauth_discovery.models import DiscoveryMethod, DiscoveryResult

log = logging.getLogger(__name__)

DEFAULT_EXPIRATION = timedelta(minutes=5)
DEFAULT_MAX_ENTRIES = 1000

Expiration = Union[timedelta, float, int]


def normalize_cache_key(profile_url: str) -> str:
    key = profile_url.lower()
    if key.endswith("/"):
        key = key[:-1]
    return key


def _seconds(expiration: Expiration | None, default: timedelta) -> float:
    if expiration is None:
        return default.total_seconds()
    if isinstance(expiration, timedelta):
        return expiration.total_seconds()
    return float(expiration)


def _as_cached(result: DiscoveryResult) -> DiscoveryResult:
    return dataclasses.replace(result, method=DiscoveryMethod.CACHED)


class DiscoveryCache(Protocol):
    def get(self, profile_url: str) -> Optional[DiscoveryResult]: ...

    def set(
        self,
        profile_url: str,
        result: DiscoveryResult,
        expiration: Expiration | None = None,
    ) -> None: ...

    def remove(self, profile_url: str) -> None: ...

    def clear(self) -> None: ...


class InMemoryDiscoveryCache:
    """
    Process-local TTL cache. Safe for concurrent readers and writers.

    When full, expired entries are purged first; if that frees nothing, the
    entry closest to expiry is evicted.
    """

    def __init__(
        self,
        default_expiration: Expiration | None = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.default_expiration = timedelta(
            seconds=_seconds(default_expiration, DEFAULT_EXPIRATION)
        )
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[DiscoveryResult, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, profile_url: str) -> Optional[DiscoveryResult]:
        if not profile_url:
            return None
        key = normalize_cache_key(profile_url)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            result, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                log.debug("Cache entry expired for %s", key)
                return None
        return _as_cached(result)

    def set(
        self,
        profile_url: str,
        result: DiscoveryResult,
        expiration: Expiration | None = None,
    ) -> None:
        if not profile_url:
            return
        if not result.success:
            log.debug("Not caching failed discovery for %s", profile_url)
            return
        key = normalize_cache_key(profile_url)
        expires_at = self._clock() + _seconds(expiration, self.default_expiration)
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._make_room()
            self._entries[key] = (result, expires_at)

    def _make_room(self) -> None:
        now = self._clock()
        expired = [k for k, (_, exp) in self._entries.items() if now >= exp]
        for k in expired:
            del self._entries[k]
        if len(self._entries) >= self.max_entries:
            victim = min(self._entries, key=lambda k: self._entries[k][1])
            log.debug("Cache full, evicting %s", victim)
            del self._entries[victim]

    def remove(self, profile_url: str) -> None:
        if not profile_url:
            return
        with self._lock:
            self._entries.pop(normalize_cache_key(profile_url), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


@dataclasses.dataclass
class CacheConfig:
    enabled: bool = True
    # "memory" or "file"
    backend: str = "memory"
    # Either a concrete directory path, or special marker "os-default"
    # for an OS-specific global cache location.
    directory: str = ".indieauth_cache"
    expire_seconds: float = DEFAULT_EXPIRATION.total_seconds()
    max_entries: int = DEFAULT_MAX_ENTRIES


class FileDiscoveryCache:
    """
    Thin wrapper over diskcache with the DiscoveryCache contract.
    Values are stored as DiscoveryResult.to_dict() so the on-disk format does
    not depend on pickling our classes.
    """

    def __init__(self, cfg: CacheConfig, app_name: str = "indieauth_discovery"):
        self.cfg = cfg
        self.app_name = app_name
        self._cache: diskcache.Cache | None = None
        self.create_cache_object()

    def create_cache_object(self) -> None:
        if self._cache is not None and self._cache.directory:
            return
        directory = self.cfg.directory
        if directory == "os-default":
            directory = _user_cache_dir(self.app_name, appauthor=False)

        log.info("Discovery cache at %s", directory)
        self._cache = diskcache.Cache(directory)

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()

    # ---- Introspection helpers ---------------------------------------------

    @property
    def directory(self) -> Optional[str]:
        """Returns the absolute cache directory path if available."""
        if self._cache is None or not self._cache.directory:
            return None
        return str(self._cache.directory)

    def _dir_size_bytes(self) -> int:
        d = self.directory
        if not d:
            return 0
        total = 0
        path = Path(d)
        if not path.exists():
            return 0
        for p in path.rglob("*"):
            try:
                if p.is_file():
                    total += p.stat().st_size
            except OSError:
                continue
        return total

    def stats(self) -> dict[str, int | str]:
        """
        Returns a simple stats dict:
            - items: number of keys in cache (expired keys included until culled)
            - bytes: on-disk size in bytes (recursive directory walk)
            - directory: absolute directory path
        """
        if self._cache is None:
            return {"items": 0, "bytes": 0, "directory": ""}
        return {
            "items": len(self._cache),
            "bytes": self._dir_size_bytes(),
            "directory": os.path.abspath(self.directory or ""),
        }

    def raw(self, profile_url: str) -> Optional[dict]:
        """The stored dict for a key, without conversion. Used by `cache inspect`."""
        if self._cache is None or not profile_url:
            return None
        return self._cache.get(normalize_cache_key(profile_url))

    # ---- DiscoveryCache contract --------------------------------------------

    def get(self, profile_url: str) -> Optional[DiscoveryResult]:
        data = self.raw(profile_url)
        if data is None:
            return None
        try:
            result = DiscoveryResult.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            # Corrupt, or written by an older release. Treat as a miss.
            log.warning("Dropping unreadable cache entry for %s: %s", profile_url, e)
            self.remove(profile_url)
            return None
        return _as_cached(result)

    def set(
        self,
        profile_url: str,
        result: DiscoveryResult,
        expiration: Expiration | None = None,
    ) -> None:
        if self._cache is None or not profile_url:
            return
        if not result.success:
            log.debug("Not caching failed discovery for %s", profile_url)
            return
        seconds = _seconds(
            expiration, timedelta(seconds=self.cfg.expire_seconds)
        )
        self._cache.set(
            normalize_cache_key(profile_url), result.to_dict(), expire=seconds
        )

    def remove(self, profile_url: str) -> None:
        if self._cache is None or not profile_url:
            return
        self._cache.delete(normalize_cache_key(profile_url))

    def clear(self) -> None:
        if self._cache is None:
            return
        self._cache.clear()


def build_cache(cfg: CacheConfig) -> Optional[DiscoveryCache]:
    """
    Create the cache a CacheConfig describes, or None when caching is off.

    For callers that keep one cache for the life of their application; the
    api functions only open a file cache on their own, per call.
    """
    if not cfg.enabled:
        log.info("Discovery caching not enabled")
        return None
    if cfg.backend == "file":
        return FileDiscoveryCache(cfg)
    if cfg.backend == "memory":
        return InMemoryDiscoveryCache(
            default_expiration=cfg.expire_seconds, max_entries=cfg.max_entries
        )
    raise ValueError(f"Unknown cache backend: {cfg.backend!r}")
