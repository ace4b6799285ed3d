"""Cached hostname resolution with an ordered chain of naming methods.

Resolution tries each naming method in turn (reverse DNS, hosts file,
NetBIOS, mDNS by default) and keeps the first non-empty answer. Every
address is resolved at most once per process; failed lookups are cached
as an empty name.

Usage:
    from discovery.hostname import get_hostname_resolver

    resolver = get_hostname_resolver()
    name = resolver.resolve("192.168.1.20")
"""
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class NamingMethod:
    """A single hostname resolution strategy.

    Attributes:
        name: Short label used in logs (e.g. "reverse_dns").
        resolve: Function mapping an address to a name, or "" if unknown.
    """

    name: str
    resolve: Callable[[str], str]


@dataclass
class HostnameCacheStats:
    """Snapshot of the hostname cache."""

    size: int
    resolved: List[Tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "size": self.size,
            "resolved": [f"{address} -> {name}" for address, name in self.resolved],
        }


class ReadWriteLock:
    """Lock allowing many concurrent readers or a single writer.

    Waiting writers block new readers so a steady stream of reads
    cannot starve a cache fill.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class HostnameResolver:
    """Resolves and caches hostnames for IP addresses.

    Safe to call from many probe threads at once. Lookups run outside the
    lock; only reading and filling the cache are guarded.

    Example:
        >>> resolver = HostnameResolver([NamingMethod("static", lambda ip: "router")])
        >>> resolver.resolve("192.168.1.1")
        'router'
    """

    def __init__(self, methods: Optional[Sequence[NamingMethod]] = None):
        if methods is None:
            from discovery.naming import default_naming_methods
            methods = default_naming_methods()
        self._methods: Tuple[NamingMethod, ...] = tuple(methods)
        self._cache: Dict[str, str] = {}
        self._lock = ReadWriteLock()
        logger.debug(f"HostnameResolver initialized with methods: "
                     f"{[m.name for m in self._methods]}")

    @property
    def methods(self) -> Tuple[NamingMethod, ...]:
        return self._methods

    def resolve(self, address: str) -> str:
        """Get the hostname for an address, resolving it on first use.

        Returns:
            The hostname, or "" if no method knows the address.
        """
        with self._lock.read():
            cached = self._cache.get(address)
        if cached is not None:
            return cached

        hostname = self._resolve_uncached(address)

        with self._lock.write():
            # Another thread may have filled the entry meanwhile; keep the first
            return self._cache.setdefault(address, hostname)

    def _resolve_uncached(self, address: str) -> str:
        for method in self._methods:
            try:
                hostname = (method.resolve(address) or "").strip()
            except Exception as e:
                logger.debug(f"{method.name} lookup failed for {address}: {e}")
                continue
            if hostname:
                logger.debug(f"Resolved {address} -> {hostname} via {method.name}")
                return hostname
        return ""

    def clear(self) -> None:
        """Forget every cached name."""
        with self._lock.write():
            count = len(self._cache)
            self._cache.clear()
        logger.info(f"Hostname cache cleared ({count} entries)")

    def stats(self) -> HostnameCacheStats:
        """Get the cache size and every address that has a name."""
        with self._lock.read():
            resolved = sorted((ip, name) for ip, name in self._cache.items() if name)
            return HostnameCacheStats(size=len(self._cache), resolved=resolved)


# Process-wide resolver, shared across scans
_global_resolver: Optional[HostnameResolver] = None
_global_resolver_lock = threading.Lock()


def get_hostname_resolver() -> HostnameResolver:
    """Get or create the process-wide hostname resolver."""
    global _global_resolver
    with _global_resolver_lock:
        if _global_resolver is None:
            _global_resolver = HostnameResolver()
        return _global_resolver
