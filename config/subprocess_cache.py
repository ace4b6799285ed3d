"""Running the system utilities the probes depend on.

Every external command LAN Sweep runs goes through `safe_run`:

- argv lists only, never a shell; addresses are separate argv entries
- the program name must be in ALLOWED_SUBPROCESS_COMMANDS
- a timeout always applies
- output can be shared for a short time between callers

The sharing matters for the neighbor table: a sweep may ask for it from
many worker threads within a few seconds, and `arp -an` only needs to run
once for all of them.

Usage:
    from config.subprocess_cache import safe_run, run_with_fallback

    result = safe_run(['ping', '-c', '1', '192.168.1.1'], timeout=3)
    table = run_with_fallback([['arp', '-an'], ['ip', 'neigh', 'show']], ttl=10.0)
"""

# nosec B404 - subprocess usage is required and validated via allowlist
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from config.constants import ALLOWED_SUBPROCESS_COMMANDS, INTERVALS
from config.exceptions import SubprocessError
from config.logging_config import get_logger, log_subprocess_call

logger = get_logger(__name__)

CommandKey = Tuple[str, ...]


@dataclass
class _Entry:
    """A finished command kept until `expires_at` (monotonic seconds)."""

    result: subprocess.CompletedProcess
    expires_at: float
    duration_ms: float

    def fresh(self, now: float) -> bool:
        return now < self.expires_at


@dataclass
class CacheStats:
    """Counters for one SubprocessCache."""

    hits: int = 0
    misses: int = 0
    errors: int = 0

    @property
    def hit_rate_percent(self) -> float:
        total = self.hits + self.misses
        return round(self.hits / total * 100, 1) if total else 0.0


class SubprocessCache:
    """Runs commands and remembers their results for a while.

    Each stored result carries its own expiry, set from the ttl of the
    call that produced it. Thread-safe; two threads missing at the same
    moment may both run the command, and the later result wins.

    Attributes:
        default_ttl: Seconds a result stays fresh when a call gives no ttl.
        max_entries: Upper bound on stored results.

    Example:
        >>> cache = SubprocessCache(default_ttl=5.0)
        >>> first = cache.run(['arp', '-an'])
        >>> again = cache.run(['arp', '-an'])   # served from memory
    """

    def __init__(self, default_ttl: float = 5.0, max_entries: int = 50):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._entries: Dict[CommandKey, _Entry] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()

    def _lookup(self, key: CommandKey) -> Optional[subprocess.CompletedProcess]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not entry.fresh(time.monotonic()):
                return None
            self._stats.hits += 1
            return entry.result

    def _store(self, key: CommandKey, entry: _Entry) -> None:
        with self._lock:
            self._entries[key] = entry
            now = time.monotonic()
            for stale in [k for k, e in self._entries.items() if not e.fresh(now)]:
                del self._entries[stale]
            overflow = len(self._entries) - self.max_entries
            if overflow > 0:
                # Drop the entries closest to expiry
                by_expiry = sorted(self._entries, key=lambda k: self._entries[k].expires_at)
                for old in by_expiry[:overflow]:
                    del self._entries[old]

    def _error(self) -> None:
        with self._lock:
            self._stats.errors += 1

    def run(
        self,
        cmd: List[str],
        ttl: Optional[float] = None,
        bypass_cache: bool = False,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> subprocess.CompletedProcess:
        """Run a command, or return a fresh stored result for the same argv.

        Args:
            cmd: Program and arguments.
            ttl: Seconds the result stays fresh; default_ttl when omitted.
            bypass_cache: Always run, and do not store the result.
            timeout: Seconds before the process is killed.
            **kwargs: Passed on to subprocess.run().

        Returns:
            The finished process. A non-zero exit status is not an error.

        Raises:
            SubprocessError: If the program is missing, cannot start or
                runs past the timeout.
        """
        key: CommandKey = tuple(cmd)
        if not bypass_cache:
            cached = self._lookup(key)
            if cached is not None:
                logger.debug(f"Cache hit for: {cmd[0]}")
                return cached

        with self._lock:
            self._stats.misses += 1

        timeout = timeout or INTERVALS.SUBPROCESS_TIMEOUT_SECONDS
        kwargs.setdefault("capture_output", True)
        kwargs.setdefault("text", True)
        kwargs["timeout"] = timeout

        started = time.monotonic()
        try:
            result = subprocess.run(cmd, **kwargs)  # nosec B603 - Commands validated via allowlist
        except subprocess.TimeoutExpired as e:
            self._error()
            raise SubprocessError(f"Command timed out after {timeout}s", command=cmd,
                                  details={"timeout": timeout}, timed_out=True) from e
        except FileNotFoundError as e:
            self._error()
            logger.debug(f"Command not found: {cmd[0]}")
            raise SubprocessError(f"Command not found: {cmd[0]}", command=cmd) from e
        except OSError as e:
            self._error()
            logger.warning(f"Could not run {cmd[0]}: {e}")
            raise SubprocessError(f"Subprocess error: {e}", command=cmd) from e

        duration_ms = (time.monotonic() - started) * 1000
        log_subprocess_call(logger, cmd, result.returncode, duration_ms,
                            success=result.returncode == 0)

        if not bypass_cache:
            lifetime = ttl if ttl is not None else self.default_ttl
            self._store(key, _Entry(result, time.monotonic() + lifetime, duration_ms))
        return result

    def invalidate(self, cmd: Optional[List[str]] = None) -> None:
        """Forget one command's result, or every result when cmd is None."""
        with self._lock:
            if cmd is None:
                self._entries.clear()
            else:
                self._entries.pop(tuple(cmd), None)

    def get_stats(self) -> dict:
        """Counters plus the number of stored results."""
        with self._lock:
            return {
                "hits": self._stats.hits,
                "misses": self._stats.misses,
                "errors": self._stats.errors,
                "cache_size": len(self._entries),
                "hit_rate_percent": self._stats.hit_rate_percent,
            }


_global_cache: Optional[SubprocessCache] = None
_global_cache_lock = threading.Lock()


def get_subprocess_cache() -> SubprocessCache:
    """The process-wide cache used by safe_run()."""
    global _global_cache
    with _global_cache_lock:
        if _global_cache is None:
            _global_cache = SubprocessCache()
        return _global_cache


def check_allowed(cmd: List[str]) -> None:
    """Reject empty commands and programs outside the allowlist.

    A full path is judged by its file name, so `/usr/sbin/arp` counts
    as `arp`.

    Raises:
        SubprocessError: If the command may not be run.
    """
    if not cmd:
        raise SubprocessError("Empty command", command=cmd)

    program = Path(cmd[0]).name if ("/" in cmd[0] or "\\" in cmd[0]) else cmd[0]
    if program not in ALLOWED_SUBPROCESS_COMMANDS:
        raise SubprocessError(
            f"Command not in allowlist: {program}",
            command=cmd,
            details={"allowed": sorted(ALLOWED_SUBPROCESS_COMMANDS)},
        )


def safe_run(
    cmd: List[str], timeout: Optional[float] = None, ttl: Optional[float] = None, **kwargs
) -> subprocess.CompletedProcess:
    """Run an allow-listed command.

    Results are only shared between callers when `ttl` is given; probe
    commands such as ping always run fresh.

    Raises:
        SubprocessError: If the command is not allowed, cannot run, or
            times out.

    Example:
        >>> result = safe_run(['arp', '-n', '192.168.1.1'], timeout=2)
        >>> result.returncode
        0
    """
    check_allowed(cmd)

    cache = get_subprocess_cache()
    if ttl:
        return cache.run(cmd, ttl=ttl, timeout=timeout, **kwargs)
    return cache.run(cmd, bypass_cache=True, timeout=timeout, **kwargs)


def run_with_fallback(
    commands: List[List[str]], timeout: Optional[float] = None, ttl: Optional[float] = None
) -> Optional[subprocess.CompletedProcess]:
    """Try alternative commands in order and return the first that exits 0.

    Minimal Linux installs often lack net-tools, so `arp` is followed by
    `ip neigh` there.

    Returns:
        The first successful result, or None if every command failed.
    """
    for cmd in commands:
        try:
            result = safe_run(cmd, timeout=timeout, ttl=ttl)
        except SubprocessError as e:
            logger.debug(f"Fallback command failed: {cmd[0]} - {e.message}")
            continue
        if result.returncode == 0:
            return result
        logger.debug(f"{cmd[0]} exited with status {result.returncode}")

    return None
