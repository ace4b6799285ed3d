"""Tests for the config module."""
import subprocess
import time
from unittest.mock import MagicMock, patch

import pytest

from config.constants import ALLOWED_SUBPROCESS_COMMANDS, EVENTS, NETWORK, SCAN, STORAGE
from config.exceptions import (
    ConfigurationError,
    InvalidRangeError,
    LanSweepError,
    ScanConflictError,
    ScannerError,
    SubprocessError,
)
from config.logging_config import LogContext, default_data_dir, get_logger, setup_logging
from config.subprocess_cache import (
    SubprocessCache,
    check_allowed,
    get_subprocess_cache,
    run_with_fallback,
    safe_run,
)


class TestConstants:
    """Tests for constants module."""

    def test_scan_defaults(self):
        """Defaults match the documented command line defaults."""
        assert SCAN.DEFAULT_NETWORK == "192.168.1.0/24"
        assert SCAN.DEFAULT_SCAN_TYPE == "both"
        assert SCAN.DEFAULT_CONCURRENCY == 50
        assert SCAN.DEFAULT_TIMEOUT_SECONDS == 2.0
        assert SCAN.DEFAULT_CONCURRENCY <= SCAN.MAX_CONCURRENCY

    def test_timeouts_are_positive(self):
        assert NETWORK.ARP_LOOKUP_TIMEOUT > 0
        assert NETWORK.NEIGHBOR_TABLE_TIMEOUT > 0
        assert NETWORK.NETBIOS_TIMEOUT > 0
        assert NETWORK.MDNS_TIMEOUT > 0

    def test_observer_queue_has_room_for_terminal_event(self):
        assert EVENTS.OBSERVER_QUEUE_SIZE >= 2
        assert EVENTS.CLI_QUEUE_SIZE >= EVENTS.OBSERVER_QUEUE_SIZE

    def test_storage_config_has_required_fields(self):
        assert STORAGE.DATA_DIR_NAME
        assert STORAGE.LOG_FILE

    def test_allowlist_covers_probe_tools(self):
        for tool in ("ping", "arp", "ip", "nmblookup", "avahi-resolve", "dig", "nbtstat", "route"):
            assert tool in ALLOWED_SUBPROCESS_COMMANDS


class TestExceptions:
    """Tests for custom exceptions."""

    def test_base_exception(self):
        exc = LanSweepError("Test error", {"key": "value"})
        assert exc.message == "Test error"
        assert exc.details == {"key": "value"}
        assert "Test error" in str(exc)
        assert "key" in str(exc)

    def test_exception_without_details(self):
        exc = ConfigurationError("Bad request")
        assert exc.details == {}
        assert str(exc) == "Bad request"

    def test_subprocess_error_with_full_info(self):
        exc = SubprocessError(
            "Command failed",
            command=["ping", "-c", "1", "10.0.0.1"],
            returncode=1,
            stdout="output",
            stderr="error",
        )
        assert exc.command == ["ping", "-c", "1", "10.0.0.1"]
        assert exc.returncode == 1
        assert "command" in exc.details

    def test_conflict_carries_state(self):
        exc = ScanConflictError("running")
        assert exc.state == "running"
        assert exc.message == "Scan already in progress"
        assert exc.details == {"state": "running"}

    def test_invalid_range_carries_network(self):
        exc = InvalidRangeError("Invalid CIDR", network="10.0.0.0/33")
        assert exc.network == "10.0.0.0/33"
        assert exc.details["network"] == "10.0.0.0/33"

    def test_exception_inheritance(self):
        assert issubclass(ScannerError, LanSweepError)
        assert issubclass(InvalidRangeError, ScannerError)
        assert issubclass(ScanConflictError, LanSweepError)
        assert issubclass(ConfigurationError, LanSweepError)
        assert issubclass(SubprocessError, LanSweepError)


class TestLogging:
    """Tests for logging configuration."""

    def test_setup_logging_creates_logger(self, temp_data_dir):
        logger = setup_logging(data_dir=temp_data_dir, console_output=False)
        assert logger.name == 'lansweep'
        assert (temp_data_dir / STORAGE.LOG_FILE).exists()

    def test_get_logger_returns_child(self, temp_data_dir):
        setup_logging(data_dir=temp_data_dir, console_output=False)
        logger = get_logger("discovery.engine")
        assert logger.name == 'lansweep.discovery.engine'

    def test_data_dir_from_environment(self, temp_data_dir, monkeypatch):
        monkeypatch.setenv("LANSWEEP_DATA_DIR", str(temp_data_dir))
        assert default_data_dir() == temp_data_dir

    def test_get_logger_shortens_long_names(self):
        assert get_logger("a.b.c.d").name == 'lansweep.c.d'

    def test_log_context_measures_duration(self, temp_data_dir):
        setup_logging(data_dir=temp_data_dir, console_output=False)
        logger = get_logger(__name__)

        with LogContext(logger, "Test operation") as ctx:
            time.sleep(0.01)

        assert ctx.start_time is not None
        assert ctx.elapsed_ms > 0

    def test_log_context_does_not_swallow(self, temp_data_dir):
        setup_logging(data_dir=temp_data_dir, console_output=False)
        with pytest.raises(ValueError):
            with LogContext(get_logger(__name__), "Failing operation"):
                raise ValueError("boom")


class TestSubprocessCache:
    """Tests for subprocess caching."""

    def test_cache_stores_results(self, mock_subprocess):
        cache = SubprocessCache(default_ttl=60.0)

        cache.run(['arp', '-an'])
        cache.run(['arp', '-an'])

        assert mock_subprocess.call_count == 1
        assert cache.get_stats()['hits'] == 1

    def test_cache_expires(self, mock_subprocess):
        cache = SubprocessCache(default_ttl=0.01)

        cache.run(['arp', '-an'])
        time.sleep(0.02)
        cache.run(['arp', '-an'])

        assert mock_subprocess.call_count == 2

    def test_cache_bypass(self, mock_subprocess):
        cache = SubprocessCache(default_ttl=60.0)

        cache.run(['ping', '-c', '1', '10.0.0.1'], bypass_cache=True)
        cache.run(['ping', '-c', '1', '10.0.0.1'], bypass_cache=True)

        assert mock_subprocess.call_count == 2
        assert cache.get_stats()['hits'] == 0
        assert cache.get_stats()['cache_size'] == 0

    def test_invalidate_specific_command(self, mock_subprocess):
        cache = SubprocessCache(default_ttl=60.0)
        cache.run(['arp', '-an'])
        cache.run(['ip', 'neigh', 'show'])

        cache.invalidate(['arp', '-an'])
        cache.run(['arp', '-an'])
        cache.run(['ip', 'neigh', 'show'])

        assert mock_subprocess.call_count == 3

    def test_never_uses_shell(self, mock_subprocess):
        SubprocessCache().run(['arp', '-an'], bypass_cache=True)
        kwargs = mock_subprocess.call_args.kwargs
        assert kwargs.get('shell', False) is False
        assert kwargs['capture_output'] is True

    @patch("config.subprocess_cache.subprocess.run")
    def test_timeout_raises_subprocess_error(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd=['ping'], timeout=1)
        with pytest.raises(SubprocessError) as exc_info:
            SubprocessCache().run(['ping', '10.0.0.1'], timeout=1, bypass_cache=True)
        assert "timed out" in exc_info.value.message
        assert exc_info.value.timed_out

    @patch("config.subprocess_cache.subprocess.run")
    def test_missing_command_raises_subprocess_error(self, mock_run):
        mock_run.side_effect = FileNotFoundError("nmblookup")
        with pytest.raises(SubprocessError) as exc_info:
            SubprocessCache().run(['nmblookup', '-A', '10.0.0.1'], bypass_cache=True)
        assert "not found" in exc_info.value.message

    def test_global_cache_is_singleton(self):
        assert get_subprocess_cache() is get_subprocess_cache()


class TestSafeRun:
    """Tests for the allow-listed runner."""

    def test_rejects_unknown_commands(self):
        with pytest.raises(SubprocessError) as exc_info:
            safe_run(['rm', '-rf', '/'])
        assert "not in allowlist" in str(exc_info.value)

    def test_rejects_empty_command(self):
        with pytest.raises(SubprocessError):
            check_allowed([])

    def test_accepts_absolute_path_to_allowed_tool(self):
        check_allowed(['/usr/sbin/arp', '-an'])

    def test_runs_allowed_command(self, mock_subprocess):
        result = safe_run(['ping', '-c', '1', '10.0.0.1'], timeout=2)
        assert result.returncode == 0
        assert mock_subprocess.call_args.kwargs['timeout'] == 2


class TestRunWithFallback:
    """Tests for trying alternatives in order."""

    @patch("config.subprocess_cache.safe_run")
    def test_first_success_wins(self, mock_safe_run):
        mock_safe_run.side_effect = [
            MagicMock(returncode=1),
            MagicMock(returncode=0, stdout="ok"),
        ]
        result = run_with_fallback([['arp', '-an'], ['ip', 'neigh', 'show']])
        assert result.stdout == "ok"

    @patch("config.subprocess_cache.safe_run")
    def test_errors_fall_through(self, mock_safe_run):
        mock_safe_run.side_effect = [
            SubprocessError("Command not found: arp"),
            MagicMock(returncode=0, stdout="ok"),
        ]
        assert run_with_fallback([['arp', '-an'], ['ip', 'neigh', 'show']]).stdout == "ok"

    @patch("config.subprocess_cache.safe_run")
    def test_all_failing_returns_none(self, mock_safe_run):
        mock_safe_run.return_value = MagicMock(returncode=2)
        assert run_with_fallback([['arp', '-an']]) is None
