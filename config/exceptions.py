"""Exceptions raised by LAN Sweep.

Only whole-scan problems are exceptions. A host that does not answer, or
a probe command that fails for one address, is data: it shows up as a
down host or an empty MAC, never as a raised error.
"""

from typing import Optional


class LanSweepError(Exception):
    """Base class for LAN Sweep errors.

    Attributes:
        message: Human-readable error description.
        details: Extra context for logs and API responses.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class ScannerError(LanSweepError):
    """A scan could not be carried out at all.

    Examples:
        >>> raise ScannerError("Probe unavailable", {"platform": "sunos"})
    """


class InvalidRangeError(ScannerError):
    """The requested network is not an IPv4 CIDR block.

    Attributes:
        network: The rejected input.

    Examples:
        >>> raise InvalidRangeError("Invalid CIDR", network="10.0.0.0/33")
    """

    def __init__(self, message: str, network: object = None, details: Optional[dict] = None):
        details = dict(details or {})
        details.setdefault("network", network)
        super().__init__(message, details)
        self.network = network


class ScanConflictError(LanSweepError):
    """A scan was requested while the scan slot is taken.

    The scan holding the slot is not affected.

    Attributes:
        state: State of the slot when the request was refused.
    """

    def __init__(self, state: str, message: str = "Scan already in progress"):
        super().__init__(message, {"state": state})
        self.state = state


class ConfigurationError(LanSweepError):
    """A scan request or setting has an unusable value.

    Covers bad scan types, concurrency limits, timeouts and request
    bodies that are not JSON objects.

    Examples:
        >>> raise ConfigurationError("Invalid concurrency", {"value": 0})
    """


class SubprocessError(LanSweepError):
    """A system utility could not be run to completion.

    Attributes:
        command: The argv that failed.
        returncode: Exit code if the process ran.
        stdout: Captured output, if any.
        stderr: Captured error output, if any.
        timed_out: True when the process was killed for running too long.
    """

    def __init__(
        self,
        message: str,
        command: Optional[list] = None,
        returncode: Optional[int] = None,
        stdout: Optional[str] = None,
        stderr: Optional[str] = None,
        details: Optional[dict] = None,
        timed_out: bool = False,
    ):
        details = dict(details or {})
        if command:
            details["command"] = command
        if returncode is not None:
            details["returncode"] = returncode
        # Output is capped so a chatty tool cannot flood the log
        if stdout:
            details["stdout"] = stdout[:500]
        if stderr:
            details["stderr"] = stderr[:500]

        super().__init__(message, details)
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out
