"""
Error taxonomy for the ops monitor.

All errors raised by the core derive from OpsMonitorError so callers at the
HTTP boundary can map them to responses without knowing every subtype.

Errors:
    CommandError: External tool invocation failed (see CommandFailure).
    ParseError: External tool returned malformed output.
    PersistenceError: Time-series or cooldown store read/write failed.
    ValidationError: Bad request at the API boundary.
"""

from enum import Enum
from typing import Optional, Sequence


class OpsMonitorError(Exception):
    """Base exception for ops monitor errors."""

    pass


class CommandFailure(str, Enum):
    """Ways a bounded command invocation can fail."""

    TIMEOUT = "timeout"
    OVERFLOW = "overflow"
    NONZERO_EXIT = "nonzero_exit"
    SPAWN_FAILURE = "spawn_failure"


class CommandError(OpsMonitorError):
    """
    Raised when an external command cannot produce usable output.

    Attributes:
        kind: Failure category.
        args_list: The argv that was executed.
        returncode: Process exit code, if the process exited.
        stderr: Trailing stderr text, if any was captured.
    """

    def __init__(
        self,
        kind: CommandFailure,
        message: str,
        args_list: Sequence[str] = (),
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        self.kind = kind
        self.args_list = list(args_list)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{kind.value}: {message}")


class ParseError(OpsMonitorError):
    """Raised when the external tool returns output that cannot be normalized."""

    def __init__(self, message: str, source: str = "", stderr: str = "") -> None:
        self.source = source
        self.stderr = stderr
        super().__init__(f"{source} parse failed: {message}" if source else message)


class PersistenceError(OpsMonitorError):
    """Raised when a durable store operation fails."""

    pass


class ValidationError(OpsMonitorError):
    """Raised when an inbound request carries invalid parameters."""

    pass
