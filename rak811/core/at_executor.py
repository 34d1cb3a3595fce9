"""AT command correlation engine.

This module pairs each AT command written to the module with the terminal
status that answers it. Commands are issued one at a time; the reader thread
resolves them in submission order as status lines arrive.
"""

from collections import deque
from typing import Deque, List, Optional, TYPE_CHECKING
import logging
import threading
import time

from rak811.core.command_response import CommandResponse, ResponseStatus
from rak811.core.exceptions import SerialPortError
from rak811.core.redaction import redact_command
from rak811.core.transport import LineTransport

if TYPE_CHECKING:
    from rak811.logging.communication_logger import CommunicationLogger

logger = logging.getLogger(__name__)

JOIN_COMMAND = "at+join"


def is_join_command(command: str) -> bool:
    """True if command starts a network join."""
    return command.strip().lower() == JOIN_COMMAND


class PendingCommand:
    """One-shot completion slot for a single command.

    Resolved exactly once, by the reader thread, or abandoned by the sender
    when its timeout elapses. An abandoned command stays queued so that a
    late reply arriving while nothing else is in flight is absorbed by it.
    Once a newer command is live, statuses go to the live command.
    """

    def __init__(self, command: str):
        self.command = command
        self.is_join = is_join_command(command)
        self.status: Optional[ResponseStatus] = None
        self.line: Optional[str] = None
        self.error_code: Optional[int] = None
        self.abandoned_at: Optional[float] = None
        self._done = threading.Event()

    @property
    def abandoned(self) -> bool:
        return self.abandoned_at is not None

    @property
    def resolved(self) -> bool:
        return self._done.is_set()

    def resolve(self, status: ResponseStatus, line: Optional[str],
                error_code: Optional[int] = None) -> None:
        self.status = status
        self.line = line
        self.error_code = error_code
        self._done.set()

    def wait(self, timeout: float) -> bool:
        return self._done.wait(timeout)

    def __repr__(self) -> str:
        state = "abandoned" if self.abandoned else ("resolved" if self.resolved else "pending")
        return f"PendingCommand({self.command!r}, {state})"


class ATExecutor:
    """Correlates AT commands with their terminal statuses.

    A send lock serializes callers so at most one live command is in flight.
    The reader thread feeds terminal statuses through complete() and join
    success through notify_join().

    Example:
        >>> executor = ATExecutor(handler, default_timeout=1.5)
        >>> reader = LineReader(handler, executor, EventDispatcher())
        >>> reader.start()
        >>> executor.send('at+set_config=lora:adr:1')
        <ResponseStatus.SUCCESS: 'success'>
    """

    def __init__(self,
                 transport: LineTransport,
                 default_timeout: float = 1.5,
                 late_response_grace: float = 5.0,
                 history_size: int = 100,
                 comm_logger: Optional['CommunicationLogger'] = None):
        """Initialize executor.

        Args:
            transport: Line transport used for writes
            default_timeout: Timeout in seconds when none is given (default 1.5)
            late_response_grace: Seconds an abandoned command keeps absorbing
                a late reply (default 5.0)
            history_size: Number of responses kept in history (default 100)
            comm_logger: Optional CommunicationLogger for command traffic
        """
        if default_timeout <= 0:
            raise ValueError(f"default_timeout must be positive, got {default_timeout}")
        if late_response_grace < 0:
            raise ValueError(f"late_response_grace must not be negative, got {late_response_grace}")

        self.transport = transport
        self.default_timeout = default_timeout
        self.late_response_grace = late_response_grace
        self.comm_logger = comm_logger

        self._send_lock = threading.Lock()
        self._pending: Deque[PendingCommand] = deque()
        self._pending_lock = threading.Lock()
        self._history: Deque[CommandResponse] = deque(maxlen=history_size)
        self._history_lock = threading.Lock()

    @property
    def in_flight(self) -> bool:
        """True while a live (not abandoned) command awaits its status."""
        with self._pending_lock:
            return any(not entry.abandoned for entry in self._pending)

    def send(self, command: str, timeout: Optional[float] = None) -> ResponseStatus:
        """Send a command and return its terminal status.

        Args:
            command: AT command without terminator
            timeout: Seconds to wait (default: default_timeout)

        Returns:
            ResponseStatus of the command, TIMEOUT if nothing answered

        Raises:
            ValueError: Empty command or non-positive timeout
            SerialPortError: Transport write failed
        """
        return self.execute(command, timeout).status

    def execute(self, command: str, timeout: Optional[float] = None) -> CommandResponse:
        """Send a command and return the full response record.

        Args:
            command: AT command without terminator
            timeout: Seconds to wait (default: default_timeout)

        Returns:
            CommandResponse with status, completing line and timing

        Raises:
            ValueError: Empty command or non-positive timeout
            SerialPortError: Transport write failed
        """
        if not isinstance(command, str) or not command.strip():
            raise ValueError("command must be a non-empty string")
        timeout = self.default_timeout if timeout is None else timeout
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        with self._send_lock:
            entry = PendingCommand(command)
            with self._pending_lock:
                self._prune_abandoned(time.monotonic())
                self._pending.append(entry)

            if self.comm_logger:
                self.comm_logger.log_command(port=self._port, command=command)

            start_time = time.monotonic()
            try:
                self.transport.write_line(command)
            except SerialPortError:
                with self._pending_lock:
                    if entry in self._pending:
                        self._pending.remove(entry)
                raise

            entry.wait(timeout)

            with self._pending_lock:
                if not entry.resolved:
                    # Keep it queued so a reply that arrives before the next
                    # command lands here
                    entry.abandoned_at = time.monotonic()

            execution_time = time.monotonic() - start_time

        if entry.resolved:
            response = CommandResponse(
                command=command,
                status=entry.status,
                execution_time=execution_time,
                raw_response=entry.line,
                error_code=entry.error_code
            )
        else:
            logger.warning("No response to %r after %.3fs", redact_command(command), timeout)
            response = CommandResponse(
                command=command,
                status=ResponseStatus.TIMEOUT,
                execution_time=execution_time
            )

        with self._history_lock:
            self._history.append(response)

        if self.comm_logger:
            self.comm_logger.log_response(
                port=self._port,
                response=response.raw_response or "",
                status=response.status.name,
                execution_time=execution_time,
                command=command
            )

        return response

    def complete(self, status: ResponseStatus, line: str,
                 error_code: Optional[int] = None) -> Optional[PendingCommand]:
        """Attribute a terminal status to the oldest matching command.

        Called by the reader thread. A success status never completes a
        join; the join waits for its own result. A live command takes
        precedence over abandoned ones; an abandoned command only absorbs
        a status when no live command could take it.

        Args:
            status: Terminal status parsed from line
            line: The status line
            error_code: Numeric code from an ERROR line, if any

        Returns:
            The command the status was attributed to (possibly one that was
            already abandoned), or None for a stray status
        """
        with self._pending_lock:
            candidates = [entry for entry in self._pending
                          if not (entry.is_join and status is ResponseStatus.SUCCESS)]
            target = next((entry for entry in candidates if not entry.abandoned), None)
            if target is None and candidates:
                target = candidates[0]

            if target is None:
                logger.warning("Dropping %r (%s), no command pending", line, status.name)
                return None

            self._pending.remove(target)
            if target.abandoned:
                logger.info("Late response %r (%s) to timed out %r absorbed",
                            line, status.name, redact_command(target.command))
                return target

            target.resolve(status, line, error_code)
            return target

    def notify_join(self, line: Optional[str] = None) -> Optional[PendingCommand]:
        """Complete the oldest pending join with SUCCESS.

        Called by the reader thread on a join success event.

        Returns:
            The join command resolved or absorbed, or None if no join pending
        """
        with self._pending_lock:
            target = next((entry for entry in self._pending if entry.is_join), None)
            if target is None:
                logger.debug("Join success with no join pending")
                return None

            self._pending.remove(target)
            if target.abandoned:
                logger.info("Join success arrived after %r timed out", target.command)
                return target

            target.resolve(ResponseStatus.SUCCESS, line)
            return target

    def get_history(self) -> List[CommandResponse]:
        """Get responses from this session, oldest first.

        Returns:
            Copy of the bounded response history
        """
        with self._history_lock:
            return list(self._history)

    def clear_history(self) -> None:
        """Clear execution history."""
        with self._history_lock:
            self._history.clear()

    def _prune_abandoned(self, now: float) -> None:
        # Caller holds _pending_lock
        expired = [entry for entry in self._pending
                   if entry.abandoned and now - entry.abandoned_at > self.late_response_grace]
        for entry in expired:
            logger.debug("Giving up on late response to %r", redact_command(entry.command))
            self._pending.remove(entry)

    @property
    def _port(self) -> str:
        return getattr(self.transport, "port", "unknown")

    def __repr__(self) -> str:
        """String representation of executor."""
        return (f"ATExecutor(port={self._port}, "
                f"timeout={self.default_timeout}s, "
                f"history={len(self._history)} commands)")

