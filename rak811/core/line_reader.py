"""Background reader thread for the RAK811 serial link.

The reader owns the read side of the transport. Every line is classified and
routed: terminal statuses go to the correlation engine, unsolicited events
go to the event dispatcher, noise is dropped.
"""

from typing import Iterator, Optional, TYPE_CHECKING
import logging
import threading

from rak811.core.at_executor import ATExecutor
from rak811.core.classifier import LineKind, classify_line
from rak811.core.command_response import ResponseStatus
from rak811.core.events import EventDispatcher, JoinCompletion
from rak811.core.exceptions import SerialPortError
from rak811.core.transport import LineTransport

if TYPE_CHECKING:
    from rak811.logging.communication_logger import CommunicationLogger

logger = logging.getLogger(__name__)


def normalize_line(raw: bytes) -> str:
    """Decode one raw line and strip terminator, NUL padding and whitespace.

    Undecodable bytes are replaced rather than rejected.

    Example:
        >>> normalize_line(b"\\x00OK\\r\\n")
        'OK'
    """
    return raw.decode("utf-8", errors="replace").strip().strip("\0").strip()


class LineReader:
    """Reads, classifies and routes lines on a dedicated daemon thread.

    Attributes:
        error: Transport error that ended the loop, if any
    """

    def __init__(self,
                 transport: LineTransport,
                 executor: ATExecutor,
                 dispatcher: EventDispatcher,
                 comm_logger: Optional['CommunicationLogger'] = None):
        """Initialize reader.

        Args:
            transport: Transport to read from (read side owned by this reader)
            executor: Correlation engine receiving terminal statuses
            dispatcher: Dispatcher receiving unsolicited events
            comm_logger: Optional CommunicationLogger for received events
        """
        self.transport = transport
        self.executor = executor
        self.dispatcher = dispatcher
        self.comm_logger = comm_logger
        self.error: Optional[SerialPortError] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._partial = b""

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the reader thread. Does nothing if already running."""
        if self.is_running:
            return
        self._stop_event.clear()
        self.error = None
        self._partial = b""
        self._thread = threading.Thread(
            target=self._run,
            name=f"rak811-reader-{getattr(self.transport, 'port', '?')}",
            daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the reader and wait for the thread to exit.

        Cancels a blocking read so shutdown does not wait for the read
        timeout.

        Args:
            timeout: Seconds to wait for the thread to exit (default 2.0)
        """
        self._stop_event.set()
        self.transport.cancel_read()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Reader thread did not stop within %.1fs", timeout)
        self._thread = None

    def iter_lines(self) -> Iterator[str]:
        """Yield normalized, non-empty lines until stop() is called.

        Partial lines left by a read timeout are held until their
        terminator arrives.

        Raises:
            SerialPortError: Transport read failed
        """
        while not self._stop_event.is_set():
            raw = self.transport.read_line()
            if not raw:
                continue

            if not raw.endswith(b"\n"):
                self._partial += raw
                continue

            raw, self._partial = self._partial + raw, b""
            line = normalize_line(raw)
            if line:
                yield line

    def process_line(self, line: str) -> None:
        """Classify one line and route it.

        Args:
            line: Normalized line
        """
        classification = classify_line(line)

        if classification.kind is LineKind.IGNORABLE:
            logger.debug("Ignoring %r", line)
            return

        if classification.kind is LineKind.EVENT:
            for event in classification.events:
                if self.comm_logger:
                    self.comm_logger.log_event(
                        port=self._port,
                        event=type(event).__name__,
                        details=vars(event).copy()
                    )
                self.dispatcher.dispatch(event)
                if isinstance(event, JoinCompletion) and event.success:
                    self.executor.notify_join(line)
            return

        status = classification.status
        if status is ResponseStatus.RESPONSE_INVALID:
            logger.warning("Unrecognised response %r", line)

        entry = self.executor.complete(status, line, classification.error_code)
        if entry is not None and entry.is_join and not entry.abandoned \
                and status is not ResponseStatus.SUCCESS:
            self.dispatcher.dispatch(JoinCompletion(False))

    def _run(self) -> None:
        try:
            for line in self.iter_lines():
                self.process_line(line)
        except SerialPortError as e:
            if self._stop_event.is_set():
                logger.debug("Read interrupted during shutdown: %s", e)
                return
            self.error = e
            logger.error("Reader stopped: %s", e)
            if self.comm_logger:
                self.comm_logger.log_error(
                    source="LineReader",
                    error=str(e),
                    details={"port": self._port}
                )

    @property
    def _port(self) -> str:
        return getattr(self.transport, "port", "unknown")

    def __repr__(self) -> str:
        status = "running" if self.is_running else "stopped"
        return f"LineReader(port={self._port}, status={status})"
