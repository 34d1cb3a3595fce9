"""Unsolicited device events and their dispatch.

The module emits join results, uplink confirmations and downlinks without a
preceding request. Each is modelled as an immutable event and delivered
synchronously, on the reader thread, to every registered handler.
"""

from dataclasses import dataclass
from threading import Lock
from typing import Callable, List, Optional, Protocol, Union
import logging

from rak811.core.payload import hex_to_bytes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinCompletion:
    """Result of an ``at+join`` attempt."""
    success: bool


@dataclass(frozen=True)
class MessageConfirmation:
    """Link quality reported by the module after an uplink."""
    rssi: int
    snr: int


@dataclass(frozen=True)
class DownlinkReceived:
    """Downlink delivered by the network.

    Attributes:
        port: LoRaWAN application port
        rssi: Received signal strength (dBm)
        snr: Signal to noise ratio (dB)
        payload: Payload as hex text, exactly as reported by the module
    """
    port: int
    rssi: int
    snr: int
    payload: str

    def payload_bytes(self) -> bytes:
        """Decode the hex payload.

        Raises:
            PayloadFormatError: The module reported malformed hex
        """
        return hex_to_bytes(self.payload)


DeviceEvent = Union[JoinCompletion, MessageConfirmation, DownlinkReceived]


class DeviceEventHandler(Protocol):
    """Receiver of unsolicited device events.

    Handlers run on the reader thread. While one is executing no further
    lines are read, so an in-flight command cannot complete; handlers must
    return quickly and never block.
    """

    def handle_event(self, event: DeviceEvent) -> None:
        ...


class CallbackEventHandler:
    """DeviceEventHandler built from optional per-event callables.

    Example:
        >>> handler = CallbackEventHandler(
        ...     on_downlink=lambda port, rssi, snr, payload: print(port, payload)
        ... )
        >>> device.add_event_handler(handler)
    """

    def __init__(self,
                 on_join: Optional[Callable[[bool], None]] = None,
                 on_confirmation: Optional[Callable[[int, int], None]] = None,
                 on_downlink: Optional[Callable[[int, int, int, str], None]] = None):
        self.on_join = on_join
        self.on_confirmation = on_confirmation
        self.on_downlink = on_downlink

    def handle_event(self, event: DeviceEvent) -> None:
        if isinstance(event, JoinCompletion):
            if self.on_join is not None:
                self.on_join(event.success)
        elif isinstance(event, MessageConfirmation):
            if self.on_confirmation is not None:
                self.on_confirmation(event.rssi, event.snr)
        elif isinstance(event, DownlinkReceived):
            if self.on_downlink is not None:
                self.on_downlink(event.port, event.rssi, event.snr, event.payload)


class EventDispatcher:
    """Delivers events to registered handlers, in registration order.

    There is no queuing: an event with no registered handler is dropped.
    A handler that raises is logged and does not affect other handlers or
    the reader thread.
    """

    def __init__(self) -> None:
        self._handlers: List[DeviceEventHandler] = []
        self._lock = Lock()

    def add_handler(self, handler: DeviceEventHandler) -> None:
        """Register a handler.

        Raises:
            TypeError: handler has no handle_event method
        """
        if not callable(getattr(handler, "handle_event", None)):
            raise TypeError(f"{handler!r} does not implement handle_event()")
        with self._lock:
            if handler not in self._handlers:
                self._handlers.append(handler)

    def remove_handler(self, handler: DeviceEventHandler) -> None:
        """Unregister a handler. Unknown handlers are ignored."""
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    @property
    def handler_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def dispatch(self, event: DeviceEvent) -> None:
        """Invoke every registered handler with the event, synchronously."""
        with self._lock:
            handlers = list(self._handlers)

        if not handlers:
            logger.debug("No handler registered, dropping %s", event)
            return

        for handler in handlers:
            try:
                handler.handle_event(event)
            except Exception:
                logger.exception("Event handler %r failed on %s", handler, event)
