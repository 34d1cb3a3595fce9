"""Shared fixtures for the RAK811 driver tests.

FakeTransport stands in for SerialHandler: writes are recorded, reads are
served from a queue that tests (or a scripted responder) feed with lines.
"""

import queue
import threading
from typing import Callable, Dict, List, Optional, Union

import pytest

from rak811.config import ConfigManager
from rak811.core.exceptions import SerialPortError

Reply = Union[str, List[str], None]


class FakeTransport:
    """In-memory LineTransport.

    Attributes:
        written: Every line passed to write_line(), in order
        responses: Map of command to the line(s) fed back when it is written
    """

    def __init__(self, port: str = "/dev/fake0", read_timeout: float = 0.05):
        self.port = port
        self.read_timeout = read_timeout
        self.written: List[str] = []
        self.responses: Dict[str, Reply] = {}
        self.responder: Optional[Callable[[str], Reply]] = None
        self.write_error: Optional[SerialPortError] = None
        self.read_error: Optional[SerialPortError] = None
        self.open_count = 0
        self.close_count = 0
        self.flush_count = 0
        self._connected = False
        self._lines: "queue.Queue[bytes]" = queue.Queue()
        self._written_event = threading.Condition()

    def open(self) -> None:
        self.open_count += 1
        self._connected = True

    def close(self) -> None:
        self.close_count += 1
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def flush_buffers(self) -> None:
        self.flush_count += 1

    def write_line(self, data: str) -> int:
        if self.write_error is not None:
            raise self.write_error
        with self._written_event:
            self.written.append(data)
            self._written_event.notify_all()

        reply = self.responder(data) if self.responder else self.responses.get(data)
        if reply is not None:
            for line in ([reply] if isinstance(reply, str) else reply):
                self.feed(line)
        return len(data) + 2

    def read_line(self) -> bytes:
        if self.read_error is not None:
            raise self.read_error
        try:
            return self._lines.get(timeout=self.read_timeout)
        except queue.Empty:
            return b""

    def cancel_read(self) -> None:
        self._lines.put(b"")

    def feed(self, line: str) -> None:
        """Queue one line as if the module had sent it."""
        self.feed_raw(f"{line}\r\n".encode("utf-8"))

    def feed_raw(self, data: bytes) -> None:
        self._lines.put(data)

    def wait_for_write(self, count: int, timeout: float = 2.0) -> bool:
        """Block until at least ``count`` lines have been written."""
        with self._written_event:
            return self._written_event.wait_for(lambda: len(self.written) >= count, timeout)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def reset_config_manager():
    """Reset the ConfigManager singleton around a test."""
    ConfigManager.reset()
    yield
    ConfigManager.reset()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove RAK811_* variables so host settings do not leak into tests."""
    import os
    for name in list(os.environ):
        if name.startswith("RAK811_"):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch
