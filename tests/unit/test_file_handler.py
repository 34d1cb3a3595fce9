"""Unit tests for FileHandler with log rotation."""

import json
from datetime import datetime
from pathlib import Path

import pytest

from rak811.logging.file_handler import FileHandler
from rak811.logging.log_models import LogEntry


@pytest.fixture
def log_entry():
    """Create a sample log entry for testing."""
    return LogEntry(
        timestamp=datetime(2025, 1, 12, 10, 30, 15, 234000),
        level="INFO",
        source="ATExecutor",
        message="Received response",
        command="at+join",
        status="SUCCESS"
    )


class TestFileHandler:
    """Test suite for FileHandler class."""

    def test_creation(self, tmp_path):
        log_file = tmp_path / "logs" / "comm.log"
        handler = FileHandler(str(log_file), max_size_mb=10, backup_count=5)

        assert handler.log_file_path == log_file.resolve()
        assert handler.max_size_bytes == 10 * 1024 * 1024
        assert handler.backup_count == 5
        assert log_file.exists()
        assert not handler.is_closed

        handler.close()

    def test_unknown_format_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            FileHandler(str(tmp_path / "comm.log"), log_format="xml")

    def test_write_text(self, tmp_path, log_entry):
        log_file = tmp_path / "comm.log"

        with FileHandler(str(log_file)) as handler:
            assert handler.write(log_entry) is True

        content = log_file.read_text(encoding='utf-8')
        assert content == log_entry.to_string() + "\n"

    def test_write_json(self, tmp_path, log_entry):
        log_file = tmp_path / "comm.jsonl"

        with FileHandler(str(log_file), log_format="json") as handler:
            handler.write(log_entry)
            handler.write(log_entry)

        lines = log_file.read_text(encoding='utf-8').splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["command"] == "at+join"
        assert LogEntry.from_json(lines[1]) == log_entry

    def test_appends_to_existing_file(self, tmp_path, log_entry):
        log_file = tmp_path / "comm.log"
        log_file.write_text("previous\n", encoding='utf-8')

        with FileHandler(str(log_file)) as handler:
            handler.write(log_entry)

        assert log_file.read_text(encoding='utf-8').startswith("previous\n")

    def test_rotation(self, tmp_path, log_entry):
        """Test the file rotates once it passes the size limit."""
        log_file = tmp_path / "comm.log"
        handler = FileHandler(str(log_file), backup_count=2)
        handler.max_size_bytes = 200

        for _ in range(20):
            handler.write(log_entry)
        handler.close()

        assert Path(f"{log_file}.1").exists()
        assert Path(f"{log_file}.2").exists()
        assert not Path(f"{log_file}.3").exists()
        assert log_file.stat().st_size < 200 + len(log_entry.to_string()) + 1

    def test_rotation_without_backups(self, tmp_path, log_entry):
        log_file = tmp_path / "comm.log"
        handler = FileHandler(str(log_file), backup_count=0)
        handler.max_size_bytes = 100

        for _ in range(5):
            handler.write(log_entry)
        handler.close()

        assert not Path(f"{log_file}.1").exists()
        assert log_file.exists()

    def test_write_after_close(self, tmp_path, log_entry):
        handler = FileHandler(str(tmp_path / "comm.log"))
        handler.close()
        handler.close()

        assert handler.is_closed
        assert handler.write(log_entry) is False
        handler.flush()

    def test_flush(self, tmp_path, log_entry):
        log_file = tmp_path / "comm.log"
        handler = FileHandler(str(log_file))
        handler.write(log_entry)

        handler.flush()

        assert log_file.read_text(encoding='utf-8')
        handler.close()
