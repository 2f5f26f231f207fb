"""
Reference destination tests.
"""

from __future__ import annotations

import os

import orjson

from logfacility import TAG_CAPTURED_STDERR, FileLogger, LogRecord, Severity, StackFrame, StreamLogger
from logfacility.loggers import BaseLogger, LoggerProtocol


def _record(message: str = "hello", **kwargs) -> LogRecord:
    return LogRecord(level=kwargs.pop("level", Severity.INFO), message=message, **kwargs)


class TestContract:
    def test_base_logger_defaults(self) -> None:
        class Minimal(BaseLogger):
            def handle(self, record: LogRecord) -> None:
                pass

        logger = Minimal()
        assert logger.open() is True
        assert logger.close() is None
        assert isinstance(logger, LoggerProtocol)

    def test_duck_typed_logger_satisfies_protocol(self) -> None:
        class Duck:
            def open(self) -> bool:
                return True

            def close(self) -> None:
                pass

            def handle(self, record: LogRecord) -> None:
                pass

        assert isinstance(Duck(), LoggerProtocol)


class TestStreamLogger:
    def test_json_output(self) -> None:
        read_fd, write_fd = os.pipe()
        logger = StreamLogger(fd=write_fd, fmt="json")
        try:
            assert logger.open()
            logger.handle(_record("json line", tag="app"))
            logger.close()
        finally:
            os.close(write_fd)
        with os.fdopen(read_fd, "rb") as reader:
            data = orjson.loads(reader.readline())
        assert data["message"] == "json line"
        assert data["level"] == "INFO"
        assert data["tag"] == "app"

    def test_console_output_without_tty_has_no_color(self) -> None:
        read_fd, write_fd = os.pipe()
        logger = StreamLogger(fd=write_fd)
        try:
            logger.open()
            logger.handle(_record("plain", level=Severity.WARNING))
            logger.close()
        finally:
            os.close(write_fd)
        with os.fdopen(read_fd, "r") as reader:
            line = reader.read()
        assert "\x1b[" not in line
        assert "WARNING" in line
        assert line.endswith("plain\n")

    def test_skips_records_captured_from_its_own_stream(self, capfd) -> None:
        logger = StreamLogger(fd=2)
        assert logger.open()
        logger.handle(_record("echo", tag=TAG_CAPTURED_STDERR))
        logger.handle(_record("real"))
        logger.close()

        err = capfd.readouterr().err
        assert "echo" not in err
        assert "real" in err

    def test_open_fails_on_bad_descriptor(self) -> None:
        read_fd, write_fd = os.pipe()
        os.close(read_fd)
        os.close(write_fd)
        assert StreamLogger(fd=write_fd).open() is False

    def test_close_is_safe_without_open(self) -> None:
        StreamLogger().close()


class TestFileLogger:
    def test_writes_json_lines(self, tmp_path) -> None:
        path = tmp_path / "logs" / "app.log"
        logger = FileLogger(path)
        assert logger.open()
        logger.handle(_record("first"))
        logger.handle(_record("second", level=Severity.EXCEPTION, callstack=(StackFrame("main", "m.py", 1),)))
        logger.close()

        lines = [orjson.loads(line) for line in path.read_bytes().splitlines()]
        assert [line["message"] for line in lines] == ["first", "second"]
        assert lines[1]["callstack"] == ["main (m.py:1)"]

    def test_rotates_when_too_large(self, tmp_path) -> None:
        path = tmp_path / "app.log"
        logger = FileLogger(path, max_bytes=50, backup_count=2)
        logger.open()
        for i in range(6):
            logger.handle(_record(f"message number {i}"))
        logger.close()

        assert path.exists()
        assert (tmp_path / "app.log.1").exists()
        assert not (tmp_path / "app.log.3").exists()

    def test_open_fails_when_parent_is_a_file(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        logger = FileLogger(blocker / "app.log")
        assert logger.open() is False
        logger.close()

    def test_with_facility(self, facility, tmp_path) -> None:
        path = tmp_path / "facility.log"
        logger = FileLogger(path)
        assert facility.add_logger(logger)
        facility.log("through the facility", "app", Severity.WARNING)
        facility.remove_logger(logger)

        data = orjson.loads(path.read_bytes().splitlines()[0])
        assert data["message"] == "through the facility"
        assert data["level"] == "WARNING"
