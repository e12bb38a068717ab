from __future__ import annotations

import io
import logging as py_logging
from pathlib import Path

import hushline.logging as hl_logging


def test_default_log_path_is_expanded() -> None:
    path = hl_logging.default_log_path()

    assert path.is_absolute()
    assert path.name == "hushline.log"


def test_warning_alias_maps_to_warning_level() -> None:
    logger = hl_logging.configure_logging("warning")

    assert logger.level == hl_logging.LOG_LEVELS["WARN"]
    assert hl_logging.normalize_level(" warning ") == "WARN"


def test_unknown_log_level_falls_back_to_info() -> None:
    logger = hl_logging.configure_logging("not-a-level")

    assert logger.level == py_logging.INFO


def test_configure_logging_resets_existing_handlers() -> None:
    logger = hl_logging.configure_logging("INFO")
    assert len(logger.handlers) == 1

    logger = hl_logging.configure_logging("INFO")

    assert len(logger.handlers) == 1
    assert logger.propagate is False


def test_module_loggers_write_through_package_logger() -> None:
    stream = io.StringIO()
    hl_logging.configure_logging("DEBUG", stream=stream)

    py_logging.getLogger("hushline.capture").debug("capture-event step=acquire")

    assert "capture-event step=acquire" in stream.getvalue()


def test_configure_logging_adds_debug_file_handler(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "hushline.log"

    logger = hl_logging.configure_logging("ERROR", log_file=log_file)
    file_handlers = [
        handler for handler in logger.handlers if isinstance(handler, py_logging.FileHandler)
    ]

    assert len(file_handlers) == 1
    assert file_handlers[0].level == py_logging.DEBUG
    assert log_file.exists()
    file_handlers[0].close()


def test_configure_logging_ignores_file_handler_oserror(monkeypatch, tmp_path: Path) -> None:
    def raise_os_error(*args: object, **kwargs: object) -> py_logging.Handler:
        raise OSError("disk full")

    monkeypatch.setattr(hl_logging.py_logging, "FileHandler", raise_os_error)

    logger = hl_logging.configure_logging("INFO", log_file=tmp_path / "nope" / "hushline.log")

    assert len(logger.handlers) == 1
    assert type(logger.handlers[0]) is py_logging.StreamHandler


def test_raw_input_arguments_are_redacted(tmp_path: Path) -> None:
    stream = io.StringIO()
    log_file = tmp_path / "hushline.log"
    logger = hl_logging.configure_logging("DEBUG", stream=stream, log_file=log_file)

    py_logging.getLogger("hushline.session").debug("chunk=%s size=%d", b"hunter2", 7)
    for handler in logger.handlers:
        handler.flush()

    assert "chunk=<redacted 7 bytes> size=7" in stream.getvalue()
    assert "hunter2" not in stream.getvalue()
    assert "hunter2" not in log_file.read_text(encoding="utf-8")
    for handler in logger.handlers:
        if isinstance(handler, py_logging.FileHandler):
            handler.close()


def test_redact_filter_keeps_other_arguments() -> None:
    record = py_logging.LogRecord("hushline", py_logging.DEBUG, __file__, 1, "%s %s", ("step", b"x"), None)

    assert hl_logging.RedactInputFilter().filter(record) is True
    assert record.args == ("step", "<redacted 1 bytes>")
