"""Test unified logging setup.

Tests for src.utils.logging_config:
    - Console lines read "Warning: <message>"
    - File output (human and JSON) carries context fields
    - Repeated setup_logging() calls don't duplicate handlers
    - Context push/pop
    - Rotation config reaches the file handler
    - shutdown() detaches installed handlers only, even on closed streams

Run:
    pytest tests/test_logging_config.py -v
"""

import io
import json
import logging
import logging.handlers
import sys

import pytest

from src.utils import logging_config


@pytest.fixture(autouse=True)
def clean_logging():
    """Remove installed handlers and context after each test."""
    yield
    logging_config.shutdown()
    logging_config.pop_context()


@pytest.fixture
def fake_stderr(monkeypatch):
    """StringIO standing in for sys.stderr while handlers are built."""
    stream = io.StringIO()
    monkeypatch.setattr(sys, 'stderr', stream)
    return stream


def test_logging_idempotency(tmp_path):
    """Two setups write each record once."""
    log_path = tmp_path / "test.log"

    logging_config.setup_logging(
        log_level="INFO",
        log_file=str(log_path),
        json=True,
        to_stderr=False,
        context={"app": "test"}
    )
    logger = logging.getLogger("utils_test")
    logger.info("hello")

    logging_config.setup_logging(
        log_level="INFO",
        log_file=str(log_path),
        json=True,
        to_stderr=False,
        context={"app": "test"}
    )
    logger.info("world")
    logging_config.shutdown()

    lines = log_path.read_text().strip().splitlines()
    assert len(lines) == 2

    rec = json.loads(lines[0])
    assert rec["msg"] == "hello"
    assert rec["lvl"] == "INFO"
    assert rec.get("app") == "test"


def test_console_format(fake_stderr):
    """Console lines are "<Level>: <message>" and honour the level."""
    logging_config.setup_logging(log_level="WARNING", color=False, context={"app": "plot_png"})
    logging.getLogger("utils_test").warning("Large image")
    logging.getLogger("utils_test").info("hidden")

    assert fake_stderr.getvalue() == "Warning: Large image\n"


def test_human_file_format_has_context(tmp_path):
    """Human file lines carry level, context and message."""
    log_path = tmp_path / "logs" / "plot.log"
    logging_config.setup_logging(log_file=str(log_path), to_stderr=False, context={"app": "plot_png"})
    logging_config.push_context(mode="curve")
    logging.getLogger("utils_test").warning("Large image")
    logging_config.shutdown()

    line = log_path.read_text().strip()
    assert "| WARNING  |" in line
    assert "app=plot_png mode=curve |" in line
    assert line.endswith("Large image")


def test_pop_context_keys(tmp_path):
    """pop_context(keys) removes only the named fields."""
    log_path = tmp_path / "ctx.log"
    logging_config.setup_logging(log_file=str(log_path), json=True, to_stderr=False)
    logging_config.push_context(app="plot_png", mode="surface")
    logging_config.pop_context(keys=["mode"])
    logging.getLogger("utils_test").warning("msg")
    logging_config.shutdown()

    rec = json.loads(log_path.read_text())
    assert rec["app"] == "plot_png"
    assert "mode" not in rec


def test_shutdown_tolerates_closed_stream(fake_stderr):
    """A console stream closed before shutdown() doesn't raise."""
    logging_config.setup_logging(log_level="WARNING", color=False)
    logging.getLogger("utils_test").warning("before close")
    fake_stderr.close()

    logging_config.shutdown()
    assert logging_config.setup_logging(to_stderr=False)['handlers'] == []


def test_shutdown_keeps_foreign_handlers(fake_stderr):
    """Handlers added by other code survive setup and shutdown."""
    root = logging.getLogger()
    foreign = logging.NullHandler()
    root.addHandler(foreign)
    try:
        info = logging_config.setup_logging(log_level="INFO")
        assert len(info['handlers']) == 1
        logging_config.shutdown()
        assert foreign in root.handlers
        assert info['handlers'][0] not in root.handlers
    finally:
        root.removeHandler(foreign)


@pytest.mark.parametrize("rotate,handler_type", [
    ({"mode": "size", "max_bytes": 1024, "backup_count": 1}, logging.handlers.RotatingFileHandler),
    ({"mode": "time", "when": "D", "interval": 1, "backup_count": 2}, logging.handlers.TimedRotatingFileHandler),
    (None, logging.FileHandler),
])
def test_rotation_modes(tmp_path, rotate, handler_type):
    """Rotation dicts select the matching file handler."""
    info = logging_config.setup_logging(
        log_file=str(tmp_path / "rot.log"),
        to_stderr=False,
        rotate=rotate,
    )
    assert type(info['handlers'][0]) is handler_type


def test_unknown_rotation_mode(tmp_path):
    """Unknown rotation modes are rejected."""
    with pytest.raises(ValueError):
        logging_config.setup_logging(
            log_file=str(tmp_path / "rot.log"),
            to_stderr=False,
            rotate={"mode": "weekly"},
        )


def test_unknown_format_mode():
    """ContextFormatter only knows console, human and json."""
    with pytest.raises(ValueError):
        logging_config.ContextFormatter("xml")
