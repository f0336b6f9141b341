"""Tests for logging setup."""

import logging

import pytest

from vidsplice import logging_config
from vidsplice.logging_config import configure_logging


@pytest.fixture(autouse=True)
def _fresh_root(monkeypatch):
    monkeypatch.setattr(logging_config, "_CONFIGURED", False)
    monkeypatch.setattr(logging_config, "_LOG_FILE", None)
    monkeypatch.delenv("VIDSPLICE_LOG_DIR", raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class TestConfigureLogging:
    def test_console_only(self):
        assert configure_logging("vidsplice-test") is None
        assert logging.getLogger().level == logging.INFO

    def test_log_file(self, tmp_path):
        log_file = configure_logging("vidsplice-test", log_dir=tmp_path / "logs", verbose=True)
        assert log_file.parent == tmp_path / "logs"
        assert log_file.name.startswith("vidsplice-test-")
        assert logging.getLogger().level == logging.DEBUG

        logging.getLogger("vidsplice.test").info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello" in log_file.read_text(encoding="utf-8")

    def test_env_log_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VIDSPLICE_LOG_DIR", str(tmp_path))
        assert configure_logging("vidsplice-test").parent == tmp_path

    def test_second_call_returns_first_file(self, tmp_path):
        first = configure_logging("vidsplice-test", log_dir=tmp_path)
        assert configure_logging("other", log_dir=tmp_path / "elsewhere") == first
