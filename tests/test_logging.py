"""
Tests for sshm logging setup.
"""

from __future__ import annotations

import json
import logging

from rich.logging import RichHandler

from sshm.config import SSHMSettings
from sshm.logging import JsonFormatter, get_logger, setup_logging


class TestGetLogger:
    """Test get_logger()."""

    def test_namespaces_name(self):
        assert get_logger("store").name == "sshm.store"

    def test_keeps_qualified_name(self):
        assert get_logger("sshm.terminal.session").name == "sshm.terminal.session"
        assert get_logger("sshm").name == "sshm"


class TestSetupLogging:
    """Test setup_logging()."""

    def test_rich_handler_by_default(self, tmp_path):
        root = setup_logging(SSHMSettings(config_dir=tmp_path))
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], RichHandler)
        assert root.level == logging.WARNING

    def test_json_handler(self, tmp_path):
        root = setup_logging(SSHMSettings(config_dir=tmp_path, log_json=True, log_level="DEBUG"))
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.DEBUG

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "sshm.log"
        setup_logging(SSHMSettings(config_dir=tmp_path, log_file=log_file, log_json=True, log_level="INFO"))

        get_logger("store").info("hello %s", "world")
        for handler in logging.getLogger("sshm").handlers:
            handler.flush()

        payload = json.loads(log_file.read_text().splitlines()[-1])
        assert payload["message"] == "hello world"
        assert payload["logger"] == "sshm.store"
        assert payload["level"] == "INFO"

    def test_repeated_setup_replaces_handler(self, tmp_path):
        settings = SSHMSettings(config_dir=tmp_path)
        setup_logging(settings)
        root = setup_logging(settings)
        assert len(root.handlers) == 1
