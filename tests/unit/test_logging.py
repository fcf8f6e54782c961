"""
Unit Tests for Logging Configuration
"""

import json
import sys

import pytest
from loguru import logger

from tpa_core.utils.logging import get_logger, setup_logging, setup_logging_from_settings


@pytest.fixture(autouse=True)
def restore_loguru():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.mark.unit
class TestSetupLogging:
    """Test sink configuration"""

    def test_file_sink(self, tmp_path):
        """Test that messages reach the log file with the bound module name"""
        log_file = tmp_path / "logs" / "tpa.log"
        setup_logging("DEBUG", str(log_file))

        get_logger("tpa_core.services.maintenance").debug("Sweep started")
        logger.remove()

        content = log_file.read_text()
        assert "Sweep started" in content
        assert "tpa_core.services.maintenance" in content

    def test_json_file_sink(self, tmp_path):
        """Test that JSON mode writes one serialized record per line"""
        log_file = tmp_path / "tpa.jsonl"
        setup_logging("INFO", str(log_file), json_logs=True)

        get_logger("tpa_core.db").info("Database tables created")
        logger.remove()

        records = [json.loads(line) for line in log_file.read_text().splitlines()]
        messages = [r["record"]["message"] for r in records]
        assert "Database tables created" in messages

    def test_level_from_settings(self, tmp_path, monkeypatch):
        """Test that TPA_LOG_* settings drive the configuration"""
        log_file = tmp_path / "settings.log"
        monkeypatch.setenv("TPA_LOG_LEVEL", "warning")
        monkeypatch.setenv("TPA_LOG_FILE", str(log_file))

        setup_logging_from_settings()
        log = get_logger("tests")
        log.info("routine detail")
        log.warning("Audit store slow")
        logger.remove()

        content = log_file.read_text()
        assert "Audit store slow" in content
        assert "routine detail" not in content
