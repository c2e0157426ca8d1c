"""
Test suite for configuration and structured logging
"""

import json
import logging
import pytest

from loan_engine.config import EngineConfig, get_config, reload_config
from loan_engine.logging_config import JSONFormatter, setup_logging, get_logger, log_action


class TestConfig:
    """Test engine configuration"""

    def test_defaults(self):
        """Test built-in defaults"""
        settings = EngineConfig()
        assert settings.default_currency == "KES"
        assert settings.default_days_in_year_type == "365"
        assert settings.default_days_in_month_type == "actual"
        assert settings.default_repayment_strategy == "penalties_fees_interest_principal"
        assert settings.consistency_tolerance == "0.01"
        assert settings.log_format == "json"

    def test_environment_override(self, monkeypatch):
        """Test LOAN_ENGINE_ prefixed variables override defaults"""
        monkeypatch.setenv("LOAN_ENGINE_DEFAULT_CURRENCY", "USD")
        monkeypatch.setenv("LOAN_ENGINE_CONSISTENCY_TOLERANCE", "0.05")
        try:
            settings = reload_config()
            assert settings.default_currency == "USD"
            assert settings.consistency_tolerance == "0.05"
            assert get_config() is settings
        finally:
            monkeypatch.delenv("LOAN_ENGINE_DEFAULT_CURRENCY")
            monkeypatch.delenv("LOAN_ENGINE_CONSISTENCY_TOLERANCE")
            reload_config()
        assert get_config().default_currency == "KES"


class TestLogging:
    """Test structured logging helpers"""

    @pytest.fixture
    def log_record(self):
        return logging.LogRecord(
            name="loan_engine.schedule", level=logging.INFO, pathname=__file__,
            lineno=1, msg="Schedule generated", args=(), exc_info=None
        )

    def test_json_formatter(self, log_record):
        """Test structured fields are emitted and empty ones dropped"""
        log_record.loan_id = "LOAN001"
        log_record.action = "generate_schedule"
        log_record.extra = {"installments": 12}
        entry = json.loads(JSONFormatter().format(log_record))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "loan_engine.schedule"
        assert entry["message"] == "Schedule generated"
        assert entry["loan_id"] == "LOAN001"
        assert entry["action"] == "generate_schedule"
        assert entry["extra"] == {"installments": 12}
        assert "resource" not in entry
        assert "timestamp" in entry

    def test_setup_logging(self):
        """Test handler and level are configured once"""
        logger = setup_logging(level="DEBUG", logger_name="loan_engine.test_logging", log_format="json")
        setup_logging(level="DEBUG", logger_name="loan_engine.test_logging", log_format="json")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert not logger.propagate

    def test_text_format(self):
        """Test the plain text format"""
        logger = setup_logging(level="INFO", logger_name="loan_engine.test_text", log_format="text")
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_log_action_attaches_fields(self, caplog):
        """Test log_action records structured attributes"""
        logger = get_logger("loan_engine.test_action")
        with caplog.at_level(logging.INFO, logger="loan_engine.test_action"):
            log_action(logger, "info", "Payment applied", loan_id="LOAN001",
                       action="apply_payment", extra={"amount": "100"})
        record = caplog.records[-1]
        assert record.getMessage() == "Payment applied"
        assert record.loan_id == "LOAN001"
        assert record.action == "apply_payment"
        assert record.extra == {"amount": "100"}

    def test_log_action_respects_level(self, caplog):
        """Test disabled levels emit nothing"""
        logger = get_logger("loan_engine.test_quiet")
        with caplog.at_level(logging.WARNING, logger="loan_engine.test_quiet"):
            log_action(logger, "debug", "Schedule generated")
        assert not [r for r in caplog.records if r.name == "loan_engine.test_quiet"]
