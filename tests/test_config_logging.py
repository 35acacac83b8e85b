"""
Tests for configuration and structured logging
"""

import json
import logging

from factoring_desk import config as config_module
from factoring_desk.config import FactoringDeskConfig, get_config, reload_config
from factoring_desk.logging_config import JSONFormatter, setup_logging, get_logger, log_action


class TestConfig:
    """Test environment-based configuration"""

    def test_defaults(self):
        """Test built-in defaults"""
        settings = FactoringDeskConfig()

        assert settings.grace_period_days == 7
        assert settings.amount_tolerance == "0.01"
        assert settings.default_company_name == "Fuel Co"
        assert settings.enable_audit_logging is True

    def test_environment_override(self, monkeypatch):
        """Test FACTORING_ variables override defaults"""
        monkeypatch.setenv("FACTORING_GRACE_PERIOD_DAYS", "3")
        monkeypatch.setenv("FACTORING_DEFAULT_COMPANY_NAME", "BJK Fuel")
        try:
            settings = reload_config()
            assert settings.grace_period_days == 3
            assert settings.default_company_name == "BJK Fuel"
            assert get_config() is settings
        finally:
            monkeypatch.delenv("FACTORING_GRACE_PERIOD_DAYS")
            monkeypatch.delenv("FACTORING_DEFAULT_COMPANY_NAME")
            reload_config()

    def test_module_global(self):
        """Test get_config returns the module-level instance"""
        assert get_config() is config_module.config


class TestJSONFormatter:
    """Test structured log output"""

    def make_record(self, **attrs):
        record = logging.LogRecord("factoring_desk.closures", logging.INFO, __file__, 1,
                                   "Installment #1 successfully closed", (), None)
        for key, value in attrs.items():
            setattr(record, key, value)
        return record

    def test_structured_fields(self):
        """Test action, loan and extra fields are emitted"""
        record = self.make_record(action="close_installment", loan_id="L001",
                                  extra={"installment_number": 1})
        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "factoring_desk.closures"
        assert entry["message"] == "Installment #1 successfully closed"
        assert entry["action"] == "close_installment"
        assert entry["loan_id"] == "L001"
        assert entry["extra"] == {"installment_number": 1}
        assert "timestamp" in entry

    def test_missing_fields_dropped(self):
        """Test unset structured fields are omitted"""
        entry = json.loads(JSONFormatter().format(self.make_record()))
        assert "action" not in entry
        assert "loan_id" not in entry
        assert "user_id" not in entry


class TestLogAction:
    """Test logging setup and log_action"""

    def test_setup_logging_replaces_handlers(self):
        """Test repeated setup keeps a single handler"""
        setup_logging(level="DEBUG", logger_name="factoring_desk.test_setup")
        logger = setup_logging(level="DEBUG", logger_name="factoring_desk.test_setup")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.level == logging.DEBUG
        assert not logger.propagate

    def test_text_format(self):
        """Test the plain text format option"""
        logger = setup_logging(level="INFO", logger_name="factoring_desk.test_text", log_format="text")
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_log_action_attaches_fields(self):
        """Test structured fields reach the handler"""
        records = []

        class Collector(logging.Handler):
            def emit(self, record):
                records.append(record)

        logger = get_logger("factoring_desk.test_action")
        logger.setLevel(logging.INFO)
        logger.addHandler(Collector())

        log_action(logger, "info", "Loan created", action="create_loan", loan_id="L001",
                   extra={"loan_amount": "15000"})

        assert len(records) == 1
        assert records[0].action == "create_loan"
        assert records[0].loan_id == "L001"
        assert records[0].extra == {"loan_amount": "15000"}

    def test_log_action_respects_level(self):
        """Test messages below the logger level are skipped"""
        records = []

        class Collector(logging.Handler):
            def emit(self, record):
                records.append(record)

        logger = get_logger("factoring_desk.test_level")
        logger.setLevel(logging.WARNING)
        logger.addHandler(Collector())

        log_action(logger, "info", "ignored")
        assert records == []
