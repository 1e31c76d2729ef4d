"""
Tests for configuration, structured logging and shared helpers
"""

import json
import logging
import pytest
from decimal import Decimal
from datetime import datetime, timezone, timedelta

from finance_core.config import FinanceConfig, reload_config, get_config
from finance_core.logging_config import JSONFormatter, setup_logging, log_action
from finance_core.amounts import to_decimal, positive_amount
from finance_core.dates import add_months, add_years, parse_datetime, month_range
from finance_core.errors import ValidationError, NotFoundError, FinanceError


class TestFinanceConfig:
    """Test environment based configuration"""

    def test_defaults(self):
        config = FinanceConfig()
        assert config.upcoming_subscription_days == 7
        assert config.jwt_algorithm == "HS256"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("FINANCE_UPCOMING_SUBSCRIPTION_DAYS", "14")
        monkeypatch.setenv("FINANCE_DATABASE_URL", "memory://")

        config = reload_config()
        try:
            assert config.upcoming_subscription_days == 14
            assert get_config().database_url == "memory://"
        finally:
            monkeypatch.delenv("FINANCE_UPCOMING_SUBSCRIPTION_DAYS")
            monkeypatch.delenv("FINANCE_DATABASE_URL")
            reload_config()


class TestStructuredLogging:
    """Test JSON log output"""

    def test_json_formatter_includes_action_fields(self):
        record = logging.LogRecord("finance_core.debts", logging.INFO, __file__, 1, "Debt settled", None, None)
        record.user_id = "user_1"
        record.action = "debt_settled"
        record.extra = {"total_amount": Decimal("100")}

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "Debt settled"
        assert entry["user_id"] == "user_1"
        assert entry["action"] == "debt_settled"
        assert entry["extra"] == {"total_amount": "100"}
        assert "resource" not in entry

    def test_log_action(self, caplog):
        logger = logging.getLogger("finance_core.test")
        with caplog.at_level(logging.INFO, logger="finance_core.test"):
            log_action(logger, "info", "Account created", user_id="user_1",
                       action="account_created", resource="acc_1")

        assert caplog.records[0].action == "account_created"
        assert caplog.records[0].resource == "acc_1"

    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging("DEBUG", logger_name="finance_core.setup_test")
        logger = setup_logging("WARNING", logger_name="finance_core.setup_test", log_format="text")

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)


class TestHelpers:
    """Test amount and date helpers"""

    def test_to_decimal(self):
        assert to_decimal("10.10") == Decimal("10.10")
        assert to_decimal(0.1) == Decimal("0.1")
        for bad in (None, True, "ten", "NaN", "Infinity"):
            with pytest.raises(ValidationError):
                to_decimal(bad)

    def test_positive_amount(self):
        assert positive_amount("0.01") == Decimal("0.01")
        with pytest.raises(ValidationError):
            positive_amount(0)

    def test_parse_datetime(self):
        assert parse_datetime("2024-01-15") == datetime(2024, 1, 15, tzinfo=timezone.utc)
        assert parse_datetime("2024-01-15T10:30:00Z") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert parse_datetime("2024-01-15T10:30:00-03:00") == datetime(2024, 1, 15, 13, 30, tzinfo=timezone.utc)
        with pytest.raises(ValidationError):
            parse_datetime("15/01/2024")

    def test_add_months_and_years(self):
        jan31 = datetime(2024, 1, 31, tzinfo=timezone.utc)
        assert add_months(jan31, 1) == datetime(2024, 2, 29, tzinfo=timezone.utc)
        assert add_months(jan31, 13) == datetime(2025, 2, 28, tzinfo=timezone.utc)
        assert add_months(datetime(2024, 2, 29, tzinfo=timezone.utc), 1, anchor_day=31) == \
            datetime(2024, 3, 31, tzinfo=timezone.utc)
        assert add_years(datetime(2024, 2, 29, tzinfo=timezone.utc), 4) == datetime(2028, 2, 29, tzinfo=timezone.utc)

    def test_month_range(self):
        start, end = month_range(2024, 2)
        assert start == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert end + timedelta(microseconds=1) == datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_error_taxonomy(self):
        assert issubclass(NotFoundError, FinanceError)
        assert issubclass(FinanceError, ValueError)
        assert NotFoundError.status_code == 404
