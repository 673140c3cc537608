# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for structured logging
"""

import json
import logging

import pytest

from conftest import make_transport
from criage.core.errors import ConfigurationError
from criage.core.logging import (
    ROOT_LOGGER,
    JSONFormatter,
    TextFormatter,
    configure_logging,
    log_event,
)
from criage.models.registry_models import Scope, TransactionOperation
from criage.registry.service import PackageManagerService
from criage.registry.transactions import TransactionLogger


@pytest.fixture(autouse=True)
def reset_criage_logger():
    """Drop handlers attached during the test"""
    logger = logging.getLogger(ROOT_LOGGER)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)


def read_entries(path):
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


class TestConfigureLogging:
    """Test configure_logging"""

    def test_replaces_handlers(self, tmp_path):
        """Should not stack handlers when called again"""
        configure_logging("INFO", "text")
        logger = configure_logging("WARNING", "json", log_file=tmp_path / "logs" / "criage.log")

        assert len(logger.handlers) == 2
        assert logger.level == logging.WARNING
        assert all(isinstance(h.formatter, JSONFormatter) for h in logger.handlers)
        assert (tmp_path / "logs").is_dir()

    def test_unknown_format(self):
        """Should raise ConfigurationError"""
        with pytest.raises(ConfigurationError):
            configure_logging("INFO", "xml")


class TestTransactionEvents:
    """Test events emitted by the transaction logger"""

    def test_json_fields(self, tmp_path):
        """Should write transaction fields as top-level JSON keys"""
        log_file = tmp_path / "criage.log"
        configure_logging("DEBUG", "json", log_file=log_file)
        transactions = TransactionLogger(tmp_path / "transactions.jsonl")

        txn = transactions.complete(
            transactions.begin(TransactionOperation.INSTALL, "demo", "1.0.0", Scope.LOCAL)
        )
        transactions.fail(
            transactions.begin(TransactionOperation.REMOVE, "other"),
            RuntimeError("gone")
        )

        entries = read_entries(log_file)
        completed = next(e for e in entries if e["message"] == "transaction_completed")
        failed = next(e for e in entries if e["message"] == "transaction_failed")

        assert completed["level"] == "DEBUG"
        assert completed["logger"] == "criage.registry.transactions"
        assert completed["transaction_id"] == txn.id
        assert completed["operation"] == "install"
        assert completed["package"] == "demo"
        assert completed["package_version"] == "1.0.0"
        assert "timestamp" in completed
        assert failed["operation"] == "remove"
        assert "package_version" not in failed

    def test_events_hidden_above_debug(self, tmp_path):
        """Should not emit transaction events at INFO"""
        log_file = tmp_path / "criage.log"
        configure_logging("INFO", "json", log_file=log_file)
        transactions = TransactionLogger(tmp_path / "transactions.jsonl")

        transactions.complete(transactions.begin(TransactionOperation.INSTALL, "demo", "1.0.0"))

        assert read_entries(log_file) == []


class TestFormatters:
    """Test formatter output"""

    def test_text_appends_event_fields(self):
        """Should render extra fields as key=value"""
        record = logging.makeLogRecord({
            "name": "criage.test",
            "msg": "transaction_completed",
            "levelname": "INFO",
            "package": "demo",
        })

        assert TextFormatter().format(record).endswith("transaction_completed package=demo")

    def test_log_event_drops_empty_fields(self, caplog):
        """Should leave None fields off the record"""
        logger = logging.getLogger("criage.test")

        with caplog.at_level(logging.INFO, logger="criage.test"):
            log_event(logger, "package_installed", package="demo", package_version=None)

        record = caplog.records[-1]
        assert record.package == "demo"
        assert not hasattr(record, "package_version")


class TestServiceLogFile:
    """Test the logging section of the config"""

    def test_service_writes_configured_log_file(self, config_factory, main_repo, sandbox):
        """Should log service activity to logging.file"""
        main_repo.add_version("demo", "1.0.0")
        config = config_factory(
            [main_repo.repository(priority=1)],
            log_format="json",
            log_file=str(sandbox / "logs" / "criage.log")
        )

        with PackageManagerService(config=config, transport=make_transport(main_repo)) as service:
            service.install_package("demo")

        messages = [e["message"] for e in read_entries(sandbox / "logs" / "criage.log")]
        assert any(m.startswith("Package demo@1.0.0 installed") for m in messages)
