import json
import logging

import pytest

from location_trust.settings import LoggingSettings
from location_trust.trust_logging import (
    JSONFormatter,
    get_logger,
    log_subject_context,
    setup_logging,
    setup_logging_from_settings,
)
from location_trust.trust_logging.formatters import DevFormatter


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.unit
class TestSetupLogging:
    def test_single_handler_with_filters(self):
        setup_logging(level="DEBUG")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, DevFormatter)
        assert len(root.handlers[0].filters) == 3

    def test_json_output(self):
        setup_logging(json_output=True, environment="staging")

        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter, JSONFormatter)
        assert formatter.environment == "staging"

    def test_quiets_http_libraries(self):
        setup_logging(level="DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_from_settings(self):
        setup_logging_from_settings(LoggingSettings(level="WARNING", format="json"))

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_end_to_end_json_line(self, capsys):
        setup_logging(json_output=True)
        logger = get_logger("location_trust.test")

        with log_subject_context("worker-42"):
            logger.info("Capture at 19.0760123, 72.8777456")

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["message"] == "Capture at 19.076, 72.877"
        assert line["subject_id"] == "worker-42"
        assert line["correlation_id"] == "worker-42"

    def test_default_correlation_outside_context(self, capsys):
        setup_logging(json_output=True)

        get_logger("location_trust.test").info("no context")

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["correlation_id"] == "-"
