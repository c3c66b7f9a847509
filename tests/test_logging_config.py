"""Tests for the logging setup."""

import io
import logging

from tftstat.logging_config import setup_logging


class TestSetupLogging:
    def test_level_and_format(self):
        stream = io.StringIO()
        setup_logging("DEBUG", stream=stream)

        logging.getLogger("tftstat.services.crawler").debug("[euw1] cycle")

        assert logging.getLogger("tftstat").level == logging.DEBUG
        assert logging.getLogger("tftstat.riot").level == logging.INFO
        assert logging.getLogger("pymongo").level == logging.WARNING
        assert "| DEBUG    | tftstat.services.crawler: [euw1] cycle" in stream.getvalue()

    def test_unknown_level_falls_back_to_info(self):
        stream = io.StringIO()
        setup_logging("LOUD", stream=stream)

        assert logging.getLogger("tftstat").level == logging.INFO
        assert "Unknown log level 'LOUD'" in stream.getvalue()
