from __future__ import annotations

import logging

from src.logging.init import log_summary, reset_logging, set_debug, setup_logging


class TestSetupLogging:
    def test_labels(self, capsys):
        reset_logging()
        logger = setup_logging()
        logger.info("starting")
        logger.warning("careful")
        logger.error("broken")
        log_summary("files=1")
        out = capsys.readouterr().out.splitlines()
        assert out == ["INFO starting", "WARN careful", "ERROR broken", "SUMMARY files=1"]

    def test_idempotent(self):
        reset_logging()
        first = setup_logging()
        assert setup_logging() is first
        assert len(first.handlers) == 1

    def test_service_loggers_share_the_handler(self, capsys):
        reset_logging()
        setup_logging()
        logging.getLogger("src.services.dispatcher").info("stage FileUpload: Success")
        assert capsys.readouterr().out == "INFO stage FileUpload: Success\n"

    def test_debug_hidden_until_enabled(self, capsys):
        reset_logging()
        logger = setup_logging()
        logger.debug("hidden")
        set_debug(logger)
        logger.debug("shown")
        assert capsys.readouterr().out == "DEBUG shown\n"
