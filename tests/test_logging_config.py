"""Tests for structured logging configuration."""

import logging
import sys

import structlog

from cli.logging_config import NOISY_LOGGERS, StderrHandler, _redact_sensitive, setup_from_config, setup_logging


class TestLoggingConfig:
    """Test structlog setup modes."""

    def test_console_mode(self, capsys):
        """Console mode uses dev renderer."""
        setup_logging(json_mode=False, level="DEBUG")
        logger = structlog.get_logger()
        logger.info("test message", key="value")
        captured = capsys.readouterr()
        assert captured is not None  # Smoke test: no crash

    def test_json_mode(self):
        """JSON mode configures a JSON-rendering handler."""
        setup_logging(json_mode=True, level="DEBUG")
        stdlib_logger = logging.getLogger("test_json")
        stdlib_logger.info("json test")
        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter)

    def test_level_filtering(self):
        """Log level filters lower messages."""
        setup_logging(json_mode=False, level="WARNING")
        root = logging.getLogger()
        assert root.level == logging.WARNING

    def test_processor_chain(self):
        """Processor chain includes contextvars merge and redaction."""
        setup_logging(json_mode=True, level="DEBUG")
        config = structlog.get_config()
        assert structlog.contextvars.merge_contextvars in config["processors"]
        assert _redact_sensitive in config["processors"]

    def test_default_level_is_info(self):
        """Default level param is INFO."""
        setup_logging()
        root = logging.getLogger()
        assert root.level == logging.INFO

    def test_single_handler_after_repeated_setup(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1


class TestSetupFromConfig:
    def test_uses_config_level(self):
        setup_from_config({"logging": {"level": "ERROR", "json_output": False}})
        assert logging.getLogger().level == logging.ERROR

    def test_missing_section_defaults(self):
        setup_from_config({})
        assert logging.getLogger().level == logging.INFO


class TestRedaction:
    def _redact(self, value):
        return _redact_sensitive(None, None, {"event": value})["event"]

    def test_anthropic_key(self):
        out = self._redact("key sk-ant-REDACTED")
        assert "1234567890XYZ" not in out
        assert "REDACTED" in out

    def test_google_key(self):
        out = self._redact("AIzaSyABCDEF1234567890abcdefghijkl")
        assert "1234567890abcdefghijkl" not in out

    def test_tavily_key(self):
        out = self._redact("using tvly-abcd1234567890efgh")
        assert "1234567890efgh" not in out

    def test_email(self):
        assert self._redact("contact ana@example.com") == "contact REDACTED@email"

    def test_non_strings_untouched(self):
        assert _redact_sensitive(None, None, {"count": 3}) == {"count": 3}

    def test_nested_values_redacted(self):
        event = {"errors": {"openai": "401 for key sk-abcdef1234567890abcdefghij"}, "cc": ["ana@example.com"]}
        out = _redact_sensitive(None, None, event)
        assert "1234567890abcdefghij" not in out["errors"]["openai"]
        assert out["cc"] == ["REDACTED@email"]


class TestModuleLoggers:
    def test_module_logger_respects_configured_level(self, capsys):
        from llm.gateway import logger as gateway_logger

        setup_logging(level="WARNING")
        gateway_logger.info("gateway.below_threshold")
        gateway_logger.warning("gateway.above_threshold")

        captured = capsys.readouterr()
        assert "gateway.below_threshold" not in captured.out + captured.err
        assert "gateway.above_threshold" in captured.err
        assert captured.out == ""

    def test_source_bound_lazily(self, capsys):
        from orchestrator.engine import logger as engine_logger

        setup_logging(json_mode=True, level="INFO")
        engine_logger.info("pipeline.ping")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        assert '"source": "orchestrator"' in line
        assert '"event": "pipeline.ping"' in line

    def test_request_context_merged(self, capsys):
        from orchestrator.engine import logger as engine_logger

        setup_logging(json_mode=True, level="INFO")
        with structlog.contextvars.bound_contextvars(request_id="r-1", owner_id="u1"):
            engine_logger.info("pipeline.ping")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        assert '"request_id": "r-1"' in line
        assert '"owner_id": "u1"' in line


class TestHandler:
    def test_handler_follows_stderr_swaps(self):
        setup_logging()
        handler = logging.getLogger().handlers[0]
        assert isinstance(handler, StderrHandler)
        assert handler.stream is sys.stderr

    def test_noisy_loggers_quieted(self):
        setup_logging(level="DEBUG")
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
