"""Structured logging for the pipeline and the CLI.

Every module logs through ``structlog.get_logger(source=...)``; the proxies
resolve against whatever ``setup_logging`` configured last. Log lines go to
stderr so ``mentorflow ask --json`` keeps stdout machine-readable. Request
identifiers bound by the orchestrator via ``structlog.contextvars`` are merged
into every line emitted while a request is in flight.
"""

import logging
import re
import sys

import structlog

# Vendor keys, bearer tokens and emails can reach log fields through
# provider error messages and user text.
_REDACT_PATTERNS = [
    (re.compile(r"(sk-ant-[a-zA-Z0-9_-]{10})[a-zA-Z0-9_-]*"), r"\1...REDACTED"),
    (re.compile(r"(sk-[a-zA-Z0-9_-]{6})[a-zA-Z0-9_-]{20,}"), r"\1...REDACTED"),
    (re.compile(r"(AIza[a-zA-Z0-9_-]{6})[a-zA-Z0-9_-]{20,}"), r"\1...REDACTED"),
    (re.compile(r"(tvly-[a-zA-Z0-9]{4})[a-zA-Z0-9_-]{10,}"), r"\1...REDACTED"),
    (re.compile(r"(Bearer\s+)[a-zA-Z0-9_.-]{20,}"), r"\1REDACTED"),
    (re.compile(r"(api[_-]?key['\"]?\s*[:=]\s*['\"]?)[a-zA-Z0-9_-]{10,}"), r"\1REDACTED"),
    (re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "REDACTED@email"),
]

# SDK and transport loggers that are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "google_genai", "chromadb", "apscheduler")


def _redact(value):
    if isinstance(value, str):
        for pattern, replacement in _REDACT_PATTERNS:
            value = pattern.sub(replacement, value)
        return value
    if isinstance(value, dict):
        return {k: _redact(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact(v) for v in value]
    return value


def _redact_sensitive(_, __, event_dict: dict) -> dict:
    """Structlog processor: scrub secrets from every field, including nested ones."""
    for key, value in event_dict.items():
        event_dict[key] = _redact(value)
    return event_dict


class StderrHandler(logging.StreamHandler):
    """StreamHandler bound to whatever ``sys.stderr`` is at emit time.

    Click's test runner and pytest swap the process streams per invocation;
    a handler holding the stream captured at setup would write into a closed
    buffer afterwards.
    """

    def __init__(self):
        super().__init__(sys.stderr)

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, _value):
        pass


def _processors(json_mode: bool) -> list:
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_mode:
        # Console output stays compact; machine output keeps the call site.
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            )
        )
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _redact_sensitive,
    ]
    return processors


def setup_logging(json_mode: bool = False, level: str = "INFO") -> None:
    """Route structlog through stdlib logging with one stderr handler.

    Args:
        json_mode: JSON lines (daemon/log shipping) instead of the console renderer.
        level: Root level name; unknown names fall back to INFO.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            *_processors(json_mode),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_mode
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    handler = StderrHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def setup_from_config(config: dict, json_override: bool | None = None) -> None:
    """Configure logging from the `logging` config section."""
    log_config = config.get("logging", {})
    json_mode = log_config.get("json_output", False) if json_override is None else json_override
    setup_logging(json_mode=json_mode, level=log_config.get("level", "INFO"))
