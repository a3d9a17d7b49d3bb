"""Input sanitization for inbound user messages."""

import re

from shared_types import ErrorKind

DEFAULT_MAX_LENGTH = 4000

# C0 and C1 control characters except tab and newline
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")


class InputRejected(ValueError):
    """Inbound text is empty after sanitization or exceeds the length limit."""

    kind = ErrorKind.INPUT_REJECTED

    def __init__(self, reason: str, detail: str = ""):
        self.reason = reason
        super().__init__(detail or reason)


def sanitize_input(text: str | None, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Strip control characters and surrounding whitespace.

    Over-long input is rejected rather than truncated.

    Raises:
        InputRejected: reason "empty" or "too_long"
    """
    cleaned = _CONTROL_RE.sub("", text or "").strip()
    if not cleaned:
        raise InputRejected("empty", "Message is empty")
    if len(cleaned) > max_length:
        raise InputRejected(
            "too_long", f"Message is {len(cleaned)} characters, limit is {max_length}"
        )
    return cleaned
