"""Logging setup and log sanitization.

Notification payloads and transport errors end up in log lines, so a
filter redacts what a push provider or client could have put there:
- Device/push registration tokens
- Bearer tokens
- Email addresses

Usage:
    from ride_progression.utils import configure_logging

    configure_logging("INFO")
"""

import logging
import re
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class LogSanitizationFilter(logging.Filter):
    """Logging filter that redacts sensitive values from log messages."""

    # Order matters - more specific patterns should come before general ones
    PATTERNS: list[tuple[re.Pattern, str]] = [
        # FCM-style registration tokens ("<instance id>:APA91b...")
        (re.compile(r'\b[\w-]{11,}:APA91[\w-]{20,}'), '[REDACTED_PUSH_TOKEN]'),

        # Token fields in payload dumps
        (re.compile(r'((?:push_|device_|fcm_)?token["\']?\s*[:=]\s*["\']?)[^"\'&\s,}]+', re.IGNORECASE), r'\1[REDACTED]'),

        # Bearer tokens
        (re.compile(r'Bearer\s+[a-zA-Z0-9_\-\.]+', re.IGNORECASE), 'Bearer [REDACTED_TOKEN]'),

        # Email addresses
        (re.compile(r'\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b'), '[REDACTED_EMAIL]'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = self._sanitize(str(record.msg))
        if record.args:
            record.args = self._sanitize_args(record.args)
        return True

    def _sanitize(self, text: str) -> str:
        for pattern, replacement in self.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def _sanitize_args(self, args: Any) -> Any:
        if isinstance(args, str):
            return self._sanitize(args)
        if isinstance(args, tuple):
            return tuple(self._sanitize_args(a) for a in args)
        if isinstance(args, list):
            return [self._sanitize_args(a) for a in args]
        if isinstance(args, dict):
            return {k: self._sanitize_args(v) for k, v in args.items()}
        return args


_sanitization_filter = LogSanitizationFilter()


def install_log_sanitizer(logger_name: str | None = None) -> None:
    """Attach the sanitization filter to every handler of a logger.

    Args:
        logger_name: Logger to patch. Defaults to the root logger.
    """
    target = logging.getLogger(logger_name)
    for handler in target.handlers:
        if _sanitization_filter not in handler.filters:
            handler.addFilter(_sanitization_filter)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the CLI and the maintenance scheduler."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    install_log_sanitizer()
