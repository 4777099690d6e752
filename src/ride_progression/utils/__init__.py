"""Utility helpers for the ride progression engine."""

from .clock import Clock, ensure_utc, utc_now
from .logging_setup import configure_logging, install_log_sanitizer

__all__ = [
    "Clock",
    "ensure_utc",
    "utc_now",
    "configure_logging",
    "install_log_sanitizer",
]
