"""
Structured logging for Signum Explorer.

JSON lines with event_type, level, timestamp and thread; secretPhrase
payloads are scrubbed from every value before rendering.
"""

from signum_explorer.explorer_logging.logger import bind_account, configure_logging, get_logger

__all__ = ["bind_account", "configure_logging", "get_logger"]
