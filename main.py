"""
Main entrypoint: upstream rebuilder + notifier in background threads, outbox drain in the main thread.

The chat transport is external; here the outgoing event channel is drained
into the log so the process can run standalone. On SIGINT/SIGTERM the runtime
is stopped cooperatively and the process exits.

Env: SIGNUM_API_HOSTS, DATABASE_URL, NOTIFIER_PERIOD_SEC, CACHE_TTL_SEC, LOG_LEVEL, etc.
"""

import queue
import signal
import sys
from typing import Any, Callable

# Configure structured JSON logging before other imports that may log
from signum_explorer.explorer_logging import get_logger

logger = get_logger("main")

OUTBOX_POLL_SEC = 1.0


def _log_message(message: Any) -> None:
    logger.info("main_outbox_message", chat_id=message.chat_id, user_name=message.user_name, body=message.body)


def drain_outbox(outbox: "queue.Queue[Any]", finished: Callable[[], bool]) -> int:
    """
    Log every outgoing message until finished() holds and the outbox is empty.
    Consumption continues past the shutdown signal until the notifier has exited.
    """
    drained = 0
    while True:
        try:
            message = outbox.get(timeout=OUTBOX_POLL_SEC)
        except queue.Empty:
            if finished():
                return drained
            continue
        _log_message(message)
        drained += 1


def flush_outbox(outbox: "queue.Queue[Any]") -> int:
    """Log whatever is still queued without waiting."""
    flushed = 0
    while True:
        try:
            message = outbox.get_nowait()
        except queue.Empty:
            return flushed
        _log_message(message)
        flushed += 1


def main() -> int:
    from signum_explorer.config import get_settings
    from signum_explorer.core.exceptions import SignumExplorerError
    from signum_explorer.database import WatermarkStore
    from signum_explorer.runtime import ExplorerRuntime

    try:
        settings = get_settings()
        store = WatermarkStore(settings.database_url)
        store.init_db()
    except SignumExplorerError as e:
        logger.error("main_config_error", error=str(e))
        return 1

    runtime = ExplorerRuntime(settings, store)

    def request_shutdown(signum: int, frame: Any) -> None:
        logger.info("main_shutdown_signal", signal=signum)
        runtime.shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, request_shutdown)
        except (AttributeError, ValueError):
            # Windows or not the main thread
            pass

    runtime.start()
    try:
        drained = drain_outbox(runtime.outbox, runtime.finished)
        logger.info("main_outbox_closed", drained=drained)
    except KeyboardInterrupt:
        logger.info("main_shutdown_signal")
    finally:
        runtime.stop()
        flushed = flush_outbox(runtime.outbox)
        if flushed:
            logger.info("main_outbox_flushed", flushed=flushed)
        store.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
