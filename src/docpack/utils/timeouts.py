"""
Deadline-bounded execution of potentially blocking operations.

A single helper races an operation against a deadline: the operation runs on
a daemon worker thread and the caller waits at most ``timeout`` seconds for
its result. A worker that loses the race is abandoned rather than
interrupted; it finishes (or not) on its own and its result is discarded.
"""

import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional, TypeVar

from .errors import OperationTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_timeout(
    func: Callable[..., T],
    timeout: Optional[float],
    *args: Any,
    name: Optional[str] = None,
    **kwargs: Any
) -> T:
    """
    Run ``func(*args, **kwargs)`` and return its result if it settles in time.

    Args:
        func: Operation to run
        timeout: Deadline in seconds; None or <= 0 runs inline without a deadline
        name: Label used in log messages and the worker thread name
        *args, **kwargs: Forwarded to func

    Returns:
        Whatever func returns

    Raises:
        OperationTimeout: If the deadline passes first
        Exception: Whatever func raised, re-raised in the caller
    """
    label = name or getattr(func, "__name__", "operation")

    if timeout is None or timeout <= 0:
        return func(*args, **kwargs)

    future: Future = Future()

    def runner():
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = func(*args, **kwargs)
        except BaseException as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    worker = threading.Thread(target=runner, name=f"bounded-{label}", daemon=True)
    start = time.monotonic()
    worker.start()

    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        elapsed = time.monotonic() - start
        logger.warning(f"{label} timed out after {elapsed:.2f}s (limit {timeout:.2f}s)")
        raise OperationTimeout(f"{label} exceeded {timeout:.2f}s deadline") from None


def call_with_fallback(
    func: Callable[..., T],
    timeout: Optional[float],
    fallback: Callable[[], T],
    *args: Any,
    name: Optional[str] = None,
    **kwargs: Any
) -> T:
    """
    Like run_with_timeout, but a timeout or error resolves to ``fallback()``.

    The fallback itself is called inline; it must not block.
    """
    label = name or getattr(func, "__name__", "operation")
    try:
        return run_with_timeout(func, timeout, *args, name=label, **kwargs)
    except OperationTimeout:
        pass
    except Exception as e:
        logger.warning(f"{label} failed: {e}")
    return fallback()
