"""
Fire-and-forget dispatchers (``labour_services.dispatcher``).

Responsibility:
    Run side effects (event recording, cross-module budget creation) outside
    the caller's control flow.  A failure is captured and logged at this
    boundary; it never propagates to the operation that submitted it and
    never rolls back the state change that triggered it.

Implementations:
    ``InlineDispatcher``     -- runs the work immediately on the calling
                                thread, still isolating failures.  Used by
                                tests and single-threaded scripts.
    ``BackgroundDispatcher`` -- hands work to a thread pool and returns at
                                once.  ``flush()`` waits for pending work,
                                ``shutdown()`` stops the pool.

Invariants enforced:
    - ``submit`` never raises because the submitted work failed.
    - Every failure produces one ``dispatch_failed`` log record carrying the
      label and ``exc_info``.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Protocol

from labour_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.dispatcher")


class Dispatcher(Protocol):
    def submit(self, label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        ...


def _log_failure(label: str, exc: BaseException) -> None:
    logger.error(
        "dispatch_failed",
        extra={"label": label},
        exc_info=(type(exc), exc, exc.__traceback__),
    )


class InlineDispatcher:
    """Runs submitted work synchronously, swallowing and logging failures."""

    def submit(self, label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        try:
            fn(*args, **kwargs)
        except Exception as exc:
            _log_failure(label, exc)


class BackgroundDispatcher:
    """Thread-pool dispatcher; work runs after ``submit`` returns."""

    def __init__(self, max_workers: int = 4, thread_name_prefix: str = "labour-dispatch"):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix,
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        context = LogContext.get_all()

        def run() -> None:
            with LogContext.bind(**context):
                try:
                    fn(*args, **kwargs)
                except Exception as exc:
                    _log_failure(label, exc)

        try:
            future = self._executor.submit(run)
        except RuntimeError as exc:
            # Executor already shut down
            _log_failure(label, exc)
            return

        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._done)

    def _done(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def flush(self, timeout: float | None = None) -> None:
        """Block until every submitted item has finished."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)
