"""
Fire-and-forget background task runner.

Post-install token acquisition and callback firing run here so that the
webhook response never waits on them.

Contract:
- submit() never blocks or raises; after shutdown the task is dropped and logged
- tasks run on a bounded pool of worker threads
- no ordering between tasks, no join, no completion guarantee at shutdown
- exceptions raised by a task are logged, never propagated
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class BackgroundTaskRunner:
    """Bounded worker pool with non-blocking submit."""

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS, thread_name_prefix: str = "addon-bg"):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix,
        )

    def submit(self, fn: Callable[..., Any], *args: Any, name: Optional[str] = None) -> Future:
        """
        Schedule fn(*args) and return immediately.

        The returned future is informational only; callers are not expected
        to wait on it.
        """
        task_name = name or getattr(fn, "__name__", repr(fn))
        try:
            return self._executor.submit(self._run, fn, args, task_name)
        except RuntimeError:
            # Raised once the executor is shut down
            logger.warning("Background task dropped after shutdown", extra={"task": task_name})
            future: Future = Future()
            future.cancel()
            return future

    @staticmethod
    def _run(fn: Callable[..., Any], args: tuple, task_name: str) -> Any:
        try:
            return fn(*args)
        except Exception:
            logger.exception(
                "Background task failed",
                extra={"task": task_name},
            )
            return None

    def shutdown(self, wait: bool = False) -> None:
        """Stop accepting tasks. Pending tasks are not awaited unless wait=True."""
        self._executor.shutdown(wait=wait)


class InlineTaskRunner(BackgroundTaskRunner):
    """
    Runs tasks synchronously on the caller's thread.

    Used by tests and scripts that need deterministic completion.
    """

    def __init__(self):
        self._executor = None

    def submit(self, fn: Callable[..., Any], *args: Any, name: Optional[str] = None) -> Future:
        task_name = name or getattr(fn, "__name__", repr(fn))
        future: Future = Future()
        future.set_result(self._run(fn, args, task_name))
        return future

    def shutdown(self, wait: bool = False) -> None:
        return None
