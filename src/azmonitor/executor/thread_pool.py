"""
Thread pool for fanning out per-resource collection.

All Azure calls are blocking, so a scrape covering many resources spends most
of its time waiting on the network. The pool lets a scrape query several
resources at once while each task stays isolated: a failing task is counted
and logged, it never cancels the others.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set

from ..validation import handle_error, ErrorSeverity

logger = logging.getLogger(__name__)


@dataclass
class ThreadPoolConfig:
    """Configuration for the scrape worker pool."""

    max_workers: int = 4
    thread_name_prefix: str = "ScrapeWorker"
    shutdown_timeout: float = 10.0


class ManagedThreadPoolExecutor:
    """
    ThreadPoolExecutor wrapper with lifecycle checks and task statistics.
    """

    def __init__(self, config: ThreadPoolConfig):
        """
        Initialize the managed thread pool executor.

        Args:
            config: Thread pool configuration
        """
        self.config = config
        self.executor: Optional[ThreadPoolExecutor] = None
        self.active_futures: Set[Future] = set()
        self.is_shutdown = False
        self._lock = threading.Lock()

        self.stats = {
            "tasks_submitted": 0,
            "tasks_completed": 0,
            "tasks_failed": 0,
        }

    def start(self) -> None:
        """
        Start the thread pool executor.

        Raises:
            RuntimeError: If already started
        """
        if self.executor is not None:
            raise RuntimeError("Thread pool already started")

        self.executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix=self.config.thread_name_prefix,
        )
        self.is_shutdown = False
        logger.info(f"Started thread pool with {self.config.max_workers} workers")

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        """
        Submit a task to the thread pool.

        Args:
            fn: Function to execute
            *args: Positional arguments
            **kwargs: Keyword arguments

        Returns:
            Future representing the task

        Raises:
            RuntimeError: If executor is not started or is shutdown
        """
        if self.executor is None:
            raise RuntimeError("Thread pool not started")
        if self.is_shutdown:
            raise RuntimeError("Thread pool is shutdown")

        with self._lock:
            self.stats["tasks_submitted"] += 1

        future = self.executor.submit(fn, *args, **kwargs)
        with self._lock:
            self.active_futures.add(future)
        future.add_done_callback(self._task_completed)
        return future

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        """
        Shutdown the thread pool executor.

        Args:
            wait: Whether to wait for completion
            cancel_futures: Whether to cancel pending futures
        """
        if self.executor is None or self.is_shutdown:
            return

        try:
            self.is_shutdown = True
            self.executor.shutdown(wait=wait, cancel_futures=cancel_futures)

            if wait:
                logger.info("Thread pool shutdown completed")
            else:
                logger.info("Thread pool shutdown initiated")

        except Exception as e:
            handle_error(
                error=e,
                context="shutting down thread pool",
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )
        finally:
            self.executor = None
            with self._lock:
                self.active_futures.clear()

    def get_stats(self) -> Dict[str, Any]:
        """
        Get current thread pool statistics.

        Returns:
            Dictionary containing usage statistics
        """
        with self._lock:
            stats = self.stats.copy()
            stats["active_futures"] = len(self.active_futures)

        stats["is_shutdown"] = self.is_shutdown
        stats["success_rate"] = (
            stats["tasks_completed"] / max(1, stats["tasks_submitted"]) * 100
        )
        return stats

    def _task_completed(self, future: Future) -> None:
        with self._lock:
            self.active_futures.discard(future)

            if future.cancelled():
                return
            if future.exception() is not None:
                self.stats["tasks_failed"] += 1
            else:
                self.stats["tasks_completed"] += 1

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.shutdown(wait=True)
