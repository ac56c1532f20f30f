"""
Background execution of analysis runs.

Engines are synchronous and run to completion. AnalysisRunner lets an
interactive caller keep responding while a run executes on a single worker
thread. Runs are serialised in submission order, and the most recently
completed run replaces the published result wholesale; a failed run
publishes nothing.

Examples:
    >>> runner = AnalysisRunner()
    >>> future = runner.submit(run_correlation_analysis, context, genes, "design")
    >>> result = future.result()
    >>> runner.latest is result
    True
    >>> runner.shutdown()
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from depcorr.results import AnalysisOutcome

logger = logging.getLogger(__name__)

__all__ = ['AnalysisRunner']


class AnalysisRunner:
    """Single-worker executor that publishes the latest completed result."""

    def __init__(self):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="depcorr")
        self._lock = threading.Lock()
        self._latest: Optional[AnalysisOutcome] = None

    @property
    def latest(self) -> Optional[AnalysisOutcome]:
        """Result of the most recently completed run, or None."""
        with self._lock:
            return self._latest

    def submit(self, fn: Callable[..., AnalysisOutcome], *args, **kwargs) -> Future:
        """
        Queue ``fn(*args, **kwargs)`` on the worker thread.

        Exceptions raised by ``fn`` are delivered through the returned Future
        and leave ``latest`` unchanged.
        """
        return self._executor.submit(self._run, fn, args, kwargs)

    def _run(self, fn, args, kwargs) -> AnalysisOutcome:
        # Published before the Future resolves, so result() implies latest is set
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Analysis run failed: {e}")
            raise
        with self._lock:
            self._latest = result
        return result

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> AnalysisRunner:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
