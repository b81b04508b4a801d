"""Cooperative cancellation for build and clean jobs."""

from __future__ import annotations

import logging
import threading

from .errors import BuildCanceled

logger = logging.getLogger(__name__)


class ProgressMonitor:
    """
    Passed through every long-running call.

    Cancelling only sets a flag; work stops at the next ``check_canceled``.
    """

    def __init__(self) -> None:
        self._canceled = threading.Event()
        self.task: str | None = None

    def begin(self, task: str) -> None:
        self.task = task
        logger.debug(f"begin: {task}")

    def cancel(self) -> None:
        self._canceled.set()

    @property
    def is_canceled(self) -> bool:
        return self._canceled.is_set()

    def check_canceled(self) -> None:
        if self._canceled.is_set():
            raise BuildCanceled(f"canceled during {self.task}" if self.task else "build canceled")
