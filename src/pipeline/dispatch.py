"""
Hand-off from the capture thread to the control thread.

Preview publication and request handling run on one designated control
thread so they never race with each other. The capture thread submits a
closure per frame and moves on without waiting.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional


class Dispatcher(ABC):
    """Runs control-thread work submitted by the frame processor."""

    @abstractmethod
    def submit(self, fn: Callable[[], None]) -> Optional[Future]:
        """Schedule `fn`; returns a Future, or None if the work was not accepted."""
        pass

    def shutdown(self, wait: bool = True) -> None:
        pass


class InlineDispatcher(Dispatcher):
    """Runs work synchronously on the calling thread."""

    def submit(self, fn: Callable[[], None]) -> Optional[Future]:
        future: Future = Future()
        try:
            future.set_result(fn())
        except Exception as e:
            logging.warning(f"Control task failed: {e}")
            future.set_exception(e)
        return future


class ControlDispatcher(Dispatcher):
    """
    Single dedicated control thread with a short FIFO backlog.

    If the control thread falls behind by more than `max_backlog` tasks, new
    tasks are dropped. Pending requests stay raised, so a later task picks
    them up; preview updates are last-writer-wins anyway.
    """

    def __init__(self, max_backlog: int = 2):
        self.max_backlog = max_backlog
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="control")
        self._lock = threading.Lock()
        self._backlog = 0
        self._closed = False
        self.dropped = 0

    @property
    def backlog(self) -> int:
        with self._lock:
            return self._backlog

    def submit(self, fn: Callable[[], None]) -> Optional[Future]:
        with self._lock:
            if self._closed:
                return None
            if self._backlog >= self.max_backlog:
                self.dropped += 1
                logging.debug(f"Control thread busy, dropped task (backlog={self._backlog})")
                return None
            self._backlog += 1
        return self._executor.submit(self._run, fn)

    def _run(self, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception as e:
            logging.warning(f"Control task failed: {e}")
        finally:
            with self._lock:
                self._backlog -= 1

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)
