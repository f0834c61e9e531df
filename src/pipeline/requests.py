"""
Control requests raised by users and observed by the frame processor.

Requests are level-triggered flags: raising the same request twice before it
is observed yields a single action. The processor consumes a request with an
atomic compare-and-clear, so each raised request is acted on at most once.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import FrozenSet, Set


class ControlRequest(Enum):
    CAPTURE = "capture"
    START_RECORDING = "start_recording"
    STOP_RECORDING = "stop_recording"
    SWITCH_CAMERA = "switch_camera"


class RequestChannel:
    """Thread-safe set of pending control requests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Set[ControlRequest] = set()

    def request(self, kind: ControlRequest) -> None:
        """Raise a request; a no-op if it is already pending."""
        with self._lock:
            self._pending.add(kind)
        logging.debug(f"Control request raised: {kind.value}")

    def consume(self, kind: ControlRequest) -> bool:
        """
        Clear a pending request.

        Returns:
            True if the request was pending (and is now cleared).
        """
        with self._lock:
            if kind in self._pending:
                self._pending.discard(kind)
                return True
            return False

    def is_pending(self, kind: ControlRequest) -> bool:
        with self._lock:
            return kind in self._pending

    def pending(self) -> FrozenSet[ControlRequest]:
        with self._lock:
            return frozenset(self._pending)

    def clear(self) -> None:
        with self._lock:
            self._pending.clear()
