import threading
import time
from typing import Any, Dict, Optional

import numpy as np


class PreviewState:
    """
    Process-wide hand-off between the capture thread and the web server.

    The frame processor publishes each filtered frame through `set_frame`;
    only the newest frame is kept. Route handlers read it back together with
    the runtime reference and a small stats dict.
    """

    _instance: Optional["PreviewState"] = None
    _instance_lock = threading.Lock()

    def __new__(cls):
        with cls._instance_lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._reset()
                cls._instance = instance
        return cls._instance

    def _reset(self) -> None:
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self.runtime: Any = None
        self.system_stats: Dict[str, Any] = {
            "start_time": 0,
            "last_frame_ts": None,
            "frames_published": 0,
            "preview_size": None,
            "last_recording": None,
        }

    def set_frame(self, image_bgr: Optional[np.ndarray]) -> None:
        if image_bgr is None:
            return
        height, width = image_bgr.shape[:2]
        with self._lock:
            self._frame = image_bgr.copy()
            self.system_stats["last_frame_ts"] = time.time()
            self.system_stats["frames_published"] += 1
            self.system_stats["preview_size"] = [width, height]

    def get_frame(self) -> Optional[np.ndarray]:
        with self._lock:
            return None if self._frame is None else self._frame.copy()

    def set_runtime(self, runtime: Any) -> None:
        self.runtime = runtime

    def update_system_stats(self, stats: Dict[str, Any]) -> None:
        with self._lock:
            self.system_stats.update(stats)

    def get_system_stats_copy(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self.system_stats)


state = PreviewState()
