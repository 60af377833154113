"""
Background worker base for handlers that publish results to the render path.

The worker thread hands results over through a drop-oldest queue; readers
take the newest result without ever waiting on the worker.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger('openHUD.worker')


@dataclass(frozen=True)
class Snapshot:
    """One published result. sequence increases by one per publish."""
    timestamp: float
    data: Dict[str, Any] = field(default_factory=dict)
    sequence: int = 0


class BoundedQueueWorker:
    """
    Worker thread publishing Snapshots through a bounded queue.

    Subclasses implement _worker_loop(), looping while self.running and
    calling _publish_snapshot() with each result.
    """

    def __init__(self, queue_depth: int = 2, join_timeout_s: float = 5.0):
        self.queue_depth = queue_depth
        self.join_timeout_s = join_timeout_s
        self.data_queue: "queue.Queue[Snapshot]" = queue.Queue(maxsize=queue_depth)
        self.current_snapshot: Optional[Snapshot] = None
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._sequence = 0

    @property
    def published_count(self) -> int:
        return self._sequence

    def start(self):
        if self.running:
            return
        self.running = True
        self.thread = threading.Thread(
            target=self._worker_loop, name=self.__class__.__name__, daemon=True
        )
        self.thread.start()
        logger.info("%s started", self.__class__.__name__)

    def stop(self):
        self.running = False
        if self.thread:
            self.thread.join(timeout=self.join_timeout_s)
            if self.thread.is_alive():
                logger.warning("%s did not stop within %.1fs",
                               self.__class__.__name__, self.join_timeout_s)
            self.thread = None
        logger.info("%s stopped", self.__class__.__name__)

    def _worker_loop(self):
        raise NotImplementedError("Subclasses must implement _worker_loop")

    def _publish_snapshot(self, data: Optional[Dict[str, Any]]) -> Snapshot:
        """Queue a copy of data, discarding the oldest unread result if full."""
        self._sequence += 1
        snapshot = Snapshot(time.time(), dict(data) if data else {}, self._sequence)
        while True:
            try:
                self.data_queue.put_nowait(snapshot)
                return snapshot
            except queue.Full:
                try:
                    self.data_queue.get_nowait()
                except queue.Empty:
                    pass

    def get_snapshot(self) -> Optional[Snapshot]:
        """Newest published snapshot, or None before the first publish."""
        try:
            while True:
                self.current_snapshot = self.data_queue.get_nowait()
        except queue.Empty:
            pass
        return self.current_snapshot

    def get_data(self) -> Dict[str, Any]:
        snapshot = self.get_snapshot()
        return snapshot.data if snapshot else {}
