import threading
from collections import deque
from datetime import datetime
from typing import Optional
from treemig.domain.models import AppState, BatchSnapshot

class UIState:
    """Thread-safe state manager for the terminal UI."""

    def __init__(self, activity_feed_max_items: int = 5):
        self._lock = threading.RLock()

        # Counters for the current batch
        self.registered_count = 0
        self.invalid_count = 0
        self.dispatched_count = 0
        self.completed_count = 0
        self.failed_count = 0

        # Latest orchestrator snapshot, replaced every tick
        self.snapshot = BatchSnapshot(app_state=AppState.INIT)

        # (timestamp, text) lines, newest first
        self.recent_activity = deque(maxlen=activity_feed_max_items)

        self.ui_title = "Tree Migration"
        self.processing_start_time: Optional[datetime] = None
        self.processing_end_time: Optional[datetime] = None

        self.last_action: str = ""
        self.last_action_time: Optional[datetime] = None

    @property
    def app_state(self) -> AppState:
        with self._lock:
            return self.snapshot.app_state

    @property
    def elapsed_seconds(self) -> float:
        with self._lock:
            if self.processing_start_time is None:
                return 0.0
            end = self.processing_end_time or datetime.now()
            return (end - self.processing_start_time).total_seconds()

    def set_snapshot(self, snapshot: BatchSnapshot):
        with self._lock:
            self.snapshot = snapshot

    def add_activity(self, text: str):
        with self._lock:
            self.recent_activity.appendleft((datetime.now(), text))

    def reset_counters(self):
        with self._lock:
            self.registered_count = 0
            self.invalid_count = 0
            self.dispatched_count = 0
            self.completed_count = 0
            self.failed_count = 0
            self.processing_start_time = None
            self.processing_end_time = None

    def set_last_action(self, action: str):
        """Set last action message with timestamp."""
        with self._lock:
            self.last_action = action
            self.last_action_time = datetime.now()

    def get_last_action(self) -> str:
        """Get last action message (clears after 60 seconds)."""
        with self._lock:
            if self.last_action and self.last_action_time:
                elapsed = (datetime.now() - self.last_action_time).total_seconds()
                if elapsed > 60:
                    self.last_action = ""
                    self.last_action_time = None
            return self.last_action
