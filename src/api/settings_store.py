"""
Process-lifetime settings holder for the API.
One instance lives on ``app.state``; scans receive a snapshot of its value.
"""
import threading
from typing import Any, Optional

from duplicate_guard.models import Settings


class SettingsStore:
    """Thread-safe holder for the current duplicate detection settings."""

    def __init__(self, initial: Optional[Settings] = None):
        self._lock = threading.Lock()
        self._settings = initial or Settings()

    def get(self) -> Settings:
        with self._lock:
            return self._settings

    def update(self, **changes: Any) -> Settings:
        """Apply a partial update. Unknown keys are ignored, bad values are normalised."""
        with self._lock:
            self._settings = self._settings.updated(**changes)
            return self._settings
