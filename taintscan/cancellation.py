"""
Cooperative cancellation for long-running scans
"""

import threading


class CancellationToken:
    """Set once from any thread; polled by the scan between units and methods"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()
