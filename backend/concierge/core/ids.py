"""
Record id generation for orders, bookings, complaints and escalations.
"""

import threading
import time


class IdGenerator:
    """
    Produces ids of the form ``PREFIX-<millis><seq>`` that are unique within
    the process, even for several ids issued in the same millisecond.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._last_millis = 0
        self._seq = 0

    def next_id(self, prefix: str) -> str:
        with self._lock:
            millis = int(time.time() * 1000)
            if millis <= self._last_millis:
                # Clock did not advance (or went backwards): keep the last
                # millisecond and bump the sequence instead.
                millis = self._last_millis
                self._seq += 1
            else:
                self._last_millis = millis
                self._seq = 0
            return f"{prefix}-{millis}{self._seq:03d}"
