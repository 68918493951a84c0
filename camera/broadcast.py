"""
Single-slot frame broadcast.

The hub keeps only the most recent frame. Subscribers block in
`wait_for_next()` and are all woken by the next `publish()`; anything published
while a subscriber was busy elsewhere is skipped, never queued.
"""
import threading
from typing import Iterator, Optional, Tuple


class FrameHub:
    def __init__(self):
        self._cond = threading.Condition()
        self._frame: Optional[bytes] = None
        self._version = 0
        self._closed = False

    @property
    def version(self) -> int:
        with self._cond:
            return self._version

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def latest(self) -> Tuple[int, Optional[bytes]]:
        """Return (version, frame); frame is None until the first publish."""
        with self._cond:
            return self._version, self._frame

    def publish(self, frame: bytes) -> int:
        # Snapshot before taking the lock so readers only ever wait on the swap.
        snapshot = bytes(frame)
        with self._cond:
            self._frame = snapshot
            self._version += 1
            self._cond.notify_all()
            return self._version

    def wait_for_next(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """
        Block until a frame newer than the one current at call time is published.

        Returns the newest frame, or None on timeout or once the hub is closed.
        """
        with self._cond:
            start = self._version
            self._cond.wait_for(lambda: self._version != start or self._closed, timeout)
            if self._closed or self._version == start:
                return None
            return self._frame

    def frames(self, poll_interval: Optional[float] = 1.0) -> Iterator[bytes]:
        """Yield each frame a subscriber wakes up to, until the hub is closed."""
        while not self.closed:
            frame = self.wait_for_next(timeout=poll_interval)
            if frame is not None:
                yield frame

    def close(self) -> None:
        """Wake every subscriber and stop all `frames()` iterators."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
