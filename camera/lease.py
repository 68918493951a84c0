"""
Exclusive ownership of the camera hardware.

Only one process may open the sensor at a time. Every transition that touches
the device goes through `DeviceLease.acquire()` / `release()`, which moves the
lease between FREE and exactly one busy mode.
"""
import subprocess
import threading
from enum import Enum, auto
from typing import Optional

from camera.errors import LeaseError


class LeaseState(Enum):
    FREE = auto()
    PREVIEW = auto()
    CAPTURING = auto()


class LeaseHandle:
    """Returned by `DeviceLease.acquire()`; release it exactly once."""

    def __init__(self, lease: "DeviceLease", mode: LeaseState):
        self._lease = lease
        self.mode = mode
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def attach(self, process: subprocess.Popen) -> None:
        if self._released:
            raise LeaseError("Cannot attach a process to a released lease")
        self._lease._attach(process)

    def release(self) -> None:
        if self._released:
            raise LeaseError("Lease handle already released")
        self._lease.release(self)

    def __enter__(self) -> "LeaseHandle":
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self._released:
            self.release()


class DeviceLease:
    def __init__(self):
        self._cond = threading.Condition()
        self._state = LeaseState.FREE
        self._process: Optional[subprocess.Popen] = None
        self._owner: Optional[int] = None
        self._handle: Optional[LeaseHandle] = None

    @property
    def state(self) -> LeaseState:
        with self._cond:
            return self._state

    @property
    def process(self) -> Optional[subprocess.Popen]:
        with self._cond:
            return self._process

    @property
    def handle(self) -> Optional[LeaseHandle]:
        """The handle of the current holder, or None when free."""
        with self._cond:
            return self._handle

    def acquire(self, mode: LeaseState, timeout: Optional[float] = None) -> LeaseHandle:
        """
        Block until the lease is FREE, then move it to `mode`.

        Raises LeaseError on re-entrant acquisition from the holding thread and
        TimeoutError if `timeout` elapses first.
        """
        if mode is LeaseState.FREE:
            raise LeaseError("Cannot acquire the FREE state")

        me = threading.get_ident()
        with self._cond:
            if self._state is not LeaseState.FREE and self._owner == me:
                raise LeaseError(
                    f"Lease is not reentrant: already held in {self._state.name}"
                )
            if not self._cond.wait_for(lambda: self._state is LeaseState.FREE, timeout):
                raise TimeoutError(f"Camera still held in {self._state.name}")
            self._state = mode
            self._owner = me
            self._handle = LeaseHandle(self, mode)
            return self._handle

    def release(self, handle: Optional[LeaseHandle] = None) -> None:
        """Return to FREE and forget the stored process."""
        with self._cond:
            if self._state is LeaseState.FREE:
                raise LeaseError("Release of a lease that is not held")
            if handle is not None and handle is not self._handle:
                raise LeaseError("Release with a stale lease handle")
            self._handle._released = True
            self._state = LeaseState.FREE
            self._process = None
            self._owner = None
            self._handle = None
            self._cond.notify_all()

    def _attach(self, process: subprocess.Popen) -> None:
        with self._cond:
            if self._state is LeaseState.FREE:
                raise LeaseError("Cannot attach a process to a free lease")
            if self._process is not None and self._process is not process:
                raise LeaseError("Lease already owns a process")
            self._process = process
