"""
Preview process lifecycle.

Starts and stops the preview subprocess under the device lease and attaches a
fresh FrameExtractor to each new process. All transitions are serialized by
`transition()`, which the capture orchestrator also holds while it swaps the
preview out for a still capture.
"""
import logging
import subprocess
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from camera.broadcast import FrameHub
from camera.commands import CameraCommands
from camera.config import PreviewSettings
from camera.extractor import FrameExtractor
from camera.lease import DeviceLease, LeaseState

logger = logging.getLogger(__name__)


def terminate(process: subprocess.Popen) -> Optional[int]:
    """Kill `process` and block until it has exited."""
    if process.poll() is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    returncode = process.wait()
    logger.info("Camera process pid=%s exited (rc=%s)", process.pid, returncode)
    return returncode


class CameraSupervisor:
    # How long to wait for an extractor to drain after its process is gone.
    EXTRACTOR_JOIN_TIMEOUT = 2.0

    def __init__(
            self,
            lease: DeviceLease,
            hub: FrameHub,
            commands: CameraCommands,
            preview_settings: PreviewSettings | None = None,
    ):
        self.lease = lease
        self.hub = hub
        self.commands = commands
        self.preview_settings = preview_settings or PreviewSettings()
        self._control = threading.RLock()
        self._extractor: Optional[FrameExtractor] = None

    @contextmanager
    def transition(self) -> Iterator[None]:
        """Hold the control path for a multi-step device transition."""
        with self._control:
            yield

    @property
    def preview_process(self) -> Optional[subprocess.Popen]:
        if self.lease.state is not LeaseState.PREVIEW:
            return None
        return self.lease.process

    @property
    def is_previewing(self) -> bool:
        process = self.preview_process
        return process is not None and process.poll() is None

    def start_preview(self, restart: bool = False) -> bool:
        """
        Make sure a preview process is running.

        A live preview is left alone unless `restart` is set; anything else
        recorded on the lease is killed first. Returns True if a new process
        was spawned. Raises LaunchFailure if it could not be.
        """
        with self._control:
            if self.is_previewing and not restart:
                return False

            self._release_current()

            handle = self.lease.acquire(LeaseState.PREVIEW)
            try:
                process = self.commands.spawn_preview(self.preview_settings)
            except Exception:
                handle.release()
                raise
            handle.attach(process)

            self._extractor = FrameExtractor(
                process.stdout, self.hub, name=f"frame-extractor-{process.pid}"
            ).start()
            return True

    def stop_preview(self) -> bool:
        """Kill the preview process, if any. Returns True if one was recorded."""
        with self._control:
            if self.lease.state is not LeaseState.PREVIEW:
                return False
            self._release_current()
            return True

    def _release_current(self) -> None:
        handle = self.lease.handle
        if handle is None:
            return
        process = self.lease.process
        try:
            if process is not None:
                terminate(process)
        finally:
            handle.release()

        extractor, self._extractor = self._extractor, None
        if extractor is not None:
            extractor.join(self.EXTRACTOR_JOIN_TIMEOUT)
