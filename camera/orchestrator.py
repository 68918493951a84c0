"""
Still capture.

Swaps the preview out for a one-shot full resolution capture and then brings
the preview back:

    IDLE -> STOPPING_PREVIEW -> CAPTURING_STILL -> RESTARTING_PREVIEW -> IDLE
                                       \\-> CAPTURE_FAILED -/
"""
import logging
import threading
import time
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Optional

from camera.config import StillSettings
from camera.errors import CameraError, CaptureCommandFailure
from camera.lease import LeaseState
from camera.supervisor import CameraSupervisor

logger = logging.getLogger(__name__)

JPEG_MAGIC = b"\xff\xd8"


class CaptureState(Enum):
    IDLE = auto()
    STOPPING_PREVIEW = auto()
    CAPTURING_STILL = auto()
    CAPTURE_FAILED = auto()
    RESTARTING_PREVIEW = auto()


def photo_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return now.strftime("photo_%Y%m%d_%H%M%S_%f.jpg")


def _is_jpeg_file(path: Path) -> bool:
    try:
        with path.open("rb") as f:
            return f.read(2) == JPEG_MAGIC
    except OSError:
        return False


class CaptureOrchestrator:
    def __init__(
            self,
            supervisor: CameraSupervisor,
            photo_dir: Path,
            still_settings: StillSettings | None = None,
            grace_delay: float = 0.2,
    ):
        self.supervisor = supervisor
        self.photo_dir = photo_dir
        self.still_settings = still_settings or StillSettings()
        self.grace_delay = grace_delay
        self._state_lock = threading.Lock()
        self._state = CaptureState.IDLE

    @property
    def state(self) -> CaptureState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: CaptureState) -> None:
        with self._state_lock:
            self._state = state

    def capture(self, output_dir: Optional[Path] = None) -> Path:
        """
        Capture one still and return its absolute path.

        Raises CaptureCommandFailure when the capture command fails, and
        LaunchFailure / OSError when the command or directory is unusable.
        The preview is restarted afterwards in every case; a failed restart is
        only logged.
        """
        target_dir = Path(output_dir) if output_dir is not None else self.photo_dir

        with self.supervisor.transition():
            try:
                self._set_state(CaptureState.STOPPING_PREVIEW)
                if self.supervisor.stop_preview() and self.grace_delay > 0:
                    time.sleep(self.grace_delay)

                self._set_state(CaptureState.CAPTURING_STILL)
                try:
                    return self._capture_still(target_dir)
                except Exception:
                    self._set_state(CaptureState.CAPTURE_FAILED)
                    raise
            finally:
                self._resume_preview()

    def _capture_still(self, target_dir: Path) -> Path:
        target_dir.mkdir(parents=True, exist_ok=True)
        output_path = (target_dir / photo_filename()).resolve()

        with self.supervisor.lease.acquire(LeaseState.CAPTURING):
            result = self.supervisor.commands.capture_still(output_path, self.still_settings)

        if result.returncode != 0:
            detail = (result.stderr or "").strip()
            logger.warning("Still capture failed (rc=%s): %s", result.returncode, detail)
            raise CaptureCommandFailure(
                f"Capture command returned non-zero status {result.returncode}: {detail}",
                returncode=result.returncode,
                detail=detail,
            )

        if not output_path.exists():
            raise CaptureCommandFailure("Capture reported success but no file was created")
        if not _is_jpeg_file(output_path):
            logger.warning("Captured file %s does not start with a JPEG marker", output_path)

        logger.info("Saved photo %s", output_path)
        return output_path

    def _resume_preview(self) -> None:
        self._set_state(CaptureState.RESTARTING_PREVIEW)
        try:
            self.supervisor.start_preview(restart=True)
        except (CameraError, OSError):
            logger.exception("Failed to resume preview after capture")
        finally:
            self._set_state(CaptureState.IDLE)
