"""
Camera service

Single authoritative owner of the camera hardware and the live frame slot.

Goals:
- One device lease and one frame hub for the whole process
- Preview failing at boot never stops the service from starting
- Capture always hands the sensor back to the preview afterwards
"""
import logging
from pathlib import Path
from typing import Optional

from camera.broadcast import FrameHub
from camera.commands import CameraCommands, RpicamCommands
from camera.config import StreamerConfig
from camera.errors import LaunchFailure
from camera.lease import DeviceLease
from camera.orchestrator import CaptureOrchestrator
from camera.supervisor import CameraSupervisor

logger = logging.getLogger(__name__)


class CameraService:
    def __init__(self, config: StreamerConfig | None = None, commands: CameraCommands | None = None):
        self.config = config or StreamerConfig()
        self.commands = commands or RpicamCommands()

        self.lease = DeviceLease()
        self.hub = FrameHub()
        self.supervisor = CameraSupervisor(
            lease=self.lease,
            hub=self.hub,
            commands=self.commands,
            preview_settings=self.config.preview,
        )
        self.orchestrator = CaptureOrchestrator(
            supervisor=self.supervisor,
            photo_dir=self.config.photo_dir,
            still_settings=self.config.still,
            grace_delay=self.config.grace_delay,
        )

    # ---------- Lifecycle ----------

    def start(self) -> None:
        # Best-effort; /stream idles until a preview publishes frames.
        try:
            self.supervisor.start_preview()
        except LaunchFailure as e:
            logger.error("Preview not started: %s", e)

    def stop(self) -> None:
        self.supervisor.stop_preview()
        self.hub.close()

    # ---------- Public API ----------

    def start_preview(self, restart: bool = False) -> bool:
        return self.supervisor.start_preview(restart=restart)

    def stop_preview(self) -> bool:
        return self.supervisor.stop_preview()

    def capture(self, output_dir: Optional[Path] = None) -> Path:
        return self.orchestrator.capture(output_dir)

    def status(self) -> dict:
        process = self.supervisor.preview_process
        version, _ = self.hub.latest()
        return {
            "lease": self.lease.state.name,
            "capture": self.orchestrator.state.name,
            "previewing": self.supervisor.is_previewing,
            "preview_pid": process.pid if process is not None else None,
            "frame_version": version,
            "tools_available": self.commands.available(),
        }
