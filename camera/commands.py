"""
External camera-control commands.

The core only talks to `CameraCommands`; `RpicamCommands` drives the Raspberry Pi
rpicam-* tools (falling back to the older libcamera-* names).
"""
import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

from camera.config import PreviewSettings, StillSettings
from camera.errors import LaunchFailure

logger = logging.getLogger(__name__)


class CameraCommands(ABC):
    """
    Abstract camera command interface.

    All command implementations (real or fake) must implement this contract.
    """

    @abstractmethod
    def available(self) -> bool:
        """Return True if the preview and still tools are installed."""
        pass

    @abstractmethod
    def spawn_preview(self, settings: PreviewSettings) -> subprocess.Popen:
        """
        Start a process that writes a continuous MJPEG stream to its stdout.

        Raises LaunchFailure if the process cannot be started.
        """
        pass

    @abstractmethod
    def capture_still(self, output_path: Path, settings: StillSettings) -> subprocess.CompletedProcess:
        """
        Write exactly one JPEG to `output_path` and return the finished process.

        Raises LaunchFailure if the command cannot be started. A non-zero
        return code is left for the caller to interpret.
        """
        pass


class RpicamCommands(CameraCommands):
    PREVIEW_TOOLS = ("rpicam-vid", "libcamera-vid")
    STILL_TOOLS = ("rpicam-still", "libcamera-still")

    def __init__(
            self,
            preview_tools: Sequence[str] = PREVIEW_TOOLS,
            still_tools: Sequence[str] = STILL_TOOLS,
            extra_args: Optional[Sequence[str]] = None,
            timeout: Optional[float] = 30,
    ) -> None:
        self._preview_tools = tuple(preview_tools)
        self._still_tools = tuple(still_tools)
        self._extra_args = list(extra_args or [])
        self.timeout = timeout

    @staticmethod
    def _which(candidates: Sequence[str]) -> Optional[str]:
        for name in candidates:
            if shutil.which(name) is not None:
                return name
        return None

    def _resolve(self, candidates: Sequence[str]) -> str:
        tool = self._which(candidates)
        if tool is None:
            raise LaunchFailure(f"None of {', '.join(candidates)} found in PATH")
        return tool

    def available(self) -> bool:
        return (
                self._which(self._preview_tools) is not None
                and self._which(self._still_tools) is not None
        )

    def preview_command(self, settings: PreviewSettings) -> List[str]:
        return [
            self._resolve(self._preview_tools),
            "--timeout", "0",
            "--nopreview",
            "--codec", "mjpeg",
            "--width", str(settings.width),
            "--height", str(settings.height),
            "--framerate", str(settings.framerate),
            "--quality", str(settings.quality),
            *self._extra_args,
            "--output", "-",
        ]

    def still_command(self, output_path: Path, settings: StillSettings) -> List[str]:
        cmd = [
            self._resolve(self._still_tools),
            "--nopreview",
            "--immediate",
            "--quality", str(settings.quality),
        ]
        if settings.width and settings.height:
            cmd += ["--width", str(settings.width), "--height", str(settings.height)]
        cmd += [*self._extra_args, "--output", str(output_path)]
        return cmd

    def spawn_preview(self, settings: PreviewSettings) -> subprocess.Popen:
        cmd = self.preview_command(settings)
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise LaunchFailure(f"Failed to start preview: {e}") from e
        logger.info("Started preview pid=%s: %s", process.pid, " ".join(cmd))
        return process

    def capture_still(self, output_path: Path, settings: StillSettings) -> subprocess.CompletedProcess:
        cmd = self.still_command(output_path, settings)
        logger.info("Capturing still: %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            return subprocess.CompletedProcess(
                cmd, returncode=-1, stdout="", stderr=f"timed out after {e.timeout}s"
            )
        except OSError as e:
            raise LaunchFailure(f"Failed to execute {cmd[0]}: {e}") from e
