"""
Runtime configuration.

Values come from keyword arguments or from CAMSTREAM_* environment variables
via `StreamerConfig.from_env()`.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

ENV_PREFIX = "CAMSTREAM_"
PROJECT_NAME = "camstream"


def default_photo_dir() -> Path:
    return Path.home() / "Pictures" / PROJECT_NAME


def parse_resolution(value: str) -> Tuple[int, int]:
    parts = value.lower().split("x")
    if len(parts) != 2:
        raise ValueError(f"Invalid resolution format: {value}")
    width, height = int(parts[0]), int(parts[1])
    if width <= 0 or height <= 0:
        raise ValueError(f"Resolution must be positive: {value}")
    return width, height


def _check_quality(quality: int) -> int:
    if not 1 <= quality <= 100:
        raise ValueError(f"JPEG quality must be between 1 and 100 (got {quality})")
    return quality


@dataclass(frozen=True)
class PreviewSettings:
    # Kept small for interactive latency.
    width: int = 640
    height: int = 480
    framerate: int = 15
    quality: int = 70

    def __post_init__(self):
        _check_quality(self.quality)
        if self.framerate <= 0:
            raise ValueError(f"framerate must be > 0 (got {self.framerate})")


@dataclass(frozen=True)
class StillSettings:
    # None means full sensor resolution.
    width: Optional[int] = None
    height: Optional[int] = None
    quality: int = 93

    def __post_init__(self):
        _check_quality(self.quality)


@dataclass(frozen=True)
class StreamerConfig:
    photo_dir: Path = field(default_factory=default_photo_dir)
    host: str = "0.0.0.0"
    port: int = 8080
    boundary: str = "frame"
    preview: PreviewSettings = field(default_factory=PreviewSettings)
    still: StillSettings = field(default_factory=StillSettings)
    # Pause after killing a preview so the driver can release the sensor.
    grace_delay: float = 0.2
    # How often an idle /stream connection re-checks for shutdown.
    stream_retry_interval: float = 1.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "StreamerConfig":
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            if value is None or not value.strip():
                return None
            return value.strip()

        def parse(name: str, convert):
            raw = get(name)
            if raw is None:
                return None
            try:
                return convert(raw)
            except ValueError as e:
                raise ValueError(f"{ENV_PREFIX}{name}: {e}") from e

        kwargs = {}
        photo_dir = get("PHOTO_DIR")
        if photo_dir is not None:
            kwargs["photo_dir"] = Path(photo_dir).expanduser()
        host = get("HOST")
        if host is not None:
            kwargs["host"] = host
        port = parse("PORT", int)
        if port is not None:
            kwargs["port"] = port
        grace = parse("GRACE_DELAY", float)
        if grace is not None:
            kwargs["grace_delay"] = grace
        level = get("LOG_LEVEL")
        if level is not None:
            kwargs["log_level"] = level.upper()

        preview = PreviewSettings()
        resolution = parse("PREVIEW_RESOLUTION", parse_resolution)
        fps = parse("PREVIEW_FPS", int)
        preview_quality = parse("PREVIEW_QUALITY", lambda v: _check_quality(int(v)))
        if resolution or fps or preview_quality:
            width, height = resolution or (preview.width, preview.height)
            preview = PreviewSettings(
                width=width,
                height=height,
                framerate=fps or preview.framerate,
                quality=preview_quality or preview.quality,
            )
        kwargs["preview"] = preview

        still_quality = parse("STILL_QUALITY", lambda v: _check_quality(int(v)))
        if still_quality is not None:
            kwargs["still"] = StillSettings(quality=still_quality)

        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)
