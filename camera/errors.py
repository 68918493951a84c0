class CameraError(Exception):
    pass


class LaunchFailure(CameraError):
    """Raised when a camera subprocess could not be spawned."""


class CaptureCommandFailure(CameraError):
    """
    Raised when the still-capture command did not produce a photo.

    `detail` carries the command's diagnostic output (stderr) when there is any.
    """

    def __init__(self, message: str, *, returncode: int | None = None, detail: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.detail = detail


class LeaseError(RuntimeError):
    """Device lease misuse. Never expected in normal operation."""
