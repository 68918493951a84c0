"""
Flask application serving the live MJPEG stream and stored photos.
"""
from flask import Flask, Response, abort, send_from_directory

from camera.config import StreamerConfig
from camera.service import CameraService

# Parent-directory references and both separators.
FORBIDDEN_NAME_PARTS = ("..", "/", "\\")


def is_safe_photo_name(name: str) -> bool:
    return bool(name) and not any(part in name for part in FORBIDDEN_NAME_PARTS)


def multipart_frame(frame: bytes, boundary: str) -> bytes:
    return (
            f"--{boundary}\r\n"
            "Content-Type: image/jpeg\r\n"
            f"Content-Length: {len(frame)}\r\n"
            "\r\n"
    ).encode("ascii") + frame + b"\r\n"


def create_app(service: CameraService | None = None, config: StreamerConfig | None = None):
    if service is None:
        service = CameraService(config or StreamerConfig.from_env())
        service.start()
    config = service.config

    app = Flask(__name__)
    app.config["PHOTO_DIR"] = config.photo_dir
    app.camera_service = service

    @app.route("/stream", methods=["GET"])
    def stream():
        boundary = config.boundary
        hub = app.camera_service.hub

        def generate():
            # Flush headers before the first frame arrives.
            yield b""
            for frame in hub.frames(poll_interval=config.stream_retry_interval):
                yield multipart_frame(frame, boundary)

        return Response(
            generate(),
            mimetype=f"multipart/x-mixed-replace; boundary={boundary}",
            headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
        )

    @app.route("/photos/<path:name>", methods=["GET"])
    def photos(name: str):
        if not is_safe_photo_name(name):
            abort(403)
        return send_from_directory(str(app.config["PHOTO_DIR"]), name, mimetype="image/jpeg")

    return app
