"""
Command line entry point: threaded HTTP server, one thread per connection.

SIGUSR1 captures a still; SIGINT/SIGTERM shut the server down.
"""
import argparse
import logging
import signal
import threading
from pathlib import Path
from typing import Optional, Sequence

from werkzeug.serving import make_server

from camera.config import StreamerConfig
from camera.errors import CameraError
from camera.service import CameraService
from web.app import create_app

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Live camera preview and still capture server")
    parser.add_argument("--host", help="Address to bind (default: CAMSTREAM_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port to bind (default: CAMSTREAM_PORT or 8080)")
    parser.add_argument("--photo-dir", type=Path, help="Directory photos are saved to and served from")
    parser.add_argument("--log-level", help="Logging level (default: CAMSTREAM_LOG_LEVEL or INFO)")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> StreamerConfig:
    return StreamerConfig.from_env(
        host=args.host,
        port=args.port,
        photo_dir=args.photo_dir.expanduser() if args.photo_dir else None,
        log_level=args.log_level.upper() if args.log_level else None,
    )


def capture_in_background(service: CameraService) -> threading.Thread:
    def worker():
        try:
            path = service.capture()
        except (CameraError, OSError) as e:
            logger.error("Capture failed: %s", e)
        else:
            logger.info("Captured %s", path)

    thread = threading.Thread(target=worker, name="capture", daemon=True)
    thread.start()
    return thread


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    config = load_config(args)
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)

    service = CameraService(config)
    service.start()
    logger.info("Camera status: %s", service.status())

    app = create_app(service=service)
    server = make_server(config.host, config.port, app, threaded=True)

    def request_shutdown(signum, _frame):
        logger.info("Received signal %s, shutting down", signum)
        # serve_forever() runs on this thread; shutdown() must come from another.
        threading.Thread(target=server.shutdown, daemon=True).start()

    signal.signal(signal.SIGINT, request_shutdown)
    signal.signal(signal.SIGTERM, request_shutdown)
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, lambda _s, _f: capture_in_background(service))

    logger.info("Serving on http://%s:%s (photos in %s)", config.host, config.port, config.photo_dir)
    try:
        server.serve_forever()
    finally:
        service.stop()
        server.server_close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
