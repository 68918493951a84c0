"""
WSGI entrypoint for production (gunicorn/systemd).

This module should have no side effects beyond creating the Flask app (which starts the preview).
Run a single worker process: the camera can only be opened by one process at a time.
"""
from web.app import create_app

app = create_app()
