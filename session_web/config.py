"""
Session Web configuration. Local-only service; binds to loopback by default.
"""
import os

HOST = os.environ.get("SESSION_WEB_HOST", "127.0.0.1")

PORT = int(os.environ.get("SESSION_WEB_PORT", "8000"))

LOG_LEVEL = os.environ.get("SESSION_WEB_LOG_LEVEL", "INFO").upper()
