"""API route modules.

Route organization:
- status: Backend and proxy status
- logs: Buffered backend output and live log stream
- server: Backend start/stop
- auth: Login jobs run through the backend
"""

from . import auth, logs, server, status

__all__ = [
    "auth",
    "logs",
    "server",
    "status",
]
