"""Route modules exposed by the reference server."""

from . import auth, ping, reports, tickets

__all__ = ["auth", "ping", "reports", "tickets"]
