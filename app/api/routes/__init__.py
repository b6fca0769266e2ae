"""Route modules exposed by the API package."""

from . import dispatches, gates, health, tickets

__all__ = ["dispatches", "gates", "health", "tickets"]
