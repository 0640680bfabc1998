"""Dashboard API for the Labyrinth host."""

from .server import create_app, event_payload

__all__ = ["create_app", "event_payload"]
