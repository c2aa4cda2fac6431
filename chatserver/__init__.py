"""Realtime chat service: WebSocket gateway over MongoDB-backed conversations."""

__version__ = "1.0.0"
