"""
Realtime Package

WebSocket gateway for live chat: every inbound frame is echoed to all live
connections and routed to the conversation or message store by its action.

Modules:
- gateway: The /ws endpoint (per-socket read loop) and /realtime/status
- hub: Connection and Hub, the single owner of the live-connection set
- dispatcher: ActionDispatcher mapping action tags to store operations
- frames: Typed inbound frame models and envelope decoding
"""

from .dispatcher import ActionDispatcher
from .gateway import realtime_router
from .hub import Connection, Hub

__all__ = [
    "ActionDispatcher",
    "Connection",
    "Hub",
    "realtime_router",
]
