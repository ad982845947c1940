"""Core primitives shared by the realtime and MCP layers."""

from codeoba.core.broadcast import EventStream, Subscription
from codeoba.core.ids import IdGenerator, generate_id

__all__ = ["EventStream", "IdGenerator", "Subscription", "generate_id"]
