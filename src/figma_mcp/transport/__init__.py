"""Transport layer.

Concrete bindings of the session channel abstraction:
- stdio - One session over stdin/stdout, for subprocess/IPC integration
- SSE - Many sessions over HTTP event streams plus POSTed messages

Both hand their channels to the same ProtocolEngine, so dispatch logic is
shared and only I/O differs.
"""

from .base import SessionChannel, TransportMode
from .sse import StreamChannel, format_sse
from .stdio import PipeChannel, run_stdio_server

__all__ = [
    # Base abstractions
    "SessionChannel",
    "TransportMode",
    # SSE implementation
    "StreamChannel",
    "format_sse",
    # stdio implementation
    "PipeChannel",
    "run_stdio_server",
]
