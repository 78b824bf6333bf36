"""Host/worker control channel.

Key Components:
    - ControlMessage: Discriminated union of StartMessage, StopMessage,
      StatusMessage and LogMessage
    - ControlEndpoint: Protocol for one side of the channel
    - StreamControlEndpoint: Endpoint over anyio byte streams
    - StdioEndpoint: Worker-side endpoint over its own stdio
"""

from ._channel import (
    ControlEndpoint,
    StdioEndpoint,
    StreamControlEndpoint,
    create_memory_endpoint_pair,
)
from ._messages import (
    MAX_PORT,
    MIN_PORT,
    ControlMessage,
    LogMessage,
    StartMessage,
    StatusMessage,
    StopMessage,
    WorkerStatus,
    decode_message,
    encode_message,
)

__all__ = [
    "MAX_PORT",
    "MIN_PORT",
    "ControlEndpoint",
    "ControlMessage",
    "LogMessage",
    "StartMessage",
    "StatusMessage",
    "StdioEndpoint",
    "StopMessage",
    "StreamControlEndpoint",
    "WorkerStatus",
    "create_memory_endpoint_pair",
    "decode_message",
    "encode_message",
]
