"""Public interface for the push-channel adapter."""

from __future__ import annotations

from .schema import PushFrame, decode_frame
from .stream import HttpStreamPushTransport, iter_frames

__all__ = [
    "HttpStreamPushTransport",
    "PushFrame",
    "decode_frame",
    "iter_frames",
]
