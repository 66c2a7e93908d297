"""Public interface for the task service REST adapter."""

from __future__ import annotations

from .client import HttpMutationTransport
from .schema import CreateTaskRequest, ErrorResponse

__all__ = [
    "CreateTaskRequest",
    "ErrorResponse",
    "HttpMutationTransport",
]
