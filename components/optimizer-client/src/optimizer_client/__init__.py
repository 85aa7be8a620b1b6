"""optimizer-client package."""

from __future__ import annotations

from optimizer_client.client import (
    CallFailure,
    CallRemoteError,
    CallResult,
    CallSuccess,
    CallTimeoutError,
    CallTransportError,
    CallUnexpectedError,
    OptimizerClient,
    RemoteCallClient,
)

__all__ = [
    "CallFailure",
    "CallRemoteError",
    "CallResult",
    "CallSuccess",
    "CallTimeoutError",
    "CallTransportError",
    "CallUnexpectedError",
    "OptimizerClient",
    "RemoteCallClient",
]
