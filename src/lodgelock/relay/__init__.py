"""Relay module for Lodgelock.

Provides the room mailbox protocol including:
- Typed request envelopes
- Relay store contract (in-memory and Firebase REST)
- Room-scoped client with bounded polling
"""

from .client import RelayClient
from .firebase import FirebaseRelayStore
from .protocol import (
    DeviceRegistration,
    ImportAccountPayload,
    PairPayload,
    Request,
    RequestPayload,
    RequestStatus,
    RequestType,
    SignMessagePayload,
    SignPersonalPayload,
    SignTransactionPayload,
    SignTypedDataPayload,
)
from .store import MemoryRelayStore, RelayStore

__all__ = [
    "DeviceRegistration",
    "FirebaseRelayStore",
    "ImportAccountPayload",
    "MemoryRelayStore",
    "PairPayload",
    "RelayClient",
    "RelayStore",
    "Request",
    "RequestPayload",
    "RequestStatus",
    "RequestType",
    "SignMessagePayload",
    "SignPersonalPayload",
    "SignTransactionPayload",
    "SignTypedDataPayload",
]
