"""Pairing module for Lodgelock.

Provides QR code pairing functionality including:
- Pairing code encoding/decoding
- QR code rendering
- Initiator handshake and responder confirmation
"""

from .codec import (
    PAIRING_ACTION,
    PAIRING_SCHEME,
    PAIRING_VERSION,
    decode_pairing_code,
    encode_pairing_code,
)
from .pairing_manager import PairingManager
from .qr_generator import QrGenerator
from .responder import PairingResponder
from .session import PairingInfo

__all__ = [
    "PAIRING_ACTION",
    "PAIRING_SCHEME",
    "PAIRING_VERSION",
    "PairingInfo",
    "PairingManager",
    "PairingResponder",
    "QrGenerator",
    "decode_pairing_code",
    "encode_pairing_code",
]
