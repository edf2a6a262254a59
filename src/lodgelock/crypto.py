"""Shared secret generation and room derivation.

This module provides:
- Secure shared secret generation
- Strict shared secret validation
- Room id derivation using HKDF

Security notes:
- Secrets are 32 random bytes carried as 64 lowercase hex chars
- The room id is one-way: knowing it does not reveal the secret
- Invalid secrets are rejected, never normalized
"""

import re
import secrets

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from lodgelock.errors import ValidationError

__all__ = [
    "SECRET_LENGTH",
    "ValidationError",
    "derive_room_id",
    "generate_request_id",
    "generate_shared_secret",
    "is_valid_shared_secret",
    "validate_shared_secret",
]

# Constants
SECRET_LENGTH = 32  # bytes
ROOM_ID_LENGTH = 16  # bytes, 32 hex chars
ROOM_INFO = b"lodgelock-room"

SHARED_SECRET_PATTERN = re.compile(r"^[0-9a-f]{%d}$" % (SECRET_LENGTH * 2))


def generate_shared_secret() -> str:
    """Generate a new shared secret.

    Returns:
        64-char lowercase hex string encoding 32 random bytes.
    """
    return secrets.token_hex(SECRET_LENGTH)


def generate_request_id() -> str:
    """Generate a request id, unique within a room with overwhelming probability."""
    return secrets.token_hex(16)


def is_valid_shared_secret(value: object) -> bool:
    """Check a shared secret's type, length and charset."""
    return isinstance(value, str) and SHARED_SECRET_PATTERN.match(value) is not None


def validate_shared_secret(value: object) -> str:
    """Validate a shared secret.

    Args:
        value: Candidate secret.

    Returns:
        The secret, unchanged.

    Raises:
        ValidationError: If the value is not 64 lowercase hex chars.
    """
    if not is_valid_shared_secret(value):
        raise ValidationError(
            f"Shared secret must be {SECRET_LENGTH * 2} lowercase hex characters"
        )
    return value  # type: ignore[return-value]


def derive_room_id(shared_secret: str) -> str:
    """Derive the room address from a shared secret using HKDF.

    Both endpoints compute the same id independently.

    Args:
        shared_secret: Valid shared secret.

    Returns:
        32-char hex room id.

    Raises:
        ValidationError: If the secret is invalid.
    """
    validate_shared_secret(shared_secret)
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=ROOM_ID_LENGTH,
        salt=None,  # Secret has full entropy
        info=ROOM_INFO,
    )
    return hkdf.derive(bytes.fromhex(shared_secret)).hex()
