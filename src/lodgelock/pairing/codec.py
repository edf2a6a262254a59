"""Pairing code encoding.

A pairing code carries the shared secret from the initiator to the
responder out of band (usually as a QR code):

    lodgelock://pair/<base64(JSON{"version": 1, "sharedSecret": "<hex>"})>

Only the exact current version is accepted.
"""

import base64
import json

from lodgelock.crypto import is_valid_shared_secret, validate_shared_secret
from lodgelock.errors import FormatError, ValidationError, VersionError

PAIRING_SCHEME = "lodgelock"
PAIRING_ACTION = "pair"
PAIRING_VERSION = 1
PAIRING_PREFIX = f"{PAIRING_SCHEME}://{PAIRING_ACTION}/"


def encode_pairing_code(shared_secret: str) -> str:
    """Encode a shared secret as a pairing code.

    Args:
        shared_secret: Valid shared secret.

    Returns:
        Pairing code string.

    Raises:
        ValidationError: If the secret is invalid.
    """
    validate_shared_secret(shared_secret)
    data = json.dumps(
        {"version": PAIRING_VERSION, "sharedSecret": shared_secret},
        separators=(",", ":"),
    )
    encoded = base64.b64encode(data.encode("utf-8")).decode("ascii")
    return f"{PAIRING_PREFIX}{encoded}"


def decode_pairing_code(code: str) -> str:
    """Recover the shared secret from a pairing code.

    Args:
        code: Scanned pairing code.

    Returns:
        The shared secret.

    Raises:
        FormatError: Wrong prefix or malformed base64/JSON.
        VersionError: Version differs from PAIRING_VERSION.
        ValidationError: Embedded secret is invalid.
    """
    if not isinstance(code, str) or not code.startswith(PAIRING_PREFIX):
        raise FormatError(f"Pairing code must start with {PAIRING_PREFIX}")

    encoded = code[len(PAIRING_PREFIX):]
    try:
        raw = base64.b64decode(encoded, validate=True)
        data = json.loads(raw.decode("utf-8"))
    except ValueError as e:
        # binascii.Error, UnicodeDecodeError and JSONDecodeError are all ValueErrors
        raise FormatError(f"Malformed pairing code payload: {e}") from e

    if not isinstance(data, dict):
        raise FormatError("Pairing code payload must be a JSON object")

    version = data.get("version")
    # bool is an int subclass; True must not pass for version 1
    if type(version) is not int or version != PAIRING_VERSION:
        raise VersionError(
            f"Unsupported pairing code version {version!r}, expected {PAIRING_VERSION}"
        )

    shared_secret = data.get("sharedSecret")
    if not is_valid_shared_secret(shared_secret):
        raise ValidationError("Invalid shared secret in pairing code")

    return shared_secret
