"""Pairing attempt state.

A PairingInfo exists for one handshake attempt and is discarded once the
handshake resolves or expires.
"""

import time
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class PairingInfo:
    """An in-flight pairing handshake on the initiator.

    Attributes:
        shared_secret: Secret addressing the new room.
        code: Pairing code to transfer out of band.
        pair_request_id: Id of the pending pair envelope.
        created_at: Unix timestamp when the attempt started.
    """

    shared_secret: str
    code: str
    pair_request_id: str
    created_at: float = field(default_factory=time.time)

    # Timeouts (in seconds)
    DEFAULT_TIMEOUT: ClassVar[float] = 300.0  # 5 minutes

    def is_expired(self, timeout: float | None = None) -> bool:
        """Check whether the attempt has outlived its timeout."""
        limit = self.DEFAULT_TIMEOUT if timeout is None else timeout
        return time.time() - self.created_at > limit

    def remaining(self, timeout: float | None = None) -> float:
        """Seconds left before the attempt expires (never negative)."""
        limit = self.DEFAULT_TIMEOUT if timeout is None else timeout
        return max(0.0, limit - (time.time() - self.created_at))
