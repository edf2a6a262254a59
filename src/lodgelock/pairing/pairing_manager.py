"""Pairing manager runs the initiator/responder handshake.

Initiator: generate a secret, park a pending ``pair`` envelope in the new
room, hand the pairing code over out of band, then wait for the approver
to resolve the envelope.

Responder: decode a scanned code into the same room and read its device
registration.
"""

import logging
from typing import Optional

from lodgelock.crypto import generate_shared_secret
from lodgelock.errors import (
    PairingFailedError,
    PairingRejectedError,
    PairingTimeoutError,
    PollTimeoutError,
    RelayError,
)
from lodgelock.pairing.codec import decode_pairing_code, encode_pairing_code
from lodgelock.pairing.session import PairingInfo
from lodgelock.relay.client import RelayClient
from lodgelock.relay.protocol import (
    DeviceRegistration,
    PairPayload,
    RequestStatus,
    RequestType,
)
from lodgelock.relay.store import RelayStore

logger = logging.getLogger(__name__)


class PairingManager:
    """Orchestrates the pairing handshake over the relay store."""

    def __init__(
        self,
        store: RelayStore,
        poll_interval_ms: int = 1000,
        timeout: float = PairingInfo.DEFAULT_TIMEOUT,
    ):
        """Initialize pairing manager.

        Args:
            store: Relay store shared with the approver.
            poll_interval_ms: Delay between status reads.
            timeout: Default seconds to wait for confirmation.
        """
        self.store = store
        self.poll_interval_ms = poll_interval_ms
        self.timeout = timeout

    def client_for(self, shared_secret: str) -> RelayClient:
        """Client for the room addressed by a secret."""
        return RelayClient(shared_secret, self.store)

    # Initiator

    async def start_pairing(
        self, previous_secret: Optional[str] = None
    ) -> PairingInfo:
        """Start a new pairing attempt.

        Args:
            previous_secret: Secret of a pairing being replaced. Its room
                is cleared (best effort) so stale requests don't linger.

        Returns:
            PairingInfo holding the code to present.
        """
        if previous_secret is not None:
            await self.revoke(previous_secret)

        shared_secret = generate_shared_secret()
        client = self.client_for(shared_secret)

        pair_request_id = await client.submit_request(RequestType.PAIR, PairPayload())
        code = encode_pairing_code(shared_secret)

        logger.info(f"Pairing started in room {client.room_id[:8]}...")
        return PairingInfo(
            shared_secret=shared_secret,
            code=code,
            pair_request_id=pair_request_id,
        )

    async def wait_for_pairing(
        self, info: PairingInfo, timeout: Optional[float] = None
    ) -> DeviceRegistration:
        """Wait for the approver to resolve the pair request.

        The pair envelope is deleted afterwards, including on timeout.

        Args:
            info: Attempt returned by start_pairing.
            timeout: Seconds to wait; defaults to the manager's timeout.

        Returns:
            Registration of the approver device.

        Raises:
            PairingRejectedError: Approver rejected the pairing.
            PairingFailedError: Approver reported an error.
            PairingTimeoutError: No resolution before the deadline.
        """
        client = self.client_for(info.shared_secret)
        timeout = self.timeout if timeout is None else timeout

        try:
            payload = await client.poll_until(
                info.pair_request_id,
                RequestType.PAIR,
                self.poll_interval_ms,
                timeout,
                lambda p: p.status is not RequestStatus.PENDING,
            )
        except PollTimeoutError as e:
            logger.info(f"Pairing expired in room {client.room_id[:8]}...")
            raise PairingTimeoutError(f"No pairing confirmation within {timeout}s") from e
        finally:
            await self._delete_quietly(client, info.pair_request_id)

        if payload.status is RequestStatus.REJECTED:
            raise PairingRejectedError("Pairing was rejected by the approver device")
        if payload.status is RequestStatus.ERROR:
            raise PairingFailedError("Approver device reported an error during pairing")

        logger.info(f"Device paired: {payload.device_name}")
        return DeviceRegistration(
            push_token=payload.push_token,
            device_name=payload.device_name,
        )

    async def revoke(self, shared_secret: str) -> None:
        """Clear the room of an abandoned pairing (best effort)."""
        client = self.client_for(shared_secret)
        try:
            await client.clear_room()
        except RelayError as e:
            logger.warning(f"Failed to clear room {client.room_id[:8]}...: {e}")

    async def _delete_quietly(self, client: RelayClient, request_id: str) -> None:
        try:
            await client.delete_request(request_id)
        except RelayError as e:
            logger.warning(f"Failed to delete pair request {request_id[:8]}...: {e}")

    # Responder

    def join(self, code: str) -> RelayClient:
        """Decode a scanned pairing code into a client for its room.

        Raises:
            FormatError, VersionError, ValidationError: On a bad code.
        """
        shared_secret = decode_pairing_code(code)
        client = self.client_for(shared_secret)
        logger.info(f"Joined room {client.room_id[:8]}...")
        return client

    async def get_confirmation(
        self, client: RelayClient
    ) -> Optional[DeviceRegistration]:
        """Device registration of the room; None means not yet confirmed."""
        return await client.get_device()
