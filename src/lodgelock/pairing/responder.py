"""Approver-side confirmation of a pairing request."""

import logging
from typing import Optional

from lodgelock.errors import NotFoundError
from lodgelock.relay.client import RelayClient
from lodgelock.relay.protocol import Request, RequestStatus, RequestType

logger = logging.getLogger(__name__)


class PairingResponder:
    """Resolves the pending pair envelope of a room on the approver."""

    async def find_pair_request(self, client: RelayClient) -> Request:
        """Oldest pending pair request in the room.

        Raises:
            NotFoundError: If there is none.
        """
        pending = [
            r
            for r in await client.list_requests()
            if r.type is RequestType.PAIR and r.status is RequestStatus.PENDING
        ]
        if not pending:
            raise NotFoundError(f"No pending pair request in room {client.room_id[:8]}...")
        return min(pending, key=lambda r: r.last_updated)

    async def confirm(
        self,
        client: RelayClient,
        push_token: str,
        device_name: str,
        request_id: Optional[str] = None,
    ) -> None:
        """Approve pairing and register this device in the room.

        Args:
            client: Client for the scanned room.
            push_token: Push token of this device.
            device_name: Human-readable device name.
            request_id: Pair request id; looked up when omitted.
        """
        if request_id is None:
            request_id = (await self.find_pair_request(client)).id

        await client.register_device(push_token, device_name)
        await client.update_request(
            request_id,
            RequestType.PAIR,
            status=RequestStatus.APPROVED,
            push_token=push_token,
            device_name=device_name,
        )
        logger.info(f"Pairing confirmed in room {client.room_id[:8]}...")

    async def reject(self, client: RelayClient, request_id: Optional[str] = None) -> None:
        """Reject the pending pairing in the room."""
        if request_id is None:
            request_id = (await self.find_pair_request(client)).id

        await client.update_request(
            request_id, RequestType.PAIR, status=RequestStatus.REJECTED
        )
        logger.info(f"Pairing rejected in room {client.room_id[:8]}...")
