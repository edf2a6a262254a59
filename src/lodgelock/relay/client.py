"""Room-scoped client for the relay store.

Both endpoints construct a RelayClient from the same shared secret and
therefore address the same room without any negotiation.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from lodgelock.crypto import derive_room_id, generate_request_id, validate_shared_secret
from lodgelock.errors import NotFoundError, PollTimeoutError, ProtocolError, RelayError
from lodgelock.relay.protocol import (
    DeviceRegistration,
    Request,
    RequestPayload,
    RequestType,
)
from lodgelock.relay.store import RelayStore

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class RelayClient:
    """CRUD and bounded polling against one room.

    Attributes:
        room_id: Room address derived from the shared secret.
    """

    def __init__(
        self,
        shared_secret: str,
        store: RelayStore,
        clock: Callable[[], int] = _now_ms,
    ):
        """Initialize client.

        Args:
            shared_secret: Valid shared secret.
            store: Relay store collaborator.
            clock: Epoch-milliseconds clock for lastUpdated (for testing).

        Raises:
            ValidationError: If the secret is invalid.
        """
        self._secret = validate_shared_secret(shared_secret)
        self._store = store
        self._clock = clock
        self.room_id = derive_room_id(shared_secret)

    def __repr__(self) -> str:
        return f"RelayClient(room={self.room_id[:8]}...)"

    @property
    def shared_secret(self) -> str:
        return self._secret

    @property
    def _room_path(self) -> str:
        return f"rooms/{self.room_id}"

    @property
    def _device_path(self) -> str:
        return f"{self._room_path}/device"

    @property
    def _requests_path(self) -> str:
        return f"{self._room_path}/requests"

    def _request_path(self, request_id: str) -> str:
        return f"{self._requests_path}/{request_id}"

    # Device registration

    async def register_device(self, push_token: str, device_name: str) -> None:
        """Register (or re-register) the approver device in this room."""
        registration = DeviceRegistration(push_token=push_token, device_name=device_name)
        await self._store.set(self._device_path, registration.to_dict())
        logger.info(f"Device registered in room {self.room_id[:8]}...")

    async def get_device(self) -> Optional[DeviceRegistration]:
        """Get the device registration, None if the room has none yet."""
        data = await self._store.get(self._device_path)
        if data is None:
            return None
        return DeviceRegistration.from_dict(data)

    # Requests

    async def submit_request(
        self, request_type: RequestType, payload: RequestPayload
    ) -> str:
        """Create a pending request envelope.

        Args:
            request_type: Operation type.
            payload: Pending payload of the matching type.

        Returns:
            The new request id.

        Raises:
            ProtocolError: If the payload is not pending or has another type.
        """
        if not payload.is_pending:
            raise ProtocolError("New requests must be pending")

        request = Request(
            id=generate_request_id(),
            type=request_type,
            payload=payload,
            last_updated=self._clock(),
        )
        await self._store.set(self._request_path(request.id), request.to_dict())
        logger.debug(f"Submitted {request_type.value} request {request.id[:8]}...")
        return request.id

    async def update_request(
        self, request_id: str, request_type: RequestType, **fields: Any
    ) -> Request:
        """Merge status and resolution fields into an existing request.

        Retrying an update that was already applied is a no-op.

        Args:
            request_id: Request id.
            request_type: Expected request type.
            **fields: Payload fields to merge (python names).

        Returns:
            The stored request after the update.

        Raises:
            NotFoundError: If the request is absent or of another type.
            ProtocolError: If the update touches immutable fields.
            RequestAlreadyResolvedError: If the request was resolved differently.
        """
        current = await self.get_request(request_id, request_type)
        merged = current.payload.resolve(**fields)
        if merged is current.payload:
            return current

        updated = Request(
            id=current.id,
            type=current.type,
            payload=merged,
            last_updated=self._clock(),
        )
        await self._store.set(self._request_path(request_id), updated.to_dict())
        logger.debug(
            f"Updated {request_type.value} request {request_id[:8]}... "
            f"to {merged.status.value}"
        )
        return updated

    async def get_request(self, request_id: str, request_type: RequestType) -> Request:
        """Read one request.

        Raises:
            NotFoundError: If absent or of another type.
            ProtocolError: If the stored envelope is malformed.
        """
        data = await self._store.get(self._request_path(request_id))
        if data is None:
            raise NotFoundError(f"Request {request_id} not found")

        request = Request.from_dict(data)
        if request.type is not request_type:
            raise NotFoundError(
                f"Request {request_id} is {request.type.value}, not {request_type.value}"
            )
        return request

    async def list_requests(self) -> list[Request]:
        """All envelopes currently in the room, malformed ones skipped."""
        documents = await self._store.list(self._requests_path)
        requests = []
        for key, data in documents.items():
            try:
                requests.append(Request.from_dict(data))
            except ProtocolError as e:
                logger.warning(f"Skipping malformed request {key[:8]}...: {e}")
        return requests

    async def delete_request(self, request_id: str) -> None:
        """Delete a request. No error if already absent."""
        await self._store.delete(self._request_path(request_id))
        logger.debug(f"Deleted request {request_id[:8]}...")

    async def poll_until(
        self,
        request_id: str,
        request_type: RequestType,
        interval_ms: int,
        timeout_seconds: float,
        predicate: Callable[[RequestPayload], bool],
    ) -> RequestPayload:
        """Re-read a request until predicate(payload) holds.

        Read failures (store errors, not found, malformed) count as "not
        yet satisfied". The final read happens at the deadline.

        Args:
            request_id: Request id.
            request_type: Expected request type.
            interval_ms: Delay between reads in milliseconds.
            timeout_seconds: Overall deadline.
            predicate: Condition on the payload.

        Returns:
            First payload satisfying the predicate.

        Raises:
            PollTimeoutError: If the deadline elapses first.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds
        interval = interval_ms / 1000
        last_error: Optional[Exception] = None

        while True:
            try:
                request = await self.get_request(request_id, request_type)
                if predicate(request.payload):
                    return request.payload
                last_error = None
            except RelayError as e:
                last_error = e
                logger.debug(f"Poll read for {request_id[:8]}... failed: {e}")

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(interval, remaining))

        message = (
            f"Timed out after {timeout_seconds}s waiting on "
            f"{request_type.value} request {request_id[:8]}..."
        )
        if last_error is not None:
            message += f" (last error: {last_error})"
        raise PollTimeoutError(message)

    # Room maintenance

    async def clear_room(self) -> None:
        """Delete the device registration and every request in the room."""
        await self._store.delete(self._device_path)
        await self._store.delete(self._requests_path)
        logger.info(f"Cleared room {self.room_id[:8]}...")

    async def purge_expired(self, max_age_seconds: float) -> list[str]:
        """Delete envelopes not updated within max_age_seconds.

        Returns:
            Ids of deleted requests.
        """
        cutoff = self._clock() - int(max_age_seconds * 1000)
        expired = [r.id for r in await self.list_requests() if r.last_updated < cutoff]
        for request_id in expired:
            await self.delete_request(request_id)
        if expired:
            logger.info(
                f"Purged {len(expired)} expired requests from room {self.room_id[:8]}..."
            )
        return expired
