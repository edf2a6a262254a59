"""Remote account backed by an approver device.

Every signing call is one round trip through the room: submit a pending
request, poll until the approver resolves it, delete the envelope, then map
the outcome to a return value or a distinct exception.
"""

import logging
from typing import Any, Callable, Mapping, Optional, Union

from lodgelock.errors import (
    MissingArtifactError,
    RemoteError,
    UserRejectedError,
)
from lodgelock.relay.client import RelayClient
from lodgelock.relay.protocol import (
    HEX_PATTERN,
    ImportAccountPayload,
    RequestPayload,
    RequestStatus,
    RequestType,
    SignMessagePayload,
    SignPersonalPayload,
    SignTransactionPayload,
    SignTypedDataPayload,
    canonical_json,
    to_hex,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 1000
DEFAULT_POLL_TIMEOUT = 60.0  # seconds

Message = Union[str, bytes]
Transaction = Union[str, bytes, Mapping[str, Any]]


class RemoteAccount:
    """Signs through the approver paired with a room.

    Calls are independent: each owns its request id and concurrent calls
    have no ordering guarantee.
    """

    def __init__(
        self,
        client: RelayClient,
        address: str,
        origin: Optional[str] = None,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
    ):
        """Initialize account.

        Args:
            client: Client for the paired room.
            address: Account address the approver signs for.
            origin: Calling origin shown to the approver.
            poll_interval_ms: Delay between status reads.
            poll_timeout: Seconds to wait for each operation.
        """
        self.client = client
        self.address = address
        self.origin = origin
        self.poll_interval_ms = poll_interval_ms
        self.poll_timeout = poll_timeout

    @classmethod
    async def import_account(
        cls,
        client: RelayClient,
        origin: Optional[str] = None,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
    ) -> "RemoteAccount":
        """Ask the approver for an account and bind to its address."""
        account = cls(client, "", origin, poll_interval_ms, poll_timeout)
        account.address = await account._round_trip(
            RequestType.IMPORT_ACCOUNT,
            ImportAccountPayload(origin=origin),
            "Account import",
        )
        logger.info(f"Imported account {account.address}")
        return account

    async def sign_personal(self, message: Message) -> str:
        """personal_sign a message; returns the signature."""
        payload = SignPersonalPayload(
            from_address=self.address,
            message=to_hex(message),
            origin=self.origin,
        )
        return await self._round_trip(
            RequestType.SIGN_PERSONAL, payload, "Message signing"
        )

    async def sign_message(self, message: Message) -> str:
        """Sign a raw message; returns the signature."""
        payload = SignMessagePayload(
            from_address=self.address,
            message=to_hex(message),
            origin=self.origin,
        )
        return await self._round_trip(
            RequestType.SIGN_MESSAGE, payload, "Message signing"
        )

    async def sign_transaction(
        self,
        transaction: Transaction,
        serializer: Optional[Callable[[Mapping[str, Any]], str]] = None,
    ) -> str:
        """Sign a transaction; returns the signed serialized transaction.

        Args:
            transaction: Serialized transaction (0x hex or bytes), or a
                mapping of transaction fields.
            serializer: Serializes a mapping; canonical JSON when omitted.
        """
        payload = SignTransactionPayload(
            from_address=self.address,
            transaction=serialize_transaction(transaction, serializer),
            origin=self.origin,
        )
        return await self._round_trip(
            RequestType.SIGN_TRANSACTION, payload, "Transaction signing"
        )

    async def sign_typed_data(
        self, data: Mapping[str, Any], version: str = "V4"
    ) -> str:
        """Sign typed data; returns the signature."""
        payload = SignTypedDataPayload(
            from_address=self.address,
            data=dict(data),
            version=version,
            origin=self.origin,
        )
        return await self._round_trip(
            RequestType.SIGN_TYPED_DATA, payload, "Typed data signing"
        )

    async def _round_trip(
        self, request_type: RequestType, payload: RequestPayload, label: str
    ) -> Any:
        """Submit, wait, clean up, map the outcome.

        Raises:
            UserRejectedError: Approver rejected.
            RemoteError: Approver reported an error.
            MissingArtifactError: Approved without the artifact.
            PollTimeoutError: No resolution before the deadline.
        """
        request_id = await self.client.submit_request(request_type, payload)
        try:
            response = await self.client.poll_until(
                request_id,
                request_type,
                self.poll_interval_ms,
                self.poll_timeout,
                lambda p: p.status is not RequestStatus.PENDING,
            )
        finally:
            await self._cleanup(request_id)

        if response.status is RequestStatus.REJECTED:
            raise UserRejectedError(f"{label} was rejected by user")
        if response.status is RequestStatus.ERROR:
            raise RemoteError(f"Error occurred during {label.lower()}")

        artifact = response.artifact
        if not artifact:
            raise MissingArtifactError(
                f"{label} approved without {response.ARTIFACT_FIELD}"
            )
        return artifact

    async def _cleanup(self, request_id: str) -> None:
        """Delete a finished request; failures never override the outcome."""
        try:
            await self.client.delete_request(request_id)
        except Exception as e:
            logger.warning(f"Failed to delete request {request_id[:8]}...: {e}")


def serialize_transaction(
    transaction: Transaction,
    serializer: Optional[Callable[[Mapping[str, Any]], str]] = None,
) -> str:
    """Canonical serialized form of a transaction.

    Raises:
        ValueError: If a string transaction is not 0x hex.
    """
    if isinstance(transaction, (bytes, bytearray)):
        return to_hex(transaction)
    if isinstance(transaction, str):
        if not HEX_PATTERN.match(transaction):
            raise ValueError("Serialized transaction must be 0x-prefixed hex")
        return transaction
    if serializer is not None:
        return serializer(transaction)
    return canonical_json(transaction)
