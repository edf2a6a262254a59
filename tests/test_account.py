"""Tests for the remote account proxy.

These tests drive a RemoteAccount against an in-memory room while a fake
approver resolves each request it sees.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from lodgelock.account import RemoteAccount, serialize_transaction
from lodgelock.errors import (
    MissingArtifactError,
    PollTimeoutError,
    RemoteError,
    StoreError,
    UserRejectedError,
)
from lodgelock.relay.client import RelayClient
from lodgelock.relay.protocol import RequestStatus, RequestType


async def _approver(client: RelayClient, **fields) -> None:
    """Resolve the first pending request that appears with the given fields."""
    while True:
        pending = [r for r in await client.list_requests() if r.status is RequestStatus.PENDING]
        if pending:
            request = pending[0]
            await client.update_request(request.id, request.type, **fields)
            return
        await asyncio.sleep(0.005)


@pytest.fixture
def account(client):
    return RemoteAccount(
        client, "0xabc", origin="dapp.example", poll_interval_ms=5, poll_timeout=2.0
    )


class TestSignPersonal:
    """Tests for sign_personal."""

    @pytest.mark.asyncio
    async def test_returns_signature(self, account, client):
        approver = asyncio.create_task(
            _approver(client, status=RequestStatus.APPROVED, signature="0xsig")
        )

        signature = await account.sign_personal("hello")
        await approver

        assert signature == "0xsig"

    @pytest.mark.asyncio
    async def test_request_carries_hex_message(self, account, client):
        seen = []

        async def capture():
            while not seen:
                seen.extend(await client.list_requests())
                await asyncio.sleep(0.005)
            request = seen[0]
            await client.update_request(
                request.id, request.type, status="approved", signature="0x1"
            )

        task = asyncio.create_task(capture())
        await account.sign_personal("hi")
        await task

        payload = seen[0].payload
        assert seen[0].type is RequestType.SIGN_PERSONAL
        assert payload.message == "0x6869"
        assert payload.from_address == "0xabc"
        assert payload.origin == "dapp.example"

    @pytest.mark.asyncio
    async def test_rejected(self, account, client):
        task = asyncio.create_task(_approver(client, status=RequestStatus.REJECTED))

        with pytest.raises(UserRejectedError, match="rejected by user"):
            await account.sign_personal("hello")
        await task

    @pytest.mark.asyncio
    async def test_remote_error(self, account, client):
        task = asyncio.create_task(_approver(client, status=RequestStatus.ERROR))

        with pytest.raises(RemoteError):
            await account.sign_personal("hello")
        await task

    @pytest.mark.asyncio
    async def test_approved_without_signature(self, account, client):
        task = asyncio.create_task(_approver(client, status=RequestStatus.APPROVED))

        with pytest.raises(MissingArtifactError):
            await account.sign_personal("hello")
        await task

    @pytest.mark.asyncio
    async def test_timeout(self, client):
        account = RemoteAccount(client, "0xabc", poll_interval_ms=5, poll_timeout=0.05)

        with pytest.raises(PollTimeoutError):
            await account.sign_personal("hello")


class TestCleanup:
    """Every round trip deletes its request."""

    @pytest.mark.asyncio
    async def test_deleted_after_approval(self, account, client):
        client.delete_request = AsyncMock(wraps=client.delete_request)
        task = asyncio.create_task(
            _approver(client, status=RequestStatus.APPROVED, signature="0xsig")
        )

        await account.sign_personal("hello")
        await task

        client.delete_request.assert_called_once()
        assert await client.list_requests() == []

    @pytest.mark.asyncio
    async def test_deleted_after_rejection(self, account, client):
        task = asyncio.create_task(_approver(client, status=RequestStatus.REJECTED))

        with pytest.raises(UserRejectedError):
            await account.sign_personal("hello")
        await task

        assert await client.list_requests() == []

    @pytest.mark.asyncio
    async def test_deleted_after_timeout(self, client):
        account = RemoteAccount(client, "0xabc", poll_interval_ms=5, poll_timeout=0.03)

        with pytest.raises(PollTimeoutError):
            await account.sign_personal("hello")

        assert await client.list_requests() == []

    @pytest.mark.asyncio
    async def test_delete_failure_does_not_override_result(self, account, client, caplog):
        client.delete_request = AsyncMock(side_effect=StoreError("down"))
        task = asyncio.create_task(
            _approver(client, status=RequestStatus.APPROVED, signature="0xsig")
        )

        signature = await account.sign_personal("hello")
        await task

        assert signature == "0xsig"
        assert "Failed to delete request" in caplog.text


class TestOtherOperations:
    """Tests for the remaining request types."""

    @pytest.mark.asyncio
    async def test_import_account(self, client):
        task = asyncio.create_task(
            _approver(client, status=RequestStatus.APPROVED, address="0xfeed")
        )

        account = await RemoteAccount.import_account(
            client, origin="dapp.example", poll_interval_ms=5, poll_timeout=2.0
        )
        await task

        assert account.address == "0xfeed"
        assert account.origin == "dapp.example"

    @pytest.mark.asyncio
    async def test_import_account_rejected(self, client):
        task = asyncio.create_task(_approver(client, status=RequestStatus.REJECTED))

        with pytest.raises(UserRejectedError):
            await RemoteAccount.import_account(client, poll_interval_ms=5, poll_timeout=2.0)
        await task

    @pytest.mark.asyncio
    async def test_sign_message(self, account, client):
        task = asyncio.create_task(
            _approver(client, status=RequestStatus.APPROVED, signature="0xraw")
        )

        assert await account.sign_message(b"\x01\x02") == "0xraw"
        await task

    @pytest.mark.asyncio
    async def test_sign_transaction(self, account, client):
        task = asyncio.create_task(
            _approver(client, status=RequestStatus.APPROVED, signed="0xsignedtx")
        )

        assert await account.sign_transaction("0x02f8") == "0xsignedtx"
        await task

    @pytest.mark.asyncio
    async def test_sign_typed_data(self, account, client):
        task = asyncio.create_task(
            _approver(client, status=RequestStatus.APPROVED, signature="0xtyped")
        )

        result = await account.sign_typed_data({"types": {}, "message": {"a": 1}})
        await task

        assert result == "0xtyped"

    @pytest.mark.asyncio
    async def test_concurrent_calls_independent(self, client):
        """Concurrent operations own separate request ids."""
        account = RemoteAccount(client, "0xabc", poll_interval_ms=5, poll_timeout=2.0)

        async def approve_all():
            done = set()
            while len(done) < 2:
                for r in await client.list_requests():
                    if r.id not in done and r.status is RequestStatus.PENDING:
                        signature = "0x" + r.payload.message[2:]
                        await client.update_request(
                            r.id, r.type, status="approved", signature=signature
                        )
                        done.add(r.id)
                await asyncio.sleep(0.005)

        results = await asyncio.gather(
            account.sign_personal(b"\xaa"),
            account.sign_personal(b"\xbb"),
            approve_all(),
        )

        assert results[:2] == ["0xaa", "0xbb"]


class TestSerializeTransaction:
    """Tests for transaction serialization."""

    def test_hex_passthrough(self):
        assert serialize_transaction("0x02f8") == "0x02f8"

    def test_bytes_hex_encoded(self):
        assert serialize_transaction(b"\x02\xf8") == "0x02f8"

    def test_non_hex_string_rejected(self):
        with pytest.raises(ValueError):
            serialize_transaction("not hex")

    def test_odd_length_hex_rejected(self):
        with pytest.raises(ValueError):
            serialize_transaction("0x1")

    def test_mapping_canonical_json(self):
        assert serialize_transaction({"to": "0x1", "value": 1}) == '{"to":"0x1","value":1}'

    def test_mapping_custom_serializer(self):
        assert serialize_transaction({"to": "0x1"}, serializer=lambda tx: "0xcustom") == "0xcustom"
