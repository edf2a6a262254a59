"""Tests for request envelope and payload types."""

import pytest

from lodgelock.errors import ProtocolError, RequestAlreadyResolvedError
from lodgelock.relay.protocol import (
    DeviceRegistration,
    ImportAccountPayload,
    PairPayload,
    Request,
    RequestStatus,
    RequestType,
    SignPersonalPayload,
    SignTransactionPayload,
    SignTypedDataPayload,
    canonical_json,
    parse_payload,
    payload_class,
    to_hex,
)


class TestToHex:
    """Tests for signable content encoding."""

    def test_text_is_utf8_hex(self):
        assert to_hex("hi") == "0x6869"

    def test_bytes_are_hex(self):
        assert to_hex(b"\x00\xff") == "0x00ff"

    def test_hex_passes_through(self):
        assert to_hex("0xdeadBEEF") == "0xdeadBEEF"

    def test_odd_length_hex_is_text(self):
        """A partial byte is not hex, so the string is signed as text."""
        assert to_hex("0xabc") == "0x" + b"0xabc".hex()

    def test_text_starting_with_0x_is_text(self):
        assert to_hex("0x marks the spot") == "0x" + b"0x marks the spot".hex()


class TestPayloadWireFormat:
    """Tests for payload serialization."""

    def test_sign_personal_uses_from_key(self):
        """from_address is serialized as 'from'."""
        payload = SignPersonalPayload(from_address="0xabc", message="0x6869")

        assert payload.to_dict() == {
            "status": "pending",
            "from": "0xabc",
            "message": "0x6869",
        }

    def test_pair_payload_camel_case(self):
        """Device fields use camelCase keys."""
        payload = PairPayload(
            status=RequestStatus.APPROVED, push_token="tok", device_name="Phone"
        )

        assert payload.to_dict() == {
            "status": "approved",
            "pushToken": "tok",
            "deviceName": "Phone",
        }

    def test_from_dict_parses_wire_keys(self):
        """Wire dicts parse back into payloads."""
        payload = SignTransactionPayload.from_dict(
            {"status": "approved", "from": "0x1", "transaction": "0x02", "signed": "0x03"}
        )

        assert payload.status is RequestStatus.APPROVED
        assert payload.from_address == "0x1"
        assert payload.signed == "0x03"

    def test_from_dict_ignores_unknown_keys(self):
        """Extra keys from newer peers are ignored."""
        payload = ImportAccountPayload.from_dict({"status": "pending", "extra": 1})
        assert payload.is_pending

    def test_from_dict_requires_status(self):
        with pytest.raises(ProtocolError):
            ImportAccountPayload.from_dict({"origin": "x"})

    def test_from_dict_rejects_unknown_status(self):
        with pytest.raises(ProtocolError):
            ImportAccountPayload.from_dict({"status": "maybe"})

    def test_from_dict_rejects_non_mapping(self):
        with pytest.raises(ProtocolError):
            ImportAccountPayload.from_dict(["pending"])

    def test_payload_class_lookup(self):
        """Every request type has a payload class."""
        for request_type in RequestType:
            assert payload_class(request_type).REQUEST_TYPE is request_type

    def test_parse_payload(self):
        payload = parse_payload(RequestType.SIGN_TYPED_DATA, {"status": "pending"})

        assert isinstance(payload, SignTypedDataPayload)
        assert payload.version == "V4"


class TestPendingInvariant:
    """Resolution fields stay empty while pending."""

    def test_signature_while_pending_rejected(self):
        with pytest.raises(ProtocolError):
            SignPersonalPayload(signature="0xsig")

    def test_pair_device_while_pending_rejected(self):
        with pytest.raises(ProtocolError):
            PairPayload(push_token="tok")

    def test_pending_wire_with_signature_rejected(self):
        """A malformed stored payload is rejected on parse."""
        with pytest.raises(ProtocolError):
            SignPersonalPayload.from_dict({"status": "pending", "signature": "0x1"})


class TestResolve:
    """Tests for the single transition out of pending."""

    def test_approve_with_artifact(self):
        payload = SignPersonalPayload(from_address="0xabc", message="0x68")

        resolved = payload.resolve(status=RequestStatus.APPROVED, signature="0xsig")

        assert resolved.status is RequestStatus.APPROVED
        assert resolved.signature == "0xsig"
        assert resolved.artifact == "0xsig"
        assert resolved.message == "0x68"

    def test_status_string_coerced(self):
        resolved = ImportAccountPayload().resolve(status="rejected")
        assert resolved.status is RequestStatus.REJECTED

    def test_immutable_field_update_rejected(self):
        """Initiator fields cannot be changed by the responder."""
        payload = SignPersonalPayload(from_address="0xabc", message="0x68")

        with pytest.raises(ProtocolError):
            payload.resolve(message="0x00")

    def test_unknown_field_rejected(self):
        with pytest.raises(ProtocolError):
            ImportAccountPayload().resolve(nonsense=1)

    def test_artifact_without_status_change_rejected(self):
        """Setting the artifact while staying pending is invalid."""
        with pytest.raises(ProtocolError):
            SignPersonalPayload().resolve(signature="0xsig")

    def test_repeat_resolution_is_noop(self):
        """Re-applying the same resolution returns the same payload."""
        resolved = ImportAccountPayload().resolve(
            status=RequestStatus.APPROVED, address="0x1"
        )

        again = resolved.resolve(status=RequestStatus.APPROVED, address="0x1")

        assert again is resolved

    def test_second_different_resolution_rejected(self):
        resolved = ImportAccountPayload().resolve(status=RequestStatus.REJECTED)

        with pytest.raises(RequestAlreadyResolvedError):
            resolved.resolve(status=RequestStatus.APPROVED, address="0x1")

    def test_pair_has_no_artifact(self):
        resolved = PairPayload().resolve(
            status=RequestStatus.APPROVED, push_token="t", device_name="d"
        )
        assert resolved.artifact is None


class TestRequestEnvelope:
    """Tests for Request."""

    def test_to_dict(self):
        request = Request(
            id="abc",
            type=RequestType.IMPORT_ACCOUNT,
            payload=ImportAccountPayload(origin="app"),
            last_updated=1700000000000,
        )

        assert request.to_dict() == {
            "id": "abc",
            "lastUpdated": 1700000000000,
            "type": "importAccount",
            "payload": {"status": "pending", "origin": "app"},
        }

    def test_from_dict_round_trip(self):
        request = Request(
            id="abc",
            type=RequestType.SIGN_TYPED_DATA,
            payload=SignTypedDataPayload(data={"a": 1}),
            last_updated=5,
        )
        assert Request.from_dict(request.to_dict()) == request

    def test_type_payload_mismatch(self):
        with pytest.raises(ProtocolError):
            Request(id="x", type=RequestType.PAIR, payload=ImportAccountPayload())

    @pytest.mark.parametrize(
        "data",
        [
            {"type": "pair", "payload": {"status": "pending"}},
            {"id": "x", "type": "teleport", "payload": {"status": "pending"}},
            {"id": "", "type": "pair", "payload": {"status": "pending"}},
            {"id": "x", "type": "pair", "lastUpdated": "soon", "payload": {"status": "pending"}},
            {"id": "x", "type": "pair"},
            "not a dict",
        ],
    )
    def test_malformed_envelopes(self, data):
        with pytest.raises(ProtocolError):
            Request.from_dict(data)

    def test_status_property(self):
        request = Request(id="x", type=RequestType.PAIR, payload=PairPayload())
        assert request.status is RequestStatus.PENDING


class TestDeviceRegistration:
    """Tests for DeviceRegistration."""

    def test_round_trip(self):
        registration = DeviceRegistration(push_token="tok", device_name="Phone")

        assert registration.to_dict() == {"pushToken": "tok", "deviceName": "Phone"}
        assert DeviceRegistration.from_dict(registration.to_dict()) == registration

    def test_missing_field(self):
        with pytest.raises(ProtocolError):
            DeviceRegistration.from_dict({"pushToken": "tok"})


def test_canonical_json_sorted_and_compact():
    assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'
