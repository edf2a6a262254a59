"""Request envelope and payload types shared by both endpoints.

Wire shape of an envelope stored in a room:

    {
        "id": "<32 hex>",
        "lastUpdated": 1700000000000,
        "type": "signPersonal",
        "payload": {"status": "pending", "from": "0x..", "message": "0x.."}
    }

Each request type has its own frozen payload dataclass. Resolution fields
(signature, signed transaction, address, device fields) stay at their
defaults while the status is pending and are written once, on the single
transition out of pending.
"""

import json
import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, ClassVar, Mapping, Optional

from lodgelock.errors import ProtocolError, RequestAlreadyResolvedError

__all__ = [
    "DeviceRegistration",
    "ImportAccountPayload",
    "PairPayload",
    "Request",
    "RequestPayload",
    "RequestStatus",
    "RequestType",
    "SignMessagePayload",
    "SignPersonalPayload",
    "SignTransactionPayload",
    "SignTypedDataPayload",
    "canonical_json",
    "parse_payload",
    "payload_class",
    "to_hex",
]

HEX_PATTERN = re.compile(r"^0x(?:[0-9a-fA-F]{2})*$")


class RequestStatus(Enum):
    """Lifecycle status of a request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ERROR = "error"


class RequestType(Enum):
    """Operation carried by a request envelope."""

    IMPORT_ACCOUNT = "importAccount"
    SIGN_PERSONAL = "signPersonal"
    SIGN_TRANSACTION = "signTransaction"
    SIGN_TYPED_DATA = "signTypedData"
    SIGN_MESSAGE = "signMessage"
    PAIR = "pair"


def _wire_name(f) -> str:
    """Wire key for a dataclass field (explicit or camelCase)."""
    if "wire" in f.metadata:
        return f.metadata["wire"]
    head, *rest = f.name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def to_hex(value: str | bytes) -> str:
    """Convert signable content to a 0x-prefixed hex string.

    Bytes are hex encoded and whole-byte 0x hex strings pass through. Any
    other string, including odd-length "0x..." text, is UTF-8 encoded.
    """
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if HEX_PATTERN.match(value):
        return value
    return "0x" + value.encode("utf-8").hex()


@dataclass(frozen=True)
class RequestPayload:
    """Base class for typed request payloads."""

    REQUEST_TYPE: ClassVar[RequestType]
    RESOLUTION_FIELDS: ClassVar[tuple[str, ...]] = ()
    ARTIFACT_FIELD: ClassVar[Optional[str]] = None

    def __post_init__(self) -> None:
        if not isinstance(self.status, RequestStatus):
            raise ProtocolError(f"Invalid status: {self.status!r}")
        if self.status is RequestStatus.PENDING:
            defaults = {f.name: f.default for f in fields(self)}
            for name in self.RESOLUTION_FIELDS:
                if getattr(self, name) != defaults[name]:
                    raise ProtocolError(
                        f"{self.REQUEST_TYPE.value}: '{name}' set while pending"
                    )

    @property
    def is_pending(self) -> bool:
        return self.status is RequestStatus.PENDING

    @property
    def artifact(self) -> Any:
        """The resolution value an approval must carry, if any."""
        if self.ARTIFACT_FIELD is None:
            return None
        return getattr(self, self.ARTIFACT_FIELD)

    def resolve(self, **changes: Any) -> "RequestPayload":
        """Apply a responder update (status and resolution fields only).

        Args:
            **changes: New status and/or resolution field values.

        Returns:
            The merged payload. Equal to self when the update repeats an
            already applied resolution.

        Raises:
            ProtocolError: On immutable fields or unknown field names.
            RequestAlreadyResolvedError: When a resolved payload would change.
        """
        allowed = {"status", *self.RESOLUTION_FIELDS}
        illegal = set(changes) - allowed
        if illegal:
            raise ProtocolError(
                f"{self.REQUEST_TYPE.value}: cannot update {sorted(illegal)}"
            )

        if "status" in changes and not isinstance(changes["status"], RequestStatus):
            try:
                changes["status"] = RequestStatus(changes["status"])
            except ValueError as e:
                raise ProtocolError(f"Invalid status: {changes['status']!r}") from e

        merged = replace(self, **changes)
        if self.is_pending:
            return merged
        if merged != self:
            raise RequestAlreadyResolvedError(
                f"{self.REQUEST_TYPE.value} request already {self.status.value}"
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire dict. Unset optional fields are omitted."""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, RequestStatus):
                value = value.value
            data[_wire_name(f)] = value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RequestPayload":
        """Create from a wire dict.

        Raises:
            ProtocolError: On missing status or invalid field values.
        """
        if not isinstance(data, Mapping):
            raise ProtocolError("Payload must be an object")
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            key = _wire_name(f)
            if key in data:
                kwargs[f.name] = data[key]
        if "status" not in kwargs:
            raise ProtocolError("Payload is missing 'status'")
        try:
            kwargs["status"] = RequestStatus(kwargs["status"])
            return cls(**kwargs)
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"Invalid {cls.REQUEST_TYPE.value} payload: {e}") from e


@dataclass(frozen=True)
class ImportAccountPayload(RequestPayload):
    """Ask the approver for an account address."""

    REQUEST_TYPE: ClassVar[RequestType] = RequestType.IMPORT_ACCOUNT
    RESOLUTION_FIELDS: ClassVar[tuple[str, ...]] = ("address",)
    ARTIFACT_FIELD: ClassVar[Optional[str]] = "address"

    status: RequestStatus = RequestStatus.PENDING
    origin: Optional[str] = None
    address: Optional[str] = None


@dataclass(frozen=True)
class SignPersonalPayload(RequestPayload):
    """personal_sign over a hex encoded message."""

    REQUEST_TYPE: ClassVar[RequestType] = RequestType.SIGN_PERSONAL
    RESOLUTION_FIELDS: ClassVar[tuple[str, ...]] = ("signature",)
    ARTIFACT_FIELD: ClassVar[Optional[str]] = "signature"

    status: RequestStatus = RequestStatus.PENDING
    from_address: str = field(default="", metadata={"wire": "from"})
    message: str = "0x"
    origin: Optional[str] = None
    signature: Optional[str] = None


@dataclass(frozen=True)
class SignMessagePayload(RequestPayload):
    """eth_sign style raw message signing."""

    REQUEST_TYPE: ClassVar[RequestType] = RequestType.SIGN_MESSAGE
    RESOLUTION_FIELDS: ClassVar[tuple[str, ...]] = ("signature",)
    ARTIFACT_FIELD: ClassVar[Optional[str]] = "signature"

    status: RequestStatus = RequestStatus.PENDING
    from_address: str = field(default="", metadata={"wire": "from"})
    message: str = "0x"
    origin: Optional[str] = None
    signature: Optional[str] = None


@dataclass(frozen=True)
class SignTransactionPayload(RequestPayload):
    """Sign a serialized transaction."""

    REQUEST_TYPE: ClassVar[RequestType] = RequestType.SIGN_TRANSACTION
    RESOLUTION_FIELDS: ClassVar[tuple[str, ...]] = ("signed",)
    ARTIFACT_FIELD: ClassVar[Optional[str]] = "signed"

    status: RequestStatus = RequestStatus.PENDING
    from_address: str = field(default="", metadata={"wire": "from"})
    transaction: str = ""
    origin: Optional[str] = None
    signed: Optional[str] = None


@dataclass(frozen=True)
class SignTypedDataPayload(RequestPayload):
    """Sign EIP-712 typed data."""

    REQUEST_TYPE: ClassVar[RequestType] = RequestType.SIGN_TYPED_DATA
    RESOLUTION_FIELDS: ClassVar[tuple[str, ...]] = ("signature",)
    ARTIFACT_FIELD: ClassVar[Optional[str]] = "signature"

    status: RequestStatus = RequestStatus.PENDING
    from_address: str = field(default="", metadata={"wire": "from"})
    data: dict = field(default_factory=dict)
    version: str = "V4"
    origin: Optional[str] = None
    signature: Optional[str] = None


@dataclass(frozen=True)
class PairPayload(RequestPayload):
    """Pairing handshake; device fields stay empty until approval."""

    REQUEST_TYPE: ClassVar[RequestType] = RequestType.PAIR
    RESOLUTION_FIELDS: ClassVar[tuple[str, ...]] = ("push_token", "device_name")

    status: RequestStatus = RequestStatus.PENDING
    push_token: str = ""
    device_name: str = ""


_PAYLOAD_CLASSES: dict[RequestType, type[RequestPayload]] = {
    cls.REQUEST_TYPE: cls
    for cls in (
        ImportAccountPayload,
        SignPersonalPayload,
        SignMessagePayload,
        SignTransactionPayload,
        SignTypedDataPayload,
        PairPayload,
    )
}


def payload_class(request_type: RequestType) -> type[RequestPayload]:
    """Payload dataclass for a request type."""
    return _PAYLOAD_CLASSES[request_type]


def parse_payload(request_type: RequestType, data: Mapping[str, Any]) -> RequestPayload:
    """Parse a wire payload for the given request type."""
    return payload_class(request_type).from_dict(data)


@dataclass(frozen=True)
class DeviceRegistration:
    """Approver device registered in a room."""

    push_token: str
    device_name: str

    def to_dict(self) -> dict[str, str]:
        return {"pushToken": self.push_token, "deviceName": self.device_name}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "DeviceRegistration":
        try:
            return cls(push_token=str(d["pushToken"]), device_name=str(d["deviceName"]))
        except (KeyError, TypeError) as e:
            raise ProtocolError(f"Malformed device registration: {e}") from e


@dataclass(frozen=True)
class Request:
    """A request envelope.

    Attributes:
        id: Request id, unique within its room.
        type: Operation type; matches the payload class.
        payload: Typed payload.
        last_updated: Epoch milliseconds of the last write.
    """

    id: str
    type: RequestType
    payload: RequestPayload
    last_updated: int = 0

    def __post_init__(self) -> None:
        if self.payload.REQUEST_TYPE is not self.type:
            raise ProtocolError(
                f"Payload for {self.payload.REQUEST_TYPE.value} in {self.type.value} envelope"
            )

    @property
    def status(self) -> RequestStatus:
        return self.payload.status

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "lastUpdated": self.last_updated,
            "type": self.type.value,
            "payload": self.payload.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Request":
        """Create from a wire dict.

        Raises:
            ProtocolError: If the envelope is malformed.
        """
        if not isinstance(d, Mapping):
            raise ProtocolError("Envelope must be an object")
        try:
            request_type = RequestType(d["type"])
            request_id = d["id"]
            last_updated = int(d.get("lastUpdated") or 0)
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"Malformed envelope: {e}") from e
        if not isinstance(request_id, str) or not request_id:
            raise ProtocolError("Envelope id must be a non-empty string")
        return cls(
            id=request_id,
            type=request_type,
            payload=parse_payload(request_type, d.get("payload") or {}),
            last_updated=last_updated,
        )


def canonical_json(value: Any) -> str:
    """Deterministic JSON used as signable content for mappings."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
