"""Base exceptions for the Lodgelock relay."""


class RelayError(Exception):
    """Base exception for all Lodgelock errors."""

    pass


class PairingCodeError(RelayError):
    """Pairing code could not be decoded."""

    pass


class FormatError(PairingCodeError):
    """Pairing code prefix or inner encoding is malformed."""

    pass


class VersionError(PairingCodeError):
    """Pairing code version does not match this implementation."""

    pass


class ValidationError(PairingCodeError):
    """Shared secret has the wrong length or charset."""

    pass


class ProtocolError(RelayError):
    """Envelope is malformed or an update violates the request lifecycle."""

    pass


class RequestAlreadyResolvedError(ProtocolError):
    """Request already left pending with different resolution fields."""

    pass


class NotFoundError(RelayError):
    """Request or device registration is absent."""

    pass


class StoreError(RelayError):
    """Relay store operation failed (transport or HTTP status)."""

    pass


class StorageError(RelayError):
    """Local paired-room storage error."""

    pass


class PollTimeoutError(RelayError, TimeoutError):
    """Poll deadline elapsed before the condition held."""

    pass


class SigningError(RelayError):
    """Remote signing operation did not produce an artifact."""

    pass


class UserRejectedError(SigningError):
    """Responder rejected the request."""

    pass


class RemoteError(SigningError):
    """Responder reported a failure."""

    pass


class MissingArtifactError(SigningError):
    """Request approved without its resolution artifact."""

    pass


class PairingError(RelayError):
    """Pairing handshake did not complete."""

    pass


class PairingRejectedError(PairingError):
    """Pairing was rejected on the approver device."""

    pass


class PairingFailedError(PairingError):
    """Approver device reported an error during pairing."""

    pass


class PairingTimeoutError(PairingError, PollTimeoutError):
    """No pairing confirmation before the deadline."""

    pass
