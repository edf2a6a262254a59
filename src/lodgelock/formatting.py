"""Formatting utilities for CLI output."""

from datetime import datetime, timezone

from lodgelock.relay.protocol import Request, RequestType


def format_time_ago(timestamp: str | int | None) -> str:
    """Format a timestamp as relative time (e.g., '2 hours ago').

    Args:
        timestamp: ISO 8601 string (with or without 'Z' suffix) or epoch
            milliseconds as stored in an envelope's lastUpdated.

    Returns:
        Human-readable relative time string like "2 hours ago" or "Never".

    Examples:
        >>> format_time_ago(None)
        'Never'
    """
    if not timestamp:
        return "Never"

    if isinstance(timestamp, int):
        ts = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
    else:
        ts = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    seconds = (datetime.now(timezone.utc) - ts).total_seconds()

    if seconds < 60:
        return "Just now"
    elif seconds < 3600:
        minutes = int(seconds / 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    elif seconds < 86400:
        hours = int(seconds / 3600)
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    else:
        days = int(seconds / 86400)
        return f"{days} day{'s' if days != 1 else ''} ago"


_TITLES = {
    RequestType.IMPORT_ACCOUNT: "Account request",
    RequestType.SIGN_MESSAGE: "Signature request (message)",
    RequestType.SIGN_PERSONAL: "Signature request (personal message)",
    RequestType.SIGN_TYPED_DATA: "Signature request (typed data)",
    RequestType.SIGN_TRANSACTION: "Transaction request",
    RequestType.PAIR: "Pairing request",
}


def format_request(request: Request, room_name: str | None = None) -> str:
    """One-line summary of a request for terminal output."""
    origin = getattr(request.payload, "origin", None)
    parts = [
        _TITLES[request.type],
        request.id[:8],
        request.status.value,
    ]
    if origin:
        parts.append(f"from {origin}")
    if room_name:
        parts.append(f"[{room_name}]")
    parts.append(format_time_ago(request.last_updated))
    return " | ".join(parts)
