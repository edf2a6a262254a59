"""Persist paired rooms on the approver to a JSON file."""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from lodgelock.crypto import derive_room_id, validate_shared_secret
from lodgelock.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class PairedRoom:
    """A room this approver has joined."""

    room_id: str
    name: str
    shared_secret: str
    paired_at: str  # ISO format
    last_seen: Optional[str] = None

    def update_last_seen(self) -> None:
        """Update last_seen to current UTC time."""
        self.last_seen = _utc_now()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "room_id": self.room_id,
            "name": self.name,
            "shared_secret": self.shared_secret,
            "paired_at": self.paired_at,
            "last_seen": self.last_seen,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "PairedRoom":
        """Create from dictionary.

        Raises:
            ValidationError: If the secret is invalid or doesn't match room_id.
        """
        shared_secret = validate_shared_secret(d["shared_secret"])
        if derive_room_id(shared_secret) != d["room_id"]:
            raise ValidationError("Room id does not match shared secret")
        return cls(
            room_id=d["room_id"],
            name=d["name"],
            shared_secret=shared_secret,
            paired_at=d["paired_at"],
            last_seen=d.get("last_seen"),
        )


RoomsChangedCallback = Callable[[list[PairedRoom]], Awaitable[None]]


class JsonRoomStore:
    """JSON file-based storage of paired rooms.

    The file holds shared secrets, so it is written with 0600 permissions.
    Registered listeners are awaited after every change.
    """

    def __init__(self, path: Path):
        """Initialize room store.

        Args:
            path: Path to JSON file for persistence.
        """
        self.path = Path(path).expanduser()
        self._rooms: dict[str, PairedRoom] = {}
        self._listeners: list[RoomsChangedCallback] = []

    async def load(self) -> None:
        """Load rooms from file; malformed entries are skipped."""
        if not self.path.exists():
            logger.debug(f"No rooms file at {self.path}")
            return

        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse rooms file: {e}")
            return

        if not isinstance(data, dict):
            logger.error("Rooms file must contain a JSON object")
            return

        for item in data.get("rooms", []):
            try:
                room = PairedRoom.from_dict(item)
                self._rooms[room.room_id] = room
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning(f"Skipping malformed room entry: {e}")

        logger.debug(f"Loaded {len(self._rooms)} rooms")

    async def save(self) -> None:
        """Save rooms to file with owner-only permissions.

        Raises:
            StorageError: If the file cannot be written.
        """
        data = json.dumps(
            {"rooms": [r.to_dict() for r in self._rooms.values()]}, indent=2
        )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            try:
                os.write(fd, data.encode())
            finally:
                os.close(fd)
            os.chmod(self.path, 0o600)
        except OSError as e:
            raise StorageError(f"Failed to save rooms: {e}") from e

        logger.debug(f"Saved {len(self._rooms)} rooms")

    async def add_room(self, shared_secret: str, name: str) -> PairedRoom:
        """Add a newly paired room (or rename an existing one)."""
        room_id = derive_room_id(shared_secret)
        existing = self._rooms.get(room_id)
        room = PairedRoom(
            room_id=room_id,
            name=name,
            shared_secret=shared_secret,
            paired_at=existing.paired_at if existing else _utc_now(),
        )
        room.update_last_seen()
        self._rooms[room_id] = room
        await self.save()
        await self._notify()
        return room

    async def remove(self, room_id: str) -> bool:
        """Remove a room.

        Returns:
            True if the room was removed, False if not found.
        """
        if room_id not in self._rooms:
            return False
        del self._rooms[room_id]
        await self.save()
        await self._notify()
        return True

    def find(self, prefix: str) -> list[PairedRoom]:
        """Rooms whose id starts with prefix (exact match wins)."""
        if prefix in self._rooms:
            return [self._rooms[prefix]]
        return [r for r in self._rooms.values() if r.room_id.startswith(prefix)]

    def get(self, room_id: str) -> Optional[PairedRoom]:
        """Get room by id."""
        return self._rooms.get(room_id)

    def all(self) -> list[PairedRoom]:
        """Get all rooms."""
        return list(self._rooms.values())

    def on_change(self, callback: RoomsChangedCallback) -> None:
        """Register an async callback receiving the rooms after each change."""
        self._listeners.append(callback)

    def remove_listener(self, callback: RoomsChangedCallback) -> None:
        """Unregister a change callback; unknown callbacks are ignored."""
        if callback in self._listeners:
            self._listeners.remove(callback)

    async def _notify(self) -> None:
        rooms = self.all()
        for listener in self._listeners:
            try:
                await listener(rooms)
            except Exception as e:
                logger.error(f"Room change callback failed: {e}")

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms
