"""Relay store contract and in-memory implementation.

The relay store is a keyed document store reached through slash separated
paths (``rooms/<room>/requests/<id>``). It is a collaborator: the protocol
only needs get/set/delete/list and assumes no cross-document transactions.
"""

import copy
import logging
import re
from typing import Any, Protocol

from lodgelock.errors import StoreError

logger = logging.getLogger(__name__)

# Valid path segment: alphanumeric, hyphens, underscores
PATH_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class RelayStore(Protocol):
    """Protocol for the keyed document store used as a mailbox."""

    async def get(self, path: str) -> Any | None:
        """Read a document, None if absent."""
        ...

    async def set(self, path: str, value: Any) -> None:
        """Create or replace a document."""
        ...

    async def delete(self, path: str) -> None:
        """Delete a document or collection. No error if absent."""
        ...

    async def list(self, path: str) -> dict[str, Any]:
        """Read all children of a collection, empty if absent."""
        ...


def split_path(path: str) -> list[str]:
    """Split and validate a store path.

    Raises:
        StoreError: If any segment is empty or has illegal characters.
    """
    segments = path.strip("/").split("/")
    for segment in segments:
        if not PATH_SEGMENT_PATTERN.match(segment):
            raise StoreError(f"Invalid store path: {path!r}")
    return segments


class MemoryRelayStore:
    """In-process relay store.

    Documents live in a nested dict tree. Reads return deep copies so
    callers never alias stored state.
    """

    def __init__(self) -> None:
        self._root: dict[str, Any] = {}

    def _parent(self, segments: list[str], create: bool) -> dict[str, Any] | None:
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                if not create:
                    return None
                child = {}
                node[segment] = child
            node = child
        return node

    async def get(self, path: str) -> Any | None:
        segments = split_path(path)
        parent = self._parent(segments, create=False)
        if parent is None:
            return None
        return copy.deepcopy(parent.get(segments[-1]))

    async def set(self, path: str, value: Any) -> None:
        segments = split_path(path)
        parent = self._parent(segments, create=True)
        parent[segments[-1]] = copy.deepcopy(value)

    async def delete(self, path: str) -> None:
        segments = split_path(path)
        parent = self._parent(segments, create=False)
        if parent is not None:
            parent.pop(segments[-1], None)

    async def list(self, path: str) -> dict[str, Any]:
        value = await self.get(path)
        if not isinstance(value, dict):
            return {}
        return value
