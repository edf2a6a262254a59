"""Approver-side discovery of new requests.

Scans every active room, keeps pending requests, and dispatches each newly
observed non-pair request to a routing callback exactly once.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping, Optional

from lodgelock.relay.client import RelayClient
from lodgelock.relay.protocol import Request, RequestStatus, RequestType

logger = logging.getLogger(__name__)

RoutedKey = tuple[str, str]  # (room_id, request_id)


@dataclass(frozen=True)
class ClientRequest:
    """A pending request and the room it was observed in."""

    request: Request
    room_id: str

    @property
    def key(self) -> RoutedKey:
        return (self.room_id, self.request.id)


class RequestManager:
    """Routes newly observed pending requests.

    Scans run when the set of active rooms changes and, when
    scan_interval > 0, periodically. The routed set only grows for the
    lifetime of the manager; resolved requests are deleted by the
    initiator so their ids never come back.
    """

    def __init__(
        self,
        on_request: Callable[[ClientRequest], Awaitable[None]],
        scan_interval: float = 0.0,
        retry_failed: bool = False,
    ):
        """Initialize request manager.

        Args:
            on_request: Async routing callback.
            scan_interval: Seconds between periodic scans; 0 disables them.
            retry_failed: Unmark requests whose callback raised so the next
                scan routes them again. Off by default (at-most-once).
        """
        self._on_request = on_request
        self._interval = scan_interval
        self._retry_failed = retry_failed
        self._rooms: dict[str, RelayClient] = {}
        self._routed: set[RoutedKey] = set()
        self._client_requests: list[ClientRequest] = []
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        """Whether periodic scanning is active."""
        return self._running

    @property
    def rooms(self) -> dict[str, RelayClient]:
        """Active rooms by room id."""
        return dict(self._rooms)

    @property
    def routed(self) -> frozenset[RoutedKey]:
        """Keys already dispatched."""
        return frozenset(self._routed)

    @property
    def client_requests(self) -> list[ClientRequest]:
        """Pending requests observed by the latest scan."""
        return list(self._client_requests)

    async def set_rooms(self, rooms: Mapping[str, RelayClient]) -> None:
        """Replace the active rooms; scans immediately if the set changed."""
        changed = set(rooms) != set(self._rooms)
        self._rooms = dict(rooms)
        if changed:
            logger.debug(f"Active rooms changed ({len(self._rooms)}), scanning")
            await self._safe_scan()

    async def start(self) -> None:
        """Start periodic scanning (no-op when the interval is 0)."""
        if self._running or self._interval <= 0:
            return
        self._running = True
        self._task = asyncio.create_task(self._scan_loop())
        logger.info(f"Request manager scanning every {self._interval}s")

    async def stop(self) -> None:
        """Stop periodic scanning."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Request manager stopped")

    async def scan(self) -> list[ClientRequest]:
        """Run one tick.

        Returns:
            Pending requests observed across all rooms (pair included).
        """
        client_requests = await self._collect()
        self._client_requests = client_requests

        new_requests = self._select_new(client_requests)
        failed: list[ClientRequest] = []
        for client_request in new_requests:
            try:
                await self._on_request(client_request)
            except Exception as e:
                failed.append(client_request)
                logger.warning(
                    f"Routing {client_request.request.type.value} request "
                    f"{client_request.request.id[:8]}... failed: {e}"
                )

        if self._retry_failed:
            for client_request in failed:
                self._routed.discard(client_request.key)

        return client_requests

    def _select_new(self, client_requests: list[ClientRequest]) -> list[ClientRequest]:
        """Diff against the routed set and mark in one step.

        No await happens between the read and the mark, so overlapping
        scans in one event loop cannot both claim a request.
        """
        new_requests = [
            cr
            for cr in client_requests
            if cr.request.type is not RequestType.PAIR and cr.key not in self._routed
        ]
        self._routed.update(cr.key for cr in new_requests)
        return new_requests

    async def _collect(self) -> list[ClientRequest]:
        """List pending requests in every room; failing rooms are skipped."""
        if not self._rooms:
            return []

        rooms = list(self._rooms.items())
        results = await asyncio.gather(
            *(client.list_requests() for _, client in rooms),
            return_exceptions=True,
        )

        client_requests: list[ClientRequest] = []
        for (room_id, _), result in zip(rooms, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning(f"Failed to list requests for room {room_id[:8]}...: {result}")
                continue
            client_requests.extend(
                ClientRequest(request=request, room_id=room_id)
                for request in result
                if request.status is RequestStatus.PENDING
            )
        return client_requests

    async def _safe_scan(self) -> None:
        try:
            await self.scan()
        except Exception as e:
            logger.warning(f"Failed to fetch requests: {e}")

    async def _scan_loop(self) -> None:
        """Periodically scan for new requests."""
        while self._running:
            await asyncio.sleep(self._interval)
            if not self._running:
                break
            await self._safe_scan()
