"""Explicit service context.

One RelayContext is constructed at startup and passed by reference. It
owns the relay store, the paired rooms and the request manager, and
replaces process-wide singletons with an init/dispose lifecycle.
"""

import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from lodgelock.account import RemoteAccount
from lodgelock.config import Config
from lodgelock.pairing.pairing_manager import PairingManager
from lodgelock.pairing.responder import PairingResponder
from lodgelock.relay.client import RelayClient
from lodgelock.relay.firebase import FirebaseRelayStore
from lodgelock.relay.store import RelayStore
from lodgelock.request_manager import ClientRequest, RequestManager
from lodgelock.room_store import JsonRoomStore, PairedRoom

logger = logging.getLogger(__name__)


async def _ignore_request(client_request: ClientRequest) -> None:
    logger.info(
        f"Unrouted {client_request.request.type.value} request "
        f"{client_request.request.id[:8]}..."
    )


class RelayContext:
    """Wires the relay components together.

    Usage:
        async with RelayContext(config, on_request=route) as ctx:
            client = ctx.client_for(secret)
            ...
    """

    def __init__(
        self,
        config: Config,
        store: Optional[RelayStore] = None,
        room_store: Optional[JsonRoomStore] = None,
        on_request: Optional[Callable[[ClientRequest], Awaitable[None]]] = None,
    ):
        """Initialize context (no I/O until init()).

        Args:
            config: Loaded configuration.
            store: Relay store; a FirebaseRelayStore is created when omitted.
            room_store: Paired rooms; read from config.rooms_file when omitted.
            on_request: Routing callback for the request manager.
        """
        self.config = config
        self._owned_store: Optional[FirebaseRelayStore] = None
        if store is None:
            self._owned_store = FirebaseRelayStore(
                url=config.relay.url,
                auth_token=config.relay.auth_token,
                request_timeout=config.relay.request_timeout,
            )
            store = self._owned_store
        self.store: RelayStore = store
        if room_store is None:
            room_store = JsonRoomStore(Path(config.rooms_file))
        self.rooms = room_store
        self.request_manager = RequestManager(
            on_request=on_request or _ignore_request,
            scan_interval=config.request_manager.scan_interval,
            retry_failed=config.request_manager.retry_failed_dispatch,
        )
        self.pairing = PairingManager(
            store,
            poll_interval_ms=config.polling.interval_ms,
            timeout=config.polling.pairing_timeout,
        )
        self.responder = PairingResponder()
        self._initialized = False

    async def __aenter__(self) -> "RelayContext":
        await self.init()
        return self

    async def __aexit__(self, *args) -> None:
        await self.dispose()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def init(self) -> None:
        """Open the store, load rooms and start request scanning."""
        if self._initialized:
            return

        if self._owned_store is not None:
            await self._owned_store.open()

        try:
            await self.rooms.load()
            self.rooms.on_change(self._on_rooms_changed)
            await self._on_rooms_changed(self.rooms.all())
            await self.request_manager.start()
        except Exception:
            self.rooms.remove_listener(self._on_rooms_changed)
            if self._owned_store is not None:
                await self._owned_store.close()
            raise

        self._initialized = True
        logger.info(f"Context ready with {len(self.rooms)} paired rooms")

    async def dispose(self) -> None:
        """Stop scanning and close owned resources."""
        if not self._initialized:
            return
        self.rooms.remove_listener(self._on_rooms_changed)
        await self.request_manager.stop()
        if self._owned_store is not None:
            await self._owned_store.close()
        self._initialized = False
        logger.info("Context disposed")

    def client_for(self, shared_secret: str) -> RelayClient:
        """Client for the room addressed by a secret."""
        return RelayClient(shared_secret, self.store)

    def account(
        self, shared_secret: str, address: str, origin: Optional[str] = None
    ) -> RemoteAccount:
        """Remote account using configured polling defaults."""
        return RemoteAccount(
            self.client_for(shared_secret),
            address,
            origin=origin,
            poll_interval_ms=self.config.polling.interval_ms,
            poll_timeout=self.config.polling.sign_timeout,
        )

    async def _on_rooms_changed(self, rooms: list[PairedRoom]) -> None:
        await self.request_manager.set_rooms(
            {room.room_id: self.client_for(room.shared_secret) for room in rooms}
        )
