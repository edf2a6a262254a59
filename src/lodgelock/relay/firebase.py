"""Relay store backed by a Firebase Realtime Database REST endpoint."""

import asyncio
import json
import logging
from typing import Any, Optional

import aiohttp

from lodgelock.errors import StoreError
from lodgelock.relay.store import split_path

logger = logging.getLogger(__name__)


class FirebaseRelayStore:
    """Keyed document store over the Realtime Database REST API.

    Every path maps to ``{url}/{path}.json``:
    - get: GET (``null`` means absent)
    - set: PUT
    - delete: DELETE
    - list: GET of the collection

    Features:
    - Context manager for session lifecycle
    - Per-request timeout
    - Transport and HTTP failures raised as StoreError
    """

    REQUEST_TIMEOUT = 10.0  # seconds

    def __init__(
        self,
        url: str,
        auth_token: Optional[str] = None,
        request_timeout: Optional[float] = None,
        http_session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize store.

        Args:
            url: Database URL, e.g. https://<project>.firebaseio.com.
            auth_token: Optional token sent as the ``auth`` query parameter.
            request_timeout: Per-request timeout in seconds.
            http_session: Optional aiohttp session (for testing).
        """
        self._url = url.rstrip("/")
        self._auth_token = auth_token
        self._timeout = request_timeout or self.REQUEST_TIMEOUT
        self._session = http_session
        self._owns_session = http_session is None

    async def __aenter__(self):
        """Enter async context, creating session if needed."""
        await self.open()
        return self

    async def __aexit__(self, *args):
        """Exit async context, closing owned session."""
        await self.close()

    @property
    def url(self) -> str:
        """The database URL."""
        return self._url

    async def open(self) -> None:
        """Create the HTTP session if none was injected."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def close(self) -> None:
        """Close the HTTP session if owned."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    def _endpoint(self, path: str) -> str:
        return f"{self._url}/{'/'.join(split_path(path))}.json"

    async def _request(self, method: str, path: str, body: Any = None) -> Any:
        """Single REST call.

        Returns:
            Decoded JSON body (None for ``null``).

        Raises:
            StoreError: On transport failure or non-2xx status.
        """
        if self._session is None:
            raise StoreError("Store not opened - use async context manager")

        url = self._endpoint(path)
        params = {"auth": self._auth_token} if self._auth_token else None
        data = json.dumps(body) if body is not None else None

        try:
            async with self._session.request(
                method,
                url,
                params=params,
                data=data,
                headers={"Content-Type": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status < 200 or resp.status >= 300:
                    text = await resp.text()
                    raise StoreError(
                        f"{method} {path} returned {resp.status}: {text[:100]}"
                    )
                text = await resp.text()
                logger.debug(f"{method} {path} -> {resp.status}")
        except aiohttp.ClientError as e:
            raise StoreError(f"{method} {path} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"{method} {path} timed out") from e

        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise StoreError(f"{method} {path} returned invalid JSON") from e

    async def get(self, path: str) -> Any | None:
        return await self._request("GET", path)

    async def set(self, path: str, value: Any) -> None:
        await self._request("PUT", path, value)

    async def delete(self, path: str) -> None:
        await self._request("DELETE", path)

    async def list(self, path: str) -> dict[str, Any]:
        value = await self._request("GET", path)
        if not isinstance(value, dict):
            return {}
        return value
