"""HTTP remote store.

REST client for the dashboard's record API:

    POST   /collections/{collection}          create, returns the record
    PATCH  /collections/{collection}/{id}     partial update
    DELETE /collections/{collection}/{id}     delete
    GET    /collections/{collection}?k=v      query, newest first

Example:
    async with HttpRemoteStore("https://api.example.org") as remote:
        record = await remote.create(EntityType.STUDENT, {"name": "Asha"})
"""
import logging

import httpx

from offlinekit.core.constants import DEFAULT_REMOTE_TIMEOUT_SECONDS, QUERY_LIMIT
from offlinekit.core.errors import NotFound, OfflineKitError, Unavailable, ValidationFailed
from offlinekit.core.receipt import utc_now
from offlinekit.core.schemas import EntityType, Record

from .base import RemoteStore

logger = logging.getLogger("offlinekit.remote")

VALIDATION_STATUS_CODES = (400, 409, 422)


class HttpRemoteStore(RemoteStore):
    """RemoteStore backed by httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str,
        auth_token: str = "",
        timeout: float = DEFAULT_REMOTE_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            base_url: Base URL of the record API
            auth_token: Bearer token, sent when non-empty
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HttpRemoteStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def connect(self):
        """Initialize the HTTP client."""
        headers = {}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise OfflineKitError("Client not connected. Use 'async with' or call connect()")
        return self._client

    async def _request(self, method: str, path: str, **kwargs):
        """Make a request, mapping transport and status failures to the taxonomy."""
        client = self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise Unavailable(f"Request timed out: {e}")
        except httpx.TransportError as e:
            raise Unavailable(f"Failed to reach {self.base_url}: {e}")

        body = _json_or_none(response)

        if response.status_code == 404:
            raise NotFound(f"Resource not found: {path}", status_code=404, response=body)
        if response.status_code in VALIDATION_STATUS_CODES:
            raise ValidationFailed(
                f"Rejected by remote store: {response.status_code}",
                status_code=response.status_code,
                response=body,
            )
        if response.status_code >= 500:
            raise Unavailable(
                f"Remote store error: {response.status_code}",
                status_code=response.status_code,
                response=body,
            )
        if response.status_code >= 400:
            raise OfflineKitError(
                f"API error: {response.status_code}",
                status_code=response.status_code,
                response=body,
            )

        return body

    async def create(self, entity_type: EntityType, payload: dict) -> Record:
        data = await self._request("POST", f"/collections/{entity_type.collection}", json=payload)
        if not isinstance(data, dict) or "id" not in data:
            raise Unavailable("Create response carried no record id")
        return _to_record(entity_type, data)

    async def update(self, entity_type: EntityType, record_id: str, diff: dict) -> None:
        await self._request("PATCH", f"/collections/{entity_type.collection}/{record_id}", json=diff)

    async def delete(self, entity_type: EntityType, record_id: str) -> None:
        await self._request("DELETE", f"/collections/{entity_type.collection}/{record_id}")

    async def query(self, entity_type: EntityType, filter: dict | None = None) -> list[Record]:
        params = {**(filter or {}), "limit": QUERY_LIMIT}
        data = await self._request("GET", f"/collections/{entity_type.collection}", params=params)

        if isinstance(data, dict):
            data = data.get("records", [])
        if not isinstance(data, list):
            logger.warning(f"Unexpected query response for {entity_type.collection}")
            return []

        return [_to_record(entity_type, item) for item in data if isinstance(item, dict) and "id" in item]


def _json_or_none(response: httpx.Response):
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _to_record(entity_type: EntityType, data: dict) -> Record:
    payload = dict(data)
    record_id = str(payload.pop("id"))
    created_at = payload.pop("created_at", None) or utc_now()
    return Record(id=record_id, entity_type=entity_type, payload=payload, created_at=created_at)
