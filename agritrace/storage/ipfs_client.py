"""
IPFS content store using the node's HTTP RPC API through httpx.

Blobs are added unpinned (``pin=false``); the engine pins them
explicitly once the ledger transaction that references them commits.
"""

import httpx

from agritrace.observability.logger import get_logger

from .base import ContentNotFound, ContentStore, ContentStoreUnavailable

logger = get_logger(__name__)

_NOT_FOUND_MARKERS = ("not found", "no link named", "invalid path", "invalid cid", "failed to decode")


class IPFSContentStore(ContentStore):
    """
    Content store backed by an IPFS (Kubo) node.

    Args:
        base_url: RPC API address, e.g. http://localhost:5001
        timeout: Per-request timeout in seconds
        cid_version: CID version used for added content
        client: Optional injected httpx.AsyncClient
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5001",
        timeout: float = 30.0,
        cid_version: int = 1,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cid_version = cid_version
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _post(self, path: str, content_hash: str | None = None, **kwargs) -> httpx.Response:
        try:
            resp = await self.client.post(f"{self.base_url}/api/v0/{path}", **kwargs)
        except httpx.TimeoutException as e:
            raise ContentStoreUnavailable(f"IPFS {path} timed out", content_hash) from e
        except httpx.TransportError as e:
            raise ContentStoreUnavailable(f"IPFS {path} failed: {e}", content_hash) from e

        if resp.status_code >= 400:
            message = self._error_message(resp)
            logger.warning(
                f"IPFS {path} returned {resp.status_code}: {message}",
                extra={"content_hash": content_hash, "status_code": resp.status_code},
            )
            if content_hash and any(marker in message.lower() for marker in _NOT_FOUND_MARKERS):
                raise ContentNotFound(message, content_hash)
            raise ContentStoreUnavailable(message, content_hash)
        return resp

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or f"HTTP {resp.status_code}"
        if isinstance(body, dict):
            return str(body.get("Message", body))
        return str(body)

    async def put(self, data: bytes, name: str) -> str:
        resp = await self._post(
            "add",
            params={"cid-version": str(self.cid_version), "pin": "false", "quieter": "true"},
            files={"file": (name, data)},
        )
        try:
            return resp.json()["Hash"]
        except (ValueError, KeyError) as e:
            raise ContentStoreUnavailable(f"unexpected IPFS add response: {resp.text}") from e

    async def get(self, content_hash: str) -> bytes:
        resp = await self._post("cat", content_hash, params={"arg": content_hash})
        return resp.content

    async def pin(self, content_hash: str) -> None:
        await self._post("pin/add", content_hash, params={"arg": content_hash})

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
