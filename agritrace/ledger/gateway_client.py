"""
HTTP ledger gateway client using httpx.

Talks to a REST gateway deployed next to a ledger peer:

    POST {base_url}/api/v1/channels/{channel}/chaincodes/{chaincode}/submit
    POST {base_url}/api/v1/channels/{channel}/chaincodes/{chaincode}/evaluate

with body ``{"transaction": name, "args": [...]}`` and response
``{"result": <json>}``. Error responses carry ``{"reason", "message"}``.
"""

import json
from typing import Any

import httpx

from agritrace.observability.logger import get_logger

from .base import LedgerClient, LedgerOutcomeUnknown, LedgerRejected, LedgerTimeout, LedgerUnavailable

logger = get_logger(__name__)

_REJECTION_BY_STATUS = {
    400: LedgerRejected.INVALID,
    404: LedgerRejected.NOT_FOUND,
    409: LedgerRejected.CONFLICT,
    422: LedgerRejected.INVALID,
}


class LedgerGatewayClient(LedgerClient):
    """
    Ledger client backed by an HTTP gateway.

    The underlying httpx.AsyncClient is created lazily and reused; pass
    ``client`` to inject one (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        channel: str = "agri-channel",
        chaincode: str = "agri-chaincode",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.channel = channel
        self.chaincode = chaincode
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _url(self, mode: str) -> str:
        return f"{self.base_url}/api/v1/channels/{self.channel}/chaincodes/{self.chaincode}/{mode}"

    async def submit(self, transaction: str, *args: str) -> Any:
        return await self._call("submit", transaction, args)

    async def evaluate(self, transaction: str, *args: str) -> Any:
        return await self._call("evaluate", transaction, args)

    async def _call(self, mode: str, transaction: str, args: tuple[str, ...]) -> Any:
        payload = {"transaction": transaction, "args": list(args)}
        try:
            resp = await self.client.post(self._url(mode), json=payload)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            # never connected, so the request was not sent
            raise LedgerUnavailable(f"{mode} {transaction} failed: {e}", transaction) from e
        except httpx.TimeoutException as e:
            raise LedgerTimeout(f"{mode} {transaction} timed out: {e}", transaction) from e
        except httpx.TransportError as e:
            if mode == "submit":
                raise LedgerOutcomeUnknown(
                    f"submit {transaction} lost after the request was sent: {e}", transaction
                ) from e
            raise LedgerUnavailable(f"{mode} {transaction} failed: {e}", transaction) from e

        if resp.status_code >= 400:
            self._raise_for_status(resp, mode, transaction)

        try:
            return self._decode_result(resp)
        except ValueError as e:
            message = f"{mode} {transaction} returned a malformed body: {e}"
            if mode == "submit":
                raise LedgerOutcomeUnknown(message, transaction) from e
            raise LedgerUnavailable(message, transaction) from e

    def _raise_for_status(self, resp: httpx.Response, mode: str, transaction: str) -> None:
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or resp.text or f"HTTP {resp.status_code}"

        logger.warning(
            f"Ledger gateway returned {resp.status_code} for {mode} {transaction}",
            extra={"transaction": transaction, "mode": mode, "status_code": resp.status_code},
        )

        if resp.status_code in (408, 504):
            raise LedgerTimeout(message, transaction)
        if resp.status_code in _REJECTION_BY_STATUS:
            reason = body.get("reason") or _REJECTION_BY_STATUS[resp.status_code]
            raise LedgerRejected(message, transaction, reason=reason)
        # 503 is refused before execution; other server errors may follow a commit
        if mode == "submit" and resp.status_code >= 500 and resp.status_code != 503:
            raise LedgerOutcomeUnknown(message, transaction)
        raise LedgerUnavailable(message, transaction)

    @staticmethod
    def _decode_result(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        body = resp.json()
        if not isinstance(body, dict):
            raise ValueError("expected a JSON object")
        result = body.get("result")
        # chaincode results may arrive as a JSON-encoded string
        if isinstance(result, str):
            try:
                return json.loads(result) if result else None
            except ValueError:
                return result
        return result

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
