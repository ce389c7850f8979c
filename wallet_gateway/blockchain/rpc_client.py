import itertools
import json
import time
from typing import Any, Optional

import httpx
from loguru import logger

from wallet_gateway.blockchain.errors import UpstreamError


class JsonRpcClient:
    """Client JSON-RPC 2.0 partagé (Ethereum, Solana).

    One pooled ``httpx.AsyncClient`` per node endpoint; safe to share between
    concurrent requests. Every failure is raised as ``UpstreamError``.
    """

    def __init__(self, url: str, timeout: float = 15.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def call(self, method: str, params: list = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params if params else [],
        }
        start = time.time()
        try:
            response = await self._client.post(self.url, content=json.dumps(payload))
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            raise UpstreamError(f"transport error: {exc}", method) from exc
        except ValueError as exc:
            raise UpstreamError("malformed JSON response", method) from exc

        latency = (time.time() - start) * 1000
        logger.debug(f"RPC {method} latency: {latency:.1f}ms")

        if not isinstance(body, dict):
            raise UpstreamError("malformed JSON-RPC envelope", method)
        if body.get("error"):
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise UpstreamError(f"node error: {message}", method)
        if "result" not in body:
            raise UpstreamError("missing result", method)
        return body["result"]

    async def aclose(self):
        await self._client.aclose()


def hex_to_int(value: Any, field: str = "value") -> int:
    """Convertit une quantité hexadécimale JSON-RPC ; lève UpstreamError si invalide."""
    # eth_call renvoie "0x" pour un contrat sans donnée
    if value is None or value in ("", "0x"):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(value, 16)
    except (TypeError, ValueError):
        raise UpstreamError(f"malformed quantity for {field}: {value!r}")


def dec_to_int(value: Any, field: str = "value") -> int:
    """Convertit un entier décimal renvoyé par un nœud ou une API ; lève UpstreamError si invalide."""
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        raise UpstreamError(f"malformed integer for {field}: {value!r}")
