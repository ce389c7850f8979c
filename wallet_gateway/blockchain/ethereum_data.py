"""
Module: blockchain/ethereum_data.py
Description: Client de l'API de données hors chaîne (compatible Etherscan) pour l'historique des adresses.
"""
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from wallet_gateway.blockchain.cache_manager import BlockchainCache
from wallet_gateway.blockchain.errors import UpstreamError

NO_TRANSACTIONS = "No transactions found"


class EthDataClient:
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 15.0,
        cache_ttl: int = 15,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError("data api url is required")
        self.base_url = base_url
        self.api_key = api_key
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.cache = BlockchainCache(maxsize=1000, ttl=cache_ttl)
        self.get_tx_list = self.cache.cache_rpc_call(self._get_tx_list)

    async def _get_tx_list(self, address: str, contract_address: str = "", page: int = 1, offset: int = 20) -> List[Dict[str, Any]]:
        params = {
            "module": "account",
            "action": "tokentx" if contract_address else "txlist",
            "address": address,
            "page": page,
            "offset": offset,
            "sort": "desc",
        }
        if contract_address:
            params["contractaddress"] = contract_address
        if self.api_key:
            params["apikey"] = self.api_key

        try:
            response = await self._client.get(self.base_url, params=params)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            raise UpstreamError(f"data api transport error: {exc}") from exc
        except ValueError as exc:
            raise UpstreamError("data api returned malformed JSON") from exc

        if not isinstance(body, dict):
            raise UpstreamError("data api returned an unexpected payload")
        result = body.get("result")
        if str(body.get("status")) == "1" and isinstance(result, list):
            return result
        if body.get("message") == NO_TRANSACTIONS or result == []:
            logger.debug(f"No transactions for {address}")
            return []
        raise UpstreamError(f"data api error: {body.get('message')} {result}")

    async def aclose(self):
        await self._client.aclose()
