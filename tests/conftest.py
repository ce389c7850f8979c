"""
Pytest configuration and shared fixtures for the wallet gateway tests
"""
import json

import httpx
import pytest

from wallet_gateway.blockchain.adapter import OPERATIONS, ChainAdapter, success
from wallet_gateway.blockchain.manager import AdapterRegistry
from wallet_gateway.dispatch.dispatcher import ChainDispatcher


class RecordingAdapter(ChainAdapter):
    """Adapter de test : enregistre chaque appel, lève les fautes configurées."""

    def __init__(self, chain_name: str):
        self.chain_name = chain_name
        self.calls = []
        self.faults = {}
        self.closed = False

    async def _handle(self, operation, request):
        self.calls.append((operation, request))
        if operation in self.faults:
            raise self.faults[operation]
        return success(OPERATIONS[operation].response, f"{operation} handled by {self.chain_name}")

    async def get_support_chains(self, request):
        return await self._handle("get_support_chains", request)

    async def convert_address(self, request):
        return await self._handle("convert_address", request)

    async def valid_address(self, request):
        return await self._handle("valid_address", request)

    async def aclose(self):
        self.closed = True


def _recording(operation):
    async def method(self, request):
        return await self._handle(operation, request)
    method.__name__ = operation
    return method


for _operation in OPERATIONS:
    setattr(RecordingAdapter, _operation, _recording(_operation))


class RpcNode:
    """Nœud JSON-RPC simulé pour httpx.MockTransport."""

    def __init__(self, results=None, errors=None):
        self.results = results or {}
        self.errors = errors or {}
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        method, params = payload["method"], payload["params"]
        self.calls.append((method, params))
        if method in self.errors:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "error": {"code": -32000, "message": self.errors[method]}})
        result = self.results.get(method)
        if callable(result):
            result = result(params)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})

    def methods(self):
        return [method for method, _ in self.calls]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def eth_adapter():
    return RecordingAdapter("ethereum")


@pytest.fixture
def sol_adapter():
    return RecordingAdapter("solana")


@pytest.fixture
def registry(eth_adapter, sol_adapter):
    return AdapterRegistry({"ethereum": eth_adapter, "solana": sol_adapter})


@pytest.fixture
def dispatcher(registry):
    return ChainDispatcher(registry)
