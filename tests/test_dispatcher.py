"""
Tests for the dispatcher façade: routing, rejection of unknown chains and fault isolation.
"""
import asyncio

import pytest
from conftest import RecordingAdapter, RpcNode

from wallet_gateway.blockchain.adapter import OPERATIONS, ChainAdapter, success
from wallet_gateway.blockchain.ethereum_adapter import EthereumAdapter
from wallet_gateway.blockchain.manager import AdapterRegistry, build_registry
from wallet_gateway.blockchain.rpc_client import JsonRpcClient
from wallet_gateway.config.settings import Settings
from wallet_gateway.dispatch.dispatcher import ChainDispatcher
from wallet_gateway.rpc.messages import (
    INTERNAL_ERROR,
    NOT_IMPLEMENTED,
    UNSUPPORTED_OPERATION,
    AccountRequest,
    ExtraDataRequest,
    FeeRequest,
    ReturnCode,
    SupportChainsRequest,
    SupportChainsResponse,
)


class MinimalAdapter(ChainAdapter):
    chain_name = "minimal"

    async def get_support_chains(self, request):
        return success(SupportChainsResponse, "Support this chain", support=True)

    async def convert_address(self, request):
        raise AssertionError("not used")

    async def valid_address(self, request):
        raise AssertionError("not used")


@pytest.mark.parametrize("operation", list(OPERATIONS))
async def test_unknown_chain_is_rejected_without_adapter_call(dispatcher, eth_adapter, sol_adapter, operation):
    request = OPERATIONS[operation].request(chain="bitcoin")

    response = await getattr(dispatcher, operation)(request)

    assert isinstance(response, OPERATIONS[operation].response)
    assert response.code == ReturnCode.ERROR
    assert response.msg == UNSUPPORTED_OPERATION
    assert eth_adapter.calls == []
    assert sol_adapter.calls == []


@pytest.mark.parametrize("operation", list(OPERATIONS))
async def test_known_chain_invokes_its_adapter_exactly_once(dispatcher, eth_adapter, sol_adapter, operation):
    request = OPERATIONS[operation].request(chain="solana")

    response = await getattr(dispatcher, operation)(request)

    assert response.code == ReturnCode.SUCCESS
    assert response.msg == f"{operation} handled by solana"
    assert len(sol_adapter.calls) == 1
    called_operation, received = sol_adapter.calls[0]
    assert called_operation == operation
    assert received is request
    assert eth_adapter.calls == []


async def test_chain_identifier_is_case_sensitive(dispatcher, eth_adapter):
    response = await dispatcher.get_support_chains(SupportChainsRequest(chain="Ethereum"))

    assert response.msg == UNSUPPORTED_OPERATION
    assert eth_adapter.calls == []


async def test_adapter_fault_becomes_error_and_service_keeps_serving(dispatcher, eth_adapter, sol_adapter):
    eth_adapter.faults["get_account"] = ZeroDivisionError("division by zero")

    faulted = await dispatcher.get_account(AccountRequest(chain="ethereum", address="0xabc"))
    assert faulted.code == ReturnCode.ERROR
    assert faulted.msg == INTERNAL_ERROR
    assert "division" not in faulted.msg

    after = await dispatcher.get_fee(FeeRequest(chain="ethereum"))
    other = await dispatcher.get_account(AccountRequest(chain="solana", address="abc"))
    assert after.code == ReturnCode.SUCCESS
    assert other.code == ReturnCode.SUCCESS


async def test_fault_does_not_affect_concurrent_requests(dispatcher, eth_adapter):
    eth_adapter.faults["get_account"] = RuntimeError("boom")
    requests = [dispatcher.get_fee(FeeRequest(chain="ethereum")) for _ in range(10)]
    requests.insert(5, dispatcher.get_account(AccountRequest(chain="ethereum")))

    responses = await asyncio.gather(*requests)

    assert [r.code for r in responses].count(ReturnCode.ERROR) == 1
    assert responses[5].msg == INTERNAL_ERROR


async def test_default_operation_answers_not_implemented():
    dispatcher = ChainDispatcher(AdapterRegistry({"minimal": MinimalAdapter()}))

    response = await dispatcher.get_extra_data(ExtraDataRequest(chain="minimal"))

    assert response.code == ReturnCode.ERROR
    assert response.msg == NOT_IMPLEMENTED


async def test_unknown_operation_is_a_programming_error(dispatcher):
    with pytest.raises(KeyError):
        await dispatcher.dispatch("get_everything", SupportChainsRequest(chain="ethereum"))


async def test_support_scenario_with_ethereum_only_configured():
    node = RpcNode()

    def factory(settings):
        return EthereumAdapter(JsonRpcClient("http://node", transport=node.transport()))

    registry = build_registry(Settings(chains=["ethereum"]), factories={"ethereum": factory})
    dispatcher = ChainDispatcher(registry)

    supported = await dispatcher.get_support_chains(SupportChainsRequest(chain="ethereum"))
    rejected = await dispatcher.get_support_chains(SupportChainsRequest(chain="bitcoin"))

    assert supported.code == ReturnCode.SUCCESS
    assert supported.support is True
    assert rejected.code == ReturnCode.ERROR
    assert rejected.msg == UNSUPPORTED_OPERATION
    assert rejected.support is False
    assert node.calls == []
    await registry.aclose()


async def test_upstream_failure_is_not_retried():
    node = RpcNode(errors={"eth_gasPrice": "header not found"})
    adapter = EthereumAdapter(JsonRpcClient("http://node", transport=node.transport()))
    dispatcher = ChainDispatcher(AdapterRegistry({"ethereum": adapter}))

    response = await dispatcher.get_fee(FeeRequest(chain="ethereum"))

    assert response.code == ReturnCode.ERROR
    assert response.msg.startswith("get fee failed")
    assert node.methods() == ["eth_gasPrice"]
    await adapter.aclose()


async def test_recording_adapter_is_a_complete_contract():
    adapter = RecordingAdapter("x")
    for operation, entry in OPERATIONS.items():
        response = await getattr(adapter, operation)(entry.request(chain="x"))
        assert isinstance(response, entry.response)
