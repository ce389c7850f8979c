import asyncio

import pytest

from wallet_gateway.blockchain.adapter import success
from wallet_gateway.dispatch.interceptor import RequestInterceptor
from wallet_gateway.rpc.messages import (
    INTERNAL_ERROR,
    REQUEST_TIMEOUT,
    FeeResponse,
    ReturnCode,
    SupportChainsRequest,
    SupportChainsResponse,
)


async def test_response_is_returned_unchanged():
    expected = success(SupportChainsResponse, "ok", support=True)

    async def handler(request):
        return expected

    response = await RequestInterceptor().intercept(
        "get_support_chains", SupportChainsRequest(chain="ethereum"), handler, SupportChainsResponse
    )

    assert response is expected


async def test_fault_is_converted_to_generic_error():
    async def handler(request):
        raise AttributeError("'NoneType' object has no attribute 'hash'")

    response = await RequestInterceptor().intercept(
        "get_support_chains", SupportChainsRequest(chain="ethereum"), handler, SupportChainsResponse
    )

    assert response.code == ReturnCode.ERROR
    assert response.msg == INTERNAL_ERROR


async def test_wrong_response_type_is_an_internal_fault():
    async def handler(request):
        return success(FeeResponse, "wrong type")

    response = await RequestInterceptor().intercept(
        "get_support_chains", SupportChainsRequest(chain="ethereum"), handler, SupportChainsResponse
    )

    assert isinstance(response, SupportChainsResponse)
    assert response.msg == INTERNAL_ERROR


async def test_timeout_cancels_the_downstream_call():
    state = {"cancelled": False}

    async def handler(request):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            state["cancelled"] = True
            raise

    response = await RequestInterceptor(request_timeout=0.05).intercept(
        "get_support_chains", SupportChainsRequest(chain="ethereum"), handler, SupportChainsResponse
    )

    assert response.code == ReturnCode.ERROR
    assert response.msg == REQUEST_TIMEOUT
    assert state["cancelled"] is True


async def test_caller_cancellation_is_not_swallowed():
    async def handler(request):
        raise asyncio.CancelledError()

    with pytest.raises(asyncio.CancelledError):
        await RequestInterceptor().intercept(
            "get_support_chains", SupportChainsRequest(chain="ethereum"), handler, SupportChainsResponse
        )
