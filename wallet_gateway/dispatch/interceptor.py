"""
Module: dispatch/interceptor.py
Description: Frontière de faute par requête : journalise l'appel et convertit toute panne interne en réponse ERROR.
"""
import asyncio
import traceback
from typing import Awaitable, Callable, Optional, Type, TypeVar

from loguru import logger

from wallet_gateway.blockchain.adapter import failure
from wallet_gateway.rpc.messages import INTERNAL_ERROR, REQUEST_TIMEOUT, ChainRequest, ChainResponse

R = TypeVar("R", bound=ChainResponse)

Handler = Callable[[ChainRequest], Awaitable[ChainResponse]]


class RequestInterceptor:
    def __init__(self, request_timeout: Optional[float] = None):
        self.request_timeout = request_timeout

    async def intercept(self, operation: str, request: ChainRequest, handler: Handler, response_cls: Type[R]) -> R:
        logger.info(f"{operation} chain={request.chain} req={request.model_dump()}")
        try:
            if self.request_timeout:
                # wait_for annule l'appel réseau en cours à l'expiration
                response = await asyncio.wait_for(handler(request), timeout=self.request_timeout)
            else:
                response = await handler(request)
        except asyncio.TimeoutError:
            logger.error(f"{operation} timed out after {self.request_timeout}s (chain={request.chain})")
            return failure(response_cls, REQUEST_TIMEOUT)
        except Exception as e:
            logger.error(f"panic error in {operation} (chain={request.chain}): {e!r}")
            logger.debug(traceback.format_exc())
            return failure(response_cls, INTERNAL_ERROR)

        if not isinstance(response, response_cls):
            logger.error(f"{operation} returned {type(response).__name__}, expected {response_cls.__name__}")
            return failure(response_cls, INTERNAL_ERROR)

        logger.debug(f"Finish handling {operation}: code={response.code.value} msg={response.msg!r}")
        return response
