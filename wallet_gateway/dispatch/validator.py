from typing import Optional, Type, TypeVar

from loguru import logger

from wallet_gateway.blockchain.adapter import ChainAdapter, failure
from wallet_gateway.blockchain.manager import AdapterRegistry
from wallet_gateway.rpc.messages import UNSUPPORTED_OPERATION, ChainRequest, ChainResponse

R = TypeVar("R", bound=ChainResponse)


class DispatchValidator:
    """Résout la chaîne d'une requête avant tout appel d'adapter."""

    def __init__(self, registry: AdapterRegistry):
        self.registry = registry

    def resolve(self, request: ChainRequest) -> Optional[ChainAdapter]:
        adapter = self.registry.get(request.chain)
        if adapter is None:
            logger.warning(f"Rejected request for unsupported chain '{request.chain}'")
        return adapter

    @staticmethod
    def reject(response_cls: Type[R]) -> R:
        return failure(response_cls, UNSUPPORTED_OPERATION)
