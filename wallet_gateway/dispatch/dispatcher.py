"""
Module: dispatch/dispatcher.py
Description: Façade du service wallet : chaque opération passe par l'intercepteur, le validateur puis l'adapter de la chaîne.
"""
from typing import Optional

from wallet_gateway.blockchain.adapter import OPERATIONS
from wallet_gateway.blockchain.manager import AdapterRegistry
from wallet_gateway.dispatch.interceptor import RequestInterceptor
from wallet_gateway.dispatch.validator import DispatchValidator
from wallet_gateway.rpc.messages import (
    AccountRequest,
    AccountResponse,
    BlockByRangeRequest,
    BlockByRangeResponse,
    BlockHashRequest,
    BlockHeaderHashRequest,
    BlockHeaderNumberRequest,
    BlockHeaderResponse,
    BlockNumberRequest,
    BlockResponse,
    ChainRequest,
    ChainResponse,
    ConvertAddressRequest,
    ConvertAddressResponse,
    DecodeTransactionRequest,
    DecodeTransactionResponse,
    ExtraDataRequest,
    ExtraDataResponse,
    FeeRequest,
    FeeResponse,
    SendTxRequest,
    SendTxResponse,
    SignedTransactionRequest,
    SignedTransactionResponse,
    SupportChainsRequest,
    SupportChainsResponse,
    TxAddressRequest,
    TxAddressResponse,
    TxHashRequest,
    TxHashResponse,
    UnSignTransactionRequest,
    UnSignTransactionResponse,
    ValidAddressRequest,
    ValidAddressResponse,
    VerifyTransactionRequest,
    VerifyTransactionResponse,
)


class ChainDispatcher:
    """Classe centrale qui route chaque requête vers l'adapter de sa chaîne.

    Holds no mutable state of its own: the registry is read-only and every
    call gets its own fault boundary from the interceptor.
    """

    def __init__(self, registry: AdapterRegistry, interceptor: Optional[RequestInterceptor] = None):
        self.registry = registry
        self.validator = DispatchValidator(registry)
        self.interceptor = interceptor or RequestInterceptor()

    async def dispatch(self, operation: str, request: ChainRequest) -> ChainResponse:
        if operation not in OPERATIONS:
            raise KeyError(f"unknown operation: {operation}")
        response_cls = OPERATIONS[operation].response

        async def handler(req: ChainRequest) -> ChainResponse:
            adapter = self.validator.resolve(req)
            if adapter is None:
                return self.validator.reject(response_cls)
            return await getattr(adapter, operation)(req)

        return await self.interceptor.intercept(operation, request, handler, response_cls)

    async def get_support_chains(self, request: SupportChainsRequest) -> SupportChainsResponse:
        return await self.dispatch("get_support_chains", request)

    async def convert_address(self, request: ConvertAddressRequest) -> ConvertAddressResponse:
        return await self.dispatch("convert_address", request)

    async def valid_address(self, request: ValidAddressRequest) -> ValidAddressResponse:
        return await self.dispatch("valid_address", request)

    async def get_block_by_number(self, request: BlockNumberRequest) -> BlockResponse:
        return await self.dispatch("get_block_by_number", request)

    async def get_block_by_hash(self, request: BlockHashRequest) -> BlockResponse:
        return await self.dispatch("get_block_by_hash", request)

    async def get_block_header_by_hash(self, request: BlockHeaderHashRequest) -> BlockHeaderResponse:
        return await self.dispatch("get_block_header_by_hash", request)

    async def get_block_header_by_number(self, request: BlockHeaderNumberRequest) -> BlockHeaderResponse:
        return await self.dispatch("get_block_header_by_number", request)

    async def get_account(self, request: AccountRequest) -> AccountResponse:
        return await self.dispatch("get_account", request)

    async def get_fee(self, request: FeeRequest) -> FeeResponse:
        return await self.dispatch("get_fee", request)

    async def send_tx(self, request: SendTxRequest) -> SendTxResponse:
        return await self.dispatch("send_tx", request)

    async def get_tx_by_address(self, request: TxAddressRequest) -> TxAddressResponse:
        return await self.dispatch("get_tx_by_address", request)

    async def get_tx_by_hash(self, request: TxHashRequest) -> TxHashResponse:
        return await self.dispatch("get_tx_by_hash", request)

    async def get_block_by_range(self, request: BlockByRangeRequest) -> BlockByRangeResponse:
        return await self.dispatch("get_block_by_range", request)

    async def create_unsign_transaction(self, request: UnSignTransactionRequest) -> UnSignTransactionResponse:
        return await self.dispatch("create_unsign_transaction", request)

    async def build_signed_transaction(self, request: SignedTransactionRequest) -> SignedTransactionResponse:
        return await self.dispatch("build_signed_transaction", request)

    async def decode_transaction(self, request: DecodeTransactionRequest) -> DecodeTransactionResponse:
        return await self.dispatch("decode_transaction", request)

    async def verify_signed_transaction(self, request: VerifyTransactionRequest) -> VerifyTransactionResponse:
        return await self.dispatch("verify_signed_transaction", request)

    async def get_extra_data(self, request: ExtraDataRequest) -> ExtraDataResponse:
        return await self.dispatch("get_extra_data", request)
