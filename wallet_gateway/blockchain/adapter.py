"""
Module: blockchain/adapter.py
Description: Contrat commun à tous les adapters de chaîne (une méthode par opération wallet).

Every operation takes one request model and returns the matching response
model. Operations a chain does not support answer ``not implemented`` with an
ERROR envelope; they never raise.
"""
from abc import ABC, abstractmethod
from collections import OrderedDict, namedtuple
from functools import wraps
from typing import Type, TypeVar

from loguru import logger

from wallet_gateway.blockchain.errors import InvalidRequestError, UpstreamError
from wallet_gateway.rpc.messages import (
    NOT_IMPLEMENTED,
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
    ChainResponse,
    ConvertAddressRequest,
    ConvertAddressResponse,
    DecodeTransactionRequest,
    DecodeTransactionResponse,
    ExtraDataRequest,
    ExtraDataResponse,
    FeeRequest,
    FeeResponse,
    ReturnCode,
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

R = TypeVar("R", bound=ChainResponse)

Operation = namedtuple("Operation", ["request", "response"])

# Table des opérations, dans l'ordre de l'API publique
OPERATIONS = OrderedDict([
    ("get_support_chains", Operation(SupportChainsRequest, SupportChainsResponse)),
    ("convert_address", Operation(ConvertAddressRequest, ConvertAddressResponse)),
    ("valid_address", Operation(ValidAddressRequest, ValidAddressResponse)),
    ("get_block_by_number", Operation(BlockNumberRequest, BlockResponse)),
    ("get_block_by_hash", Operation(BlockHashRequest, BlockResponse)),
    ("get_block_header_by_hash", Operation(BlockHeaderHashRequest, BlockHeaderResponse)),
    ("get_block_header_by_number", Operation(BlockHeaderNumberRequest, BlockHeaderResponse)),
    ("get_account", Operation(AccountRequest, AccountResponse)),
    ("get_fee", Operation(FeeRequest, FeeResponse)),
    ("send_tx", Operation(SendTxRequest, SendTxResponse)),
    ("get_tx_by_address", Operation(TxAddressRequest, TxAddressResponse)),
    ("get_tx_by_hash", Operation(TxHashRequest, TxHashResponse)),
    ("get_block_by_range", Operation(BlockByRangeRequest, BlockByRangeResponse)),
    ("create_unsign_transaction", Operation(UnSignTransactionRequest, UnSignTransactionResponse)),
    ("build_signed_transaction", Operation(SignedTransactionRequest, SignedTransactionResponse)),
    ("decode_transaction", Operation(DecodeTransactionRequest, DecodeTransactionResponse)),
    ("verify_signed_transaction", Operation(VerifyTransactionRequest, VerifyTransactionResponse)),
    ("get_extra_data", Operation(ExtraDataRequest, ExtraDataResponse)),
])


def success(response_cls: Type[R], msg: str, **payload) -> R:
    return response_cls(code=ReturnCode.SUCCESS, msg=msg, **payload)


def failure(response_cls: Type[R], msg: str) -> R:
    return response_cls(code=ReturnCode.ERROR, msg=msg)


def not_implemented(response_cls: Type[R]) -> R:
    return failure(response_cls, NOT_IMPLEMENTED)


def handle_upstream_errors(response_cls: Type[ChainResponse]):
    """Décorateur : convertit les erreurs réseau / d'entrée en enveloppe ERROR.

    Anything else propagates to the request interceptor as an internal fault.
    """
    def decorator(func):
        operation = func.__name__.replace("_", " ")

        @wraps(func)
        async def wrapper(self, request):
            try:
                return await func(self, request)
            except UpstreamError as e:
                logger.error(f"[{self.chain_name}] {operation} failed: {e}")
                return failure(response_cls, f"{operation} failed: {e}")
            except InvalidRequestError as e:
                logger.warning(f"[{self.chain_name}] {operation} rejected: {e}")
                return failure(response_cls, str(e))
        return wrapper
    return decorator


class ChainAdapter(ABC):
    """Interface wallet qu'implémente chaque chaîne supportée."""

    chain_name: str = ""

    @abstractmethod
    async def get_support_chains(self, request: SupportChainsRequest) -> SupportChainsResponse:
        ...

    @abstractmethod
    async def convert_address(self, request: ConvertAddressRequest) -> ConvertAddressResponse:
        ...

    @abstractmethod
    async def valid_address(self, request: ValidAddressRequest) -> ValidAddressResponse:
        ...

    async def get_block_by_number(self, request: BlockNumberRequest) -> BlockResponse:
        return not_implemented(BlockResponse)

    async def get_block_by_hash(self, request: BlockHashRequest) -> BlockResponse:
        return not_implemented(BlockResponse)

    async def get_block_header_by_hash(self, request: BlockHeaderHashRequest) -> BlockHeaderResponse:
        return not_implemented(BlockHeaderResponse)

    async def get_block_header_by_number(self, request: BlockHeaderNumberRequest) -> BlockHeaderResponse:
        return not_implemented(BlockHeaderResponse)

    async def get_account(self, request: AccountRequest) -> AccountResponse:
        return not_implemented(AccountResponse)

    async def get_fee(self, request: FeeRequest) -> FeeResponse:
        return not_implemented(FeeResponse)

    async def send_tx(self, request: SendTxRequest) -> SendTxResponse:
        return not_implemented(SendTxResponse)

    async def get_tx_by_address(self, request: TxAddressRequest) -> TxAddressResponse:
        return not_implemented(TxAddressResponse)

    async def get_tx_by_hash(self, request: TxHashRequest) -> TxHashResponse:
        return not_implemented(TxHashResponse)

    async def get_block_by_range(self, request: BlockByRangeRequest) -> BlockByRangeResponse:
        return not_implemented(BlockByRangeResponse)

    async def create_unsign_transaction(self, request: UnSignTransactionRequest) -> UnSignTransactionResponse:
        return not_implemented(UnSignTransactionResponse)

    async def build_signed_transaction(self, request: SignedTransactionRequest) -> SignedTransactionResponse:
        return not_implemented(SignedTransactionResponse)

    async def decode_transaction(self, request: DecodeTransactionRequest) -> DecodeTransactionResponse:
        return not_implemented(DecodeTransactionResponse)

    async def verify_signed_transaction(self, request: VerifyTransactionRequest) -> VerifyTransactionResponse:
        return not_implemented(VerifyTransactionResponse)

    async def get_extra_data(self, request: ExtraDataRequest) -> ExtraDataResponse:
        return not_implemented(ExtraDataResponse)

    async def aclose(self):
        """Ferme les clients réseau de l'adapter (appelé à l'arrêt du service)."""
        return None
