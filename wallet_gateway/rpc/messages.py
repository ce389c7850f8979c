"""
Module: rpc/messages.py
Description: Messages requête/réponse du service wallet (une paire par opération).

Every request carries the routing key ``chain``; every response carries
``code`` and ``msg``. Payload fields default to zero values so that an ERROR
envelope never needs to fill them.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

UNSUPPORTED_OPERATION = "unsupported operation"
NOT_IMPLEMENTED = "not implemented"
INTERNAL_ERROR = "internal error"
REQUEST_TIMEOUT = "request timeout"


class ReturnCode(str, Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class ChainRequest(BaseModel):
    chain: str = ""
    network: str = "mainnet"
    consumer_token: str = ""


class ChainResponse(BaseModel):
    # ERROR par défaut : seul un adapter peut déclarer un succès
    code: ReturnCode = ReturnCode.ERROR
    msg: str = ""

    @property
    def ok(self) -> bool:
        return self.code == ReturnCode.SUCCESS


# --- Structures partagées ---

class BlockTransaction(BaseModel):
    from_address: str = ""
    to: str = ""
    token_address: str = ""
    contract_wallet: str = ""
    hash: str = ""
    height: int = 0
    amount: str = "0"


class BlockHeader(BaseModel):
    hash: str = ""
    parent_hash: str = ""
    number: str = "0"
    timestamp: int = 0
    miner: str = ""
    state_root: str = ""
    tx_root: str = ""
    receipt_root: str = ""
    gas_limit: int = 0
    gas_used: int = 0
    base_fee: str = ""
    extra: str = ""


class TxMessage(BaseModel):
    hash: str = ""
    index: int = 0
    from_address: str = ""
    to: str = ""
    value: str = "0"
    fee: str = "0"
    status: str = ""
    type: int = 0
    height: str = "0"
    contract_address: str = ""
    datetime: str = ""


# --- Opérations ---

class SupportChainsRequest(ChainRequest):
    pass


class SupportChainsResponse(ChainResponse):
    support: bool = False


class ConvertAddressRequest(ChainRequest):
    type: str = ""
    public_key: str = ""


class ConvertAddressResponse(ChainResponse):
    address: str = ""


class ValidAddressRequest(ChainRequest):
    format: str = ""
    address: str = ""


class ValidAddressResponse(ChainResponse):
    valid: bool = False


class BlockNumberRequest(ChainRequest):
    height: int = 0
    view_tx: bool = False


class BlockHashRequest(ChainRequest):
    hash: str = ""
    view_tx: bool = False


class BlockResponse(ChainResponse):
    height: int = 0
    hash: str = ""
    base_fee: str = ""
    transactions: List[BlockTransaction] = Field(default_factory=list)


class BlockHeaderHashRequest(ChainRequest):
    hash: str = ""


class BlockHeaderNumberRequest(ChainRequest):
    height: int = 0


class BlockHeaderResponse(ChainResponse):
    block_header: Optional[BlockHeader] = None


class AccountRequest(ChainRequest):
    address: str = ""
    contract_address: str = ""


class AccountResponse(ChainResponse):
    account_number: str = "0"
    sequence: str = "0"
    balance: str = "0"


class FeeRequest(ChainRequest):
    coin: str = ""
    raw_tx: str = ""
    address: str = ""


class FeeResponse(ChainResponse):
    slow_fee: str = ""
    normal_fee: str = ""
    fast_fee: str = ""


class SendTxRequest(ChainRequest):
    coin: str = ""
    raw_tx: str = ""


class SendTxResponse(ChainResponse):
    tx_hash: str = ""


class TxAddressRequest(ChainRequest):
    coin: str = ""
    address: str = ""
    contract_address: str = ""
    page: int = 1
    pagesize: int = 20


class TxAddressResponse(ChainResponse):
    tx: List[TxMessage] = Field(default_factory=list)


class TxHashRequest(ChainRequest):
    coin: str = ""
    hash: str = ""


class TxHashResponse(ChainResponse):
    tx: Optional[TxMessage] = None


class BlockByRangeRequest(ChainRequest):
    start: int = 0
    end: int = 0


class BlockByRangeResponse(ChainResponse):
    block_header: List[BlockHeader] = Field(default_factory=list)


class UnSignTransactionRequest(ChainRequest):
    base64_tx: str = ""


class UnSignTransactionResponse(ChainResponse):
    un_sign_tx: str = ""


class SignedTransactionRequest(ChainRequest):
    base64_tx: str = ""
    signature: str = ""
    public_key: str = ""


class SignedTransactionResponse(ChainResponse):
    signed_tx: str = ""
    tx_hash: str = ""


class DecodeTransactionRequest(ChainRequest):
    raw_data: str = ""


class DecodeTransactionResponse(ChainResponse):
    base64_tx: str = ""


class VerifyTransactionRequest(ChainRequest):
    public_key: str = ""
    signature: str = ""


class VerifyTransactionResponse(ChainResponse):
    verify: bool = False


class ExtraDataRequest(ChainRequest):
    address: str = ""
    coin: str = ""


class ExtraDataResponse(ChainResponse):
    value: str = ""
