"""
Module: blockchain/solana_adapter.py
Description: Adapter pour Solana (adresses, soldes, blocs, transactions) compatible avec le registre de chaînes.
"""
import base64
import json
import statistics
from typing import Any, Dict, List

import base58
from loguru import logger
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from wallet_gateway.blockchain.adapter import (
    ChainAdapter,
    failure,
    handle_upstream_errors,
    success,
)
from wallet_gateway.blockchain.errors import InvalidRequestError, UpstreamError
from wallet_gateway.blockchain.rpc_client import JsonRpcClient, dec_to_int
from wallet_gateway.config.settings import Settings
from wallet_gateway.rpc.messages import (
    AccountRequest,
    AccountResponse,
    BlockByRangeRequest,
    BlockByRangeResponse,
    BlockHeader,
    BlockHeaderNumberRequest,
    BlockHeaderResponse,
    BlockNumberRequest,
    BlockResponse,
    BlockTransaction,
    ConvertAddressRequest,
    ConvertAddressResponse,
    DecodeTransactionRequest,
    DecodeTransactionResponse,
    FeeRequest,
    FeeResponse,
    SendTxRequest,
    SendTxResponse,
    SupportChainsRequest,
    SupportChainsResponse,
    TxAddressRequest,
    TxAddressResponse,
    TxHashRequest,
    TxHashResponse,
    TxMessage,
    ValidAddressRequest,
    ValidAddressResponse,
    VerifyTransactionRequest,
    VerifyTransactionResponse,
)

CHAIN_NAME = "solana"

LAMPORTS_PER_SIGNATURE = 5000
MAX_BLOCK_RANGE = 100
MAX_SIGNATURES_LIMIT = 1000


def _decode_pubkey(address: str) -> Pubkey:
    try:
        raw = base58.b58decode(address or "")
    except ValueError:
        raise InvalidRequestError(f"invalid address: {address!r}")
    if len(raw) != 32:
        raise InvalidRequestError(f"invalid address: {address!r}")
    return Pubkey.from_bytes(raw)


def _decode_transaction(raw_tx: str) -> Transaction:
    try:
        raw = base58.b58decode(raw_tx or "")
    except ValueError:
        raise InvalidRequestError("raw transaction must be base58 encoded")
    if not raw:
        raise InvalidRequestError("raw transaction is empty")
    try:
        return Transaction.from_bytes(raw)
    except Exception as e:
        raise InvalidRequestError(f"cannot decode transaction: {e}")


def _tx_endpoints(transaction: Dict[str, Any], meta: Dict[str, Any]):
    """Renvoie (émetteur, destinataire, montant en lamports) d'un transfert natif simple."""
    keys = (transaction.get("message") or {}).get("accountKeys") or []
    keys = [k.get("pubkey", "") if isinstance(k, dict) else k for k in keys]
    sender = keys[0] if keys else ""
    receiver = keys[1] if len(keys) > 1 else ""
    amount = 0
    pre, post = meta.get("preBalances") or [], meta.get("postBalances") or []
    if len(pre) > 1 and len(post) > 1:
        amount = abs(dec_to_int(post[1], "postBalances") - dec_to_int(pre[1], "preBalances"))
    return sender, receiver, amount


class SolanaAdapter(ChainAdapter):
    chain_name = CHAIN_NAME

    def __init__(self, rpc: JsonRpcClient):
        self.rpc = rpc

    async def get_support_chains(self, request: SupportChainsRequest) -> SupportChainsResponse:
        return success(SupportChainsResponse, "Support this chain", support=True)

    @handle_upstream_errors(ConvertAddressResponse)
    async def convert_address(self, request: ConvertAddressRequest) -> ConvertAddressResponse:
        try:
            public_key = bytes.fromhex(request.public_key.replace("0x", "", 1))
        except ValueError:
            raise InvalidRequestError("public_key is not valid hex")
        if len(public_key) != 32:
            raise InvalidRequestError(f"ed25519 public key must be 32 bytes, got {len(public_key)}")
        return success(ConvertAddressResponse, "convert address success", address=str(Pubkey.from_bytes(public_key)))

    async def valid_address(self, request: ValidAddressRequest) -> ValidAddressResponse:
        try:
            _decode_pubkey(request.address)
            valid = True
        except InvalidRequestError:
            valid = False
        return success(ValidAddressResponse, "valid address" if valid else "invalid address", valid=valid)

    @handle_upstream_errors(BlockResponse)
    async def get_block_by_number(self, request: BlockNumberRequest) -> BlockResponse:
        block = await self._get_block(request.height, "full" if request.view_tx else "signatures")
        if not block:
            return failure(BlockResponse, f"block at slot {request.height} not found")
        transactions = []
        for item in block.get("transactions") or []:
            transaction, meta = item.get("transaction") or {}, item.get("meta") or {}
            sender, receiver, amount = _tx_endpoints(transaction, meta)
            signatures = transaction.get("signatures") or [""]
            transactions.append(BlockTransaction(
                from_address=sender,
                to=receiver,
                hash=signatures[0],
                height=request.height,
                amount=str(amount),
            ))
        for signature in block.get("signatures") or []:
            transactions.append(BlockTransaction(hash=signature, height=request.height))
        return success(
            BlockResponse,
            "get block by number success",
            height=request.height,
            hash=block.get("blockhash", ""),
            transactions=transactions,
        )

    @handle_upstream_errors(BlockHeaderResponse)
    async def get_block_header_by_number(self, request: BlockHeaderNumberRequest) -> BlockHeaderResponse:
        block = await self._get_block(request.height, "none")
        if not block:
            return failure(BlockHeaderResponse, f"block at slot {request.height} not found")
        return success(BlockHeaderResponse, "get block header by number success", block_header=self._header(request.height, block))

    @handle_upstream_errors(BlockByRangeResponse)
    async def get_block_by_range(self, request: BlockByRangeRequest) -> BlockByRangeResponse:
        if request.start < 0 or request.end < request.start:
            raise InvalidRequestError("invalid block range")
        if request.end - request.start >= MAX_BLOCK_RANGE:
            raise InvalidRequestError(f"block range is limited to {MAX_BLOCK_RANGE} slots")
        slots = await self.rpc.call("getBlocks", [request.start, request.end])
        headers: List[BlockHeader] = []
        for slot in slots or []:
            block = await self._get_block(slot, "none")
            if block:
                headers.append(self._header(slot, block))
        return success(BlockByRangeResponse, "get block by range success", block_header=headers)

    @handle_upstream_errors(AccountResponse)
    async def get_account(self, request: AccountRequest) -> AccountResponse:
        owner = str(_decode_pubkey(request.address))
        if request.contract_address:
            mint = str(_decode_pubkey(request.contract_address))
            result = await self.rpc.call("getTokenAccountsByOwner", [owner, {"mint": mint}, {"encoding": "jsonParsed"}])
            balance = 0
            for account in (result or {}).get("value") or []:
                try:
                    amount = account["account"]["data"]["parsed"]["info"]["tokenAmount"]["amount"]
                    balance += int(amount)
                except (KeyError, TypeError, ValueError):
                    raise UpstreamError("malformed token account")
        else:
            result = await self.rpc.call("getBalance", [owner])
            balance = (result or {}).get("value", 0) if isinstance(result, dict) else result
        return success(AccountResponse, "get account success", account_number="0", sequence="0", balance=str(balance))

    @handle_upstream_errors(FeeResponse)
    async def get_fee(self, request: FeeRequest) -> FeeResponse:
        samples = await self.rpc.call("getRecentPrioritizationFees", [])
        fees = [dec_to_int(s.get("prioritizationFee"), "prioritizationFee") for s in samples or [] if isinstance(s, dict)]
        median = int(statistics.median(fees)) if fees else 0
        highest = max(fees) if fees else 0
        return success(
            FeeResponse,
            "get fee success",
            slow_fee=str(LAMPORTS_PER_SIGNATURE),
            normal_fee=str(LAMPORTS_PER_SIGNATURE + median),
            fast_fee=str(LAMPORTS_PER_SIGNATURE + highest),
        )

    @handle_upstream_errors(SendTxResponse)
    async def send_tx(self, request: SendTxRequest) -> SendTxResponse:
        tx = _decode_transaction(request.raw_tx)
        encoded = base64.b64encode(bytes(tx)).decode()
        signature = await self.rpc.call("sendTransaction", [encoded, {"encoding": "base64"}])
        logger.info(f"[{CHAIN_NAME}] transaction broadcast: {signature}")
        return success(SendTxResponse, "send tx success", tx_hash=signature)

    @handle_upstream_errors(TxAddressResponse)
    async def get_tx_by_address(self, request: TxAddressRequest) -> TxAddressResponse:
        address = str(_decode_pubkey(request.address))
        page, pagesize = max(request.page, 1), max(request.pagesize, 1)
        limit = page * pagesize
        # getSignaturesForAddress ne renvoie pas plus de 1000 entrées par appel
        if limit > MAX_SIGNATURES_LIMIT:
            raise InvalidRequestError(f"page {page} of size {pagesize} is beyond the latest {MAX_SIGNATURES_LIMIT} signatures")
        entries = await self.rpc.call("getSignaturesForAddress", [address, {"limit": limit}])
        txs = [
            TxMessage(
                hash=entry.get("signature", ""),
                status="Failed" if entry.get("err") else "Success",
                height=str(entry.get("slot", 0)),
                datetime=str(entry.get("blockTime") or ""),
            )
            for entry in (entries or [])[(page - 1) * pagesize:page * pagesize]
        ]
        return success(TxAddressResponse, "get tx by address success", tx=txs)

    @handle_upstream_errors(TxHashResponse)
    async def get_tx_by_hash(self, request: TxHashRequest) -> TxHashResponse:
        result = await self.rpc.call("getTransaction", [request.hash, {"encoding": "json", "maxSupportedTransactionVersion": 0}])
        if not result:
            return failure(TxHashResponse, f"transaction {request.hash} not found")
        meta = result.get("meta") or {}
        sender, receiver, amount = _tx_endpoints(result.get("transaction") or {}, meta)
        message = TxMessage(
            hash=request.hash,
            from_address=sender,
            to=receiver,
            value=str(amount),
            fee=str(meta.get("fee", 0)),
            status="Failed" if meta.get("err") else "Success",
            height=str(result.get("slot", 0)),
            datetime=str(result.get("blockTime") or ""),
        )
        return success(TxHashResponse, "get tx by hash success", tx=message)

    @handle_upstream_errors(DecodeTransactionResponse)
    async def decode_transaction(self, request: DecodeTransactionRequest) -> DecodeTransactionResponse:
        tx = _decode_transaction(request.raw_data)
        message = tx.message
        decoded = {
            "signatures": [str(s) for s in tx.signatures],
            "account_keys": [str(k) for k in message.account_keys],
            "recent_blockhash": str(message.recent_blockhash),
            "num_required_signatures": message.header.num_required_signatures,
            "num_instructions": len(message.instructions),
        }
        encoded = base64.b64encode(json.dumps(decoded).encode()).decode()
        return success(DecodeTransactionResponse, "decode transaction success", base64_tx=encoded)

    @handle_upstream_errors(VerifyTransactionResponse)
    async def verify_signed_transaction(self, request: VerifyTransactionRequest) -> VerifyTransactionResponse:
        try:
            raw_key = bytes.fromhex(request.public_key.replace("0x", "", 1))
        except ValueError:
            raw_key = b""
        if len(raw_key) != 32:
            raise InvalidRequestError("public_key must be a 32-byte hex ed25519 key")
        public_key = Pubkey.from_bytes(raw_key)
        tx = _decode_transaction(request.signature)
        message = tx.message
        signers = list(message.account_keys[:message.header.num_required_signatures])
        message_bytes = bytes(message)
        # Chaque signature doit correspondre au signataire requis de même rang
        signatures_ok = len(tx.signatures) == len(signers) and all(
            signature.verify(signer, message_bytes) for signature, signer in zip(tx.signatures, signers)
        )
        verified = signatures_ok and public_key in signers
        return success(VerifyTransactionResponse, "verify tx success" if verified else "verify tx fail", verify=verified)

    async def aclose(self):
        await self.rpc.aclose()

    async def _get_block(self, slot: int, details: str):
        if slot < 0:
            raise InvalidRequestError("slot must be positive")
        return await self.rpc.call("getBlock", [slot, {
            "encoding": "json",
            "transactionDetails": details,
            "rewards": False,
            "maxSupportedTransactionVersion": 0,
        }])

    @staticmethod
    def _header(slot: int, block: Dict[str, Any]) -> BlockHeader:
        return BlockHeader(
            hash=block.get("blockhash", ""),
            parent_hash=block.get("previousBlockhash", ""),
            number=str(slot),
            timestamp=block.get("blockTime") or 0,
        )


def new_solana_adapter(settings: Settings) -> SolanaAdapter:
    node = settings.node("sol")
    return SolanaAdapter(JsonRpcClient(node.rpc_url, timeout=node.timeout))
