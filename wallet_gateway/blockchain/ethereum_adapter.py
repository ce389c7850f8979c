"""
Module: blockchain/ethereum_adapter.py
Description: Adapter Ethereum (nœud JSON-RPC + API de données) conforme au contrat ChainAdapter.
"""
import base64
import binascii
import json
from typing import Any, Dict, List, Optional

from eth_account import Account
from eth_account.typed_transactions import TypedTransaction
from eth_keys import keys
from hexbytes import HexBytes
from loguru import logger
from web3 import Web3

from wallet_gateway.blockchain.adapter import (
    ChainAdapter,
    failure,
    handle_upstream_errors,
    success,
)
from wallet_gateway.blockchain.cache_manager import BlockchainCache
from wallet_gateway.blockchain.errors import InvalidRequestError
from wallet_gateway.blockchain.ethereum_data import EthDataClient
from wallet_gateway.blockchain.rpc_client import JsonRpcClient, dec_to_int, hex_to_int
from wallet_gateway.config.settings import Settings
from wallet_gateway.rpc.messages import (
    AccountRequest,
    AccountResponse,
    BlockByRangeRequest,
    BlockByRangeResponse,
    BlockHashRequest,
    BlockHeader,
    BlockHeaderHashRequest,
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
    SignedTransactionRequest,
    SignedTransactionResponse,
    SupportChainsRequest,
    SupportChainsResponse,
    TxAddressRequest,
    TxAddressResponse,
    TxHashRequest,
    TxHashResponse,
    TxMessage,
    UnSignTransactionRequest,
    UnSignTransactionResponse,
    ValidAddressRequest,
    ValidAddressResponse,
    VerifyTransactionRequest,
    VerifyTransactionResponse,
)

CHAIN_NAME = "ethereum"

# Sélecteurs ERC-20
ERC20_TRANSFER = "a9059cbb"
ERC20_BALANCE_OF = "70a08231"

MAX_BLOCK_RANGE = 100
DYNAMIC_FEE_TX_TYPE = 2


def _strip_0x(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


def _decode_hex(value: str, field: str) -> bytes:
    try:
        return bytes.fromhex(_strip_0x(value or ""))
    except ValueError:
        raise InvalidRequestError(f"{field} is not valid hex")


def _to_int(value: Any, field: str) -> int:
    try:
        if isinstance(value, int):
            number = value
        else:
            text = str(value)
            number = int(text, 16) if text[:2] in ("0x", "0X") else int(text)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"{field} must be an integer, got {value!r}")
    if number < 0:
        raise InvalidRequestError(f"{field} must not be negative, got {number}")
    return number


def _pad32(hex_value: str) -> str:
    return _strip_0x(hex_value).lower().rjust(64, "0")


def public_key_to_address(public_key: bytes) -> str:
    """Dérive l'adresse EIP-55 d'une clé publique secp256k1.

    Accepts 65-byte uncompressed keys (leading 0x04), raw 64-byte keys and
    33-byte compressed keys.
    """
    if len(public_key) == 65 and public_key[0] == 4:
        raw = public_key[1:]
    elif len(public_key) == 64:
        raw = public_key
    elif len(public_key) == 33 and public_key[0] in (2, 3):
        try:
            raw = keys.PublicKey.from_compressed_bytes(public_key).to_bytes()
        except Exception as e:
            raise InvalidRequestError(f"invalid compressed public key: {e}")
    else:
        raise InvalidRequestError(f"unsupported public key length: {len(public_key)} bytes")
    return Web3.to_checksum_address("0x" + bytes(Web3.keccak(raw))[12:].hex())


def _require_address(address: str, field: str = "address") -> str:
    if not address or not Web3.is_address(address):
        raise InvalidRequestError(f"invalid {field}: {address!r}")
    return Web3.to_checksum_address(address)


def _decode_tx_payload(base64_tx: str) -> Dict[str, Any]:
    try:
        payload = json.loads(base64.b64decode(base64_tx, validate=True))
    except (binascii.Error, ValueError):
        raise InvalidRequestError("base64_tx must be base64 encoded JSON")
    if not isinstance(payload, dict):
        raise InvalidRequestError("base64_tx must encode a JSON object")
    missing = [k for k in ("chain_id", "nonce", "to", "gas_limit", "max_fee_per_gas", "max_priority_fee_per_gas") if k not in payload]
    if missing:
        raise InvalidRequestError(f"base64_tx is missing fields: {', '.join(missing)}")
    return payload


def build_dynamic_fee_tx(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Construit un dictionnaire de transaction EIP-1559 à partir du JSON client."""
    to = _require_address(payload["to"], "to")
    amount = _to_int(payload.get("amount", 0), "amount")
    data = "0x"
    contract_address = payload.get("contract_address")
    if contract_address:
        # Transfert ERC-20 : la valeur native est nulle, le montant passe dans les données
        data = "0x" + ERC20_TRANSFER + _pad32(to) + _pad32(hex(amount))
        to = _require_address(contract_address, "contract_address")
        amount = 0
    return {
        "type": DYNAMIC_FEE_TX_TYPE,
        "chainId": _to_int(payload["chain_id"], "chain_id"),
        "nonce": _to_int(payload["nonce"], "nonce"),
        "maxPriorityFeePerGas": _to_int(payload["max_priority_fee_per_gas"], "max_priority_fee_per_gas"),
        "maxFeePerGas": _to_int(payload["max_fee_per_gas"], "max_fee_per_gas"),
        "gas": _to_int(payload["gas_limit"], "gas_limit"),
        "to": to,
        "value": amount,
        "data": data,
        "accessList": [],
    }


def _signing_hash(tx: Dict[str, Any]) -> bytes:
    try:
        return bytes(TypedTransaction.from_dict(tx).hash())
    except Exception as e:
        raise InvalidRequestError(f"cannot serialize transaction: {e}")


def _encode_signed(tx: Dict[str, Any]) -> bytes:
    try:
        return bytes(TypedTransaction.from_dict(tx).encode())
    except Exception as e:
        raise InvalidRequestError(f"cannot serialize transaction: {e}")


def _split_signature(signature: bytes):
    if len(signature) != 65:
        raise InvalidRequestError(f"signature must be 65 bytes, got {len(signature)}")
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    v = signature[64]
    if v in (27, 28):
        v -= 27
    if v not in (0, 1):
        raise InvalidRequestError(f"invalid recovery id: {signature[64]}")
    return v, r, s


def _recover_sender(raw_tx: bytes) -> str:
    try:
        return Account.recover_transaction(raw_tx)
    except Exception as e:
        raise InvalidRequestError(f"cannot recover transaction signer: {e}")


def _hexify(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_hexify(v) for v in value]
    if isinstance(value, dict):
        return {k: _hexify(v) for k, v in value.items()}
    return value


class EthereumAdapter(ChainAdapter):
    chain_name = CHAIN_NAME

    def __init__(self, rpc: JsonRpcClient, data_client: Optional[EthDataClient] = None):
        self.rpc = rpc
        self.data_client = data_client
        # Un bloc désigné par son hash est immuable
        self.block_cache = BlockchainCache(maxsize=256, ttl=600)

    async def get_support_chains(self, request: SupportChainsRequest) -> SupportChainsResponse:
        return success(SupportChainsResponse, "Support this chain", support=True)

    @handle_upstream_errors(ConvertAddressResponse)
    async def convert_address(self, request: ConvertAddressRequest) -> ConvertAddressResponse:
        public_key = _decode_hex(request.public_key, "public_key")
        address = public_key_to_address(public_key)
        return success(ConvertAddressResponse, "convert address success", address=address)

    async def valid_address(self, request: ValidAddressRequest) -> ValidAddressResponse:
        address = request.address or ""
        valid = Web3.is_address(address) and address.startswith("0x")
        # Une adresse en casse mixte doit respecter la somme de contrôle EIP-55
        if valid and address[2:] != address[2:].lower() and address[2:] != address[2:].upper():
            valid = Web3.is_checksum_address(address)
        return success(ValidAddressResponse, "valid address" if valid else "invalid address", valid=valid)

    @handle_upstream_errors(BlockResponse)
    async def get_block_by_number(self, request: BlockNumberRequest) -> BlockResponse:
        if request.height < 0:
            raise InvalidRequestError("height must be positive")
        block = await self.rpc.call("eth_getBlockByNumber", [hex(request.height), request.view_tx])
        if not block:
            return failure(BlockResponse, f"block {request.height} not found")
        return self._block_response(block, "get block by number success")

    @handle_upstream_errors(BlockResponse)
    async def get_block_by_hash(self, request: BlockHashRequest) -> BlockResponse:
        block_hash = request.hash.lower()
        block = await self.block_cache.get_or_fetch(
            f"block_{block_hash}_{request.view_tx}",
            lambda: self.rpc.call("eth_getBlockByHash", [block_hash, request.view_tx]),
        )
        if not block:
            return failure(BlockResponse, f"block {request.hash} not found")
        return self._block_response(block, "get block by hash success")

    @handle_upstream_errors(BlockHeaderResponse)
    async def get_block_header_by_hash(self, request: BlockHeaderHashRequest) -> BlockHeaderResponse:
        block_hash = request.hash.lower()
        block = await self.block_cache.get_or_fetch(
            f"block_{block_hash}_False",
            lambda: self.rpc.call("eth_getBlockByHash", [block_hash, False]),
        )
        if not block:
            return failure(BlockHeaderResponse, f"block {request.hash} not found")
        return success(BlockHeaderResponse, "get block header by hash success", block_header=self._header(block))

    @handle_upstream_errors(BlockHeaderResponse)
    async def get_block_header_by_number(self, request: BlockHeaderNumberRequest) -> BlockHeaderResponse:
        if request.height < 0:
            raise InvalidRequestError("height must be positive")
        block = await self.rpc.call("eth_getBlockByNumber", [hex(request.height), False])
        if not block:
            return failure(BlockHeaderResponse, f"block {request.height} not found")
        return success(BlockHeaderResponse, "get block header by number success", block_header=self._header(block))

    @handle_upstream_errors(AccountResponse)
    async def get_account(self, request: AccountRequest) -> AccountResponse:
        address = _require_address(request.address)
        nonce = hex_to_int(await self.rpc.call("eth_getTransactionCount", [address, "pending"]), "nonce")
        if request.contract_address:
            contract = _require_address(request.contract_address, "contract_address")
            call = {"to": contract, "data": "0x" + ERC20_BALANCE_OF + _pad32(address)}
            balance = hex_to_int(await self.rpc.call("eth_call", [call, "latest"]), "balanceOf")
        else:
            balance = hex_to_int(await self.rpc.call("eth_getBalance", [address, "latest"]), "balance")
        return success(
            AccountResponse,
            "get account success",
            account_number="0",
            sequence=str(nonce),
            balance=str(balance),
        )

    @handle_upstream_errors(FeeResponse)
    async def get_fee(self, request: FeeRequest) -> FeeResponse:
        gas_price = hex_to_int(await self.rpc.call("eth_gasPrice"), "gasPrice")
        tip = hex_to_int(await self.rpc.call("eth_maxPriorityFeePerGas"), "maxPriorityFeePerGas")
        return success(
            FeeResponse,
            "get fee success",
            slow_fee=str(gas_price),
            normal_fee=str(gas_price + tip),
            fast_fee=str(gas_price + 2 * tip),
        )

    @handle_upstream_errors(SendTxResponse)
    async def send_tx(self, request: SendTxRequest) -> SendTxResponse:
        raw = _decode_hex(request.raw_tx, "raw_tx")
        if not raw:
            raise InvalidRequestError("raw_tx is empty")
        tx_hash = await self.rpc.call("eth_sendRawTransaction", ["0x" + raw.hex()])
        logger.info(f"[{CHAIN_NAME}] transaction broadcast: {tx_hash}")
        return success(SendTxResponse, "send tx success", tx_hash=tx_hash)

    @handle_upstream_errors(TxAddressResponse)
    async def get_tx_by_address(self, request: TxAddressRequest) -> TxAddressResponse:
        if self.data_client is None:
            return failure(TxAddressResponse, "data api not configured")
        address = _require_address(request.address)
        contract = _require_address(request.contract_address, "contract_address") if request.contract_address else ""
        items = await self.data_client.get_tx_list(address, contract, max(request.page, 1), max(request.pagesize, 1))
        txs = [self._data_api_tx(item) for item in items]
        return success(TxAddressResponse, "get tx by address success", tx=txs)

    @handle_upstream_errors(TxHashResponse)
    async def get_tx_by_hash(self, request: TxHashRequest) -> TxHashResponse:
        tx = await self.rpc.call("eth_getTransactionByHash", [request.hash])
        if not tx:
            return failure(TxHashResponse, f"transaction {request.hash} not found")
        receipt = await self.rpc.call("eth_getTransactionReceipt", [request.hash])
        if receipt:
            status = "Success" if hex_to_int(receipt.get("status"), "status") == 1 else "Failed"
            gas_price = receipt.get("effectiveGasPrice") or tx.get("gasPrice")
            fee = hex_to_int(receipt.get("gasUsed"), "gasUsed") * hex_to_int(gas_price, "gasPrice")
            contract_address = receipt.get("contractAddress") or ""
        else:
            status, fee, contract_address = "Pending", 0, ""
        message = TxMessage(
            hash=tx.get("hash", request.hash),
            index=hex_to_int(tx.get("transactionIndex"), "transactionIndex"),
            from_address=tx.get("from") or "",
            to=tx.get("to") or "",
            value=str(hex_to_int(tx.get("value"), "value")),
            fee=str(fee),
            status=status,
            type=hex_to_int(tx.get("type"), "type"),
            height=str(hex_to_int(tx.get("blockNumber"), "blockNumber")),
            contract_address=contract_address,
        )
        return success(TxHashResponse, "get tx by hash success", tx=message)

    @handle_upstream_errors(BlockByRangeResponse)
    async def get_block_by_range(self, request: BlockByRangeRequest) -> BlockByRangeResponse:
        if request.start < 0 or request.end < request.start:
            raise InvalidRequestError("invalid block range")
        if request.end - request.start >= MAX_BLOCK_RANGE:
            raise InvalidRequestError(f"block range is limited to {MAX_BLOCK_RANGE} blocks")
        headers: List[BlockHeader] = []
        for height in range(request.start, request.end + 1):
            block = await self.rpc.call("eth_getBlockByNumber", [hex(height), False])
            if not block:
                # Au-delà de la tête de chaîne : on renvoie ce qui existe
                break
            headers.append(self._header(block))
        return success(BlockByRangeResponse, "get block by range success", block_header=headers)

    @handle_upstream_errors(UnSignTransactionResponse)
    async def create_unsign_transaction(self, request: UnSignTransactionRequest) -> UnSignTransactionResponse:
        tx = build_dynamic_fee_tx(_decode_tx_payload(request.base64_tx))
        signing_hash = _signing_hash(tx)
        return success(UnSignTransactionResponse, "create un sign tx success", un_sign_tx="0x" + signing_hash.hex())

    @handle_upstream_errors(SignedTransactionResponse)
    async def build_signed_transaction(self, request: SignedTransactionRequest) -> SignedTransactionResponse:
        payload = _decode_tx_payload(request.base64_tx)
        tx = build_dynamic_fee_tx(payload)
        v, r, s = _split_signature(_decode_hex(request.signature, "signature"))
        signed = _encode_signed({**tx, "v": v, "r": r, "s": s})

        signer = _recover_sender(signed)
        expected = None
        if request.public_key:
            expected = public_key_to_address(_decode_hex(request.public_key, "public_key"))
        elif payload.get("from"):
            expected = _require_address(payload["from"], "from")
        if expected and signer != expected:
            return failure(SignedTransactionResponse, f"signature does not match sender {expected}")

        return success(
            SignedTransactionResponse,
            "build signed tx success",
            signed_tx="0x" + signed.hex(),
            tx_hash="0x" + bytes(Web3.keccak(signed)).hex(),
        )

    @handle_upstream_errors(DecodeTransactionResponse)
    async def decode_transaction(self, request: DecodeTransactionRequest) -> DecodeTransactionResponse:
        raw = _decode_hex(request.raw_data, "raw_data")
        if not raw or raw[0] > 0x7F:
            raise InvalidRequestError("only EIP-2718 typed transactions can be decoded")
        try:
            fields = TypedTransaction.from_bytes(HexBytes(raw)).as_dict()
        except Exception as e:
            raise InvalidRequestError(f"cannot decode transaction: {e}")

        to = fields.get("to")
        decoded = {
            "type": raw[0],
            "chain_id": fields.get("chainId"),
            "nonce": fields.get("nonce"),
            "from": _recover_sender(raw),
            "to": Web3.to_checksum_address(to) if to else "",
            "amount": str(fields.get("value", 0)),
            "gas_limit": fields.get("gas"),
            "max_fee_per_gas": fields.get("maxFeePerGas"),
            "max_priority_fee_per_gas": fields.get("maxPriorityFeePerGas"),
            "gas_price": fields.get("gasPrice"),
            "data": _hexify(fields.get("data", b"")),
            "hash": "0x" + bytes(Web3.keccak(raw)).hex(),
        }
        decoded = {k: v for k, v in decoded.items() if v is not None}
        encoded = base64.b64encode(json.dumps(decoded).encode()).decode()
        return success(DecodeTransactionResponse, "decode transaction success", base64_tx=encoded)

    @handle_upstream_errors(VerifyTransactionResponse)
    async def verify_signed_transaction(self, request: VerifyTransactionRequest) -> VerifyTransactionResponse:
        expected = public_key_to_address(_decode_hex(request.public_key, "public_key"))
        raw = _decode_hex(request.signature, "signature")
        try:
            signer = Account.recover_transaction(raw)
        except Exception as e:
            logger.warning(f"[{CHAIN_NAME}] signature recovery failed: {e}")
            return success(VerifyTransactionResponse, "verify tx fail", verify=False)
        verified = signer == expected
        return success(VerifyTransactionResponse, "verify tx success" if verified else "verify tx fail", verify=verified)

    async def aclose(self):
        await self.rpc.aclose()
        if self.data_client is not None:
            await self.data_client.aclose()

    # --- Conversion des réponses du nœud ---

    def _block_response(self, block: Dict[str, Any], msg: str) -> BlockResponse:
        height = hex_to_int(block.get("number"), "number")
        transactions = []
        for tx in block.get("transactions") or []:
            if isinstance(tx, str):
                transactions.append(BlockTransaction(hash=tx, height=height))
            else:
                transactions.append(self._block_tx(tx, height))
        base_fee = block.get("baseFeePerGas")
        return success(
            BlockResponse,
            msg,
            height=height,
            hash=block.get("hash") or "",
            base_fee=str(hex_to_int(base_fee, "baseFeePerGas")) if base_fee else "",
            transactions=transactions,
        )

    @staticmethod
    def _block_tx(tx: Dict[str, Any], height: int) -> BlockTransaction:
        to = tx.get("to") or ""
        amount = str(hex_to_int(tx.get("value"), "value"))
        token_address = ""
        data = _strip_0x(tx.get("input") or "")
        # Appel transfer(address,uint256) : destinataire et montant réels
        if data.startswith(ERC20_TRANSFER) and len(data) >= 8 + 128:
            token_address = to
            to = Web3.to_checksum_address("0x" + data[8 + 24:8 + 64])
            amount = str(int(data[8 + 64:8 + 128], 16))
        return BlockTransaction(
            from_address=tx.get("from") or "",
            to=to,
            token_address=token_address,
            hash=tx.get("hash") or "",
            height=height,
            amount=amount,
        )

    @staticmethod
    def _header(block: Dict[str, Any]) -> BlockHeader:
        base_fee = block.get("baseFeePerGas")
        return BlockHeader(
            hash=block.get("hash") or "",
            parent_hash=block.get("parentHash") or "",
            number=str(hex_to_int(block.get("number"), "number")),
            timestamp=hex_to_int(block.get("timestamp"), "timestamp"),
            miner=block.get("miner") or "",
            state_root=block.get("stateRoot") or "",
            tx_root=block.get("transactionsRoot") or "",
            receipt_root=block.get("receiptsRoot") or "",
            gas_limit=hex_to_int(block.get("gasLimit"), "gasLimit"),
            gas_used=hex_to_int(block.get("gasUsed"), "gasUsed"),
            base_fee=str(hex_to_int(base_fee, "baseFeePerGas")) if base_fee else "",
            extra=block.get("extraData") or "",
        )

    @staticmethod
    def _data_api_tx(item: Dict[str, Any]) -> TxMessage:
        gas_used = dec_to_int(item.get("gasUsed"), "gasUsed")
        gas_price = dec_to_int(item.get("gasPrice"), "gasPrice")
        failed = str(item.get("isError", "0")) == "1"
        return TxMessage(
            hash=item.get("hash", ""),
            index=dec_to_int(item.get("transactionIndex"), "transactionIndex"),
            from_address=item.get("from", ""),
            to=item.get("to", ""),
            value=str(item.get("value", "0")),
            fee=str(gas_used * gas_price),
            status="Failed" if failed else "Success",
            height=str(item.get("blockNumber", "0")),
            contract_address=item.get("contractAddress") or "",
            datetime=str(item.get("timeStamp", "")),
        )


def new_ethereum_adapter(settings: Settings) -> EthereumAdapter:
    node = settings.node("eth")
    rpc = JsonRpcClient(node.rpc_url, timeout=node.timeout)
    data_client = None
    if node.data_api_url:
        data_client = EthDataClient(node.data_api_url, node.data_api_key, timeout=node.timeout)
    else:
        logger.warning("No Ethereum data api configured, get_tx_by_address will be unavailable.")
    return EthereumAdapter(rpc, data_client)
