"""
JSON-RPC provider talking to a Starknet node over HTTP(S).
"""
import itertools
import logging
import os
import time
import urllib.parse
from typing import Any, Dict, List, Optional, Sequence, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..exceptions import EncodingError, RpcProtocolError, RpcTransportError
from ..models import (
    BlockHashAndNumber,
    BlockId,
    BlockTag,
    DeclareResult,
    FeeEstimate,
    FunctionCall,
    InvokeResult,
    Receipt,
    SignedTransaction,
    TransactionResult,
    TransactionStatus,
    block_id_to_rpc,
)
from ..utils import parse_hex, to_hex
from .base import Provider

logger = logging.getLogger(__name__)

LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


class JsonRpcProvider(Provider):
    """
    Provider sending one JSON-RPC 2.0 request per method call.

    Connection failures, timeouts and 5xx responses are retried with
    exponential backoff up to ``retry_count`` attempts and then raised as
    :class:`RpcTransportError`. Errors reported by the node are raised
    immediately as :class:`RpcProtocolError`.
    """

    def __init__(
        self,
        rpc_url: str,
        retry_count: int = 3,
        timeout: int = 30,
        backoff_factor: float = 0.5,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the provider

        Args:
            rpc_url: Starknet JSON-RPC endpoint (e.g. "http://127.0.0.1:5050")
            retry_count: Number of attempts for transport failures
            timeout: Timeout for HTTP requests in seconds
            backoff_factor: Base delay in seconds between transport retries
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If the URL doesn't use https (unless it is local)
        """
        self._validate_rpc_url(rpc_url)
        self.rpc_url = rpc_url
        self.retry_count = max(1, retry_count)
        self.timeout = timeout
        self.backoff_factor = backoff_factor
        self.logger = logger or logging.getLogger(__name__)
        self._request_ids = itertools.count(1)

        self.session = requests.Session()
        retries = Retry(
            total=retry_count,
            backoff_factor=backoff_factor,
            status_forcelist=[502, 503, 504],
            allowed_methods=["POST"],
            raise_on_status=False,
            connect=retry_count,
            read=0,
        )
        self.session.mount("http://", HTTPAdapter(max_retries=retries))
        self.session.mount("https://", HTTPAdapter(max_retries=retries))

    @staticmethod
    def _validate_rpc_url(url: str) -> None:
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"Invalid RPC URL '{url}'")
        is_local = parsed.hostname in LOCAL_HOSTS
        if parsed.scheme != "https" and not is_local and os.environ.get("HIVE_INSECURE_RPC") != "1":
            raise ValueError(
                f"rpc_url must use https:// for security (got: {parsed.scheme}://). "
                "Set HIVE_INSECURE_RPC=1 to allow HTTP for development."
            )

    def _backoff(self, attempt: int, reason: Any) -> None:
        wait_time = self.backoff_factor * (2 ** (attempt - 1))
        self.logger.warning(f"Retrying RPC request after {wait_time}s due to: {reason}")
        time.sleep(wait_time)

    def request(self, method: str, params: Union[Dict[str, Any], List[Any]]) -> Any:
        """
        Send a JSON-RPC request and return its ``result``.

        Raises:
            RpcTransportError: If the node is unreachable after all retries
            RpcProtocolError: If the node returns a JSON-RPC error object
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._request_ids),
        }
        self.logger.debug(f"RPC request {method} (id={payload['id']})")

        attempt = 0
        while True:
            attempt += 1
            try:
                response = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
            except (requests.ConnectionError, requests.Timeout) as e:
                if attempt < self.retry_count:
                    self._backoff(attempt, e)
                    continue
                self.logger.error(f"RPC request {method} failed: {e}")
                raise RpcTransportError(f"{method}: {e}") from e
            except requests.RequestException as e:
                self.logger.error(f"RPC request {method} failed: {e}")
                raise RpcTransportError(f"{method}: {e}") from e

            if response.status_code >= 500:
                if attempt < self.retry_count:
                    self._backoff(attempt, f"HTTP {response.status_code}")
                    continue
                raise RpcTransportError(
                    f"{method}: server error HTTP {response.status_code}", code=response.status_code
                )

            try:
                body = response.json()
            except ValueError as e:
                raise RpcTransportError(
                    f"{method}: invalid JSON response (HTTP {response.status_code})",
                    code=response.status_code,
                ) from e

            if isinstance(body, dict) and body.get("error"):
                error = body["error"]
                self.logger.debug(f"RPC error response for {method}: {error}")
                raise RpcProtocolError(
                    error.get("message", "Unknown error"),
                    code=error.get("code"),
                    data=error.get("data"),
                )

            if response.status_code >= 400 or not isinstance(body, dict) or "result" not in body:
                raise RpcTransportError(
                    f"{method}: malformed response (HTTP {response.status_code})",
                    code=response.status_code,
                )

            self.logger.debug(f"RPC response for {method}: {body['result']}")
            return body["result"]

    def submit(self, tx: SignedTransaction) -> TransactionResult:
        if tx.is_query:
            raise EncodingError("Query-only transactions cannot be submitted")

        if self.is_declare(tx):
            result = self.request("starknet_addDeclareTransaction", {"declare_transaction": tx.to_rpc()})
            submitted = DeclareResult(
                transaction_hash=parse_hex(result["transaction_hash"]),
                class_hash=parse_hex(result["class_hash"]),
            )
        else:
            result = self.request("starknet_addInvokeTransaction", {"invoke_transaction": tx.to_rpc()})
            submitted = InvokeResult(transaction_hash=parse_hex(result["transaction_hash"]))

        self.logger.info(f"{tx.TYPE} transaction sent: {to_hex(submitted.transaction_hash)}")
        return submitted

    def get_receipt(self, transaction_hash: int) -> Receipt:
        result = self.request(
            "starknet_getTransactionReceipt", {"transaction_hash": to_hex(transaction_hash)}
        )
        return Receipt.from_rpc(result)

    def get_transaction_status(self, transaction_hash: int) -> TransactionStatus:
        result = self.request(
            "starknet_getTransactionStatus", {"transaction_hash": to_hex(transaction_hash)}
        )
        return TransactionStatus.from_rpc(result)

    def call(self, function_call: FunctionCall, block_id: BlockId = BlockTag.PENDING) -> List[int]:
        result = self.request(
            "starknet_call",
            {"request": function_call.to_rpc(), "block_id": block_id_to_rpc(block_id)},
        )
        return [parse_hex(v) for v in result]

    def get_nonce(self, contract_address: int, block_id: BlockId = BlockTag.PENDING) -> int:
        result = self.request(
            "starknet_getNonce",
            {"block_id": block_id_to_rpc(block_id), "contract_address": to_hex(contract_address)},
        )
        return parse_hex(result)

    def chain_id(self) -> int:
        return parse_hex(self.request("starknet_chainId", []))

    def estimate_fee(
        self,
        transactions: Sequence[SignedTransaction],
        block_id: BlockId = BlockTag.PENDING,
        skip_validate: bool = True,
    ) -> List[FeeEstimate]:
        result = self.request(
            "starknet_estimateFee",
            {
                "request": [tx.to_rpc() for tx in transactions],
                "simulation_flags": ["SKIP_VALIDATE"] if skip_validate else [],
                "block_id": block_id_to_rpc(block_id),
            },
        )
        return [FeeEstimate.from_rpc(item) for item in result]

    def get_class_hash_at(self, contract_address: int, block_id: BlockId = BlockTag.PENDING) -> int:
        result = self.request(
            "starknet_getClassHashAt",
            {"block_id": block_id_to_rpc(block_id), "contract_address": to_hex(contract_address)},
        )
        return parse_hex(result)

    def block_hash_and_number(self) -> BlockHashAndNumber:
        result = self.request("starknet_blockHashAndNumber", [])
        return BlockHashAndNumber(
            block_hash=parse_hex(result["block_hash"]),
            block_number=int(result["block_number"]),
        )

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "JsonRpcProvider":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
