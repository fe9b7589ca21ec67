"""
Account - builds, signs and submits v3 transactions.
"""
import logging
import math
import threading
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from . import hashing
from .contract import (
    UDC_ADDRESS,
    EntropySource,
    compute_deployment_address,
    generate_salt,
    udc_deploy_call,
)
from .exceptions import EncodingError, NonceMismatch, RpcProtocolError, SigningError, StarknetErrorCode
from .models import (
    BlockId,
    BlockTag,
    Call,
    DeployResult,
    FeeEstimate,
    FunctionCall,
    ResourceBounds,
    ResourceBoundsMapping,
    SignedDeclareTx,
    SignedDeployTx,
    SignedInvokeTx,
    SignedTransaction,
    TransactionResult,
)
from .provider.base import Provider
from .signer import Signer, signature_to_list
from .utils import to_felt, to_felt_list, to_hex


class CallEncoding(str, Enum):
    """Multicall calldata layouts understood by account contracts"""
    CAIRO1 = "cairo1"
    CAIRO0 = "cairo0"


def encode_calls(calls: Sequence[Call], encoding: CallEncoding = CallEncoding.CAIRO1) -> List[int]:
    """
    Encode a batch of calls into account ``__execute__`` calldata.

    ``cairo1``: ``[n, to, selector, len, *data, to, selector, len, *data, ...]``
    ``cairo0``: ``[n, (to, selector, offset, len) * n, total_len, *all_data]``

    Raises:
        EncodingError: If no calls are given
    """
    if not calls:
        raise EncodingError("At least one call is required")

    encoding = CallEncoding(encoding)
    if encoding == CallEncoding.CAIRO1:
        calldata = [len(calls)]
        for call in calls:
            calldata.extend([call.to, call.selector, len(call.calldata), *call.calldata])
        return calldata

    call_array: List[int] = []
    flat_data: List[int] = []
    for call in calls:
        call_array.extend([call.to, call.selector, len(flat_data), len(call.calldata)])
        flat_data.extend(call.calldata)
    return [len(calls), *call_array, len(flat_data), *flat_data]


class Account:
    """
    A Starknet account contract controlled by a local signer.

    The account tracks its nonce locally: it is read from the node on first
    use and incremented exactly once for every transaction the node accepts
    for submission. Building or signing a transaction never changes it.
    """

    def __init__(
        self,
        address: Any,
        chain_id: Any,
        signer: Signer,
        provider: Provider,
        call_encoding: CallEncoding = CallEncoding.CAIRO1,
        fee_estimate_multiplier: float = 1.5,
        gas_price_multiplier: float = 1.5,
        udc_address: int = UDC_ADDRESS,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the account

        Args:
            address: Account contract address
            chain_id: Chain identifier the transactions are signed for
            signer: Signer holding the account's private key
            provider: Provider used for nonce, fee estimation and submission
            call_encoding: Multicall calldata layout of the account contract
            fee_estimate_multiplier: Safety factor applied to estimated gas
            gas_price_multiplier: Safety factor applied to the gas price
            udc_address: Universal Deployer used by :meth:`deploy`
            logger: Optional logger instance to use for debug/info logging
        """
        self.address = to_felt(address)
        self.chain_id = to_felt(chain_id)
        self.signer = signer
        self.provider = provider
        self.call_encoding = CallEncoding(call_encoding)
        self.fee_estimate_multiplier = fee_estimate_multiplier
        self.gas_price_multiplier = gas_price_multiplier
        self.udc_address = udc_address
        self.logger = logger or logging.getLogger(__name__)

        self._nonce: Optional[int] = None
        self._lock = threading.RLock()

    @property
    def nonce(self) -> int:
        """Nonce the next submitted transaction must carry"""
        with self._lock:
            if self._nonce is None:
                return self.refresh_nonce()
            return self._nonce

    def refresh_nonce(self) -> int:
        """Re-read the nonce from the node's pending state"""
        with self._lock:
            self._nonce = self.provider.get_nonce(self.address, BlockTag.PENDING)
            self.logger.debug(f"Nonce of {to_hex(self.address)} is {self._nonce}")
            return self._nonce

    def invalidate_nonce(self) -> None:
        """Drop the local nonce so the next use reads it from the node"""
        with self._lock:
            self._nonce = None

    def _sign(self, transaction_hash: int) -> List[int]:
        try:
            return signature_to_list(self.signer.sign(transaction_hash))
        except SigningError:
            raise
        except Exception as e:
            self.logger.error(f"Transaction signing failed: {e}")
            raise SigningError(f"Failed to sign transaction: {str(e)}") from e

    def _bounds_from_estimate(self, estimate: FeeEstimate) -> ResourceBoundsMapping:
        if estimate.gas_price:
            gas = math.ceil(estimate.overall_fee / estimate.gas_price)
        else:
            gas = estimate.gas_consumed + estimate.data_gas_consumed
        return ResourceBoundsMapping(
            l1_gas=ResourceBounds(
                max_amount=int(gas * self.fee_estimate_multiplier),
                max_price_per_unit=int(estimate.gas_price * self.gas_price_multiplier),
            )
        )

    def _estimate_bounds(self, query_tx: SignedTransaction) -> ResourceBoundsMapping:
        estimates = self.provider.estimate_fee([query_tx], BlockTag.PENDING, skip_validate=True)
        if not estimates:
            raise EncodingError("Node returned no fee estimate")
        bounds = self._bounds_from_estimate(estimates[0])
        self.logger.debug(f"Estimated fee {estimates[0].overall_fee}, bounds {bounds.to_rpc()}")
        return bounds

    def _invoke(
        self,
        calldata: Sequence[int],
        nonce: int,
        resource_bounds: ResourceBoundsMapping,
        tip: int,
        query: bool = False,
    ) -> SignedInvokeTx:
        version = hashing.transaction_version(query)
        tx_hash = hashing.compute_invoke_v3_transaction_hash(
            sender_address=self.address,
            calldata=calldata,
            chain_id=self.chain_id,
            nonce=nonce,
            resource_bounds=resource_bounds,
            tip=tip,
            version=version,
        )
        return SignedInvokeTx(
            sender_address=self.address,
            calldata=calldata,
            nonce=nonce,
            version=version,
            resource_bounds=resource_bounds,
            tip=tip,
            signature=self._sign(tx_hash),
            transaction_hash=tx_hash,
        )

    def execute(
        self,
        calls: Sequence[Call],
        nonce: Optional[int] = None,
        resource_bounds: Optional[ResourceBoundsMapping] = None,
        tip: int = 0,
    ) -> SignedInvokeTx:
        """
        Build and sign an invoke transaction executing ``calls`` in order.

        Args:
            calls: Calls batched into one multicall
            nonce: Nonce to use (defaults to the account nonce)
            resource_bounds: Fee bounds (estimated with the node if omitted)
            tip: Transaction tip

        Returns:
            The signed, not yet submitted, transaction
        """
        calldata = encode_calls(list(calls), self.call_encoding)
        nonce = self.nonce if nonce is None else nonce
        if resource_bounds is None:
            query_tx = self._invoke(calldata, nonce, ResourceBoundsMapping(), tip, query=True)
            resource_bounds = self._estimate_bounds(query_tx)
        return self._invoke(calldata, nonce, resource_bounds, tip)

    def deploy(
        self,
        class_hash: Any,
        constructor_calldata: Sequence[Any] = (),
        salt: Optional[int] = None,
        unique: bool = True,
        entropy: Optional[EntropySource] = None,
        nonce: Optional[int] = None,
        resource_bounds: Optional[ResourceBoundsMapping] = None,
        tip: int = 0,
    ) -> SignedDeployTx:
        """
        Build and sign a Universal Deployer invoke for ``class_hash``.

        The returned transaction carries ``contract_address``, computed with
        the same derivation :class:`~starknet_hive.contract.ContractFactory`
        uses.
        """
        class_hash = to_felt(class_hash)
        calldata = to_felt_list(constructor_calldata)
        salt = generate_salt(entropy) if salt is None else to_felt(salt)

        call = udc_deploy_call(class_hash, salt, unique, calldata, self.udc_address)
        invoke = self.execute([call], nonce=nonce, resource_bounds=resource_bounds, tip=tip)
        contract_address = compute_deployment_address(
            sender_address=self.address,
            class_hash=class_hash,
            salt=salt,
            constructor_calldata=calldata,
            unique=unique,
            udc_address=self.udc_address,
        )
        return SignedDeployTx(
            **invoke.model_dump(),
            contract_address=contract_address,
            class_hash=class_hash,
            salt=salt,
            unique=unique,
            constructor_calldata=calldata,
        )

    def _declare(
        self,
        contract_class: Dict[str, Any],
        class_hash: int,
        compiled_class_hash: int,
        nonce: int,
        resource_bounds: ResourceBoundsMapping,
        tip: int,
        query: bool = False,
    ) -> SignedDeclareTx:
        version = hashing.transaction_version(query)
        tx_hash = hashing.compute_declare_v3_transaction_hash(
            sender_address=self.address,
            class_hash=class_hash,
            compiled_class_hash=compiled_class_hash,
            chain_id=self.chain_id,
            nonce=nonce,
            resource_bounds=resource_bounds,
            tip=tip,
            version=version,
        )
        return SignedDeclareTx(
            sender_address=self.address,
            contract_class=contract_class,
            class_hash=class_hash,
            compiled_class_hash=compiled_class_hash,
            nonce=nonce,
            version=version,
            resource_bounds=resource_bounds,
            tip=tip,
            signature=self._sign(tx_hash),
            transaction_hash=tx_hash,
        )

    def declare(
        self,
        contract_class: Dict[str, Any],
        compiled_class_hash: Any,
        nonce: Optional[int] = None,
        resource_bounds: Optional[ResourceBoundsMapping] = None,
        tip: int = 0,
    ) -> SignedDeclareTx:
        """
        Build and sign a declare transaction.

        Args:
            contract_class: Sierra contract class, passed through as loaded
            compiled_class_hash: Hash of the compiled (CASM) class

        Returns:
            The signed, not yet submitted, transaction
        """
        flat_class = hashing.normalize_sierra_class(contract_class)
        class_hash = hashing.compute_sierra_class_hash(flat_class)
        compiled_class_hash = to_felt(compiled_class_hash)
        nonce = self.nonce if nonce is None else nonce
        if resource_bounds is None:
            query_tx = self._declare(
                flat_class, class_hash, compiled_class_hash, nonce, ResourceBoundsMapping(), tip, query=True
            )
            resource_bounds = self._estimate_bounds(query_tx)
        return self._declare(flat_class, class_hash, compiled_class_hash, nonce, resource_bounds, tip)

    def send(self, tx: SignedTransaction) -> TransactionResult:
        """
        Submit a signed transaction and advance the local nonce.

        Raises:
            NonceMismatch: If ``tx`` was not built for the current nonce
            RpcError: If submission fails; the nonce is left unchanged
        """
        if tx.sender_address != self.address:
            raise EncodingError(
                f"Transaction sender {to_hex(tx.sender_address)} is not account {to_hex(self.address)}"
            )

        with self._lock:
            expected = self.nonce
            if tx.nonce != expected:
                raise NonceMismatch(expected, tx.nonce)
            try:
                result = self.provider.submit(tx)
            except RpcProtocolError as e:
                if e.starknet_code == StarknetErrorCode.INVALID_TRANSACTION_NONCE:
                    self.logger.warning(f"Node refused nonce {expected}, re-reading it")
                    self._nonce = None
                raise
            self._nonce = expected + 1

        if isinstance(tx, SignedDeployTx):
            return DeployResult(
                transaction_hash=result.transaction_hash, contract_address=tx.contract_address
            )
        return result

    def send_with_custom_signature(self, tx: SignedTransaction, signature: Sequence[Any]) -> TransactionResult:
        """
        Submit ``tx`` carrying ``signature`` instead of the signer's.

        The node is free to reject the transaction; that surfaces as an
        :class:`RpcProtocolError` here or as a rejection while waiting.
        """
        custom = tx.with_signature(signature)
        self.logger.info(
            f"Sending transaction with custom signature {[to_hex(s) for s in custom.signature]}"
        )
        return self.send(custom)

    def call(self, function_call: FunctionCall, block_id: BlockId = BlockTag.PENDING) -> List[int]:
        return self.provider.call(function_call, block_id)
