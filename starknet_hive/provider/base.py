"""
Provider interface for the Starknet Hive SDK.

This module defines the abstraction every node connection implements, so
accounts, factories and waiters never depend on a concrete transport.
"""
from abc import ABC, abstractmethod
from typing import List, Sequence

from ..models import (
    BlockHashAndNumber,
    BlockId,
    BlockTag,
    FeeEstimate,
    FunctionCall,
    Receipt,
    SignedDeclareTx,
    SignedTransaction,
    TransactionResult,
    TransactionStatus,
)


class Provider(ABC):
    """
    Abstract base class for Starknet node providers.

    Implementations raise :class:`~starknet_hive.exceptions.RpcTransportError`
    when the node cannot be reached and
    :class:`~starknet_hive.exceptions.RpcProtocolError` when the node answers
    with an error.
    """

    @abstractmethod
    def submit(self, tx: SignedTransaction) -> TransactionResult:
        """
        Submit a signed transaction.

        Returns:
            :class:`DeclareResult` for declarations, :class:`InvokeResult` otherwise
        """
        pass

    @abstractmethod
    def get_receipt(self, transaction_hash: int) -> Receipt:
        """Fetch the receipt of a transaction"""
        pass

    @abstractmethod
    def get_transaction_status(self, transaction_hash: int) -> TransactionStatus:
        """Fetch the finality and execution status of a transaction"""
        pass

    @abstractmethod
    def call(self, function_call: FunctionCall, block_id: BlockId = BlockTag.PENDING) -> List[int]:
        """Execute a read-only call and return its result felts"""
        pass

    @abstractmethod
    def get_nonce(self, contract_address: int, block_id: BlockId = BlockTag.PENDING) -> int:
        pass

    @abstractmethod
    def chain_id(self) -> int:
        pass

    @abstractmethod
    def estimate_fee(
        self,
        transactions: Sequence[SignedTransaction],
        block_id: BlockId = BlockTag.PENDING,
        skip_validate: bool = True,
    ) -> List[FeeEstimate]:
        pass

    @abstractmethod
    def get_class_hash_at(self, contract_address: int, block_id: BlockId = BlockTag.PENDING) -> int:
        pass

    @abstractmethod
    def block_hash_and_number(self) -> BlockHashAndNumber:
        """Resolve the ``latest`` tag to a concrete block"""
        pass

    def close(self) -> None:
        """Close any open connections or resources."""
        pass

    @staticmethod
    def is_declare(tx: SignedTransaction) -> bool:
        return isinstance(tx, SignedDeclareTx)
