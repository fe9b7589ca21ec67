"""
Exceptions for the Starknet Hive SDK.
"""
from enum import IntEnum
from typing import Any, Optional, Sequence


class StarknetErrorCode(IntEnum):
    """
    Error codes returned by Starknet JSON-RPC nodes (RPC v0.7).
    """
    FAILED_TO_RECEIVE_TXN = 1
    CONTRACT_NOT_FOUND = 20
    BLOCK_NOT_FOUND = 24
    INVALID_TXN_INDEX = 27
    CLASS_HASH_NOT_FOUND = 28
    TXN_HASH_NOT_FOUND = 29
    PAGE_SIZE_TOO_BIG = 31
    NO_BLOCKS = 32
    INVALID_CONTINUATION_TOKEN = 33
    TOO_MANY_KEYS_IN_FILTER = 34
    CONTRACT_ERROR = 40
    TRANSACTION_EXECUTION_ERROR = 41
    CLASS_ALREADY_DECLARED = 51
    INVALID_TRANSACTION_NONCE = 52
    INSUFFICIENT_MAX_FEE = 53
    INSUFFICIENT_ACCOUNT_BALANCE = 54
    VALIDATION_FAILURE = 55
    COMPILATION_FAILED = 56
    CONTRACT_CLASS_SIZE_IS_TOO_LARGE = 57
    NON_ACCOUNT = 58
    DUPLICATE_TX = 59
    COMPILED_CLASS_HASH_MISMATCH = 60
    UNSUPPORTED_TX_VERSION = 61
    UNSUPPORTED_CONTRACT_CLASS_VERSION = 62
    UNEXPECTED_ERROR = 63

    @classmethod
    def lookup(cls, code: Optional[int]) -> Optional["StarknetErrorCode"]:
        """Map a raw JSON-RPC error code to a known Starknet code, if any."""
        try:
            return cls(code)
        except ValueError:
            return None


class HiveError(Exception):
    """Base exception for all Starknet Hive errors."""
    pass


class SigningError(HiveError):
    """Raised when signer key material is malformed."""
    pass


class EncodingError(HiveError):
    """Raised when calldata, felts or selectors cannot be encoded."""
    pass


class NonceMismatch(HiveError):
    """Raised when a transaction is sent with a nonce the account does not expect."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Transaction nonce {actual} does not match account nonce {expected}"
        )


class RpcError(HiveError):
    """
    Raised when a JSON-RPC request fails.

    ``retryable`` tells the caller whether repeating the same request may
    succeed: transport failures are retryable, node-reported errors are not.
    """
    retryable = False

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message if code is None else f"[{code}] {message}")

    @property
    def starknet_code(self) -> Optional[StarknetErrorCode]:
        return StarknetErrorCode.lookup(self.code)


class RpcTransportError(RpcError):
    """Raised when the node cannot be reached or returns an unreadable response."""
    retryable = True


class RpcProtocolError(RpcError):
    """Raised when the node returns a structured JSON-RPC error."""
    retryable = False


class TransactionRejected(HiveError):
    """Raised when a transaction reaches a terminal failure status."""

    def __init__(self, transaction_hash: int, reason: Optional[str] = None, status: Optional[str] = None):
        self.transaction_hash = transaction_hash
        self.reason = reason
        self.status = status
        message = f"Transaction {hex(transaction_hash)} was {(status or 'rejected').lower()}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class TransactionTimedOut(HiveError):
    """Raised when a transaction does not finalize within the polling budget."""

    def __init__(self, transaction_hash: int, attempts: int, message: Optional[str] = None):
        self.transaction_hash = transaction_hash
        self.attempts = attempts
        super().__init__(
            message or f"Transaction {hex(transaction_hash)} not finalized after {attempts} polls"
        )


class TransactionWaitCancelled(TransactionTimedOut):
    """Raised when waiting for a transaction is cancelled from outside."""

    def __init__(self, transaction_hash: int, attempts: int):
        super().__init__(
            transaction_hash,
            attempts,
            f"Waiting for transaction {hex(transaction_hash)} cancelled after {attempts} polls",
        )


class AddressMismatch(HiveError):
    """Raised when a precomputed contract address differs from the one observed on-chain."""

    def __init__(self, expected: int, observed: int):
        self.expected = expected
        self.observed = observed
        super().__init__(
            f"Derived contract address {hex(expected)} does not match observed address {hex(observed)}"
        )


class EmptyResult(HiveError):
    """Raised when a read-only call returns no values where one was expected."""
    pass


class UnexpectedAcceptance(HiveError):
    """Raised when a transaction that should have failed was accepted."""

    def __init__(self, transaction_hash: int, signature: Sequence[int]):
        self.transaction_hash = transaction_hash
        self.signature = list(signature)
        super().__init__(
            f"Transaction {hex(transaction_hash)} with signature "
            f"{[hex(s) for s in self.signature]} was accepted"
        )


class ScenarioStageError(HiveError):
    """Raised when a scenario stage fails; carries the stages already completed."""

    def __init__(self, stage: str, completed: Sequence[str], cause: Exception):
        self.stage = stage
        self.completed = list(completed)
        done = ", ".join(self.completed) or "none"
        super().__init__(f"Stage '{stage}' failed (completed: {done}): {cause}")
