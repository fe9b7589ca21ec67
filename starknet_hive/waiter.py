"""
Polling for transaction finalization.

:class:`TransactionWaiter` is an explicit state machine::

    PENDING --(accepted + succeeded)--> ACCEPTED
    PENDING --(rejected / reverted)---> REJECTED
    PENDING --(attempt budget spent)--> TIMED_OUT
    PENDING --(cancel())--------------> CANCELLED

Clock and sleep are injectable so the loop can be driven without real
delays.
"""
import logging
import os
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional, TypeVar, Union

from ._rate_limited_log import rate_limited_log
from .account import Account
from .exceptions import (
    RpcProtocolError,
    RpcTransportError,
    StarknetErrorCode,
    TransactionRejected,
    TransactionTimedOut,
    TransactionWaitCancelled,
)
from .models import ExecutionStatus, FinalityStatus, Receipt
from .provider.base import Provider
from .utils import to_hex

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WaiterState(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self != WaiterState.PENDING


@dataclass(frozen=True)
class PollingPolicy:
    """
    How often and how long to poll.

    The n-th delay is ``interval * backoff_factor ** (n - 1)`` capped at
    ``max_interval``; polling stops after ``max_attempts`` polls.
    """
    interval: float = 0.5
    backoff_factor: float = 1.5
    max_interval: float = 5.0
    max_attempts: int = 40

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval < 0 or self.max_interval < 0:
            raise ValueError("Polling intervals must not be negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be at least 1")

    def delay(self, attempt: int) -> float:
        return min(self.interval * self.backoff_factor ** max(attempt - 1, 0), self.max_interval)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PollingPolicy":
        """Build a policy from ``HIVE_POLL_*`` environment variables"""
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            interval=float(env.get("HIVE_POLL_INTERVAL", defaults.interval)),
            backoff_factor=float(env.get("HIVE_POLL_BACKOFF", defaults.backoff_factor)),
            max_interval=float(env.get("HIVE_POLL_MAX_INTERVAL", defaults.max_interval)),
            max_attempts=int(env.get("HIVE_POLL_MAX_ATTEMPTS", defaults.max_attempts)),
        )


class TransactionWaiter:
    """
    Polls a provider until a transaction is finalized.

    A waiter tracks one transaction at a time; calling :meth:`wait` again
    starts over from ``PENDING``.
    """

    def __init__(
        self,
        provider: Provider,
        policy: Optional[PollingPolicy] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            provider: Provider to poll
            policy: Polling bounds (defaults to :meth:`PollingPolicy.from_env`)
            timeout: Optional overall limit in seconds measured with ``clock``
            clock: Monotonic time source
            sleep: Delay function; defaults to a wait that :meth:`cancel` interrupts
            logger: Optional logger instance
        """
        self.provider = provider
        self.policy = policy or PollingPolicy.from_env()
        self.timeout = timeout
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self._cancelled = threading.Event()
        self._sleep = sleep or self._cancellable_sleep

        self.state = WaiterState.PENDING
        self.attempts = 0
        self.receipt: Optional[Receipt] = None
        self.rejection: Optional[TransactionRejected] = None

    def _cancellable_sleep(self, seconds: float) -> None:
        self._cancelled.wait(seconds)

    def cancel(self) -> None:
        """Abort a running :meth:`wait` at its next suspension point"""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def reset(self) -> None:
        self.state = WaiterState.PENDING
        self.attempts = 0
        self.receipt = None
        self.rejection = None
        self._cancelled.clear()

    def _reject(self, transaction_hash: int, reason: Optional[str], status: str) -> WaiterState:
        self.state = WaiterState.REJECTED
        self.rejection = TransactionRejected(transaction_hash, reason, status)
        return self.state

    def _fetch(self, fetch: Callable[[int], T], transaction_hash: int, what: str) -> Optional[T]:
        """Run one node query, returning None when the failure is worth another poll"""
        try:
            return fetch(transaction_hash)
        except RpcProtocolError as e:
            if e.starknet_code == StarknetErrorCode.TXN_HASH_NOT_FOUND:
                self.logger.debug(f"{what} of {to_hex(transaction_hash)} not found yet")
                return None
            raise
        except RpcTransportError as e:
            self.logger.warning(f"{what} of {to_hex(transaction_hash)} unavailable, will retry: {e}")
            return None

    def poll(self, transaction_hash: int) -> WaiterState:
        """
        Perform a single poll and apply the resulting transition.

        Raises:
            RpcProtocolError: For node errors other than "transaction not found"
        """
        if self.state.is_terminal:
            return self.state

        self.attempts += 1
        status = self._fetch(self.provider.get_transaction_status, transaction_hash, "Status")
        if status is None:
            return self.state

        if status.finality_status == FinalityStatus.REJECTED:
            return self._reject(transaction_hash, status.failure_reason, FinalityStatus.REJECTED.value)

        if status.finality_status.is_accepted:
            # the receipt can lag behind the status on load balanced nodes
            receipt = self._fetch(self.provider.get_receipt, transaction_hash, "Receipt")
            if receipt is None:
                return self.state
            if (receipt.execution_status or status.execution_status) == ExecutionStatus.REVERTED:
                reason = receipt.revert_reason or status.failure_reason
                return self._reject(transaction_hash, reason, ExecutionStatus.REVERTED.value)
            self.receipt = receipt
            self.state = WaiterState.ACCEPTED
            return self.state

        return self.state

    def wait(self, transaction_hash: int) -> Receipt:
        """
        Poll until the transaction is finalized.

        Returns:
            The receipt of the accepted transaction

        Raises:
            TransactionRejected: If the transaction was rejected or reverted
            TransactionTimedOut: If the attempt budget or timeout ran out
            TransactionWaitCancelled: If :meth:`cancel` was called
        """
        cancelled = self.cancelled
        self.reset()
        if cancelled:
            self._cancelled.set()
        started = self.clock()
        tx_hex = to_hex(transaction_hash)

        while True:
            if self.cancelled:
                self.state = WaiterState.CANCELLED
                self.logger.warning(f"Stopped waiting for {tx_hex} after {self.attempts} polls")
                raise TransactionWaitCancelled(transaction_hash, self.attempts)

            state = self.poll(transaction_hash)
            if state == WaiterState.ACCEPTED:
                self.logger.info(f"Transaction {tx_hex} accepted after {self.attempts} polls")
                return self.receipt
            if state == WaiterState.REJECTED:
                self.logger.error(f"Transaction {tx_hex} failed: {self.rejection}")
                raise self.rejection

            if self.attempts >= self.policy.max_attempts:
                self.state = WaiterState.TIMED_OUT
                self.logger.error(f"Transaction {tx_hex} not finalized after {self.attempts} polls")
                raise TransactionTimedOut(transaction_hash, self.attempts)

            if self.timeout is not None and self.clock() - started >= self.timeout:
                self.state = WaiterState.TIMED_OUT
                raise TransactionTimedOut(
                    transaction_hash,
                    self.attempts,
                    f"Transaction {tx_hex} not finalized within {self.timeout}s",
                )

            delay = self.policy.delay(self.attempts)
            rate_limited_log(
                f"Waiting for transaction {tx_hex} to be finalized",
                level="info",
                interval=10,
                key=f"wait:{tx_hex}",
                logger_instance=self.logger,
            )
            self._sleep(delay)


def wait_for_sent_transaction(
    transaction_hash: int,
    account_or_provider: Union[Account, Provider],
    policy: Optional[PollingPolicy] = None,
    **waiter_options,
) -> Receipt:
    """
    Wait for a submitted transaction to be accepted.

    When an :class:`Account` is given and the node rejects the transaction
    outright, the account's local nonce is dropped, since a rejected
    transaction does not consume it.
    """
    if isinstance(account_or_provider, Account):
        provider = account_or_provider.provider
    else:
        provider = account_or_provider

    waiter = TransactionWaiter(provider, policy, **waiter_options)
    try:
        return waiter.wait(transaction_hash)
    except TransactionRejected as e:
        if isinstance(account_or_provider, Account) and e.status == FinalityStatus.REJECTED.value:
            account_or_provider.invalidate_nonce()
        raise
