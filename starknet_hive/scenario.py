"""
The HelloStarknet scenario: declare, deploy, invoke, read back, then
invoke again with a signature the account must refuse.

Every stage depends on the finalized output of the previous one, so the
stages run strictly in order. A failing stage raises
:class:`~starknet_hive.exceptions.ScenarioStageError` naming the stages that
already completed.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .contract import EntropySource, verify_deployed_address
from .exceptions import (
    EmptyResult,
    EncodingError,
    HiveError,
    RpcProtocolError,
    ScenarioStageError,
    StarknetErrorCode,
    TransactionRejected,
    TransactionTimedOut,
    UnexpectedAcceptance,
)
from .hive import StarknetHive
from .models import BlockTag, Call
from .utils import to_felt_list, to_hex
from .waiter import PollingPolicy

logger = logging.getLogger(__name__)

STAGES = ("declare", "deploy", "verify_address", "invoke", "read_balance", "custom_signature")


class CustomSignatureOutcome(str, Enum):
    """How the node refused a transaction carrying a foreign signature"""
    SUBMISSION_REJECTED = "submission_rejected"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"


@dataclass
class ScenarioReport:
    """What each stage of a scenario run produced"""
    class_hash: Optional[int] = None
    declare_transaction_hash: Optional[int] = None
    already_declared: bool = False
    contract_address: Optional[int] = None
    salt: Optional[int] = None
    deploy_transaction_hash: Optional[int] = None
    invoke_transaction_hash: Optional[int] = None
    balance: Optional[int] = None
    custom_signature_outcome: Optional[CustomSignatureOutcome] = None
    custom_signature_transaction_hash: Optional[int] = None
    completed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        def fmt(value: Optional[int]) -> Optional[str]:
            return None if value is None else to_hex(value)

        return {
            "class_hash": fmt(self.class_hash),
            "declare_transaction_hash": fmt(self.declare_transaction_hash),
            "already_declared": self.already_declared,
            "contract_address": fmt(self.contract_address),
            "salt": fmt(self.salt),
            "deploy_transaction_hash": fmt(self.deploy_transaction_hash),
            "invoke_transaction_hash": fmt(self.invoke_transaction_hash),
            "balance": fmt(self.balance),
            "custom_signature_outcome": (
                self.custom_signature_outcome.value if self.custom_signature_outcome else None
            ),
            "custom_signature_transaction_hash": fmt(self.custom_signature_transaction_hash),
            "completed": list(self.completed),
        }


@contextmanager
def _stage(name: str, report: ScenarioReport) -> Iterator[None]:
    logger.info(f"Stage '{name}' started")
    try:
        yield
    except HiveError as e:
        logger.error(f"Stage '{name}' failed: {e}")
        raise ScenarioStageError(name, report.completed, e) from e
    report.completed.append(name)
    logger.info(f"Stage '{name}' completed")


def _declare(hive: StarknetHive, report: ScenarioReport, sierra_class: Dict[str, Any],
             compiled_class_hash: Any, wait) -> None:
    tx = hive.declare_v3(sierra_class, compiled_class_hash)
    try:
        result = hive.send(tx)
    except RpcProtocolError as e:
        if e.starknet_code != StarknetErrorCode.CLASS_ALREADY_DECLARED:
            raise
        logger.info(f"Class {to_hex(tx.class_hash)} already declared, skipping")
        report.class_hash = tx.class_hash
        report.already_declared = True
        return

    if result.class_hash != tx.class_hash:
        raise EncodingError(
            f"Node derived class hash {to_hex(result.class_hash)}, computed {to_hex(tx.class_hash)}"
        )
    report.declare_transaction_hash = result.transaction_hash
    wait(result.transaction_hash)
    report.class_hash = result.class_hash


def run_hello_starknet(
    hive: StarknetHive,
    sierra_class: Dict[str, Any],
    compiled_class_hash: Any,
    *,
    salt: Optional[int] = None,
    entropy: Optional[EntropySource] = None,
    amount: int = 0x123,
    custom_signature: Sequence[Any] = (1, 2),
    policy: Optional[PollingPolicy] = None,
    **waiter_options: Any,
) -> ScenarioReport:
    """
    Run the HelloStarknet scenario against the hive's node.

    Args:
        hive: Connected hive whose account pays for every transaction
        sierra_class: Sierra class of the HelloStarknet contract
        compiled_class_hash: Hash of its compiled (CASM) class
        salt: Deployment salt (random when omitted)
        entropy: Entropy source for the random salt
        amount: Value passed to ``increase_balance``
        custom_signature: Signature sent with the final invoke
        policy: Polling bounds for every wait
        **waiter_options: Extra :class:`~starknet_hive.waiter.TransactionWaiter` arguments

    Returns:
        Report of what every stage produced

    Raises:
        ScenarioStageError: If any stage fails, chained to the cause
    """
    report = ScenarioReport()

    def wait(transaction_hash: int):
        return hive.wait(transaction_hash, policy, **waiter_options)

    with _stage("declare", report):
        _declare(hive, report, sierra_class, compiled_class_hash, wait)

    with _stage("deploy", report):
        deployment = hive.deploy_v3(report.class_hash, [], salt=salt, unique=True, entropy=entropy)
        report.salt = deployment.salt
        report.contract_address = deployment.contract_address
        report.deploy_transaction_hash = deployment.transaction_hash
        wait(deployment.transaction_hash)

    with _stage("verify_address", report):
        observed = hive.get_contract_address(deployment.transaction_hash)
        verify_deployed_address(deployment.contract_address, observed)
        logger.info(f"Contract deployed at {to_hex(observed)}")

    with _stage("invoke", report):
        increase_balance = Call.from_name(report.contract_address, "increase_balance", to_felt_list([amount]))
        result = hive.send(hive.execute_v3([increase_balance]))
        report.invoke_transaction_hash = result.transaction_hash
        wait(result.transaction_hash)

    with _stage("read_balance", report):
        values = hive.call(report.contract_address, "get_balance", block_id=BlockTag.PENDING)
        if not values:
            raise EmptyResult("Empty initial contract balance")
        report.balance = values[0]
        logger.info(f"Balance of {to_hex(report.contract_address)} is {to_hex(report.balance)}")

    with _stage("custom_signature", report):
        try:
            report.custom_signature_outcome = _send_with_foreign_signature(
                hive, report, increase_balance, custom_signature, wait
            )
        finally:
            # the refused transaction may or may not have consumed the nonce
            hive.account.invalidate_nonce()
        logger.info(f"Custom signature refused: {report.custom_signature_outcome.value}")

    return report


def _send_with_foreign_signature(
    hive: StarknetHive,
    report: ScenarioReport,
    call: Call,
    signature: Sequence[Any],
    wait,
) -> CustomSignatureOutcome:
    tx = hive.execute_v3([call])
    try:
        result = hive.send_with_custom_signature(tx, signature)
    except RpcProtocolError as e:
        logger.info(f"Node refused custom signature at submission: {e}")
        return CustomSignatureOutcome.SUBMISSION_REJECTED

    report.custom_signature_transaction_hash = result.transaction_hash
    try:
        wait(result.transaction_hash)
    except TransactionRejected as e:
        logger.info(f"Transaction with custom signature rejected: {e}")
        return CustomSignatureOutcome.REJECTED
    except TransactionTimedOut as e:
        logger.warning(f"Transaction with custom signature never finalized: {e}")
        return CustomSignatureOutcome.TIMED_OUT
    raise UnexpectedAcceptance(result.transaction_hash, to_felt_list(signature))
