"""
Data models for the Starknet Hive SDK.
"""
from enum import Enum, IntEnum
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, field_validator

from .exceptions import EncodingError
from .utils import get_selector_from_name, parse_hex, to_felt, to_felt_list, to_hex

U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1


class BlockTag(str, Enum):
    """Symbolic block identifiers accepted by the node"""
    LATEST = "latest"
    PENDING = "pending"


BlockId = Union[BlockTag, str, int, Dict[str, Any]]


def block_id_to_rpc(block_id: BlockId) -> Union[str, Dict[str, Any]]:
    """
    Convert a block identifier into its JSON-RPC form.

    Tags (``"latest"``/``"pending"``) pass through, ints are block numbers
    and dicts are assumed to already be ``{"block_hash": ...}`` or
    ``{"block_number": ...}``.
    """
    if isinstance(block_id, BlockTag):
        return block_id.value
    if isinstance(block_id, str):
        return BlockTag(block_id).value
    if isinstance(block_id, bool):
        raise EncodingError(f"Invalid block id: {block_id!r}")
    if isinstance(block_id, int):
        return {"block_number": block_id}
    if isinstance(block_id, dict) and len(block_id) == 1:
        key, value = next(iter(block_id.items()))
        if key == "block_hash":
            return {"block_hash": to_hex(to_felt(value))}
        if key == "block_number":
            return {"block_number": int(value)}
    raise EncodingError(f"Invalid block id: {block_id!r}")


class DataAvailabilityMode(IntEnum):
    L1 = 0
    L2 = 1


class Call(BaseModel):
    """A single contract call batched into an invoke transaction"""
    to: int
    selector: int
    calldata: Tuple[int, ...] = ()

    class Config:
        frozen = True

    @field_validator("to", "selector", mode="before")
    @classmethod
    def _felt(cls, value: Any) -> int:
        return to_felt(value)

    @field_validator("calldata", mode="before")
    @classmethod
    def _felts(cls, value: Any) -> Tuple[int, ...]:
        return tuple(to_felt_list(value))

    @classmethod
    def from_name(cls, to: Any, function_name: str, calldata: Sequence[Any] = ()) -> "Call":
        return cls(to=to, selector=get_selector_from_name(function_name), calldata=calldata)


class FunctionCall(BaseModel):
    """A read-only call executed with ``starknet_call``"""
    contract_address: int
    entry_point_selector: int
    calldata: Tuple[int, ...] = ()

    class Config:
        frozen = True

    @field_validator("contract_address", "entry_point_selector", mode="before")
    @classmethod
    def _felt(cls, value: Any) -> int:
        return to_felt(value)

    @field_validator("calldata", mode="before")
    @classmethod
    def _felts(cls, value: Any) -> Tuple[int, ...]:
        return tuple(to_felt_list(value))

    def to_rpc(self) -> Dict[str, Any]:
        return {
            "contract_address": to_hex(self.contract_address),
            "entry_point_selector": to_hex(self.entry_point_selector),
            "calldata": [to_hex(v) for v in self.calldata],
        }


class ResourceBounds(BaseModel):
    """Upper limits for one fee resource"""
    max_amount: int = 0
    max_price_per_unit: int = 0

    class Config:
        frozen = True

    @field_validator("max_amount")
    @classmethod
    def _u64(cls, value: int) -> int:
        if not 0 <= value <= U64_MAX:
            raise EncodingError(f"max_amount {value} does not fit in u64")
        return value

    @field_validator("max_price_per_unit")
    @classmethod
    def _u128(cls, value: int) -> int:
        if not 0 <= value <= U128_MAX:
            raise EncodingError(f"max_price_per_unit {value} does not fit in u128")
        return value

    def to_rpc(self) -> Dict[str, str]:
        return {
            "max_amount": to_hex(self.max_amount),
            "max_price_per_unit": to_hex(self.max_price_per_unit),
        }


class ResourceBoundsMapping(BaseModel):
    l1_gas: ResourceBounds = Field(default_factory=ResourceBounds)
    l2_gas: ResourceBounds = Field(default_factory=ResourceBounds)

    class Config:
        frozen = True

    def to_rpc(self) -> Dict[str, Dict[str, str]]:
        return {"l1_gas": self.l1_gas.to_rpc(), "l2_gas": self.l2_gas.to_rpc()}


class SignedTransaction(BaseModel):
    """
    Fields shared by every v3 transaction.

    Instances are immutable; :meth:`with_signature` is the only way to
    obtain a variant of an already signed transaction.
    """
    sender_address: int
    nonce: int
    version: int = 3
    resource_bounds: ResourceBoundsMapping = Field(default_factory=ResourceBoundsMapping)
    tip: int = 0
    paymaster_data: Tuple[int, ...] = ()
    account_deployment_data: Tuple[int, ...] = ()
    nonce_data_availability_mode: DataAvailabilityMode = DataAvailabilityMode.L1
    fee_data_availability_mode: DataAvailabilityMode = DataAvailabilityMode.L1
    signature: Tuple[int, ...] = ()
    transaction_hash: int

    class Config:
        frozen = True

    TYPE: ClassVar[str] = ""

    @property
    def is_query(self) -> bool:
        """True when this transaction was built for fee estimation only"""
        return self.version >= 2**128

    def with_signature(self, signature: Sequence[Any]) -> "SignedTransaction":
        """Return a copy of this transaction carrying ``signature`` instead."""
        return self.model_copy(update={"signature": tuple(to_felt_list(signature))})

    def _common_rpc(self) -> Dict[str, Any]:
        return {
            "type": self.TYPE,
            "sender_address": to_hex(self.sender_address),
            "version": to_hex(self.version),
            "signature": [to_hex(s) for s in self.signature],
            "nonce": to_hex(self.nonce),
            "resource_bounds": self.resource_bounds.to_rpc(),
            "tip": to_hex(self.tip),
            "paymaster_data": [to_hex(v) for v in self.paymaster_data],
            "account_deployment_data": [to_hex(v) for v in self.account_deployment_data],
            "nonce_data_availability_mode": self.nonce_data_availability_mode.name,
            "fee_data_availability_mode": self.fee_data_availability_mode.name,
        }

    def to_rpc(self) -> Dict[str, Any]:
        return self._common_rpc()


class SignedInvokeTx(SignedTransaction):
    TYPE: ClassVar[str] = "INVOKE"

    calldata: Tuple[int, ...] = ()

    def to_rpc(self) -> Dict[str, Any]:
        payload = self._common_rpc()
        payload["calldata"] = [to_hex(v) for v in self.calldata]
        return payload


class SignedDeployTx(SignedInvokeTx):
    """An invoke of the Universal Deployer carrying the precomputed address"""
    contract_address: int
    class_hash: int
    salt: int
    unique: bool = True
    constructor_calldata: Tuple[int, ...] = ()


class SignedDeclareTx(SignedTransaction):
    TYPE: ClassVar[str] = "DECLARE"

    contract_class: Dict[str, Any]
    class_hash: int
    compiled_class_hash: int

    def to_rpc(self) -> Dict[str, Any]:
        payload = self._common_rpc()
        payload["compiled_class_hash"] = to_hex(self.compiled_class_hash)
        payload["contract_class"] = self.contract_class
        return payload


class TransactionResult(BaseModel):
    """Result of submitting a transaction to the node"""
    transaction_hash: int


class InvokeResult(TransactionResult):
    pass


class DeclareResult(TransactionResult):
    class_hash: int


class DeployResult(TransactionResult):
    contract_address: int


class FinalityStatus(str, Enum):
    RECEIVED = "RECEIVED"
    REJECTED = "REJECTED"
    ACCEPTED_ON_L2 = "ACCEPTED_ON_L2"
    ACCEPTED_ON_L1 = "ACCEPTED_ON_L1"

    @property
    def is_accepted(self) -> bool:
        return self in (FinalityStatus.ACCEPTED_ON_L2, FinalityStatus.ACCEPTED_ON_L1)


class ExecutionStatus(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    REVERTED = "REVERTED"


class ReceiptStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UNKNOWN = "unknown"


def classify_status(
    finality_status: Optional[FinalityStatus],
    execution_status: Optional[ExecutionStatus],
) -> ReceiptStatus:
    """Collapse node finality/execution statuses into a receipt status"""
    if finality_status == FinalityStatus.REJECTED or execution_status == ExecutionStatus.REVERTED:
        return ReceiptStatus.REJECTED
    if finality_status is not None and finality_status.is_accepted:
        return ReceiptStatus.ACCEPTED
    if finality_status == FinalityStatus.RECEIVED:
        return ReceiptStatus.PENDING
    return ReceiptStatus.UNKNOWN


class TransactionStatus(BaseModel):
    """Result of ``starknet_getTransactionStatus``"""
    finality_status: FinalityStatus
    execution_status: Optional[ExecutionStatus] = None
    failure_reason: Optional[str] = None

    @property
    def status(self) -> ReceiptStatus:
        return classify_status(self.finality_status, self.execution_status)

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "TransactionStatus":
        return cls(
            finality_status=data["finality_status"],
            execution_status=data.get("execution_status"),
            failure_reason=data.get("failure_reason"),
        )


class Event(BaseModel):
    from_address: int
    keys: List[int] = []
    data: List[int] = []

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "Event":
        return cls(
            from_address=parse_hex(data["from_address"]),
            keys=[parse_hex(k) for k in data.get("keys", [])],
            data=[parse_hex(d) for d in data.get("data", [])],
        )


class Receipt(BaseModel):
    """Transaction receipt from the node"""
    transaction_hash: int
    status: ReceiptStatus
    finality_status: Optional[FinalityStatus] = None
    execution_status: Optional[ExecutionStatus] = None
    revert_reason: Optional[str] = None
    block_hash: Optional[int] = None
    block_number: Optional[int] = None
    events: List[Event] = []
    actual_fee: int = 0
    fee_unit: Optional[str] = None
    contract_address: Optional[int] = None
    type: Optional[str] = None

    @property
    def is_pending_block(self) -> bool:
        return self.block_number is None

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "Receipt":
        finality = FinalityStatus(data["finality_status"]) if data.get("finality_status") else None
        execution = ExecutionStatus(data["execution_status"]) if data.get("execution_status") else None
        fee = data.get("actual_fee") or {}
        if not isinstance(fee, dict):
            # pre-0.7 nodes report a bare amount
            fee = {"amount": fee}
        return cls(
            transaction_hash=parse_hex(data["transaction_hash"]),
            status=classify_status(finality, execution),
            finality_status=finality,
            execution_status=execution,
            revert_reason=data.get("revert_reason"),
            block_hash=parse_hex(data["block_hash"]) if data.get("block_hash") else None,
            block_number=data.get("block_number"),
            events=[Event.from_rpc(e) for e in data.get("events", [])],
            actual_fee=parse_hex(fee.get("amount")),
            fee_unit=fee.get("unit"),
            contract_address=parse_hex(data["contract_address"]) if data.get("contract_address") else None,
            type=data.get("type"),
        )


class FeeEstimate(BaseModel):
    gas_consumed: int
    gas_price: int
    data_gas_consumed: int = 0
    data_gas_price: int = 0
    overall_fee: int
    unit: str = "FRI"

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "FeeEstimate":
        return cls(
            gas_consumed=parse_hex(data.get("gas_consumed")),
            gas_price=parse_hex(data.get("gas_price")),
            data_gas_consumed=parse_hex(data.get("data_gas_consumed")),
            data_gas_price=parse_hex(data.get("data_gas_price")),
            overall_fee=parse_hex(data.get("overall_fee")),
            unit=data.get("unit", "FRI"),
        )


class BlockHashAndNumber(BaseModel):
    block_hash: int
    block_number: int
