"""
Pytest fixtures for the Starknet Hive SDK tests.
"""
import json
import random
import time
from typing import Any, Dict, List, Optional, Sequence

import pytest
from poseidon_py.poseidon_hash import poseidon_hash_many
from starknet_py.hash.address import compute_address as reference_compute_address
from starknet_py.hash.selector import get_selector_from_name as reference_keccak
from starknet_py.hash.utils import pedersen_hash, verify_message_signature

from starknet_hive._rate_limited_log import reset_rate_limits
from starknet_hive.account import Account
from starknet_hive.config import NetworkConfig
from starknet_hive.contract import CONTRACT_DEPLOYED_EVENT_KEY, UDC_ADDRESS, UDC_DEPLOY_SELECTOR
from starknet_hive.exceptions import RpcProtocolError, StarknetErrorCode
from starknet_hive.hive import StarknetHive
from starknet_hive.models import (
    BlockHashAndNumber,
    BlockTag,
    DeclareResult,
    Event,
    ExecutionStatus,
    FeeEstimate,
    FinalityStatus,
    FunctionCall,
    InvokeResult,
    Receipt,
    ReceiptStatus,
    SignedDeclareTx,
    SignedTransaction,
    TransactionResult,
    TransactionStatus,
)
from starknet_hive.provider.base import Provider
from starknet_hive.signer.local import LocalSigner
from starknet_hive.utils import encode_shortstring, get_selector_from_name
from starknet_hive.waiter import PollingPolicy

# ─────────────────────────────────────────────────────────────────────────
#  FAST RETRIES FOR TESTS
# ─────────────────────────────────────────────────────────────────────────

# Make time.sleep instantaneous so provider retries don't slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _isolated_state(monkeypatch):
    """Start every test with empty caches and no HIVE_* overrides."""
    reset_rate_limits()
    NetworkConfig._networks_cache = None
    for name in (
        "HIVE_POLL_INTERVAL",
        "HIVE_POLL_BACKOFF",
        "HIVE_POLL_MAX_INTERVAL",
        "HIVE_POLL_MAX_ATTEMPTS",
        "HIVE_INSECURE_RPC",
        "DEVNET_RPC_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    NetworkConfig._networks_cache = None


# Constants for testing
TEST_RPC_URL = "https://rpc.example.com"
TEST_PRIVATE_KEY = 0x71D7BB07B9A64F6F78AC4C816AFF4DA9
TEST_ACCOUNT_ADDRESS = 0x064B48806902A367C8598F4F95C305E8C1A1ACBA5F082D294A43793113115691
TEST_ACCOUNT_CLASS_HASH = 0x061DAC032F228ABEF9C6626F995015233097AE253A7F72D68552DB02F2971B8F
TEST_CHAIN_ID = encode_shortstring("SN_SEPOLIA")

FAST_POLICY = PollingPolicy(interval=0, backoff_factor=1, max_interval=0, max_attempts=5)

INCREASE_BALANCE_SELECTOR = get_selector_from_name("increase_balance")
GET_BALANCE_SELECTOR = get_selector_from_name("get_balance")

HELLO_SIERRA_CLASS = {
    "sierra_program": ["0x1", "0x3", "0x0", "0x2", "0x6", "0x3"],
    "sierra_program_debug_info": {"type_names": [], "libfunc_names": [], "user_func_names": []},
    "contract_class_version": "0.1.0",
    "entry_points_by_type": {
        "EXTERNAL": [
            {"selector": hex(INCREASE_BALANCE_SELECTOR), "function_idx": 0},
            {"selector": hex(GET_BALANCE_SELECTOR), "function_idx": 1},
        ],
        "L1_HANDLER": [],
        "CONSTRUCTOR": [],
    },
    "abi": [
        {
            "type": "function",
            "name": "increase_balance",
            "inputs": [{"name": "amount", "type": "core::felt252"}],
            "outputs": [],
            "state_mutability": "external",
        },
        {
            "type": "function",
            "name": "get_balance",
            "inputs": [],
            "outputs": [{"type": "core::felt252"}],
            "state_mutability": "view",
        },
    ],
}
TEST_COMPILED_CLASS_HASH = 0x2A8E9F6B1C0D3E4F5A6B7C8D9E0F1A2B3C4D5E6F7A8B9C0D1E2F3A4B5C6D7E8


def seeded_entropy(seed: int):
    """Entropy source returning reproducible bytes"""
    rng = random.Random(seed)
    return lambda n: bytes(rng.getrandbits(8) for _ in range(n))


# ─────────────────────────────────────────────────────────────────────────
#  REFERENCE HASHES (RPC v0.7 layout, written out field by field)
# ─────────────────────────────────────────────────────────────────────────

INVOKE_TAG = 0x696E766F6B65  # "invoke"
DECLARE_TAG = 0x6465636C617265  # "declare"
L1_GAS_TAG = 0x4C315F474153  # "L1_GAS"
L2_GAS_TAG = 0x4C325F474153  # "L2_GAS"
CONTRACT_CLASS_V0_1_0 = 0x434F4E54524143545F434C4153535F56302E312E30  # "CONTRACT_CLASS_V0.1.0"


def reference_transaction_hash(tx: SignedTransaction, chain_id: int) -> int:
    """v3 invoke/declare hash with only the L1_GAS and L2_GAS bounds committed"""
    def bound(tag, resource):
        return tag << 192 | resource.max_amount << 128 | resource.max_price_per_unit

    fee_hash = poseidon_hash_many(
        [
            tx.tip,
            bound(L1_GAS_TAG, tx.resource_bounds.l1_gas),
            bound(L2_GAS_TAG, tx.resource_bounds.l2_gas),
        ]
    )
    declare = isinstance(tx, SignedDeclareTx)
    fields = [
        DECLARE_TAG if declare else INVOKE_TAG,
        tx.version,
        tx.sender_address,
        fee_hash,
        poseidon_hash_many(list(tx.paymaster_data)),
        chain_id,
        tx.nonce,
        int(tx.nonce_data_availability_mode) << 32 | int(tx.fee_data_availability_mode),
        poseidon_hash_many(list(tx.account_deployment_data)),
    ]
    if declare:
        fields += [tx.class_hash, tx.compiled_class_hash]
    else:
        fields.append(poseidon_hash_many(list(tx.calldata)))
    return poseidon_hash_many(fields)


def reference_sierra_class_hash(contract_class: Dict[str, Any]) -> int:
    """Class hash of a ``0.1.0`` sierra class"""
    assert contract_class["contract_class_version"] == "0.1.0"
    abi = contract_class["abi"]
    if not isinstance(abi, str):
        abi = json.dumps(abi, separators=(",", ":"))

    def entry_points(kind):
        flat = []
        for ep in contract_class["entry_points_by_type"][kind]:
            flat += [int(ep["selector"], 16), int(ep["function_idx"])]
        return poseidon_hash_many(flat)

    return poseidon_hash_many(
        [
            CONTRACT_CLASS_V0_1_0,
            entry_points("EXTERNAL"),
            entry_points("L1_HANDLER"),
            entry_points("CONSTRUCTOR"),
            # selector derivation is the truncated keccak of the ASCII text
            reference_keccak(abi),
            poseidon_hash_many([int(v, 16) for v in contract_class["sierra_program"]]),
        ]
    )


# ─────────────────────────────────────────────────────────────────────────
#  IN-MEMORY STARKNET NODE
# ─────────────────────────────────────────────────────────────────────────

class FakeStarknetNode(Provider):
    """
    A provider that behaves like a tiny Starknet node.

    It checks nonces and signatures, applies UDC deployments and the
    HelloStarknet ``increase_balance`` entry point, and reports each
    transaction as ``RECEIVED`` for ``pending_polls`` polls before it
    finalizes.
    """

    def __init__(
        self,
        public_key: int,
        account_address: int = TEST_ACCOUNT_ADDRESS,
        chain_id: int = TEST_CHAIN_ID,
        pending_polls: int = 1,
        reject_invalid_signature_on_submit: bool = False,
    ):
        self.public_key = public_key
        self.account_address = account_address
        self._chain_id = chain_id
        self.pending_polls = pending_polls
        self.reject_invalid_signature_on_submit = reject_invalid_signature_on_submit

        self.nonces: Dict[int, int] = {account_address: 0}
        self.classes: Dict[int, int] = {}
        self.contracts: Dict[int, int] = {account_address: TEST_ACCOUNT_CLASS_HASH}
        self.balances: Dict[int, int] = {}
        self.transactions: Dict[int, Dict[str, Any]] = {}
        self.submitted: List[SignedTransaction] = []
        self.fee_estimate = FeeEstimate(gas_consumed=100, gas_price=10, overall_fee=1000)
        self.estimated: List[SignedTransaction] = []
        self.block_number = 0

    def _signature_valid(self, tx: SignedTransaction) -> bool:
        if len(tx.signature) != 2:
            return False
        try:
            # the node derives the hash itself; a wrongly hashed transaction fails validation
            expected_hash = reference_transaction_hash(tx, self._chain_id)
            return verify_message_signature(expected_hash, list(tx.signature), self.public_key)
        except Exception:
            return False

    def _apply_invoke(self, tx) -> List[Event]:
        events = []
        calldata = list(tx.calldata)
        count, pos = calldata[0], 1
        for _ in range(count):
            to, selector, length = calldata[pos:pos + 3]
            data = calldata[pos + 3:pos + 3 + length]
            pos += 3 + length
            if to == UDC_ADDRESS and selector == UDC_DEPLOY_SELECTOR:
                class_hash, salt, unique, ctor_len = data[:4]
                ctor = data[4:4 + ctor_len]
                if unique:
                    address = reference_compute_address(
                        class_hash=class_hash,
                        constructor_calldata=ctor,
                        salt=pedersen_hash(tx.sender_address, salt),
                        deployer_address=UDC_ADDRESS,
                    )
                else:
                    address = reference_compute_address(
                        class_hash=class_hash, constructor_calldata=ctor, salt=salt
                    )
                self.contracts[address] = class_hash
                self.balances[address] = 0
                events.append(
                    Event(
                        from_address=UDC_ADDRESS,
                        keys=[CONTRACT_DEPLOYED_EVENT_KEY],
                        data=[address, tx.sender_address, unique, class_hash, ctor_len, *ctor, salt],
                    )
                )
            elif selector == INCREASE_BALANCE_SELECTOR:
                self.balances[to] = self.balances.get(to, 0) + data[0]
        return events

    def submit(self, tx: SignedTransaction) -> TransactionResult:
        expected = self.nonces.get(tx.sender_address, 0)
        if tx.nonce != expected:
            raise RpcProtocolError(
                "Invalid transaction nonce", code=StarknetErrorCode.INVALID_TRANSACTION_NONCE
            )
        if self.is_declare(tx) and tx.class_hash in self.classes:
            raise RpcProtocolError("Class already declared", code=StarknetErrorCode.CLASS_ALREADY_DECLARED)

        valid = self._signature_valid(tx)
        if not valid and self.reject_invalid_signature_on_submit:
            raise RpcProtocolError("Account validation failed", code=StarknetErrorCode.VALIDATION_FAILURE)

        self.submitted.append(tx)
        events: List[Event] = []
        if valid:
            self.nonces[tx.sender_address] = expected + 1
            self.block_number += 1
            if isinstance(tx, SignedDeclareTx):
                self.classes[tx.class_hash] = tx.compiled_class_hash
            else:
                events = self._apply_invoke(tx)

        self.transactions[tx.transaction_hash] = {
            "valid": valid,
            "polls": 0,
            "receipt": Receipt(
                transaction_hash=tx.transaction_hash,
                status=ReceiptStatus.ACCEPTED,
                finality_status=FinalityStatus.ACCEPTED_ON_L2,
                execution_status=ExecutionStatus.SUCCEEDED,
                block_number=self.block_number,
                block_hash=0xB10C + self.block_number,
                events=events,
                actual_fee=1000,
                fee_unit="FRI",
            ),
        }
        if isinstance(tx, SignedDeclareTx):
            return DeclareResult(
                transaction_hash=tx.transaction_hash,
                class_hash=reference_sierra_class_hash(tx.contract_class),
            )
        return InvokeResult(transaction_hash=tx.transaction_hash)

    def _entry(self, transaction_hash: int) -> Dict[str, Any]:
        if transaction_hash not in self.transactions:
            raise RpcProtocolError("Transaction hash not found", code=StarknetErrorCode.TXN_HASH_NOT_FOUND)
        return self.transactions[transaction_hash]

    def get_transaction_status(self, transaction_hash: int) -> TransactionStatus:
        entry = self._entry(transaction_hash)
        entry["polls"] += 1
        if entry["polls"] <= self.pending_polls:
            return TransactionStatus(finality_status=FinalityStatus.RECEIVED)
        if not entry["valid"]:
            return TransactionStatus(
                finality_status=FinalityStatus.REJECTED, failure_reason="Signature is invalid"
            )
        return TransactionStatus(
            finality_status=FinalityStatus.ACCEPTED_ON_L2, execution_status=ExecutionStatus.SUCCEEDED
        )

    def get_receipt(self, transaction_hash: int) -> Receipt:
        entry = self._entry(transaction_hash)
        if not entry["valid"]:
            raise RpcProtocolError("Transaction hash not found", code=StarknetErrorCode.TXN_HASH_NOT_FOUND)
        return entry["receipt"]

    def call(self, function_call: FunctionCall, block_id=BlockTag.PENDING) -> List[int]:
        address = function_call.contract_address
        if address not in self.contracts:
            raise RpcProtocolError("Contract not found", code=StarknetErrorCode.CONTRACT_NOT_FOUND)
        if function_call.entry_point_selector == GET_BALANCE_SELECTOR:
            return [self.balances.get(address, 0)]
        return []

    def get_nonce(self, contract_address: int, block_id=BlockTag.PENDING) -> int:
        return self.nonces.get(contract_address, 0)

    def chain_id(self) -> int:
        return self._chain_id

    def estimate_fee(
        self, transactions: Sequence[SignedTransaction], block_id=BlockTag.PENDING, skip_validate: bool = True
    ) -> List[FeeEstimate]:
        self.estimated.extend(transactions)
        return [self.fee_estimate for _ in transactions]

    def get_class_hash_at(self, contract_address: int, block_id=BlockTag.PENDING) -> int:
        if contract_address not in self.contracts:
            raise RpcProtocolError("Contract not found", code=StarknetErrorCode.CONTRACT_NOT_FOUND)
        return self.contracts[contract_address]

    def block_hash_and_number(self) -> BlockHashAndNumber:
        return BlockHashAndNumber(block_hash=0xB10C + self.block_number, block_number=self.block_number)


@pytest.fixture
def signer():
    return LocalSigner(TEST_PRIVATE_KEY)


@pytest.fixture
def fake_node(signer):
    return FakeStarknetNode(public_key=signer.public_key)


@pytest.fixture
def account(fake_node, signer):
    return Account(TEST_ACCOUNT_ADDRESS, TEST_CHAIN_ID, signer, fake_node)


@pytest.fixture
def hive(fake_node, signer):
    return StarknetHive(
        TEST_RPC_URL,
        TEST_ACCOUNT_ADDRESS,
        signer=signer,
        account_class_hash=TEST_ACCOUNT_CLASS_HASH,
        polling_policy=FAST_POLICY,
        provider=fake_node,
    )


@pytest.fixture
def hello_class() -> Dict[str, Any]:
    return {key: value for key, value in HELLO_SIERRA_CLASS.items()}


def rpc_response(result: Any, request_id: int = 1) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def rpc_error(code: int, message: str, data: Optional[Any] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": 1, "error": error}
