"""
Hash constructions used by Starknet nodes.

Every function here must reproduce the node's computation bit for bit:
the transaction hash is what the account contract checks the signature
against, and the contract address is what the deployment ends up at.
"""
import json
from typing import Any, Dict, List, Sequence

from poseidon_py.poseidon_hash import poseidon_hash_many
from starknet_py.common import create_sierra_compiled_contract
from starknet_py.hash import address
from starknet_py.hash.sierra_class_hash import compute_sierra_class_hash as sierra_class_hash
from starknet_py.hash.utils import pedersen_hash

from .exceptions import EncodingError
from .models import DataAvailabilityMode, ResourceBounds, ResourceBoundsMapping
from .utils import encode_shortstring, to_felt, to_felt_list

INVOKE_PREFIX = encode_shortstring("invoke")
DECLARE_PREFIX = encode_shortstring("declare")

TRANSACTION_VERSION = 3
QUERY_VERSION_BASE = 2**128

L1_GAS_NAME = encode_shortstring("L1_GAS")
L2_GAS_NAME = encode_shortstring("L2_GAS")
MAX_AMOUNT_BITS = 64
MAX_PRICE_PER_UNIT_BITS = 128
DATA_AVAILABILITY_MODE_BITS = 32

ENTRY_POINT_TYPES = ("EXTERNAL", "L1_HANDLER", "CONSTRUCTOR")


def transaction_version(query: bool = False) -> int:
    """Version field of a v3 transaction, with the query bit for fee estimation"""
    return TRANSACTION_VERSION + QUERY_VERSION_BASE if query else TRANSACTION_VERSION


def compute_address(
    *,
    deployer_address: int,
    class_hash: int,
    salt: int,
    constructor_calldata: Sequence[int],
) -> int:
    """
    Compute the address a contract is deployed at.

    Args:
        deployer_address: Address of the deploying contract (0 for
            deployments that are not bound to a deployer)
        class_hash: Class hash of the deployed contract
        salt: Deployment salt
        constructor_calldata: Constructor arguments

    Returns:
        The contract address
    """
    return address.compute_address(
        class_hash=to_felt(class_hash),
        constructor_calldata=to_felt_list(constructor_calldata),
        salt=to_felt(salt),
        deployer_address=to_felt(deployer_address),
    )


def compute_udc_salt(sender_address: int, salt: int) -> int:
    """Salt the Universal Deployer uses for ``unique`` deployments"""
    return pedersen_hash(to_felt(sender_address), to_felt(salt))


def encode_resource_bound(name: int, bound: ResourceBounds) -> int:
    return (
        (name << (MAX_AMOUNT_BITS + MAX_PRICE_PER_UNIT_BITS))
        + (bound.max_amount << MAX_PRICE_PER_UNIT_BITS)
        + bound.max_price_per_unit
    )


def compute_fee_fields_hash(tip: int, resource_bounds: ResourceBoundsMapping) -> int:
    return poseidon_hash_many(
        [
            tip,
            encode_resource_bound(L1_GAS_NAME, resource_bounds.l1_gas),
            encode_resource_bound(L2_GAS_NAME, resource_bounds.l2_gas),
        ]
    )


def encode_data_availability_modes(
    nonce_mode: DataAvailabilityMode, fee_mode: DataAvailabilityMode
) -> int:
    return (int(nonce_mode) << DATA_AVAILABILITY_MODE_BITS) + int(fee_mode)


def _common_v3_fields(
    prefix: int,
    version: int,
    sender_address: int,
    chain_id: int,
    nonce: int,
    resource_bounds: ResourceBoundsMapping,
    tip: int,
    paymaster_data: Sequence[int],
    nonce_data_availability_mode: DataAvailabilityMode,
    fee_data_availability_mode: DataAvailabilityMode,
) -> List[int]:
    return [
        prefix,
        version,
        sender_address,
        compute_fee_fields_hash(tip, resource_bounds),
        poseidon_hash_many(list(paymaster_data)),
        chain_id,
        nonce,
        encode_data_availability_modes(nonce_data_availability_mode, fee_data_availability_mode),
    ]


def compute_invoke_v3_transaction_hash(
    *,
    sender_address: int,
    calldata: Sequence[int],
    chain_id: int,
    nonce: int,
    resource_bounds: ResourceBoundsMapping,
    tip: int = 0,
    paymaster_data: Sequence[int] = (),
    account_deployment_data: Sequence[int] = (),
    nonce_data_availability_mode: DataAvailabilityMode = DataAvailabilityMode.L1,
    fee_data_availability_mode: DataAvailabilityMode = DataAvailabilityMode.L1,
    version: int = TRANSACTION_VERSION,
) -> int:
    fields = _common_v3_fields(
        INVOKE_PREFIX, version, sender_address, chain_id, nonce, resource_bounds,
        tip, paymaster_data, nonce_data_availability_mode, fee_data_availability_mode,
    )
    fields.append(poseidon_hash_many(list(account_deployment_data)))
    fields.append(poseidon_hash_many(list(calldata)))
    return poseidon_hash_many(fields)


def compute_declare_v3_transaction_hash(
    *,
    sender_address: int,
    class_hash: int,
    compiled_class_hash: int,
    chain_id: int,
    nonce: int,
    resource_bounds: ResourceBoundsMapping,
    tip: int = 0,
    paymaster_data: Sequence[int] = (),
    account_deployment_data: Sequence[int] = (),
    nonce_data_availability_mode: DataAvailabilityMode = DataAvailabilityMode.L1,
    fee_data_availability_mode: DataAvailabilityMode = DataAvailabilityMode.L1,
    version: int = TRANSACTION_VERSION,
) -> int:
    fields = _common_v3_fields(
        DECLARE_PREFIX, version, sender_address, chain_id, nonce, resource_bounds,
        tip, paymaster_data, nonce_data_availability_mode, fee_data_availability_mode,
    )
    fields.append(poseidon_hash_many(list(account_deployment_data)))
    fields.append(class_hash)
    fields.append(compiled_class_hash)
    return poseidon_hash_many(fields)


def normalize_sierra_class(contract_class: Dict[str, Any]) -> Dict[str, Any]:
    """
    Bring a sierra contract class into the flattened form the node accepts.

    The ABI is serialized to a compact JSON string once, so the string that
    is hashed is exactly the string that is sent.

    Raises:
        EncodingError: If required fields are missing or malformed
    """
    if not isinstance(contract_class, dict):
        raise EncodingError(f"Contract class must be a dictionary, got {type(contract_class).__name__}")

    missing = [
        key for key in ("sierra_program", "contract_class_version", "entry_points_by_type")
        if key not in contract_class
    ]
    if missing:
        raise EncodingError(f"Contract class missing required fields: {', '.join(missing)}")

    abi = contract_class.get("abi", "")
    if not isinstance(abi, str):
        abi = json.dumps(abi, separators=(",", ":"))

    entry_points = {}
    for ep_type in ENTRY_POINT_TYPES:
        entry_points[ep_type] = [
            {
                "selector": hex(to_felt(ep["selector"])),
                "function_idx": int(ep["function_idx"]),
            }
            for ep in contract_class["entry_points_by_type"].get(ep_type, [])
        ]

    return {
        "sierra_program": [hex(v) for v in to_felt_list(contract_class["sierra_program"])],
        "contract_class_version": str(contract_class["contract_class_version"]),
        "entry_points_by_type": entry_points,
        "abi": abi,
    }


def compute_sierra_class_hash(contract_class: Dict[str, Any]) -> int:
    """
    Compute the class hash of a sierra contract class.

    Accepts either the raw compiler output or an already normalized class.
    """
    flat = normalize_sierra_class(contract_class)
    return sierra_class_hash(create_sierra_compiled_contract(json.dumps(flat)))
