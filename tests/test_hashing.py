"""
Tests for the address, class and transaction hash constructions.
"""
import json

import pytest
from hypothesis import given, settings, strategies as st
from starknet_py.hash.address import compute_address as reference_compute_address

from starknet_hive import hashing
from starknet_hive.exceptions import EncodingError
from starknet_hive.models import (
    DataAvailabilityMode,
    ResourceBounds,
    ResourceBoundsMapping,
    SignedDeclareTx,
    SignedInvokeTx,
)
from starknet_hive.utils import FIELD_PRIME
from conftest import (
    HELLO_SIERRA_CLASS,
    TEST_ACCOUNT_ADDRESS,
    TEST_CHAIN_ID,
    reference_sierra_class_hash,
    reference_transaction_hash,
)

felts = st.integers(min_value=0, max_value=FIELD_PRIME - 1)

BOUNDS = ResourceBoundsMapping(l1_gas=ResourceBounds(max_amount=0x186A0, max_price_per_unit=0x5AF3107A4000))
FULL_BOUNDS = ResourceBoundsMapping(
    l1_gas=ResourceBounds(max_amount=0x186A0, max_price_per_unit=0x5AF3107A4000),
    l2_gas=ResourceBounds(max_amount=0x7D0, max_price_per_unit=0x3B9ACA00),
)
NON_DEFAULT_FIELDS = dict(
    tip=0x10,
    paymaster_data=(0xAA, 0xBB),
    account_deployment_data=(0xCC,),
    nonce_data_availability_mode=DataAvailabilityMode.L2,
    fee_data_availability_mode=DataAvailabilityMode.L1,
)


class TestComputeAddress:
    def test_matches_reference_implementation(self):
        kwargs = dict(class_hash=0x1234, salt=0x5678, constructor_calldata=[1, 2, 3])
        assert hashing.compute_address(deployer_address=0x42, **kwargs) == reference_compute_address(
            deployer_address=0x42, **kwargs
        )

    def test_depends_on_every_input(self):
        base = dict(deployer_address=1, class_hash=2, salt=3, constructor_calldata=[4])
        address = hashing.compute_address(**base)
        for key, value in [("deployer_address", 9), ("class_hash", 9), ("salt", 9), ("constructor_calldata", [9])]:
            assert hashing.compute_address(**dict(base, **{key: value})) != address

    @settings(max_examples=25, deadline=None)
    @given(deployer=felts, class_hash=felts, salt=felts, calldata=st.lists(felts, max_size=4))
    def test_is_deterministic_and_in_range(self, deployer, class_hash, salt, calldata):
        first = hashing.compute_address(
            deployer_address=deployer, class_hash=class_hash, salt=salt, constructor_calldata=calldata
        )
        second = hashing.compute_address(
            deployer_address=deployer, class_hash=class_hash, salt=salt, constructor_calldata=list(calldata)
        )
        assert first == second
        assert 0 <= first < 2**251 - 256


def test_encode_resource_bound():
    bound = ResourceBounds(max_amount=1, max_price_per_unit=2)
    encoded = hashing.encode_resource_bound(hashing.L1_GAS_NAME, bound)
    assert encoded >> 192 == hashing.L1_GAS_NAME
    assert (encoded >> 128) & (2**64 - 1) == 1
    assert encoded & (2**128 - 1) == 2


def test_data_availability_modes():
    assert hashing.encode_data_availability_modes(DataAvailabilityMode.L1, DataAvailabilityMode.L1) == 0
    assert hashing.encode_data_availability_modes(DataAvailabilityMode.L2, DataAvailabilityMode.L1) == 2**32
    assert hashing.encode_data_availability_modes(DataAvailabilityMode.L1, DataAvailabilityMode.L2) == 1


def test_transaction_version():
    assert hashing.transaction_version() == 3
    assert hashing.transaction_version(query=True) == 2**128 + 3


class TestInvokeHash:
    def _hash(self, **overrides):
        fields = dict(
            sender_address=TEST_ACCOUNT_ADDRESS,
            calldata=[1, 2, 3],
            chain_id=TEST_CHAIN_ID,
            nonce=0,
            resource_bounds=BOUNDS,
        )
        fields.update(overrides)
        return hashing.compute_invoke_v3_transaction_hash(**fields)

    def test_deterministic(self):
        assert self._hash() == self._hash()

    @pytest.mark.parametrize(
        "override",
        [
            {"nonce": 1},
            {"calldata": [1, 2, 4]},
            {"chain_id": 0x534E5F4D41494E},
            {"tip": 1},
            {"resource_bounds": ResourceBoundsMapping()},
            {"version": 2**128 + 3},
            {"paymaster_data": [1]},
            {"nonce_data_availability_mode": DataAvailabilityMode.L2},
        ],
    )
    def test_every_field_is_committed(self, override):
        assert self._hash(**override) != self._hash()

    def test_declare_hash_differs_from_invoke(self):
        declare = hashing.compute_declare_v3_transaction_hash(
            sender_address=TEST_ACCOUNT_ADDRESS,
            class_hash=1,
            compiled_class_hash=2,
            chain_id=TEST_CHAIN_ID,
            nonce=0,
            resource_bounds=BOUNDS,
        )
        assert declare != self._hash()


class TestSierraClass:
    def test_normalize_serializes_abi_compactly(self):
        flat = hashing.normalize_sierra_class(HELLO_SIERRA_CLASS)
        assert flat["abi"] == json.dumps(HELLO_SIERRA_CLASS["abi"], separators=(",", ":"))
        assert set(flat) == {"sierra_program", "contract_class_version", "entry_points_by_type", "abi"}
        assert flat["entry_points_by_type"]["L1_HANDLER"] == []

    def test_normalize_is_idempotent(self):
        flat = hashing.normalize_sierra_class(HELLO_SIERRA_CLASS)
        assert hashing.normalize_sierra_class(flat) == flat

    def test_missing_fields(self):
        with pytest.raises(EncodingError) as exc_info:
            hashing.normalize_sierra_class({"abi": []})
        assert "sierra_program" in str(exc_info.value)

    def test_not_a_dict(self):
        with pytest.raises(EncodingError):
            hashing.normalize_sierra_class("[]")

    def test_class_hash_is_stable(self):
        first = hashing.compute_sierra_class_hash(HELLO_SIERRA_CLASS)
        second = hashing.compute_sierra_class_hash(json.loads(json.dumps(HELLO_SIERRA_CLASS)))
        assert first == second
        assert first != 0


    def test_class_hash_matches_reference(self):
        expected = reference_sierra_class_hash(HELLO_SIERRA_CLASS)
        assert hashing.compute_sierra_class_hash(HELLO_SIERRA_CLASS) == expected
        flat = hashing.normalize_sierra_class(HELLO_SIERRA_CLASS)
        assert hashing.compute_sierra_class_hash(flat) == expected

    def test_class_hash_commits_to_abi(self):
        changed = dict(HELLO_SIERRA_CLASS, abi=HELLO_SIERRA_CLASS["abi"][:1])
        assert hashing.compute_sierra_class_hash(changed) == reference_sierra_class_hash(changed)
        assert hashing.compute_sierra_class_hash(changed) != hashing.compute_sierra_class_hash(HELLO_SIERRA_CLASS)


class TestReferenceTransactionHashes:
    @pytest.mark.parametrize("extra", [{}, NON_DEFAULT_FIELDS])
    @pytest.mark.parametrize("bounds", [BOUNDS, FULL_BOUNDS])
    def test_invoke_matches_reference(self, bounds, extra):
        computed = hashing.compute_invoke_v3_transaction_hash(
            sender_address=TEST_ACCOUNT_ADDRESS,
            calldata=[1, 0x123, 0x456, 2, 7, 8],
            chain_id=TEST_CHAIN_ID,
            nonce=5,
            resource_bounds=bounds,
            **extra,
        )
        tx = SignedInvokeTx(
            sender_address=TEST_ACCOUNT_ADDRESS,
            calldata=(1, 0x123, 0x456, 2, 7, 8),
            nonce=5,
            resource_bounds=bounds,
            transaction_hash=computed,
            **extra,
        )
        assert computed == reference_transaction_hash(tx, TEST_CHAIN_ID)

    @pytest.mark.parametrize("extra", [{}, NON_DEFAULT_FIELDS])
    def test_declare_matches_reference(self, extra):
        computed = hashing.compute_declare_v3_transaction_hash(
            sender_address=TEST_ACCOUNT_ADDRESS,
            class_hash=0xC1A55,
            compiled_class_hash=0xCA5E,
            chain_id=TEST_CHAIN_ID,
            nonce=2,
            resource_bounds=FULL_BOUNDS,
            **extra,
        )
        tx = SignedDeclareTx(
            sender_address=TEST_ACCOUNT_ADDRESS,
            contract_class={},
            class_hash=0xC1A55,
            compiled_class_hash=0xCA5E,
            nonce=2,
            resource_bounds=FULL_BOUNDS,
            transaction_hash=computed,
            **extra,
        )
        assert computed == reference_transaction_hash(tx, TEST_CHAIN_ID)

    def test_query_version_matches_reference(self):
        query_version = hashing.transaction_version(query=True)
        computed = hashing.compute_invoke_v3_transaction_hash(
            sender_address=TEST_ACCOUNT_ADDRESS,
            calldata=[],
            chain_id=TEST_CHAIN_ID,
            nonce=0,
            resource_bounds=BOUNDS,
            version=query_version,
        )
        tx = SignedInvokeTx(
            sender_address=TEST_ACCOUNT_ADDRESS,
            nonce=0,
            version=query_version,
            resource_bounds=BOUNDS,
            transaction_hash=computed,
        )
        assert computed == reference_transaction_hash(tx, TEST_CHAIN_ID)
