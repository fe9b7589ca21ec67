"""
Tests for the local STARK-curve signer.
"""
import pytest

from starknet_hive.exceptions import SigningError
from starknet_hive.signer import Signer, signature_to_list
from starknet_hive.signer.local import EC_ORDER, LocalSigner
from conftest import TEST_PRIVATE_KEY


def test_satisfies_signer_protocol(signer):
    assert isinstance(signer, Signer)


def test_sign_is_deterministic_and_verifiable(signer):
    first = signer.sign(0x1234)
    assert signer.sign(0x1234) == first
    assert signer.verify(0x1234, first)
    assert not signer.verify(0x1235, first)


def test_hex_and_int_keys_agree():
    assert LocalSigner(hex(TEST_PRIVATE_KEY)).public_key == LocalSigner(TEST_PRIVATE_KEY).public_key


@pytest.mark.parametrize("bad_key", [0, EC_ORDER, "0xnothex", True, 1.5, -3])
def test_malformed_key_fails_at_construction(bad_key):
    with pytest.raises(SigningError):
        LocalSigner(bad_key)


def test_repr_hides_private_key(signer):
    assert hex(TEST_PRIVATE_KEY) not in repr(signer)
    assert hex(signer.public_key) in repr(signer)


def test_signature_to_list():
    assert signature_to_list((1, 2)) == [1, 2]
