"""
Signer interfaces for the Starknet Hive SDK.
"""
from typing import List, Protocol, Tuple, runtime_checkable


@runtime_checkable
class Signer(Protocol):
    """Protocol for transaction signers"""
    public_key: int

    def sign(self, message_hash: int) -> Tuple[int, int]:
        """Sign a transaction hash and return the (r, s) pair"""
        ...


def signature_to_list(signature: Tuple[int, int]) -> List[int]:
    """Flatten a signer's (r, s) pair into the calldata-style signature list"""
    r, s = signature
    return [r, s]


__all__ = ["Signer", "signature_to_list"]
