"""
Local STARK-curve signer holding a private key in memory.
"""
import logging
from typing import Optional, Sequence, Tuple, Union

from starknet_py.hash.utils import message_signature, private_to_stark_key, verify_message_signature

from ..exceptions import SigningError

logger = logging.getLogger(__name__)

# Order of the STARK curve generator
EC_ORDER = 0x0800000000000010FFFFFFFFFFFFFFFFB781126DCAE7B2321E66A241ADC64D2F


class LocalSigner:
    """
    Signs transaction hashes with a STARK-curve private key.

    Signatures use a deterministic nonce (RFC 6979), so signing the same
    hash twice yields the same (r, s) pair.
    """

    def __init__(self, private_key: Union[int, str], seed: Optional[int] = 32):
        """
        Initialize the signer.

        Args:
            private_key: Private key as int or hex string
            seed: Extra entropy mixed into the deterministic nonce

        Raises:
            SigningError: If the key is not a valid STARK-curve scalar
        """
        self._private_key = self._parse_key(private_key)
        self._seed = seed
        self.public_key = private_to_stark_key(self._private_key)
        logger.debug("Initialized local signer for public key %s", hex(self.public_key))

    @staticmethod
    def _parse_key(private_key: Union[int, str]) -> int:
        if isinstance(private_key, bool):
            raise SigningError("Private key must be an int or hex string")
        if isinstance(private_key, str):
            try:
                private_key = int(private_key, 16)
            except ValueError as e:
                raise SigningError(f"Private key is not valid hex: {e}") from e
        if not isinstance(private_key, int):
            raise SigningError(f"Private key must be an int or hex string, got {type(private_key).__name__}")
        if not 0 < private_key < EC_ORDER:
            raise SigningError("Private key is outside the STARK curve order")
        return private_key

    def sign(self, message_hash: int) -> Tuple[int, int]:
        r, s = message_signature(message_hash, self._private_key, seed=self._seed)
        return r, s

    def verify(self, message_hash: int, signature: Sequence[int]) -> bool:
        """Check a signature against this signer's public key"""
        return verify_message_signature(message_hash, list(signature), self.public_key)

    def __repr__(self) -> str:
        # never print the private key
        return f"LocalSigner(public_key={hex(self.public_key)})"
