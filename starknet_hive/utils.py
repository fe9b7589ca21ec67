"""
Utility functions for the Starknet Hive SDK.
"""
from typing import Any, Iterable, List, Union

from starknet_py.cairo import felt as cairo_felt
from starknet_py.hash import selector

from .exceptions import EncodingError

# Field over which all Starknet values are defined
FIELD_PRIME = 2**251 + 17 * 2**192 + 1

FeltLike = Union[int, str, bytes]


def to_felt(value: FeltLike) -> int:
    """
    Convert an int, hex string or big-endian bytes into a field element.

    Args:
        value: Value to convert (``0x``-prefixed strings are read as hex,
            other strings as decimal)

    Returns:
        The value as an int in ``[0, FIELD_PRIME)``

    Raises:
        EncodingError: If the value is malformed or outside the field
    """
    if isinstance(value, bool):
        raise EncodingError(f"Cannot use a bool as a felt: {value}")
    if isinstance(value, int):
        felt = value
    elif isinstance(value, bytes):
        felt = int.from_bytes(value, "big")
    elif isinstance(value, str):
        text = value.strip().lower()
        try:
            felt = int(text, 16) if text.startswith("0x") else int(text, 10)
        except ValueError as e:
            raise EncodingError(f"Invalid felt string {value!r}: {e}") from e
    else:
        raise EncodingError(f"Cannot convert {type(value).__name__} to a felt")

    if not 0 <= felt < FIELD_PRIME:
        raise EncodingError(f"Value {value!r} is outside the Starknet field")
    return felt


def to_felt_list(values: Iterable[FeltLike]) -> List[int]:
    """Convert every element of ``values`` with :func:`to_felt`."""
    return [to_felt(v) for v in values]


def to_hex(value: int) -> str:
    """Format a felt the way the JSON-RPC API expects (no leading zeros)."""
    return hex(value)


def parse_hex(value: Any) -> int:
    """Parse a hex quantity from an RPC response, treating ``None`` as zero."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    return int(value, 16)


def encode_shortstring(text: str) -> int:
    """
    Encode an ASCII string of at most 31 characters as a felt.

    Raises:
        EncodingError: If the text is too long or not ASCII
    """
    try:
        return cairo_felt.encode_shortstring(text)
    except ValueError as e:
        raise EncodingError(f"Cannot encode short string {text!r}: {e}") from e


def decode_shortstring(value: int) -> str:
    """Inverse of :func:`encode_shortstring`."""
    return cairo_felt.decode_shortstring(value)


def get_selector_from_name(func_name: str) -> int:
    """
    Derive an entry point selector from a function name.

    Raises:
        EncodingError: If the name is empty or not ASCII
    """
    if not func_name:
        raise EncodingError("Entry point name must not be empty")
    try:
        return selector.get_selector_from_name(func_name)
    except UnicodeEncodeError as e:
        raise EncodingError(f"Entry point name {func_name!r} is not ASCII") from e
