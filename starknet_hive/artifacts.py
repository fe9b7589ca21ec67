"""
Loading of compiled contract artifacts produced by ``scarb build``.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Tuple, Union

from starknet_py.common import create_casm_class
from starknet_py.hash.casm_class_hash import compute_casm_class_hash

from .exceptions import EncodingError
from .hashing import normalize_sierra_class

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def load_sierra_class(sierra_path: PathLike) -> Dict[str, Any]:
    """
    Read a sierra ``contract_class.json`` file.

    Raises:
        FileNotFoundError: If the file does not exist
        EncodingError: If the file is not a valid sierra class
    """
    text = Path(sierra_path).read_text(encoding="utf-8")
    try:
        contract_class = json.loads(text)
    except json.JSONDecodeError as e:
        raise EncodingError(f"Invalid JSON in {sierra_path}: {e}") from e
    # Fail early on malformed classes
    normalize_sierra_class(contract_class)
    return contract_class


def compute_compiled_class_hash(casm_path: PathLike) -> int:
    """Hash of the CASM ``compiled_contract_class.json`` at ``casm_path``"""
    casm_text = Path(casm_path).read_text(encoding="utf-8")
    try:
        casm_class = create_casm_class(casm_text)
    except (ValueError, KeyError) as e:
        raise EncodingError(f"Invalid compiled class in {casm_path}: {e}") from e
    return compute_casm_class_hash(casm_class)


def load_compiled_contract(sierra_path: PathLike, casm_path: PathLike) -> Tuple[Dict[str, Any], int]:
    """
    Load a contract ready to be declared.

    Returns:
        Tuple of (sierra contract class, compiled class hash)
    """
    contract_class = load_sierra_class(sierra_path)
    compiled_class_hash = compute_compiled_class_hash(casm_path)
    logger.debug(f"Loaded {sierra_path} with compiled class hash {hex(compiled_class_hash)}")
    return contract_class, compiled_class_hash
