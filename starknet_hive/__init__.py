"""
Starknet Hive SDK - build, sign, submit and confirm Starknet transactions.
"""
from .account import Account, CallEncoding, encode_calls
from .artifacts import load_compiled_contract
from .config import HiveSettings, NetworkConfig
from .contract import ContractFactory, Deployment, generate_salt, get_contract_address
from .exceptions import (
    AddressMismatch,
    EmptyResult,
    EncodingError,
    HiveError,
    NonceMismatch,
    RpcError,
    RpcProtocolError,
    RpcTransportError,
    ScenarioStageError,
    SigningError,
    StarknetErrorCode,
    TransactionRejected,
    TransactionTimedOut,
    TransactionWaitCancelled,
    UnexpectedAcceptance,
)
from .hive import StarknetHive
from .models import BlockTag, Call, FunctionCall, Receipt, ReceiptStatus
from .provider import JsonRpcProvider, Provider
from .scenario import STAGES, ScenarioReport, run_hello_starknet
from .signer import Signer
from .signer.local import LocalSigner
from .version import __version__
from .waiter import PollingPolicy, TransactionWaiter, WaiterState, wait_for_sent_transaction

__all__ = [
    "Account",
    "CallEncoding",
    "encode_calls",
    "load_compiled_contract",
    "HiveSettings",
    "NetworkConfig",
    "ContractFactory",
    "Deployment",
    "generate_salt",
    "get_contract_address",
    "AddressMismatch",
    "EmptyResult",
    "EncodingError",
    "HiveError",
    "NonceMismatch",
    "RpcError",
    "RpcProtocolError",
    "RpcTransportError",
    "ScenarioStageError",
    "SigningError",
    "StarknetErrorCode",
    "TransactionRejected",
    "TransactionTimedOut",
    "TransactionWaitCancelled",
    "UnexpectedAcceptance",
    "StarknetHive",
    "BlockTag",
    "Call",
    "FunctionCall",
    "Receipt",
    "ReceiptStatus",
    "JsonRpcProvider",
    "Provider",
    "STAGES",
    "ScenarioReport",
    "run_hello_starknet",
    "Signer",
    "LocalSigner",
    "PollingPolicy",
    "TransactionWaiter",
    "WaiterState",
    "wait_for_sent_transaction",
    "__version__",
]
