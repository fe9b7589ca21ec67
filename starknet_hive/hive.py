"""
StarknetHive - one account on one node, ready to run transactions.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from .account import Account, CallEncoding
from .config import HiveSettings
from .contract import UDC_ADDRESS, ContractFactory, Deployment, EntropySource, get_contract_address
from .models import (
    BlockId,
    BlockTag,
    Call,
    FunctionCall,
    Receipt,
    SignedDeclareTx,
    SignedInvokeTx,
    SignedTransaction,
    TransactionResult,
)
from .provider.base import Provider
from .provider.jsonrpc import JsonRpcProvider
from .signer import Signer
from .signer.local import LocalSigner
from .utils import get_selector_from_name, to_felt, to_hex
from .waiter import PollingPolicy, wait_for_sent_transaction


class StarknetHive:
    """
    Entry point for driving a Starknet node through one account.

    The hive owns:
    1. A provider connected to the node
    2. An account signing with a local (or injected) signer
    3. The polling policy used when waiting for transactions
    """

    def __init__(
        self,
        rpc_url: str,
        account_address: Any,
        private_key: Optional[Any] = None,
        signer: Optional[Signer] = None,
        account_class_hash: Optional[Any] = None,
        chain_id: Optional[Any] = None,
        expected_chain_id: Optional[int] = None,
        udc_address: int = UDC_ADDRESS,
        call_encoding: CallEncoding = CallEncoding.CAIRO1,
        polling_policy: Optional[PollingPolicy] = None,
        retry_count: int = 3,
        timeout: int = 30,
        provider: Optional[Provider] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the hive

        Args:
            rpc_url: Starknet JSON-RPC endpoint (e.g., "http://127.0.0.1:5050")
            account_address: Address of the deployed account contract
            private_key: Account private key (optional if signer provided)
            signer: Custom signer object (optional if private_key provided)
            account_class_hash: Class hash the account is expected to have
            chain_id: Chain identifier; read from the node when omitted
            expected_chain_id: Chain the node must report, if known
            udc_address: Universal Deployer Contract address
            call_encoding: Multicall calldata layout of the account
            polling_policy: Bounds used when waiting for transactions
            retry_count: Number of retries for HTTP requests
            timeout: Timeout for HTTP requests in seconds
            provider: Provider to use instead of a JSON-RPC provider for ``rpc_url``
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If neither private_key nor signer is provided
            ValueError: If the node reports a chain other than ``expected_chain_id``
            ValueError: If the account's class hash differs from ``account_class_hash``
        """
        if private_key is None and signer is None:
            raise ValueError("Either private_key or signer must be provided")

        self.logger = logger or logging.getLogger(__name__)
        self.rpc_url = rpc_url
        self.udc_address = udc_address
        self.polling_policy = polling_policy or PollingPolicy.from_env()
        self.provider = provider or JsonRpcProvider(
            rpc_url, retry_count=retry_count, timeout=timeout, logger=self.logger
        )

        chain_id = self.provider.chain_id() if chain_id is None else to_felt(chain_id)
        if expected_chain_id is not None and chain_id != expected_chain_id:
            raise ValueError(
                f"Chain ID mismatch: node reports {to_hex(chain_id)}, expected {to_hex(expected_chain_id)}"
            )

        self.account = Account(
            address=account_address,
            chain_id=chain_id,
            signer=signer or LocalSigner(private_key),
            provider=self.provider,
            call_encoding=call_encoding,
            udc_address=udc_address,
            logger=self.logger,
        )

        if account_class_hash is not None:
            self.verify_account_class(account_class_hash)

        self.logger.info(
            f"Hive ready: account {to_hex(self.account.address)} on chain {to_hex(chain_id)}"
        )

    @classmethod
    def from_settings(cls, settings: HiveSettings, **kwargs: Any) -> "StarknetHive":
        """Build a hive from :class:`HiveSettings`; ``kwargs`` override constructor arguments"""
        options: Dict[str, Any] = dict(
            rpc_url=settings.rpc_url,
            account_address=settings.account_address,
            private_key=settings.private_key,
            account_class_hash=settings.account_class_hash,
            chain_id=settings.chain_id,
            expected_chain_id=settings.expected_chain_id,
            udc_address=settings.udc_address,
        )
        options.update(kwargs)
        return cls(**options)

    def verify_account_class(self, expected_class_hash: Any) -> int:
        """
        Check that the account contract on the node has the expected class.

        Raises:
            ValueError: If the class hashes differ
        """
        expected = to_felt(expected_class_hash)
        observed = self.provider.get_class_hash_at(self.account.address, BlockTag.PENDING)
        if observed != expected:
            raise ValueError(
                f"Account {to_hex(self.account.address)} has class {to_hex(observed)}, "
                f"expected {to_hex(expected)}"
            )
        return observed

    def declare_v3(self, contract_class: Dict[str, Any], compiled_class_hash: Any, **tx_options: Any) -> SignedDeclareTx:
        return self.account.declare(contract_class, compiled_class_hash, **tx_options)

    def execute_v3(self, calls: Sequence[Call], **tx_options: Any) -> SignedInvokeTx:
        return self.account.execute(calls, **tx_options)

    def factory(self, class_hash: Any) -> ContractFactory:
        return ContractFactory(class_hash, self.account)

    def deploy_v3(
        self,
        class_hash: Any,
        constructor_calldata: Sequence[Any] = (),
        salt: Optional[int] = None,
        unique: bool = True,
        entropy: Optional[EntropySource] = None,
        **tx_options: Any,
    ) -> Deployment:
        """Deploy ``class_hash`` through the UDC and return the sent deployment"""
        return self.factory(class_hash).deploy(constructor_calldata, salt, unique, entropy, **tx_options)

    def send(self, tx: SignedTransaction) -> TransactionResult:
        return self.account.send(tx)

    def send_with_custom_signature(self, tx: SignedTransaction, signature: Sequence[Any]) -> TransactionResult:
        return self.account.send_with_custom_signature(tx, signature)

    def wait(self, transaction_hash: int, policy: Optional[PollingPolicy] = None, **waiter_options: Any) -> Receipt:
        """Wait for ``transaction_hash`` using the hive's polling policy"""
        return wait_for_sent_transaction(
            transaction_hash, self.account, policy or self.polling_policy, **waiter_options
        )

    def call(
        self,
        contract_address: Any,
        function_name: str,
        calldata: Sequence[Any] = (),
        block_id: BlockId = BlockTag.PENDING,
    ) -> List[int]:
        """Run a read-only call of ``function_name`` on ``contract_address``"""
        function_call = FunctionCall(
            contract_address=contract_address,
            entry_point_selector=get_selector_from_name(function_name),
            calldata=calldata,
        )
        return self.account.call(function_call, block_id)

    def get_contract_address(self, transaction_hash: int) -> int:
        return get_contract_address(self.provider, transaction_hash, self.udc_address)

    def close(self) -> None:
        self.provider.close()

    def __enter__(self) -> "StarknetHive":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
