"""
Contract deployment through the Universal Deployer Contract (UDC).

The deployment address is derived locally with the same hash the node
uses, so it is known before the deployment transaction is confirmed.
"""
import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

from . import hashing
from .exceptions import AddressMismatch, EmptyResult
from .models import Call, DeployResult, SignedDeployTx
from .provider.base import Provider
from .utils import get_selector_from_name, to_felt, to_felt_list, to_hex

if TYPE_CHECKING:
    from .account import Account

logger = logging.getLogger(__name__)

UDC_ADDRESS = 0x041A78E741E5AF2FEC34B695679BC6891742439F7AFB8484ECD7766661AD02BF
UDC_DEPLOY_SELECTOR = get_selector_from_name("deployContract")
CONTRACT_DEPLOYED_EVENT_KEY = get_selector_from_name("ContractDeployed")

# 31 bytes always fit below the field prime
SALT_BYTES = 31

EntropySource = Callable[[int], bytes]


def generate_salt(entropy: Optional[EntropySource] = None) -> int:
    """
    Draw a random deployment salt.

    Args:
        entropy: Callable returning ``n`` random bytes (defaults to
            ``os.urandom``); pass a seeded source for reproducible salts
    """
    source = entropy or os.urandom
    data = source(SALT_BYTES)
    if len(data) != SALT_BYTES:
        raise ValueError(f"Entropy source returned {len(data)} bytes, expected {SALT_BYTES}")
    return int.from_bytes(data, "big")


def udc_deploy_call(
    class_hash: int,
    salt: int,
    unique: bool,
    constructor_calldata: Sequence[int],
    udc_address: int = UDC_ADDRESS,
) -> Call:
    """Build the ``deployContract`` call to the Universal Deployer"""
    calldata = to_felt_list(constructor_calldata)
    return Call(
        to=udc_address,
        selector=UDC_DEPLOY_SELECTOR,
        calldata=[class_hash, salt, int(unique), len(calldata), *calldata],
    )


def compute_deployment_address(
    *,
    sender_address: int,
    class_hash: int,
    salt: int,
    constructor_calldata: Sequence[int],
    unique: bool = True,
    udc_address: int = UDC_ADDRESS,
) -> int:
    """
    Address a UDC deployment sent by ``sender_address`` ends up at.

    Unique deployments mix the sender into the salt and use the UDC as
    deployer; otherwise the deployer is zero.
    """
    if unique:
        return hashing.compute_address(
            deployer_address=udc_address,
            class_hash=class_hash,
            salt=hashing.compute_udc_salt(sender_address, salt),
            constructor_calldata=constructor_calldata,
        )
    return hashing.compute_address(
        deployer_address=0,
        class_hash=class_hash,
        salt=salt,
        constructor_calldata=constructor_calldata,
    )


def get_contract_address(
    provider: Provider, transaction_hash: int, udc_address: int = UDC_ADDRESS
) -> int:
    """
    Read the deployed contract address from a UDC deployment receipt.

    Raises:
        EmptyResult: If the receipt carries no ``ContractDeployed`` event
    """
    receipt = provider.get_receipt(transaction_hash)
    for event in receipt.events:
        if event.from_address == udc_address and event.keys[:1] == [CONTRACT_DEPLOYED_EVENT_KEY]:
            if not event.data:
                break
            return event.data[0]
    raise EmptyResult(
        f"No ContractDeployed event in receipt of transaction {to_hex(transaction_hash)}"
    )


def verify_deployed_address(expected: int, observed: int) -> int:
    """
    Raises:
        AddressMismatch: If the two addresses differ
    """
    if expected != observed:
        raise AddressMismatch(expected, observed)
    return observed


@dataclass
class Deployment:
    """A UDC deployment with its address known ahead of confirmation"""
    contract_address: int
    salt: int
    transaction: SignedDeployTx
    result: Optional[DeployResult] = None

    @property
    def transaction_hash(self) -> int:
        return self.result.transaction_hash if self.result else self.transaction.transaction_hash


class ContractFactory:
    """
    Deploys instances of one declared class from an account.
    """

    def __init__(self, class_hash: Any, account: "Account"):
        self.class_hash = to_felt(class_hash)
        self.account = account

    @staticmethod
    def compute_address(
        deployer: int, class_hash: int, salt: int, constructor_calldata: Sequence[int]
    ) -> int:
        return hashing.compute_address(
            deployer_address=deployer,
            class_hash=class_hash,
            salt=salt,
            constructor_calldata=constructor_calldata,
        )

    def prepare(
        self,
        constructor_calldata: Sequence[Any] = (),
        salt: Optional[int] = None,
        unique: bool = True,
        entropy: Optional[EntropySource] = None,
        **tx_options: Any,
    ) -> Deployment:
        """Build and sign the deployment without submitting it"""
        if salt is None:
            salt = generate_salt(entropy)
        tx = self.account.deploy(
            self.class_hash, constructor_calldata, salt, unique, **tx_options
        )
        return Deployment(contract_address=tx.contract_address, salt=tx.salt, transaction=tx)

    def deploy(
        self,
        constructor_calldata: Sequence[Any] = (),
        salt: Optional[int] = None,
        unique: bool = True,
        entropy: Optional[EntropySource] = None,
        **tx_options: Any,
    ) -> Deployment:
        """
        Deploy a new instance and return it together with its address.

        The returned address is computed locally and valid before the
        deployment transaction is confirmed.
        """
        deployment = self.prepare(constructor_calldata, salt, unique, entropy, **tx_options)
        result = self.account.send(deployment.transaction)
        deployment.result = DeployResult(
            transaction_hash=result.transaction_hash,
            contract_address=deployment.contract_address,
        )
        logger.info(
            f"Deployment of class {to_hex(self.class_hash)} sent, "
            f"address {to_hex(deployment.contract_address)}"
        )
        return deployment
