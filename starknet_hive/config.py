"""
Network and run configuration for the Starknet Hive SDK.
"""
import importlib.resources
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .contract import UDC_ADDRESS
from .utils import encode_shortstring, to_felt

logger = logging.getLogger(__name__)

DEFAULT_NETWORK = "devnet"
DEFAULT_SIERRA_PATH = "target/dev/contracts_HelloStarknet.contract_class.json"
DEFAULT_CASM_PATH = "target/dev/contracts_HelloStarknet.compiled_contract_class.json"


class NetworkConfig:
    """
    Access to the bundled network table (``networks.json``).

    The table is read once and cached on the class.
    """
    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        if cls._networks_cache is None:
            resource = importlib.resources.files("starknet_hive").joinpath("networks.json")
            cls._networks_cache = json.loads(resource.read_text(encoding="utf-8"))
            logger.debug(f"Loaded {len(cls._networks_cache)} network definitions")
        return cls._networks_cache

    @classmethod
    def get_network(cls, name: str) -> Dict[str, Any]:
        """
        Raises:
            ValueError: If the network is unknown
        """
        networks = cls.load_networks()
        if name not in networks:
            available = ", ".join(sorted(networks))
            raise ValueError(f"Unknown network '{name}'. Available networks: {available}")
        return networks[name]

    @staticmethod
    def _env_prefix(name: str) -> str:
        return name.upper().replace("-", "_")

    @classmethod
    def get_rpc_url(cls, name: str, override: Optional[str] = None) -> str:
        """RPC URL from ``override``, then ``<NAME>_RPC_URL``, then the table"""
        if override:
            return override
        env_url = os.environ.get(f"{cls._env_prefix(name)}_RPC_URL")
        if env_url:
            return env_url
        return cls.get_network(name)["rpc"]

    @classmethod
    def get_chain_id(cls, name: str) -> int:
        chain_id = cls.get_network(name)["chainId"]
        if isinstance(chain_id, int):
            return chain_id
        if chain_id.startswith("0x"):
            return int(chain_id, 16)
        return encode_shortstring(chain_id)

    @classmethod
    def get_udc_address(cls, name: str) -> int:
        udc = cls.get_network(name).get("udc")
        return to_felt(udc) if udc else UDC_ADDRESS

    @classmethod
    def get_default_account(cls, name: str) -> Optional[Dict[str, str]]:
        return cls.get_network(name).get("account")


@dataclass
class HiveSettings:
    """Everything needed to connect a hive to a node"""
    rpc_url: str
    account_address: int
    private_key: int = field(repr=False)
    account_class_hash: Optional[int] = None
    chain_id: Optional[int] = None
    expected_chain_id: Optional[int] = None
    udc_address: int = UDC_ADDRESS
    sierra_path: str = DEFAULT_SIERRA_PATH
    casm_path: str = DEFAULT_CASM_PATH

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, network: Optional[str] = None
    ) -> "HiveSettings":
        """
        Read settings from ``HIVE_*`` environment variables.

        Values not set in the environment fall back to the network table
        (``HIVE_NETWORK``, ``devnet`` by default).

        Raises:
            ValueError: If no account address or private key is available
        """
        env = os.environ if environ is None else environ
        network = network or env.get("HIVE_NETWORK", DEFAULT_NETWORK)
        account = NetworkConfig.get_default_account(network) or {}

        address = env.get("HIVE_ACCOUNT_ADDRESS") or account.get("address")
        private_key = env.get("HIVE_PRIVATE_KEY") or account.get("privateKey")
        if not address or not private_key:
            raise ValueError(
                f"No account configured for network '{network}'. "
                "Set HIVE_ACCOUNT_ADDRESS and HIVE_PRIVATE_KEY."
            )
        class_hash = env.get("HIVE_ACCOUNT_CLASS_HASH") or account.get("classHash")

        return cls(
            rpc_url=env.get("HIVE_RPC_URL") or NetworkConfig.get_rpc_url(network),
            account_address=to_felt(address),
            private_key=to_felt(private_key),
            account_class_hash=to_felt(class_hash) if class_hash else None,
            chain_id=to_felt(env["HIVE_CHAIN_ID"]) if env.get("HIVE_CHAIN_ID") else None,
            expected_chain_id=NetworkConfig.get_chain_id(network),
            udc_address=NetworkConfig.get_udc_address(network),
            sierra_path=env.get("HIVE_SIERRA_PATH", DEFAULT_SIERRA_PATH),
            casm_path=env.get("HIVE_CASM_PATH", DEFAULT_CASM_PATH),
        )
