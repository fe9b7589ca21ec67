"""
Run the HelloStarknet scenario against a node.

    python -m starknet_hive --network devnet

Connection settings come from ``HIVE_*`` environment variables; see
:meth:`starknet_hive.config.HiveSettings.from_env`.
"""
import argparse
import json
import logging
import sys
from typing import List, Optional

from .artifacts import load_compiled_contract
from .config import HiveSettings
from .exceptions import HiveError, ScenarioStageError
from .hive import StarknetHive
from .scenario import run_hello_starknet

logger = logging.getLogger("starknet_hive")


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the HelloStarknet scenario against a Starknet node")
    parser.add_argument("--network", help="Network from the bundled table (default: HIVE_NETWORK or devnet)")
    parser.add_argument("--rpc-url", help="Override the RPC URL")
    parser.add_argument("--sierra", help="Path to the sierra contract_class.json")
    parser.add_argument("--casm", help="Path to the compiled_contract_class.json")
    parser.add_argument("--amount", type=lambda v: int(v, 0), default=0x123,
                        help="Value passed to increase_balance (default: 0x123)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = HiveSettings.from_env(network=args.network)
    except ValueError as e:
        logger.error(str(e))
        return 2
    if args.rpc_url:
        settings.rpc_url = args.rpc_url

    try:
        sierra_class, compiled_class_hash = load_compiled_contract(
            args.sierra or settings.sierra_path, args.casm or settings.casm_path
        )
    except (HiveError, OSError) as e:
        logger.error(f"Contract artifacts could not be loaded: {e}")
        return 1

    try:
        connection = StarknetHive.from_settings(settings)
    except HiveError as e:
        logger.error(f"Scenario could not start: {e}")
        return 1
    except ValueError as e:
        # the node disagrees with the configured chain or account
        logger.error(str(e))
        return 2

    try:
        with connection as hive:
            report = run_hello_starknet(hive, sierra_class, compiled_class_hash, amount=args.amount)
    except ScenarioStageError as e:
        logger.error(f"Scenario failed at stage '{e.stage}' after {e.completed or 'no stages'}")
        logger.debug("Cause", exc_info=e.__cause__)
        return 1
    except HiveError as e:
        logger.error(f"Scenario failed: {e}")
        return 1

    print(json.dumps(report.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
