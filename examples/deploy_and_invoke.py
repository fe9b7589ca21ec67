#!/usr/bin/env python3
"""
Example of deploying and invoking a contract with StarknetHive.
"""
import os
import sys

from starknet_hive import (
    Call,
    HiveSettings,
    NetworkConfig,
    StarknetHive,
    load_compiled_contract,
)
from starknet_hive.exceptions import RpcProtocolError, StarknetErrorCode


def main():
    """
    Deploy the HelloStarknet contract and bump its balance.

    This example shows how to:
    1. Connect to a network from the bundled table
    2. Declare a class (tolerating an earlier declaration)
    3. Deploy it and check the precomputed address
    4. Invoke it and read the result back
    """
    network = os.environ.get("HIVE_NETWORK", "devnet")

    print("Available networks:")
    for network_name in NetworkConfig.load_networks().keys():
        print(f"  - {network_name}")
    print()

    settings = HiveSettings.from_env(network=network)
    sierra_class, compiled_class_hash = load_compiled_contract(settings.sierra_path, settings.casm_path)

    with StarknetHive.from_settings(settings) as hive:
        print(f"Connected to {network} as {hex(hive.account.address)}")

        declare = hive.declare_v3(sierra_class, compiled_class_hash)
        try:
            hive.wait(hive.send(declare).transaction_hash)
            print(f"Declared class {hex(declare.class_hash)}")
        except RpcProtocolError as e:
            if e.starknet_code != StarknetErrorCode.CLASS_ALREADY_DECLARED:
                raise
            print(f"Class {hex(declare.class_hash)} was already declared")

        deployment = hive.deploy_v3(declare.class_hash)
        print(f"Deploying to {hex(deployment.contract_address)} (salt {hex(deployment.salt)})")
        hive.wait(deployment.transaction_hash)
        observed = hive.get_contract_address(deployment.transaction_hash)
        print(f"Receipt reports {hex(observed)}")

        invoke = hive.execute_v3([Call.from_name(deployment.contract_address, "increase_balance", [42])])
        receipt = hive.wait(hive.send(invoke).transaction_hash)
        print(f"Invoke finalized in block {receipt.block_number}")

        balance = hive.call(deployment.contract_address, "get_balance")
        print(f"Balance: {balance[0]}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
