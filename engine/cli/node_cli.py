import argparse
import asyncio
import json
import logging
import os

from uvicorn import Config, Server

from protocol.config.params import (
    NETWORKS, PRIMARY_ASSET, SECONDARY_ASSET, LP_ASSET, REWARD_VAULT_ACCOUNT, get_network,
)
from ..core.state import EngineState
from ..rpc import api  # import module to set globals
from ..storage.db import StorageDB

logger = logging.getLogger(__name__)


def cmd_init(args):
    """Initialize node: data dir and custody genesis."""
    data_dir = args.datadir
    os.makedirs(data_dir, exist_ok=True)
    network = get_network(args.network)

    genesis_path = os.path.join(data_dir, "genesis.json")
    if os.path.exists(genesis_path):
        print(f"Genesis already exists at {genesis_path}")
        return

    # The faucet holds every asset so local users can be funded for any deposit type
    genesis_data = {
        "network": network.network_id,
        "custody": {
            PRIMARY_ASSET: {
                network.faucet_account: network.faucet_premine,
                REWARD_VAULT_ACCOUNT: network.reward_vault_premine,
            },
            SECONDARY_ASSET: {network.faucet_account: network.faucet_premine},
            LP_ASSET: {network.faucet_account: network.faucet_premine},
        },
    }
    with open(genesis_path, "w") as f:
        f.write(json.dumps(genesis_data, indent=2))

    print(f"Generated genesis for {network.network_id}.")
    print(f"Faucet account: {network.faucet_account}")
    print(f"Governance authority: {network.governance_authority}")
    print(f"\nNode initialized in {data_dir}")


async def run_node_async(args):
    data_dir = args.datadir
    db_path = os.path.join(data_dir, "engine.db")
    network = get_network(args.network)

    print(f"Starting SST staking engine ({network.network_id})...")
    print(f"Data DB: {db_path}")
    print(f"RPC: {args.host}:{args.port}")

    # 1. Initialize engine state
    db = StorageDB(db_path)
    state = EngineState(db)
    state.apply_genesis(os.path.join(data_dir, "genesis.json"))
    logger.info(f"Loaded {len(state.get_all_records())} stake records, {state.proposal_count} proposals")

    # 2. Inject into RPC module (global vars)
    api.state = state
    api.network = network

    # 3. Serve RPC
    config = Config(app=api.app, host=args.host, port=args.port, log_level="info")
    server = Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        pass
    finally:
        state.persist()
        db.close()
        logging.info("Engine state persisted")


def cmd_run(args):
    """Wrapper to run async main."""
    try:
        asyncio.run(run_node_async(args))
    except KeyboardInterrupt:
        pass


def main():
    parser = argparse.ArgumentParser(description="SST Staking Engine Node CLI")
    parser.add_argument("--datadir", default="./.sst", help="Data directory")
    parser.add_argument("--network", default=os.environ.get("SST_NETWORK", "devnet"),
                        choices=sorted(NETWORKS), help="Network parameters to use")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Init command
    subparsers.add_parser("init", help="Initialize node data directory and genesis")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run the engine RPC")
    run_parser.add_argument("--host", default="0.0.0.0", help="RPC Host")
    run_parser.add_argument("--port", type=int, default=None, help="RPC Port (network default if omitted)")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    if args.command == "init":
        cmd_init(args)
    elif args.command == "run":
        if args.port is None:
            args.port = get_network(args.network).rpc_port
        cmd_run(args)


if __name__ == "__main__":
    main()
