# MIT License
# Copyright (c) 2025 Hashborn

import os
from typing import Dict

# Global Constants
DENOM = "sst"
DECIMALS = 6
UNIT = 10**DECIMALS

# Integer widths of persisted fields
U64_MAX = 2**64 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1

# Assets handled by the custody book
PRIMARY_ASSET = "sst"
SECONDARY_ASSET = "usdc"
LP_ASSET = "sst-lp"

# Custodial accounts owned by the engine
VAULT_ACCOUNT = "vault"
REWARD_VAULT_ACCOUNT = "reward_vault"
INSURANCE_VAULT_ACCOUNT = "insurance_vault"

class NetworkConfig:
    def __init__(self,
                 network_id: str,
                 governance_authority: str,
                 rpc_port: int = 8000,
                 # Custody genesis
                 faucet_account: str = "faucet",
                 faucet_premine: int = 0,
                 reward_vault_premine: int = 0):
        self.network_id = network_id
        self.governance_authority = governance_authority
        self.rpc_port = rpc_port
        self.faucet_account = faucet_account
        self.faucet_premine = faucet_premine
        self.reward_vault_premine = reward_vault_premine

NETWORKS: Dict[str, NetworkConfig] = {
    "devnet": NetworkConfig(
        network_id="devnet",
        governance_authority="governance",
        rpc_port=8000,
        faucet_premine=1_000_000_000 * UNIT,
        reward_vault_premine=10_000_000 * UNIT,
    ),
    "testnet": NetworkConfig(
        network_id="testnet",
        governance_authority="governance",
        rpc_port=8000,
        faucet_premine=100_000_000 * UNIT,
        reward_vault_premine=1_000_000 * UNIT,
    ),
    "mainnet": NetworkConfig(
        network_id="mainnet",
        governance_authority="governance-multisig",
        rpc_port=8000,
    ),
}

def get_network(name: str) -> NetworkConfig:
    if name not in NETWORKS:
        raise ValueError(f"Unknown network '{name}' (expected one of {', '.join(NETWORKS)})")
    return NETWORKS[name]

# Default to devnet, can be changed via SST_NETWORK
CURRENT_NETWORK = get_network(os.environ.get("SST_NETWORK", "devnet"))
