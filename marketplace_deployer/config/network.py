"""
Network configuration for the marketplace deployer.

Contains RPC URLs and explorer endpoints for the supported chains.
Supports HyperEVM mainnet and testnet.
"""

import os
from typing import Any


# =============================================================================
# CHAIN CONFIGURATIONS
# =============================================================================

CHAINS: dict[str, dict[str, Any]] = {
    "hyperevm": {
        "chain_id": 999,
        "name": "HyperEVM",
        "currency": "HYPE",
        "rpc_urls": [
            "https://999.rpc.thirdweb.com",
            "https://rpc.hyperliquid.xyz/evm",
        ],
        "explorer": {
            "name": "HyperEVMScan",
            "url": "https://hyperevmscan.io",
        },
    },
    "hyperevm_testnet": {
        "chain_id": 998,
        "name": "HyperEVM Testnet",
        "currency": "HYPE",
        "rpc_urls": [
            "https://rpc.hyperliquid-testnet.xyz/evm",
            "https://998.rpc.thirdweb.com",
            "https://rpc.ankr.com/hyperevm_testnet",
            "https://testnet-rpc.hyperevm.com",
            "https://hyperevm-testnet.public.blastapi.io",
        ],
        "explorer": {
            "name": "HyperEVMScan Testnet",
            "url": "https://testnet.hyperevmscan.io",
        },
    },
}

# Chain ID to name mapping
CHAIN_ID_TO_NAME: dict[int, str] = {
    config["chain_id"]: name for name, config in CHAINS.items()
}

DEFAULT_CHAIN = "hyperevm"
RPC_URL_ENV = "HYPEREVM_RPC_URL"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_chain_config(chain: str | int | None = None) -> dict[str, Any]:
    """Get configuration for a specific chain.

    Args:
        chain: Chain name (e.g., 'hyperevm', 'hyperevm_testnet') or chain ID.
               If None, uses CHAIN environment variable or defaults to 'hyperevm'.

    Returns:
        Chain configuration dictionary.

    Raises:
        ValueError: If chain is not supported.
    """
    if chain is None:
        chain = os.getenv("CHAIN", DEFAULT_CHAIN)

    if isinstance(chain, int):
        name = CHAIN_ID_TO_NAME.get(chain)
        if name is None:
            raise ValueError(f"Unsupported chain ID: {chain}")
        chain = name

    chain = chain.lower()
    if chain not in CHAINS:
        raise ValueError(f"Unsupported chain: {chain}. Supported: {list(CHAINS.keys())}")

    return CHAINS[chain]


def get_rpc_urls(chain: str | int | None = None, override: str | None = None) -> list[str]:
    """Candidate RPC URLs for a chain, in probing order.

    An explicit override (or HYPEREVM_RPC_URL) is tried first, then the
    chain's defaults. Duplicates are dropped.
    """
    override = override or os.getenv(RPC_URL_ENV)
    urls = [override] if override else []
    urls.extend(get_chain_config(chain)["rpc_urls"])
    return list(dict.fromkeys(urls))


def get_rpc_url(chain: str | int | None = None) -> str:
    """Get the primary RPC URL for a chain."""
    return get_rpc_urls(chain)[0]


def get_chain_id(chain: str | None = None) -> int:
    """Get the chain ID for a chain name."""
    return get_chain_config(chain)["chain_id"]


def get_explorer_url(chain: str | int | None = None) -> str:
    """Get the block explorer URL for a chain."""
    return get_chain_config(chain)["explorer"]["url"]


# =============================================================================
# TIMEOUTS, RETRIES, GAS
# =============================================================================

RPC_TIMEOUT: int = 30  # seconds
PROBE_TIMEOUT: int = 10  # seconds, per endpoint identity query
PROBE_ATTEMPTS: int = 1  # identity queries per endpoint before moving on
MAX_RETRIES: int = 3
RETRY_DELAY: float = 3  # seconds between broadcast attempts
BLOCK_GAS_FRACTION: float = 0.8  # cap for estimated gas, fraction of block gas limit
MIN_BALANCE_ETHER: str = "0.00001"
