"""
Web3 setup helper - provides web3 instances and the signing account.

Public API
----------
build_web3(rpc_url, timeout=RPC_TIMEOUT)
    Return a Web3 instance bound to ``rpc_url`` with an explicit request timeout.
load_signer(env_var="PRIVATE_KEY")
    Return the LocalAccount for the private key held in ``env_var``.
"""
from __future__ import annotations

import os

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from ..config.network import RPC_TIMEOUT
from ..exceptions import MissingCredentialError

__all__ = ["build_web3", "load_signer"]


def build_web3(rpc_url: str, timeout: float = RPC_TIMEOUT) -> Web3:
    """
    Get a Web3 instance connected to the specified RPC URL.

    Args:
        rpc_url: HTTP(S) JSON-RPC endpoint.
        timeout: Per-request timeout in seconds.

    Returns:
        Web3 instance (no network I/O happens here)
    """
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))


def load_signer(env_var: str = "PRIVATE_KEY") -> LocalAccount:
    """Read the private key from the environment once and derive the account.

    Raises:
        MissingCredentialError: If the variable is unset or holds an invalid key.
    """
    private_key = os.getenv(env_var)
    if not private_key:
        raise MissingCredentialError(
            f"{env_var} is not set in the environment",
            remedy=f"Set the key with: export {env_var}=<your_private_key>",
        )
    try:
        return Account.from_key(private_key.strip())
    except (ValueError, TypeError) as e:
        # Never echo the key itself
        raise MissingCredentialError(f"{env_var} does not hold a valid private key: {type(e).__name__}") from None
