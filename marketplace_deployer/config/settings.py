"""Runtime configuration for deployer runs.

All recognised options live on one ``DeployerConfig``. Values come from
keyword overrides (CLI flags), then environment variables (optionally loaded
from a .env file), then the chain defaults in ``network``.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from eth_utils import is_address, to_checksum_address
from web3 import Web3

from ..exceptions import ConfigurationError
from .extensions import DEFAULT_NATIVE_TOKEN_WRAPPER, DEFAULT_PLATFORM_FEE_BPS, ZERO_ADDRESS
from .network import (
    CHAIN_ID_TO_NAME,
    DEFAULT_CHAIN,
    MAX_RETRIES,
    MIN_BALANCE_ETHER,
    RETRY_DELAY,
    get_chain_config,
    get_rpc_urls,
)

DEFAULT_ARTIFACT_DIR = "./artifacts_forge"
DEFAULT_PRIVATE_KEY_ENV = "PRIVATE_KEY"


@dataclass
class DeployerConfig:
    rpc_url: str | None
    chain_id: int
    private_key_env_var: str = DEFAULT_PRIVATE_KEY_ENV
    artifact_dir: Path = Path(DEFAULT_ARTIFACT_DIR)
    gas_limit_override: int | None = None
    max_retries: int = MAX_RETRIES
    retry_delay: float = RETRY_DELAY
    chain: str | None = None
    rpc_candidates: list[str] = field(default_factory=list)
    min_balance_wei: int = Web3.to_wei(Decimal(MIN_BALANCE_ETHER), "ether")
    marketplace_address: str | None = None
    offers_address: str | None = None
    direct_listings_address: str | None = None
    native_token_wrapper: str = DEFAULT_NATIVE_TOKEN_WRAPPER
    platform_fee_bps: int = DEFAULT_PLATFORM_FEE_BPS
    platform_fee_recipient: str | None = None
    royalty_engine: str = ZERO_ADDRESS

    def __post_init__(self) -> None:
        self.artifact_dir = Path(self.artifact_dir)
        if self.chain is None:
            self.chain = CHAIN_ID_TO_NAME.get(self.chain_id, DEFAULT_CHAIN)
        try:
            configured_id = get_chain_config(self.chain)["chain_id"]
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if configured_id != self.chain_id and self.chain_id in CHAIN_ID_TO_NAME:
            raise ConfigurationError(f"Chain {self.chain} has chain id {configured_id}, not {self.chain_id}")
        if not self.rpc_candidates:
            self.rpc_candidates = get_rpc_urls(self.chain, override=self.rpc_url)
        if self.max_retries < 1:
            raise ConfigurationError(f"max_retries must be at least 1, got {self.max_retries}")
        if self.retry_delay < 0:
            raise ConfigurationError(f"retry_delay must not be negative, got {self.retry_delay}")
        if not 0 <= self.platform_fee_bps <= 10_000:
            raise ConfigurationError(f"platform_fee_bps must be within 0..10000, got {self.platform_fee_bps}")
        for attr in (
            "marketplace_address",
            "offers_address",
            "direct_listings_address",
            "native_token_wrapper",
            "platform_fee_recipient",
            "royalty_engine",
        ):
            value = getattr(self, attr)
            if value:
                setattr(self, attr, _checksum(attr, value))

    @property
    def chain_config(self) -> dict[str, Any]:
        return get_chain_config(self.chain)

    @classmethod
    def from_env(cls, env_file: str | None = None, **overrides: Any) -> "DeployerConfig":
        """Build a config from the environment, with explicit overrides winning.

        ``None`` overrides are ignored so argparse namespaces can be passed
        through unchanged.
        """
        if env_file:
            if not Path(env_file).exists():
                raise ConfigurationError(f"Env file not found: {env_file}")
            load_dotenv(env_file)

        overrides = {k: v for k, v in overrides.items() if v is not None}
        chain = (overrides.pop("chain", None) or os.getenv("CHAIN") or DEFAULT_CHAIN).lower()
        try:
            chain_cfg = get_chain_config(chain)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        values: dict[str, Any] = {
            "chain": chain,
            "chain_id": chain_cfg["chain_id"],
            "rpc_url": os.getenv("HYPEREVM_RPC_URL"),
            "artifact_dir": os.getenv("ARTIFACT_DIR", DEFAULT_ARTIFACT_DIR),
            "gas_limit_override": _env_int("GAS_LIMIT"),
            "max_retries": _env_int("MAX_RETRIES", MAX_RETRIES),
            "retry_delay": _env_float("RETRY_DELAY", RETRY_DELAY),
            "marketplace_address": os.getenv("MARKETPLACE_ADDRESS"),
            "offers_address": os.getenv("OFFERS_ADDRESS"),
            "direct_listings_address": os.getenv("DIRECTLISTINGS_ADDRESS"),
            "native_token_wrapper": os.getenv("NATIVE_TOKEN_WRAPPER", DEFAULT_NATIVE_TOKEN_WRAPPER),
            "platform_fee_bps": _env_int("PLATFORM_FEE_BPS", DEFAULT_PLATFORM_FEE_BPS),
            "platform_fee_recipient": os.getenv("PLATFORM_FEE_RECIPIENT"),
        }
        min_balance = overrides.pop("min_balance", None) or os.getenv("MIN_BALANCE")
        if min_balance is not None:
            values["min_balance_wei"] = ether_to_wei("MIN_BALANCE", min_balance)

        values.update(overrides)
        return cls(**values)


def _checksum(name: str, value: str) -> str:
    if not is_address(value):
        raise ConfigurationError(f"{name} is not a valid address: {value!r}")
    return to_checksum_address(value)


def _env_int(name: str, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw, 0)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def ether_to_wei(name: str, value: Any) -> int:
    try:
        return Web3.to_wei(Decimal(str(value)), "ether")
    except (InvalidOperation, ValueError) as e:
        raise ConfigurationError(f"{name} must be an amount in native units, got {value!r}") from e
