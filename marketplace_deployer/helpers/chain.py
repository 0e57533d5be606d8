"""
Chain client: the only place that talks to web3.

Everything above this module (probe, orchestrator, verifier) works against
the small surface below, which keeps the workflow testable with an in-memory
double.

Public API
----------
GasOverrides
    Optional gas limit / EIP-1559 fee fields merged into every transaction.
ChainClient(w3, account=None)
    chain_id, get_balance, get_code, latest_block, call, raw_call,
    send, deploy, send_raw, transaction_known, wait_for_receipt.
SignedTransaction
    Hash and raw bytes of the last transaction signed by a client, kept so a
    broadcast that failed ambiguously can be resent instead of re-signed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TransactionNotFound, Web3Exception

from ..config.network import BLOCK_GAS_FRACTION
from ..exceptions import MissingCredentialError
from .tx_errors import is_already_known

logger = logging.getLogger(__name__)

__all__ = ["GasOverrides", "SignedTransaction", "ChainClient"]


@dataclass(frozen=True)
class GasOverrides:
    gas_limit: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None

    def as_tx_params(self) -> dict[str, int]:
        params: dict[str, int] = {}
        if self.gas_limit is not None:
            params["gas"] = self.gas_limit
        if self.max_fee_per_gas is not None:
            params["maxFeePerGas"] = self.max_fee_per_gas
        if self.max_priority_fee_per_gas is not None:
            params["maxPriorityFeePerGas"] = self.max_priority_fee_per_gas
        return params

    def with_default_limit(self, gas_limit: int | None) -> "GasOverrides":
        """Fill in a gas limit only when none was given explicitly."""
        if self.gas_limit is not None or gas_limit is None:
            return self
        return GasOverrides(gas_limit, self.max_fee_per_gas, self.max_priority_fee_per_gas)


@dataclass(frozen=True)
class SignedTransaction:
    hash: HexBytes
    raw: HexBytes


class ChainClient:
    """Thin signer-aware wrapper over a ``Web3`` instance."""

    def __init__(self, w3: Web3, account: LocalAccount | None = None):
        self.w3 = w3
        self.account = account
        self._chain_id: int | None = None
        self.last_signed: SignedTransaction | None = None

    @property
    def endpoint(self) -> str | None:
        return getattr(self.w3.provider, "endpoint_uri", None)

    @property
    def address(self) -> str | None:
        return self.account.address if self.account else None

    # ------------------------------------------------------------------ #
    # Reads                                                              #
    # ------------------------------------------------------------------ #

    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(self.w3.eth.chain_id)
        return self._chain_id

    def get_balance(self, address: str) -> int:
        return int(self.w3.eth.get_balance(to_checksum_address(address)))

    def get_code(self, address: str) -> bytes:
        return bytes(self.w3.eth.get_code(to_checksum_address(address)))

    def latest_block(self) -> dict[str, Any]:
        return dict(self.w3.eth.get_block("latest"))

    def call(self, address: str, abi: list, fn_name: str, *args: Any) -> Any:
        contract = self.w3.eth.contract(address=to_checksum_address(address), abi=abi)
        tx = {"from": self.address} if self.address else {}
        return getattr(contract.functions, fn_name)(*args).call(tx)

    def raw_call(self, address: str, data: bytes) -> bytes:
        tx: dict[str, Any] = {"to": to_checksum_address(address), "data": HexBytes(data)}
        if self.address:
            tx["from"] = self.address
        return bytes(self.w3.eth.call(tx))

    # ------------------------------------------------------------------ #
    # Writes                                                             #
    # ------------------------------------------------------------------ #

    def _require_account(self) -> LocalAccount:
        if self.account is None:
            raise MissingCredentialError("A signing key is required to send transactions")
        return self.account

    def _base_params(self, overrides: GasOverrides | None) -> dict[str, Any]:
        account = self._require_account()
        params: dict[str, Any] = {
            "from": account.address,
            # fetched per transaction so retries never reuse a stale nonce
            "nonce": self.w3.eth.get_transaction_count(account.address, "pending"),
            "chainId": self.chain_id(),
        }
        params.update((overrides or GasOverrides()).as_tx_params())
        return params

    def max_transaction_gas(self) -> int:
        return int(self.latest_block()["gasLimit"] * BLOCK_GAS_FRACTION)

    def _cap_gas(self, tx: dict[str, Any], explicit: bool) -> dict[str, Any]:
        if explicit:
            return tx
        cap = self.max_transaction_gas()
        if tx.get("gas", 0) > cap:
            logger.warning("Estimated gas %s exceeds %d%% of the block limit, capping at %s",
                           f"{tx['gas']:,}", int(BLOCK_GAS_FRACTION * 100), f"{cap:,}")
            tx["gas"] = cap
        return tx

    def _sign_and_send(self, tx: dict[str, Any]) -> HexBytes:
        signed = self._require_account().sign_transaction(tx)
        self.last_signed = SignedTransaction(HexBytes(signed.hash), HexBytes(signed.raw_transaction))
        return self.send_raw(self.last_signed)

    def send_raw(self, signed: SignedTransaction) -> HexBytes:
        """Broadcast already signed bytes; a node that already holds them counts as success."""
        try:
            return HexBytes(self.w3.eth.send_raw_transaction(signed.raw))
        except (ValueError, Web3Exception) as e:
            if not is_already_known(e):
                raise
            logger.info("Node already holds %s", signed.hash.to_0x_hex())
            return signed.hash

    def transaction_known(self, tx_hash: bytes) -> bool:
        """True when the node has the transaction, pending or mined."""
        try:
            self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return False
        return True

    def send(
        self,
        address: str,
        abi: list,
        fn_name: str,
        args: Sequence[Any] = (),
        overrides: GasOverrides | None = None,
    ) -> HexBytes:
        """Build, sign and broadcast a contract call. Returns the tx hash."""
        self.last_signed = None
        contract = self.w3.eth.contract(address=to_checksum_address(address), abi=abi)
        params = self._base_params(overrides)
        tx = getattr(contract.functions, fn_name)(*args).build_transaction(params)
        tx = self._cap_gas(tx, explicit="gas" in params)
        return self._sign_and_send(tx)

    def deploy(
        self,
        abi: list,
        bytecode: str,
        args: Sequence[Any] = (),
        overrides: GasOverrides | None = None,
    ) -> HexBytes:
        """Build, sign and broadcast a contract-creation transaction."""
        self.last_signed = None
        factory = self.w3.eth.contract(abi=abi, bytecode=bytecode)
        params = self._base_params(overrides)
        tx = factory.constructor(*args).build_transaction(params)
        tx = self._cap_gas(tx, explicit="gas" in params)
        return self._sign_and_send(tx)

    def wait_for_receipt(self, tx_hash: bytes | str, timeout: float = 120) -> dict[str, Any]:
        return dict(self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout))
