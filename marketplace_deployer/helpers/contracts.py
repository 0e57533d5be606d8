"""Live bindings between an artifact, an address and a chain client."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from eth_utils import to_checksum_address

from ..exceptions import TransactionRevertedError
from .artifacts import ContractArtifact
from .chain import GasOverrides

logger = logging.getLogger(__name__)


def _hex(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value)
    return text if text.startswith("0x") else "0x" + text


@dataclass
class DeployedContractHandle:
    artifact: ContractArtifact
    address: str
    client: Any
    receipt: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        self.address = to_checksum_address(self.address)

    @property
    def name(self) -> str:
        return self.artifact.name

    @property
    def tx_hash(self) -> str | None:
        return _hex(self.receipt.get("transactionHash")) if self.receipt else None

    @property
    def block_number(self) -> int | None:
        return self.receipt.get("blockNumber") if self.receipt else None

    @property
    def gas_used(self) -> int | None:
        return self.receipt.get("gasUsed") if self.receipt else None

    def has_function(self, fn_name: str) -> bool:
        return self.artifact.has_function(fn_name)

    def call(self, fn_name: str, *args: Any) -> Any:
        return self.client.call(self.address, self.artifact.abi, fn_name, *args)

    def transact(self, fn_name: str, *args: Any, overrides: GasOverrides | None = None, timeout: float = 120) -> dict[str, Any]:
        """Send a state-changing call and wait until it is mined.

        Raises:
            TransactionRevertedError: The transaction was mined with status 0.
        """
        tx_hash = self.client.send(self.address, self.artifact.abi, fn_name, args, overrides)
        logger.info("%s.%s sent: %s", self.name, fn_name, _hex(tx_hash))
        receipt = self.client.wait_for_receipt(tx_hash, timeout=timeout)
        if receipt.get("status") != 1:
            raise TransactionRevertedError(f"{self.name}.{fn_name} reverted", tx_hash=_hex(tx_hash))
        logger.info("%s.%s mined in block %s, gas used %s",
                    self.name, fn_name, receipt.get("blockNumber"), receipt.get("gasUsed"))
        return receipt
