"""
Extension registry access on the marketplace contract.

The marketplace keeps a mapping ``bytes32 id -> (extension, enabled, name)``
managed through ``addExtension`` / ``removeExtension`` and enumerable through
``getAllExtensionIds``. This module only reads the registry and wraps the two
administrative calls; the idempotency and authorization policy lives in the
orchestrator.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from eth_utils import to_checksum_address
from web3.exceptions import ContractLogicError

from ..config.extensions import GAS_LIMITS, ZERO_ADDRESS
from ..helpers.chain import GasOverrides
from ..helpers.contracts import DeployedContractHandle

logger = logging.getLogger(__name__)


def format_id(extension_id: bytes) -> str:
    return "0x" + bytes(extension_id).hex()


@dataclass(frozen=True)
class ExtensionRecord:
    extension_id: bytes
    address: str
    enabled: bool
    name: str

    @property
    def registered(self) -> bool:
        return self.address != ZERO_ADDRESS

    def points_to(self, address: str) -> bool:
        return self.address.lower() == address.lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": format_id(self.extension_id),
            "address": self.address,
            "enabled": self.enabled,
            "name": self.name,
        }


def _unpack_extension(raw: Any) -> tuple[str, bool, str]:
    # Either three outputs or one struct output, depending on the contract build
    values = list(raw)
    if len(values) == 1 and isinstance(values[0], (list, tuple)):
        values = list(values[0])
    address = values[0] if values else ZERO_ADDRESS
    enabled = bool(values[1]) if len(values) > 1 else False
    name = values[2] if len(values) > 2 else ""
    return to_checksum_address(address), enabled, name


def read_extension(marketplace: DeployedContractHandle, extension_id: bytes) -> ExtensionRecord:
    """Current record for ``extension_id``; unregistered ids read as the zero address."""
    try:
        raw = marketplace.call("getExtension", extension_id)
    except ContractLogicError as e:
        # Some builds revert on unknown ids instead of returning an empty struct
        logger.debug("getExtension(%s) reverted, treating as unregistered: %s", format_id(extension_id), e)
        return ExtensionRecord(extension_id, ZERO_ADDRESS, False, "")
    address, enabled, name = _unpack_extension(raw)
    return ExtensionRecord(extension_id, address, enabled, name)


def list_extensions(marketplace: DeployedContractHandle) -> list[ExtensionRecord]:
    ids = marketplace.call("getAllExtensionIds")
    return [read_extension(marketplace, bytes(ext_id)) for ext_id in ids]


def add_extension(
    marketplace: DeployedContractHandle,
    extension_id: bytes,
    extension_address: str,
    display_name: str,
    overrides: GasOverrides | None = None,
) -> dict[str, Any]:
    overrides = (overrides or GasOverrides()).with_default_limit(GAS_LIMITS["add_extension"])
    return marketplace.transact(
        "addExtension",
        extension_id,
        to_checksum_address(extension_address),
        display_name,
        overrides=overrides,
    )


def remove_extension(
    marketplace: DeployedContractHandle,
    extension_id: bytes,
    overrides: GasOverrides | None = None,
) -> dict[str, Any]:
    overrides = (overrides or GasOverrides()).with_default_limit(GAS_LIMITS["remove_extension"])
    return marketplace.transact("removeExtension", extension_id, overrides=overrides)
