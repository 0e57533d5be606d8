"""
Post-deployment verification and diagnostics.

A getter that fails right after deployment usually means the bytecode on
chain is not what the local artifact describes. Failures are collected into a
report for the operator; nothing here raises on a failed check.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from eth_utils import function_signature_to_4byte_selector, is_address

from ..config.abis import ERC165_INTERFACE_ID, PROBE_SIGNATURES
from ..config.collection import COLLECTION_ARTIFACT, MINTER_ROLE_ID
from ..config.extensions import (
    DIRECT_LISTINGS_ARTIFACT,
    MARKETPLACE_ARTIFACT,
    OFFERS_ARTIFACT,
    ZERO_ADDRESS,
)
from ..helpers.contracts import DeployedContractHandle

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ROLE_ID = b"\x00" * 32


@dataclass(frozen=True)
class ExpectedRead:
    method: str
    predicate: Callable[[Any], bool] | None = None
    args: tuple = ()
    label: str | None = None

    @property
    def name(self) -> str:
        return self.label or self.method


@dataclass
class CheckResult:
    name: str
    passed: bool
    value: Any = None
    error: str | None = None


@dataclass
class VerificationReport:
    contract: str
    address: str
    has_code: bool = True
    checks: list[CheckResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.has_code and all(c.passed for c in self.checks)

    @property
    def failures(self) -> list[CheckResult]:
        return [c for c in self.checks if not c.passed]

    def summary(self) -> str:
        ok = sum(1 for c in self.checks if c.passed)
        return f"{self.contract} @ {self.address}: {ok}/{len(self.checks)} checks passed"


def _is_bytes32(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray)) and len(value) == 32


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and value >= 0


def _is_live_address(value: Any) -> bool:
    return isinstance(value, str) and is_address(value) and value != ZERO_ADDRESS


def default_reads(handle: DeployedContractHandle, account: str | None = None) -> list[ExpectedRead]:
    """Getters expected to succeed on a healthy deployment of ``handle``'s contract."""
    reads = [ExpectedRead("DEFAULT_ADMIN_ROLE", _is_bytes32)]
    if account:
        reads.append(ExpectedRead("hasRole", bool, (DEFAULT_ADMIN_ROLE_ID, account), label="hasRole(DEFAULT_ADMIN_ROLE)"))

    name = handle.name
    if name == MARKETPLACE_ARTIFACT or handle.has_function("addExtension"):
        reads += [
            ExpectedRead("EXTENSION_ROLE", _is_bytes32),
            ExpectedRead("getAllExtensionIds", lambda v: isinstance(v, (list, tuple))),
        ]
    elif name == OFFERS_ARTIFACT or handle.has_function("totalOffers"):
        reads += [ExpectedRead("totalOffers", _is_count)]
    elif name == DIRECT_LISTINGS_ARTIFACT or handle.has_function("totalListings"):
        reads += [
            ExpectedRead("totalListings", _is_count),
            ExpectedRead("nativeTokenWrapper", _is_live_address),
        ]
    elif name == COLLECTION_ARTIFACT or handle.has_function("mintPrice"):
        reads += [
            ExpectedRead("MINTER_ROLE", _is_bytes32),
            ExpectedRead("maxSupply", lambda v: _is_count(v) and v > 0),
            ExpectedRead("mintPrice", _is_count),
            ExpectedRead("totalMinted", _is_count),
            ExpectedRead("remainingSupply", _is_count),
        ]
        if account:
            reads.append(ExpectedRead("hasRole", bool, (MINTER_ROLE_ID, account), label="hasRole(MINTER_ROLE)"))
    return reads


def verify(
    handle: DeployedContractHandle,
    expected_reads: Sequence[ExpectedRead] | None = None,
    account: str | None = None,
) -> VerificationReport:
    """Call each expected getter and record pass/fail per field."""
    if expected_reads is None:
        expected_reads = default_reads(handle, account)

    report = VerificationReport(contract=handle.name, address=handle.address)
    report.has_code = len(handle.client.get_code(handle.address)) > 0
    if not report.has_code:
        logger.error("%s: no code at %s", handle.name, handle.address)
        return report

    for read in expected_reads:
        if not handle.has_function(read.method):
            report.checks.append(CheckResult(read.name, False, error="not in ABI"))
            continue
        try:
            value = handle.call(read.method, *read.args)
        except Exception as e:  # any failed getter is a diagnostic, not a crash
            report.checks.append(CheckResult(read.name, False, error=f"{type(e).__name__}: {e}"))
            logger.warning("%s.%s failed: %s", handle.name, read.name, e)
            continue
        passed = read.predicate(value) if read.predicate else True
        report.checks.append(CheckResult(read.name, bool(passed), value=value,
                                         error=None if passed else "unexpected value"))
        if passed:
            logger.info("%s.%s = %s", handle.name, read.name, _display(value))
        else:
            logger.warning("%s.%s returned unexpected value %s", handle.name, read.name, _display(value))

    logger.info(report.summary())
    return report


def _display(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


@dataclass
class SelectorProbe:
    signature: str
    selector: str
    responded: bool
    data: str | None = None
    error: str | None = None


def _calldata(signature: str) -> bytes:
    data = function_signature_to_4byte_selector(signature)
    if signature == "supportsInterface(bytes4)":
        # bytes4 is left-aligned in its 32-byte word
        data += bytes.fromhex(ERC165_INTERFACE_ID[2:]).ljust(32, b"\x00")
    return data


def probe_selectors(client: Any, address: str, signatures: Sequence[str] = PROBE_SIGNATURES) -> list[SelectorProbe]:
    """Raw ``eth_call`` per function signature, independent of any local ABI."""
    results: list[SelectorProbe] = []
    for sig in signatures:
        data = _calldata(sig)
        selector = "0x" + data[:4].hex()
        try:
            out = client.raw_call(address, data)
        except Exception as e:  # reverts and unsupported selectors both count as "no response"
            results.append(SelectorProbe(sig, selector, False, error=f"{type(e).__name__}: {e}"))
            logger.info("%s %s: no response", selector, sig)
            continue
        results.append(SelectorProbe(sig, selector, True, data="0x" + bytes(out).hex()))
        logger.info("%s %s: 0x%s", selector, sig, bytes(out).hex())
    return results
