"""
Deployment orchestrator for the marketplace contract suite.

Drives each contract from "not deployed" to "deployed, registered and
verified":

    connect -> check_funds -> load_artifact -> deploy_with_retry
            -> register_extension -> verify -> list_extensions

Every network operation is awaited in sequence; no two transactions from the
signer are ever in flight together.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

from eth_utils import is_hex, to_checksum_address
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from ..config.collection import COLLECTION_ARTIFACT, COLLECTION_GAS_LIMIT, CollectionParams
from ..config.extensions import (
    DEFAULT_ADMIN_ROLE,
    DIRECT_LISTINGS,
    EXTENSION_ROLE,
    GAS_LIMITS,
    MARKETPLACE_ARTIFACT,
    OFFERS,
    ExtensionSpec,
)
from ..config.logging_config import log_deployment
from ..config.network import PROBE_ATTEMPTS, PROBE_TIMEOUT
from ..config.settings import DeployerConfig
from ..exceptions import (
    ArtifactMalformedError,
    BroadcastError,
    ContractNotDeployedError,
    DeployerError,
    DeploymentRevertedError,
    InsufficientFundsError,
    RegistryRestoreError,
    UnauthorizedError,
)
from ..helpers.artifacts import ContractArtifact, load_artifact, load_named_artifact
from ..helpers.chain import ChainClient, GasOverrides
from ..helpers.contracts import DeployedContractHandle
from ..helpers.endpoint_probe import ChainEndpoint, probe_endpoints
from ..helpers.tx_errors import ErrorKind, classify_error, is_nonce_consumed
from ..helpers.web3_setup import build_web3
from . import linker
from .linker import ExtensionRecord, format_id
from .verifier import ExpectedRead, VerificationReport, default_reads, verify

logger = logging.getLogger(__name__)


class DeploymentState(Enum):
    NOT_DEPLOYED = "not_deployed"
    BROADCASTING = "broadcasting"
    CONFIRMING = "confirming"
    DEPLOYED = "deployed"
    REGISTERING = "registering"
    LINKED = "linked"
    VERIFIED = "verified"
    FAILED_PREFLIGHT = "failed_preflight"
    FAILED_BROADCAST = "failed_broadcast"
    FAILED_VERIFICATION = "failed_verification"


class LinkStatus(Enum):
    REGISTERED = "registered"
    OVERWRITTEN = "overwritten"
    UNCHANGED = "unchanged"
    UNAUTHORIZED = "unauthorized"
    FAILED = "failed"


@dataclass
class LinkOutcome:
    extension: str
    status: LinkStatus
    record: ExtensionRecord | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (LinkStatus.REGISTERED, LinkStatus.OVERWRITTEN, LinkStatus.UNCHANGED)


@dataclass
class SuiteResult:
    marketplace: DeployedContractHandle
    extensions: dict[str, DeployedContractHandle]
    links: list[LinkOutcome] = field(default_factory=list)
    reports: list[VerificationReport] = field(default_factory=list)
    registry: list[ExtensionRecord] = field(default_factory=list)


class DeploymentOrchestrator:
    """Sequences deployment, linking and verification against one chain client.

    Args:
        config: Run configuration.
        account: Signing account; required for anything that sends a transaction.
        client: Pre-built chain client. When omitted, ``connect`` selects one.
        client_factory: Builds a probe client for a URL (defaults to web3 over HTTP).
        sleep: Delay function used between broadcast attempts.
    """

    def __init__(
        self,
        config: DeployerConfig,
        account: Any = None,
        client: Any = None,
        client_factory: Callable[[str], Any] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.account = account
        self.client = client
        self.endpoint: ChainEndpoint | None = None
        self._client_factory = client_factory
        self._sleep = sleep
        self.states: dict[str, DeploymentState] = {}
        self.deployments: dict[str, DeployedContractHandle] = {}

    # ------------------------------------------------------------------ #
    # State                                                              #
    # ------------------------------------------------------------------ #

    def _set_state(self, label: str, state: DeploymentState) -> None:
        previous = self.states.get(label, DeploymentState.NOT_DEPLOYED)
        self.states[label] = state
        if previous is not state:
            logger.debug("%s: %s -> %s", label, previous.value, state.value)

    def state_of(self, label: str) -> DeploymentState:
        return self.states.get(label, DeploymentState.NOT_DEPLOYED)

    @property
    def signer_address(self) -> str | None:
        if self.client is not None and getattr(self.client, "address", None):
            return self.client.address
        return self.account.address if self.account is not None else None

    def _require_client(self) -> Any:
        if self.client is None:
            self.connect()
        return self.client

    # ------------------------------------------------------------------ #
    # Preflight                                                          #
    # ------------------------------------------------------------------ #

    def _probe_client(self, url: str) -> ChainClient:
        return ChainClient(build_web3(url, timeout=PROBE_TIMEOUT), self.account)

    def connect(
        self,
        candidates: Sequence[str] | None = None,
        expected_chain_id: int | None = None,
        attempts: int = PROBE_ATTEMPTS,
    ) -> ChainEndpoint:
        """Select the first endpoint reporting the expected chain id."""
        candidates = list(candidates if candidates is not None else self.config.rpc_candidates)
        expected = expected_chain_id if expected_chain_id is not None else self.config.chain_id
        factory = self._client_factory or self._probe_client
        endpoint = probe_endpoints(candidates, expected, factory, attempts=attempts)

        client = endpoint.client
        if self._client_factory is None:
            # probe clients use a short timeout; rebind with the regular one
            client = ChainClient(build_web3(endpoint.url), self.account)
        self.client = client
        self.endpoint = endpoint
        logger.info("Connected to %s (chain id %d)", endpoint.url, endpoint.chain_id)
        return endpoint

    def load_artifact(self, name_or_path: str | Path, deployable: bool = True) -> ContractArtifact:
        """Load an artifact by contract name (from ``artifact_dir``) or explicit path."""
        path = Path(name_or_path)
        if path.suffix == ".json":
            return load_artifact(path, deployable=deployable)
        return load_named_artifact(self.config.artifact_dir, str(name_or_path), deployable=deployable)

    def check_funds(self, minimum_balance: int | None = None) -> int:
        """Return the signer balance in wei; raise if it is below the minimum."""
        client = self._require_client()
        address = self.signer_address
        if address is None:
            raise DeployerError("No signer configured; cannot check funds")
        minimum = self.config.min_balance_wei if minimum_balance is None else minimum_balance
        balance = client.get_balance(address)
        logger.info("Balance of %s: %s", address, Web3.from_wei(balance, "ether"))
        if balance < minimum:
            raise InsufficientFundsError(
                f"Balance {Web3.from_wei(balance, 'ether')} is below the required "
                f"{Web3.from_wei(minimum, 'ether')} for {address}"
            )
        return balance

    # ------------------------------------------------------------------ #
    # Deployment                                                         #
    # ------------------------------------------------------------------ #

    def _default_overrides(self, overrides: GasOverrides | None, gas_limit: int | None) -> GasOverrides:
        overrides = overrides or GasOverrides()
        if self.config.gas_limit_override is not None:
            overrides = overrides.with_default_limit(self.config.gas_limit_override)
        return overrides.with_default_limit(gas_limit)

    def deploy_with_retry(
        self,
        artifact: ContractArtifact,
        constructor_args: Sequence[Any] = (),
        gas_overrides: GasOverrides | None = None,
        max_attempts: int | None = None,
        label: str | None = None,
    ) -> DeployedContractHandle:
        """Broadcast a contract creation, retrying transient failures, then wait for inclusion.

        Raises:
            InsufficientFundsError: The node rejected the transaction for lack of funds.
            BroadcastError: Retries exhausted, a deterministic rejection, or
                no receipt within the wait timeout.
            DeploymentRevertedError: The creation transaction was mined with status 0.
        """
        label = label or artifact.name
        attempts = max_attempts or self.config.max_retries
        client = self._require_client()

        if not artifact.deployable:
            self._set_state(label, DeploymentState.FAILED_PREFLIGHT)
            raise ArtifactMalformedError(f"Artifact {artifact.name} has no bytecode to deploy")

        overrides = self._default_overrides(gas_overrides, None)
        explicit_fee = overrides.max_fee_per_gas is not None
        tx_hash = None
        pending = None
        for attempt in range(1, attempts + 1):
            self._set_state(label, DeploymentState.BROADCASTING)
            logger.info("Deploying %s (attempt %d/%d)", label, attempt, attempts)
            try:
                if pending is None:
                    tx_hash = client.deploy(artifact.abi, artifact.bytecode, tuple(constructor_args), overrides)
                else:
                    # the node may already hold it; a second signature would take a second nonce
                    logger.info("Rebroadcasting %s for %s", _hex(pending.hash), label)
                    tx_hash = client.send_raw(pending)
                break
            except Exception as e:  # classified below; unknown failures are treated as fatal
                if pending is None:
                    pending = getattr(client, "last_signed", None)
                if pending is not None and is_nonce_consumed(e):
                    known = _lookup_transaction(client, pending.hash)
                    if known:
                        logger.info("%s was already accepted as %s", label, _hex(pending.hash))
                        tx_hash = pending.hash
                        break
                    if known is False:
                        # the nonce went to some other transaction; sign afresh
                        pending = None
                kind = classify_error(e, explicit_fee=explicit_fee)
                if kind is ErrorKind.INSUFFICIENT_FUNDS:
                    self._set_state(label, DeploymentState.FAILED_PREFLIGHT)
                    raise InsufficientFundsError(f"Deploying {label} failed: insufficient funds ({e})") from e
                if kind is ErrorKind.FATAL:
                    self._set_state(label, DeploymentState.FAILED_BROADCAST)
                    raise BroadcastError(
                        f"Deploying {label} failed and will not be retried: {type(e).__name__}: {e}",
                        attempts=attempt,
                        remedy="Check the constructor arguments and the artifact",
                    ) from e
                logger.warning("Attempt %d/%d to deploy %s failed: %s", attempt, attempts, label, e)
                if attempt >= attempts:
                    self._set_state(label, DeploymentState.FAILED_BROADCAST)
                    raise BroadcastError(
                        f"Deploying {label} failed after {attempts} attempts: {e}", attempts=attempt
                    ) from e
                logger.info("Retrying in %ss...", self.config.retry_delay)
                self._sleep(self.config.retry_delay)

        tx_hex = _hex(tx_hash)
        logger.info("Deployment of %s broadcast: %s, waiting for confirmation", label, tx_hex)
        self._set_state(label, DeploymentState.CONFIRMING)
        try:
            receipt = client.wait_for_receipt(tx_hash)
        except TimeExhausted as e:
            self._set_state(label, DeploymentState.FAILED_BROADCAST)
            raise BroadcastError(
                f"{label} deployment {tx_hex} was not mined in time",
                attempts=attempts,
                remedy=f"Look up {tx_hex} on the explorer before redeploying",
            ) from e

        address = receipt.get("contractAddress")
        if receipt.get("status") != 1 or not address:
            self._set_state(label, DeploymentState.FAILED_BROADCAST)
            log_deployment(logger, label, address, receipt.get("blockNumber"), receipt.get("gasUsed"), tx_hex, success=False)
            raise DeploymentRevertedError(f"{label} deployment reverted", tx_hash=tx_hex)

        handle = DeployedContractHandle(artifact=artifact, address=address, client=client, receipt=receipt)
        self.deployments[label] = handle
        self._set_state(label, DeploymentState.DEPLOYED)
        log_deployment(logger, label, handle.address, handle.block_number, handle.gas_used, tx_hex)
        return handle

    def attach(self, artifact: ContractArtifact | str, address: str, label: str | None = None) -> DeployedContractHandle:
        """Bind an artifact to an already deployed address after checking it has code."""
        client = self._require_client()
        if not isinstance(artifact, ContractArtifact):
            artifact = self.load_artifact(artifact, deployable=False)
        address = to_checksum_address(address)
        if len(client.get_code(address)) == 0:
            raise ContractNotDeployedError(f"No contract code for {artifact.name} at {address}")
        handle = DeployedContractHandle(artifact=artifact, address=address, client=client)
        self._set_state(label or artifact.name, DeploymentState.DEPLOYED)
        return handle

    # ------------------------------------------------------------------ #
    # Roles                                                              #
    # ------------------------------------------------------------------ #

    def resolve_role(self, handle: DeployedContractHandle, role: bytes | str) -> bytes:
        """Role id from raw bytes32, a 0x-hex string, or the name of the role getter."""
        if isinstance(role, (bytes, bytearray)):
            return bytes(role)
        if is_hex(role) and len(role) == 66:
            return bytes.fromhex(role[2:])
        return bytes(handle.call(role))

    def require_role(self, handle: DeployedContractHandle, role: bytes | str, account: str | None = None) -> bytes:
        """Fail before any transaction is built if ``account`` lacks ``role``.

        Raises:
            UnauthorizedError: The read-only ``hasRole`` check returned False.
        """
        account = account or self.signer_address
        role_id = self.resolve_role(handle, role)
        role_name = role if isinstance(role, str) and not is_hex(role) else format_id(role_id)
        if not handle.call("hasRole", role_id, account):
            raise UnauthorizedError(f"{account} does not hold {role_name} on {handle.name} ({handle.address})")
        logger.info("%s holds %s on %s", account, role_name, handle.name)
        return role_id

    def grant_role(self, handle: DeployedContractHandle, role: bytes | str, account: str | None = None) -> bool:
        """Grant ``role`` to ``account``; False when it is already held."""
        account = to_checksum_address(account or self.signer_address)
        role_id = self.resolve_role(handle, role)
        if handle.call("hasRole", role_id, account):
            logger.info("%s already holds %s on %s", account, role, handle.name)
            return False
        self.require_role(handle, DEFAULT_ADMIN_ROLE)
        handle.transact(
            "grantRole",
            role_id,
            account,
            overrides=self._default_overrides(None, GAS_LIMITS["grant_role"]),
        )
        logger.info("Granted %s on %s to %s", role, handle.name, account)
        return True

    # ------------------------------------------------------------------ #
    # Extensions                                                         #
    # ------------------------------------------------------------------ #

    def register_extension(
        self,
        marketplace: DeployedContractHandle,
        extension_id: bytes,
        extension_address: str,
        display_name: str,
        label: str | None = None,
    ) -> LinkOutcome:
        """Idempotent upsert of one extension record.

        Same address: no transaction. Different address: explicit overwrite
        (remove then add). Unregistered: add. Both writes require EXTENSION_ROLE.
        """
        label = label or display_name
        extension_address = to_checksum_address(extension_address)
        self._set_state(label, DeploymentState.REGISTERING)

        current = linker.read_extension(marketplace, extension_id)
        if current.registered and current.points_to(extension_address):
            logger.info("%s already registered at %s (%s), nothing to send",
                        display_name, current.address, "enabled" if current.enabled else "disabled")
            self._set_state(label, DeploymentState.LINKED)
            return LinkOutcome(display_name, LinkStatus.UNCHANGED, current)

        self.require_role(marketplace, EXTENSION_ROLE)
        overrides = self._default_overrides(None, None)
        if not current.registered:
            logger.info("Registering extension %s (%s) at %s", display_name, format_id(extension_id), extension_address)
            linker.add_extension(marketplace, extension_id, extension_address, display_name, overrides)
            status = LinkStatus.REGISTERED
        else:
            logger.warning("Overwriting extension %s (%s): %s -> %s",
                           display_name, format_id(extension_id), current.address, extension_address)
            linker.remove_extension(marketplace, extension_id, overrides)
            try:
                linker.add_extension(marketplace, extension_id, extension_address, display_name, overrides)
            except Exception as e:
                self._restore_extension(marketplace, current, overrides, e)
                raise
            status = LinkStatus.OVERWRITTEN

        record = linker.read_extension(marketplace, extension_id)
        self._set_state(label, DeploymentState.LINKED)
        return LinkOutcome(display_name, status, record)

    def _restore_extension(
        self,
        marketplace: DeployedContractHandle,
        previous: ExtensionRecord,
        overrides: GasOverrides,
        cause: BaseException,
    ) -> None:
        """Put back a record removed for an overwrite whose add then failed."""
        logger.error("Adding the replacement for %s failed (%s); restoring %s",
                     previous.name, cause, previous.address)
        try:
            linker.add_extension(marketplace, previous.extension_id, previous.address, previous.name, overrides)
        except Exception as e:
            logger.critical("Could not restore extension %s (%s) at %s: %s. Re-register it manually.",
                            previous.name, format_id(previous.extension_id), previous.address, e)
            raise RegistryRestoreError(
                f"Extension {previous.name} was removed and could not be restored: {e}",
                remedy=f"Re-register {format_id(previous.extension_id)} at {previous.address}",
            ) from cause
        logger.info("Restored extension %s at %s", previous.name, previous.address)

    def link_extensions(
        self,
        marketplace: DeployedContractHandle,
        extensions: Iterable[tuple[ExtensionSpec, str]],
    ) -> list[LinkOutcome]:
        """Register several extensions; one failure does not stop the others."""
        outcomes: list[LinkOutcome] = []
        for spec, address in extensions:
            try:
                outcome = self.register_extension(marketplace, spec.id, address, spec.display_name, label=spec.artifact)
            except UnauthorizedError as e:
                logger.error("Skipping %s: %s", spec.display_name, e)
                outcome = LinkOutcome(spec.display_name, LinkStatus.UNAUTHORIZED, error=str(e))
            except (DeployerError, ContractLogicError) as e:
                logger.error("Registering %s failed: %s", spec.display_name, e)
                outcome = LinkOutcome(spec.display_name, LinkStatus.FAILED, error=str(e))
            outcomes.append(outcome)
        return outcomes

    def list_extensions(self, marketplace: DeployedContractHandle) -> list[ExtensionRecord]:
        records = linker.list_extensions(marketplace)
        logger.info("Registered extensions: %d", len(records))
        for rec in records:
            logger.info("  - %s: %s (%s) - %s", format_id(rec.extension_id), rec.address,
                        "enabled" if rec.enabled else "disabled", rec.name)
        return records

    def remove_extension(self, marketplace: DeployedContractHandle, extension_id: bytes) -> bool:
        """Remove a registered extension; False when there was nothing to remove."""
        current = linker.read_extension(marketplace, extension_id)
        if not current.registered:
            logger.info("Extension %s is not registered, nothing to remove", format_id(extension_id))
            return False
        self.require_role(marketplace, EXTENSION_ROLE)
        linker.remove_extension(marketplace, extension_id, self._default_overrides(None, None))
        logger.info("Removed extension %s (%s)", current.name, current.address)
        return True

    def prune_extensions(self, marketplace: DeployedContractHandle, keep_addresses: Iterable[str]) -> list[ExtensionRecord]:
        """Remove every registered extension whose address is not in ``keep_addresses``."""
        keep = {a.lower() for a in keep_addresses}
        stale = [r for r in self.list_extensions(marketplace) if r.registered and r.address.lower() not in keep]
        if not stale:
            logger.info("No extensions to prune")
            return []
        self.require_role(marketplace, EXTENSION_ROLE)
        overrides = self._default_overrides(None, None)
        for rec in stale:
            logger.info("Removing extension %s at %s", rec.name or format_id(rec.extension_id), rec.address)
            linker.remove_extension(marketplace, rec.extension_id, overrides)
        return stale

    # ------------------------------------------------------------------ #
    # Verification                                                       #
    # ------------------------------------------------------------------ #

    def verify(
        self,
        handle: DeployedContractHandle,
        expected_reads: Sequence[ExpectedRead] | None = None,
        label: str | None = None,
    ) -> VerificationReport:
        label = label or handle.name
        report = verify(handle, expected_reads, account=self.signer_address)
        if report.passed:
            self._set_state(label, DeploymentState.VERIFIED)
        else:
            self._set_state(label, DeploymentState.FAILED_VERIFICATION)
            for check in report.failures:
                logger.warning("Verification of %s: %s failed (%s)", label, check.name, check.error)
        return report

    # ------------------------------------------------------------------ #
    # Full pipeline                                                      #
    # ------------------------------------------------------------------ #

    def deploy_marketplace_suite(self, extensions: Sequence[ExtensionSpec] = (OFFERS, DIRECT_LISTINGS)) -> SuiteResult:
        """Deploy the marketplace and its extensions, link, verify and dump the registry."""
        self._require_client()
        self.check_funds()

        marketplace_artifact = self.load_artifact(MARKETPLACE_ARTIFACT)
        extension_artifacts = {spec.key: self.load_artifact(spec.artifact) for spec in extensions}

        admin = self.signer_address
        cfg = self.config
        marketplace = self.deploy_with_retry(
            marketplace_artifact,
            (
                admin,
                cfg.platform_fee_bps,
                cfg.platform_fee_recipient or admin,
                cfg.royalty_engine,
                cfg.native_token_wrapper,
            ),
            self._default_overrides(None, GAS_LIMITS["deploy_marketplace"]),
        )

        deployed: dict[str, DeployedContractHandle] = {}
        for spec in extensions:
            deployed[spec.key] = self.deploy_extension(spec, extension_artifacts[spec.key])

        links = self.link_extensions(marketplace, [(spec, deployed[spec.key].address) for spec in extensions])
        reports = [self.verify(marketplace)] + [
            self.verify(deployed[spec.key], label=spec.artifact) for spec in extensions
        ]
        registry = self.list_extensions(marketplace)
        return SuiteResult(marketplace, deployed, links, reports, registry)

    def deploy_extension(self, spec: ExtensionSpec, artifact: ContractArtifact | None = None) -> DeployedContractHandle:
        """Deploy one extension contract with the constructor arguments its artifact expects."""
        artifact = artifact or self.load_artifact(spec.artifact)
        admin = self.signer_address
        if spec.key == DIRECT_LISTINGS.key:
            args: tuple = (self.config.native_token_wrapper, admin)
        else:
            args = (admin,)
        return self.deploy_with_retry(
            artifact,
            args,
            self._default_overrides(None, GAS_LIMITS["deploy_extension"]),
            label=spec.artifact,
        )

    def deploy_collection(
        self,
        params: CollectionParams,
        artifact: ContractArtifact | None = None,
    ) -> tuple[DeployedContractHandle, VerificationReport]:
        """Deploy a standalone ERC721 collection, then check its roles and sale parameters."""
        self._require_client()
        self.check_funds()
        artifact = artifact or self.load_artifact(COLLECTION_ARTIFACT)
        admin = to_checksum_address(params.admin or self.signer_address)
        handle = self.deploy_with_retry(
            artifact,
            params.constructor_args(admin),
            self._default_overrides(None, COLLECTION_GAS_LIMIT),
            label=COLLECTION_ARTIFACT,
        )

        reads = [r for r in default_reads(handle, admin) if r.method not in ("maxSupply", "mintPrice")]
        reads += [
            ExpectedRead("maxSupply", lambda v: v == params.max_supply),
            ExpectedRead("mintPrice", lambda v: v == params.mint_price_wei),
        ]
        return handle, self.verify(handle, reads, label=COLLECTION_ARTIFACT)


def _hex(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


def _lookup_transaction(client: Any, tx_hash: bytes) -> bool | None:
    """Whether the node holds ``tx_hash``; None when the lookup itself failed."""
    try:
        return client.transaction_known(tx_hash)
    except Exception as e:  # unknown either way; keep the signed transaction
        logger.warning("Could not look up %s: %s", _hex(tx_hash), e)
        return None
