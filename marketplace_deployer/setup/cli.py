#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys

import requests
from eth_utils import is_address, to_checksum_address
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from ..config.abis import COLLECTION_ABI, DIRECT_LISTINGS_ABI, MARKETPLACE_ABI, OFFERS_ABI
from ..config.collection import (
    COLLECTION_ARTIFACT,
    DEFAULT_MAX_MINT_PER_TRANSACTION,
    DEFAULT_MAX_MINT_PER_WALLET,
    DEFAULT_MAX_SUPPLY,
    DEFAULT_MINT_PRICE_ETHER,
    CollectionParams,
)
from ..config.extensions import (
    DIRECT_LISTINGS,
    DIRECT_LISTINGS_ARTIFACT,
    EXTENSION_ROLE,
    EXTENSIONS,
    MARKETPLACE_ARTIFACT,
    OFFERS,
    OFFERS_ARTIFACT,
    get_extension_spec,
)
from ..config.logging_config import get_cli_logger
from ..config.network import get_explorer_url
from ..config.settings import DeployerConfig, ether_to_wei
from ..exceptions import ArtifactNotFoundError, ConfigurationError, DeployerError, MissingCredentialError
from ..helpers.artifacts import ContractArtifact
from ..helpers.contracts import DeployedContractHandle
from ..helpers.web3_setup import load_signer
from .linker import format_id
from .orchestrator import DeploymentOrchestrator, SuiteResult
from .report import DeploymentRecord, RunSummary
from .verifier import probe_selectors

# ABI fragments used when the artifact directory is not available locally
FALLBACK_ABIS = {
    MARKETPLACE_ARTIFACT: MARKETPLACE_ABI,
    OFFERS_ARTIFACT: OFFERS_ABI,
    DIRECT_LISTINGS_ARTIFACT: DIRECT_LISTINGS_ABI,
    COLLECTION_ARTIFACT: COLLECTION_ABI,
}


# ---------------------------------------------------------------------------
# Shared setup
# ---------------------------------------------------------------------------

def _config(args: argparse.Namespace) -> DeployerConfig:
    return DeployerConfig.from_env(
        env_file=args.env_file,
        chain=args.chain,
        rpc_url=args.rpc_url,
        artifact_dir=args.artifact_dir,
        marketplace_address=getattr(args, "marketplace", None),
        max_retries=getattr(args, "max_retries", None),
        gas_limit_override=getattr(args, "gas_limit", None),
    )


def _orchestrator(args: argparse.Namespace, signer_required: bool = True) -> DeploymentOrchestrator:
    config = _config(args)
    try:
        account = load_signer(config.private_key_env_var)
    except MissingCredentialError:
        if signer_required:
            raise
        account = None
    orch = DeploymentOrchestrator(config, account=account)
    orch.connect()
    return orch


def _require_address(value: str | None, what: str, source: str) -> str:
    if not value:
        raise ConfigurationError(
            f"{what} address is required",
            remedy=f"Provide it with {source}",
        )
    if not is_address(value):
        raise ConfigurationError(f"{what} address is not valid: {value!r}")
    return to_checksum_address(value)


def _attach(orch: DeploymentOrchestrator, name: str, address: str) -> DeployedContractHandle:
    """Attach to ``address`` with the local artifact, or the bundled ABI when it is missing."""
    try:
        artifact = orch.load_artifact(name, deployable=False)
    except ArtifactNotFoundError as e:
        if name not in FALLBACK_ABIS:
            raise
        print(f"Warning: {e}; using the bundled {name} interface", file=sys.stderr)
        artifact = ContractArtifact(name=name, abi=FALLBACK_ABIS[name], bytecode=None)
    return orch.attach(artifact, address)


def _marketplace(orch: DeploymentOrchestrator) -> DeployedContractHandle:
    address = _require_address(orch.config.marketplace_address, "Marketplace", "--marketplace or MARKETPLACE_ADDRESS")
    return _attach(orch, MARKETPLACE_ARTIFACT, address)


def _print_records(records) -> None:
    print(f"Registered extensions: {len(records)}")
    for rec in records:
        state = "enabled" if rec.enabled else "disabled"
        print(f"  - {rec.name or format_id(rec.extension_id)}: {rec.address} ({state})")


def _suite_summary(orch: DeploymentOrchestrator, result: SuiteResult) -> RunSummary:
    cfg = orch.config
    summary = RunSummary(
        network=cfg.chain_config["name"],
        chain_id=cfg.chain_id,
        rpc_url=orch.endpoint.url if orch.endpoint else None,
        deployer=orch.signer_address,
    )
    summary.deployments.append(DeploymentRecord.from_handle(MARKETPLACE_ARTIFACT, result.marketplace))
    for handle in result.extensions.values():
        summary.deployments.append(DeploymentRecord.from_handle(handle.name, handle))
    summary.extensions = [rec.to_dict() for rec in result.registry]
    summary.verification = {report.contract: report.passed for report in result.reports}
    return summary


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_probe(args: argparse.Namespace) -> int:
    orch = _orchestrator(args, signer_required=False)
    block = orch.client.latest_block()
    print(f"RPC: {orch.endpoint.url}")
    print(f"Chain ID: {orch.endpoint.chain_id}")
    print(f"Latest block: {block.get('number')} (gas limit {block.get('gasLimit'):,})")
    if orch.signer_address:
        balance = orch.check_funds(minimum_balance=0)
        print(f"Signer: {orch.signer_address}")
        print(f"Balance: {Web3.from_wei(balance, 'ether')} {orch.config.chain_config['currency']}")
    return 0


def cmd_deploy(args: argparse.Namespace) -> int:
    orch = _orchestrator(args)
    result = orch.deploy_marketplace_suite()
    summary = _suite_summary(orch, result)

    print("\n" + "=" * 60)
    print("DEPLOYMENT SUMMARY")
    print("=" * 60)
    for line in summary.lines():
        print(line)
    explorer = get_explorer_url(orch.config.chain)
    print(f"Explorer: {explorer}/address/{result.marketplace.address}")

    failed_links = [o for o in result.links if not o.ok]
    for outcome in failed_links:
        print(f"Link {outcome.extension}: {outcome.status.value} ({outcome.error})", file=sys.stderr)

    if args.save or args.out:
        path = summary.save(args.out)
        print(f"Saved deployment record: {path}")

    if failed_links:
        return 1
    if not all(r.passed for r in result.reports):
        print("Warning: verification reported failures; see the log for details", file=sys.stderr)
    return 0


def cmd_deploy_extension(args: argparse.Namespace) -> int:
    orch = _orchestrator(args)
    spec = get_extension_spec(args.extension)
    orch.check_funds()
    handle = orch.deploy_extension(spec)
    print(f"{spec.display_name}: {handle.address} (block {handle.block_number}, gas {handle.gas_used:,})")

    if args.link:
        marketplace = _marketplace(orch)
        outcome = orch.register_extension(marketplace, spec.id, handle.address, spec.display_name)
        print(f"Link {spec.display_name}: {outcome.status.value}")
    report = orch.verify(handle)
    print(report.summary())
    return 0


def cmd_deploy_collection(args: argparse.Namespace) -> int:
    orch = _orchestrator(args)
    admin = _require_address(args.admin, "Admin", "--admin") if args.admin else None
    params = CollectionParams(
        name=args.name,
        symbol=args.symbol,
        max_supply=args.max_supply,
        mint_price_wei=ether_to_wei("--mint-price", args.mint_price),
        max_mint_per_wallet=args.max_per_wallet,
        max_mint_per_transaction=args.max_per_tx,
        admin=admin,
    )
    handle, report = orch.deploy_collection(params)
    currency = orch.config.chain_config["currency"]

    print(f"{handle.name}: {handle.address} (block {handle.block_number}, gas {handle.gas_used:,})")
    print(f"  {params.name} ({params.symbol}), max supply {params.max_supply:,}")
    print(f"  Mint price: {Web3.from_wei(params.mint_price_wei, 'ether')} {currency}")
    print(f"  Limits: {params.max_mint_per_wallet} per wallet, {params.max_mint_per_transaction} per transaction")
    for check in report.checks:
        status = "ok" if check.passed else f"FAILED ({check.error})"
        print(f"  {check.name}: {status}")
    print(f"Explorer: {get_explorer_url(orch.config.chain)}/address/{handle.address}")

    if args.save or args.out:
        summary = RunSummary(
            network=orch.config.chain_config["name"],
            chain_id=orch.config.chain_id,
            rpc_url=orch.endpoint.url if orch.endpoint else None,
            deployer=orch.signer_address,
        )
        summary.deployments.append(DeploymentRecord.from_handle(handle.name, handle))
        summary.parameters = params.to_dict()
        summary.verification = {report.contract: report.passed}
        print(f"Saved deployment record: {summary.save(args.out)}")
    return 0 if report.passed else 1


def cmd_link(args: argparse.Namespace) -> int:
    orch = _orchestrator(args)
    marketplace = _marketplace(orch)
    cfg = orch.config
    offers = args.offers or cfg.offers_address
    listings = args.direct_listings or cfg.direct_listings_address

    items = []
    if offers:
        items.append((OFFERS, _require_address(offers, "Offers", "--offers or OFFERS_ADDRESS")))
    if listings:
        items.append((DIRECT_LISTINGS, _require_address(listings, "DirectListings", "--direct-listings or DIRECTLISTINGS_ADDRESS")))
    if not items:
        raise ConfigurationError(
            "No extension addresses given",
            remedy="Pass --offers/--direct-listings or set OFFERS_ADDRESS/DIRECTLISTINGS_ADDRESS",
        )

    outcomes = orch.link_extensions(marketplace, items)
    for outcome in outcomes:
        detail = f" ({outcome.error})" if outcome.error else ""
        print(f"{outcome.extension}: {outcome.status.value}{detail}")
    _print_records(orch.list_extensions(marketplace))
    return 0 if all(o.ok for o in outcomes) else 1


def cmd_list(args: argparse.Namespace) -> int:
    orch = _orchestrator(args, signer_required=False)
    records = orch.list_extensions(_marketplace(orch))
    if args.json:
        print(json.dumps([r.to_dict() for r in records], indent=2))
    else:
        _print_records(records)
    return 0


def cmd_prune(args: argparse.Namespace) -> int:
    orch = _orchestrator(args, signer_required=not args.dry_run)
    marketplace = _marketplace(orch)
    keep = args.keep or [a for a in (orch.config.offers_address, orch.config.direct_listings_address) if a]
    if not keep:
        raise ConfigurationError(
            "Refusing to prune without any address to keep",
            remedy="Pass --keep or set OFFERS_ADDRESS/DIRECTLISTINGS_ADDRESS",
        )

    if args.dry_run:
        keep_lower = {a.lower() for a in keep}
        stale = [r for r in orch.list_extensions(marketplace) if r.registered and r.address.lower() not in keep_lower]
        for rec in stale:
            print(f"Would remove {rec.name or format_id(rec.extension_id)}: {rec.address}")
        return 0

    removed = orch.prune_extensions(marketplace, keep)
    for rec in removed:
        print(f"Removed {rec.name or format_id(rec.extension_id)}: {rec.address}")
    _print_records(orch.list_extensions(marketplace))
    return 0


def cmd_grant_role(args: argparse.Namespace) -> int:
    orch = _orchestrator(args)
    if args.contract:
        handle = _attach(orch, args.artifact or MARKETPLACE_ARTIFACT, _require_address(args.contract, "Contract", "--contract"))
    else:
        handle = _marketplace(orch)
    account = _require_address(args.account, "Account", "--account") if args.account else orch.signer_address
    if orch.grant_role(handle, args.role, account):
        print(f"Granted {args.role} on {handle.address} to {account}")
    else:
        print(f"{account} already holds {args.role} on {handle.address}")
    return 0


def cmd_diagnose(args: argparse.Namespace) -> int:
    orch = _orchestrator(args, signer_required=False)
    address = args.address or orch.config.marketplace_address
    address = _require_address(address, "Contract", "--address or MARKETPLACE_ADDRESS")
    handle = _attach(orch, args.artifact or MARKETPLACE_ARTIFACT, address)
    print(f"Contract: {handle.name} @ {handle.address}")

    account = _require_address(args.account, "Account", "--account") if args.account else orch.signer_address
    if account:
        for role in ("DEFAULT_ADMIN_ROLE", EXTENSION_ROLE):
            if not handle.has_function(role):
                continue
            try:
                role_id = orch.resolve_role(handle, role)
                held = handle.call("hasRole", role_id, account)
            except Exception as e:  # a broken getter is itself a finding
                print(f"  {role}: error ({type(e).__name__}: {e})")
                continue
            print(f"  {role} ({format_id(role_id)}): {'yes' if held else 'no'} for {account}")

    report = orch.verify(handle)
    for check in report.checks:
        status = "ok" if check.passed else f"FAILED ({check.error})"
        print(f"  {check.name}: {status}")

    print("Selector probes:")
    for probe in probe_selectors(orch.client, handle.address):
        answer = probe.data if probe.responded else "no response"
        print(f"  {probe.selector} {probe.signature}: {answer}")
    return 0 if report.passed else 1


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deploy and link the marketplace contracts")
    parser.add_argument("--env-file", help="Path to .env file to load before resolving env vars")
    parser.add_argument("--chain", help="Chain name (hyperevm, hyperevm_testnet; default from CHAIN)")
    parser.add_argument("--rpc-url", dest="rpc_url", help="RPC URL tried before the chain defaults")
    parser.add_argument("--artifact-dir", dest="artifact_dir", help="Forge output directory (default ./artifacts_forge)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging with file/line details")
    sub = parser.add_subparsers(dest="cmd")

    p_probe = sub.add_parser("probe", help="Select an RPC endpoint and show chain state")
    p_probe.set_defaults(func=cmd_probe)

    p_deploy = sub.add_parser("deploy", help="Deploy the marketplace, both extensions, link and verify")
    p_deploy.add_argument("--max-retries", dest="max_retries", type=int, help="Broadcast attempts per contract")
    p_deploy.add_argument("--gas-limit", dest="gas_limit", type=int, help="Gas limit for every transaction")
    p_deploy.add_argument("--save", action="store_true", help="Write a JSON deployment record under deployments/")
    p_deploy.add_argument("--out", help="Path of the JSON deployment record (implies --save)")
    p_deploy.set_defaults(func=cmd_deploy)

    p_ext = sub.add_parser("deploy-extension", help="Deploy a single extension contract")
    p_ext.add_argument("--extension", required=True, choices=sorted(EXTENSIONS), help="Extension to deploy")
    p_ext.add_argument("--link", action="store_true", help="Register it on the marketplace after deployment")
    p_ext.add_argument("--marketplace", help="Marketplace address (default MARKETPLACE_ADDRESS)")
    p_ext.add_argument("--max-retries", dest="max_retries", type=int, help="Broadcast attempts")
    p_ext.add_argument("--gas-limit", dest="gas_limit", type=int, help="Gas limit for every transaction")
    p_ext.set_defaults(func=cmd_deploy_extension)

    p_coll = sub.add_parser("deploy-collection", help="Deploy a standalone ERC721 collection")
    p_coll.add_argument("--name", required=True, help="Collection name")
    p_coll.add_argument("--symbol", required=True, help="Collection symbol")
    p_coll.add_argument("--max-supply", dest="max_supply", type=int, default=DEFAULT_MAX_SUPPLY)
    p_coll.add_argument("--mint-price", dest="mint_price", default=DEFAULT_MINT_PRICE_ETHER,
                        help=f"Mint price in native units (default {DEFAULT_MINT_PRICE_ETHER})")
    p_coll.add_argument("--max-per-wallet", dest="max_per_wallet", type=int, default=DEFAULT_MAX_MINT_PER_WALLET)
    p_coll.add_argument("--max-per-tx", dest="max_per_tx", type=int, default=DEFAULT_MAX_MINT_PER_TRANSACTION)
    p_coll.add_argument("--admin", help="Admin and minter (default: the signer)")
    p_coll.add_argument("--max-retries", dest="max_retries", type=int, help="Broadcast attempts")
    p_coll.add_argument("--gas-limit", dest="gas_limit", type=int, help="Gas limit for the creation transaction")
    p_coll.add_argument("--save", action="store_true", help="Write a JSON deployment record under deployments/")
    p_coll.add_argument("--out", help="Path of the JSON deployment record (implies --save)")
    p_coll.set_defaults(func=cmd_deploy_collection)

    p_link = sub.add_parser("link", help="Register extensions on an existing marketplace")
    p_link.add_argument("--marketplace", help="Marketplace address (default MARKETPLACE_ADDRESS)")
    p_link.add_argument("--offers", help="Offers extension address (default OFFERS_ADDRESS)")
    p_link.add_argument("--direct-listings", dest="direct_listings", help="DirectListings address (default DIRECTLISTINGS_ADDRESS)")
    p_link.add_argument("--gas-limit", dest="gas_limit", type=int, help="Gas limit for every transaction")
    p_link.set_defaults(func=cmd_link)

    p_list = sub.add_parser("list", help="List the extensions registered on the marketplace")
    p_list.add_argument("--marketplace", help="Marketplace address (default MARKETPLACE_ADDRESS)")
    p_list.add_argument("--json", action="store_true", help="Print records as JSON")
    p_list.set_defaults(func=cmd_list)

    p_prune = sub.add_parser("prune", help="Remove registered extensions not in the keep list")
    p_prune.add_argument("--marketplace", help="Marketplace address (default MARKETPLACE_ADDRESS)")
    p_prune.add_argument("--keep", action="append", help="Extension address to keep (repeatable)")
    p_prune.add_argument("--dry-run", dest="dry_run", action="store_true", help="Only show what would be removed")
    p_prune.set_defaults(func=cmd_prune)

    p_grant = sub.add_parser("grant-role", help="Grant a role on the marketplace (or another contract)")
    p_grant.add_argument("--role", default=EXTENSION_ROLE, help="Role getter name or 0x bytes32 id (default EXTENSION_ROLE)")
    p_grant.add_argument("--account", help="Grantee (default: the signer)")
    p_grant.add_argument("--marketplace", help="Marketplace address (default MARKETPLACE_ADDRESS)")
    p_grant.add_argument("--contract", help="Grant on this address instead of the marketplace")
    p_grant.add_argument("--artifact", help="Artifact name for --contract (default MarketplaceV3)")
    p_grant.set_defaults(func=cmd_grant_role)

    p_diag = sub.add_parser("diagnose", help="Check roles, getters and raw selectors on a deployed contract")
    p_diag.add_argument("--address", help="Contract address (default MARKETPLACE_ADDRESS)")
    p_diag.add_argument("--marketplace", help=argparse.SUPPRESS)
    p_diag.add_argument("--artifact", help="Artifact name (default MarketplaceV3)")
    p_diag.add_argument("--account", help="Account to check roles for (default: the signer)")
    p_diag.set_defaults(func=cmd_diagnose)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    logger = get_cli_logger(debug=args.verbose)
    try:
        return int(args.func(args))
    except DeployerError as e:
        logger.error("%s failed: %s", args.cmd, e)
        print(f"Error: {e}", file=sys.stderr)
        if e.remedy:
            print(f"Fix: {e.remedy}", file=sys.stderr)
        return 1
    except ContractLogicError as e:
        logger.error("%s failed: contract call reverted: %s", args.cmd, e)
        print(f"Error: contract call reverted: {e}", file=sys.stderr)
        print("Fix: Check the signer roles, the contract address and the arguments with `diagnose`", file=sys.stderr)
        return 1
    except (Web3Exception, requests.RequestException) as e:
        logger.error("%s failed: %s: %s", args.cmd, type(e).__name__, e)
        print(f"Error: RPC request failed: {type(e).__name__}: {e}", file=sys.stderr)
        print("Fix: Check the RPC endpoint with `probe` or pass --rpc-url", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
