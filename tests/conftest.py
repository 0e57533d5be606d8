"""Shared pytest fixtures for marketplace-deployer tests."""

from pathlib import Path
from typing import List

import pytest
from eth_account import Account

from fakes import FakeChain, write_artifact
from marketplace_deployer.config.abis import COLLECTION_ABI, DIRECT_LISTINGS_ABI, MARKETPLACE_ABI, OFFERS_ABI
from marketplace_deployer.config.settings import DeployerConfig
from marketplace_deployer.setup.orchestrator import DeploymentOrchestrator

# Well-known test keys (anvil accounts 0 and 1); never funded on a real chain
DEPLOYER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OUTSIDER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"

FAKE_BYTECODE = "0x608060405234801561001057600080fd5b50"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def artifact_dir(tmp_path: Path) -> Path:
    """Artifact directory holding the marketplace contracts and the ERC721 collection."""
    root = tmp_path / "artifacts_forge"
    write_artifact(root, "MarketplaceV3", {"abi": MARKETPLACE_ABI, "bytecode": {"object": FAKE_BYTECODE}})
    write_artifact(root, "Offers", {"abi": OFFERS_ABI, "bytecode": FAKE_BYTECODE})
    write_artifact(root, "DirectListingsExtension", {"abi": DIRECT_LISTINGS_ABI, "bytecode": {"object": FAKE_BYTECODE[2:]}})
    write_artifact(root, "ERC721Collection", {"abi": COLLECTION_ABI, "bytecode": {"object": FAKE_BYTECODE}})
    return root


@pytest.fixture
def deployer():
    return Account.from_key(DEPLOYER_KEY)


@pytest.fixture
def outsider():
    return Account.from_key(OUTSIDER_KEY)


@pytest.fixture
def config(artifact_dir: Path, monkeypatch) -> DeployerConfig:
    """Config pointing at the temporary artifacts with no retry delay."""
    monkeypatch.delenv("HYPEREVM_RPC_URL", raising=False)
    return DeployerConfig(
        rpc_url="http://good-url",
        chain_id=999,
        artifact_dir=artifact_dir,
        retry_delay=3,
    )


@pytest.fixture
def chain(deployer) -> FakeChain:
    return FakeChain(chain_id=999, account=deployer)


@pytest.fixture
def sleeps() -> List[float]:
    """Records the delays requested between broadcast attempts."""
    return []


@pytest.fixture
def orchestrator(config: DeployerConfig, deployer, chain: FakeChain, sleeps: List[float]) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(config, account=deployer, client=chain, sleep=sleeps.append)


@pytest.fixture
def marketplace(orchestrator: DeploymentOrchestrator):
    """A freshly deployed marketplace handle."""
    artifact = orchestrator.load_artifact("MarketplaceV3")
    admin = orchestrator.signer_address
    return orchestrator.deploy_with_retry(
        artifact,
        (admin, 100, admin, "0x0000000000000000000000000000000000000000", "0x5555555555555555555555555555555555555555"),
    )
