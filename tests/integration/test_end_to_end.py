"""Integration tests for the full deploy, link and verify workflow."""

import pytest

from marketplace_deployer.config.extensions import DIRECT_LISTINGS, OFFERS, ZERO_ADDRESS, extension_id
from marketplace_deployer.exceptions import InsufficientFundsError
from marketplace_deployer.setup.orchestrator import DeploymentOrchestrator, DeploymentState, LinkStatus

pytestmark = pytest.mark.integration


class TestOffersWorkflow:
    """Deploy marketplace and Offers, register, list."""

    def test_register_offers_and_list(self, orchestrator, chain, deployer):
        marketplace_artifact = orchestrator.load_artifact("MarketplaceV3")
        offers_artifact = orchestrator.load_artifact("Offers")
        admin = deployer.address

        marketplace = orchestrator.deploy_with_retry(
            marketplace_artifact, (admin, 100, admin, ZERO_ADDRESS, "0x5555555555555555555555555555555555555555")
        )
        offers = orchestrator.deploy_with_retry(offers_artifact, (admin,))
        outcome = orchestrator.register_extension(marketplace, extension_id("OFFERS"), offers.address, "Offers Extension")

        records = orchestrator.list_extensions(marketplace)

        assert outcome.status is LinkStatus.REGISTERED
        assert len(records) == 1
        assert records[0].extension_id == extension_id("OFFERS")
        assert records[0].address == offers.address
        assert records[0].enabled

    def test_rerun_against_existing_contracts_is_a_no_op(self, orchestrator, chain, deployer, config):
        first = orchestrator.deploy_marketplace_suite()
        sent_before = len(chain.sent)

        rerun = DeploymentOrchestrator(config, account=deployer, client=chain)
        marketplace = rerun.attach("MarketplaceV3", first.marketplace.address)
        outcomes = rerun.link_extensions(
            marketplace,
            [(spec, first.extensions[spec.key].address) for spec in (OFFERS, DIRECT_LISTINGS)],
        )

        assert [o.status for o in outcomes] == [LinkStatus.UNCHANGED, LinkStatus.UNCHANGED]
        assert len(chain.sent) == sent_before


class TestMarketplaceSuite:
    """Test deploy_marketplace_suite end to end."""

    def test_full_suite(self, orchestrator, chain, deployer, sleeps):
        result = orchestrator.deploy_marketplace_suite()

        deploys = [tx for tx in chain.sent if tx.fn_name.startswith("deploy:")]
        assert [tx.fn_name for tx in deploys] == ["deploy:marketplace", "deploy:offers", "deploy:direct_listings"]
        assert deploys[0].args == (
            deployer.address,
            100,
            deployer.address,
            ZERO_ADDRESS,
            "0x5555555555555555555555555555555555555555",
        )
        assert deploys[0].gas == 8_000_000
        assert deploys[1].args == (deployer.address,)
        assert deploys[1].gas == 5_000_000
        assert deploys[2].args == ("0x5555555555555555555555555555555555555555", deployer.address)

        assert [o.status for o in result.links] == [LinkStatus.REGISTERED, LinkStatus.REGISTERED]
        assert all(report.passed for report in result.reports)
        assert {r.address for r in result.registry} == {h.address for h in result.extensions.values()}
        assert sleeps == []

        assert orchestrator.state_of("MarketplaceV3") is DeploymentState.VERIFIED
        assert orchestrator.state_of("Offers") is DeploymentState.VERIFIED
        assert orchestrator.state_of("DirectListingsExtension") is DeploymentState.VERIFIED

    def test_suite_recovers_from_transient_broadcast_failure(self, orchestrator, chain, sleeps):
        chain.deploy_failures = [ConnectionError("connection reset by peer")]

        result = orchestrator.deploy_marketplace_suite()

        assert sleeps == [3]
        assert chain.deploy_attempts == 4
        assert len(result.registry) == 2

    def test_unfunded_signer_stops_before_any_transaction(self, orchestrator, chain, deployer):
        chain.balances[deployer.address] = 0

        with pytest.raises(InsufficientFundsError):
            orchestrator.deploy_marketplace_suite()

        assert chain.sent == []
        assert chain.deploy_attempts == 0

    def test_custom_fee_recipient(self, orchestrator, chain):
        recipient = "0x4444444444444444444444444444444444444444"
        orchestrator.config.platform_fee_recipient = recipient
        orchestrator.config.platform_fee_bps = 250

        orchestrator.deploy_marketplace_suite()

        marketplace_args = chain.sent_calls("deploy:marketplace")[0].args
        assert marketplace_args[1:3] == (250, recipient)
