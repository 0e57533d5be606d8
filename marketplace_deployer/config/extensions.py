"""
Marketplace extension definitions and per-action gas defaults.

Extension ids are the keccak256 hash of a human-readable name, matching what
the marketplace contract expects in ``addExtension(bytes32,address,string)``.
"""

from dataclasses import dataclass

from eth_utils import keccak


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# HyperEVM wrapped HYPE
DEFAULT_NATIVE_TOKEN_WRAPPER = "0x5555555555555555555555555555555555555555"
DEFAULT_PLATFORM_FEE_BPS = 100  # 1%

# Artifact names as produced by forge (<Name>.sol/<Name>.json)
MARKETPLACE_ARTIFACT = "MarketplaceV3"
OFFERS_ARTIFACT = "Offers"
DIRECT_LISTINGS_ARTIFACT = "DirectListingsExtension"

EXTENSION_ROLE = "EXTENSION_ROLE"
DEFAULT_ADMIN_ROLE = "DEFAULT_ADMIN_ROLE"

GAS_LIMITS: dict[str, int] = {
    "deploy_marketplace": 8_000_000,
    "deploy_extension": 5_000_000,
    "add_extension": 1_000_000,
    "remove_extension": 500_000,
    "grant_role": 500_000,
}


def extension_id(name: str) -> bytes:
    """bytes32 id for an extension name, e.g. ``extension_id("OFFERS")``."""
    return keccak(text=name)


@dataclass(frozen=True)
class ExtensionSpec:
    key: str
    display_name: str
    artifact: str
    description: str = ""

    @property
    def id(self) -> bytes:
        return extension_id(self.key)


OFFERS = ExtensionSpec(
    key="OFFERS",
    display_name="Offers Extension",
    artifact=OFFERS_ARTIFACT,
    description="NFT purchase offers",
)

DIRECT_LISTINGS = ExtensionSpec(
    key="DIRECT_LISTINGS",
    display_name="Direct Listings Extension",
    artifact=DIRECT_LISTINGS_ARTIFACT,
    description="Direct NFT sales",
)

EXTENSIONS: dict[str, ExtensionSpec] = {
    "offers": OFFERS,
    "direct_listings": DIRECT_LISTINGS,
}


def get_extension_spec(name: str) -> ExtensionSpec:
    key = name.lower().replace("-", "_")
    if key not in EXTENSIONS:
        raise ValueError(f"Unknown extension: {name}. Known: {list(EXTENSIONS.keys())}")
    return EXTENSIONS[key]
