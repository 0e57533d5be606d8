"""
ERC721 collection deployment parameters.

The collection contract is deployed standalone (it is not a marketplace
extension) with the constructor
``(name, symbol, maxSupply, mintPrice, maxMintPerWallet, maxMintPerTransaction, admin)``.
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Optional

from eth_utils import keccak
from web3 import Web3

from ..exceptions import ConfigurationError


COLLECTION_ARTIFACT = "ERC721Collection"
MINTER_ROLE = "MINTER_ROLE"
MINTER_ROLE_ID = keccak(text=MINTER_ROLE)

DEFAULT_MAX_SUPPLY = 10_000
DEFAULT_MINT_PRICE_ETHER = "0.01"
DEFAULT_MAX_MINT_PER_WALLET = 10
DEFAULT_MAX_MINT_PER_TRANSACTION = 5

COLLECTION_GAS_LIMIT = 5_000_000


@dataclass(frozen=True)
class CollectionParams:
    name: str
    symbol: str
    max_supply: int = DEFAULT_MAX_SUPPLY
    mint_price_wei: int = Web3.to_wei(Decimal(DEFAULT_MINT_PRICE_ETHER), "ether")
    max_mint_per_wallet: int = DEFAULT_MAX_MINT_PER_WALLET
    max_mint_per_transaction: int = DEFAULT_MAX_MINT_PER_TRANSACTION
    admin: Optional[str] = None

    def __post_init__(self):
        if not self.name or not self.symbol:
            raise ConfigurationError("Collection name and symbol must not be empty")
        if self.max_supply <= 0:
            raise ConfigurationError(f"max_supply must be positive, got {self.max_supply}")
        if self.mint_price_wei < 0:
            raise ConfigurationError(f"mint price must not be negative, got {self.mint_price_wei}")
        if not 0 < self.max_mint_per_transaction <= self.max_mint_per_wallet <= self.max_supply:
            raise ConfigurationError(
                "Mint limits must satisfy 0 < per transaction <= per wallet <= max supply, got "
                f"{self.max_mint_per_transaction} / {self.max_mint_per_wallet} / {self.max_supply}"
            )

    def constructor_args(self, admin: str) -> tuple:
        return (
            self.name,
            self.symbol,
            self.max_supply,
            self.mint_price_wei,
            self.max_mint_per_wallet,
            self.max_mint_per_transaction,
            self.admin or admin,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["mint_price"] = str(Web3.from_wei(self.mint_price_wei, "ether"))
        return data
