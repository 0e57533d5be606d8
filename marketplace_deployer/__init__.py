"""
Deployment, linking and diagnostics for the marketplace contract suite.

Drives MarketplaceV3 and its Offers / DirectListings extensions from compiled
forge artifacts to deployed, registered and verified contracts on HyperEVM.
"""

__version__ = "0.3.0"
