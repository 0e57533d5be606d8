"""
Contract ABI package for the marketplace deployer.

Minimal interface fragments used when a forge artifact is unavailable or
does not match the deployed bytecode.
"""

from .access_control import (
    ACCESS_CONTROL_ABI,
    ERC165_ABI,
    ERC165_INTERFACE_ID,
    PROBE_SIGNATURES,
)
from .marketplace import (
    EXTENSION_REGISTRY_ABI,
    MARKETPLACE_ABI,
    OFFERS_ABI,
    DIRECT_LISTINGS_ABI,
    COLLECTION_ABI,
)

__all__ = [
    # AccessControl / ERC-165
    'ACCESS_CONTROL_ABI',
    'ERC165_ABI',
    'ERC165_INTERFACE_ID',
    'PROBE_SIGNATURES',

    # Marketplace
    'EXTENSION_REGISTRY_ABI',
    'MARKETPLACE_ABI',
    'OFFERS_ABI',
    'DIRECT_LISTINGS_ABI',
    'COLLECTION_ABI',
]
