"""
Configuration package for the marketplace deployer.
"""

from marketplace_deployer.config.network import (
    CHAINS,
    DEFAULT_CHAIN,
    MAX_RETRIES,
    RETRY_DELAY,
    get_chain_config,
    get_chain_id,
    get_rpc_url,
    get_rpc_urls,
    get_explorer_url,
)

from marketplace_deployer.config.extensions import (
    DIRECT_LISTINGS,
    EXTENSIONS,
    GAS_LIMITS,
    OFFERS,
    ZERO_ADDRESS,
    ExtensionSpec,
    extension_id,
    get_extension_spec,
)

from marketplace_deployer.config.collection import (
    COLLECTION_ARTIFACT,
    CollectionParams,
)

from marketplace_deployer.config.settings import DeployerConfig

__all__ = [
    # Network
    'CHAINS',
    'DEFAULT_CHAIN',
    'MAX_RETRIES',
    'RETRY_DELAY',
    'get_chain_config',
    'get_chain_id',
    'get_rpc_url',
    'get_rpc_urls',
    'get_explorer_url',

    # Extensions
    'DIRECT_LISTINGS',
    'EXTENSIONS',
    'GAS_LIMITS',
    'OFFERS',
    'ZERO_ADDRESS',
    'ExtensionSpec',
    'extension_id',
    'get_extension_spec',

    # Collection
    'COLLECTION_ARTIFACT',
    'CollectionParams',

    # Settings
    'DeployerConfig',
]
