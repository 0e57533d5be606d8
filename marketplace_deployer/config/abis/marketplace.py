"""
Marketplace extension registry and extension getter ABIs.
"""

from .access_control import ACCESS_CONTROL_ABI

EXTENSION_REGISTRY_ABI = [
    {"inputs": [], "name": "EXTENSION_ROLE", "outputs": [{"name": "", "type": "bytes32"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "_extensionId", "type": "bytes32"}, {"name": "_extension", "type": "address"}, {"name": "_name", "type": "string"}], "name": "addExtension", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"name": "_extensionId", "type": "bytes32"}], "name": "removeExtension", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {
        "inputs": [{"name": "_extensionId", "type": "bytes32"}],
        "name": "getExtension",
        "outputs": [
            {"name": "extension", "type": "address"},
            {"name": "enabled", "type": "bool"},
            {"name": "name", "type": "string"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {"inputs": [], "name": "getAllExtensionIds", "outputs": [{"name": "", "type": "bytes32[]"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "_extensionId", "type": "bytes32"}], "name": "hasExtension", "outputs": [{"name": "", "type": "bool"}], "stateMutability": "view", "type": "function"},
]

MARKETPLACE_ABI = ACCESS_CONTROL_ABI + EXTENSION_REGISTRY_ABI + [
    {"inputs": [], "name": "getPlatformFee", "outputs": [{"name": "", "type": "address"}, {"name": "", "type": "uint16"}], "stateMutability": "view", "type": "function"},
]

OFFERS_ABI = ACCESS_CONTROL_ABI + [
    {"inputs": [], "name": "totalOffers", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "MANAGER_ROLE", "outputs": [{"name": "", "type": "bytes32"}], "stateMutability": "view", "type": "function"},
]

DIRECT_LISTINGS_ABI = ACCESS_CONTROL_ABI + [
    {"inputs": [], "name": "totalListings", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "nativeTokenWrapper", "outputs": [{"name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
]

COLLECTION_ABI = ACCESS_CONTROL_ABI + [
    {"inputs": [], "name": "MINTER_ROLE", "outputs": [{"name": "", "type": "bytes32"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "name", "outputs": [{"name": "", "type": "string"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "symbol", "outputs": [{"name": "", "type": "string"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "maxSupply", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "mintPrice", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "totalMinted", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "remainingSupply", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
]
