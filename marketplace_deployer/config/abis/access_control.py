"""
AccessControl and ERC-165 interface ABIs.

Used to query roles on contracts whose local artifact may not match what is
deployed on-chain.
"""

ERC165_INTERFACE_ID = "0x01ffc9a7"

ERC165_ABI = [
    {"inputs": [{"name": "interfaceId", "type": "bytes4"}], "name": "supportsInterface", "outputs": [{"name": "", "type": "bool"}], "stateMutability": "view", "type": "function"},
]

ACCESS_CONTROL_ABI = [
    {"inputs": [], "name": "DEFAULT_ADMIN_ROLE", "outputs": [{"name": "", "type": "bytes32"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "role", "type": "bytes32"}], "name": "getRoleAdmin", "outputs": [{"name": "", "type": "bytes32"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "role", "type": "bytes32"}, {"name": "account", "type": "address"}], "name": "hasRole", "outputs": [{"name": "", "type": "bool"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "role", "type": "bytes32"}, {"name": "index", "type": "uint256"}], "name": "getRoleMember", "outputs": [{"name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "role", "type": "bytes32"}], "name": "getRoleMemberCount", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "role", "type": "bytes32"}, {"name": "account", "type": "address"}], "name": "grantRole", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"name": "role", "type": "bytes32"}, {"name": "account", "type": "address"}], "name": "revokeRole", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
]

# Raw selectors probed when the ABI is unknown
PROBE_SIGNATURES = [
    "owner()",
    "paused()",
    "supportsInterface(bytes4)",
    "totalSupply()",
    "DEFAULT_ADMIN_ROLE()",
]
