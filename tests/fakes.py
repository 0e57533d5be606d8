"""In-memory chain double implementing the ChainClient surface.

Contracts are recognised by their ABI: ``addExtension`` means a marketplace,
``totalOffers`` an Offers extension, ``totalListings`` a DirectListings
extension. Only the behaviour the deployer relies on is modelled: roles, the
extension registry, a handful of getters, balances and receipts.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address
from hexbytes import HexBytes
from web3.exceptions import ContractLogicError, TimeExhausted

from marketplace_deployer.helpers.chain import SignedTransaction

ZERO = "0x0000000000000000000000000000000000000000"
DEFAULT_ADMIN_ROLE = b"\x00" * 32
EXTENSION_ROLE = keccak(text="EXTENSION_ROLE")
MINTER_ROLE = keccak(text="MINTER_ROLE")

CODE = b"\x60\x80\x60\x40\x52"


@dataclass
class FakeContract:
    kind: str
    address: str
    args: tuple = ()
    roles: Dict[bytes, set] = field(default_factory=dict)
    extensions: Dict[bytes, tuple] = field(default_factory=dict)

    def grant(self, role: bytes, account: str) -> None:
        self.roles.setdefault(role, set()).add(to_checksum_address(account))

    def revoke(self, role: bytes, account: str) -> None:
        self.roles.get(role, set()).discard(to_checksum_address(account))

    def has_role(self, role: bytes, account: str) -> bool:
        return to_checksum_address(account) in self.roles.get(role, set())


@dataclass
class SentTransaction:
    to: Optional[str]
    fn_name: str
    args: tuple
    gas: Optional[int]
    sender: str


def _kind_from_abi(abi: list) -> str:
    names = {e.get("name") for e in abi if e.get("type") == "function"}
    if "addExtension" in names:
        return "marketplace"
    if "totalOffers" in names:
        return "offers"
    if "totalListings" in names:
        return "direct_listings"
    if "mintPrice" in names:
        return "collection"
    return "generic"


class FakeChain:
    """Stands in for ``ChainClient`` in tests.

    Attributes:
        sent: Every state-changing transaction that was accepted, in order.
        deploy_attempts: Number of ``deploy`` calls, failed ones included.
        deploy_failures: Exceptions raised by the next ``deploy`` calls, in order.
        revert_next_deploy: Mine the next creation transaction with status 0.
        unmined: Transaction hashes for which ``wait_for_receipt`` times out.
        lost_responses: Exceptions raised by the next ``deploy`` calls after the
            transaction was accepted, as when a response is lost in transit.
        rebroadcasts: Number of ``send_raw`` calls.
    """

    def __init__(self, chain_id: int = 999, account: Any = None, balance: int = 10 ** 18):
        self._chain_id = chain_id
        self.account = account
        self.contracts: Dict[str, FakeContract] = {}
        self.receipts: Dict[bytes, dict] = {}
        self.balances: Dict[str, int] = {}
        self.sent: List[SentTransaction] = []
        self.deploy_attempts = 0
        self.deploy_failures: List[BaseException] = []
        self.revert_next_deploy = False
        self.unmined: set = set()
        self.lost_responses: List[BaseException] = []
        self.rebroadcasts = 0
        self.last_signed: Optional[SignedTransaction] = None
        self.chain_id_calls = 0
        self.block_number = 100
        self._nonce = 0
        if account is not None:
            self.balances[account.address] = balance

    # -- ChainClient surface ------------------------------------------------

    @property
    def address(self) -> Optional[str]:
        return self.account.address if self.account is not None else None

    def chain_id(self) -> int:
        self.chain_id_calls += 1
        return self._chain_id

    def get_balance(self, address: str) -> int:
        return self.balances.get(to_checksum_address(address), 0)

    def get_code(self, address: str) -> bytes:
        return CODE if to_checksum_address(address) in self.contracts else b""

    def latest_block(self) -> dict:
        return {"number": self.block_number, "gasLimit": 30_000_000}

    def call(self, address: str, abi: list, fn_name: str, *args: Any) -> Any:
        contract = self._contract(address)
        return self._read(contract, fn_name, args)

    def raw_call(self, address: str, data: bytes) -> bytes:
        contract = self._contract(address)
        selector = bytes(data[:4])
        if selector == function_signature_to_4byte_selector("DEFAULT_ADMIN_ROLE()"):
            return DEFAULT_ADMIN_ROLE
        if selector == function_signature_to_4byte_selector("supportsInterface(bytes4)"):
            return (1).to_bytes(32, "big")
        raise ContractLogicError(f"execution reverted: unknown selector on {contract.kind}")

    def send(self, address: str, abi: list, fn_name: str, args: tuple = (), overrides: Any = None) -> bytes:
        contract = self._contract(address)
        self._write(contract, fn_name, tuple(args))
        self.sent.append(SentTransaction(contract.address, fn_name, tuple(args), _gas(overrides), self.address))
        return self._mine(status=1)

    def deploy(self, abi: list, bytecode: str, args: tuple = (), overrides: Any = None) -> bytes:
        self.deploy_attempts += 1
        self.last_signed = None
        if self.deploy_failures:
            raise self.deploy_failures.pop(0)

        kind = _kind_from_abi(abi)
        self.sent.append(SentTransaction(None, f"deploy:{kind}", tuple(args), _gas(overrides), self.address))
        if self.revert_next_deploy:
            self.revert_next_deploy = False
            tx_hash = self._mine(status=0)
        else:
            address = to_checksum_address("0x" + keccak(text=f"contract-{len(self.contracts)}")[-20:].hex())
            contract = self.install(kind, address, args)
            tx_hash = self._mine(status=1, contract_address=contract.address)

        self.last_signed = SignedTransaction(HexBytes(tx_hash), HexBytes(b"signed:" + tx_hash))
        if self.lost_responses:
            raise self.lost_responses.pop(0)
        return tx_hash

    def send_raw(self, signed: SignedTransaction) -> bytes:
        self.rebroadcasts += 1
        if bytes(signed.hash) not in self.receipts:
            raise ValueError({"code": -32000, "message": "transaction never seen by this node"})
        return bytes(signed.hash)

    def transaction_known(self, tx_hash: bytes) -> bool:
        return bytes(tx_hash) in self.receipts

    def wait_for_receipt(self, tx_hash: bytes, timeout: float = 120) -> dict:
        tx_hash = bytes(tx_hash)
        if tx_hash in self.unmined:
            raise TimeExhausted(f"Transaction {tx_hash.hex()} is not in the chain after {timeout} seconds")
        return dict(self.receipts[tx_hash])

    # -- Test helpers -------------------------------------------------------

    def install(self, kind: str, address: str, args: tuple = (), admin: Optional[str] = None) -> FakeContract:
        """Place a contract at ``address``; the admin gets every role."""
        contract = FakeContract(kind, to_checksum_address(address), tuple(args))
        admin = admin or self._admin_from_args(kind, args) or self.address
        if admin:
            contract.grant(DEFAULT_ADMIN_ROLE, admin)
            if kind == "marketplace":
                contract.grant(EXTENSION_ROLE, admin)
            if kind == "collection":
                contract.grant(MINTER_ROLE, admin)
        self.contracts[contract.address] = contract
        return contract

    def contract_at(self, address: str) -> FakeContract:
        return self.contracts[to_checksum_address(address)]

    def next_tx_hash(self) -> bytes:
        return keccak(text=f"tx-{self._nonce + 1}")

    def sent_calls(self, fn_name: str) -> List[SentTransaction]:
        return [tx for tx in self.sent if tx.fn_name == fn_name]

    # -- Internals ----------------------------------------------------------

    @staticmethod
    def _admin_from_args(kind: str, args: tuple) -> Optional[str]:
        if not args:
            return None
        if kind == "direct_listings":
            return args[1]
        if kind == "collection":
            return args[6]
        return args[0]

    def _contract(self, address: str) -> FakeContract:
        contract = self.contracts.get(to_checksum_address(address))
        if contract is None:
            raise ContractLogicError("execution reverted: no contract at address")
        return contract

    def _mine(self, status: int, contract_address: Optional[str] = None) -> bytes:
        self._nonce += 1
        self.block_number += 1
        tx_hash = keccak(text=f"tx-{self._nonce}")
        self.receipts[tx_hash] = {
            "transactionHash": tx_hash,
            "status": status,
            "blockNumber": self.block_number,
            "gasUsed": 21_000 * self._nonce,
            "contractAddress": contract_address,
        }
        return tx_hash

    def _read(self, contract: FakeContract, fn_name: str, args: tuple) -> Any:
        if fn_name == "DEFAULT_ADMIN_ROLE":
            return DEFAULT_ADMIN_ROLE
        if fn_name == "hasRole":
            return contract.has_role(bytes(args[0]), args[1])
        if contract.kind == "marketplace":
            if fn_name == "EXTENSION_ROLE":
                return EXTENSION_ROLE
            if fn_name == "getExtension":
                address, enabled, name = contract.extensions.get(bytes(args[0]), (ZERO, False, ""))
                return [address, enabled, name]
            if fn_name == "getAllExtensionIds":
                return list(contract.extensions)
            if fn_name == "hasExtension":
                return bytes(args[0]) in contract.extensions
        if contract.kind == "offers" and fn_name == "totalOffers":
            return 0
        if contract.kind == "direct_listings":
            if fn_name == "totalListings":
                return 0
            if fn_name == "nativeTokenWrapper":
                return to_checksum_address(contract.args[0])
        if contract.kind == "collection":
            collection_reads = {
                "MINTER_ROLE": MINTER_ROLE,
                "name": contract.args[0],
                "symbol": contract.args[1],
                "maxSupply": contract.args[2],
                "mintPrice": contract.args[3],
                "totalMinted": 0,
                "remainingSupply": contract.args[2],
            }
            if fn_name in collection_reads:
                return collection_reads[fn_name]
        raise ContractLogicError(f"execution reverted: {fn_name} not supported by {contract.kind}")

    def _write(self, contract: FakeContract, fn_name: str, args: tuple) -> None:
        sender = self.address
        if fn_name == "grantRole":
            if not contract.has_role(DEFAULT_ADMIN_ROLE, sender):
                raise ContractLogicError("execution reverted: AccessControl: missing role")
            contract.grant(bytes(args[0]), args[1])
            return
        if contract.kind != "marketplace":
            raise ContractLogicError(f"execution reverted: {fn_name} not supported by {contract.kind}")
        if not contract.has_role(EXTENSION_ROLE, sender):
            raise ContractLogicError("execution reverted: AccessControl: missing role")

        ext_id = bytes(args[0])
        if fn_name == "addExtension":
            if ext_id in contract.extensions:
                raise ContractLogicError("execution reverted: extension already exists")
            contract.extensions[ext_id] = (to_checksum_address(args[1]), True, args[2])
        elif fn_name == "removeExtension":
            if ext_id not in contract.extensions:
                raise ContractLogicError("execution reverted: extension does not exist")
            del contract.extensions[ext_id]
        else:
            raise ContractLogicError(f"execution reverted: {fn_name} not supported")


def _gas(overrides: Any) -> Optional[int]:
    return getattr(overrides, "gas_limit", None) if overrides is not None else None


def write_artifact(artifact_dir: Path, name: str, payload: Dict[str, Any]) -> Path:
    """Write a forge-style artifact at ``<dir>/<name>.sol/<name>.json``."""
    path = Path(artifact_dir) / f"{name}.sol" / f"{name}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(payload, f)
    return path
