"""Run summaries: what was deployed where, in block and gas terms."""
from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from ..helpers.contracts import DeployedContractHandle


@dataclass
class DeploymentRecord:
    label: str
    address: str
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    @classmethod
    def from_handle(cls, label: str, handle: DeployedContractHandle) -> "DeploymentRecord":
        return cls(
            label=label,
            address=handle.address,
            tx_hash=handle.tx_hash,
            block_number=handle.block_number,
            gas_used=handle.gas_used,
        )


@dataclass
class RunSummary:
    network: str
    chain_id: int
    rpc_url: Optional[str]
    deployer: Optional[str]
    deployments: list[DeploymentRecord] = field(default_factory=list)
    extensions: list[dict[str, Any]] = field(default_factory=list)
    verification: dict[str, bool] = field(default_factory=dict)
    parameters: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def save(self, filepath: Optional[str] = None) -> str:
        """Save the summary to a JSON file and return its path."""
        if filepath is None:
            network_name = self.network.lower().replace(" ", "_")
            filepath = f"deployments/deployment_{network_name}_{int(datetime.now().timestamp())}.json"

        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(filepath, 'w') as f:
            json.dump(asdict(self), f, indent=2)

        return filepath

    def lines(self) -> list[str]:
        out = [f"Network: {self.network} (chain id {self.chain_id})", f"RPC: {self.rpc_url or '-'}"]
        if self.deployer:
            out.append(f"Deployer: {self.deployer}")
        for rec in self.deployments:
            block = rec.block_number if rec.block_number is not None else "N/A"
            gas = f"{rec.gas_used:,}" if rec.gas_used is not None else "N/A"
            out.append(f"{rec.label}: {rec.address} (block {block}, gas {gas})")
        if self.extensions:
            out.append(f"Registered extensions: {len(self.extensions)}")
            for ext in self.extensions:
                state = "enabled" if ext["enabled"] else "disabled"
                out.append(f"  - {ext['name'] or ext['id']}: {ext['address']} ({state})")
        for contract, passed in self.verification.items():
            out.append(f"Verification {contract}: {'passed' if passed else 'FAILED'}")
        return out
