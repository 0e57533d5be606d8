"""
Forge artifact loading.

``forge build`` writes one JSON file per contract at
``<artifact_dir>/<Name>.sol/<Name>.json``. Depending on the toolchain version
``bytecode`` is either a hex string or an object ``{"object": "0x..."}``.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..exceptions import ArtifactMalformedError, ArtifactNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractArtifact:
    name: str
    abi: list[dict[str, Any]]
    bytecode: str | None
    path: Path | None = field(default=None, compare=False)

    @property
    def deployable(self) -> bool:
        return bool(self.bytecode)

    @property
    def function_names(self) -> set[str]:
        return {e["name"] for e in self.abi if e.get("type") == "function" and "name" in e}

    @property
    def event_names(self) -> set[str]:
        return {e["name"] for e in self.abi if e.get("type") == "event" and "name" in e}

    def has_function(self, name: str) -> bool:
        return name in self.function_names

    @property
    def bytecode_size(self) -> int:
        return (len(self.bytecode) - 2) // 2 if self.bytecode else 0


def artifact_path(artifact_dir: str | Path, name: str) -> Path:
    return Path(artifact_dir) / f"{name}.sol" / f"{name}.json"


def _extract_bytecode(raw: Any) -> str | None:
    if isinstance(raw, dict):
        raw = raw.get("object")
    if not isinstance(raw, str):
        return None
    raw = raw.strip()
    if raw in ("", "0x"):
        return None
    if not raw.startswith("0x"):
        raw = "0x" + raw
    try:
        bytes.fromhex(raw[2:])
    except ValueError:
        # Unlinked library placeholders (__$...$__) end up here too
        return None
    return raw


def load_artifact(path: str | Path, name: str | None = None, deployable: bool = True) -> ContractArtifact:
    """Read and validate a compiled contract artifact.

    Args:
        path: Artifact JSON file.
        name: Contract name; defaults to the file stem.
        deployable: Require bytecode. ABI-only loads (attaching to an
            existing address) pass False.

    Raises:
        ArtifactNotFoundError: The file does not exist.
        ArtifactMalformedError: Invalid JSON, missing/empty ``abi``, or missing
            bytecode when ``deployable`` is set.
    """
    path = Path(path)
    name = name or path.stem
    if not path.is_file():
        raise ArtifactNotFoundError(f"Artifact for {name} not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ArtifactMalformedError(f"Artifact {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ArtifactMalformedError(f"Artifact {path} must be a JSON object")

    abi = data.get("abi")
    if not isinstance(abi, list) or not abi:
        raise ArtifactMalformedError(f"Artifact {path} has no 'abi' entries")

    bytecode = _extract_bytecode(data.get("bytecode"))
    if deployable and bytecode is None:
        raise ArtifactMalformedError(f"Artifact {path} has no usable 'bytecode'")

    artifact = ContractArtifact(name=name, abi=abi, bytecode=bytecode, path=path)
    logger.debug(
        "Loaded artifact %s: %d ABI entries, %d bytes of bytecode",
        name, len(abi), artifact.bytecode_size,
    )
    return artifact


def load_named_artifact(artifact_dir: str | Path, name: str, deployable: bool = True) -> ContractArtifact:
    return load_artifact(artifact_path(artifact_dir, name), name=name, deployable=deployable)
