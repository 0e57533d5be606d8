"""Custom exception classes for marketplace-deployer."""

from __future__ import annotations


class DeployerError(Exception):
    """Base exception for deployment-related errors.

    ``remedy`` is a short operator hint printed by the CLI next to the cause.
    """

    default_remedy: str | None = None

    def __init__(self, message: str, remedy: str | None = None):
        super().__init__(message)
        self.remedy = remedy or self.default_remedy


class ConfigurationError(DeployerError, ValueError):
    """Raised when a configuration value is missing or invalid."""

    default_remedy = "Check the command-line options and the .env file"


class MissingCredentialError(DeployerError):
    """Raised when the signing key environment variable is not set or unusable."""

    default_remedy = "Set the key with: export PRIVATE_KEY=<your_private_key>"


class ArtifactNotFoundError(DeployerError, FileNotFoundError):
    """Raised when a compiled contract artifact is not on disk."""

    default_remedy = "Run `forge build` or point --artifact-dir at the build output"


class ArtifactMalformedError(DeployerError, ValueError):
    """Raised when an artifact lacks a usable ``abi`` or ``bytecode``."""

    default_remedy = "Rebuild the contract; the artifact JSON is incomplete"


class InsufficientFundsError(DeployerError):
    """Raised when the signer cannot pay for the transaction."""

    default_remedy = "Fund the deployer account with native currency and retry"


class NoReachableEndpointError(DeployerError, ConnectionError):
    """Raised when no RPC endpoint answers with the expected chain id."""

    default_remedy = "Set HYPEREVM_RPC_URL to a working endpoint or retry later"

    def __init__(self, message: str, failures: dict[str, str] | None = None, remedy: str | None = None):
        super().__init__(message, remedy)
        self.failures = dict(failures or {})


class ContractNotDeployedError(DeployerError, ValueError):
    """Raised when no bytecode is found at a contract address."""

    default_remedy = "Check the address and the selected chain"


class BroadcastError(DeployerError):
    """Raised when a transaction could not be broadcast or confirmed.

    Covers both an exhausted retry budget and a deterministic rejection that
    was not retried; ``attempts`` tells them apart in reports.
    """

    default_remedy = "Check the RPC endpoint health and the account nonce"

    def __init__(self, message: str, attempts: int = 0, remedy: str | None = None):
        super().__init__(message, remedy)
        self.attempts = attempts


class TransactionRevertedError(DeployerError):
    """Raised when a mined transaction has status 0."""

    default_remedy = "Inspect the transaction on the block explorer"

    def __init__(self, message: str, tx_hash: str | None = None, remedy: str | None = None):
        super().__init__(message, remedy)
        self.tx_hash = tx_hash


class DeploymentRevertedError(TransactionRevertedError):
    """Raised when a contract-creation transaction reverted."""

    default_remedy = "Check the constructor arguments and the gas limit"


class UnauthorizedError(DeployerError, PermissionError):
    """Raised when the signer lacks the role required for a privileged call."""

    default_remedy = "Ask a marketplace admin to grant the role (see `grant-role`)"


class RegistryRestoreError(DeployerError):
    """Raised when an overwrite removed an extension and putting it back failed."""

    default_remedy = "Re-register the previous extension address by hand with `link`"
