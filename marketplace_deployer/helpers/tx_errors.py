"""
Transaction failure classification.

Only transient, broadcast-level failures are worth another attempt. Anything
deterministic (no funds, a revert during estimation, bad constructor
arguments) fails the same way every time and must surface at once.
"""
from __future__ import annotations

import re
from enum import Enum

import requests
from web3.exceptions import (
    ContractLogicError,
    MismatchedABI,
    ProviderConnectionError,
    TimeExhausted,
    Web3ValidationError,
)

from ..exceptions import DeployerError, InsufficientFundsError


class ErrorKind(Enum):
    TRANSIENT = "transient"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    FATAL = "fatal"


TRANSIENT_PATTERNS = (
    "nonce too low",
    "replacement transaction underpriced",
    "already known",
    "known transaction",
    "timed out",
    "timeout",
    "deadline exceeded",
    "rate limit",
    "too many requests",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "header not found",
    "bad gateway",
    "service unavailable",
    "gateway timeout",
)

TRANSIENT_STATUS_CODES = frozenset({429, 502, 503, 504})

# A status code only counts in HTTP context ("503 Server Error", "status code: 429"),
# never as digits inside gas or size figures
STATUS_CODE_RE = re.compile(
    r"\b(?:http|status(?: code)?)[\s:=]*(\d{3})\b|\b(\d{3}) (?:client|server) error\b"
)

# Only worth retrying while the node still picks the fee
BASE_FEE_PATTERN = "less than block base fee"

ALREADY_KNOWN_PATTERNS = (
    "already known",
    "known transaction",
    "already imported",
)

NONCE_CONSUMED_PATTERN = "nonce too low"

INSUFFICIENT_FUNDS_PATTERNS = (
    "insufficient funds",
    "insufficient balance",
)

TRANSIENT_TYPES = (
    TimeExhausted,
    ProviderConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
    ConnectionError,
    TimeoutError,
)

FATAL_TYPES = (
    ContractLogicError,
    Web3ValidationError,
    MismatchedABI,
    TypeError,
)


def error_message(exc: BaseException) -> str:
    """Flatten an exception into lowercase text, including JSON-RPC error dicts."""
    parts = [str(exc)]
    for arg in getattr(exc, "args", ()):
        if isinstance(arg, dict):
            parts.append(str(arg.get("message", "")))
    message = getattr(exc, "message", None)
    if isinstance(message, str):
        parts.append(message)
    return " ".join(parts).lower()


def http_status(exc: BaseException) -> int | None:
    """HTTP status carried by a requests error, or stated in the error text."""
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    match = STATUS_CODE_RE.search(error_message(exc))
    if match:
        return int(match.group(1) or match.group(2))
    return None


def classify_error(exc: BaseException, explicit_fee: bool = False) -> ErrorKind:
    """Decide whether a failed broadcast is worth another attempt.

    ``explicit_fee`` marks a caller-supplied ``max_fee_per_gas``: a base-fee
    rejection then repeats identically and is fatal.
    """
    if isinstance(exc, InsufficientFundsError):
        return ErrorKind.INSUFFICIENT_FUNDS
    if isinstance(exc, DeployerError):
        return ErrorKind.FATAL
    if isinstance(exc, FATAL_TYPES):
        return ErrorKind.FATAL

    combined = error_message(exc)
    if any(p in combined for p in INSUFFICIENT_FUNDS_PATTERNS):
        return ErrorKind.INSUFFICIENT_FUNDS
    if BASE_FEE_PATTERN in combined:
        return ErrorKind.FATAL if explicit_fee else ErrorKind.TRANSIENT
    if isinstance(exc, TRANSIENT_TYPES):
        return ErrorKind.TRANSIENT
    if http_status(exc) in TRANSIENT_STATUS_CODES:
        return ErrorKind.TRANSIENT
    if any(p in combined for p in TRANSIENT_PATTERNS):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL


def is_retryable(exc: BaseException, explicit_fee: bool = False) -> bool:
    return classify_error(exc, explicit_fee) is ErrorKind.TRANSIENT


def is_already_known(exc: BaseException) -> bool:
    """True when the node reports it already holds this exact signed transaction."""
    combined = error_message(exc)
    return any(p in combined for p in ALREADY_KNOWN_PATTERNS)


def is_nonce_consumed(exc: BaseException) -> bool:
    return NONCE_CONSUMED_PATTERN in error_message(exc)
