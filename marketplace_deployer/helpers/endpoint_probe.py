"""
RPC endpoint selection.

Providers for a given chain are not always reliable; ``probe_endpoints`` walks
an ordered list of candidate URLs and returns the first that reports the
expected chain id, so a single dead endpoint never wedges a run.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from ..config.network import PROBE_ATTEMPTS
from ..exceptions import NoReachableEndpointError

logger = logging.getLogger(__name__)


@dataclass
class ChainEndpoint:
    url: str
    chain_id: int
    matched: bool
    client: Any = None


def probe_endpoints(
    candidates: Iterable[str],
    expected_chain_id: int,
    factory: Callable[[str], Any],
    attempts: int = PROBE_ATTEMPTS,
) -> ChainEndpoint:
    """Return the first candidate whose chain id equals ``expected_chain_id``.

    Args:
        candidates: RPC URLs, in preference order.
        expected_chain_id: Chain id the endpoint must report.
        factory: Builds a client for a URL; the client must expose ``chain_id()``.
        attempts: Identity queries per endpoint on errors. A wrong chain id is
            final for that endpoint.

    Raises:
        NoReachableEndpointError: No candidate matched. ``failures`` maps each
            URL to the reason it was rejected.
    """
    failures: dict[str, str] = {}
    for url in candidates:
        for attempt in range(1, max(attempts, 1) + 1):
            logger.info("Probing RPC %s (attempt %d/%d)", url, attempt, attempts)
            try:
                client = factory(url)
                chain_id = int(client.chain_id())
            except Exception as e:  # any transport or decoding failure disqualifies this try
                failures[url] = f"{type(e).__name__}: {e}"
                logger.warning("RPC %s failed: %s", url, failures[url])
                continue

            if chain_id == expected_chain_id:
                logger.info("Using RPC %s (chain id %d)", url, chain_id)
                failures.pop(url, None)
                return ChainEndpoint(url=url, chain_id=chain_id, matched=True, client=client)

            failures[url] = f"wrong chain id {chain_id}"
            logger.warning("RPC %s reports chain id %d, expected %d", url, chain_id, expected_chain_id)
            break

    if not failures:
        raise NoReachableEndpointError("No RPC endpoint candidates were given")
    summary = "; ".join(f"{url} ({reason})" for url, reason in failures.items())
    raise NoReachableEndpointError(
        f"No RPC endpoint reported chain id {expected_chain_id}: {summary}",
        failures=failures,
    )
