"""Unit tests for transaction failure classification."""

import pytest
import requests
from web3.exceptions import ContractLogicError, TimeExhausted, Web3ValidationError

from marketplace_deployer.exceptions import ArtifactMalformedError, InsufficientFundsError
from marketplace_deployer.helpers.tx_errors import (
    ErrorKind,
    classify_error,
    error_message,
    http_status,
    is_already_known,
    is_nonce_consumed,
    is_retryable,
)


class TestClassifyError:
    """Test that only broadcast-level hiccups are retryable."""

    @pytest.mark.parametrize(
        "message",
        [
            "nonce too low",
            "replacement transaction underpriced",
            "already known",
            "429 Client Error: Too Many Requests",
            "502 Bad Gateway",
            "header not found",
            "max fee per gas less than block base fee",
        ],
    )
    def test_transient_rpc_messages(self, message):
        assert classify_error(ValueError({"code": -32000, "message": message})) is ErrorKind.TRANSIENT

    @pytest.mark.parametrize(
        "exc",
        [
            TimeExhausted("not mined"),
            requests.exceptions.ReadTimeout("read timed out"),
            requests.exceptions.ConnectionError("refused"),
            ConnectionResetError("reset"),
            TimeoutError(),
        ],
    )
    def test_transient_types(self, exc):
        assert is_retryable(exc)

    def test_insufficient_funds_message(self):
        exc = ValueError({"code": -32000, "message": "insufficient funds for gas * price + value"})
        assert classify_error(exc) is ErrorKind.INSUFFICIENT_FUNDS
        assert not is_retryable(exc)

    def test_insufficient_funds_exception(self):
        assert classify_error(InsufficientFundsError("low")) is ErrorKind.INSUFFICIENT_FUNDS

    @pytest.mark.parametrize(
        "exc",
        [
            ContractLogicError("execution reverted: timeout"),
            Web3ValidationError("wrong argument count"),
            TypeError("bad argument"),
            ArtifactMalformedError("no bytecode"),
            RuntimeError("unexpected"),
        ],
    )
    def test_deterministic_failures_are_fatal(self, exc):
        """Test that reverts, validation errors and unknown failures are never retried."""
        assert classify_error(exc) is ErrorKind.FATAL


class TestErrorMessage:
    def test_includes_rpc_error_dict_message(self):
        exc = ValueError({"code": -32000, "message": "Nonce Too Low"})
        assert "nonce too low" in error_message(exc)

    def test_plain_exception(self):
        assert error_message(RuntimeError("Boom")) == "boom"


def http_error(status):
    response = requests.Response()
    response.status_code = status
    return requests.exceptions.HTTPError(f"{status} Error for url: https://rpc.example", response=response)


class TestStatusCodes:
    """Test that gateway statuses are read from HTTP context, not from stray digits."""

    @pytest.mark.parametrize(
        "message",
        [
            "intrinsic gas too low: have 21000, want 53502",
            "max initcode size exceeded: code size 50429 limit: 49152",
            "gas required exceeds allowance (5042900)",
        ],
    )
    def test_digits_inside_deterministic_errors_are_fatal(self, message):
        assert classify_error(ValueError({"code": -32000, "message": message})) is ErrorKind.FATAL

    @pytest.mark.parametrize("status", [429, 502, 503, 504])
    def test_http_error_with_gateway_status_is_transient(self, status):
        exc = http_error(status)
        assert http_status(exc) == status
        assert classify_error(exc) is ErrorKind.TRANSIENT

    def test_http_error_with_client_status_is_fatal(self):
        assert classify_error(http_error(400)) is ErrorKind.FATAL

    def test_status_stated_in_message(self):
        assert http_status(ValueError("upstream returned status code: 503")) == 503
        assert http_status(ValueError("want 53502")) is None


class TestBaseFee:
    def test_retried_when_the_node_picks_the_fee(self):
        exc = ValueError({"code": -32000, "message": "max fee per gas less than block base fee"})
        assert classify_error(exc) is ErrorKind.TRANSIENT

    def test_fatal_with_an_explicit_max_fee(self):
        exc = ValueError({"code": -32000, "message": "max fee per gas less than block base fee"})
        assert classify_error(exc, explicit_fee=True) is ErrorKind.FATAL
        assert not is_retryable(exc, explicit_fee=True)


class TestAlreadyKnown:
    def test_duplicate_broadcast_messages(self):
        assert is_already_known(ValueError({"code": -32000, "message": "already known"}))
        assert is_already_known(ValueError("Known transaction: 0xabc"))
        assert not is_already_known(ValueError("nonce too low"))

    def test_nonce_consumed(self):
        assert is_nonce_consumed(ValueError({"code": -32000, "message": "nonce too low: next nonce 5"}))
        assert not is_nonce_consumed(ValueError("already known"))
