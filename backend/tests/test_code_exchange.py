"""
OAuth code exchange retry tests.

Sleep is injected, so no test waits in real time.

Coverage:
  - Network errors are retried with 1s, 2s backoff (3 attempts total)
  - Non-network errors return after one attempt, no sleep
  - Auth client gateway errors (AuthRetryableError) are retried
  - Success on a retry stops the loop
  - Error classification: structured types first, substring fallback
"""

import socket
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from supabase_auth.errors import AuthApiError, AuthError, AuthRetryableError
from supabase_auth.helpers import handle_exception

from authhooks.services.code_exchange import (
    ExchangeOutcome,
    TransportErrorCategory,
    classify_exchange_error,
    exchange_code_with_retry,
    is_retryable,
    make_supabase_exchange,
)


TOKEN_URL = "https://test.supabase.co/auth/v1/token?grant_type=pkce"


def _auth_client_error(status: int, body: dict | None = None) -> AuthError:
    """Build the error supabase_auth raises for an HTTP error response."""
    request = httpx.Request("POST", TOKEN_URL)
    response = httpx.Response(status, json=body or {}, request=request)
    try:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise handle_exception(exc)
    except AuthError as err:
        return err


def _invalid_grant() -> AuthError:
    return _auth_client_error(
        400, {"error": "invalid_grant", "error_description": "Invalid authorization code"}
    )


def _wrapped_connect_error() -> AuthRetryableError:
    try:
        try:
            raise httpx.ConnectError("[Errno 111] Connection refused")
        except httpx.ConnectError as inner:
            raise AuthRetryableError("Request failed", 0) from inner
    except AuthRetryableError as outer:
        return outer


class TestRetryLoop:

    @pytest.mark.asyncio
    async def test_network_errors_exhaust_retries(self):
        exchange = AsyncMock(side_effect=httpx.ConnectError("network unreachable"))
        sleep = AsyncMock()

        result = await exchange_code_with_retry(exchange, "code-1", sleep=sleep)

        assert exchange.await_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]
        assert result.outcome is ExchangeOutcome.RETRIES_EXHAUSTED
        assert result.retries_exhausted
        assert not result.ok
        assert isinstance(result.error, httpx.ConnectError)
        assert [a.delay_seconds for a in result.attempts] == [0.0, 1.0, 2.0]

    @pytest.mark.asyncio
    async def test_terminal_error_is_not_retried(self):
        exchange = AsyncMock(side_effect=_invalid_grant())
        sleep = AsyncMock()

        result = await exchange_code_with_retry(exchange, "code-1", sleep=sleep)

        assert exchange.await_count == 1
        sleep.assert_not_called()
        assert result.outcome is ExchangeOutcome.TERMINAL
        assert result.category is TransportErrorCategory.NOT_TRANSPORT
        assert isinstance(result.error, AuthApiError)
        assert result.error.status == 400
        assert str(result.error) == "Invalid authorization code"

    @pytest.mark.asyncio
    async def test_returned_error_is_classified_like_raised(self):
        exchange = AsyncMock(return_value={"error": AuthApiError("invalid_grant", 400, None)})
        sleep = AsyncMock()

        result = await exchange_code_with_retry(exchange, "code-1", sleep=sleep)

        assert result.outcome is ExchangeOutcome.TERMINAL
        assert exchange.await_count == 1

    @pytest.mark.asyncio
    async def test_success_after_retry(self):
        exchange = AsyncMock(side_effect=[httpx.ReadTimeout("timed out"), None])
        sleep = AsyncMock()

        result = await exchange_code_with_retry(exchange, "code-1", sleep=sleep)

        assert result.ok
        assert exchange.await_count == 2
        assert [c.args[0] for c in sleep.call_args_list] == [1.0]
        assert result.attempts[0].category is TransportErrorCategory.TIMEOUT

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        exchange = AsyncMock(return_value={"error": None})
        sleep = AsyncMock()

        result = await exchange_code_with_retry(exchange, "code-1", sleep=sleep)

        assert result.ok
        sleep.assert_not_called()
        exchange.assert_awaited_once_with("code-1")

    @pytest.mark.asyncio
    async def test_gateway_error_from_auth_client_is_retried(self):
        unavailable = _auth_client_error(503)
        exchange = AsyncMock(side_effect=[unavailable, unavailable, None])
        sleep = AsyncMock()

        result = await exchange_code_with_retry(exchange, "code-1", sleep=sleep)

        assert isinstance(unavailable, AuthRetryableError)
        assert result.ok
        assert exchange.await_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]
        assert result.attempts[0].category is TransportErrorCategory.NETWORK

    @pytest.mark.asyncio
    async def test_persistent_gateway_error_exhausts_retries(self):
        exchange = AsyncMock(side_effect=_auth_client_error(502))
        sleep = AsyncMock()

        result = await exchange_code_with_retry(exchange, "code-1", sleep=sleep)

        assert exchange.await_count == 3
        assert result.outcome is ExchangeOutcome.RETRIES_EXHAUSTED
        assert isinstance(result.error, AuthRetryableError)

    @pytest.mark.asyncio
    async def test_custom_schedule(self):
        exchange = AsyncMock(side_effect=ConnectionResetError("reset"))
        sleep = AsyncMock()

        await exchange_code_with_retry(
            exchange, "code-1", max_retries=3, base_delay=0.5, sleep=sleep
        )

        assert exchange.await_count == 4
        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0, 2.0]


class TestClassification:

    @pytest.mark.parametrize("error,expected", [
        (httpx.ConnectTimeout("connect timeout"), TransportErrorCategory.TIMEOUT),
        (TimeoutError(), TransportErrorCategory.TIMEOUT),
        (socket.gaierror(-2, "Name or service not known"), TransportErrorCategory.DNS_NOT_FOUND),
        (ConnectionRefusedError(111, "refused"), TransportErrorCategory.CONNECTION_REFUSED),
        (httpx.ConnectError("[Errno -2] Name or service not known"), TransportErrorCategory.DNS_NOT_FOUND),
        (httpx.ConnectError("[Errno 111] Connection refused"), TransportErrorCategory.CONNECTION_REFUSED),
        (httpx.RemoteProtocolError("Server disconnected"), TransportErrorCategory.NETWORK),
        (Exception("connect ECONNREFUSED 127.0.0.1:54321"), TransportErrorCategory.CONNECTION_REFUSED),
        (Exception("getaddrinfo ENOTFOUND db.example.co"), TransportErrorCategory.DNS_NOT_FOUND),
        (Exception("Failed to fetch"), TransportErrorCategory.FETCH),
        (Exception("The operation was aborted"), TransportErrorCategory.ABORTED),
        (AuthApiError("invalid_grant", 400, None), TransportErrorCategory.NOT_TRANSPORT),
        ("some plain string", TransportErrorCategory.NOT_TRANSPORT),
    ])
    def test_classifies(self, error, expected):
        assert classify_exchange_error(error) is expected

    def test_structured_cause_wins_over_message(self):
        assert classify_exchange_error(_wrapped_connect_error()) is TransportErrorCategory.CONNECTION_REFUSED

    @pytest.mark.parametrize("status", [502, 503, 504, 520, 524])
    def test_auth_client_gateway_errors_are_network(self, status):
        assert classify_exchange_error(_auth_client_error(status)) is TransportErrorCategory.NETWORK

    def test_auth_client_invalid_grant_is_terminal(self):
        assert classify_exchange_error(_invalid_grant()) is TransportErrorCategory.NOT_TRANSPORT

    def test_retryable_error_name_falls_back_to_network(self):
        error = Exception("Server error")
        error.name = "AuthRetryableError"

        assert classify_exchange_error(error) is TransportErrorCategory.NETWORK

    def test_error_name_attribute_is_checked(self):
        error = Exception("request failed")
        error.name = "NetworkError"

        assert classify_exchange_error(error) is TransportErrorCategory.NETWORK

    def test_only_not_transport_is_terminal(self):
        for category in TransportErrorCategory:
            assert is_retryable(category) is (category is not TransportErrorCategory.NOT_TRANSPORT)


class TestSupabaseExchange:

    @pytest.mark.asyncio
    async def test_passes_code_and_verifier(self):
        client = MagicMock()

        exchange = make_supabase_exchange(client, code_verifier="verifier-1")
        result = await exchange("code-1")

        assert result is None
        client.auth.exchange_code_for_session.assert_called_once_with(
            {"auth_code": "code-1", "code_verifier": "verifier-1"}
        )

    @pytest.mark.asyncio
    async def test_client_error_propagates_to_retry_loop(self):
        client = MagicMock()
        client.auth.exchange_code_for_session.side_effect = _invalid_grant()
        sleep = AsyncMock()

        result = await exchange_code_with_retry(make_supabase_exchange(client), "code-1", sleep=sleep)

        assert result.outcome is ExchangeOutcome.TERMINAL
        sleep.assert_not_called()
