"""
OAuth authorization-code exchange with bounded retries.

The exchange (Supabase ``exchange_code_for_session``) occasionally fails
with transient network errors right after the provider redirects back.
Those are retried; everything else (invalid or expired code, PKCE verifier
mismatch, ...) is returned immediately so the caller can tell "link
expired" apart from "network issue".

Retry schedule (defaults): attempt 1 immediately, attempt 2 after 1s,
attempt 3 after 2s, i.e. ``base_delay * 2 ** (retry - 1)``.  No jitter.

Error classification
--------------------
Errors are mapped to a TransportErrorCategory.  Structured exception types
(httpx transport errors, TimeoutError, ConnectionRefusedError,
socket.gaierror, ...) are checked first anywhere in the ``__cause__`` /
``__context__`` chain, because supabase wraps the underlying httpx error.
supabase_auth's AuthRetryableError (gateway statuses) counts as a network
error.
Only when no structured type matches do we fall back to case-insensitive
substring matching of the error name and message.
"""

import asyncio
import logging
import socket
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import httpx
from supabase_auth.errors import AuthRetryableError

logger = logging.getLogger(__name__)

MAX_RETRIES = 2
RETRY_BASE_DELAY_SECONDS = 1.0

# Exchange capability: returns an error (or None on success) or raises.
ExchangeFn = Callable[[str], Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[Any]]


class TransportErrorCategory(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    FETCH = "fetch"
    ABORTED = "aborted"
    CONNECTION_REFUSED = "connection_refused"
    DNS_NOT_FOUND = "dns_not_found"
    NOT_TRANSPORT = "not_transport"


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    TERMINAL_FAILURE = "terminal_failure"


class ExchangeOutcome(str, Enum):
    SUCCESS = "success"
    TERMINAL = "terminal"                    # non-network error, no retry
    RETRIES_EXHAUSTED = "retries_exhausted"  # network errors on every attempt


@dataclass
class RetryAttempt:
    index: int              # 1-based
    delay_seconds: float    # backoff slept before this attempt
    outcome: AttemptOutcome
    category: Optional[TransportErrorCategory] = None


@dataclass
class CodeExchangeResult:
    outcome: ExchangeOutcome
    error: Any = None
    category: Optional[TransportErrorCategory] = None
    attempts: list[RetryAttempt] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome is ExchangeOutcome.SUCCESS

    @property
    def retries_exhausted(self) -> bool:
        return self.outcome is ExchangeOutcome.RETRIES_EXHAUSTED


# Substring fallback, checked in order against "<name> <message>" lowercased
_SUBSTRING_CATEGORIES: list[tuple[str, TransportErrorCategory]] = [
    ("econnrefused", TransportErrorCategory.CONNECTION_REFUSED),
    ("connection refused", TransportErrorCategory.CONNECTION_REFUSED),
    ("enotfound", TransportErrorCategory.DNS_NOT_FOUND),
    ("name or service not known", TransportErrorCategory.DNS_NOT_FOUND),
    ("etimedout", TransportErrorCategory.TIMEOUT),
    ("timed out", TransportErrorCategory.TIMEOUT),
    ("timeout", TransportErrorCategory.TIMEOUT),
    ("aborted", TransportErrorCategory.ABORTED),
    ("fetch", TransportErrorCategory.FETCH),
    ("network", TransportErrorCategory.NETWORK),
    ("retryable", TransportErrorCategory.NETWORK),
]

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated",
)


def _error_chain(error: BaseException, limit: int = 5) -> list[BaseException]:
    chain: list[BaseException] = []
    current: Optional[BaseException] = error
    while current is not None and current not in chain and len(chain) < limit:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def _structured_category(error: BaseException) -> Optional[TransportErrorCategory]:
    """Classify by exception type; None when the type says nothing."""
    message = str(error).lower()

    if isinstance(error, (httpx.TimeoutException, TimeoutError, asyncio.TimeoutError, socket.timeout)):
        return TransportErrorCategory.TIMEOUT
    if isinstance(error, socket.gaierror):
        return TransportErrorCategory.DNS_NOT_FOUND
    if isinstance(error, ConnectionRefusedError):
        return TransportErrorCategory.CONNECTION_REFUSED
    if isinstance(error, httpx.ConnectError):
        if any(marker in message for marker in _DNS_MARKERS):
            return TransportErrorCategory.DNS_NOT_FOUND
        if "refused" in message:
            return TransportErrorCategory.CONNECTION_REFUSED
        return TransportErrorCategory.NETWORK
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return TransportErrorCategory.NETWORK
    return None


def _substring_category(error: Any) -> TransportErrorCategory:
    name = getattr(error, "name", None) or type(error).__name__
    message = getattr(error, "message", None) or str(error)
    haystack = f"{name} {message}".lower()
    for needle, category in _SUBSTRING_CATEGORIES:
        if needle in haystack:
            return category
    return TransportErrorCategory.NOT_TRANSPORT


def classify_exchange_error(error: Any) -> TransportErrorCategory:
    """
    Map an exchange error to a TransportErrorCategory.

    Examples:
        httpx.ConnectTimeout("...")                 -> TIMEOUT
        AuthRetryableError wrapping ConnectError    -> NETWORK
        AuthRetryableError("Server error '503 ...")  -> NETWORK
        Exception("ECONNREFUSED 127.0.0.1:54321")   -> CONNECTION_REFUSED
        AuthApiError("invalid_grant")               -> NOT_TRANSPORT
    """
    if isinstance(error, BaseException):
        for link in _error_chain(error):
            category = _structured_category(link)
            if category is not None:
                return category
        # Gateway statuses (502/503/504/52x) surface as AuthRetryableError
        # with an HTTPStatusError underneath
        if any(isinstance(link, AuthRetryableError) for link in _error_chain(error)):
            return TransportErrorCategory.NETWORK
    return _substring_category(error)


def is_retryable(category: TransportErrorCategory) -> bool:
    return category is not TransportErrorCategory.NOT_TRANSPORT


async def exchange_code_with_retry(
    exchange: ExchangeFn,
    code: str,
    *,
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY_SECONDS,
    sleep: SleepFn = asyncio.sleep,
) -> CodeExchangeResult:
    """
    Exchange an authorization code for a session, retrying network failures.

    Args:
        exchange: Async capability; returns None (or {"error": None}) on
            success, returns or raises an error on failure.
        code: The OAuth authorization code.
        max_retries: Retries after the first attempt (default 2, so 3
            attempts in total).
        base_delay: Delay before the first retry; doubles each retry.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        CodeExchangeResult.  On failure, ``error`` is the last error verbatim
        and ``outcome`` distinguishes TERMINAL from RETRIES_EXHAUSTED.
    """
    attempts: list[RetryAttempt] = []
    last_error: Any = None
    last_category: Optional[TransportErrorCategory] = None
    total_attempts = max_retries + 1

    for attempt in range(1, total_attempts + 1):
        delay = 0.0
        if attempt > 1:
            delay = base_delay * 2 ** (attempt - 2)
            await sleep(delay)

        try:
            error = await exchange(code)
        except Exception as exc:
            error = exc

        if isinstance(error, dict):
            # {"error": ...} result shape
            error = error.get("error")

        if not error:
            attempts.append(RetryAttempt(attempt, delay, AttemptOutcome.SUCCESS))
            return CodeExchangeResult(ExchangeOutcome.SUCCESS, attempts=attempts)

        last_error = error
        last_category = classify_exchange_error(error)

        if not is_retryable(last_category):
            attempts.append(
                RetryAttempt(attempt, delay, AttemptOutcome.TERMINAL_FAILURE, last_category)
            )
            logger.warning(f"OAuth code exchange failed with a non-retryable error: {error}")
            return CodeExchangeResult(
                ExchangeOutcome.TERMINAL,
                error=error,
                category=last_category,
                attempts=attempts,
            )

        attempts.append(
            RetryAttempt(attempt, delay, AttemptOutcome.RETRYABLE_FAILURE, last_category)
        )
        logger.warning(
            f"OAuth code exchange failed (attempt {attempt}/{total_attempts}, "
            f"{last_category.value}): {error}"
        )

    logger.error(f"OAuth code exchange failed after {total_attempts} attempts: {last_error}")
    return CodeExchangeResult(
        ExchangeOutcome.RETRIES_EXHAUSTED,
        error=last_error,
        category=last_category,
        attempts=attempts,
    )


def make_supabase_exchange(
    client: Any,
    *,
    code_verifier: Optional[str] = None,
    redirect_to: Optional[str] = None,
) -> ExchangeFn:
    """
    Adapt a Supabase client to the exchange capability.

    supabase-py raises on failure (AuthApiError, AuthRetryableError); the
    blocking call runs in a worker thread.
    """

    async def exchange(code: str) -> Any:
        params: dict[str, str] = {"auth_code": code}
        if code_verifier:
            params["code_verifier"] = code_verifier
        if redirect_to:
            params["redirect_to"] = redirect_to
        await asyncio.to_thread(client.auth.exchange_code_for_session, params)
        return None

    return exchange
