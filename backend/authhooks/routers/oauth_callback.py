"""
OAuth callback router.

The identity provider redirects back here with ``?code=...``.  The code is
exchanged for a Supabase session with bounded retries (see
services/code_exchange.py), then the user is redirected into the app.

Error redirects go to ``/[locale/]login?error=<reason>``:
  auth_failed     missing code, unknown provider, or no session afterwards
  link_expired    the exchange failed with a non-network error
  network_error   the exchange kept failing with network errors

Endpoints:
  GET /callback              — generic callback (email links, default OAuth)
  GET /{provider}/callback   — provider-specific OAuth callback
"""

import asyncio
import base64
import binascii
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from authhooks.db import create_session_client
from authhooks.services.code_exchange import (
    ExchangeOutcome,
    exchange_code_with_retry,
    make_supabase_exchange,
)
from authhooks.services.locale import build_path, get_locale_from_referer

logger = logging.getLogger(__name__)

router = APIRouter()

OAUTH_PROVIDERS = ("google", "twitch")

DEFAULT_REDIRECT_PATH = "/dashboard"

_CODE_VERIFIER_COOKIE_SUFFIX = "-auth-token-code-verifier"

_EXCHANGE_ERROR_REASONS = {
    ExchangeOutcome.TERMINAL: "link_expired",
    ExchangeOutcome.RETRIES_EXHAUSTED: "network_error",
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def is_valid_oauth_provider(provider: object) -> bool:
    return isinstance(provider, str) and provider in OAUTH_PROVIDERS


def validate_redirect_path(redirect: Optional[str]) -> str:
    """
    Return a safe same-origin path for the post-login redirect.

    Only absolute paths are accepted; protocol-relative URLs ("//evil.com"),
    backslash tricks and full URLs fall back to DEFAULT_REDIRECT_PATH.
    """
    if not redirect or not isinstance(redirect, str):
        return DEFAULT_REDIRECT_PATH
    candidate = redirect.strip()
    if (
        not candidate.startswith("/")
        or candidate.startswith("//")
        or "\\" in candidate
        or "://" in candidate
    ):
        return DEFAULT_REDIRECT_PATH
    return candidate


def _read_code_verifier(request: Request) -> Optional[str]:
    """
    Return the PKCE code verifier stored by the browser client, if any.

    The Supabase SSR client stores it in ``sb-<project>-auth-token-code-verifier``,
    either JSON-quoted or as ``base64-<data>``.
    """
    for name, value in request.cookies.items():
        if not name.endswith(_CODE_VERIFIER_COOKIE_SUFFIX) or not value:
            continue
        if value.startswith("base64-"):
            raw = value[len("base64-"):]
            try:
                value = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)).decode()
            except (binascii.Error, UnicodeDecodeError):
                logger.warning(f"Could not decode code verifier cookie {name!r}")
                return None
        return value.strip().strip('"') or None
    return None


def _origin(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


def _login_redirect(request: Request, reason: str, locale: Optional[str]) -> RedirectResponse:
    login_path = build_path(f"/login?{urlencode({'error': reason})}", locale)
    return RedirectResponse(f"{_origin(request)}{login_path}")


def _success_redirect(request: Request, redirect: Optional[str], locale: Optional[str]) -> RedirectResponse:
    redirect_path = validate_redirect_path(redirect)
    # Keep a redirect that already carries the locale prefix as-is
    if locale and not redirect_path.startswith(f"/{locale}/"):
        redirect_path = build_path(redirect_path, locale)
    separator = "&" if "?" in redirect_path else "?"
    return RedirectResponse(
        f"{_origin(request)}{redirect_path}{separator}{urlencode({'login_success': 'true'})}"
    )


async def _set_language_metadata(client, session, locale: Optional[str]) -> None:
    """Best-effort: store the UI locale on users that have none yet."""
    if not locale:
        return
    user = getattr(session, "user", None)
    metadata = getattr(user, "user_metadata", None) or {}
    if metadata.get("language"):
        return
    try:
        await asyncio.to_thread(client.auth.update_user, {"data": {"language": locale}})
    except Exception as e:
        logger.warning(f"Failed to set language metadata: {e}")


async def _complete_oauth(
    request: Request,
    provider: Optional[str],
) -> RedirectResponse:
    code = request.query_params.get("code")
    redirect = request.query_params.get("redirect")
    locale = get_locale_from_referer(request.headers.get("referer"))

    if provider is not None and not is_valid_oauth_provider(provider):
        logger.error(f"Invalid OAuth provider in callback URL: {provider!r}")
        return _login_redirect(request, "auth_failed", locale)

    if not code or not code.strip():
        logger.error("Auth callback called without code parameter")
        return _login_redirect(request, "auth_failed", locale)

    client = create_session_client()
    exchange = make_supabase_exchange(client, code_verifier=_read_code_verifier(request))
    result = await exchange_code_with_retry(exchange, code.strip())

    if not result.ok:
        logger.error(
            f"Error exchanging code for session ({result.outcome.value}, "
            f"{len(result.attempts)} attempt(s)): {result.error}"
        )
        return _login_redirect(request, _EXCHANGE_ERROR_REASONS[result.outcome], locale)

    try:
        session = await asyncio.to_thread(client.auth.get_session)
    except Exception as e:
        logger.error(f"Error getting session after OAuth callback: {e}")
        return _login_redirect(request, "auth_failed", locale)

    if not session:
        logger.error("No session after OAuth callback")
        return _login_redirect(request, "auth_failed", locale)

    await _set_language_metadata(client, session, locale)
    return _success_redirect(request, redirect, locale)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/callback")
async def auth_callback(request: Request) -> RedirectResponse:
    """Generic auth callback (no provider in the path)."""
    return await _complete_oauth(request, provider=None)


@router.get("/{provider}/callback")
async def provider_callback(provider: str, request: Request) -> RedirectResponse:
    """Provider-specific OAuth callback, e.g. /auth/google/callback."""
    return await _complete_oauth(request, provider=provider)
