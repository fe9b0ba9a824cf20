"""
Verification link construction for auth emails.

Supabase's /auth/v1/verify endpoint expects the token hash as ``token``;
the plain OTP is only shown in the email body.  When SUPABASE_URL is not
configured the link points at the site's own /auth/callback route.
"""

import os
from typing import Optional
from urllib.parse import quote, urlencode

from authhooks.models.auth_event import CanonicalAction

DEFAULT_SITE_URL = "http://localhost:3000"

# Supabase verify "type" for each action that carries a link
VERIFY_TYPES: dict[CanonicalAction, str] = {
    CanonicalAction.CONFIRMATION: "signup",
    CanonicalAction.INVITE: "invite",
    CanonicalAction.MAGICLINK: "magiclink",
    CanonicalAction.RECOVERY: "recovery",
    CanonicalAction.EMAIL_CHANGE: "email_change",
}


def get_site_url() -> str:
    """Return SITE_URL without a trailing slash (default: http://localhost:3000)."""
    return (os.getenv("SITE_URL", "").strip() or DEFAULT_SITE_URL).rstrip("/")


def build_verify_url(
    *,
    verify_type: str,
    token_hash: Optional[str] = None,
    token: Optional[str] = None,
    redirect_to: Optional[str] = None,
    base_url: Optional[str] = None,
) -> str:
    """
    Build the confirmation link embedded in an auth email.

    Args:
        verify_type: Supabase verify type (signup, invite, magiclink, ...).
        token_hash: Preferred verification token.
        token: Fallback when no hash is available.
        redirect_to: Where Supabase sends the user after verification.
            Defaults to {base_url}/auth/callback.
        base_url: Link origin; defaults to SITE_URL.
    """
    base = (base_url or get_site_url()).rstrip("/")
    verification_token = token_hash or token or ""
    redirect = redirect_to or f"{base}/auth/callback"

    supabase_url = os.getenv("SUPABASE_URL", "").strip().rstrip("/")
    if supabase_url:
        query = urlencode(
            {"token": verification_token, "type": verify_type, "redirect_to": redirect},
            quote_via=quote,
        )
        return f"{supabase_url}/auth/v1/verify?{query}"

    query = urlencode(
        {"token_hash": verification_token, "type": verify_type},
        quote_via=quote,
    )
    return f"{base}/auth/callback?{query}"
