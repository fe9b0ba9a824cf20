#!/usr/bin/env python3
"""
Dev helper: send a signed test auth hook to the local backend.

Builds a Supabase Auth send-email hook payload (current or legacy shape),
signs it with the Standard Webhooks scheme, and POSTs it to
/api/auth/hooks/send-email.

Usage
-----
# Basic — signup confirmation for a brand-new user, localhost:8000
python scripts/send_test_auth_hook.py

# Email change with double confirm (two emails: new address, then old)
python scripts/send_test_auth_hook.py --action email_change --old-email old@example.com

# Existing user: "signup" gets reclassified as a magic link
python scripts/send_test_auth_hook.py --created-at 2024-01-01T00:00:00Z

# Legacy payload shape, Japanese locale
python scripts/send_test_auth_hook.py --shape legacy --language ja

Environment / .env
------------------
SEND_EMAIL_HOOK_SECRET   Hook secret, e.g. "v1,whsec_..." (required unless
                         --secret is given).

The authhooks package must be installed (pip install -e .).
"""

import argparse
import json
import os
import sys
import textwrap
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path

import httpx
from dotenv import load_dotenv

from authhooks.models.auth_hook import EmailActionType
from authhooks.services.webhook_signature import sign_payload


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def _build_user(email: str, created_at: str, language: str) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "aud": "authenticated",
        "role": "authenticated",
        "email": email,
        "phone": "",
        "created_at": created_at,
        "updated_at": created_at,
        "is_anonymous": False,
        "identities": [],
        "app_metadata": {"provider": "email"},
        "user_metadata": {"language": language},
    }


def _build_current_payload(action: str, user: dict, old_email: str, site_url: str) -> dict:
    """
    Current shape: positional tokens under email_data.

    For email_change, token / token_hash_new belong to the old address and
    token_new / token_hash to the new one.
    """
    is_change = action == "email_change"
    return {
        "user": user,
        "email_data": {
            "email_action_type": action,
            "token": "123456",
            "token_hash": "pkce_" + uuid.uuid4().hex,
            "token_new": "654321" if is_change else "",
            "token_hash_new": ("pkce_" + uuid.uuid4().hex) if is_change and old_email else "",
            "redirect_to": f"{site_url}/dashboard",
            "site_url": site_url,
            "old_email": old_email if is_change else "",
            "old_phone": "",
            "provider": "",
            "factor_type": "",
        },
    }


def _build_legacy_payload(action: str, user: dict, old_email: str, site_url: str) -> dict:
    """Legacy shape: tokens keyed by role under email."""
    is_change = action == "email_change"
    return {
        "user": user,
        "email": {
            "email_action_type": action,
            "otp": "123456",
            "token_hash": "pkce_" + uuid.uuid4().hex,
            "old_otp": "654321" if is_change and old_email else "",
            "old_token_hash": ("pkce_" + uuid.uuid4().hex) if is_change and old_email else "",
            "redirect_to": f"{site_url}/dashboard",
            "site_url": site_url,
            "old_email": old_email if is_change else "",
        },
    }


_PAYLOAD_BUILDERS = {
    "current": _build_current_payload,
    "legacy": _build_legacy_payload,
}


def _print_response(response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    load_dotenv(project_root / "backend" / ".env")

    parser = argparse.ArgumentParser(
        prog="send_test_auth_hook.py",
        description=textwrap.dedent("""\
            Send a signed Supabase Auth send-email hook to the backend.

            Reads SEND_EMAIL_HOOK_SECRET from the environment or a .env file
            in the project root.
        """),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--url", default="http://localhost:8000",
                        help="Backend base URL (default: http://localhost:8000)")
    parser.add_argument("--action", default="signup",
                        choices=[a.value for a in EmailActionType],
                        help="email_action_type (default: signup)")
    parser.add_argument("--shape", default="current", choices=list(_PAYLOAD_BUILDERS),
                        help="Payload shape (default: current)")
    parser.add_argument("--email", default="user@example.com",
                        help="User email / recipient (default: user@example.com)")
    parser.add_argument("--old-email", default="",
                        help="Old address for email_change (enables the second email)")
    parser.add_argument("--created-at", default=None,
                        help="user.created_at (default: now, i.e. a brand-new user)")
    parser.add_argument("--language", default="en", help="user_metadata.language (default: en)")
    parser.add_argument("--site-url", default="http://localhost:3000",
                        help="site_url / redirect_to origin (default: http://localhost:3000)")
    parser.add_argument("--secret", default=None, help="Override SEND_EMAIL_HOOK_SECRET")
    parser.add_argument("--dry-run", action="store_true",
                        help="Print the payload JSON without sending it.")

    args = parser.parse_args()

    secret = args.secret or os.getenv("SEND_EMAIL_HOOK_SECRET", "")
    if not secret and not args.dry_run:
        print(
            "ERROR: No hook secret found.\n"
            "Set SEND_EMAIL_HOOK_SECRET in your environment or .env file, "
            "or pass --secret.",
            file=sys.stderr,
        )
        return 1

    created_at = args.created_at or datetime.now(timezone.utc).isoformat()
    user = _build_user(args.email, created_at, args.language)
    payload = _PAYLOAD_BUILDERS[args.shape](args.action, user, args.old_email, args.site_url)
    body = json.dumps(payload)

    endpoint = f"{args.url.rstrip('/')}/api/auth/hooks/send-email"
    print(f"Endpoint : {endpoint}")
    print(f"Shape    : {args.shape}")
    print(f"Action   : {args.action}")
    print(f"Recipient: {args.email}")

    if args.dry_run:
        print("\n[DRY RUN] Payload:")
        print(json.dumps(payload, indent=2))
        return 0

    msg_id = f"msg_{uuid.uuid4().hex}"
    timestamp = str(int(time.time()))
    headers = {
        "Content-Type": "application/json",
        "webhook-id": msg_id,
        "webhook-timestamp": timestamp,
        "webhook-signature": f"v1,{sign_payload(secret, msg_id, timestamp, body)}",
    }

    try:
        response = httpx.post(endpoint, content=body, headers=headers, timeout=30)
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {endpoint}\n"
            "Is the backend running? Start it with:\n"
            "  cd backend && uvicorn authhooks.main:app --reload",
            file=sys.stderr,
        )
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
