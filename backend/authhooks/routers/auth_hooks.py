"""
Supabase Auth "send email" hook router.

Supabase Auth calls this endpoint instead of sending auth emails itself.
The payload is normalized (legacy or current shape) and dispatched to the
matching localized template.

Environment variables
---------------------
SEND_EMAIL_HOOK_SECRET   Standard Webhooks secret ("v1,whsec_...").  Used
                         when the get_auth_hook_secret RPC returns nothing.

Response policy
---------------
401 only when the signature cannot be verified.  Once the request is
authenticated the endpoint always returns 200, even when the payload is
dropped or a send fails: Supabase would otherwise retry a payload it cannot
fix.  Drops and failures are logged and reported in the response body.

Endpoints:
  POST /send-email   — Supabase Auth send-email hook (auth: webhook signature)
"""

import json
import logging
import os
from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from authhooks.db import get_supabase_admin
from authhooks.errors import ActionUnmappable, SchemaInvalid, WebhookSignatureError
from authhooks.models.auth_hook import parse_auth_hook_payload
from authhooks.services.action_normalizer import system_clock
from authhooks.services.auth_event_normalizer import normalize_payload
from authhooks.services.mailer import send_auth_email
from authhooks.services.template_dispatcher import dispatch_auth_event
from authhooks.services.webhook_signature import verify_webhook_signature

logger = logging.getLogger(__name__)

router = APIRouter()

_HOOK_NAME = "send-email-hook"


# ---------------------------------------------------------------------------
# Webhook authentication
# ---------------------------------------------------------------------------

def _get_email_hook_secret() -> Optional[str]:
    """
    Return the hook signing secret.

    Priority:
      1. get_auth_hook_secret RPC (secret stored in Vault, admin client)
      2. SEND_EMAIL_HOOK_SECRET env var
    """
    admin = get_supabase_admin()
    if admin is not None:
        try:
            result = admin.rpc("get_auth_hook_secret", {"p_hook_name": _HOOK_NAME}).execute()
            data = result.data
            if isinstance(data, dict) and data.get("success"):
                secret = (data.get("data") or {}).get("secret")
                if secret:
                    return secret
        except Exception as e:
            logger.warning(f"Failed to fetch auth hook secret from database: {e}")

    return os.getenv("SEND_EMAIL_HOOK_SECRET") or None


def _dropped(reason: str, **extra) -> dict:
    return {"received": True, "processed": False, "reason": reason, **extra}


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/send-email")
async def send_email_hook(request: Request) -> dict:
    """
    Receive a Supabase Auth send-email hook and dispatch the auth email.

    Returns 401 for unverifiable requests; 200 for everything else.
    """
    body = await request.body()

    try:
        verify_webhook_signature(
            body,
            msg_id=request.headers.get("webhook-id"),
            timestamp=request.headers.get("webhook-timestamp"),
            signature_header=request.headers.get("webhook-signature"),
            secret=_get_email_hook_secret(),
        )
    except WebhookSignatureError as exc:
        logger.warning(f"Rejected auth hook request: {exc}")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        raw = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning(f"Auth hook body is not valid JSON: {exc}")
        return _dropped("invalid_json")

    try:
        payload = parse_auth_hook_payload(raw)
    except SchemaInvalid as exc:
        logger.warning(f"Dropping auth hook payload: {exc}")
        return _dropped("schema_invalid")

    try:
        event = normalize_payload(payload, clock=system_clock)
        outcomes = await dispatch_auth_event(event, send_auth_email)
    except ActionUnmappable as exc:
        logger.warning(f"Dropping unmappable auth hook payload: {exc}")
        return _dropped("action_unmappable")
    except Exception as exc:
        logger.exception(f"Unexpected error while dispatching auth email: {exc}")
        return _dropped("dispatch_error")

    failed = [o.recipient for o in outcomes if not o.sent]
    return {
        "received": True,
        "processed": True,
        "action": event.action.value,
        "sent": len(outcomes) - len(failed),
        "failed": len(failed),
    }
