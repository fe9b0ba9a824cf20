"""
Standard Webhooks signature verification for the Supabase Auth hook.

Supabase signs hook requests using the Standard Webhooks scheme:

  signed content   "{webhook-id}.{webhook-timestamp}.{raw body}"
  algorithm        HMAC-SHA256, base64-encoded
  header           webhook-signature: "v1,<sig> [v1,<sig> ...]"
  secret           "v1,whsec_<base64 key>" as shown in the dashboard

Timestamps older or newer than five minutes are rejected to limit replay.
"""

import base64
import binascii
import hashlib
import hmac
import re
import time
from typing import Callable, Optional, Union

from authhooks.errors import WebhookSignatureError

TIMESTAMP_TOLERANCE_SECONDS = 5 * 60

_SECRET_PREFIX = "whsec_"
_SECRET_SEPARATOR_RE = re.compile(r"[,\s]+")


def resolve_secret(secret: str) -> str:
    """
    Strip the version prefix from a dashboard-formatted secret.

    Examples:
        "v1,whsec_abc"  -> "whsec_abc"
        "whsec_abc"     -> "whsec_abc"
    """
    parts = [p for p in _SECRET_SEPARATOR_RE.split(secret.strip()) if p]
    if len(parts) >= 2 and parts[0] == "v1":
        return parts[1]
    return secret.strip()


def _secret_bytes(secret: str) -> bytes:
    resolved = resolve_secret(secret)
    if resolved.startswith(_SECRET_PREFIX):
        resolved = resolved[len(_SECRET_PREFIX):]
    try:
        return base64.b64decode(resolved, validate=True)
    except (binascii.Error, ValueError):
        # Not base64: use the raw secret bytes
        return resolved.encode()


def sign_payload(secret: str, msg_id: str, timestamp: str, body: Union[str, bytes]) -> str:
    """Return the base64 HMAC-SHA256 signature for a webhook body."""
    if isinstance(body, str):
        body = body.encode()
    signed_content = f"{msg_id}.{timestamp}.".encode() + body
    digest = hmac.new(_secret_bytes(secret), signed_content, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def verify_webhook_signature(
    body: Union[str, bytes],
    *,
    msg_id: Optional[str],
    timestamp: Optional[str],
    signature_header: Optional[str],
    secret: Optional[str],
    now: Callable[[], float] = time.time,
) -> None:
    """
    Verify a webhook request against the raw request body.

    Raises:
        WebhookSignatureError: headers or secret missing, timestamp outside
            the tolerance window, or no v1 signature matches.
    """
    if not (msg_id and timestamp and signature_header and secret):
        raise WebhookSignatureError("Missing webhook headers or secret")

    try:
        ts = int(timestamp)
    except ValueError as exc:
        raise WebhookSignatureError("Invalid webhook timestamp") from exc

    if abs(now() - ts) > TIMESTAMP_TOLERANCE_SECONDS:
        raise WebhookSignatureError("Webhook timestamp outside tolerance")

    expected = sign_payload(secret, msg_id, timestamp, body)
    for candidate in signature_header.split():
        version, _, signature = candidate.partition(",")
        if version == "v1" and hmac.compare_digest(signature, expected):
            return

    raise WebhookSignatureError("No matching webhook signature")
