"""
Auth event normalization service.

Turns a validated auth hook payload (legacy or current shape) into a
provider-agnostic NormalizedEvent.  This module is the only place that
knows both payload shapes; the template dispatcher only sees the result.

Normalization is pure given the injected clock: the same payload and the
same clock reading always produce an identical NormalizedEvent.

Public API:
  normalize_payload(payload, clock=...) -> NormalizedEvent
  normalize_auth_event(raw, clock=...) -> Optional[NormalizedEvent]
"""

import logging
from typing import Any, Optional, Union

from authhooks.errors import ActionUnmappable, SchemaInvalid
from authhooks.models.auth_event import CanonicalAction, NormalizedEvent
from authhooks.models.auth_hook import (
    AuthHookPayload,
    AuthHookUser,
    CurrentAuthHookPayload,
    CurrentEmailData,
    LegacyAuthHookPayload,
    LegacyEmailData,
    parse_auth_hook_payload,
)
from authhooks.services.action_normalizer import Clock, normalize_action, system_clock
from authhooks.services.field_remapper import remap_legacy_tokens, remap_tokens
from authhooks.services.locale import locale_from_metadata
from authhooks.services.site_url import select_site_url

logger = logging.getLogger(__name__)

EmailFields = Union[CurrentEmailData, LegacyEmailData]


def _non_empty(value: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _split_payload(payload: AuthHookPayload) -> tuple[EmailFields, Optional[AuthHookUser]]:
    """Return (email fields, user) for either shape; exhaustive over the union."""
    if isinstance(payload, CurrentAuthHookPayload):
        return payload.email_data, payload.user
    if isinstance(payload, LegacyAuthHookPayload):
        return payload.email, payload.user
    raise SchemaInvalid(f"Unsupported payload type {type(payload).__name__}")


def _resolve_recipients(
    action: CanonicalAction,
    fields: EmailFields,
    user: Optional[AuthHookUser],
) -> tuple[str, Optional[str]]:
    """
    Work out (recipient_email, old_recipient_email).

    For email_change the confirmation goes to the new address.  Supabase puts
    the pending address in user.new_email and keeps the current one in
    user.email; when email_data.old_email is empty the current address is
    used as the old one (only if it differs from the new address).
    """
    user_email = _non_empty(user.email) if user else None
    old_email = _non_empty(fields.old_email)

    if action is CanonicalAction.EMAIL_CHANGE:
        new_email = (_non_empty(user.new_email) if user else None) or user_email
        if not new_email:
            raise ActionUnmappable("email_change payload has no recipient address")
        if not old_email and user_email and user_email != new_email:
            old_email = user_email
        if old_email == new_email:
            old_email = None
        return new_email, old_email

    if not user_email:
        raise ActionUnmappable(f"{action.value} payload has no user email")
    return user_email, None


def _collect_details(
    action: CanonicalAction,
    fields: EmailFields,
    user: Optional[AuthHookUser],
) -> dict[str, str]:
    """Non-token template parameters (provider, factor type, phone numbers)."""
    details: dict[str, str] = {}
    for key in ("provider", "factor_type", "old_phone"):
        value = _non_empty(getattr(fields, key, None))
        if value:
            details[key] = value

    if user:
        if _non_empty(user.phone):
            details["phone"] = user.phone.strip()
        if action is CanonicalAction.EMAIL_CHANGED_NOTIFICATION and _non_empty(user.email):
            details["new_email"] = user.email.strip()
    return details


def normalize_payload(
    payload: AuthHookPayload,
    *,
    clock: Clock = system_clock,
    threshold_seconds: Optional[float] = None,
) -> NormalizedEvent:
    """
    Normalize an already-validated payload.

    Raises:
        ActionUnmappable: the payload is valid but lacks a recipient.
    """
    fields, user = _split_payload(payload)
    raw_action = fields.email_action_type.value

    action = normalize_action(
        raw_action,
        user,
        clock=clock,
        threshold_seconds=threshold_seconds,
    )

    recipient_email, old_recipient_email = _resolve_recipients(action, fields, user)

    if isinstance(fields, CurrentEmailData):
        tokens = remap_tokens(action, fields, old_email=old_recipient_email)
    else:
        tokens = remap_legacy_tokens(action, fields, old_email=old_recipient_email)

    locale = locale_from_metadata(
        user.app_metadata if user else None,
        user.user_metadata if user else None,
    )

    return NormalizedEvent(
        action=action,
        tokens=tokens,
        recipient_email=recipient_email,
        old_recipient_email=old_recipient_email,
        site_url_override=select_site_url(fields.redirect_to, fields.site_url),
        redirect_to=_non_empty(fields.redirect_to),
        locale=locale,
        details=_collect_details(action, fields, user),
    )


def normalize_auth_event(
    raw: Any,
    *,
    clock: Clock = system_clock,
    threshold_seconds: Optional[float] = None,
) -> Optional[NormalizedEvent]:
    """
    Validate and normalize a raw webhook body.

    Returns None (after logging) when the payload is rejected by the schema
    or cannot be mapped to an email.  Never raises for bad input.
    """
    try:
        payload = parse_auth_hook_payload(raw)
    except SchemaInvalid as exc:
        logger.warning(f"Dropping auth hook payload: {exc}")
        return None

    try:
        return normalize_payload(payload, clock=clock, threshold_seconds=threshold_seconds)
    except ActionUnmappable as exc:
        logger.warning(f"Dropping unmappable auth hook payload: {exc}")
        return None
