"""
Pydantic models for the Supabase Auth "send email" hook payload.

Two payload shapes are in circulation:

  Current  — ``{"user": {...}, "email_data": {...}}``.  Tokens are positional
             (token / token_hash / token_new / token_hash_new) and their
             meaning depends on email_action_type.
  Legacy   — ``{"user": {...}, "email": {...}}``.  Tokens are keyed by the
             role they play (otp / token_hash for the primary recipient,
             old_otp / old_token_hash for the old address on email_change).

Every leaf field is optional so partial or older payloads still validate,
but email_action_type must be one of the values Supabase Auth is known to
send.  Unknown extra keys are ignored.

Reference: supabase/auth internal/mailer/mailer.go and
internal/hooks/v0hooks/v0hooks.go.
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError

from authhooks.errors import SchemaInvalid


class EmailActionType(str, Enum):
    SIGNUP = "signup"
    INVITE = "invite"
    MAGICLINK = "magiclink"
    RECOVERY = "recovery"
    EMAIL_CHANGE = "email_change"
    EMAIL = "email"
    REAUTHENTICATION = "reauthentication"
    PASSWORD_CHANGED_NOTIFICATION = "password_changed_notification"
    EMAIL_CHANGED_NOTIFICATION = "email_changed_notification"
    PHONE_CHANGED_NOTIFICATION = "phone_changed_notification"
    IDENTITY_LINKED_NOTIFICATION = "identity_linked_notification"
    IDENTITY_UNLINKED_NOTIFICATION = "identity_unlinked_notification"
    MFA_FACTOR_ENROLLED_NOTIFICATION = "mfa_factor_enrolled_notification"
    MFA_FACTOR_UNENROLLED_NOTIFICATION = "mfa_factor_unenrolled_notification"


class AuthHookUser(BaseModel):
    """Snapshot of the Supabase user the email is about."""
    model_config = {"extra": "ignore"}

    id: Optional[str] = None
    email: Optional[str] = None
    new_email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[str] = None  # ISO 8601, e.g. "2024-01-01T00:00:00Z"
    identities: Optional[list[dict[str, Any]]] = None
    app_metadata: Optional[dict[str, Any]] = None
    user_metadata: Optional[dict[str, Any]] = None


class CurrentEmailData(BaseModel):
    """``email_data`` object of the current payload shape."""
    model_config = {"extra": "ignore"}

    email_action_type: EmailActionType
    token: Optional[str] = None
    token_hash: Optional[str] = None
    token_new: Optional[str] = None
    token_hash_new: Optional[str] = None
    redirect_to: Optional[str] = None
    site_url: Optional[str] = None
    old_email: Optional[str] = None
    old_phone: Optional[str] = None
    provider: Optional[str] = None
    factor_type: Optional[str] = None


class LegacyEmailData(BaseModel):
    """``email`` object of the legacy payload shape (tokens keyed by role)."""
    model_config = {"extra": "ignore"}

    email_action_type: EmailActionType
    otp: Optional[str] = None
    token_hash: Optional[str] = None
    old_otp: Optional[str] = None
    old_token_hash: Optional[str] = None
    redirect_to: Optional[str] = None
    site_url: Optional[str] = None
    old_email: Optional[str] = None
    old_phone: Optional[str] = None
    provider: Optional[str] = None
    factor_type: Optional[str] = None


class CurrentAuthHookPayload(BaseModel):
    model_config = {"extra": "ignore"}

    email_data: CurrentEmailData
    user: Optional[AuthHookUser] = None


class LegacyAuthHookPayload(BaseModel):
    model_config = {"extra": "ignore"}

    email: LegacyEmailData
    user: Optional[AuthHookUser] = None


AuthHookPayload = Union[CurrentAuthHookPayload, LegacyAuthHookPayload]


def parse_auth_hook_payload(payload: Any) -> AuthHookPayload:
    """
    Validate a raw webhook body against the two known payload shapes.

    ``email_data`` takes precedence when a payload carries both keys.

    Raises:
        SchemaInvalid: when the payload matches neither shape or carries an
            unrecognised email_action_type.
    """
    if not isinstance(payload, dict):
        raise SchemaInvalid(f"Expected a JSON object, got {type(payload).__name__}")

    if "email_data" in payload:
        model: type[BaseModel] = CurrentAuthHookPayload
    elif "email" in payload:
        model = LegacyAuthHookPayload
    else:
        raise SchemaInvalid("Payload has neither 'email_data' nor 'email'")

    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise SchemaInvalid(
            f"Payload does not match the {model.__name__} schema: "
            f"{exc.error_count()} validation error(s)"
        ) from exc
