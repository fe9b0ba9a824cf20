"""
Provider-agnostic auth event models.

These models represent an auth hook payload after the provider's wire
vocabulary has been reconciled.  The template dispatcher works exclusively
with NormalizedEvent; only the normalizer knows about the legacy/current
payload shapes.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class CanonicalAction(str, Enum):
    """What kind of auth email to send."""
    CONFIRMATION = "confirmation"
    RECOVERY = "recovery"
    MAGICLINK = "magiclink"
    EMAIL_CHANGE = "email_change"
    INVITE = "invite"
    REAUTHENTICATION = "reauthentication"
    EMAIL = "email"
    PASSWORD_CHANGED_NOTIFICATION = "password_changed_notification"
    EMAIL_CHANGED_NOTIFICATION = "email_changed_notification"
    PHONE_CHANGED_NOTIFICATION = "phone_changed_notification"
    IDENTITY_LINKED_NOTIFICATION = "identity_linked_notification"
    IDENTITY_UNLINKED_NOTIFICATION = "identity_unlinked_notification"
    MFA_FACTOR_ENROLLED_NOTIFICATION = "mfa_factor_enrolled_notification"
    MFA_FACTOR_UNENROLLED_NOTIFICATION = "mfa_factor_unenrolled_notification"


class TokenRole(str, Enum):
    """Semantic role of a token once the positional fields are reconciled."""
    OTP = "otp"                         # code shown to the primary recipient
    TOKEN_HASH = "token_hash"           # verification hash for the primary recipient
    OLD_OTP = "old_otp"                 # email_change: code for the old address
    OLD_TOKEN_HASH = "old_token_hash"   # email_change: hash for the old address


class NormalizedEvent(BaseModel):
    """
    Fully reconciled auth event, ready for template dispatch.

    For email_change, old_recipient_email alone never triggers a second send:
    the dispatcher also requires a non-empty TokenRole.OLD_OTP.
    """
    model_config = {"frozen": True}

    action: CanonicalAction
    tokens: dict[TokenRole, str] = {}
    recipient_email: str
    old_recipient_email: Optional[str] = None
    site_url_override: Optional[str] = None
    redirect_to: Optional[str] = None
    locale: str = "en"
    # Non-token template parameters: provider, factor_type, old_phone, new_email
    details: dict[str, str] = {}
