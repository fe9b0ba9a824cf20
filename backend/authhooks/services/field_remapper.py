"""
Token remapping for auth hook payloads.

Supabase Auth's current payload reuses four positional fields for every
action.  Their meaning is action-dependent, and for email_change the naming
is historically inverted:

    role                        current field        fallback
    --------------------------  -------------------  --------
    new address OTP             token_new            token
    new address token hash      token_hash           -
    old address OTP             token                ""
    old address token hash      token_hash_new       -

Old-address roles are only populated when old_email is present.  An empty
old-address OTP means Supabase is running with single-confirm email changes
("Secure email change" off) and no second email may be sent.

The legacy payload already keys tokens by role, so remap_legacy_tokens only
filters them by action.
"""

from typing import Optional

from authhooks.models.auth_event import CanonicalAction, TokenRole
from authhooks.models.auth_hook import CurrentEmailData, LegacyEmailData

# Actions whose email carries a verification link + OTP.  magiclink shares
# the recovery fields: both point at the same verify link template.
_LINK_ACTIONS = {
    CanonicalAction.CONFIRMATION,
    CanonicalAction.MAGICLINK,
    CanonicalAction.RECOVERY,
    CanonicalAction.INVITE,
}

# Actions whose email only carries an OTP (no link).
_OTP_ONLY_ACTIONS = {
    CanonicalAction.REAUTHENTICATION,
    CanonicalAction.EMAIL,
}


def _clean(value: Optional[str]) -> str:
    """Return value stripped, or "" for None / non-strings."""
    if not isinstance(value, str):
        return ""
    return value.strip()


def _compact(tokens: dict[TokenRole, str]) -> dict[TokenRole, str]:
    """Drop empty roles so templates can test presence with ``in``."""
    return {role: value for role, value in tokens.items() if value}


def remap_tokens(
    action: CanonicalAction,
    fields: CurrentEmailData,
    old_email: Optional[str] = None,
) -> dict[TokenRole, str]:
    """
    Build the canonical token set from a current-shape email_data object.

    Args:
        action: The normalized action (after signup/magiclink reclassification).
        fields: The validated email_data object.
        old_email: Old address for email_change; old roles are skipped when
            it is empty.

    Returns:
        Mapping of TokenRole -> non-empty token string.
    """
    token = _clean(fields.token)
    token_hash = _clean(fields.token_hash)

    if action is CanonicalAction.EMAIL_CHANGE:
        tokens = {
            TokenRole.OTP: _clean(fields.token_new) or token,
            TokenRole.TOKEN_HASH: token_hash,
        }
        if _clean(old_email):
            tokens[TokenRole.OLD_OTP] = token
            tokens[TokenRole.OLD_TOKEN_HASH] = _clean(fields.token_hash_new)
        return _compact(tokens)

    if action in _LINK_ACTIONS:
        return _compact({
            TokenRole.OTP: token,
            TokenRole.TOKEN_HASH: token_hash or token,
        })

    if action in _OTP_ONLY_ACTIONS:
        return _compact({TokenRole.OTP: token})

    # Notification-only actions carry no tokens
    return {}


def remap_legacy_tokens(
    action: CanonicalAction,
    fields: LegacyEmailData,
    old_email: Optional[str] = None,
) -> dict[TokenRole, str]:
    """Build the canonical token set from a legacy-shape email object."""
    otp = _clean(fields.otp)
    token_hash = _clean(fields.token_hash)

    if action is CanonicalAction.EMAIL_CHANGE:
        tokens = {
            TokenRole.OTP: otp,
            TokenRole.TOKEN_HASH: token_hash,
        }
        if _clean(old_email):
            tokens[TokenRole.OLD_OTP] = _clean(fields.old_otp)
            tokens[TokenRole.OLD_TOKEN_HASH] = _clean(fields.old_token_hash)
        return _compact(tokens)

    if action in _LINK_ACTIONS:
        return _compact({
            TokenRole.OTP: otp,
            TokenRole.TOKEN_HASH: token_hash or otp,
        })

    if action in _OTP_ONLY_ACTIONS:
        return _compact({TokenRole.OTP: otp})

    return {}


def has_old_address_token(tokens: dict[TokenRole, str]) -> bool:
    """True when an email_change confirmation may be sent to the old address."""
    return bool(tokens.get(TokenRole.OLD_OTP))
