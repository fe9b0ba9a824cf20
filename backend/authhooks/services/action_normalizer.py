"""
Action normalization for auth hook events.

Maps the provider's email_action_type to a CanonicalAction.

Supabase Auth sends "signup" not only for new registrations but also for
magic-link logins of users that already exist (signInWithOtp on an
unconfirmed-but-existing account).  We cannot tell the two apart from the
action type alone, so a confirmation whose user was created more than
SIGNUP_MAGICLINK_THRESHOLD_SECONDS ago is reclassified as a magic link.

This is a heuristic: a genuine second signup inside the threshold, or clock
skew between Supabase and this service, can misclassify.  Both the raw and
the reclassified action are logged so the threshold can be tuned.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Callable, Optional

from authhooks.models.auth_event import CanonicalAction
from authhooks.models.auth_hook import AuthHookUser

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_SIGNUP_MAGICLINK_THRESHOLD_SECONDS = 60.0

_BASE_ACTION_MAP = {
    "signup": CanonicalAction.CONFIRMATION,
    "recovery": CanonicalAction.RECOVERY,
    "magiclink": CanonicalAction.MAGICLINK,
    "email_change": CanonicalAction.EMAIL_CHANGE,
    "invite": CanonicalAction.INVITE,
}


def system_clock() -> datetime:
    """Production clock: timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def get_signup_magiclink_threshold() -> float:
    """
    Return the reclassification threshold in seconds.

    Read from SIGNUP_MAGICLINK_THRESHOLD_SECONDS; falls back to 60 when the
    variable is unset or not a number.
    """
    raw = os.getenv("SIGNUP_MAGICLINK_THRESHOLD_SECONDS", "").strip()
    if not raw:
        return DEFAULT_SIGNUP_MAGICLINK_THRESHOLD_SECONDS
    try:
        return float(raw)
    except ValueError:
        logger.warning(
            "Invalid SIGNUP_MAGICLINK_THRESHOLD_SECONDS %r, using %s",
            raw,
            DEFAULT_SIGNUP_MAGICLINK_THRESHOLD_SECONDS,
        )
        return DEFAULT_SIGNUP_MAGICLINK_THRESHOLD_SECONDS


def parse_created_at(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a Supabase ``created_at`` timestamp.

    Examples:
        "2024-01-01T00:00:00Z"             -> 2024-01-01 00:00:00+00:00
        "2024-01-01T00:00:00.123456+09:00" -> aware datetime
        "2024-01-01 00:00:00"              -> treated as UTC
        "yesterday" / "" / None            -> None
    """
    if not value or not isinstance(value, str):
        return None

    stripped = value.strip()
    if stripped.endswith("Z"):
        stripped = stripped[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(stripped)
    except ValueError:
        logger.debug("parse_created_at: could not parse %r", value)
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_action(
    raw_action: str,
    user: Optional[AuthHookUser] = None,
    *,
    clock: Clock = system_clock,
    threshold_seconds: Optional[float] = None,
) -> CanonicalAction:
    """
    Map a raw email_action_type (plus the user snapshot) to a CanonicalAction.

    Args:
        raw_action: The provider's email_action_type value.
        user: Optional user snapshot; only created_at is consulted.
        clock: Returns "now"; injected so normalization stays deterministic.
        threshold_seconds: Age above which a signup is treated as a magic
            link.  Defaults to get_signup_magiclink_threshold().

    Raises:
        ValueError: raw_action is not a known action (the schema validator
            rejects these before we get here).
    """
    action = _BASE_ACTION_MAP.get(raw_action) or CanonicalAction(raw_action)

    if action is not CanonicalAction.CONFIRMATION or user is None:
        return action

    created_at = parse_created_at(user.created_at)
    if created_at is None:
        return action

    if threshold_seconds is None:
        threshold_seconds = get_signup_magiclink_threshold()

    age_seconds = (clock() - created_at).total_seconds()
    if age_seconds > threshold_seconds:
        logger.info(
            "Reclassified auth action %r -> %r (user %s created %.0fs ago, threshold %.0fs)",
            raw_action,
            CanonicalAction.MAGICLINK.value,
            user.id,
            age_seconds,
            threshold_seconds,
        )
        return CanonicalAction.MAGICLINK

    return action
