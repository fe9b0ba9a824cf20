"""
Action normalization tests.

Coverage:
  - Base mapping of provider action types to CanonicalAction
  - signup -> magiclink reclassification for users older than the threshold
  - Threshold from SIGNUP_MAGICLINK_THRESHOLD_SECONDS
  - created_at parsing edge cases
"""

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from authhooks.models.auth_event import CanonicalAction
from authhooks.models.auth_hook import AuthHookUser
from authhooks.services.action_normalizer import (
    DEFAULT_SIGNUP_MAGICLINK_THRESHOLD_SECONDS,
    get_signup_magiclink_threshold,
    normalize_action,
    parse_created_at,
)

NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _clock():
    return NOW


def _user_created(seconds_ago: float) -> AuthHookUser:
    created = NOW - timedelta(seconds=seconds_ago)
    return AuthHookUser(id="u-1", email="user@example.com", created_at=created.isoformat())


class TestBaseMapping:

    @pytest.mark.parametrize("raw,expected", [
        ("signup", CanonicalAction.CONFIRMATION),
        ("recovery", CanonicalAction.RECOVERY),
        ("magiclink", CanonicalAction.MAGICLINK),
        ("email_change", CanonicalAction.EMAIL_CHANGE),
        ("invite", CanonicalAction.INVITE),
        ("reauthentication", CanonicalAction.REAUTHENTICATION),
        ("email", CanonicalAction.EMAIL),
        ("password_changed_notification", CanonicalAction.PASSWORD_CHANGED_NOTIFICATION),
        ("mfa_factor_unenrolled_notification", CanonicalAction.MFA_FACTOR_UNENROLLED_NOTIFICATION),
    ])
    def test_maps_action(self, raw, expected):
        assert normalize_action(raw, clock=_clock) is expected

    def test_unknown_action_raises(self):
        with pytest.raises(ValueError):
            normalize_action("launch_missiles", clock=_clock)


class TestSignupReclassification:

    def test_old_user_signup_becomes_magiclink(self):
        action = normalize_action("signup", _user_created(61), clock=_clock, threshold_seconds=60)
        assert action is CanonicalAction.MAGICLINK

    def test_new_user_signup_stays_confirmation(self):
        action = normalize_action("signup", _user_created(59), clock=_clock, threshold_seconds=60)
        assert action is CanonicalAction.CONFIRMATION

    def test_age_equal_to_threshold_is_not_reclassified(self):
        action = normalize_action("signup", _user_created(60), clock=_clock, threshold_seconds=60)
        assert action is CanonicalAction.CONFIRMATION

    def test_no_user_stays_confirmation(self):
        assert normalize_action("signup", None, clock=_clock) is CanonicalAction.CONFIRMATION

    def test_missing_created_at_stays_confirmation(self):
        user = AuthHookUser(id="u-1", email="user@example.com")
        assert normalize_action("signup", user, clock=_clock) is CanonicalAction.CONFIRMATION

    def test_unparseable_created_at_stays_confirmation(self):
        user = AuthHookUser(id="u-1", email="user@example.com", created_at="yesterday")
        assert normalize_action("signup", user, clock=_clock) is CanonicalAction.CONFIRMATION

    def test_other_actions_are_never_reclassified(self):
        action = normalize_action("recovery", _user_created(3600), clock=_clock)
        assert action is CanonicalAction.RECOVERY

    def test_reclassification_is_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="authhooks.services.action_normalizer"):
            normalize_action("signup", _user_created(600), clock=_clock, threshold_seconds=60)

        assert "Reclassified" in caplog.text
        assert "signup" in caplog.text
        assert "magiclink" in caplog.text

    def test_threshold_read_from_environment(self):
        with patch.dict("os.environ", {"SIGNUP_MAGICLINK_THRESHOLD_SECONDS": "300"}):
            action = normalize_action("signup", _user_created(120), clock=_clock)
        assert action is CanonicalAction.CONFIRMATION

        with patch.dict("os.environ", {"SIGNUP_MAGICLINK_THRESHOLD_SECONDS": "30"}):
            action = normalize_action("signup", _user_created(120), clock=_clock)
        assert action is CanonicalAction.MAGICLINK


class TestThresholdConfig:

    def test_default_when_unset(self):
        with patch.dict("os.environ", {}, clear=True):
            assert get_signup_magiclink_threshold() == DEFAULT_SIGNUP_MAGICLINK_THRESHOLD_SECONDS

    def test_default_when_invalid(self):
        with patch.dict("os.environ", {"SIGNUP_MAGICLINK_THRESHOLD_SECONDS": "soon"}):
            assert get_signup_magiclink_threshold() == DEFAULT_SIGNUP_MAGICLINK_THRESHOLD_SECONDS

    def test_reads_float(self):
        with patch.dict("os.environ", {"SIGNUP_MAGICLINK_THRESHOLD_SECONDS": "12.5"}):
            assert get_signup_magiclink_threshold() == 12.5


class TestParseCreatedAt:

    def test_parses_zulu_suffix(self):
        assert parse_created_at("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_parses_offset(self):
        parsed = parse_created_at("2024-01-01T09:00:00+09:00")
        assert parsed == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_naive_is_treated_as_utc(self):
        parsed = parse_created_at("2024-01-01 00:00:00")
        assert parsed.tzinfo is not None
        assert parsed == datetime(2024, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "yesterday", "2024-13-45"])
    def test_invalid_returns_none(self, value):
        assert parse_created_at(value) is None
