"""
Translation catalog, locale helpers, verification links and email rendering.
"""

from unittest.mock import patch

import pytest

from authhooks.models.auth_event import CanonicalAction
from authhooks.services.email_templates import (
    EMAIL_CHANGE_OLD_ADDRESS,
    TEMPLATES,
    render_email,
)
from authhooks.services.locale import (
    build_path,
    get_locale_from_referer,
    locale_from_metadata,
    resolve_locale,
)
from authhooks.services.translations import CATALOG, translate
from authhooks.services.verify_url import build_verify_url


# ===========================================================================
# Locale helpers
# ===========================================================================

class TestLocale:

    @pytest.mark.parametrize("value,expected", [
        ("ja", "ja"),
        ("ja-JP", "ja"),
        ("EN_us", "en"),
        ("fr", "en"),
        ("", "en"),
        (None, "en"),
        (42, "en"),
    ])
    def test_resolve_locale(self, value, expected):
        assert resolve_locale(value) == expected

    def test_app_metadata_wins(self):
        assert locale_from_metadata({"language": "ja"}, {"language": "en"}) == "ja"

    def test_user_metadata_locale_key(self):
        assert locale_from_metadata(None, {"locale": "ja"}) == "ja"

    @pytest.mark.parametrize("referer,expected", [
        ("https://app.example.com/ja/login", "ja"),
        ("https://app.example.com/en", "en"),
        ("https://app.example.com/jazz/login", None),
        ("https://app.example.com/login", None),
        (None, None),
    ])
    def test_locale_from_referer(self, referer, expected):
        assert get_locale_from_referer(referer) == expected

    def test_build_path(self):
        assert build_path("/login", "ja") == "/ja/login"
        assert build_path("/login", None) == "/login"


# ===========================================================================
# Translations
# ===========================================================================

class TestTranslate:

    def test_every_template_namespace_has_a_subject_in_every_locale(self):
        namespaces = {t.namespace for t in TEMPLATES.values()} | {EMAIL_CHANGE_OLD_ADDRESS.namespace}
        for locale in CATALOG:
            for namespace in namespaces:
                assert "subject" in CATALOG[locale][namespace], (locale, namespace)

    def test_interpolates_params(self):
        t = translate("email_changed_notification", "en")
        assert "new@example.com" in t("intro", {"app_name": "Bingify", "new_email": "new@example.com"})

    def test_falls_back_to_common(self):
        assert translate("recovery", "ja")("greeting") == "こんにちは、"

    def test_unknown_locale_uses_default(self):
        assert translate("recovery", "de")("subject") == "Reset Your Password"

    def test_missing_key_returns_key(self):
        assert translate("recovery", "en")("no_such_key") == "no_such_key"

    def test_missing_param_renders_empty(self):
        assert translate("identity_linked_notification", "en")("intro", {}) == " was linked to your  account."


# ===========================================================================
# Verification links
# ===========================================================================

class TestBuildVerifyUrl:

    def test_supabase_verify_endpoint(self):
        with patch.dict("os.environ", {"SUPABASE_URL": "https://proj.supabase.co/"}):
            url = build_verify_url(
                verify_type="signup",
                token_hash="pkce_abc",
                redirect_to="https://app.example.com/dashboard",
            )

        assert url == (
            "https://proj.supabase.co/auth/v1/verify?token=pkce_abc&type=signup"
            "&redirect_to=https%3A%2F%2Fapp.example.com%2Fdashboard"
        )

    def test_default_redirect_uses_base_url(self):
        with patch.dict("os.environ", {"SUPABASE_URL": "https://proj.supabase.co"}):
            url = build_verify_url(
                verify_type="recovery", token_hash="h", base_url="https://app.example.com"
            )

        assert url.endswith("redirect_to=https%3A%2F%2Fapp.example.com%2Fauth%2Fcallback")

    def test_site_callback_without_supabase_url(self):
        with patch.dict("os.environ", {"SUPABASE_URL": "", "SITE_URL": "https://site.example.com/"}):
            url = build_verify_url(verify_type="magiclink", token="123456")

        assert url == "https://site.example.com/auth/callback?token_hash=123456&type=magiclink"


# ===========================================================================
# Rendering
# ===========================================================================

class TestRenderEmail:

    def test_link_template_includes_button_and_otp(self):
        rendered = render_email(
            TEMPLATES[CanonicalAction.MAGICLINK],
            "en",
            translate,
            confirmation_url="https://auth.example.com/verify?token=a&type=magiclink",
            otp="123456",
        )

        assert rendered.subject == "Sign In to Bingify"
        assert 'href="https://auth.example.com/verify?token=a&amp;type=magiclink"' in rendered.html
        assert "123456" in rendered.html
        assert "Sign In: https://auth.example.com/verify?token=a&type=magiclink" in rendered.text

    def test_no_link_without_url(self):
        rendered = render_email(TEMPLATES[CanonicalAction.RECOVERY], "en", translate, otp="1")

        assert "<a " not in rendered.html

    def test_params_are_escaped(self):
        rendered = render_email(
            TEMPLATES[CanonicalAction.IDENTITY_LINKED_NOTIFICATION],
            "en",
            translate,
            params={"provider": "<script>"},
        )

        assert "<script>" not in rendered.html
        assert "&lt;script&gt;" in rendered.html

    def test_old_address_template_warns_about_new_email(self):
        rendered = render_email(
            EMAIL_CHANGE_OLD_ADDRESS,
            "en",
            translate,
            otp="111111",
            params={"new_email": "new@example.com"},
        )

        assert "your account email will change to new@example.com" in rendered.text

    def test_app_name_from_environment(self):
        with patch.dict("os.environ", {"APP_NAME": "Acme"}):
            rendered = render_email(TEMPLATES[CanonicalAction.CONFIRMATION], "ja", translate)

        assert "Acmeへようこそ" in rendered.text
        assert '<html lang="ja">' in rendered.html
