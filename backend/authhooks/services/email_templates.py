"""
Auth email template rendering.

Each CanonicalAction maps to a template definition naming its string
namespace, whether it carries a verification link, and whether it shows an
OTP.  Rendering produces a subject plus HTML and plain-text bodies; all
copy comes from the translate capability so the same layout serves every
locale.

Public API:
  TEMPLATES: dict[CanonicalAction, EmailTemplate]
  EMAIL_CHANGE_OLD_ADDRESS: EmailTemplate
  render_email(template, locale, translate, ...) -> RenderedEmail
"""

import html
import os
from dataclasses import dataclass
from typing import Callable, Optional

from authhooks.models.auth_event import CanonicalAction
from authhooks.services.translations import Translator

TranslateFn = Callable[[str, str], Translator]


@dataclass(frozen=True)
class EmailTemplate:
    """Static description of one auth email."""
    namespace: str
    has_link: bool = False
    has_otp: bool = False
    warning: bool = False


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


# ---------------------------------------------------------------------------
# Template registry
# ---------------------------------------------------------------------------

TEMPLATES: dict[CanonicalAction, EmailTemplate] = {
    CanonicalAction.CONFIRMATION: EmailTemplate("confirmation", has_link=True, has_otp=True),
    CanonicalAction.INVITE: EmailTemplate("invite", has_link=True, has_otp=True),
    CanonicalAction.MAGICLINK: EmailTemplate("magiclink", has_link=True, has_otp=True),
    CanonicalAction.RECOVERY: EmailTemplate("recovery", has_link=True, has_otp=True),
    CanonicalAction.EMAIL_CHANGE: EmailTemplate("email_change", has_link=True, has_otp=True),
    CanonicalAction.REAUTHENTICATION: EmailTemplate("reauthentication", has_otp=True),
    CanonicalAction.EMAIL: EmailTemplate("email", has_otp=True),
    CanonicalAction.PASSWORD_CHANGED_NOTIFICATION: EmailTemplate(
        "password_changed_notification", warning=True
    ),
    CanonicalAction.EMAIL_CHANGED_NOTIFICATION: EmailTemplate(
        "email_changed_notification", warning=True
    ),
    CanonicalAction.PHONE_CHANGED_NOTIFICATION: EmailTemplate(
        "phone_changed_notification", warning=True
    ),
    CanonicalAction.IDENTITY_LINKED_NOTIFICATION: EmailTemplate(
        "identity_linked_notification", warning=True
    ),
    CanonicalAction.IDENTITY_UNLINKED_NOTIFICATION: EmailTemplate(
        "identity_unlinked_notification", warning=True
    ),
    CanonicalAction.MFA_FACTOR_ENROLLED_NOTIFICATION: EmailTemplate(
        "mfa_factor_enrolled_notification", warning=True
    ),
    CanonicalAction.MFA_FACTOR_UNENROLLED_NOTIFICATION: EmailTemplate(
        "mfa_factor_unenrolled_notification", warning=True
    ),
}

# Second email_change message, sent to the old address.  Its copy names the
# new address, so it must go out after the new-address confirmation.
EMAIL_CHANGE_OLD_ADDRESS = EmailTemplate(
    "email_change_old", has_link=True, has_otp=True, warning=True
)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

_BODY_STYLE = (
    "background-color:#f5f5f5;margin:0;padding:0;line-height:1.6;"
    "font-family:-apple-system,BlinkMacSystemFont,'Hiragino Sans',Meiryo,"
    "'Segoe UI',Roboto,'Helvetica Neue',Arial,sans-serif"
)
_CONTAINER_STYLE = "max-width:600px;margin:0 auto;background-color:#ffffff"
_CONTENT_STYLE = "padding:40px 30px"
_TEXT_STYLE = "color:#333333;font-size:16px;margin:0 0 20px 0"
_WARNING_STYLE = (
    "background-color:#fef2f2;border-left:4px solid #dc2626;"
    "color:#991b1b;font-size:14px;padding:12px 16px;margin:0 0 20px 0"
)
_BUTTON_STYLE = (
    "display:inline-block;background-color:#7c3aed;color:#ffffff;"
    "padding:12px 24px;border-radius:6px;text-decoration:none;font-weight:bold"
)
_OTP_STYLE = "font-size:28px;letter-spacing:6px;font-weight:bold;color:#111827"
_MUTED_STYLE = "color:#6b7280;font-size:14px;margin:0"


def get_app_name() -> str:
    return os.getenv("APP_NAME", "").strip() or "Bingify"


def _p(text: str, style: str = _TEXT_STYLE) -> str:
    return f'<p style="{style}">{html.escape(text)}</p>'


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def render_email(
    template: EmailTemplate,
    locale: str,
    translate: TranslateFn,
    *,
    confirmation_url: Optional[str] = None,
    otp: Optional[str] = None,
    params: Optional[dict[str, str]] = None,
) -> RenderedEmail:
    """
    Render one auth email.

    Args:
        template: Which email to render.
        locale: Target locale (unknown locales fall back inside translate).
        translate: translate(namespace, locale) -> t(key, params).
        confirmation_url: Verification link; omitted when the template has
            no link or the URL is empty.
        otp: One-time code; omitted when the template shows none or empty.
        params: Extra placeholders (new_email, provider, factor_type, ...).

    Returns:
        RenderedEmail with subject, HTML body and plain-text body.
    """
    t = translate(template.namespace, locale)
    values = {"app_name": get_app_name(), **(params or {})}

    subject = t("subject", values)
    heading = t("heading", values)
    intro = t("intro", values)

    html_parts = [
        f'<h1 style="font-size:22px;color:#111827;margin:0 0 24px 0">{html.escape(heading)}</h1>',
        _p(t("greeting", values)),
        _p(intro),
    ]
    text_parts = [heading, "", t("greeting", values), intro]

    if template.warning:
        warning = t("warning", values) if template.namespace == "email_change_old" else t("secure_account", values)
        html_parts.append(_p(warning, _WARNING_STYLE))
        text_parts += ["", warning]

    if template.has_link and confirmation_url:
        button = t("button", values)
        html_parts.append(
            f'<p style="margin:0 0 24px 0"><a href="{html.escape(confirmation_url, quote=True)}" '
            f'style="{_BUTTON_STYLE}">{html.escape(button)}</a></p>'
        )
        text_parts += ["", f"{button}: {confirmation_url}"]

    if template.has_otp and otp:
        label = t("otp_label", values) if template.has_link else ""
        if label:
            html_parts.append(_p(label))
            text_parts += ["", label]
        html_parts.append(f'<p style="{_OTP_STYLE}">{html.escape(otp)}</p>')
        text_parts += ["", otp]

    if template.has_link or template.has_otp:
        ignore = t("ignore", values)
        html_parts.append(_p(ignore, _MUTED_STYLE))
        text_parts += ["", ignore]

    footer = t("footer", values)
    html_lang = "ja" if locale == "ja" else "en"
    body = (
        f'<!DOCTYPE html><html lang="{html_lang}"><head><meta charset="utf-8">'
        f"<title>{html.escape(subject)}</title></head>"
        f'<body style="{_BODY_STYLE}"><div style="{_CONTAINER_STYLE}">'
        f'<div style="{_CONTENT_STYLE}">{"".join(html_parts)}</div>'
        f'<div style="padding:20px 30px">{_p(footer, _MUTED_STYLE)}</div>'
        "</div></body></html>"
    )
    text_parts += ["", "--", footer]

    return RenderedEmail(subject=subject, html=body, text="\n".join(text_parts))
