"""
String catalog for auth emails.

translate(namespace, locale) returns a lookup function
``t(key, params=None) -> str``.  Lookups fall back to the default locale,
then to the "common" namespace, and finally to the key itself, so a missing
string degrades the email instead of failing the send.

Placeholders use str.format syntax: {app_name}, {new_email}, {provider}, ...
"""

import logging
from typing import Callable, Optional

from authhooks.services.locale import DEFAULT_LOCALE, resolve_locale

logger = logging.getLogger(__name__)

Translator = Callable[..., str]

CATALOG: dict[str, dict[str, dict[str, str]]] = {
    "en": {
        "common": {
            "greeting": "Hello,",
            "otp_label": "Or enter this code:",
            "ignore": "If you didn't request this, you can safely ignore this email.",
            "footer": "© {app_name}. All rights reserved.",
            "secure_account": "If this wasn't you, please secure your account immediately.",
        },
        "confirmation": {
            "subject": "Confirm Your Email",
            "heading": "Welcome to {app_name}",
            "intro": "Thanks for signing up! Please confirm your email address to get started.",
            "button": "Confirm Email",
        },
        "invite": {
            "subject": "You're Invited to {app_name}",
            "heading": "You've been invited",
            "intro": "You have been invited to join {app_name}. Accept the invitation to create your account.",
            "button": "Accept Invitation",
        },
        "magiclink": {
            "subject": "Sign In to {app_name}",
            "heading": "Your sign-in link",
            "intro": "Click the button below to sign in. This link can only be used once.",
            "button": "Sign In",
        },
        "recovery": {
            "subject": "Reset Your Password",
            "heading": "Password reset request",
            "intro": "We received a request to reset your password. Click the button below to choose a new one.",
            "button": "Reset Password",
        },
        "email_change": {
            "subject": "Confirm Your Email Change",
            "heading": "Email change request",
            "intro": "We noticed a request to change the email address associated with your {app_name} account to this address.",
            "button": "Confirm Email Change",
        },
        "email_change_old": {
            "subject": "Confirm Your Email Change",
            "heading": "Email change request",
            "intro": "We noticed a request to change the email address associated with your {app_name} account to {new_email}.",
            "warning": "If you didn't request this, your account email will change to {new_email}. Do not confirm, and secure your account immediately.",
            "button": "Confirm Email Change",
        },
        "reauthentication": {
            "subject": "Verify Your Identity",
            "heading": "Confirm it's you",
            "intro": "Enter the following code to confirm this sensitive action.",
        },
        "email": {
            "subject": "Your Verification Code",
            "heading": "Your verification code",
            "intro": "Use the following code to continue.",
        },
        "password_changed_notification": {
            "subject": "Your Password Has Been Changed",
            "heading": "Password changed",
            "intro": "The password for your {app_name} account was just changed.",
        },
        "email_changed_notification": {
            "subject": "Email Address Changed",
            "heading": "Email address changed",
            "intro": "The email address for your {app_name} account was changed to {new_email}.",
        },
        "phone_changed_notification": {
            "subject": "Phone Number Changed",
            "heading": "Phone number changed",
            "intro": "The phone number for your {app_name} account was changed from {old_phone} to {phone}.",
        },
        "identity_linked_notification": {
            "subject": "External Provider Linked",
            "heading": "New sign-in method",
            "intro": "{provider} was linked to your {app_name} account.",
        },
        "identity_unlinked_notification": {
            "subject": "External Provider Unlinked",
            "heading": "Sign-in method removed",
            "intro": "{provider} was unlinked from your {app_name} account.",
        },
        "mfa_factor_enrolled_notification": {
            "subject": "Multi-Factor Authentication Enabled",
            "heading": "Multi-factor authentication enabled",
            "intro": "A new {factor_type} factor was added to your {app_name} account.",
        },
        "mfa_factor_unenrolled_notification": {
            "subject": "Multi-Factor Authentication Disabled",
            "heading": "Multi-factor authentication disabled",
            "intro": "A {factor_type} factor was removed from your {app_name} account.",
        },
    },
    "ja": {
        "common": {
            "greeting": "こんにちは、",
            "otp_label": "または次のコードを入力してください:",
            "ignore": "このメールに心当たりがない場合は、無視していただいて構いません。",
            "footer": "© {app_name}. All rights reserved.",
            "secure_account": "心当たりがない場合は、すぐにアカウントを保護してください。",
        },
        "confirmation": {
            "subject": "メールアドレスの確認",
            "heading": "{app_name}へようこそ",
            "intro": "ご登録ありがとうございます。メールアドレスを確認してください。",
            "button": "メールアドレスを確認",
        },
        "invite": {
            "subject": "{app_name}へのご招待",
            "heading": "招待が届きました",
            "intro": "{app_name}に招待されました。招待を承諾してアカウントを作成してください。",
            "button": "招待を承諾",
        },
        "magiclink": {
            "subject": "{app_name}にログイン",
            "heading": "ログインリンク",
            "intro": "下のボタンをクリックしてログインしてください。このリンクは一度だけ使用できます。",
            "button": "ログイン",
        },
        "recovery": {
            "subject": "パスワードのリセット",
            "heading": "パスワードリセットのリクエスト",
            "intro": "パスワードリセットのリクエストを受け付けました。下のボタンから新しいパスワードを設定してください。",
            "button": "パスワードをリセット",
        },
        "email_change": {
            "subject": "メールアドレス変更の確認",
            "heading": "メールアドレス変更リクエスト",
            "intro": "{app_name}アカウントのメールアドレスをこのアドレスに変更するリクエストが検出されました。",
            "button": "メールアドレス変更を確認",
        },
        "email_change_old": {
            "subject": "メールアドレス変更の確認",
            "heading": "メールアドレス変更リクエスト",
            "intro": "{app_name}アカウントのメールアドレスを{new_email}に変更するリクエストが検出されました。",
            "warning": "心当たりがない場合、アカウントのメールアドレスが{new_email}に変更されます。確認せず、すぐにアカウントを保護してください。",
            "button": "メールアドレス変更を確認",
        },
        "reauthentication": {
            "subject": "本人確認が必要です",
            "heading": "本人確認",
            "intro": "この操作を続行するには、次のコードを入力してください。",
        },
        "email": {
            "subject": "確認コード",
            "heading": "確認コード",
            "intro": "次のコードを入力して続行してください。",
        },
        "password_changed_notification": {
            "subject": "パスワードが変更されました",
            "heading": "パスワードが変更されました",
            "intro": "{app_name}アカウントのパスワードが変更されました。",
        },
        "email_changed_notification": {
            "subject": "メールアドレスが変更されました",
            "heading": "メールアドレスが変更されました",
            "intro": "{app_name}アカウントのメールアドレスが{new_email}に変更されました。",
        },
        "phone_changed_notification": {
            "subject": "電話番号が変更されました",
            "heading": "電話番号が変更されました",
            "intro": "{app_name}アカウントの電話番号が{old_phone}から{phone}に変更されました。",
        },
        "identity_linked_notification": {
            "subject": "外部プロバイダーがリンクされました",
            "heading": "新しいログイン方法",
            "intro": "{provider}が{app_name}アカウントにリンクされました。",
        },
        "identity_unlinked_notification": {
            "subject": "外部プロバイダーのリンクが解除されました",
            "heading": "ログイン方法が削除されました",
            "intro": "{provider}と{app_name}アカウントのリンクが解除されました。",
        },
        "mfa_factor_enrolled_notification": {
            "subject": "多要素認証が有効になりました",
            "heading": "多要素認証が有効になりました",
            "intro": "{app_name}アカウントに新しい{factor_type}要素が追加されました。",
        },
        "mfa_factor_unenrolled_notification": {
            "subject": "多要素認証が無効になりました",
            "heading": "多要素認証が無効になりました",
            "intro": "{app_name}アカウントから{factor_type}要素が削除されました。",
        },
    },
}


class _SafeParams(dict):
    """format_map helper: unknown placeholders render as empty strings."""

    def __missing__(self, key: str) -> str:
        return ""


def _lookup(locale: str, namespace: str, key: str) -> Optional[str]:
    for loc in (locale, DEFAULT_LOCALE):
        strings = CATALOG.get(loc, {})
        for ns in (namespace, "common"):
            value = strings.get(ns, {}).get(key)
            if value is not None:
                return value
    return None


def translate(namespace: str, locale: str) -> Translator:
    """
    Return a translator bound to one namespace and locale.

    Unknown locales resolve to DEFAULT_LOCALE.
    """
    resolved = resolve_locale(locale)

    def t(key: str, params: Optional[dict] = None) -> str:
        template = _lookup(resolved, namespace, key)
        if template is None:
            logger.warning(
                "Missing translation %s.%s for locale %r", namespace, key, resolved
            )
            return key
        return template.format_map(_SafeParams(params or {}))

    return t
