"""
Locale helpers shared by the auth hook and the OAuth callback.

The set of locales is closed.  Anything unrecognised falls back to
DEFAULT_LOCALE instead of failing the request.
"""

import re
from typing import Any, Optional
from urllib.parse import urlparse

SUPPORTED_LOCALES = ("en", "ja")
DEFAULT_LOCALE = "en"

_LOCALE_PATH_RE = re.compile(rf"^/({'|'.join(SUPPORTED_LOCALES)})(?:/|$)")


def resolve_locale(value: Any) -> str:
    """
    Map a language hint to a supported locale.

    Examples:
        "ja"     -> "ja"
        "ja-JP"  -> "ja"
        "EN_us"  -> "en"
        "fr"     -> "en"
        None     -> "en"
    """
    if not isinstance(value, str) or not value.strip():
        return DEFAULT_LOCALE

    primary = re.split(r"[-_]", value.strip().lower(), maxsplit=1)[0]
    if primary in SUPPORTED_LOCALES:
        return primary
    return DEFAULT_LOCALE


def locale_from_metadata(
    app_metadata: Optional[dict],
    user_metadata: Optional[dict],
) -> str:
    """
    Resolve the locale from a Supabase user's metadata.

    app_metadata.language wins over user_metadata.language, which wins over
    user_metadata.locale.
    """
    for metadata, key in (
        (app_metadata, "language"),
        (user_metadata, "language"),
        (user_metadata, "locale"),
    ):
        if metadata and metadata.get(key):
            return resolve_locale(metadata.get(key))
    return DEFAULT_LOCALE


def get_locale_from_referer(referer: Optional[str]) -> Optional[str]:
    """
    Extract the locale prefix from a Referer URL's path.

    Returns None when the header is missing, unparseable, or the path does
    not start with a supported locale.
    """
    if not referer:
        return None
    try:
        path = urlparse(referer).path
    except ValueError:
        return None

    match = _LOCALE_PATH_RE.match(path or "")
    if not match:
        return None
    return match.group(1)


def build_path(path: str, locale: Optional[str]) -> str:
    """Prefix path with /{locale} when a locale is given."""
    return f"/{locale}{path}" if locale else path
