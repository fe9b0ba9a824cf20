"""
Site URL normalization.

The hook payload carries a redirect_to / site_url chosen by the client.  Only
its origin is used as the base of links in emails, so an arbitrary path or
query string can never leak into the template.  Anything that does not
parse as an absolute URL is returned unchanged; final link validation
happens downstream.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_site_url(raw: str) -> str:
    """
    Reduce a URL to its origin (scheme + host + port).

    Examples:
        "http://localhost:3000/a/b?x=1"   -> "http://localhost:3000"
        "HTTPS://Example.com:443/path"    -> "https://example.com"
        "not a url"                       -> "not a url"
        ""                                -> ""
    """
    if not raw or not isinstance(raw, str):
        return raw

    try:
        parsed = urlparse(raw.strip())
        scheme = parsed.scheme.lower()
        host = parsed.hostname
        port = parsed.port
    except ValueError:
        logger.debug("normalize_site_url: could not parse %r", raw)
        return raw

    if not scheme or not host:
        return raw

    if ":" in host:
        # IPv6 literal
        host = f"[{host}]"

    if port is None or _DEFAULT_PORTS.get(scheme) == port:
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def select_site_url(
    redirect_to: Optional[str],
    site_url: Optional[str],
) -> Optional[str]:
    """
    Pick the URL to derive the email link base from and normalize it.

    redirect_to wins over site_url.  Returns None when neither is set.
    """
    raw = (redirect_to or "").strip() or (site_url or "").strip()
    if not raw:
        return None
    return normalize_site_url(raw)
