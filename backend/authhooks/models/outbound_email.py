"""
Provider-agnostic outbound email model.

The template dispatcher produces these; the mail transport consumes them.
Only the transport knows about SMTP (or any other delivery mechanism).
"""

from typing import Optional
from pydantic import BaseModel


class OutboundEmail(BaseModel):
    """A single rendered message addressed to one recipient."""

    recipient: str
    subject: str
    rendered_body: str           # HTML
    text_body: Optional[str] = None
