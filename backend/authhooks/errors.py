"""
Error types raised inside the auth hook pipeline.

Normalization errors (SchemaInvalid, ActionUnmappable) are always caught by
the webhook handler and turned into a logged, successful response so the
identity provider never retries a payload it cannot fix.
"""


class SchemaInvalid(ValueError):
    """Payload matches neither known shape, or carries an unknown action type."""


class ActionUnmappable(ValueError):
    """Payload is structurally valid but cannot be turned into an email."""


class SendFailure(Exception):
    """The mail transport rejected a single message."""

    def __init__(self, recipient: str, cause: Exception):
        super().__init__(f"Failed to send email to {recipient}: {cause}")
        self.recipient = recipient
        self.cause = cause


class MailConfigurationError(ValueError):
    """SMTP settings required by the default transport are missing."""


class WebhookSignatureError(ValueError):
    """Webhook headers are missing, stale, or do not match the secret."""
