"""
Template dispatcher for normalized auth events.

Selects the template for (action, locale), renders it, and hands one
message per recipient to the send capability.

Recipient fan-out:
  - Default: one message to recipient_email.
  - email_change with an old address AND a non-empty old-address OTP
    (Supabase "Secure email change" on): two messages, new address first,
    old address second.  The old-address copy says "your address will
    change to X", so it must never arrive before the new-address
    confirmation exists.

Sends are awaited one at a time and are independent: a failure on the old
address does not undo the new-address message (an email cannot be
unsent).  Each failure is logged with its recipient and reported in the
returned SendOutcome list.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from authhooks.errors import ActionUnmappable, SendFailure
from authhooks.models.auth_event import CanonicalAction, NormalizedEvent, TokenRole
from authhooks.models.outbound_email import OutboundEmail
from authhooks.services.email_templates import (
    EMAIL_CHANGE_OLD_ADDRESS,
    TEMPLATES,
    EmailTemplate,
    TranslateFn,
    render_email,
)
from authhooks.services.field_remapper import has_old_address_token
from authhooks.services.translations import translate as default_translate
from authhooks.services.verify_url import VERIFY_TYPES, build_verify_url

logger = logging.getLogger(__name__)

SendFn = Callable[[OutboundEmail], Awaitable[None]]
LinkBuilder = Callable[..., str]


class RecipientRole(str, Enum):
    PRIMARY = "primary"
    NEW_ADDRESS = "new_address"
    OLD_ADDRESS = "old_address"


@dataclass(frozen=True)
class SendIntent:
    """One message the dispatcher intends to send."""
    role: RecipientRole
    message: OutboundEmail


@dataclass
class SendOutcome:
    """Result of one send intent."""
    role: RecipientRole
    recipient: str
    sent: bool
    error: Optional[SendFailure] = None


def _render_intent(
    role: RecipientRole,
    recipient: str,
    template: EmailTemplate,
    event: NormalizedEvent,
    translate: TranslateFn,
    link_builder: LinkBuilder,
    *,
    otp: Optional[str],
    token_hash: Optional[str],
) -> SendIntent:
    confirmation_url = None
    verify_type = VERIFY_TYPES.get(event.action)
    if template.has_link and verify_type and (token_hash or otp):
        confirmation_url = link_builder(
            verify_type=verify_type,
            token_hash=token_hash,
            token=otp,
            redirect_to=event.redirect_to,
            base_url=event.site_url_override,
        )

    params = dict(event.details)
    if event.action is CanonicalAction.EMAIL_CHANGE:
        params["new_email"] = event.recipient_email

    rendered = render_email(
        template,
        event.locale,
        translate,
        confirmation_url=confirmation_url,
        otp=otp,
        params=params,
    )
    return SendIntent(
        role=role,
        message=OutboundEmail(
            recipient=recipient,
            subject=rendered.subject,
            rendered_body=rendered.html,
            text_body=rendered.text,
        ),
    )


def build_send_intents(
    event: NormalizedEvent,
    *,
    translate: TranslateFn = default_translate,
    link_builder: LinkBuilder = build_verify_url,
) -> list[SendIntent]:
    """
    Compute the ordered list of messages for an event.

    Raises:
        ActionUnmappable: no template exists for event.action.
    """
    template = TEMPLATES.get(event.action)
    if template is None:
        raise ActionUnmappable(f"No email template for action {event.action.value!r}")

    tokens = event.tokens

    if event.action is not CanonicalAction.EMAIL_CHANGE:
        return [
            _render_intent(
                RecipientRole.PRIMARY,
                event.recipient_email,
                template,
                event,
                translate,
                link_builder,
                otp=tokens.get(TokenRole.OTP),
                token_hash=tokens.get(TokenRole.TOKEN_HASH),
            )
        ]

    intents = [
        _render_intent(
            RecipientRole.NEW_ADDRESS,
            event.recipient_email,
            template,
            event,
            translate,
            link_builder,
            otp=tokens.get(TokenRole.OTP),
            token_hash=tokens.get(TokenRole.TOKEN_HASH),
        )
    ]

    if event.old_recipient_email and has_old_address_token(tokens):
        intents.append(
            _render_intent(
                RecipientRole.OLD_ADDRESS,
                event.old_recipient_email,
                EMAIL_CHANGE_OLD_ADDRESS,
                event,
                translate,
                link_builder,
                otp=tokens.get(TokenRole.OLD_OTP),
                token_hash=tokens.get(TokenRole.OLD_TOKEN_HASH),
            )
        )
    elif event.old_recipient_email:
        logger.info(
            "email_change for %s has no old-address token; skipping old-address email",
            event.recipient_email,
        )

    return intents


async def dispatch_auth_event(
    event: NormalizedEvent,
    send: SendFn,
    *,
    translate: TranslateFn = default_translate,
    link_builder: LinkBuilder = build_verify_url,
) -> list[SendOutcome]:
    """
    Render and send every message for a normalized event, in order.

    Args:
        event: The normalized auth event.
        send: Async send capability; raising means the send failed.
        translate: translate(namespace, locale) capability.
        link_builder: Builds verification links (see build_verify_url).

    Returns:
        One SendOutcome per intent, in send order.

    Raises:
        ActionUnmappable: no template exists for event.action (nothing sent).
    """
    intents = build_send_intents(event, translate=translate, link_builder=link_builder)

    outcomes: list[SendOutcome] = []
    for intent in intents:
        recipient = intent.message.recipient
        try:
            await send(intent.message)
        except Exception as exc:
            failure = SendFailure(recipient, exc)
            logger.error(
                f"Failed to send {event.action.value} email ({intent.role.value}) "
                f"to {recipient}: {exc}"
            )
            outcomes.append(SendOutcome(intent.role, recipient, sent=False, error=failure))
            continue
        outcomes.append(SendOutcome(intent.role, recipient, sent=True))

    return outcomes
