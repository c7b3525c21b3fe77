import logging

import resend
from resend.exceptions import (
    InvalidApiKeyError,
    MissingApiKeyError,
    ResendError,
    ValidationError as ResendValidationError,
)

from ...application.ports.delivery_gateway import DeliveryGateway, OutboundMessage
from ...application.services.destinations import EMAIL_PATTERN
from ...exceptions import (
    InvalidDestination,
    ProviderConfigError,
    ProviderUnavailable,
    UnverifiedDestination,
)

logger = logging.getLogger(__name__)

# Resend answers sandbox sends to foreign addresses with a validation error
_SANDBOX_HINTS = ("testing emails", "verify a domain")


def map_resend_error(exc: ResendError) -> Exception:
    message = str(getattr(exc, "message", "") or exc)
    if isinstance(exc, (MissingApiKeyError, InvalidApiKeyError)):
        return ProviderConfigError(f"Resend rejected our API key: {message}")
    if isinstance(exc, ResendValidationError):
        if any(hint in message.lower() for hint in _SANDBOX_HINTS):
            return UnverifiedDestination(
                "This email address must be verified before it can receive codes from a test account"
            )
        return InvalidDestination("Please enter a valid email address")
    return ProviderUnavailable()


class ResendEmailGateway(DeliveryGateway):
    def __init__(self, api_key: str, from_address: str):
        self.api_key = api_key
        self.from_address = from_address

    def send(self, destination: str, message: OutboundMessage) -> str:
        if not EMAIL_PATTERN.match(destination or ""):
            raise InvalidDestination("Please enter a valid email address")
        if not self.api_key or not self.from_address:
            logger.error("No email service configured - RESEND_API_KEY or EMAIL_FROM_ADDRESS missing")
            raise ProviderConfigError("Email service not configured")

        resend.api_key = self.api_key
        params = {
            "from": self.from_address,
            "to": [destination],
            "subject": message.subject or "Your verification code",
            "html": message.html or f"<p>{message.body}</p>",
            "text": message.body,
        }
        try:
            response = resend.Emails.send(params)
        except ResendError as e:
            logger.error(f"Resend error: {e}")
            raise map_resend_error(e) from e
        except OSError as e:
            logger.error(f"Resend transport error: {e}")
            raise ProviderUnavailable() from e

        message_id = response.get("id", "") if isinstance(response, dict) else getattr(response, "id", "")
        logger.info(f"Email sent successfully via Resend: {message_id}")
        return message_id
