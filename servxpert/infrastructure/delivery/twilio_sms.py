import logging
from typing import Optional

from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ...application.ports.delivery_gateway import DeliveryGateway, OutboundMessage
from ...application.services.destinations import E164_PATTERN
from ...exceptions import (
    InvalidDestination,
    ProviderConfigError,
    ProviderUnavailable,
    UndeliverableDestination,
    UnverifiedDestination,
)

logger = logging.getLogger(__name__)

# Twilio REST error codes, https://www.twilio.com/docs/api/errors
UNVERIFIED_NUMBER = 21608
INVALID_TO_NUMBER = 21211
NOT_SMS_CAPABLE = 21614
AUTHENTICATION_FAILED = 20003
RESOURCE_NOT_FOUND = 20404


def map_twilio_error(exc: TwilioRestException) -> Exception:
    message = str(getattr(exc, "msg", "") or exc)
    if exc.code == UNVERIFIED_NUMBER or "unverified" in message.lower():
        return UnverifiedDestination(
            "This phone number needs to be verified before it can receive SMS on a trial account"
        )
    if exc.code == INVALID_TO_NUMBER:
        return InvalidDestination("Invalid phone number format")
    if exc.code == NOT_SMS_CAPABLE:
        return UndeliverableDestination("This phone number cannot receive SMS")
    if exc.code in (AUTHENTICATION_FAILED, RESOURCE_NOT_FOUND) or exc.status == 401:
        return ProviderConfigError(f"Twilio rejected our credentials: {message}")
    return ProviderUnavailable()


class TwilioSmsGateway(DeliveryGateway):
    """Sends SMS through the Twilio Messages API.

    Credentials are checked when a message is sent, not at construction, so the
    app starts without them and reports ``ProviderConfigError`` per request.
    The REST client is built once and reused.
    """

    def __init__(self, account_sid: str, auth_token: str, from_number: str, client: Optional[Client] = None):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            if not (self.account_sid and self.auth_token and self.from_number):
                logger.error("Missing Twilio credentials")
                raise ProviderConfigError("SMS service not configured. Please add Twilio credentials.")
            # No retries here; retry policy belongs to the caller
            self._client = Client(
                self.account_sid,
                self.auth_token,
                http_client=TwilioHttpClient(timeout=15),
            )
        return self._client

    def send(self, destination: str, message: OutboundMessage) -> str:
        if not E164_PATTERN.match(destination or ""):
            raise InvalidDestination("Invalid phone number format. Use E.164 format (e.g., +919876543210)")
        if not self.from_number:
            raise ProviderConfigError("TWILIO_PHONE_NUMBER is not configured")

        client = self.client
        try:
            sent = client.messages.create(to=destination, from_=self.from_number, body=message.body)
        except TwilioRestException as e:
            logger.error(f"Twilio error {e.code} (HTTP {e.status}): {e.msg}")
            raise map_twilio_error(e) from e
        except (TwilioException, OSError) as e:
            logger.error(f"Twilio transport error: {e}")
            raise ProviderUnavailable() from e

        logger.info(f"SMS sent successfully, SID: {sent.sid}")
        return sent.sid
