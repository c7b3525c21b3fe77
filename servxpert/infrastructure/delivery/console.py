import logging
import uuid

from ...application.ports.delivery_gateway import DeliveryGateway, OutboundMessage

logger = logging.getLogger(__name__)


class ConsoleGateway(DeliveryGateway):
    """Development stand-in: writes the message to the log instead of sending it."""

    def __init__(self, channel: str):
        self.channel = channel

    def send(self, destination: str, message: OutboundMessage) -> str:
        message_id = f"console-{uuid.uuid4()}"
        logger.warning(f"[{self.channel} to {destination}] {message.body}")
        return message_id
