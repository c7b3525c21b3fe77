from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class OutboundMessage:
    body: str
    subject: Optional[str] = None
    html: Optional[str] = None


class DeliveryGateway(Protocol):
    def send(self, destination: str, message: OutboundMessage) -> str:
        """Make exactly one delivery attempt and return the provider message id."""
        ...
