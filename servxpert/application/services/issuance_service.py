import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Mapping, Optional, Union

from ..ports.delivery_gateway import DeliveryGateway, OutboundMessage
from ..ports.otp_store import OTPStore
from ..ports.rate_limiter import RateLimiter
from .code_generator import generate_code, hash_code
from .destinations import Destination, Method, parse_destination
from ...exceptions import ProviderConfigError, RateLimited
from ...utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class IssueResult:
    destination: str
    method: Method
    expires_in_seconds: int


def render_message(brand_name: str, code: str, expiry_seconds: int, method: Method) -> OutboundMessage:
    minutes = max(expiry_seconds // 60, 1)
    body = f"Your {brand_name} verification code is: {code}. Valid for {minutes} minutes. Do not share this code."
    if method is Method.PHONE:
        return OutboundMessage(body=body)
    html = (
        f"<p>Your {brand_name} verification code is:</p>"
        f"<p style=\"font-size:24px;font-weight:bold;letter-spacing:4px\">{code}</p>"
        f"<p>This code expires in {minutes} minutes. Do not share it with anyone.</p>"
    )
    return OutboundMessage(body=body, subject=f"Your {brand_name} verification code", html=html)


@dataclass
class IssuanceService:
    otp_store: OTPStore
    gateways: Mapping[str, DeliveryGateway]
    code_secret: str
    brand_name: str = "ServXpert"
    expiry_seconds: int = 300
    rate_limiter: Optional[RateLimiter] = None
    max_issues_per_window: int = 5
    issue_window_seconds: int = 900
    default_country_code: str = "+91"
    allow_international: bool = False
    clock: Callable[[], datetime] = field(default=utcnow)
    code_generator: Callable[[], str] = field(default=generate_code)

    def parse(self, destination: str, method: Optional[Union[Method, str]] = None) -> Destination:
        if isinstance(method, str):
            method = Method(method)
        return parse_destination(destination, method, self.default_country_code, self.allow_international)

    def issue(self, destination: str, method: Optional[Union[Method, str]] = None) -> IssueResult:
        target = self.parse(destination, method)
        channel = target.method.channel
        gateway = self.gateways.get(channel)
        if gateway is None:
            raise ProviderConfigError(f"No delivery gateway configured for channel {channel}")

        if self.rate_limiter is not None and not self.rate_limiter.allow(
            f"otp:issue:{target.value}", self.max_issues_per_window, self.issue_window_seconds
        ):
            raise RateLimited()

        code = self.code_generator()
        expires_at = self.clock() + timedelta(seconds=self.expiry_seconds)
        # Supersedes any earlier live code for this destination
        record = self.otp_store.put(target.value, channel, hash_code(self.code_secret, target.value, code), expires_at)

        message = render_message(self.brand_name, code, self.expiry_seconds, target.method)
        # A failed send leaves the record in place; the next resend supersedes it
        message_id = gateway.send(target.value, message)
        logger.info(f"OTP {record.id} sent over {channel}, provider id {message_id}")

        return IssueResult(destination=target.value, method=target.method, expires_in_seconds=self.expiry_seconds)
