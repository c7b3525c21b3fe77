import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from ..ports.otp_store import OTPStore
from .code_generator import codes_match, hash_code
from .destinations import parse_destination, validate_code
from .identity_service import IdentityService, Resolution
from ...exceptions import (
    CodeAlreadyUsed,
    CodeExpired,
    CodeMismatch,
    NoActiveCode,
    TooManyAttempts,
)
from ...utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class VerificationService:
    otp_store: OTPStore
    identities: IdentityService
    code_secret: str
    max_attempts: int = 5
    default_country_code: str = "+91"
    allow_international: bool = False
    clock: Callable[[], datetime] = field(default=utcnow)

    def verify(self, destination: str, submitted_code: str) -> Resolution:
        target = parse_destination(destination, None, self.default_country_code, self.allow_international)
        code = validate_code(submitted_code)
        submitted_hash = hash_code(self.code_secret, target.value, code)

        record = self.otp_store.find_latest_unused(target.value)
        if record is None:
            self._raise_for_stale_code(target.value, submitted_hash)
            raise NoActiveCode()

        if self.clock() > record.expires_at:
            raise CodeExpired()

        if record.attempts >= self.max_attempts:
            raise TooManyAttempts()

        if not codes_match(record.code_hash, submitted_hash):
            self._raise_for_stale_code(target.value, submitted_hash)
            attempts = self.otp_store.register_failed_attempt(record.id)
            logger.info(f"OTP {record.id} mismatch, attempt {attempts}/{self.max_attempts}")
            raise CodeMismatch()

        # Consume before trusting anything downstream; losing a race means someone else consumed it
        if not self.otp_store.mark_used(record.id):
            raise CodeAlreadyUsed()

        return self.identities.resolve(target.value)

    def _raise_for_stale_code(self, destination: str, submitted_hash: str) -> None:
        stale = self.otp_store.find_invalidated_by_hash(destination, submitted_hash)
        if stale is None:
            return
        if stale.consumed_at is not None:
            raise CodeAlreadyUsed()
        # Superseded by a newer code
        raise NoActiveCode()
