from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


@dataclass
class OtpRecordDto:
    id: str
    destination: str
    channel: str
    code_hash: str
    is_used: bool
    consumed_at: Optional[datetime]
    attempts: int
    expires_at: datetime
    created_at: datetime


class OTPStore(Protocol):
    def put(self, destination: str, channel: str, code_hash: str, expires_at: datetime) -> OtpRecordDto:
        """Invalidate every live code for ``destination`` and insert the new one, atomically."""
        ...

    def find_latest_unused(self, destination: str) -> Optional[OtpRecordDto]:
        ...

    def find_invalidated_by_hash(self, destination: str, code_hash: str) -> Optional[OtpRecordDto]:
        ...

    def mark_used(self, record_id: str) -> bool:
        """Flip ``is_used``; True only for the call that actually flipped it."""
        ...

    def register_failed_attempt(self, record_id: str) -> int:
        ...

    def purge_expired(self, before: datetime) -> int:
        ...
