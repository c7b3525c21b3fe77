# servxpert/db/models/auth/otp.py
from sqlmodel import SQLModel, Field
from sqlalchemy import Index, text
from datetime import datetime
from typing import Optional
import uuid

from ....utils import utcnow
from ...types import UTCDateTime

class OTPCode(SQLModel, table=True):
    __tablename__ = "otp_codes"
    __table_args__ = (
        # At most one live (unused) code per destination
        Index(
            "uq_otp_codes_live_destination",
            "destination",
            unique=True,
            postgresql_where=text("NOT is_used"),
            sqlite_where=text("NOT is_used"),
        ),
        Index("idx_otp_codes_destination_created", "destination", "created_at"),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    destination: str = Field(max_length=254)
    channel: str = Field(max_length=10)
    code_hash: str = Field(max_length=64)
    is_used: bool = Field(default=False)
    consumed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    attempts: int = Field(default=0)
    expires_at: datetime = Field(index=True, sa_type=UTCDateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
