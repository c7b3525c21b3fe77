# servxpert/db/models/users/user.py
from typing import Optional, List
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime
import uuid

from ....utils import utcnow
from ...types import UTCDateTime

class User(SQLModel, table=True):
    __tablename__ = "users"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: Optional[str] = Field(max_length=100, default=None)
    # Login identifiers: only ever a destination proven by a verified code
    phone: Optional[str] = Field(max_length=20, default=None, unique=True, index=True)
    email: Optional[str] = Field(max_length=254, default=None, unique=True, index=True)
    # Secondary contact from profile completion; never used to sign in
    contact_phone: Optional[str] = Field(max_length=20, default=None)
    contact_email: Optional[str] = Field(max_length=254, default=None)
    # None until the profile is completed; such users are not routable yet
    role: Optional[str] = Field(max_length=20, default=None)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    # Relationships
    sessions: List["UserSession"] = Relationship(back_populates="user")


class WorkerProfile(SQLModel, table=True):
    __tablename__ = "worker_profiles"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="users.id", unique=True, index=True)
    specializations: str = Field(default="")
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
