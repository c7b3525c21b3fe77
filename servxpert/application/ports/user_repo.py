from typing import Protocol, Optional
from datetime import datetime

class UserDto:
    def __init__(self, id: str, name: Optional[str], phone: Optional[str], email: Optional[str],
                 role: Optional[str], is_active: bool, created_at: datetime, updated_at: datetime,
                 contact_phone: Optional[str] = None, contact_email: Optional[str] = None):
        self.id = id
        self.name = name
        # Verified login identifiers
        self.phone = phone
        self.email = email
        # Unverified secondary contact
        self.contact_phone = contact_phone
        self.contact_email = contact_email
        self.role = role
        self.is_active = is_active
        self.created_at = created_at
        self.updated_at = updated_at

    @property
    def is_provisioned(self) -> bool:
        return self.role is not None

class UserRepository(Protocol):
    def get_by_destination(self, destination: str) -> Optional[UserDto]:
        """Match a verified destination against login identifiers only."""
        ...

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        ...

    def create_shell(self, destination: str) -> UserDto:
        ...

    def complete_profile(self, user_id: str, name: str, role: str,
                         contact_phone: Optional[str], contact_email: Optional[str]) -> UserDto:
        ...

    def set_role(self, user_id: str, role: str) -> UserDto:
        ...

    def ensure_worker_profile(self, user_id: str) -> None:
        ...
