from dataclasses import dataclass
from typing import Optional, Protocol


class AuthError(Exception):
    """A failed call as the client sees it: the server's error kind and user-facing message."""

    def __init__(self, kind: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code


@dataclass
class SentCode:
    message: str
    expires_in: int


@dataclass
class VerifiedCode:
    user_id: str
    is_new_user: bool
    session: str
    session_type: str
    profile_complete: bool
    role: Optional[str]
    redirect_to: Optional[str]


@dataclass
class CompletedProfile:
    user_id: str
    session: str
    role: str
    redirect_to: Optional[str]


class AuthBackend(Protocol):
    def send_code(self, destination: str, method: str) -> SentCode:
        ...

    def verify_code(self, destination: str, code: str) -> VerifiedCode:
        ...

    def complete_profile(self, signup_token: str, name: str, role: str, contact: Optional[str]) -> CompletedProfile:
        ...
