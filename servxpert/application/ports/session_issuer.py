from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Protocol

ACCESS = "access"
SIGNUP = "signup"


@dataclass
class IssuedToken:
    token: str
    token_type: str
    expires_at: datetime


class SessionIssuer(Protocol):
    def issue_access(self, user_id: str, role: str) -> IssuedToken:
        ...

    def issue_signup(self, user_id: str) -> IssuedToken:
        ...

    def decode(self, token: str, expected_type: str) -> Dict[str, Any]:
        """Return the claims or raise ``NotAuthenticated``."""
        ...
