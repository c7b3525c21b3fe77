import logging
import uuid
from datetime import timedelta
from typing import Any, Dict

import jwt

from ...application.ports.session_issuer import ACCESS, SIGNUP, IssuedToken, SessionIssuer
from ...exceptions import NotAuthenticated
from ...utils import utcnow

logger = logging.getLogger(__name__)

SIGNUP_SCOPE = "complete_profile"


class JwtSessionIssuer(SessionIssuer):
    def __init__(self, secret_key: str, algorithm: str = "HS256", access_minutes: int = 60, signup_minutes: int = 15):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_minutes = access_minutes
        self.signup_minutes = signup_minutes

    def _encode(self, claims: Dict[str, Any], minutes: int, token_type: str) -> IssuedToken:
        issued_at = utcnow()
        expire = issued_at + timedelta(minutes=minutes)
        to_encode = dict(claims)
        # jti keeps two tokens minted in the same second distinct
        to_encode.update({"typ": token_type, "iat": issued_at, "exp": expire, "jti": str(uuid.uuid4())})
        token = jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)
        return IssuedToken(token=token, token_type=token_type, expires_at=expire)

    def issue_access(self, user_id: str, role: str) -> IssuedToken:
        return self._encode({"sub": user_id, "role": role}, self.access_minutes, ACCESS)

    def issue_signup(self, user_id: str) -> IssuedToken:
        """Short-lived token that only authorizes completing the signup profile"""
        return self._encode({"sub": user_id, "scope": SIGNUP_SCOPE}, self.signup_minutes, SIGNUP)

    def decode(self, token: str, expected_type: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Token has expired")
            raise NotAuthenticated("Session has expired. Please sign in again.")
        except jwt.InvalidTokenError as e:
            logger.warning(f"JWT error: {e}")
            raise NotAuthenticated()

        if payload.get("typ") != expected_type or not payload.get("sub"):
            raise NotAuthenticated()
        if expected_type == SIGNUP and payload.get("scope") != SIGNUP_SCOPE:
            raise NotAuthenticated()
        return payload
