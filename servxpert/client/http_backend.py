import logging
from typing import Any, Dict, Optional

import httpx

from .backend import AuthBackend, AuthError, CompletedProfile, SentCode, VerifiedCode

logger = logging.getLogger(__name__)


class HttpAuthBackend(AuthBackend):
    """Talks to the /auth endpoints over HTTP.

    Pass an ``httpx.Client`` with ``base_url`` set; FastAPI's ``TestClient``
    works too since it is an ``httpx.Client``.
    """

    def __init__(self, client: httpx.Client):
        self.client = client

    def _post(self, path: str, payload: Dict[str, Any], token: Optional[str] = None) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        try:
            response = self.client.post(path, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Auth request to {path} failed: {e}")
            raise AuthError("NetworkError", "Could not reach the server. Please try again.") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_success:
            return body
        raise AuthError(
            body.get("kind") or "ServiceError",
            body.get("error") or "Something went wrong. Please try again.",
            response.status_code,
        )

    def send_code(self, destination: str, method: str) -> SentCode:
        body = self._post("/auth/otp/send", {"destination": destination, "method": method})
        return SentCode(message=body.get("message", ""), expires_in=int(body["expiresIn"]))

    def verify_code(self, destination: str, code: str) -> VerifiedCode:
        body = self._post("/auth/otp/verify", {"destination": destination, "code": code})
        return VerifiedCode(
            user_id=body["userId"],
            is_new_user=bool(body["isNewUser"]),
            session=body["session"],
            session_type=body["sessionType"],
            profile_complete=bool(body["profileComplete"]),
            role=body.get("role"),
            redirect_to=body.get("redirectTo"),
        )

    def complete_profile(self, signup_token: str, name: str, role: str, contact: Optional[str]) -> CompletedProfile:
        body = self._post(
            "/auth/profile/complete",
            {"name": name, "role": role, "contact": contact},
            token=signup_token,
        )
        return CompletedProfile(
            user_id=body["userId"],
            session=body["session"],
            role=body["role"],
            redirect_to=body.get("redirectTo"),
        )
