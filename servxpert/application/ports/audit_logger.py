from typing import Any, Dict, Optional, Protocol

# Actions written by the auth router
OTP_ISSUED = "otp_issued"
OTP_ISSUE_FAILED = "otp_issue_failed"
OTP_VERIFIED = "otp_verified"
OTP_VERIFY_FAILED = "otp_verify_failed"
PROFILE_COMPLETED = "profile_completed"
ROLE_ASSIGNED = "role_assigned"
LOGOUT = "logout"


class AuditLogger(Protocol):
    def log(self, action: str, subject: str, user_id: Optional[str] = None, request_id: Optional[str] = None,
            ip_address: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        """``subject`` is the destination or identity acted on; implementations must not store it in clear."""
        ...
