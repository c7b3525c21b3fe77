# servxpert/routers/auth_router.py
from fastapi import APIRouter, Depends, Request
import logging
import uuid
from typing import Dict

from ..application.ports.audit_logger import (
    LOGOUT,
    OTP_ISSUE_FAILED,
    OTP_ISSUED,
    OTP_VERIFIED,
    OTP_VERIFY_FAILED,
    PROFILE_COMPLETED,
    ROLE_ASSIGNED,
    AuditLogger,
)
from ..application.ports.user_repo import UserDto
from ..application.services.identity_service import IdentityService, dashboard_path
from ..application.services.issuance_service import IssuanceService
from ..application.services.verification_service import VerificationService
from ..dependencies import (
    get_audit_logger,
    get_bearer_token,
    get_current_user,
    get_identity_service,
    get_issuance_service,
    get_verification_service,
)
from ..exceptions import ServiceError
from ..schemas import (
    AssignRoleRequest,
    CompleteProfileRequest,
    ErrorResponse,
    MessageResponse,
    SendOTPRequest,
    SendOTPResponse,
    SessionResponse,
    UserResponse,
    VerifyOTPRequest,
    VerifyOTPResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_client_info(request: Request) -> Dict[str, str]:
    """Extract client information for auditing"""
    return {
        'ip_address': request.client.host if request.client else None,
        'user_agent': request.headers.get('user-agent'),
    }


def _user_response(user: UserDto) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        phone=user.phone,
        email=user.email,
        contactPhone=user.contact_phone,
        contactEmail=user.contact_email,
        role=user.role,
        profileComplete=user.is_provisioned,
        redirectTo=dashboard_path(user.role),
    )


@router.post("/otp/send", response_model=SendOTPResponse, responses=ERROR_RESPONSES)
def send_otp(
    payload: SendOTPRequest,
    request: Request,
    issuance: IssuanceService = Depends(get_issuance_service),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """
    Issue a fresh code to a phone number or email address. Any code sent
    earlier to the same destination stops working.
    """
    request_id = str(uuid.uuid4())
    client_info = get_client_info(request)
    try:
        result = issuance.issue(payload.destination, payload.method)
    except ServiceError as e:
        audit.log(OTP_ISSUE_FAILED, payload.destination, request_id=request_id,
                  ip_address=client_info['ip_address'], success=False, details={'error': e.kind})
        raise

    audit.log(OTP_ISSUED, result.destination, request_id=request_id,
              ip_address=client_info['ip_address'], details={'method': result.method.value})
    return SendOTPResponse(
        message="OTP sent successfully",
        expiresIn=result.expires_in_seconds,
    )


@router.post("/otp/verify", response_model=VerifyOTPResponse, responses=ERROR_RESPONSES)
def verify_otp(
    payload: VerifyOTPRequest,
    request: Request,
    verification: VerificationService = Depends(get_verification_service),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """
    Check a code. Returning users get an access session; new users get a
    signup token to finish their profile with.
    """
    request_id = str(uuid.uuid4())
    client_info = get_client_info(request)
    try:
        resolution = verification.verify(payload.destination, payload.code)
    except ServiceError as e:
        audit.log(OTP_VERIFY_FAILED, payload.destination, request_id=request_id,
                  ip_address=client_info['ip_address'], success=False, details={'error': e.kind})
        raise

    audit.log(OTP_VERIFIED, payload.destination, resolution.identity_id, request_id,
              client_info['ip_address'], True, {'is_new_user': resolution.is_new_user})
    return VerifyOTPResponse(
        userId=resolution.identity_id,
        isNewUser=resolution.is_new_user,
        session=resolution.session,
        sessionType=resolution.session_type,
        profileComplete=resolution.profile_complete,
        role=resolution.role,
        redirectTo=dashboard_path(resolution.role),
    )


@router.post("/profile/complete", response_model=SessionResponse, responses=ERROR_RESPONSES)
def complete_profile(
    payload: CompleteProfileRequest,
    token: str = Depends(get_bearer_token),
    identities: IdentityService = Depends(get_identity_service),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """
    Finish signup with the signup token from verification: sets name and role
    and returns a full session.
    """
    resolution = identities.complete_profile(token, payload.name, payload.role, payload.contact)
    audit.log(PROFILE_COMPLETED, resolution.identity_id, resolution.identity_id,
              details={'role': resolution.role})
    return SessionResponse(
        userId=resolution.identity_id,
        session=resolution.session,
        role=resolution.role,
        redirectTo=dashboard_path(resolution.role),
    )


@router.get("/me", response_model=UserResponse, responses=ERROR_RESPONSES)
def get_me(current_user: UserDto = Depends(get_current_user)):
    return _user_response(current_user)


@router.post("/logout", response_model=MessageResponse, responses=ERROR_RESPONSES)
def logout(
    token: str = Depends(get_bearer_token),
    current_user: UserDto = Depends(get_current_user),
    identities: IdentityService = Depends(get_identity_service),
    audit: AuditLogger = Depends(get_audit_logger),
):
    identities.logout(token)
    audit.log(LOGOUT, current_user.id, current_user.id)
    return MessageResponse(message="Logout successful")


@router.put("/admin/users/{user_id}/role", response_model=UserResponse, responses=ERROR_RESPONSES)
def assign_role(
    user_id: str,
    payload: AssignRoleRequest,
    current_user: UserDto = Depends(get_current_user),
    identities: IdentityService = Depends(get_identity_service),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Admin-only: switch another user's role."""
    updated = identities.assign_role(current_user, user_id, payload.role)
    audit.log(ROLE_ASSIGNED, updated.id, current_user.id, details={'role': updated.role})
    return _user_response(updated)
