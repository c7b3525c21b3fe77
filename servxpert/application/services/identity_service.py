import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from ..ports.session_issuer import ACCESS, SIGNUP, IssuedToken, SessionIssuer
from ..ports.session_repo import SessionRepository
from ..ports.user_repo import UserDto, UserRepository
from .destinations import normalize_email, normalize_phone, parse_destination
from ...exceptions import (
    IdentityNotFound,
    NotAuthenticated,
    PermissionDenied,
    ProfileAlreadyComplete,
    ReconciliationError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

CUSTOMER = "customer"
WORKER = "worker"
ADMIN = "admin"
ROLES = (CUSTOMER, WORKER, ADMIN)
SELF_SERVICE_ROLES = (CUSTOMER, WORKER)

_DASHBOARDS = {
    ADMIN: "/admin",
    WORKER: "/worker",
    CUSTOMER: "/customer",
}


def dashboard_path(role: Optional[str]) -> Optional[str]:
    """Where a signed-in identity lands. Identities without a role are not routable."""
    if role is None:
        return None
    return _DASHBOARDS.get(role)


@dataclass
class Resolution:
    identity_id: str
    is_new_user: bool
    session: str
    session_type: str
    expires_at: datetime
    role: Optional[str]

    @property
    def profile_complete(self) -> bool:
        return self.role is not None


@dataclass
class IdentityService:
    """Maps verified destinations to identities and hands out sessions.

    Provisioned identities (role set) get an access session that is also
    recorded in the session store so it can be revoked. Identities that still
    need a profile only get a short-lived signup token, good for nothing but
    ``complete_profile``.
    """

    user_repo: UserRepository
    issuer: SessionIssuer
    session_repo: SessionRepository
    admin_destinations: Sequence[str] = ()
    default_country_code: str = "+91"
    allow_international: bool = False

    def __post_init__(self):
        self._admin_set = set()
        for entry in self.admin_destinations:
            try:
                self._admin_set.add(parse_destination(entry, None, self.default_country_code,
                                                      self.allow_international).value)
            except ValidationError:
                logger.warning(f"Ignoring malformed admin destination {entry!r}")

    def resolve(self, destination: str) -> Resolution:
        try:
            user = self.user_repo.get_by_destination(destination)
            is_new_user = False
            if user is None:
                user = self.user_repo.create_shell(destination)
                is_new_user = True
                logger.info(f"Created identity {user.id} pending profile completion")
            return self._resolution_for(user, is_new_user)
        except StorageError as e:
            raise ReconciliationError(f"Could not reconcile identity: {e.message}") from e

    def complete_profile(self, signup_token: str, name: str, role: str, contact: Optional[str] = None) -> Resolution:
        claims = self.issuer.decode(signup_token, SIGNUP)

        name = (name or "").strip()
        if not name:
            raise ValidationError("Please enter your name")
        if len(name) > 100:
            raise ValidationError("Name must be at most 100 characters")
        if role not in SELF_SERVICE_ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(SELF_SERVICE_ROLES)}")

        try:
            user = self.user_repo.get_by_id(claims["sub"])
            if user is None:
                raise IdentityNotFound()
            if user.is_provisioned:
                raise ProfileAlreadyComplete()

            # Unverified, so kept out of the login columns
            contact_phone, contact_email = None, None
            if contact:
                if user.phone is not None:
                    contact_email = normalize_email(contact)
                else:
                    contact_phone = normalize_phone(contact, self.default_country_code, self.allow_international)

            primary = user.phone or user.email
            if primary in self._admin_set:
                role = ADMIN

            user = self.user_repo.complete_profile(user.id, name, role, contact_phone, contact_email)
            if role == WORKER:
                self.user_repo.ensure_worker_profile(user.id)
            logger.info(f"Identity {user.id} completed profile as {role}")
            return self._resolution_for(user, is_new_user=False)
        except StorageError as e:
            raise ReconciliationError(f"Could not complete profile: {e.message}") from e

    def authenticate(self, access_token: str) -> UserDto:
        claims = self.issuer.decode(access_token, ACCESS)
        try:
            if self.session_repo.get_by_token(access_token) is None:
                raise NotAuthenticated("Session has been signed out")
            user = self.user_repo.get_by_id(claims["sub"])
        except StorageError as e:
            raise ReconciliationError(f"Could not load session: {e.message}") from e
        if user is None or not user.is_active:
            raise NotAuthenticated()
        return user

    def logout(self, access_token: str) -> bool:
        try:
            return self.session_repo.delete_by_token(access_token)
        except StorageError as e:
            raise ReconciliationError(f"Could not end session: {e.message}") from e

    def assign_role(self, actor: UserDto, target_id: str, role: str) -> UserDto:
        """Admin-only role switch; the only way a role changes after signup."""
        if actor.role != ADMIN:
            raise PermissionDenied()
        if role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")
        try:
            target = self.user_repo.get_by_id(target_id)
            if target is None or not target.is_provisioned:
                raise IdentityNotFound()
            updated = self.user_repo.set_role(target_id, role)
            if role == WORKER:
                self.user_repo.ensure_worker_profile(target_id)
        except StorageError as e:
            raise ReconciliationError(f"Could not assign role: {e.message}") from e
        logger.info(f"Admin {actor.id} set role of {target_id} to {role}")
        return updated

    def _resolution_for(self, user: UserDto, is_new_user: bool) -> Resolution:
        if user.is_provisioned:
            issued = self._open_session(user)
        else:
            issued = self.issuer.issue_signup(user.id)
        return Resolution(
            identity_id=user.id,
            is_new_user=is_new_user,
            session=issued.token,
            session_type=issued.token_type,
            expires_at=issued.expires_at,
            role=user.role,
        )

    def _open_session(self, user: UserDto) -> IssuedToken:
        issued = self.issuer.issue_access(user.id, user.role)
        self.session_repo.create(user.id, issued.token, issued.expires_at)
        return issued
