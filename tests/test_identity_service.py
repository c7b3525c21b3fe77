from typing import Dict, Optional

import pytest

from servxpert.application.ports.session_issuer import ACCESS, SIGNUP
from servxpert.application.ports.session_repo import SessionDto, SessionRepository
from servxpert.application.ports.user_repo import UserDto, UserRepository
from servxpert.application.services.identity_service import IdentityService, dashboard_path
from servxpert.exceptions import (
    IdentityNotFound,
    NotAuthenticated,
    PermissionDenied,
    ProfileAlreadyComplete,
    ReconciliationError,
    StorageError,
    ValidationError,
)
from servxpert.infrastructure.tokens.jwt_issuer import JwtSessionIssuer
from servxpert.utils import utcnow


class FakeUserRepo(UserRepository):
    def __init__(self):
        self.users: Dict[str, UserDto] = {}
        self.workers = set()
        self.fail = False

    def add(self, user_id: str, phone: Optional[str] = None, email: Optional[str] = None,
            role: Optional[str] = None, name: Optional[str] = None) -> UserDto:
        user = UserDto(
            id=user_id,
            name=name,
            phone=phone,
            email=email,
            role=role,
            is_active=True,
            created_at=utcnow(),
            updated_at=utcnow(),
        )
        self.users[user_id] = user
        return user

    def get_by_destination(self, destination: str) -> Optional[UserDto]:
        if self.fail:
            raise StorageError("database is down")
        for u in self.users.values():
            if destination in (u.phone, u.email):
                return u
        return None

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        return self.users.get(user_id)

    def create_shell(self, destination: str) -> UserDto:
        user_id = f"user-{len(self.users) + 1}"
        if "@" in destination:
            return self.add(user_id, email=destination)
        return self.add(user_id, phone=destination)

    def complete_profile(self, user_id, name, role, contact_phone, contact_email) -> UserDto:
        user = self.users[user_id]
        user.name, user.role = name, role
        user.contact_phone, user.contact_email = contact_phone, contact_email
        return user

    def set_role(self, user_id: str, role: str) -> UserDto:
        self.users[user_id].role = role
        return self.users[user_id]

    def ensure_worker_profile(self, user_id: str) -> None:
        self.workers.add(user_id)


class FakeSessionRepo(SessionRepository):
    def __init__(self):
        self.sessions: Dict[str, SessionDto] = {}

    def create(self, user_id, token, expires_at) -> SessionDto:
        rec = SessionDto(id=str(len(self.sessions)), user_id=user_id, token=token,
                         expires_at=expires_at, created_at=utcnow())
        self.sessions[token] = rec
        return rec

    def get_by_token(self, token):
        return self.sessions.get(token)

    def delete_by_token(self, token):
        return self.sessions.pop(token, None) is not None


@pytest.fixture()
def repo():
    return FakeUserRepo()


@pytest.fixture()
def sessions():
    return FakeSessionRepo()


@pytest.fixture()
def svc(repo, sessions):
    return IdentityService(
        user_repo=repo,
        issuer=JwtSessionIssuer("test-secret"),
        session_repo=sessions,
        admin_destinations=["boss@servxpert.in"],
    )


def test_resolve_new_destination_creates_pending_identity(svc, repo, sessions):
    res = svc.resolve("+919876543210")
    assert res.is_new_user is True
    assert res.session_type == SIGNUP
    assert res.role is None
    assert repo.users[res.identity_id].phone == "+919876543210"
    assert sessions.sessions == {}


def test_resolve_returning_user_gets_access_session(svc, repo, sessions):
    repo.add("u1", phone="+919876543210", role="worker", name="Asha")
    res = svc.resolve("+919876543210")
    assert res.is_new_user is False
    assert res.session_type == ACCESS
    assert res.role == "worker"
    assert res.session in sessions.sessions


def test_resolve_storage_failure_is_reconciliation_error(svc, repo):
    repo.fail = True
    with pytest.raises(ReconciliationError) as exc:
        svc.resolve("+919876543210")
    assert exc.value.public is False


def test_complete_profile_as_worker(svc, repo):
    pending = svc.resolve("+919876543210")
    done = svc.complete_profile(pending.session, "  Asha  ", "worker", "Asha@Example.com")
    user = repo.users[done.identity_id]
    assert user.name == "Asha"
    assert user.role == "worker"
    assert user.contact_email == "asha@example.com"
    assert user.email is None
    assert user.phone == "+919876543210"
    assert done.session_type == ACCESS
    assert done.identity_id in repo.workers


def test_complete_profile_email_user_adds_phone(svc, repo):
    pending = svc.resolve("priya@example.com")
    done = svc.complete_profile(pending.session, "Priya", "customer", "9876543210")
    user = repo.users[done.identity_id]
    assert user.contact_phone == "+919876543210"
    assert user.phone is None
    assert user.email == "priya@example.com"
    assert repo.workers == set()


def test_complete_profile_admin_destination_is_promoted(svc):
    pending = svc.resolve("boss@servxpert.in")
    done = svc.complete_profile(pending.session, "Boss", "customer")
    assert done.role == "admin"
    assert dashboard_path(done.role) == "/admin"


@pytest.mark.parametrize("name,role", [("", "customer"), ("   ", "worker"), ("x" * 101, "customer"),
                                       ("Ravi", "admin"), ("Ravi", "superuser")])
def test_complete_profile_validation(svc, name, role):
    pending = svc.resolve("+919876543210")
    with pytest.raises(ValidationError):
        svc.complete_profile(pending.session, name, role)


def test_profile_contact_never_becomes_a_login(svc, repo):
    pending = svc.resolve("+919876543210")
    svc.complete_profile(pending.session, "Ravi", "customer", "victim@example.com")

    res = svc.resolve("victim@example.com")
    assert res.identity_id != pending.identity_id
    assert res.is_new_user is True
    assert res.session_type == SIGNUP
    assert repo.users[res.identity_id].email == "victim@example.com"


def test_profile_contact_may_match_another_account(svc, repo):
    repo.add("other", email="shared@example.com", role="customer")
    pending = svc.resolve("+919876543210")
    done = svc.complete_profile(pending.session, "Ravi", "customer", "shared@example.com")
    assert repo.users[done.identity_id].contact_email == "shared@example.com"
    assert svc.resolve("shared@example.com").identity_id == "other"


def test_admin_destinations_are_normalized(repo, sessions):
    svc = IdentityService(
        user_repo=repo,
        issuer=JwtSessionIssuer("test-secret"),
        session_repo=sessions,
        admin_destinations=["98765 43210", "not-a-destination", " Boss@ServXpert.in "],
    )
    pending = svc.resolve("+919876543210")
    assert svc.complete_profile(pending.session, "Ravi", "customer").role == "admin"

    pending = svc.resolve("boss@servxpert.in")
    assert svc.complete_profile(pending.session, "Boss", "worker").role == "admin"

    pending = svc.resolve("+919876543211")
    assert svc.complete_profile(pending.session, "Meera", "customer").role == "customer"


def test_profile_contact_is_not_an_admin_grant(repo, sessions):
    svc = IdentityService(
        user_repo=repo,
        issuer=JwtSessionIssuer("test-secret"),
        session_repo=sessions,
        admin_destinations=["boss@servxpert.in"],
    )
    pending = svc.resolve("+919876543210")
    done = svc.complete_profile(pending.session, "Ravi", "customer", "boss@servxpert.in")
    assert done.role == "customer"


def test_complete_profile_twice_conflicts(svc):
    pending = svc.resolve("+919876543210")
    svc.complete_profile(pending.session, "Ravi", "customer")
    with pytest.raises(ProfileAlreadyComplete):
        svc.complete_profile(pending.session, "Ravi", "worker")


def test_complete_profile_needs_signup_token(svc, repo):
    repo.add("u1", phone="+919876543210", role="customer")
    access = svc.resolve("+919876543210").session
    with pytest.raises(NotAuthenticated):
        svc.complete_profile(access, "Ravi", "customer")


def test_complete_profile_unknown_identity(svc):
    token = svc.issuer.issue_signup("ghost").token
    with pytest.raises(IdentityNotFound):
        svc.complete_profile(token, "Ravi", "customer")


def test_authenticate_and_logout(svc, repo):
    repo.add("u1", phone="+919876543210", role="customer")
    token = svc.resolve("+919876543210").session
    assert svc.authenticate(token).id == "u1"
    assert svc.logout(token) is True
    with pytest.raises(NotAuthenticated):
        svc.authenticate(token)


def test_authenticate_inactive_user(svc, repo):
    user = repo.add("u1", phone="+919876543210", role="customer")
    token = svc.resolve("+919876543210").session
    user.is_active = False
    with pytest.raises(NotAuthenticated):
        svc.authenticate(token)


def test_assign_role_admin_only(svc, repo):
    admin = repo.add("a1", email="boss@servxpert.in", role="admin")
    customer = repo.add("c1", phone="+919876543210", role="customer")
    with pytest.raises(PermissionDenied):
        svc.assign_role(customer, "a1", "customer")

    updated = svc.assign_role(admin, "c1", "worker")
    assert updated.role == "worker"
    assert "c1" in repo.workers


def test_assign_role_requires_provisioned_target(svc, repo):
    admin = repo.add("a1", email="boss@servxpert.in", role="admin")
    pending = svc.resolve("+919876543210")
    with pytest.raises(IdentityNotFound):
        svc.assign_role(admin, pending.identity_id, "worker")
    with pytest.raises(ValidationError):
        svc.assign_role(admin, pending.identity_id, "owner")


def test_dashboard_paths():
    assert dashboard_path("customer") == "/customer"
    assert dashboard_path("worker") == "/worker"
    assert dashboard_path(None) is None
