"""Client-side sign-in flow: choose a method, receive a code, verify it and
finish signing up if the account is new.

``AuthFlow`` keeps the transient UI state in a ``ClientAuthState`` and talks
to the server through an ``AuthBackend``. Every failure is turned into a
notification; ``step`` only moves on success.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from ..application.services.destinations import Method, parse_destination, validate_code
from ..exceptions import ValidationError
from .backend import AuthBackend, AuthError

logger = logging.getLogger(__name__)


class AuthStep(str, Enum):
    INPUT = "input"
    OTP = "otp"
    SIGNUP_DETAILS = "signup-details"


class AuthMethod(str, Enum):
    PHONE = "phone"
    EMAIL = "email"


@dataclass
class Notification:
    level: str
    message: str


@dataclass
class ProfileDraft:
    name: str = ""
    contact: str = ""


@dataclass
class ClientAuthState:
    step: AuthStep = AuthStep.INPUT
    method: AuthMethod = AuthMethod.PHONE
    destination: str = ""
    code: str = ""
    pending_role: str = "customer"
    profile_draft: ProfileDraft = field(default_factory=ProfileDraft)
    signup_token: Optional[str] = None
    session: Optional[str] = None
    role: Optional[str] = None
    expires_in: Optional[int] = None
    redirect_path: Optional[str] = None
    notifications: List[Notification] = field(default_factory=list)

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None and self.role is not None


_BACK = {
    AuthStep.OTP: AuthStep.INPUT,
    AuthStep.SIGNUP_DETAILS: AuthStep.OTP,
}


class AuthFlow:
    def __init__(self, backend: AuthBackend, on_complete: Optional[Callable[[ClientAuthState], None]] = None,
                 default_country_code: str = "+91"):
        self.backend = backend
        self.on_complete = on_complete
        self.default_country_code = default_country_code
        self.state = ClientAuthState()

    # -- notifications -------------------------------------------------

    def _notify(self, level: str, message: str) -> None:
        self.state.notifications.append(Notification(level, message))

    def _fail(self, message: str) -> bool:
        self._notify("error", message)
        return False

    def drain_notifications(self) -> List[Notification]:
        pending, self.state.notifications = self.state.notifications, []
        return pending

    # -- input step ----------------------------------------------------

    def select_method(self, method: AuthMethod) -> bool:
        if self.state.step is not AuthStep.INPUT:
            return self._fail("Go back to change how you sign in")
        method = AuthMethod(method)
        if method is not self.state.method:
            self.state.method = method
            self.state.destination = ""
        return True

    def send_code(self, raw_destination: Optional[str] = None) -> bool:
        if self.state.step is not AuthStep.INPUT:
            return self._fail("A code has already been requested")
        if raw_destination is not None:
            self.state.destination = raw_destination
        return self._request_code(advance=True)

    def resend_code(self) -> bool:
        if self.state.step is not AuthStep.OTP:
            return self._fail("Request a code first")
        self.state.code = ""
        return self._request_code(advance=False)

    def _request_code(self, advance: bool) -> bool:
        try:
            destination = parse_destination(
                self.state.destination, Method(self.state.method.value), self.default_country_code
            )
        except ValidationError as e:
            return self._fail(e.public_message)

        try:
            sent = self.backend.send_code(destination.value, self.state.method.value)
        except AuthError as e:
            logger.warning(f"Sending code failed: {e.kind}")
            return self._fail(e.message)

        self.state.destination = destination.value
        self.state.expires_in = sent.expires_in
        if self.state.method is AuthMethod.EMAIL:
            self._notify("success", "Check your email for the verification code!")
        else:
            self._notify("success", "Check your phone for the verification code!")
        if advance:
            self.state.step = AuthStep.OTP
        return True

    # -- otp step ------------------------------------------------------

    def submit_code(self, code: Optional[str] = None) -> bool:
        if self.state.step is not AuthStep.OTP:
            return self._fail("Request a code first")
        if code is not None:
            self.state.code = code
        try:
            submitted = validate_code(self.state.code)
        except ValidationError as e:
            return self._fail(e.public_message)

        try:
            verified = self.backend.verify_code(self.state.destination, submitted)
        except AuthError as e:
            logger.warning(f"Verifying code failed: {e.kind}")
            return self._fail(e.message)

        if verified.is_new_user or not verified.profile_complete:
            self.state.signup_token = verified.session
            self.state.step = AuthStep.SIGNUP_DETAILS
            return True

        self._notify("success", "Welcome back!")
        self._finish(verified.session, verified.role, verified.redirect_to)
        return True

    # -- signup-details step -------------------------------------------

    def complete_profile(self, name: Optional[str] = None, role: Optional[str] = None,
                         contact: Optional[str] = None) -> bool:
        if self.state.step is not AuthStep.SIGNUP_DETAILS:
            return self._fail("Verify your code first")
        draft = self.state.profile_draft
        if name is not None:
            draft.name = name
        if contact is not None:
            draft.contact = contact
        if role is not None:
            self.state.pending_role = role

        if not draft.name.strip():
            return self._fail("Please enter your name")
        if self.state.pending_role not in ("customer", "worker"):
            return self._fail("Please choose customer or worker")

        try:
            completed = self.backend.complete_profile(
                self.state.signup_token,
                draft.name.strip(),
                self.state.pending_role,
                draft.contact.strip() or None,
            )
        except AuthError as e:
            logger.warning(f"Completing profile failed: {e.kind}")
            return self._fail(e.message)

        self._notify("success", "Account created successfully!")
        self._finish(completed.session, completed.role, completed.redirect_to)
        return True

    # -- navigation ----------------------------------------------------

    def back(self) -> bool:
        previous = _BACK.get(self.state.step)
        if previous is None:
            return False
        if self.state.step is AuthStep.OTP:
            self.state.code = ""
        self.state.step = previous
        return True

    def reset(self) -> None:
        self.state = ClientAuthState()

    def _finish(self, session: str, role: Optional[str], redirect_path: Optional[str]) -> None:
        self.state.session = session
        self.state.role = role
        self.state.redirect_path = redirect_path
        self.state.signup_token = None
        self.state.code = ""
        if self.on_complete is not None:
            self.on_complete(self.state)
