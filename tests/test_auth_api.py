from servxpert.application.ports.delivery_gateway import DeliveryGateway
from servxpert.client.auth_flow import AuthFlow, AuthMethod
from servxpert.client.http_backend import HttpAuthBackend
from servxpert.dependencies import get_delivery_gateways
from servxpert.exceptions import (
    InvalidDestination,
    ProviderConfigError,
    UndeliverableDestination,
    UnverifiedDestination,
)
from servxpert.main import app

PHONE = "+919876543210"
EMAIL = "user@example.com"


def _wrong(code):
    return "000000" if code != "000000" else "111111"


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def _sign_up(client, outbox, destination, name="Ravi", role="customer"):
    client.post("/auth/otp/send", json={"destination": destination})
    verified = client.post("/auth/otp/verify", json={"destination": destination, "code": outbox.last_code(destination)})
    assert verified.status_code == 200
    done = client.post("/auth/profile/complete", json={"name": name, "role": role},
                       headers=_bearer(verified.json()["session"]))
    assert done.status_code == 200
    return done.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert r.headers["X-Content-Type-Options"] == "nosniff"


def test_phone_scenario(client, outbox):
    r = client.post("/auth/otp/send", json={"destination": PHONE})
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "OTP sent successfully", "expiresIn": 300}
    code = outbox.last_code(PHONE)

    r = client.post("/auth/otp/verify", json={"destination": PHONE, "code": _wrong(code)})
    assert r.status_code == 400
    assert r.json()["kind"] == "CodeMismatch"
    assert r.json()["success"] is False

    r = client.post("/auth/otp/verify", json={"destination": PHONE, "code": code})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["isNewUser"] is True
    assert body["profileComplete"] is False
    assert body["sessionType"] == "signup"
    assert body["redirectTo"] is None

    r = client.post("/auth/otp/verify", json={"destination": PHONE, "code": code})
    assert r.status_code == 400
    assert r.json()["kind"] == "CodeAlreadyUsed"


def test_email_resend_scenario(client, outbox):
    client.post("/auth/otp/send", json={"destination": EMAIL, "method": "email"})
    first = outbox.last_code(EMAIL)
    client.post("/auth/otp/send", json={"destination": EMAIL, "method": "email"})
    second = outbox.last_code(EMAIL)

    if first != second:
        r = client.post("/auth/otp/verify", json={"destination": EMAIL, "code": first})
        assert r.status_code == 400
        assert r.json()["kind"] == "NoActiveCode"

    r = client.post("/auth/otp/verify", json={"destination": EMAIL, "code": second})
    assert r.status_code == 200


def test_validation_errors_are_400(client, outbox):
    r = client.post("/auth/otp/send", json={"destination": "12345"})
    assert r.status_code == 400
    assert r.json()["kind"] == "ValidationError"
    assert outbox.sent == []

    r = client.post("/auth/otp/send", json={})
    assert r.status_code == 400
    assert r.json()["kind"] == "ValidationError"

    r = client.post("/auth/otp/verify", json={"destination": PHONE, "code": "12"})
    assert r.status_code == 400
    assert r.json()["error"] == "Please enter the 6-digit code"


def test_verify_without_issue(client):
    r = client.post("/auth/otp/verify", json={"destination": PHONE, "code": "123456"})
    assert r.status_code == 400
    assert r.json()["kind"] == "NoActiveCode"


def test_profile_completion_me_and_logout(client, outbox):
    done = _sign_up(client, outbox, PHONE, name="Asha", role="worker")
    assert done["role"] == "worker"
    assert done["redirectTo"] == "/worker"

    me = client.get("/auth/me", headers=_bearer(done["session"]))
    assert me.status_code == 200
    assert me.json()["name"] == "Asha"
    assert me.json()["phone"] == PHONE
    assert me.json()["profileComplete"] is True

    # returning user
    client.post("/auth/otp/send", json={"destination": "9876543210"})
    r = client.post("/auth/otp/verify", json={"destination": PHONE, "code": outbox.last_code(PHONE)})
    assert r.json()["isNewUser"] is False
    assert r.json()["sessionType"] == "access"
    assert r.json()["redirectTo"] == "/worker"

    r = client.post("/auth/logout", headers=_bearer(done["session"]))
    assert r.status_code == 200
    r = client.get("/auth/me", headers=_bearer(done["session"]))
    assert r.status_code == 401
    assert r.json()["kind"] == "NotAuthenticated"


def test_me_requires_token(client):
    r = client.get("/auth/me")
    assert r.status_code == 401
    r = client.get("/auth/me", headers=_bearer("garbage"))
    assert r.status_code == 401


def test_signup_token_cannot_read_me(client, outbox):
    client.post("/auth/otp/send", json={"destination": PHONE})
    r = client.post("/auth/otp/verify", json={"destination": PHONE, "code": outbox.last_code(PHONE)})
    r = client.get("/auth/me", headers=_bearer(r.json()["session"]))
    assert r.status_code == 401


def test_admin_assigns_roles(client, outbox):
    admin = _sign_up(client, outbox, "admin@servxpert.in", name="Boss")
    assert admin["role"] == "admin"
    assert admin["redirectTo"] == "/admin"
    customer = _sign_up(client, outbox, PHONE)

    r = client.put(f"/auth/admin/users/{admin['userId']}/role", json={"role": "customer"},
                   headers=_bearer(customer["session"]))
    assert r.status_code == 403
    assert r.json()["kind"] == "PermissionDenied"

    r = client.put(f"/auth/admin/users/{customer['userId']}/role", json={"role": "worker"},
                   headers=_bearer(admin["session"]))
    assert r.status_code == 200
    assert r.json()["role"] == "worker"
    assert r.json()["redirectTo"] == "/worker"

    r = client.put("/auth/admin/users/nobody/role", json={"role": "worker"}, headers=_bearer(admin["session"]))
    assert r.status_code == 404


class FailingGateway(DeliveryGateway):
    def __init__(self, error):
        self.error = error

    def send(self, destination, message):
        raise self.error


def test_delivery_errors_are_mapped(client):
    gateways = {"sms": FailingGateway(UnverifiedDestination()), "email": FailingGateway(ProviderConfigError("no key"))}
    app.dependency_overrides[get_delivery_gateways] = lambda: gateways

    r = client.post("/auth/otp/send", json={"destination": PHONE})
    assert r.status_code == 500
    assert r.json()["kind"] == "UnverifiedDestination"
    assert r.json()["error"] == UnverifiedDestination.default_message

    r = client.post("/auth/otp/send", json={"destination": EMAIL})
    assert r.status_code == 500
    assert r.json()["kind"] == "ProviderConfigError"
    assert "no key" not in r.json()["error"]
    assert "try again later" in r.json()["error"]


def test_destination_errors_keep_their_message(client):
    app.dependency_overrides[get_delivery_gateways] = lambda: {"sms": FailingGateway(UndeliverableDestination())}
    r = client.post("/auth/otp/send", json={"destination": PHONE})
    assert r.status_code == 500
    assert r.json()["kind"] == "UndeliverableDestination"
    assert r.json()["error"] == UndeliverableDestination.default_message

    app.dependency_overrides[get_delivery_gateways] = lambda: {"sms": FailingGateway(InvalidDestination())}
    r = client.post("/auth/otp/send", json={"destination": PHONE})
    assert r.status_code == 400
    assert r.json()["kind"] == "InvalidDestination"


def test_client_flow_over_http(client, outbox):
    flow = AuthFlow(HttpAuthBackend(client))
    flow.select_method(AuthMethod.EMAIL)
    assert flow.send_code("Priya@Example.com") is True

    assert flow.submit_code(_wrong(outbox.last_code("priya@example.com"))) is False
    assert flow.drain_notifications()[-1].message == "Invalid code. Please try again."

    assert flow.submit_code(outbox.last_code("priya@example.com")) is True
    assert flow.complete_profile("Priya", "customer", "9876543210") is True
    assert flow.state.role == "customer"
    assert flow.state.redirect_path == "/customer"

    me = client.get("/auth/me", headers=_bearer(flow.state.session))
    assert me.json()["email"] == "priya@example.com"
    assert me.json()["contactPhone"] == PHONE
    assert me.json()["phone"] is None


def test_profile_contact_does_not_sign_in_to_the_account(client, outbox):
    client.post("/auth/otp/send", json={"destination": PHONE})
    verified = client.post("/auth/otp/verify", json={"destination": PHONE, "code": outbox.last_code(PHONE)})
    done = client.post("/auth/profile/complete",
                       json={"name": "Ravi", "role": "customer", "contact": "victim@example.com"},
                       headers=_bearer(verified.json()["session"]))
    assert done.status_code == 200
    me = client.get("/auth/me", headers=_bearer(done.json()["session"]))
    assert me.json()["contactEmail"] == "victim@example.com"
    assert me.json()["email"] is None

    client.post("/auth/otp/send", json={"destination": "victim@example.com"})
    r = client.post("/auth/otp/verify",
                    json={"destination": "victim@example.com", "code": outbox.last_code("victim@example.com")})
    assert r.status_code == 200
    assert r.json()["userId"] != done.json()["userId"]
    assert r.json()["isNewUser"] is True
    assert r.json()["sessionType"] == "signup"
