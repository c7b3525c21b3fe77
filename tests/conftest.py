import os
import re

# Settings are read once at import time, so the test environment goes in first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("OTP_DELIVERY_MODE", "console")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("OTP_CODE_SECRET", "test-otp-secret")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "10000")
os.environ.setdefault("OTP_ISSUE_MAX_PER_WINDOW", "10000")
os.environ.setdefault("ADMIN_DESTINATIONS", "admin@servxpert.in")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel

from servxpert.application.ports.delivery_gateway import DeliveryGateway, OutboundMessage
from servxpert.database import engine
from servxpert.db import models  # noqa: F401
from servxpert.dependencies import get_delivery_gateways
from servxpert.main import app

CODE_IN_BODY = re.compile(r"\b(\d{6})\b")


class RecordingGateway(DeliveryGateway):
    def __init__(self):
        self.sent = []

    def send(self, destination: str, message: OutboundMessage) -> str:
        self.sent.append((destination, message))
        return f"msg-{len(self.sent)}"

    def last_code(self, destination: str) -> str:
        for dest, message in reversed(self.sent):
            if dest == destination:
                return CODE_IN_BODY.search(message.body).group(1)
        raise AssertionError(f"nothing sent to {destination}")


@pytest.fixture()
def db():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture()
def outbox():
    return RecordingGateway()


@pytest.fixture()
def client(db, outbox):
    gateways = {"sms": outbox, "email": outbox}
    app.dependency_overrides[get_delivery_gateways] = lambda: gateways
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
