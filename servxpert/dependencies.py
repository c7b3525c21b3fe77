"""Process-wide clients and the per-request service wiring.

``init_clients`` runs once in the app lifespan and builds the long-lived
pieces (delivery gateways, rate limiter, token issuer, audit logger). A second
call hands back the same instances. Everything below is a FastAPI dependency,
so routes never reach into module globals and tests swap pieces through
``app.dependency_overrides``.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from .application.ports.audit_logger import AuditLogger
from .application.ports.delivery_gateway import DeliveryGateway
from .application.ports.rate_limiter import RateLimiter
from .application.ports.session_issuer import SessionIssuer
from .application.ports.user_repo import UserDto
from .application.services.identity_service import IdentityService
from .application.services.issuance_service import IssuanceService
from .application.services.verification_service import VerificationService
from .core.config import Settings, settings as default_settings
from .database import get_session
from .exceptions import NotAuthenticated
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.delivery.console import ConsoleGateway
from .infrastructure.delivery.resend_email import ResendEmailGateway
from .infrastructure.delivery.twilio_sms import TwilioSmsGateway
from .infrastructure.persistence.sqlalchemy.repositories.otp_store_sql import SqlOTPStore
from .infrastructure.persistence.sqlalchemy.repositories.session_repository_sql import SqlSessionRepository
from .infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository
from .infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from .infrastructure.rate_limit.redis_rate_limiter import RedisRateLimiter
from .infrastructure.tokens.jwt_issuer import JwtSessionIssuer

logger = logging.getLogger(__name__)


@dataclass
class Clients:
    settings: Settings
    gateways: Dict[str, DeliveryGateway]
    rate_limiter: RateLimiter
    issuer: SessionIssuer
    audit: AuditLogger


_clients: Optional[Clients] = None
_clients_lock = threading.Lock()


def _build_gateways(cfg: Settings) -> Dict[str, DeliveryGateway]:
    if cfg.OTP_DELIVERY_MODE == "console":
        logger.warning("OTP delivery in console mode: codes are logged, not sent")
        return {"sms": ConsoleGateway("sms"), "email": ConsoleGateway("email")}
    return {
        "sms": TwilioSmsGateway(cfg.TWILIO_ACCOUNT_SID, cfg.TWILIO_AUTH_TOKEN, cfg.TWILIO_PHONE_NUMBER),
        "email": ResendEmailGateway(cfg.RESEND_API_KEY, cfg.EMAIL_FROM_ADDRESS),
    }


def _build_rate_limiter(cfg: Settings) -> RateLimiter:
    if cfg.REDIS_URL:
        logger.info("Redis rate limiter initialized")
        return RedisRateLimiter(cfg.REDIS_URL)
    logger.info("Using memory-based rate limiting")
    return InMemoryRateLimiter()


def init_clients(cfg: Optional[Settings] = None) -> Clients:
    global _clients
    with _clients_lock:
        if _clients is not None:
            return _clients
        cfg = cfg or default_settings
        _clients = Clients(
            settings=cfg,
            gateways=_build_gateways(cfg),
            rate_limiter=_build_rate_limiter(cfg),
            issuer=JwtSessionIssuer(
                cfg.SECRET_KEY,
                cfg.ALGORITHM,
                access_minutes=cfg.ACCESS_TOKEN_EXPIRE_MINUTES,
                signup_minutes=cfg.SIGNUP_TOKEN_EXPIRE_MINUTES,
            ),
            audit=StdAuditLogger(),
        )
        return _clients


def get_clients() -> Clients:
    if _clients is None:
        raise RuntimeError("init_clients() must run before serving requests")
    return _clients


def get_app_settings(clients: Clients = Depends(get_clients)) -> Settings:
    return clients.settings


def get_delivery_gateways(clients: Clients = Depends(get_clients)) -> Dict[str, DeliveryGateway]:
    return clients.gateways


def get_rate_limiter(clients: Clients = Depends(get_clients)) -> RateLimiter:
    return clients.rate_limiter


def get_session_issuer(clients: Clients = Depends(get_clients)) -> SessionIssuer:
    return clients.issuer


def get_audit_logger(clients: Clients = Depends(get_clients)) -> AuditLogger:
    return clients.audit


def get_identity_service(
    session: Session = Depends(get_session),
    issuer: SessionIssuer = Depends(get_session_issuer),
    cfg: Settings = Depends(get_app_settings),
) -> IdentityService:
    return IdentityService(
        user_repo=SqlUserRepository(session),
        issuer=issuer,
        session_repo=SqlSessionRepository(session),
        admin_destinations=cfg.admin_destinations_list,
        default_country_code=cfg.PHONE_DEFAULT_COUNTRY_CODE,
        allow_international=cfg.ALLOW_INTERNATIONAL_PHONES,
    )


def get_issuance_service(
    session: Session = Depends(get_session),
    gateways: Dict[str, DeliveryGateway] = Depends(get_delivery_gateways),
    limiter: RateLimiter = Depends(get_rate_limiter),
    cfg: Settings = Depends(get_app_settings),
) -> IssuanceService:
    return IssuanceService(
        otp_store=SqlOTPStore(session),
        gateways=gateways,
        code_secret=cfg.otp_code_secret,
        brand_name=cfg.BRAND_NAME,
        expiry_seconds=cfg.OTP_EXPIRY_SECONDS,
        rate_limiter=limiter,
        max_issues_per_window=cfg.OTP_ISSUE_MAX_PER_WINDOW,
        issue_window_seconds=cfg.OTP_ISSUE_WINDOW_SECONDS,
        default_country_code=cfg.PHONE_DEFAULT_COUNTRY_CODE,
        allow_international=cfg.ALLOW_INTERNATIONAL_PHONES,
    )


def get_verification_service(
    session: Session = Depends(get_session),
    identities: IdentityService = Depends(get_identity_service),
    cfg: Settings = Depends(get_app_settings),
) -> VerificationService:
    return VerificationService(
        otp_store=SqlOTPStore(session),
        identities=identities,
        code_secret=cfg.otp_code_secret,
        max_attempts=cfg.OTP_MAX_ATTEMPTS,
        default_country_code=cfg.PHONE_DEFAULT_COUNTRY_CODE,
        allow_international=cfg.ALLOW_INTERNATIONAL_PHONES,
    )


bearer_scheme = HTTPBearer(auto_error=False)


def get_bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> str:
    if not credentials or not credentials.credentials:
        raise NotAuthenticated("Authentication required")
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_bearer_token),
    identities: IdentityService = Depends(get_identity_service),
) -> UserDto:
    return identities.authenticate(token)
