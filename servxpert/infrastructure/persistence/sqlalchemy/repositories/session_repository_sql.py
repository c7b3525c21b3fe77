import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import UserSession
from .....application.ports.session_repo import SessionRepository, SessionDto
from .....exceptions import StorageError

logger = logging.getLogger(__name__)


class SqlSessionRepository(SessionRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, rec: UserSession) -> SessionDto:
        return SessionDto(
            id=rec.id,
            user_id=rec.user_id,
            token=rec.token,
            expires_at=rec.expires_at,
            created_at=rec.created_at,
        )

    def create(self, user_id: str, token: str, expires_at: datetime) -> SessionDto:
        rec = UserSession(user_id=user_id, token=token, expires_at=expires_at)
        try:
            self.session.add(rec)
            self.session.commit()
            self.session.refresh(rec)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error creating user session: {e}")
            raise StorageError("Failed to create session") from e
        return self._to_dto(rec)

    def get_by_token(self, token: str) -> Optional[SessionDto]:
        try:
            rec = self.session.exec(select(UserSession).where(UserSession.token == token)).first()
        except SQLAlchemyError as e:
            logger.error(f"Error getting user session: {e}")
            raise StorageError("Failed to load session") from e
        return self._to_dto(rec) if rec else None

    def delete_by_token(self, token: str) -> bool:
        try:
            rec = self.session.exec(select(UserSession).where(UserSession.token == token)).first()
            if not rec:
                return False
            self.session.delete(rec)
            self.session.commit()
            return True
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error invalidating session: {e}")
            raise StorageError("Failed to end session") from e
