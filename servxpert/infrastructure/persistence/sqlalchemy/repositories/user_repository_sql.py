import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import User, WorkerProfile
from .....application.ports.user_repo import UserRepository, UserDto
from .....application.services.destinations import Method, infer_method
from .....exceptions import StorageError
from .....utils import utcnow

logger = logging.getLogger(__name__)

class SqlUserRepository(UserRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, user: User) -> UserDto:
        return UserDto(
            id=user.id,
            name=user.name,
            phone=user.phone,
            email=user.email,
            role=user.role,
            is_active=bool(user.is_active),
            created_at=user.created_at,
            updated_at=user.updated_at,
            contact_phone=user.contact_phone,
            contact_email=user.contact_email,
        )

    def _get(self, user_id: str) -> Optional[User]:
        try:
            return self.session.exec(select(User).where(User.id == user_id)).first()
        except SQLAlchemyError as e:
            logger.error(f"Error getting user by ID {user_id}: {e}")
            raise StorageError("Failed to look up user") from e

    def _save(self, user: User) -> UserDto:
        try:
            user.updated_at = utcnow()
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error saving user {user.id}: {e}")
            raise StorageError("Failed to save user") from e
        return self._to_dto(user)

    def get_by_destination(self, destination: str) -> Optional[UserDto]:
        column = User.email if infer_method(destination) is Method.EMAIL else User.phone
        try:
            user = self.session.exec(select(User).where(column == destination)).first()
        except SQLAlchemyError as e:
            logger.error(f"Error looking up user by destination: {e}")
            raise StorageError("Failed to look up user") from e
        return self._to_dto(user) if user else None

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        user = self._get(user_id)
        return self._to_dto(user) if user else None

    def create_shell(self, destination: str) -> UserDto:
        if infer_method(destination) is Method.EMAIL:
            user = User(email=destination)
        else:
            user = User(phone=destination)
        try:
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
        except IntegrityError:
            # Another verify for the same destination created it first
            self.session.rollback()
            existing = self.get_by_destination(destination)
            if existing is None:
                raise StorageError("Failed to create user")
            return existing
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error creating user: {e}")
            raise StorageError("Failed to create user") from e
        return self._to_dto(user)

    def complete_profile(self, user_id: str, name: str, role: str,
                         contact_phone: Optional[str], contact_email: Optional[str]) -> UserDto:
        user = self._get(user_id)
        if not user:
            raise StorageError(f"User {user_id} disappeared during profile completion")
        user.name = name
        user.role = role
        user.contact_phone = contact_phone
        user.contact_email = contact_email
        return self._save(user)

    def set_role(self, user_id: str, role: str) -> UserDto:
        user = self._get(user_id)
        if not user:
            raise StorageError(f"User {user_id} disappeared during role change")
        user.role = role
        return self._save(user)

    def ensure_worker_profile(self, user_id: str) -> None:
        try:
            existing = self.session.exec(select(WorkerProfile).where(WorkerProfile.user_id == user_id)).first()
            if existing:
                return
            self.session.add(WorkerProfile(user_id=user_id))
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error creating worker profile for {user_id}: {e}")
            raise StorageError("Failed to create worker profile") from e
