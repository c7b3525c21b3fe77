import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import OTPCode
from .....application.ports.otp_store import OTPStore, OtpRecordDto
from .....exceptions import StorageError
from .....utils import utcnow

logger = logging.getLogger(__name__)

# A concurrent put for the same destination trips the partial unique index;
# retrying supersedes whichever insert won.
_PUT_ATTEMPTS = 3


class SqlOTPStore(OTPStore):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, rec: OTPCode) -> OtpRecordDto:
        return OtpRecordDto(
            id=rec.id,
            destination=rec.destination,
            channel=rec.channel,
            code_hash=rec.code_hash,
            is_used=rec.is_used,
            consumed_at=rec.consumed_at,
            attempts=rec.attempts,
            expires_at=rec.expires_at,
            created_at=rec.created_at,
        )

    def put(self, destination: str, channel: str, code_hash: str, expires_at: datetime) -> OtpRecordDto:
        for attempt in range(1, _PUT_ATTEMPTS + 1):
            try:
                self.session.exec(
                    update(OTPCode)
                    .where(OTPCode.destination == destination, OTPCode.is_used == False)  # noqa: E712
                    .values(is_used=True)
                )
                rec = OTPCode(destination=destination, channel=channel, code_hash=code_hash, expires_at=expires_at)
                self.session.add(rec)
                self.session.commit()
                self.session.refresh(rec)
                return self._to_dto(rec)
            except IntegrityError:
                self.session.rollback()
                logger.warning(f"Concurrent OTP issue for the same destination, retry {attempt}/{_PUT_ATTEMPTS}")
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(f"Error storing OTP code: {e}")
                raise StorageError("Failed to store OTP") from e
        raise StorageError("Failed to store OTP after concurrent updates")

    def find_latest_unused(self, destination: str) -> Optional[OtpRecordDto]:
        try:
            rec = self.session.exec(
                select(OTPCode)
                .where(OTPCode.destination == destination, OTPCode.is_used == False)  # noqa: E712
                .order_by(OTPCode.created_at.desc())
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching OTP code: {e}")
            raise StorageError("Failed to fetch OTP") from e
        return self._to_dto(rec) if rec else None

    def find_invalidated_by_hash(self, destination: str, code_hash: str) -> Optional[OtpRecordDto]:
        try:
            rec = self.session.exec(
                select(OTPCode)
                .where(
                    OTPCode.destination == destination,
                    OTPCode.code_hash == code_hash,
                    OTPCode.is_used == True,  # noqa: E712
                )
                .order_by(OTPCode.created_at.desc())
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching OTP code: {e}")
            raise StorageError("Failed to fetch OTP") from e
        return self._to_dto(rec) if rec else None

    def mark_used(self, record_id: str) -> bool:
        try:
            result = self.session.exec(
                update(OTPCode)
                .where(OTPCode.id == record_id, OTPCode.is_used == False)  # noqa: E712
                .values(is_used=True, consumed_at=utcnow())
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error marking OTP {record_id} used: {e}")
            raise StorageError("Failed to update OTP") from e
        return result.rowcount == 1

    def register_failed_attempt(self, record_id: str) -> int:
        try:
            self.session.exec(
                update(OTPCode)
                .where(OTPCode.id == record_id)
                .values(attempts=OTPCode.attempts + 1)
            )
            self.session.commit()
            attempts = self.session.exec(select(OTPCode.attempts).where(OTPCode.id == record_id)).first()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error counting failed attempt on OTP {record_id}: {e}")
            raise StorageError("Failed to update OTP") from e
        return attempts or 0

    def purge_expired(self, before: datetime) -> int:
        """Clean up OTP codes that expired before ``before``"""
        try:
            result = self.session.exec(delete(OTPCode).where(OTPCode.expires_at < before))
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error cleaning up expired OTPs: {e}")
            raise StorageError("Failed to purge OTPs") from e
        return result.rowcount
