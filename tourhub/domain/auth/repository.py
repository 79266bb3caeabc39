"""Auth repository - Database operations for users and sessions"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ...models import AuthSession, User


class AuthRepository:
    """Repository for authentication database operations"""

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_session(db: Session, session_id: int) -> Optional[AuthSession]:
        return db.query(AuthSession).filter(AuthSession.id == session_id).first()

    @staticmethod
    def active_sessions(db: Session, user_id: int, now: datetime) -> list[AuthSession]:
        return (
            db.query(AuthSession)
            .filter(
                AuthSession.user_id == user_id,
                AuthSession.is_active.is_(True),
                AuthSession.expires_at > now,
            )
            .order_by(AuthSession.last_accessed_at.desc())
            .all()
        )

    @staticmethod
    def sessions_for_revocation(db: Session, user_id: int, except_session_id: Optional[int] = None) -> list[AuthSession]:
        query = db.query(AuthSession).filter(AuthSession.user_id == user_id, AuthSession.is_active.is_(True))
        if except_session_id is not None:
            query = query.filter(AuthSession.id != except_session_id)
        return query.all()

    @staticmethod
    def delete_stale_sessions(db: Session, now: datetime, revoked_before: datetime) -> int:
        """Remove expired sessions and those revoked before the cutoff"""
        return (
            db.query(AuthSession)
            .filter(
                or_(
                    AuthSession.expires_at < now,
                    and_(AuthSession.is_active.is_(False), AuthSession.revoked_at < revoked_before),
                )
            )
            .delete(synchronize_session=False)
        )
