"""Credentials and login sessions.

The rest of the app only needs ``authenticated_user_id``: it turns whatever
credential a request carried into a user id, or ``None`` to reject it.
"""
import logging
import secrets
import bcrypt
from datetime import datetime, timedelta
from typing import Optional
from sqlmodel import Session, select
from app.config import SESSION_EXPIRE_DAYS
from app.database import transaction
from app.models import LoginSession, User

logger = logging.getLogger(__name__)

# bcrypt ignores everything past 72 bytes
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode('utf-8')[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password using bcrypt. Truncates to 72 bytes for bcrypt compatibility."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode('utf-8'))


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def _drop_session(db: Session, token: str) -> bool:
    with transaction(db):
        login = db.get(LoginSession, token)
        if login is None:
            return False
        db.delete(login)
    return True


def create_session(db: Session, user_id: int) -> LoginSession:
    """Issue a login session valid for SESSION_EXPIRE_DAYS."""
    login = LoginSession(
        token=generate_session_token(),
        user_id=user_id,
        expires_at=datetime.utcnow() + timedelta(days=SESSION_EXPIRE_DAYS)
    )
    with transaction(db):
        db.add(login)
    return login


def get_user_by_session_token(db: Session, token: str) -> Optional[User]:
    """User behind a live session. Expired sessions are deleted on sight."""
    login = db.get(LoginSession, token)
    if not login:
        return None

    if login.expires_at < datetime.utcnow():
        _drop_session(db, token)
        return None

    return db.get(User, login.user_id)


def authenticated_user_id(db: Session, credential: Optional[str]) -> Optional[int]:
    """Resolve a request credential to a verified user id, or None to reject."""
    if not credential:
        return None
    user = get_user_by_session_token(db, credential)
    return user.id if user else None


def delete_session(db: Session, token: str) -> bool:
    """Log out. Returns False if the token matched no session."""
    return _drop_session(db, token)


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Check an email/password pair; None on any mismatch."""
    user = db.exec(select(User).where(User.email == email.strip().lower())).first()
    if user and verify_password(password, user.password_hash):
        return user

    logger.info("Failed login for %s", email)
    return None


def create_user(
    db: Session,
    email: str,
    username: str,
    password: str,
    phone_no: Optional[str] = None,
    is_admin: bool = False
) -> User:
    user = User(
        email=email.strip().lower(),
        username=username.strip(),
        password_hash=hash_password(password),
        phone_no=phone_no,
        is_admin=is_admin
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created %s %s", "admin" if is_admin else "user", user.username)
    return user
