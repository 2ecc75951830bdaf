from typing import Optional
from fastapi import Request, Depends
from sqlmodel import Session

from .auth import authenticated_user_id
from .config import SESSION_COOKIE_NAME
from .database import get_session
from .errors import AdminRequired, NotAuthenticated
from .models.user import User


def get_request_credential(request: Request) -> Optional[str]:
    """Session token from an ``Authorization: Bearer`` header or the session cookie."""
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(SESSION_COOKIE_NAME)


def get_current_user(
    request: Request,
    db: Session = Depends(get_session)
) -> Optional[User]:
    """Get the current logged-in user, or None."""
    user_id = authenticated_user_id(db, get_request_credential(request))
    if user_id is None:
        return None
    return db.get(User, user_id)


def require_user(
    current_user: Optional[User] = Depends(get_current_user)
) -> User:
    """Require a logged-in user."""
    if not current_user:
        raise NotAuthenticated()
    return current_user


def require_admin(
    current_user: User = Depends(require_user)
) -> User:
    """Require an operator account."""
    if not current_user.is_admin:
        raise AdminRequired()
    return current_user
