from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlmodel import Session

from app.auth import authenticate_user, create_session, delete_session
from app.config import SESSION_COOKIE_NAME, SESSION_EXPIRE_DAYS
from app.database import get_session
from app.dependencies import get_request_credential
from app.errors import NotAuthenticated, ValidationError
from app.models import Team
from app.schemas import user_response

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


@router.post("/login")
def login(
    payload: LoginRequest,
    db: Session = Depends(get_session)
):
    """Exchange email and password for a session token."""
    if not payload.email or not payload.password:
        raise ValidationError("Email and password are required")

    user = authenticate_user(db, payload.email, payload.password)
    if not user:
        raise NotAuthenticated("Invalid email or password")

    issued = create_session(db, user.id)
    team = db.get(Team, user.team_id) if user.team_id else None

    response = JSONResponse({
        "success": True,
        "message": "Login successful",
        "token": issued.token,
        "user": user_response(user, team).model_dump(mode="json")
    })
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=issued.token,
        httponly=True,
        max_age=SESSION_EXPIRE_DAYS * 24 * 60 * 60,
        samesite="lax"
    )
    return response


@router.post("/logout")
def logout(
    request: Request,
    db: Session = Depends(get_session)
):
    token = get_request_credential(request)
    if token:
        delete_session(db, token)

    response = JSONResponse({"success": True, "message": "Logged out"})
    response.delete_cookie(key=SESSION_COOKIE_NAME)
    return response
