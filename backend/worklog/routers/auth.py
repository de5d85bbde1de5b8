"""Auth API routes: CSRF bootstrap, register, login, me, logout."""
import logging
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from worklog import security
from worklog.database import get_db
from worklog.schemas.common import MessageOut
from worklog.schemas.user import AuthResponse, CsrfOut, LoginRequest, RegisterRequest, UserEnvelope, UserOut
from worklog.services import auth_service

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(security.auth_rate_limit), Depends(security.require_csrf)])


@router.get("/csrf", response_model=CsrfOut)
def issue_csrf_token(response: Response):
    """Hand out a fresh CSRF token in the body and in a script-readable cookie."""
    token = security.new_csrf_token()
    security.set_csrf_cookie(response, token)
    return CsrfOut(token=token)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    user = auth_service.register_user(db, payload.name, payload.email, payload.password)
    security.set_session_cookie(response, auth_service.create_session_token(user))
    return AuthResponse(message="Registration completed.", user=UserOut.model_validate(user))


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, payload.email, payload.password)
    security.set_session_cookie(response, auth_service.create_session_token(user))
    return AuthResponse(message="Login successful.", user=UserOut.model_validate(user))


@router.get("/me", response_model=UserEnvelope)
def me(request: Request, db: Session = Depends(get_db)):
    """Current user; a token for a user that no longer exists drops the cookie."""
    ctx = security.get_session_context(request)
    user = auth_service.get_user(db, ctx.user_id)
    if user is None:
        logger.warning("Session for unknown user %s", ctx.user_id)
        stale = JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Invalid session."})
        security.clear_session_cookie(stale)
        return stale
    return UserEnvelope(user=UserOut.model_validate(user))


@router.post("/logout", response_model=MessageOut)
def logout(response: Response):
    security.clear_session_cookie(response)
    security.clear_csrf_cookie(response)
    return MessageOut(message="Logged out.")
