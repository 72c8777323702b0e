"""Account API endpoints.

    POST /api/users/login        -- authenticate and receive a JWT
    GET  /api/users/me           -- current user
    POST /api/users/logout       -- stateless; the client drops its token
    PUT  /api/users/me/password  -- change own password
    GET  /api/users              -- list accounts (admin only)
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_admin, require_auth
from ..core.config import settings
from ..core.token_factory import create_token
from ..database import get_db
from ..exceptions import AuthenticationError
from ..services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Authentication"])


# --- Request/Response schemas ---


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


class UserResponse(BaseModel):
    id: str
    username: str
    role: str


class LoginResponse(BaseModel):
    token: str
    user: UserResponse


class MeResponse(BaseModel):
    user: UserResponse


# --- Endpoints ---


@router.post("/login", response_model=LoginResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, data.username, data.password)
    token = create_token(
        subject=user.id,
        username=user.username,
        role=user.role,
        secret=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expires_hours=settings.token_expire_hours,
    )
    return LoginResponse(
        token=token,
        user=UserResponse(id=user.id, username=user.username, role=user.role),
    )


@router.get("/me", response_model=MeResponse)
def get_current_user(auth: AuthContext = Depends(require_auth)):
    return MeResponse(user=UserResponse(id=auth.user_id, username=auth.username, role=auth.role))


@router.post("/logout", status_code=204)
def logout(response: Response, auth: AuthContext = Depends(require_auth)):
    response.delete_cookie("token")
    logger.info("User logged out", extra={"username": auth.username})


@router.put("/me/password", status_code=204)
def change_password(
    data: PasswordChangeRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    if not settings.auth_enabled:
        raise AuthenticationError("Password changes require AUTH_ENABLED=true")
    auth_service.change_password(db, auth.user_id, data.current_password, data.new_password)


@router.get("", response_model=List[UserResponse])
def list_users(db: Session = Depends(get_db), _admin: AuthContext = Depends(require_admin)):
    return [
        UserResponse(id=u.id, username=u.username, role=u.role)
        for u in auth_service.list_users(db)
    ]
