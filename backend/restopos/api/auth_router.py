"""Auth endpoints: bootstrap signup, login, logout, current user."""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy import func, select

from restopos import config
from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import (
    create_access_token,
    get_current_user,
    get_database,
    hash_password,
    to_auth_user,
    verify_password,
)
from restopos.db.models import User
from restopos.errors import Conflict, Forbidden, RateLimited, Unauthorized
from restopos.permissions import ROLE_PERMISSIONS, AuthUser
from restopos.api.users_router import validate_roles


router = APIRouter(prefix="/api/auth", tags=["auth"])


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)
    roles: Optional[list[str]] = None


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


def _user_payload(user: AuthUser) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "roles": user.roles,
        "permissions": sorted(user.permissions),
    }


@router.post("/signup", summary="Create a user (dev/bootstrap)")
def signup_user(payload: SignupRequest, database: Database = Depends(get_database)):
    """
    Create a user for dev/bootstrap.

    Allowed when ENVIRONMENT=dev or when no users exist yet. The very first
    user becomes admin when no roles are given.
    """
    with database.unit_of_work() as session:
        existing_users = session.execute(select(func.count(User.id))).scalar_one()
        if not config.is_dev() and existing_users > 0:
            raise Forbidden("Signup disabled", code="signup_disabled")

        username = payload.username.strip()
        if session.execute(select(User.id).where(User.username == username)).first() is not None:
            raise Conflict("username already exists", code="user_exists")

        roles = validate_roles(payload.roles if payload.roles is not None else (["admin"] if existing_users == 0 else []))
        user = User(username=username, password_hash=hash_password(payload.password), roles=roles)
        session.add(user)
        session.flush()
        return ok(_user_payload(to_auth_user(user)), status_code=201)


@router.post("/login", summary="Login and get a session token")
def login_user(payload: LoginRequest, request: Request, database: Database = Depends(get_database)):
    """Authenticate a user, return a JWT and set it as the session cookie."""
    client = request.client.host if request.client else "unknown"
    limiter = request.app.state.rate_limiter
    if not limiter.attempt(f"login:{client}:{payload.username.strip().lower()}"):
        raise RateLimited()

    with database.unit_of_work() as session:
        user = session.execute(select(User).where(User.username == payload.username.strip())).scalar_one_or_none()
        if user is None or not verify_password(payload.password, user.password_hash):
            raise Unauthorized("Invalid credentials", code="invalid_credentials")
        auth_user = to_auth_user(user)

    access_token = create_access_token(
        data={"sub": str(auth_user.id), "roles": auth_user.roles},
        expires_delta=timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    response = ok({"access_token": access_token, "token_type": "bearer", "user": _user_payload(auth_user)})
    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        access_token,
        max_age=config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=not config.is_dev(),
    )
    return response


@router.post("/logout", summary="Clear the session cookie")
def logout_user():
    response = ok({"logged_out": True})
    response.delete_cookie(config.SESSION_COOKIE_NAME)
    return response


@router.get("/me", summary="Current user and permissions")
def read_me(current_user: AuthUser = Depends(get_current_user)):
    return ok(_user_payload(current_user))


@router.get("/roles", summary="Known roles and their permissions")
def list_roles(current_user: AuthUser = Depends(get_current_user)):
    return ok({role: sorted(codes) for role, codes in ROLE_PERMISSIONS.items()})
