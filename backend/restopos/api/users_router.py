"""Admin user management API."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select, update

from restopos.api.responses import ok
from restopos.db.database import Database
from restopos.db.dependencies import get_database, hash_password, require_admin
from restopos.db.models import Expense, Order, Purchase, Sale, User, Waste
from restopos.errors import Conflict, Forbidden, InvalidInput, NotFound
from restopos.permissions import ROLE_PERMISSIONS, AuthUser
from restopos.utils.time_utils import iso_utc


router = APIRouter(prefix="/api/users", tags=["users"])


class CreateUserRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)
    roles: list[str] = []


class UpdateUserRequest(BaseModel):
    roles: Optional[list[str]] = None
    password: Optional[str] = None


def validate_roles(roles: list[str]) -> list[str]:
    invalid = [role for role in roles if role not in ROLE_PERMISSIONS]
    if invalid:
        raise InvalidInput(f"Invalid roles: {', '.join(invalid)}", code="invalid_roles")
    return list(dict.fromkeys(roles))


def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "roles": user.roles or [],
        "created_at": iso_utc(user.created_at),
    }


@router.get("", summary="List users (admin-only)")
def list_users(database: Database = Depends(get_database), admin: AuthUser = Depends(require_admin)):
    with database.unit_of_work() as session:
        users = session.execute(select(User).order_by(User.created_at.desc())).scalars()
        return ok([_user_to_dict(user) for user in users])


@router.post("", summary="Create user (admin-only)")
def create_user(
    payload: CreateUserRequest,
    database: Database = Depends(get_database),
    admin: AuthUser = Depends(require_admin),
):
    with database.unit_of_work() as session:
        username = payload.username.strip()
        if session.execute(select(User.id).where(User.username == username)).first() is not None:
            raise Conflict("username already exists", code="user_exists")

        user = User(
            username=username,
            password_hash=hash_password(payload.password),
            roles=validate_roles(payload.roles),
        )
        session.add(user)
        session.flush()
        return ok(_user_to_dict(user), status_code=201)


@router.put("/{user_id}", summary="Update user (admin-only)")
def update_user(
    user_id: int,
    payload: UpdateUserRequest,
    database: Database = Depends(get_database),
    admin: AuthUser = Depends(require_admin),
):
    with database.unit_of_work() as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound("user", user_id)

        if payload.roles is not None:
            user.roles = validate_roles(payload.roles)
        if payload.password is not None:
            if not payload.password:
                raise InvalidInput("password cannot be empty", code="invalid_password")
            user.password_hash = hash_password(payload.password)

        session.flush()
        return ok(_user_to_dict(user))


@router.delete("/{user_id}", summary="Delete user (admin-only)")
def delete_user(
    user_id: int,
    database: Database = Depends(get_database),
    admin: AuthUser = Depends(require_admin),
):
    with database.unit_of_work() as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound("user", user_id)
        if user.id == admin.id:
            raise Forbidden("You cannot delete your own account", code="cannot_delete_self")

        # Keep history; only the author reference goes away
        for model in (Order, Sale, Purchase, Waste, Expense):
            session.execute(
                update(model)
                .where(model.created_by_id == user.id)
                .values(created_by_id=None)
                .execution_options(synchronize_session=False)
            )
        session.delete(user)
        return ok({"deleted": user_id})
