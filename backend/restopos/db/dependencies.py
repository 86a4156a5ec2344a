"""FastAPI dependencies: database access, authentication and permissions."""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from restopos import config
from restopos.db.database import Database
from restopos.db.models import User
from restopos.errors import Forbidden, Internal, Unauthorized
from restopos.permissions import AuthUser, permissions_for_roles


def get_database(request: Request) -> Database:
    """Return the Database attached to the running app."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise Internal("Database is not configured", code="database_unavailable")
    return database


# ---------- Auth helpers ----------

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def hash_password(password: str) -> str:
    """Hash a plain text password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def to_auth_user(user: User) -> AuthUser:
    roles = list(user.roles or [])
    return AuthUser(id=user.id, username=user.username, roles=roles, permissions=permissions_for_roles(roles))


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    database: Database = Depends(get_database),
) -> AuthUser:
    """Resolve the user from the Bearer token or the session cookie."""
    token = token or request.cookies.get(config.SESSION_COOKIE_NAME)
    if not token:
        raise Unauthorized()

    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise Unauthorized("Could not validate credentials", code="invalid_token")

    with database.unit_of_work() as session:
        user = session.get(User, user_id)
        if user is None:
            raise Unauthorized("Could not validate credentials", code="invalid_token")
        return to_auth_user(user)


def require_permissions(any_of: Iterable[str] = (), all_of: Iterable[str] = ()):
    """Build a dependency that admits users holding the given permissions."""
    any_of = tuple(any_of)
    all_of = tuple(all_of)

    def dependency(current_user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if any_of and not current_user.has_any(any_of):
            raise Forbidden(f"Requires one of: {', '.join(any_of)}")
        if all_of and not current_user.has_all(all_of):
            raise Forbidden(f"Requires: {', '.join(all_of)}")
        return current_user

    return dependency


require_admin = require_permissions(all_of=("users:manage",))
