from collections.abc import Generator
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from config import Settings
from db import Database
from errors import AuthenticationError, AuthorizationError
from models import Role
from orm import UserORM
from security import token_user_id

# missing or malformed headers are reported through our own error envelope
auth_scheme = HTTPBearer(auto_error=False)


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator[Session, None, None]:
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> UserORM:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("access token required")

    user_id = token_user_id(credentials.credentials, secret_key=settings.secret_key)
    user = db.get(UserORM, user_id)
    if not user or not user.is_active:
        raise AuthenticationError("user not found or inactive")
    return user


def require_roles(*roles: Role):
    allowed = set(roles)

    def _check(user: UserORM = Depends(get_current_user)) -> UserORM:
        if user.role not in allowed:
            raise AuthorizationError("insufficient permissions")
        return user

    return _check


require_admin = require_roles(Role.ADMIN)
require_admin_or_management = require_roles(Role.ADMIN, Role.MANAGEMENT)
