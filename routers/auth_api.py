import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import crud
from config import Settings
from dependencies import get_db, get_settings
from errors import AuthenticationError
from models import LoginIn, LoginResult
from security import issue_token, verify_password

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/auth/login", response_model=LoginResult)
def login_api(
    body: LoginIn,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    # username or NIK
    user = crud.find_login_user(db, body.username)
    if not user or not verify_password(user.password_hash, body.password):
        logger.info("login refused identifier=%s", body.username)
        raise AuthenticationError("invalid username or password")

    token = issue_token(
        user.id,
        user.role.value,
        secret_key=settings.secret_key,
        hours=settings.token_hours,
    )
    logger.info("login user_id=%s role=%s", user.id, user.role.value)
    return LoginResult(message="login successful", token=token, user=crud.get_user(db, user.id))
