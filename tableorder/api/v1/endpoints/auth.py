# tableorder/api/v1/endpoints/auth.py
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from tableorder import schemas
from tableorder.api import deps
from tableorder.core import security
from tableorder.core.config import settings

router = APIRouter()


@router.post("/token", response_model=schemas.Token)
def login_access_token(form_data: OAuth2PasswordRequestForm = Depends()) -> Any:
    """
    OAuth2 compatible token login for the fixed admin account.
    """
    if not security.authenticate_admin(form_data.username, form_data.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return {
        "access_token": security.create_access_token(form_data.username, expires_delta=access_token_expires),
        "token_type": "bearer",
    }


@router.get("/me", response_model=schemas.TokenData)
def read_admin_me(current_admin: schemas.TokenData = Depends(deps.get_current_admin)) -> Any:
    """
    Test access token.
    """
    return current_admin
