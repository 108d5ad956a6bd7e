# tableorder/api/deps.py
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import ValidationError
from sqlalchemy.orm import Session

from tableorder.core import security
from tableorder.core.config import settings
from tableorder.database import get_db
from tableorder.schemas.token import TokenData
from tableorder.services.notification_service import OrderEventPublisher, event_publisher
from tableorder.services.order_service import OrderService

reusable_oauth2 = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/token")
optional_oauth2 = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/token", auto_error=False)


def get_event_publisher() -> OrderEventPublisher:
    return event_publisher


def get_order_service(
    db: Session = Depends(get_db),
    publisher: OrderEventPublisher = Depends(get_event_publisher),
) -> OrderService:
    return OrderService(db, publisher)


def get_current_admin(token: str = Depends(reusable_oauth2)) -> TokenData:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    payload = security.decode_token(token)
    if payload is None or payload.get("type") != "access":
        raise credentials_exception
    try:
        token_data = TokenData(username=payload.get("sub"))
    except ValidationError:
        raise credentials_exception
    if token_data.username != settings.ADMIN_USERNAME:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return token_data


def get_optional_admin(token: Optional[str] = Depends(optional_oauth2)) -> Optional[TokenData]:
    """Guests send no token; a token that is sent must still be a valid admin token."""
    if not token:
        return None
    return get_current_admin(token)
