# tableorder/schemas/menu_item.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from tableorder.core.config import settings


def _check_category(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in settings.MENU_CATEGORIES:
        raise ValueError(f"Category must be one of: {', '.join(settings.MENU_CATEGORIES)}")
    return v


class MenuItemBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    category: str
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_available: Optional[bool] = True

    @field_validator("category")
    @classmethod
    def category_must_be_known(cls, v):
        return _check_category(v)


class MenuItemCreate(MenuItemBase):
    pass


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    category: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_available: Optional[bool] = None

    @field_validator("category")
    @classmethod
    def category_must_be_known(cls, v):
        return _check_category(v)


class MenuItem(BaseModel):
    id: str
    name: str
    category: str
    price: Decimal
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_available: bool
    created_at: datetime

    class Config:
        from_attributes = True
