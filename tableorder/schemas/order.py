# tableorder/schemas/order.py
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from tableorder.db.models.order import OrderStatus
from tableorder.schemas.menu_item import MenuItem
from tableorder.schemas.table import Table


# --- OrderItem Schemas ---
class OrderItemCreate(BaseModel):
    menu_item_id: str
    quantity: int = Field(..., gt=0)
    # Start a separate kitchen ticket for this round instead of extending the located order
    new_ticket: bool = False


class OrderItemQuantityUpdate(BaseModel):
    quantity: int  # <= 0 removes the line item


class OrderItem(BaseModel):
    id: str
    order_id: str
    menu_id: str
    quantity: int
    created_at: datetime
    menu_item: Optional[MenuItem] = None

    class Config:
        from_attributes = True


class OrderItemAdded(BaseModel):
    order_id: str
    item: OrderItem


class OrderItemQuantityResult(BaseModel):
    deleted: bool
    item: Optional[OrderItem] = None


# --- Order Schemas ---
class Order(BaseModel):
    id: str
    table_id: str
    unique_code: str
    status: OrderStatus
    created_at: datetime

    class Config:
        from_attributes = True


class OrderDetail(Order):
    table: Optional[Table] = None
    items: List[OrderItem] = []


class OrderInitialize(BaseModel):
    table_number: str = Field(..., min_length=1)
    mobile_number: str = Field(..., min_length=1)


class OrderInitializeResult(BaseModel):
    order: OrderDetail
    join_code: str
    is_new_order: bool


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    # Admin override: allows moving an order backwards
    force: bool = False


# --- Search / history ---
class OrderSummary(BaseModel):
    id: str
    table_id: str
    table_number: Optional[str] = None
    unique_code: str
    status: OrderStatus
    created_at: datetime
    mobile_number: Optional[str] = None
    item_count: int
    total: Decimal
    relative_time: str


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class OrderSearchResult(BaseModel):
    orders: List[OrderSummary]
    pagination: Pagination


class OrderSearchFilters(BaseModel):
    table_number: Optional[str] = None
    mobile_number: Optional[str] = None
    order_code: Optional[str] = None
    status: Optional[OrderStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    limit: int = Field(20, ge=1, le=200)
    offset: int = Field(0, ge=0)


class HistoryAnalytics(BaseModel):
    total_orders: int
    total_sales: Decimal
    total_items: int
    average_order: Decimal


class OrderHistory(BaseModel):
    orders: List[OrderSummary]
    analytics: HistoryAnalytics


# Payload published on every order/order item change
class OrderEvent(BaseModel):
    event: str
    order_id: Optional[str] = None
    # Per publisher, increasing; a snapshot carries the last sequence already published
    sequence: int = 0
    timestamp: datetime
    orders: List[OrderDetail]
