# tableorder/schemas/__init__.py
from .menu_item import MenuItem, MenuItemCreate, MenuItemUpdate
from .order import (
    HistoryAnalytics,
    Order,
    OrderDetail,
    OrderEvent,
    OrderHistory,
    OrderInitialize,
    OrderInitializeResult,
    OrderItem,
    OrderItemAdded,
    OrderItemCreate,
    OrderItemQuantityResult,
    OrderItemQuantityUpdate,
    OrderSearchFilters,
    OrderSearchResult,
    OrderStatusUpdate,
    OrderSummary,
    Pagination,
)
from .table import ReconcileResult, Table, TableCreate, TableUpdate
from .token import Token, TokenData
