# Import every model so Base.metadata (create_all, Alembic autogenerate) sees them
from tableorder.db.models.table import DiningTable
from tableorder.db.models.menu_item import MenuItem
from tableorder.db.models.order import ACTIVE_STATUSES, STATUS_FLOW, Order, OrderItem, OrderStatus
from tableorder.db.models.user import User

__all__ = [
    "ACTIVE_STATUSES",
    "DiningTable",
    "MenuItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "STATUS_FLOW",
    "User",
]
