from .crud_menu_item import menu_item
from .crud_order import order, order_item
from .crud_table import table
from .crud_user import user
