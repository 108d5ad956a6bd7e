# tableorder/db/init_db.py
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from tableorder import crud
from tableorder.schemas.menu_item import MenuItemCreate
from tableorder.schemas.table import TableCreate

logger = logging.getLogger(__name__)

SAMPLE_TABLE_COUNT = 10

SAMPLE_MENU = [
    ("Garlic Bread", "Starters", "8.99", "Crispy bread with garlic butter and herbs"),
    ("Caesar Salad", "Starters", "12.99", "Fresh romaine lettuce, parmesan, croutons"),
    ("Chicken Wings", "Starters", "14.99", "Spicy buffalo wings with blue cheese dip"),
    ("Bruschetta", "Starters", "10.99", "Toasted bread with tomato, basil, and mozzarella"),
    ("Margherita Pizza", "Mains", "18.99", "Classic tomato sauce, mozzarella, and basil"),
    ("Grilled Salmon", "Mains", "26.99", "Atlantic salmon with lemon butter sauce"),
    ("Chicken Parmesan", "Mains", "22.99", "Breaded chicken breast with marinara and cheese"),
    ("Beef Burger", "Mains", "19.99", "Angus beef with lettuce, tomato, and fries"),
    ("Pasta Carbonara", "Mains", "17.99", "Creamy pasta with bacon and parmesan"),
    ("Coca Cola", "Drinks", "3.99", "Classic soft drink"),
    ("Orange Juice", "Drinks", "4.99", "Fresh squeezed orange juice"),
    ("Coffee", "Drinks", "2.99", "Premium roasted coffee"),
    ("Beer", "Drinks", "5.99", "Ice cold draft beer"),
    ("House Wine", "Drinks", "7.99", "Red or white wine by the glass"),
    ("Chocolate Cake", "Desserts", "8.99", "Rich chocolate cake with vanilla ice cream"),
    ("Tiramisu", "Desserts", "9.99", "Classic Italian dessert with coffee and mascarpone"),
    ("Ice Cream", "Desserts", "6.99", "Vanilla, chocolate, or strawberry"),
]


def init_db(db: Session) -> bool:
    """
    Seeds tables T01..T10 and a sample menu into an empty store.
    Returns False when tables already exist.
    """
    if crud.table.get_multi(db, limit=1):
        logger.info("Seed skipped: tables already exist")
        return False

    for i in range(1, SAMPLE_TABLE_COUNT + 1):
        crud.table.create(db, obj_in=TableCreate(table_number=f"T{i:02d}"))
    for name, category, price, description in SAMPLE_MENU:
        crud.menu_item.create(
            db,
            obj_in=MenuItemCreate(name=name, category=category, price=Decimal(price), description=description),
        )
    logger.info(f"Seeded {SAMPLE_TABLE_COUNT} tables and {len(SAMPLE_MENU)} menu items")
    return True
