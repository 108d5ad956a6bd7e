# tableorder/db/models/menu_item.py
from sqlalchemy import Boolean, CheckConstraint, Column, Numeric, String, Text

from tableorder.db.base_class import Base


class MenuItem(Base):
    __tablename__ = "menu_items"
    __table_args__ = (CheckConstraint("price > 0", name="ck_menu_items_price_positive"),)

    name = Column(String(120), nullable=False, index=True)
    category = Column(String(50), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
