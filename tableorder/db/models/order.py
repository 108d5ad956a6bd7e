# tableorder/db/models/order.py
import enum

from sqlalchemy import CheckConstraint, Column, Enum as SAEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from tableorder.db.base_class import Base


class OrderStatus(str, enum.Enum):
    PENDING = "Pending"
    PREPARING = "Preparing"
    READY = "Ready"
    SERVED = "Served"  # Terminal: frees the table


# Position in the kitchen flow, used for transition checks
STATUS_FLOW = [OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.SERVED]
ACTIVE_STATUSES = [s for s in STATUS_FLOW if s != OrderStatus.SERVED]


class Order(Base):
    # id, created_at are inherited from Base

    table_id = Column(String(32), ForeignKey("tables.id", ondelete="CASCADE"), nullable=False, index=True)
    # Copied from the table when the session starts; stays on the order after the table is reused
    unique_code = Column(String(6), nullable=False, index=True)
    status = Column(
        SAEnum(
            OrderStatus,
            name="order_status",
            native_enum=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
    )

    table = relationship("DiningTable", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.created_at",
    )

    @property
    def is_active(self) -> bool:
        return self.status != OrderStatus.SERVED


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        UniqueConstraint("order_id", "menu_id", name="uq_order_items_order_menu"),
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    order_id = Column(String(32), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_id = Column(String(32), ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem", lazy="joined")
