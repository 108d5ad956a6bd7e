# tableorder/db/models/table.py
from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String
from sqlalchemy.orm import relationship

from tableorder.db.base_class import Base


class DiningTable(Base):
    __tablename__ = "tables"
    __table_args__ = (
        # The active join code is present exactly while the table is locked
        CheckConstraint(
            "(locked AND unique_code IS NOT NULL) OR (NOT locked AND unique_code IS NULL)",
            name="ck_tables_lock_code",
        ),
    )

    table_number = Column(String(20), nullable=False, unique=True, index=True)  # Ex: "T01"
    locked = Column(Boolean, nullable=False, default=False)
    unique_code = Column(String(6), nullable=True, index=True)
    floor = Column(String(50), nullable=False, default="Ground Floor")
    seating_capacity = Column(Integer, nullable=False, default=4)

    # A table keeps every order it ever had; the most recent non-Served one is the active session
    orders = relationship(
        "Order",
        back_populates="table",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="desc(Order.created_at)",
    )

    def __repr__(self) -> str:
        return f"<DiningTable {self.table_number} locked={self.locked}>"
