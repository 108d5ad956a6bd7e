# tableorder/db/models/user.py
from sqlalchemy import Column, String

from tableorder.db.base_class import Base


class User(Base):
    """Mobile number captured when a guest opens a session."""

    mobile_number = Column(String(20), nullable=False, index=True)
    # Audit link only, deliberately not a foreign key
    order_id = Column(String(32), nullable=True, index=True)
