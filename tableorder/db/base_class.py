from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import declarative_base, declared_attr

from tableorder.core.codes import new_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CustomBase:
    """
    Base class which provides automated table name
    and surrogate primary key column.
    """

    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower() + "s"  # Ex: Order -> orders

    # Random hex ids; order ids are handed to guests.
    id = Column(String(32), primary_key=True, default=new_id, index=True)
    # Set in Python to keep microseconds: the kitchen queue sorts on it.
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


Base = declarative_base(cls=CustomBase)
