# tableorder/crud/crud_order.py
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from tableorder.core.codes import new_id
from tableorder.core.exceptions import StoreError
from tableorder.db.base_class import utcnow
from tableorder.db.models.order import ACTIVE_STATUSES, Order, OrderItem, OrderStatus
from tableorder.db.models.table import DiningTable
from tableorder.db.models.user import User


def _with_details(query: Query) -> Query:
    return query.options(
        joinedload(Order.table),
        selectinload(Order.items).joinedload(OrderItem.menu_item),
    )


class CRUDOrder:
    def get(self, db: Session, id: str) -> Optional[Order]:
        return _with_details(db.query(Order)).filter(Order.id == id).first()

    def get_active_by_table(self, db: Session, *, table_id: str) -> Optional[Order]:
        """Most recent non-Served order of a table."""
        return (
            _with_details(db.query(Order))
            .filter(Order.table_id == table_id, Order.status.in_(ACTIVE_STATUSES))
            .order_by(Order.created_at.desc())
            .first()
        )

    def get_active_by_code(self, db: Session, *, code: str) -> Optional[Order]:
        # Served orders keep their code but no longer answer to it
        return (
            _with_details(db.query(Order))
            .filter(Order.unique_code == code, Order.status.in_(ACTIVE_STATUSES))
            .order_by(Order.created_at.desc())
            .first()
        )

    def get_active(self, db: Session) -> List[Order]:
        """Kitchen queue: oldest first."""
        return (
            _with_details(db.query(Order))
            .filter(Order.status.in_(ACTIVE_STATUSES))
            .order_by(Order.created_at.asc())
            .all()
        )

    def count_active_by_table(self, db: Session, *, table_id: str, exclude_id: Optional[str] = None) -> int:
        query = db.query(Order).filter(Order.table_id == table_id, Order.status.in_(ACTIVE_STATUSES))
        if exclude_id:
            query = query.filter(Order.id != exclude_id)
        return query.count()

    def code_in_use(self, db: Session, *, code: str, exclude_id: Optional[str] = None) -> bool:
        query = db.query(Order.id).filter(Order.unique_code == code, Order.status.in_(ACTIVE_STATUSES))
        if exclude_id:
            query = query.filter(Order.id != exclude_id)
        if query.first():
            return True
        return db.query(DiningTable.id).filter(DiningTable.unique_code == code).first() is not None

    def create_for_table(self, db: Session, *, table_id: str, code: str) -> Order:
        db_obj = Order(table_id=table_id, unique_code=code, status=OrderStatus.PENDING)
        db.add(db_obj)
        db.flush()
        return db_obj

    def set_status(self, db: Session, *, db_obj: Order, status: OrderStatus) -> Order:
        db_obj.status = status
        db.add(db_obj)
        db.flush()
        return db_obj

    def search(
        self,
        db: Session,
        *,
        table_number: Optional[str] = None,
        mobile_number: Optional[str] = None,
        order_code: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        created_from: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Order], int]:
        """Filtered page of orders, newest first, plus the total count of the filter."""
        query = db.query(Order).join(DiningTable, Order.table_id == DiningTable.id)
        if table_number:
            query = query.filter(func.lower(DiningTable.table_number) == table_number.lower())
        if mobile_number:
            matching = select(User.order_id).where(User.mobile_number.contains(mobile_number))
            query = query.filter(Order.id.in_(matching))
        if order_code:
            query = query.filter(Order.unique_code.ilike(f"%{order_code}%"))
        if status:
            query = query.filter(Order.status == status)
        if created_from:
            query = query.filter(Order.created_at >= created_from)
        if created_before:
            query = query.filter(Order.created_at < created_before)

        total = query.count()
        orders = _with_details(query).order_by(Order.created_at.desc()).offset(skip).limit(limit).all()
        return orders, total

    def get_served_between(
        self, db: Session, *, created_from: Optional[datetime] = None, created_before: Optional[datetime] = None
    ) -> List[Order]:
        query = _with_details(db.query(Order)).filter(Order.status == OrderStatus.SERVED)
        if created_from:
            query = query.filter(Order.created_at >= created_from)
        if created_before:
            query = query.filter(Order.created_at < created_before)
        return query.order_by(Order.created_at.desc()).all()


class CRUDOrderItem:
    def get(self, db: Session, id: str) -> Optional[OrderItem]:
        return db.query(OrderItem).filter(OrderItem.id == id).first()

    def get_by_order_and_menu(self, db: Session, *, order_id: str, menu_id: str) -> Optional[OrderItem]:
        return (
            db.query(OrderItem)
            .filter(OrderItem.order_id == order_id, OrderItem.menu_id == menu_id)
            .first()
        )

    def upsert(self, db: Session, *, order_id: str, menu_id: str, quantity: int) -> OrderItem:
        """
        Insert-or-increment keyed on (order_id, menu_id) in one statement,
        so concurrent adds of the same dish never produce two rows.
        """
        dialect = db.get_bind().dialect.name
        if dialect == "postgresql":
            insert = postgresql.insert
        elif dialect == "sqlite":
            insert = sqlite.insert
        else:
            raise StoreError(f"Atomic upsert is not supported on {dialect}.")

        table = OrderItem.__table__
        stmt = insert(table).values(
            id=new_id(),
            order_id=order_id,
            menu_id=menu_id,
            quantity=quantity,
            created_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.order_id, table.c.menu_id],
            set_={"quantity": table.c.quantity + stmt.excluded.quantity},
        )
        db.flush()
        db.execute(stmt)
        db.expire_all()
        return self.get_by_order_and_menu(db, order_id=order_id, menu_id=menu_id)

    def set_quantity(self, db: Session, *, db_obj: OrderItem, quantity: int) -> OrderItem:
        db_obj.quantity = quantity
        db.add(db_obj)
        db.flush()
        return db_obj

    def remove(self, db: Session, *, db_obj: OrderItem) -> None:
        db.delete(db_obj)
        db.flush()
        # Order.items collections already in the session still hold the row
        db.expire_all()


order = CRUDOrder()
order_item = CRUDOrderItem()
