# tableorder/services/order_service.py
"""
Order-session lifecycle.

A table is locked with a join code while it hosts a session. The session's
orders (kitchen tickets) move Pending -> Preparing -> Ready -> Served, and the
table is released once its last ticket is Served. All multi-row writes of one
operation are committed together; change events are published after commit.
"""
import calendar
import logging
import re
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterator, List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tableorder import crud
from tableorder.core.codes import generate_unique_join_code, is_well_formed_join_code
from tableorder.core.config import settings
from tableorder.core.exceptions import (
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from tableorder.db.base_class import utcnow
from tableorder.db.models.order import STATUS_FLOW, Order, OrderItem, OrderStatus
from tableorder.schemas.order import (
    HistoryAnalytics,
    OrderDetail,
    OrderHistory,
    OrderSearchFilters,
    OrderSearchResult,
    OrderSummary,
    Pagination,
)
from tableorder.services.notification_service import OrderEventPublisher

logger = logging.getLogger(__name__)

MOBILE_NUMBER_RE = re.compile(r"^\+?\d{7,15}$")
MOBILE_FORMATTING_RE = re.compile(r"[\s\-()]")
CENTS = Decimal("0.01")


def is_legal_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Forward moves (skips included) and same-status writes are legal; moving back is not."""
    return STATUS_FLOW.index(target) >= STATUS_FLOW.index(current)


def order_total(order: Order) -> Decimal:
    # Prices are read from the menu at display time, not snapshotted
    total = sum((item.menu_item.price * item.quantity for item in order.items), Decimal("0"))
    return Decimal(total).quantize(CENTS, rounding=ROUND_HALF_UP)


def humanize_age(moment: datetime, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    if moment.tzinfo is None:
        # SQLite hands back naive values; they are stored in UTC
        moment = moment.replace(tzinfo=timezone.utc)
    seconds = int((now - moment).total_seconds())
    if seconds < 60:
        return "just now"
    for unit_seconds, unit in ((86400, "day"), (3600, "hour"), (60, "minute")):
        if seconds >= unit_seconds:
            count = seconds // unit_seconds
            return f"{count} {unit}{'s' if count > 1 else ''} ago"
    return "just now"


def strip_mobile_formatting(mobile_number: Optional[str]) -> str:
    """Drops spaces, dashes and parentheses the way numbers are stored."""
    return MOBILE_FORMATTING_RE.sub("", mobile_number or "")


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


class OrderService:
    def __init__(self, db: Session, publisher: Optional[OrderEventPublisher] = None):
        self.db = db
        self.publisher = publisher

    # ------------------------------------------------------------------
    # Transaction and event plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store failure, transaction rolled back: {str(e)}")
            raise StoreError("The record store rejected the operation.") from e
        except Exception:
            self.db.rollback()
            raise

    @contextmanager
    def _reading(self) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store failure while reading: {str(e)}")
            raise StoreError("The record store could not be read.") from e

    def active_snapshot(self) -> List[OrderDetail]:
        return [OrderDetail.model_validate(o) for o in crud.order.get_active(self.db)]

    def _publish(self, event: str, order_id: Optional[str]) -> None:
        if not self.publisher:
            return
        try:
            self.publisher.publish_latest(event, order_id, self.active_snapshot)
        except SQLAlchemyError as e:
            logger.warning(f"Could not build the active-order snapshot for \"{event}\": {str(e)}")

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _clean_mobile_number(mobile_number: Optional[str]) -> str:
        cleaned = strip_mobile_formatting(mobile_number)
        if not cleaned:
            raise ValidationError("Mobile number is required.")
        if not MOBILE_NUMBER_RE.match(cleaned):
            raise ValidationError("Mobile number must have 7 to 15 digits.")
        return cleaned

    @staticmethod
    def _check_quantity(quantity) -> int:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("Quantity must be an integer.")
        return quantity

    @staticmethod
    def _coerce_status(status: Union[OrderStatus, str]) -> OrderStatus:
        try:
            return OrderStatus(status)
        except ValueError:
            allowed = ", ".join(s.value for s in OrderStatus)
            raise ValidationError(f"Unknown status \"{status}\". Allowed: {allowed}.")

    def _get_order_or_404(self, order_id: str) -> Order:
        order = crud.order.get(self.db, id=order_id)
        if not order:
            raise NotFoundError("Order not found.")
        return order

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def initialize(self, *, table_number: str, mobile_number: str) -> Tuple[Order, bool]:
        """
        Opens a session for a table, or rejoins the one already running.
        Returns (order, is_new_order). The rejoin path writes nothing.
        """
        table_number = (table_number or "").strip()
        if not table_number:
            raise ValidationError("Table number is required.")
        mobile_number = self._clean_mobile_number(mobile_number)

        with self._transaction():
            table = crud.table.get_by_number(self.db, table_number=table_number)
            if not table:
                raise NotFoundError(f"Table \"{table_number}\" not found.")
            table_id = table.id

            if table.locked and table.unique_code:
                existing = crud.order.get_active_by_table(self.db, table_id=table_id)
                if existing:
                    logger.info(f"Rejoin on table {table_number}: order {existing.id}")
                    return existing, False
                logger.warning(f"Table {table_number} is locked without an active order; releasing stale lock")
                if not crud.table.release(self.db, table_id=table_id, code=table.unique_code):
                    # A concurrent initialize repaired the table first; the lock below fails and joins it
                    logger.info(f"Stale lock on table {table_number} was already replaced")

            code = generate_unique_join_code(
                lambda candidate: crud.order.code_in_use(self.db, code=candidate),
                max_attempts=settings.JOIN_CODE_MAX_ATTEMPTS,
            )
            if not crud.table.lock(self.db, table_id=table_id, code=code):
                # A concurrent initialize claimed the table after our read
                existing = crud.order.get_active_by_table(self.db, table_id=table_id)
                if existing:
                    logger.info(f"Lost lock race on table {table_number}; joining order {existing.id}")
                    return existing, False
                raise ConflictError(f"Table \"{table_number}\" is held by a session that could not be resolved.")

            new_order = crud.order.create_for_table(self.db, table_id=table_id, code=code)
            crud.user.create(self.db, mobile_number=mobile_number, order_id=new_order.id)
            order_id = new_order.id

        logger.info(f"Session opened on table {table_number}: order {order_id}, code {code}")
        self._publish("order_created", order_id)
        return self.get_order(order_id), True

    def join_by_code(self, code: str) -> Order:
        code = (code or "").strip().upper()
        if not is_well_formed_join_code(code):
            raise ValidationError("Join code must be 6 letters or digits.")
        with self._reading():
            order = crud.order.get_active_by_code(self.db, code=code)
        if not order:
            raise NotFoundError("Invalid code: no active order uses it.")
        return order

    # ------------------------------------------------------------------
    # Line items
    # ------------------------------------------------------------------

    def add_item(
        self, *, order_id: str, menu_item_id: str, quantity: int, new_ticket: bool = False
    ) -> Tuple[OrderItem, str]:
        """
        Adds a dish to an order, merging with an existing line for the same dish.
        With new_ticket the dish opens a separate kitchen ticket in the same session.
        Returns (line item, id of the order it landed in).
        """
        quantity = self._check_quantity(quantity)
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than zero.")

        with self._transaction():
            order = self._get_order_or_404(order_id)
            if order.status == OrderStatus.SERVED:
                raise ConflictError("Order was already served; start a new session to order again.")
            menu_item = crud.menu_item.get(self.db, id=menu_item_id)
            if not menu_item:
                raise NotFoundError("Menu item not found.")
            if not menu_item.is_available:
                raise ValidationError(f"\"{menu_item.name}\" is not available.")

            target_id = order.id
            if new_ticket:
                ticket = crud.order.create_for_table(self.db, table_id=order.table_id, code=order.unique_code)
                target_id = ticket.id
                logger.info(f"New ticket {target_id} opened next to order {order.id}")

            item = crud.order_item.upsert(self.db, order_id=target_id, menu_id=menu_item.id, quantity=quantity)

        self._publish("order_item_added", target_id)
        return item, target_id

    def update_item_quantity(self, *, item_id: str, quantity: int) -> Tuple[Optional[OrderItem], bool]:
        """quantity <= 0 deletes the line; otherwise the stored quantity is overwritten."""
        quantity = self._check_quantity(quantity)

        with self._transaction():
            item = crud.order_item.get(self.db, id=item_id)
            if not item:
                raise NotFoundError("Order item not found.")
            order_id = item.order_id
            if item.order.status == OrderStatus.SERVED:
                raise ConflictError("Items of a served order can no longer change.")

            if quantity <= 0:
                crud.order_item.remove(self.db, db_obj=item)
                item, deleted = None, True
            else:
                item = crud.order_item.set_quantity(self.db, db_obj=item, quantity=quantity)
                deleted = False

        self._publish("order_item_removed" if deleted else "order_item_updated", order_id)
        return item, deleted

    def remove_item(self, *, item_id: str) -> None:
        self.update_item_quantity(item_id=item_id, quantity=0)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def advance_status(
        self, *, order_id: str, status: Union[OrderStatus, str], force: bool = False
    ) -> Order:
        """
        Moves an order along the kitchen flow. Reaching Served releases the table
        in the same transaction, unless another ticket of the session is still open.
        `force` lets an admin move an order backwards.
        """
        target = self._coerce_status(status)

        with self._transaction():
            order = self._get_order_or_404(order_id)
            current = order.status
            if current == target:
                return order
            if not force and not is_legal_transition(current, target):
                raise ConflictError(f"Cannot move order from {current.value} back to {target.value}.")

            table_id = order.table_id
            crud.order.set_status(self.db, db_obj=order, status=target)

            if target == OrderStatus.SERVED:
                if crud.order.count_active_by_table(self.db, table_id=table_id) == 0:
                    crud.table.unlock(self.db, table_id=table_id)
                    logger.info(f"Order {order_id} served; table {table_id} unlocked")
                else:
                    logger.info(f"Order {order_id} served; table {table_id} keeps other open tickets")
            elif current == OrderStatus.SERVED:
                # Forced reopen: the session comes back only if the table is still free
                table = crud.table.get(self.db, id=table_id)
                if table.locked and table.unique_code != order.unique_code:
                    raise ConflictError("The table already hosts another session.")
                if not table.locked:
                    if crud.order.code_in_use(self.db, code=order.unique_code, exclude_id=order_id):
                        raise ConflictError("The order's join code now belongs to another session.")
                    crud.table.force_lock(self.db, table_id=table_id, code=order.unique_code)
                logger.info(f"Order {order_id} reopened as {target.value}")

        logger.info(f"Order {order_id}: {current.value} -> {target.value}")
        self._publish("order_status_changed", order_id)
        return self.get_order(order_id)

    def reconcile_table_locks(self) -> int:
        """
        Repair sweep: a table is locked exactly when it has a non-Served order.
        Fixes tables left behind by interrupted writes. Returns how many were repaired.
        """
        repaired = 0
        with self._transaction():
            for table in crud.table.get_all(self.db):
                table_id, number = table.id, table.table_number
                locked, code = table.locked, table.unique_code
                active = crud.order.get_active_by_table(self.db, table_id=table_id)
                if active and (not locked or code != active.unique_code):
                    crud.table.force_lock(self.db, table_id=table_id, code=active.unique_code)
                    logger.warning(f"Table {number} re-locked for active order {active.id}")
                    repaired += 1
                elif not active and (locked or code):
                    crud.table.unlock(self.db, table_id=table_id)
                    logger.warning(f"Table {number} had a stale lock; unlocked")
                    repaired += 1
        return repaired

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        with self._reading():
            return self._get_order_or_404(order_id)

    def active_orders(self) -> List[Order]:
        with self._reading():
            return crud.order.get_active(self.db)

    def _summaries(self, orders: List[Order]) -> List[OrderSummary]:
        mobiles = crud.user.mobile_numbers_for_orders(self.db, order_ids=[o.id for o in orders])
        now = utcnow()
        return [
            OrderSummary(
                id=o.id,
                table_id=o.table_id,
                table_number=o.table.table_number if o.table else None,
                unique_code=o.unique_code,
                status=o.status,
                created_at=o.created_at,
                mobile_number=mobiles.get(o.id),
                item_count=sum(item.quantity for item in o.items),
                total=order_total(o),
                relative_time=humanize_age(o.created_at, now),
            )
            for o in orders
        ]

    def search_orders(self, filters: OrderSearchFilters) -> OrderSearchResult:
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError("start_date must not be after end_date.")

        with self._reading():
            orders, total = crud.order.search(
                self.db,
                table_number=filters.table_number,
                mobile_number=strip_mobile_formatting(filters.mobile_number) or None,
                order_code=filters.order_code.upper() if filters.order_code else None,
                status=filters.status,
                created_from=_day_start(filters.start_date) if filters.start_date else None,
                created_before=_day_start(filters.end_date + timedelta(days=1)) if filters.end_date else None,
                skip=filters.offset,
                limit=filters.limit,
            )
            summaries = self._summaries(orders)

        return OrderSearchResult(
            orders=summaries,
            pagination=Pagination(
                total=total,
                limit=filters.limit,
                offset=filters.offset,
                has_more=filters.offset + len(summaries) < total,
            ),
        )

    def order_history(
        self,
        *,
        filter_type: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        month: Optional[str] = None,
        year: Optional[str] = None,
    ) -> OrderHistory:
        """Served orders of a period with sales analytics."""
        created_from, created_before = self._history_period(filter_type, start_date, end_date, month, year)

        with self._reading():
            orders = crud.order.get_served_between(
                self.db, created_from=created_from, created_before=created_before
            )
            summaries = self._summaries(orders)

        total_orders = len(summaries)
        total_sales = sum((s.total for s in summaries), Decimal("0")).quantize(CENTS, rounding=ROUND_HALF_UP)
        average = (total_sales / total_orders).quantize(CENTS, rounding=ROUND_HALF_UP) if total_orders else Decimal("0.00")
        return OrderHistory(
            orders=summaries,
            analytics=HistoryAnalytics(
                total_orders=total_orders,
                total_sales=total_sales,
                total_items=sum(s.item_count for s in summaries),
                average_order=average,
            ),
        )

    @staticmethod
    def _history_period(
        filter_type: Optional[str],
        start_date: Optional[date],
        end_date: Optional[date],
        month: Optional[str],
        year: Optional[str],
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        if not filter_type or filter_type == "all":
            return None, None
        if filter_type == "dateRange":
            if not start_date or not end_date:
                raise ValidationError("dateRange needs start_date and end_date.")
            if start_date > end_date:
                raise ValidationError("start_date must not be after end_date.")
            return _day_start(start_date), _day_start(end_date + timedelta(days=1))
        if filter_type == "month":
            try:
                first = datetime.strptime(month or "", "%Y-%m").date()
            except ValueError:
                raise ValidationError("month must look like YYYY-MM.")
            last_day = calendar.monthrange(first.year, first.month)[1]
            return _day_start(first), _day_start(first.replace(day=last_day) + timedelta(days=1))
        if filter_type == "year":
            if not year or not year.isdigit() or len(year) != 4:
                raise ValidationError("year must look like YYYY.")
            return _day_start(date(int(year), 1, 1)), _day_start(date(int(year) + 1, 1, 1))
        raise ValidationError("filter_type must be one of: all, dateRange, month, year.")
