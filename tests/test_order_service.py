from datetime import date, timedelta
from decimal import Decimal

import pytest

from tableorder import crud
from tableorder.core.codes import is_well_formed_join_code
from tableorder.core.exceptions import ConflictError, NotFoundError, ValidationError
from tableorder.db.base_class import utcnow
from tableorder.db.models import Order, OrderItem, OrderStatus, User
from tableorder.schemas.order import OrderSearchFilters
from tableorder.schemas.table import TableCreate
from tableorder.services.order_service import humanize_age, is_legal_transition

MOBILE = "+15551234567"


def _table(db, number):
    db.expire_all()
    return crud.table.get_by_number(db, table_number=number)


def _open(service, number="T01", mobile=MOBILE):
    order, _ = service.initialize(table_number=number, mobile_number=mobile)
    return order


# --- initialize / join ---

def test_initialize_opens_session_and_locks_table(db, service, tables):
    order, is_new = service.initialize(table_number="T01", mobile_number=MOBILE)

    assert is_new is True
    assert order.status == OrderStatus.PENDING
    assert order.items == []
    assert is_well_formed_join_code(order.unique_code)

    table = _table(db, "T01")
    assert table.locked is True
    assert table.unique_code == order.unique_code
    assert order.table_id == table.id

    users = crud.user.get_by_order(db, order_id=order.id)
    assert [u.mobile_number for u in users] == [MOBILE]


def test_second_initialize_rejoins(db, service, tables):
    first = _open(service)
    second, is_new = service.initialize(table_number="T01", mobile_number="5550001111")

    assert is_new is False
    assert second.id == first.id
    assert db.query(Order).count() == 1
    # The rejoin path writes nothing
    assert db.query(User).count() == 1


def test_initialize_validates_input(service, tables):
    with pytest.raises(NotFoundError):
        service.initialize(table_number="T99", mobile_number=MOBILE)
    with pytest.raises(ValidationError):
        service.initialize(table_number="  ", mobile_number=MOBILE)
    with pytest.raises(ValidationError):
        service.initialize(table_number="T01", mobile_number="")
    with pytest.raises(ValidationError):
        service.initialize(table_number="T01", mobile_number="12-ab")


def test_initialize_cleans_mobile_number(db, service, tables):
    order = _open(service, mobile="+1 (555) 123-4567")
    assert crud.user.get_by_order(db, order_id=order.id)[0].mobile_number == "+15551234567"


def test_initialize_repairs_stale_lock(db, service, tables):
    crud.table.force_lock(db, table_id=_table(db, "T02").id, code="STALE1")
    db.commit()

    order, is_new = service.initialize(table_number="T02", mobile_number=MOBILE)

    assert is_new is True
    assert order.unique_code != "STALE1"
    assert _table(db, "T02").unique_code == order.unique_code


def test_join_by_code_matches_rejoin(service, tables):
    order = _open(service)
    joined = service.join_by_code(order.unique_code.lower())
    rejoined, _ = service.initialize(table_number="T01", mobile_number=MOBILE)

    assert joined.id == order.id == rejoined.id
    assert joined.table.table_number == "T01"


def test_join_by_code_errors(service, tables):
    with pytest.raises(ValidationError):
        service.join_by_code("AB1")
    with pytest.raises(NotFoundError):
        service.join_by_code("ZZZZZZ")


# --- line items ---

def test_adding_same_dish_merges(db, service, menu):
    order = _open(service)
    pizza = menu["Margherita Pizza"]

    service.add_item(order_id=order.id, menu_item_id=pizza.id, quantity=2)
    item, target = service.add_item(order_id=order.id, menu_item_id=pizza.id, quantity=1)

    assert target == order.id
    assert item.quantity == 3
    assert db.query(OrderItem).filter(OrderItem.order_id == order.id).count() == 1


def test_add_item_rejections(service, menu):
    order = _open(service)
    pizza = menu["Margherita Pizza"]

    with pytest.raises(ValidationError):
        service.add_item(order_id=order.id, menu_item_id=pizza.id, quantity=0)
    with pytest.raises(ValidationError):
        service.add_item(order_id=order.id, menu_item_id=pizza.id, quantity=True)
    with pytest.raises(ValidationError):
        service.add_item(order_id=order.id, menu_item_id=menu["Lobster"].id, quantity=1)
    with pytest.raises(NotFoundError):
        service.add_item(order_id=order.id, menu_item_id="missing", quantity=1)
    with pytest.raises(NotFoundError):
        service.add_item(order_id="missing", menu_item_id=pizza.id, quantity=1)


def test_add_item_to_served_order_is_rejected(service, menu):
    order = _open(service)
    service.advance_status(order_id=order.id, status=OrderStatus.SERVED)

    with pytest.raises(ConflictError):
        service.add_item(order_id=order.id, menu_item_id=menu["Coffee"].id, quantity=1)


def test_update_quantity_overwrites_or_deletes(db, service, menu):
    order = _open(service)
    item, _ = service.add_item(order_id=order.id, menu_item_id=menu["Beer"].id, quantity=2)

    updated, deleted = service.update_item_quantity(item_id=item.id, quantity=5)
    assert deleted is False
    assert updated.quantity == 5

    removed, deleted = service.update_item_quantity(item_id=item.id, quantity=0)
    assert removed is None
    assert deleted is True
    assert crud.order_item.get(db, id=item.id) is None

    with pytest.raises(NotFoundError):
        service.update_item_quantity(item_id=item.id, quantity=1)


def test_remove_item(db, service, publisher, menu):
    order = _open(service)
    item, _ = service.add_item(order_id=order.id, menu_item_id=menu["Tiramisu"].id, quantity=1)
    service.remove_item(item_id=item.id)
    assert service.get_order(order.id).items == []
    assert publisher.events[-1].event == "order_item_removed"
    assert publisher.events[-1].orders[0].items == []


def test_served_items_are_frozen(service, menu):
    order = _open(service)
    item, _ = service.add_item(order_id=order.id, menu_item_id=menu["Beer"].id, quantity=2)
    service.advance_status(order_id=order.id, status="Served")

    with pytest.raises(ConflictError):
        service.update_item_quantity(item_id=item.id, quantity=3)


def test_new_ticket_shares_the_session(db, service, menu):
    order = _open(service)
    service.add_item(order_id=order.id, menu_item_id=menu["Coffee"].id, quantity=1)
    item, ticket_id = service.add_item(
        order_id=order.id, menu_item_id=menu["Chocolate Cake"].id, quantity=2, new_ticket=True
    )

    assert ticket_id != order.id
    ticket = service.get_order(ticket_id)
    assert ticket.unique_code == order.unique_code
    assert ticket.status == OrderStatus.PENDING
    assert [i.menu_id for i in ticket.items] == [menu["Chocolate Cake"].id]

    # The table stays locked until the last ticket is served
    service.advance_status(order_id=order.id, status=OrderStatus.SERVED)
    assert _table(db, "T01").locked is True
    assert service.join_by_code(order.unique_code).id == ticket_id

    service.advance_status(order_id=ticket_id, status=OrderStatus.SERVED)
    table = _table(db, "T01")
    assert table.locked is False
    assert table.unique_code is None


# --- status ---

def test_served_unlocks_table_and_retires_code(db, service, menu):
    order = _open(service)
    served = service.advance_status(order_id=order.id, status=OrderStatus.SERVED)

    assert served.status == OrderStatus.SERVED
    table = _table(db, "T01")
    assert table.locked is False
    assert table.unique_code is None
    with pytest.raises(NotFoundError):
        service.join_by_code(order.unique_code)

    fresh, is_new = service.initialize(table_number="T01", mobile_number=MOBILE)
    assert is_new is True
    assert fresh.id != order.id


def test_status_walks_forward(db, service, tables):
    order = _open(service)
    for status in (OrderStatus.PREPARING, OrderStatus.READY):
        assert service.advance_status(order_id=order.id, status=status).status == status
        assert _table(db, "T01").locked is True


def test_backward_move_needs_force(db, service, tables):
    order = _open(service)
    service.advance_status(order_id=order.id, status=OrderStatus.READY)

    with pytest.raises(ConflictError):
        service.advance_status(order_id=order.id, status=OrderStatus.PENDING)

    moved = service.advance_status(order_id=order.id, status=OrderStatus.PENDING, force=True)
    assert moved.status == OrderStatus.PENDING


def test_unknown_status_and_order(service, tables):
    order = _open(service)
    with pytest.raises(ValidationError):
        service.advance_status(order_id=order.id, status="Eaten")
    with pytest.raises(NotFoundError):
        service.advance_status(order_id="missing", status=OrderStatus.READY)


def test_served_to_served_is_a_noop(db, service, publisher, tables):
    order = _open(service)
    service.advance_status(order_id=order.id, status=OrderStatus.SERVED)
    # Another guest takes the table afterwards
    other = _open(service)
    events_before = len(publisher.events)

    again = service.advance_status(order_id=order.id, status=OrderStatus.SERVED)

    assert again.status == OrderStatus.SERVED
    assert _table(db, "T01").unique_code == other.unique_code
    assert len(publisher.events) == events_before


def test_forced_reopen_relocks_free_table(db, service, tables):
    order = _open(service)
    service.advance_status(order_id=order.id, status=OrderStatus.SERVED)

    service.advance_status(order_id=order.id, status=OrderStatus.READY, force=True)

    table = _table(db, "T01")
    assert table.locked is True
    assert table.unique_code == order.unique_code


def test_forced_reopen_conflicts_with_new_session(db, service, tables):
    order = _open(service)
    service.advance_status(order_id=order.id, status=OrderStatus.SERVED)
    _open(service)

    with pytest.raises(ConflictError):
        service.advance_status(order_id=order.id, status=OrderStatus.READY, force=True)
    assert service.get_order(order.id).status == OrderStatus.SERVED


def test_forced_reopen_conflicts_with_reused_code(db, service, tables, monkeypatch):
    monkeypatch.setattr("tableorder.core.codes.new_join_code", lambda: "AAAAAA")
    order = _open(service, "T01")
    service.advance_status(order_id=order.id, status=OrderStatus.SERVED)
    # The retired code is free again and goes to the next session
    other = _open(service, "T02")
    assert other.unique_code == "AAAAAA"

    with pytest.raises(ConflictError):
        service.advance_status(order_id=order.id, status=OrderStatus.READY, force=True)

    assert service.get_order(order.id).status == OrderStatus.SERVED
    assert _table(db, "T01").locked is False
    assert service.join_by_code("AAAAAA").id == other.id


def test_transition_rules():
    assert is_legal_transition(OrderStatus.PENDING, OrderStatus.SERVED)
    assert is_legal_transition(OrderStatus.READY, OrderStatus.READY)
    assert not is_legal_transition(OrderStatus.SERVED, OrderStatus.PENDING)
    assert not is_legal_transition(OrderStatus.READY, OrderStatus.PREPARING)


# --- repair sweep ---

def test_reconcile_repairs_both_directions(db, service, tables):
    order = _open(service)
    crud.table.unlock(db, table_id=order.table_id)
    crud.table.force_lock(db, table_id=_table(db, "T05").id, code="GHOST1")
    db.commit()

    assert service.reconcile_table_locks() == 2

    assert _table(db, "T01").unique_code == order.unique_code
    t05 = _table(db, "T05")
    assert t05.locked is False
    assert t05.unique_code is None
    assert service.reconcile_table_locks() == 0


# --- reads ---

def test_active_orders_oldest_first(service, tables):
    first = _open(service, "T03")
    second = _open(service, "T04")
    third = _open(service, "T05")
    service.advance_status(order_id=second.id, status=OrderStatus.SERVED)

    assert [o.id for o in service.active_orders()] == [first.id, third.id]


def test_search_pending_pages(db, service, tables):
    crud.table.create(db, obj_in=TableCreate(table_number="T11"))
    crud.table.create(db, obj_in=TableCreate(table_number="T12"))
    orders = [_open(service, f"T{i:02d}") for i in range(1, 13)]
    service.advance_status(order_id=orders[0].id, status=OrderStatus.SERVED)

    page = service.search_orders(OrderSearchFilters(status=OrderStatus.PENDING, limit=10))
    assert len(page.orders) == 10
    assert page.pagination.total == 11
    assert page.pagination.has_more is True
    # Newest first
    assert page.orders[0].id == orders[-1].id

    rest = service.search_orders(OrderSearchFilters(status=OrderStatus.PENDING, limit=10, offset=10))
    assert len(rest.orders) == 1
    assert rest.pagination.has_more is False


def test_search_filters_and_summary(service, menu):
    order = _open(service, "T07", mobile="+4915112345678")
    _open(service, "T08", mobile="5550000000")
    service.add_item(order_id=order.id, menu_item_id=menu["Margherita Pizza"].id, quantity=3)
    service.add_item(order_id=order.id, menu_item_id=menu["Coffee"].id, quantity=1)

    by_mobile = service.search_orders(OrderSearchFilters(mobile_number="4915"))
    assert [o.id for o in by_mobile.orders] == [order.id]
    summary = by_mobile.orders[0]
    assert summary.table_number == "T07"
    assert summary.mobile_number == "+4915112345678"
    assert summary.item_count == 4
    assert summary.total == Decimal("59.96")
    assert summary.relative_time == "just now"

    by_table = service.search_orders(OrderSearchFilters(table_number="t08"))
    assert by_table.pagination.total == 1

    by_code = service.search_orders(OrderSearchFilters(order_code=order.unique_code.lower()))
    assert order.id in [o.id for o in by_code.orders]

    today = date.today()
    with pytest.raises(ValidationError):
        service.search_orders(OrderSearchFilters(start_date=today, end_date=today - timedelta(days=1)))


def test_search_mobile_ignores_formatting(service, tables):
    order = _open(service, "T03", mobile="555-123-4567")

    for typed in ("555-123-4567", "(555) 123", "555 1234567"):
        found = service.search_orders(OrderSearchFilters(mobile_number=typed))
        assert [o.id for o in found.orders] == [order.id], typed


def test_search_table_number_is_exact(service, tables):
    order = _open(service, "T10")
    _open(service, "T01")

    assert service.search_orders(OrderSearchFilters(table_number="T1")).pagination.total == 0
    assert [o.id for o in service.search_orders(OrderSearchFilters(table_number="t10")).orders] == [order.id]


def test_history_analytics(service, menu):
    first = _open(service, "T01")
    service.add_item(order_id=first.id, menu_item_id=menu["Beer"].id, quantity=2)
    second = _open(service, "T02")
    service.add_item(order_id=second.id, menu_item_id=menu["Grilled Salmon"].id, quantity=1)
    _open(service, "T03")
    for order in (first, second):
        service.advance_status(order_id=order.id, status=OrderStatus.SERVED)

    history = service.order_history(filter_type="month", month=utcnow().strftime("%Y-%m"))
    assert {o.id for o in history.orders} == {first.id, second.id}
    assert history.analytics.total_orders == 2
    assert history.analytics.total_items == 3
    assert history.analytics.total_sales == Decimal("38.97")
    assert history.analytics.average_order == Decimal("19.49")

    assert service.order_history().analytics.total_orders == 2
    assert service.order_history(filter_type="year", year="1999").analytics.total_orders == 0
    assert service.order_history(filter_type="year", year="1999").analytics.average_order == Decimal("0.00")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"filter_type": "week"},
        {"filter_type": "month", "month": "2024-13"},
        {"filter_type": "year", "year": "24"},
        {"filter_type": "dateRange", "start_date": date(2024, 1, 2)},
    ],
)
def test_history_rejects_bad_periods(service, kwargs):
    with pytest.raises(ValidationError):
        service.order_history(**kwargs)


def test_humanize_age():
    now = utcnow()
    assert humanize_age(now - timedelta(seconds=30), now) == "just now"
    assert humanize_age(now - timedelta(minutes=1), now) == "1 minute ago"
    assert humanize_age(now - timedelta(minutes=5), now) == "5 minutes ago"
    assert humanize_age(now - timedelta(hours=2), now) == "2 hours ago"
    assert humanize_age((now - timedelta(days=3)).replace(tzinfo=None), now) == "3 days ago"


# --- events ---

def test_every_change_publishes_a_snapshot(service, publisher, menu):
    order = _open(service)
    item, _ = service.add_item(order_id=order.id, menu_item_id=menu["Coffee"].id, quantity=1)
    service.update_item_quantity(item_id=item.id, quantity=2)
    service.advance_status(order_id=order.id, status=OrderStatus.SERVED)

    assert [e.event for e in publisher.events] == [
        "order_created",
        "order_item_added",
        "order_item_updated",
        "order_status_changed",
    ]
    assert [o.id for o in publisher.events[0].orders] == [order.id]
    assert publisher.events[2].orders[0].items[0].quantity == 2
    # Served orders leave the active snapshot
    assert publisher.events[-1].orders == []


def test_rejoin_publishes_nothing(service, publisher, tables):
    _open(service)
    _open(service)
    assert len(publisher.events) == 1


def test_events_are_numbered_in_publish_order(service, publisher, menu):
    order = _open(service)
    service.add_item(order_id=order.id, menu_item_id=menu["Beer"].id, quantity=1)
    service.advance_status(order_id=order.id, status=OrderStatus.PREPARING)

    assert [e.sequence for e in publisher.events] == [1, 2, 3]
    snapshot = publisher.current_snapshot(service.active_snapshot)
    assert snapshot.event == "snapshot"
    assert snapshot.sequence == 3
    assert [o.id for o in snapshot.orders] == [order.id]
