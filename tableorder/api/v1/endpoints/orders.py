# tableorder/api/v1/endpoints/orders.py
import asyncio
import logging
from datetime import date
from typing import Any, AsyncIterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, WebSocket, WebSocketDisconnect, status
from starlette.concurrency import run_in_threadpool

from tableorder import schemas
from tableorder.api import deps
from tableorder.core.config import settings
from tableorder.core.exceptions import OrderingError
from tableorder.db.models.order import OrderStatus
from tableorder.services.notification_service import InMemoryOrderEventPublisher, OrderEventPublisher
from tableorder.services.order_service import OrderService
from tableorder.services.redis_service import redis_client

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/initialize", response_model=schemas.OrderInitializeResult)
def initialize_order(
    *,
    order_in: schemas.OrderInitialize,
    response: Response,
    service: OrderService = Depends(deps.get_order_service),
) -> Any:
    """
    Opens an ordering session for a table, or returns the session already running on it.
    """
    try:
        order, is_new_order = service.initialize(
            table_number=order_in.table_number, mobile_number=order_in.mobile_number
        )
        if is_new_order:
            response.status_code = status.HTTP_201_CREATED
        return {
            "order": schemas.OrderDetail.model_validate(order),
            "join_code": order.unique_code,
            "is_new_order": is_new_order,
        }
    except (HTTPException, OrderingError):
        raise
    except Exception as e:
        logger.error(f"Error initializing order on table {order_in.table_number}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not initialize the order",
        )


@router.get("/code/{code}", response_model=schemas.OrderDetail)
def read_order_by_code(code: str, service: OrderService = Depends(deps.get_order_service)) -> Any:
    """
    Joins a running session from its 6-character code.
    """
    return service.join_by_code(code)


@router.get("/active", response_model=List[schemas.OrderDetail])
def read_active_orders(service: OrderService = Depends(deps.get_order_service)) -> Any:
    """
    Kitchen queue: every order that is not Served yet, oldest first.
    """
    return service.active_orders()


@router.get("/search", response_model=schemas.OrderSearchResult)
def search_orders(
    service: OrderService = Depends(deps.get_order_service),
    table_number: Optional[str] = None,
    mobile_number: Optional[str] = None,
    order_code: Optional[str] = None,
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> Any:
    filters = schemas.OrderSearchFilters(
        table_number=table_number,
        mobile_number=mobile_number,
        order_code=order_code,
        status=order_status,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return service.search_orders(filters)


@router.get("/history", response_model=schemas.OrderHistory)
def read_order_history(
    service: OrderService = Depends(deps.get_order_service),
    filter_type: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    month: Optional[str] = None,
    year: Optional[str] = None,
) -> Any:
    """
    Served orders of a period (all, dateRange, month or year) with sales totals.
    """
    return service.order_history(
        filter_type=filter_type, start_date=start_date, end_date=end_date, month=month, year=year
    )


def _snapshot_then_release(service: OrderService, publisher: OrderEventPublisher) -> schemas.OrderEvent:
    try:
        return publisher.current_snapshot(
            lambda: [schemas.OrderDetail.model_validate(o) for o in service.active_orders()]
        )
    finally:
        # Streams stay open for hours; the pooled connection goes back now
        service.db.close()


async def _local_events(subscriber: asyncio.Queue, after_sequence: int) -> AsyncIterator[str]:
    while True:
        event = await subscriber.get()
        if event.sequence > after_sequence:
            yield event.model_dump_json()


async def _redis_events(pubsub, snapshot: schemas.OrderEvent) -> AsyncIterator[str]:
    async for message in pubsub.listen():
        if message.get("type") != "message":
            continue
        event = schemas.OrderEvent.model_validate_json(message["data"])
        # Any process may publish; drop what the snapshot already covers
        if event.timestamp >= snapshot.timestamp:
            yield message["data"]


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass


async def _forward(websocket: WebSocket, events: AsyncIterator[str]) -> None:
    async for payload in events:
        await websocket.send_text(payload)


async def _stream(
    websocket: WebSocket, snapshot: schemas.OrderEvent, events: Optional[AsyncIterator[str]]
) -> None:
    await websocket.send_text(snapshot.model_dump_json())

    tasks = {asyncio.create_task(_wait_for_disconnect(websocket))}
    if events is not None:
        tasks.add(asyncio.create_task(_forward(websocket, events)))
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
    for task in done:
        error = task.exception()
        if error and not isinstance(error, WebSocketDisconnect):
            logger.error(f"Order stream stopped: {str(error)}")


@router.websocket("/ws")
async def orders_stream(
    websocket: WebSocket,
    service: OrderService = Depends(deps.get_order_service),
    publisher: OrderEventPublisher = Depends(deps.get_event_publisher),
):
    """
    Live kitchen board. Sends the active orders once, then every change event.
    """
    await websocket.accept()
    try:
        if isinstance(publisher, InMemoryOrderEventPublisher):
            # Subscribed before the snapshot is read, so no change falls in between
            subscriber = publisher.subscribe()
            try:
                snapshot = await run_in_threadpool(_snapshot_then_release, service, publisher)
                await _stream(websocket, snapshot, _local_events(subscriber, snapshot.sequence))
            finally:
                publisher.unsubscribe(subscriber)
        else:
            async with redis_client.subscription(settings.EVENTS_CHANNEL) as pubsub:
                snapshot = await run_in_threadpool(_snapshot_then_release, service, publisher)
                # Without Redis the client only gets the snapshot and should poll /active
                await _stream(websocket, snapshot, _redis_events(pubsub, snapshot) if pubsub else None)
    except WebSocketDisconnect:
        logger.info("Order stream client disconnected")
    except OrderingError as e:
        logger.error(f"Order stream closed: {e.message}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)


@router.get("/{order_id}", response_model=schemas.OrderDetail)
def read_order(order_id: str, service: OrderService = Depends(deps.get_order_service)) -> Any:
    return service.get_order(order_id)


@router.put("/{order_id}/status", response_model=schemas.OrderDetail)
def update_order_status(
    *,
    order_id: str,
    status_in: schemas.OrderStatusUpdate,
    service: OrderService = Depends(deps.get_order_service),
    admin: Optional[schemas.TokenData] = Depends(deps.get_optional_admin),
) -> Any:
    """
    Moves an order along Pending, Preparing, Ready, Served. Served releases the table.
    Moving backwards needs `force` and an admin token.
    """
    if status_in.force and admin is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required to force a status")
    try:
        return service.advance_status(order_id=order_id, status=status_in.status, force=status_in.force)
    except (HTTPException, OrderingError):
        raise
    except Exception as e:
        logger.error(f"Error updating status of order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not update the order status",
        )


@router.post("/{order_id}/items", response_model=schemas.OrderItemAdded, status_code=status.HTTP_201_CREATED)
def add_order_item(
    *,
    order_id: str,
    item_in: schemas.OrderItemCreate,
    service: OrderService = Depends(deps.get_order_service),
) -> Any:
    """
    Adds a dish to the order. Adding a dish already on the order increases its quantity.
    """
    try:
        item, target_order_id = service.add_item(
            order_id=order_id,
            menu_item_id=item_in.menu_item_id,
            quantity=item_in.quantity,
            new_ticket=item_in.new_ticket,
        )
        return {"order_id": target_order_id, "item": item}
    except (HTTPException, OrderingError):
        raise
    except Exception as e:
        logger.error(f"Error adding item to order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not add the item",
        )
