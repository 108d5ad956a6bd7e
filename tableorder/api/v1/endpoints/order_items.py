# tableorder/api/v1/endpoints/order_items.py
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from tableorder import schemas
from tableorder.api import deps
from tableorder.core.exceptions import OrderingError
from tableorder.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.put("/{item_id}/quantity", response_model=schemas.OrderItemQuantityResult)
def update_item_quantity(
    *,
    item_id: str,
    quantity_in: schemas.OrderItemQuantityUpdate,
    service: OrderService = Depends(deps.get_order_service),
) -> Any:
    """
    Sets the quantity of a line item. Zero or less removes it.
    """
    try:
        item, deleted = service.update_item_quantity(item_id=item_id, quantity=quantity_in.quantity)
        return {"deleted": deleted, "item": item}
    except (HTTPException, OrderingError):
        raise
    except Exception as e:
        logger.error(f"Error updating quantity of item {item_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not update the item quantity",
        )


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order_item(item_id: str, service: OrderService = Depends(deps.get_order_service)) -> None:
    service.remove_item(item_id=item_id)
