from fastapi import APIRouter

from tableorder.api.v1.endpoints import (
    auth,
    menu,
    order_items,
    orders,
    tables,
)

api_router_v1 = APIRouter()

api_router_v1.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router_v1.include_router(tables.router, prefix="/tables", tags=["Tables"])
api_router_v1.include_router(menu.router, prefix="/menu", tags=["Menu"])
api_router_v1.include_router(orders.router, prefix="/orders", tags=["Orders"])
api_router_v1.include_router(order_items.router, prefix="/order-items", tags=["Order Items"])

@api_router_v1.get("/", tags=["Root V1"])
async def read_root_v1():
    return {"message": "API V1 operational"}
