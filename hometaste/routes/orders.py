from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from hometaste.db import PostgresStore
from hometaste.deps import get_current_principal, get_store, require_role
from hometaste.domain import OrderStatus, Principal, Role
from hometaste.errors import NotFoundError, UnauthorizedError
from hometaste.lifecycle import apply_transition

router = APIRouter(prefix="/orders", tags=["orders"])


class TransitionBody(BaseModel):
    status: OrderStatus = Field(..., description="Requested next status")


def _require_profile(principal: Principal) -> Role:
    if principal.role is None:
        raise UnauthorizedError("profile required", redirect_to="/auth")
    return principal.role


@router.get("")
async def list_orders(
    status: list[OrderStatus] | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    principal: Principal = Depends(get_current_principal),
    store: PostgresStore = Depends(get_store),
) -> JSONResponse:
    """The caller's orders as cook, customer or courier, newest first. Repeat `status` to filter."""
    role = _require_profile(principal)
    orders = await store.fetch_orders_by_role(principal.id, role, statuses=status, limit=limit)
    return JSONResponse(
        status_code=200,
        content={"status": "ok", "orders": [o.model_dump(mode="json") for o in orders]},
    )


@router.get("/available")
async def available_deliveries(
    limit: int = Query(default=50, ge=1, le=200),
    principal: Principal = Depends(require_role(Role.DELIVERY, "/delivery/dashboard")),
    store: PostgresStore = Depends(get_store),
) -> JSONResponse:
    """Ready delivery orders no courier has taken yet."""
    orders = await store.fetch_available_deliveries(limit=limit)
    return JSONResponse(
        status_code=200,
        content={"status": "ok", "orders": [o.model_dump(mode="json") for o in orders]},
    )


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    principal: Principal = Depends(get_current_principal),
    store: PostgresStore = Depends(get_store),
) -> JSONResponse:
    order = await store.fetch_order(order_id)
    visible_to = {order.customer_id, order.cook_id, order.delivery_id}
    if principal.id not in visible_to:
        # Hide existence from outsiders, except couriers looking at an order they could take
        if not (principal.role is Role.DELIVERY and order.status is OrderStatus.READY and order.delivery_id is None):
            raise NotFoundError("order", order_id)
    return JSONResponse(status_code=200, content={"status": "ok", "order": order.model_dump(mode="json")})


@router.post("/{order_id}/transition")
async def transition_order(
    order_id: str,
    body: TransitionBody,
    principal: Principal = Depends(get_current_principal),
    store: PostgresStore = Depends(get_store),
) -> JSONResponse:
    """
    Move an order to the requested status. 409 on an illegal edge, 403 on role or ownership
    mismatch, 404 for unknown orders, 503 when the store is unavailable.
    """
    updated = await apply_transition(store, order_id, principal, body.status)
    return JSONResponse(status_code=200, content={"status": "ok", "order": updated.model_dump(mode="json")})
