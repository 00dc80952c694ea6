import asyncio

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from hometaste.db import PostgresStore
from hometaste.deps import get_current_principal, get_store, require_role
from hometaste.domain import Principal, Role
from hometaste.stats import DELIVERY_ACTIVE_STATUSES, compute_cook_stats, compute_delivery_stats, dish_categories, filter_dishes

router = APIRouter(tags=["dashboard"])

RECENT_ORDERS_LIMIT = 5


@router.get("/dashboard/cook")
async def cook_dashboard(
    principal: Principal = Depends(require_role(Role.COOK, "/cook/dashboard")),
    store: PostgresStore = Depends(get_store),
) -> JSONResponse:
    """Cook stats over all of the cook's orders, plus dishes and the most recent orders."""
    dishes, orders, reviews = await asyncio.gather(
        store.fetch_dishes_by_cook(principal.id),
        store.fetch_orders_by_role(principal.id, Role.COOK),
        store.fetch_reviews_for(principal.id),
    )
    stats = compute_cook_stats(principal.id, orders, reviews, dishes)
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "stats": stats.model_dump(mode="json"),
            "dishes": [d.model_dump(mode="json") for d in dishes],
            "recent_orders": [o.model_dump(mode="json") for o in orders[:RECENT_ORDERS_LIMIT]],
        },
    )


@router.get("/dashboard/delivery")
async def delivery_dashboard(
    principal: Principal = Depends(require_role(Role.DELIVERY, "/delivery/dashboard")),
    store: PostgresStore = Depends(get_store),
) -> JSONResponse:
    orders, reviews = await asyncio.gather(
        store.fetch_orders_by_role(principal.id, Role.DELIVERY),
        store.fetch_reviews_for(principal.id),
    )
    stats = compute_delivery_stats(principal.id, orders, reviews)
    active = [o for o in orders if o.status in DELIVERY_ACTIVE_STATUSES]
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "stats": stats.model_dump(mode="json"),
            "active_orders": [o.model_dump(mode="json") for o in active],
        },
    )


@router.get("/feed")
async def customer_feed(
    q: str = Query(default="", description="Matched against dish name, description and cook name"),
    category: str = Query(default=""),
    principal: Principal = Depends(require_role(Role.CUSTOMER, "/customer/feed")),
    store: PostgresStore = Depends(get_store),
) -> JSONResponse:
    dishes = await store.fetch_active_dishes()
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "categories": dish_categories(dishes),
            "dishes": [d.model_dump(mode="json") for d in filter_dishes(dishes, q, category)],
        },
    )


@router.get("/gamification/me")
async def my_gamification(
    principal: Principal = Depends(get_current_principal),
    store: PostgresStore = Depends(get_store),
) -> JSONResponse:
    record = await store.fetch_gamification(principal.id)
    return JSONResponse(status_code=200, content={"status": "ok", "gamification": record.model_dump(mode="json")})
