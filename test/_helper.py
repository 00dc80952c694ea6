"""
Shared helpers for the test modules: record factories and an in-memory store
with the same interface as hometaste.db.PostgresStore (transactions roll back on error).
"""
import copy
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal

from hometaste.domain import (
    DeliveryType,
    Dish,
    GamificationDelta,
    GamificationRecord,
    Order,
    OrderStatus,
    Principal,
    Profile,
    Review,
    Role,
)
from hometaste.errors import NotFoundError
from hometaste.gamification import apply_delta

CREATED_AT = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

COOK = Principal(id="cook-1", role=Role.COOK)
OTHER_COOK = Principal(id="cook-2", role=Role.COOK)
CUSTOMER = Principal(id="cust-1", role=Role.CUSTOMER)
OTHER_CUSTOMER = Principal(id="cust-2", role=Role.CUSTOMER)
COURIER = Principal(id="C1", role=Role.DELIVERY)
OTHER_COURIER = Principal(id="C2", role=Role.DELIVERY)
NO_PROFILE = Principal(id="ghost-1", role=None)


def make_order(
    order_id: str = "ord-1",
    status: OrderStatus = OrderStatus.PENDING,
    total_price: str = "20.00",
    delivery_id: str | None = None,
    delivery_type: DeliveryType = DeliveryType.DELIVERY,
    **overrides,
) -> Order:
    fields = {
        "id": order_id,
        "customer_id": CUSTOMER.id,
        "cook_id": COOK.id,
        "delivery_id": delivery_id,
        "dish_id": "dish-1",
        "quantity": 1,
        "total_price": Decimal(total_price),
        "delivery_type": delivery_type,
        "status": status,
        "delivery_address_id": "addr-1" if delivery_type is DeliveryType.DELIVERY else None,
        "created_at": CREATED_AT,
        "updated_at": CREATED_AT,
    }
    fields.update(overrides)
    return Order(**fields)


def make_review(rating: int, reviewed_id: str = COOK.id, review_id: str | None = None) -> Review:
    return Review(
        id=review_id or f"rev-{reviewed_id}-{rating}",
        order_id="ord-1",
        reviewer_id=CUSTOMER.id,
        reviewed_id=reviewed_id,
        rating=rating,
    )


def make_dish(
    dish_id: str,
    name: str,
    description: str = "",
    category: str = "",
    cook_name: str | None = "Maria Souza",
    is_active: bool = True,
    cook_id: str = COOK.id,
) -> Dish:
    return Dish(
        id=dish_id,
        cook_id=cook_id,
        cook_name=cook_name,
        name=name,
        description=description,
        price=Decimal("15.00"),
        category=category,
        is_active=is_active,
    )


class InMemoryTransaction:
    def __init__(self, store: "InMemoryStore"):
        self.store = store

    async def fetch_order_for_update(self, order_id: str) -> Order:
        return await self.store.fetch_order(order_id)

    async def write_order_status(self, order_id, status, delivery_id, updated_at) -> None:
        order = self.store.orders[order_id]
        self.store.orders[order_id] = order.model_copy(
            update={"status": status, "delivery_id": delivery_id, "updated_at": updated_at}
        )
        self.store.status_writes.append((order_id, status))

    async def write_gamification(self, user_id: str, delta: GamificationDelta) -> GamificationRecord:
        if user_id in self.store.fail_gamification_for:
            raise self.store.fail_gamification_for[user_id]
        current = self.store.gamification.get(user_id) or GamificationRecord(user_id=user_id)
        record = apply_delta(current, delta)
        self.store.gamification[user_id] = record
        self.store.gamification_writes.append((user_id, delta))
        return record


class InMemoryStore:
    """Dict-backed store. A transaction snapshots all tables and restores them if its body raises."""

    def __init__(self, orders=(), reviews=(), dishes=(), profiles=()):
        self.orders: dict[str, Order] = {o.id: o for o in orders}
        self.reviews: list[Review] = list(reviews)
        self.dishes: list[Dish] = list(dishes)
        self.profiles: dict[str, Profile] = {p.id: p for p in profiles}
        self.gamification: dict[str, GamificationRecord] = {}
        self.status_writes: list = []
        self.gamification_writes: list = []
        self.fail_gamification_for: dict[str, Exception] = {}
        self.fail_reads: Exception | None = None

    def _check_reads(self) -> None:
        if self.fail_reads:
            raise self.fail_reads

    @asynccontextmanager
    async def transaction(self):
        snapshot = copy.copy(self.orders), copy.copy(self.gamification)
        writes = len(self.status_writes), len(self.gamification_writes)
        try:
            yield InMemoryTransaction(self)
        except BaseException:
            self.orders, self.gamification = snapshot
            del self.status_writes[writes[0]:]
            del self.gamification_writes[writes[1]:]
            raise

    async def fetch_order(self, order_id: str) -> Order:
        self._check_reads()
        if order_id not in self.orders:
            raise NotFoundError("order", order_id)
        return self.orders[order_id]

    async def fetch_orders_by_role(self, user_id, role, statuses=None, limit=None) -> list[Order]:
        self._check_reads()
        column = {Role.COOK: "cook_id", Role.CUSTOMER: "customer_id", Role.DELIVERY: "delivery_id"}[role]
        wanted = set(statuses) if statuses is not None else None
        orders = [
            o for o in self.orders.values()
            if getattr(o, column) == user_id and (wanted is None or o.status in wanted)
        ]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders[:limit] if limit is not None else orders

    async def fetch_available_deliveries(self, limit: int = 50) -> list[Order]:
        self._check_reads()
        return [
            o for o in self.orders.values()
            if o.status is OrderStatus.READY and o.delivery_type is DeliveryType.DELIVERY and o.delivery_id is None
        ][:limit]

    async def fetch_reviews_for(self, user_id: str) -> list[Review]:
        self._check_reads()
        return [r for r in self.reviews if r.reviewed_id == user_id]

    async def fetch_dishes_by_cook(self, cook_id: str) -> list[Dish]:
        self._check_reads()
        return [d for d in self.dishes if d.cook_id == cook_id]

    async def fetch_active_dishes(self) -> list[Dish]:
        self._check_reads()
        return [d for d in self.dishes if d.is_active]

    async def fetch_profile(self, user_id: str) -> Profile | None:
        self._check_reads()
        return self.profiles.get(user_id)

    async def fetch_gamification(self, user_id: str) -> GamificationRecord:
        self._check_reads()
        return self.gamification.get(user_id) or GamificationRecord(user_id=user_id)
