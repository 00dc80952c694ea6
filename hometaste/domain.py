"""
Domain records shared by the lifecycle, statistics and access modules.
Every record is frozen: operations return new values instead of mutating rows.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator


class Role(str, Enum):
    COOK = "cook"
    CUSTOMER = "customer"
    DELIVERY = "delivery"


class OrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    PREPARING = "preparing"
    READY = "ready"
    IN_DELIVERY = "in_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class DeliveryType(str, Enum):
    DELIVERY = "delivery"
    EAT_IN = "eat_in"


# Statuses in which no courier may be attached to the order yet
UNASSIGNED_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.PREPARING})


class Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class Principal(Record):
    """Authenticated actor. role is None when no profile row exists yet."""
    id: str
    role: Role | None = None


class Profile(Record):
    id: str
    role: Role
    full_name: str = ""
    email: str = ""
    phone: str | None = None
    avatar_url: str | None = None


class Order(Record):
    id: str
    customer_id: str
    cook_id: str
    delivery_id: str | None = None
    dish_id: str
    quantity: int = Field(1, ge=1)
    total_price: Decimal = Field(..., ge=0)
    delivery_type: DeliveryType = DeliveryType.DELIVERY
    status: OrderStatus = OrderStatus.PENDING
    delivery_address_id: str | None = None
    scheduled_time: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _check_invariants(self) -> "Order":
        if self.delivery_id is not None and self.status in UNASSIGNED_STATUSES:
            raise ValueError(f"delivery_id must be unset while status is {self.status.value}")
        if self.delivery_type is DeliveryType.DELIVERY and not self.delivery_address_id:
            raise ValueError("delivery_address_id is required for delivery orders")
        return self


class Dish(Record):
    id: str
    cook_id: str
    cook_name: str | None = Field(None, description="Joined from the cook's profile")
    name: str
    description: str = ""
    price: Decimal = Field(..., ge=0)
    category: str = ""
    is_active: bool = True
    accepts_eat_in: bool = False
    rating: float = 0.0
    total_reviews: int = 0
    created_at: datetime | None = None


class Review(Record):
    id: str
    order_id: str
    reviewer_id: str
    reviewed_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = None


class GamificationRecord(Record):
    user_id: str
    points: int = 0
    level: int = 1
    badges: frozenset[str] = frozenset()
    total_orders: int = 0
    total_earnings: Decimal = Decimal("0.00")

    @field_serializer("badges")
    def _serialize_badges(self, badges: frozenset[str]) -> list[str]:
        return sorted(badges)


class GamificationDelta(Record):
    points: int = 0
    orders: int = 0
    earnings: Decimal = Decimal("0.00")


class CookStats(Record):
    total_dishes: int = 0
    active_orders: int = 0
    total_earnings: Decimal = Decimal("0.00")
    average_rating: float = 0.0


class DeliveryStats(Record):
    total_deliveries: int = 0
    active_deliveries: int = 0
    total_earnings: Decimal = Decimal("0.00")
    average_rating: float = 0.0


class StatsRows(Record):
    """Raw rows a dashboard fetched for one user; input to compute_stats."""
    user_id: str
    orders: tuple[Order, ...] = ()
    reviews: tuple[Review, ...] = ()
    dishes: tuple[Dish, ...] = ()
