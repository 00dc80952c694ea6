"""
Dashboard aggregation: derive per-role statistics and the customer feed from fetched rows.
All functions are pure; fetching is the caller's job.
"""
from collections.abc import Iterable, Sequence
from decimal import Decimal

from hometaste.domain import CookStats, DeliveryStats, Dish, Order, OrderStatus, Review, Role, StatsRows
from hometaste.money import commission, to_money

COOK_ACTIVE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PREPARING})
DELIVERY_ACTIVE_STATUSES = frozenset({OrderStatus.READY, OrderStatus.IN_DELIVERY})


def average_rating(reviews: Iterable[Review], reviewed_id: str) -> float:
    """Mean rating of reviews about reviewed_id; 0.0 when there are none."""
    ratings = [r.rating for r in reviews if r.reviewed_id == reviewed_id]
    if not ratings:
        return 0.0
    return sum(ratings) / len(ratings)


def _delivered(orders: Iterable[Order]) -> list[Order]:
    return [o for o in orders if o.status is OrderStatus.DELIVERED]


def compute_cook_stats(
    cook_id: str,
    orders: Sequence[Order],
    reviews: Sequence[Review],
    dishes: Sequence[Dish],
) -> CookStats:
    # Earnings only count delivered orders; cancelled or in-flight totals are not income.
    earnings = sum((o.total_price for o in _delivered(orders)), Decimal("0"))
    return CookStats(
        total_dishes=sum(1 for d in dishes if d.cook_id == cook_id),
        active_orders=sum(1 for o in orders if o.status in COOK_ACTIVE_STATUSES),
        total_earnings=to_money(earnings),
        average_rating=average_rating(reviews, cook_id),
    )


def compute_delivery_stats(
    courier_id: str,
    orders: Sequence[Order],
    reviews: Sequence[Review],
    commission_rate: Decimal | None = None,
) -> DeliveryStats:
    delivered = _delivered(orders)
    # Round once on the total; per-order rounding drifts from sum x rate
    earnings = sum((commission(o.total_price, commission_rate) for o in delivered), Decimal("0"))
    return DeliveryStats(
        total_deliveries=len(delivered),
        active_deliveries=sum(1 for o in orders if o.status in DELIVERY_ACTIVE_STATUSES),
        total_earnings=to_money(earnings),
        average_rating=average_rating(reviews, courier_id),
    )


def compute_stats(role: Role, rows: StatsRows) -> CookStats | DeliveryStats:
    if role is Role.COOK:
        return compute_cook_stats(rows.user_id, rows.orders, rows.reviews, rows.dishes)
    if role is Role.DELIVERY:
        return compute_delivery_stats(rows.user_id, rows.orders, rows.reviews)
    if role is Role.CUSTOMER:
        raise ValueError("customers have no statistics dashboard; use filter_dishes for the feed")
    raise ValueError(f"unknown role {role!r}")


def _matches(dish: Dish, needle: str) -> bool:
    return (
        needle in dish.name.lower()
        or needle in (dish.description or "").lower()
        or needle in (dish.cook_name or "").lower()
    )


def filter_dishes(dishes: Sequence[Dish], term: str = "", category: str | None = "") -> list[Dish]:
    """
    Customer feed: active dishes whose name, description or cook name contains term
    (case-insensitive) and whose category equals category when one is given.
    Relative order is preserved.
    """
    needle = (term or "").lower()
    return [
        d for d in dishes
        if d.is_active
        and (not needle or _matches(d, needle))
        and (not category or d.category == category)
    ]


def dish_categories(dishes: Iterable[Dish]) -> list[str]:
    """Distinct non-blank categories, in order of first appearance."""
    seen: dict[str, None] = {}
    for d in dishes:
        if d.category and d.category.strip():
            seen.setdefault(d.category, None)
    return list(seen)
