"""
Gamification accumulators for cooks and couriers.
Updated only when an order reaches `delivered`; see lifecycle.apply_transition.
"""
from hometaste.config import settings
from hometaste.domain import GamificationDelta, GamificationRecord, Order
from hometaste.money import commission

# total_orders threshold -> badge awarded on reaching it
ORDER_BADGES: dict[int, str] = {
    1: "first_order",
    10: "ten_orders",
    50: "fifty_orders",
    100: "hundred_orders",
}


def level_for_points(points: int, points_per_level: int | None = None) -> int:
    """Monotonic step function: level 1 at zero points, +1 per points_per_level."""
    if points_per_level is None:
        points_per_level = settings.points_per_level
    return 1 + max(points, 0) // points_per_level


def badges_for(total_orders: int) -> frozenset[str]:
    return frozenset(badge for threshold, badge in ORDER_BADGES.items() if total_orders >= threshold)


def deltas_for_delivered(order: Order) -> dict[str, GamificationDelta]:
    """
    Per-user increments for a delivered order: the cook earns the full total,
    the courier (when one is assigned) earns the commission. Earnings stay unrounded
    so the accumulator matches the exact sum of its orders.
    """
    points = settings.points_per_order
    deltas = {
        order.cook_id: GamificationDelta(points=points, orders=1, earnings=order.total_price),
    }
    if order.delivery_id:
        deltas[order.delivery_id] = GamificationDelta(
            points=points,
            orders=1,
            earnings=commission(order.total_price),
        )
    return deltas


def apply_delta(record: GamificationRecord, delta: GamificationDelta) -> GamificationRecord:
    """Return a new record with delta added; level and badges are recomputed, badges only ever grow."""
    points = record.points + delta.points
    total_orders = record.total_orders + delta.orders
    return record.model_copy(
        update={
            "points": points,
            "level": max(record.level, level_for_points(points)),
            "badges": record.badges | badges_for(total_orders),
            "total_orders": total_orders,
            "total_earnings": record.total_earnings + delta.earnings,
        }
    )
