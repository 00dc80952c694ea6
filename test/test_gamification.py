from decimal import Decimal

from _helper import COOK, COURIER, make_order
from hometaste.domain import GamificationDelta, GamificationRecord, OrderStatus
from hometaste.gamification import apply_delta, badges_for, deltas_for_delivered, level_for_points
from hometaste.money import commission


def test_initial_level_is_one():
    assert level_for_points(0) == 1
    assert GamificationRecord(user_id="u").level == 1


def test_level_is_monotonic_in_points():
    levels = [level_for_points(p, points_per_level=100) for p in range(0, 1000, 7)]
    assert levels == sorted(levels)
    assert level_for_points(99, points_per_level=100) == 1
    assert level_for_points(100, points_per_level=100) == 2
    assert level_for_points(250, points_per_level=100) == 3


def test_badges_by_order_count():
    assert badges_for(0) == frozenset()
    assert badges_for(1) == {"first_order"}
    assert badges_for(10) == {"first_order", "ten_orders"}


def test_commission_is_exact():
    assert commission(Decimal("20.00")) == Decimal("2.00")
    assert commission(Decimal("12.35")) == Decimal("1.235")
    assert commission(Decimal("100.00"), rate=Decimal("0.15")) == Decimal("15.00")


def test_deltas_for_delivered_order():
    order = make_order(status=OrderStatus.DELIVERED, delivery_id=COURIER.id, total_price="30.00")
    deltas = deltas_for_delivered(order)
    assert deltas[COOK.id].earnings == Decimal("30.00")
    assert deltas[COURIER.id].earnings == Decimal("3.00")
    assert deltas[COOK.id].orders == deltas[COURIER.id].orders == 1


def test_deltas_without_courier_only_touch_cook():
    order = make_order(status=OrderStatus.DELIVERED, total_price="30.00")
    assert set(deltas_for_delivered(order)) == {COOK.id}


def test_apply_delta_accumulates():
    record = GamificationRecord(user_id="u", points=95, total_orders=9, total_earnings=Decimal("90.00"))
    updated = apply_delta(record, GamificationDelta(points=10, orders=1, earnings=Decimal("10.50")))
    assert updated.points == 105
    assert updated.level == 2
    assert updated.total_orders == 10
    assert updated.total_earnings == Decimal("100.50")
    assert "ten_orders" in updated.badges
    assert record.points == 95


def test_apply_delta_never_drops_badges_or_levels():
    record = GamificationRecord(user_id="u", level=4, badges=frozenset({"legacy"}))
    updated = apply_delta(record, GamificationDelta(points=10, orders=1))
    assert updated.level == 4
    assert {"legacy", "first_order"} <= updated.badges


def test_badges_serialize_sorted():
    record = GamificationRecord(user_id="u", badges=frozenset({"ten_orders", "first_order"}))
    assert record.model_dump(mode="json")["badges"] == ["first_order", "ten_orders"]


def test_courier_accumulator_does_not_drift():
    record = GamificationRecord(user_id=COURIER.id)
    for i in range(10):
        order = make_order(order_id=f"o{i}", status=OrderStatus.DELIVERED, delivery_id=COURIER.id, total_price="0.05")
        record = apply_delta(record, deltas_for_delivered(order)[COURIER.id])
    assert record.total_earnings == Decimal("0.05")
    assert record.total_orders == 10
