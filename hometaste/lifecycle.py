"""
Order lifecycle manager: validate a requested status change, then write it.
The status write and the gamification update for a delivered order share one store
transaction (order row locked), so they commit or roll back together.
"""
import logging
from datetime import datetime, timezone

from hometaste.domain import GamificationRecord, Order, OrderStatus, Principal, Role
from hometaste.errors import InvalidTransitionError, UnauthorizedError
from hometaste.gamification import deltas_for_delivered
from hometaste.metrics import gamification_updates_total, order_transitions_rejected_total, order_transitions_total
from hometaste.order_state import allowed_roles, can_act_on, is_terminal, is_valid_transition

logger = logging.getLogger(__name__)


def _check_ownership(order: Order, principal: Principal, new_status: OrderStatus) -> None:
    if principal.role is Role.COOK and order.cook_id != principal.id:
        raise UnauthorizedError(f"order {order.id} belongs to another cook")
    if principal.role is Role.CUSTOMER and order.customer_id != principal.id:
        raise UnauthorizedError(f"order {order.id} belongs to another customer")
    if principal.role is Role.DELIVERY:
        if new_status is OrderStatus.IN_DELIVERY and order.delivery_id not in (None, principal.id):
            raise UnauthorizedError(f"order {order.id} is assigned to another courier")
        if new_status is OrderStatus.DELIVERED and order.delivery_id != principal.id:
            raise UnauthorizedError(f"order {order.id} is not assigned to this courier")


def plan_transition(
    order: Order,
    principal: Principal,
    new_status: OrderStatus,
    now: datetime | None = None,
) -> Order:
    """
    Validate principal moving order to new_status and return the updated order. Pure; no I/O.
    Raises InvalidTransitionError (terminal status or missing edge) or UnauthorizedError
    (no role, role not allowed out of the current status or on this edge, not the owner).
    Ownership is checked on top of the edge table: an allowed role still fails on an order that is not its own.
    """
    current = order.status
    if is_terminal(current):
        raise InvalidTransitionError(current.value, new_status.value)
    if principal.role is None or not can_act_on(current, principal.role):
        raise UnauthorizedError(f"role {principal.role and principal.role.value} cannot act on a {current.value} order")
    if not is_valid_transition(current, new_status):
        raise InvalidTransitionError(current.value, new_status.value)
    if principal.role not in allowed_roles(current, new_status):
        raise UnauthorizedError(f"role {principal.role.value} cannot move an order from {current.value} to {new_status.value}")
    _check_ownership(order, principal, new_status)

    update: dict = {"status": new_status, "updated_at": now or datetime.now(timezone.utc)}
    if new_status is OrderStatus.IN_DELIVERY and order.delivery_id is None:
        update["delivery_id"] = principal.id
    return order.model_copy(update=update)


async def apply_transition(store, order_id: str, principal: Principal, new_status: OrderStatus) -> Order:
    """
    Load order_id under a row lock, validate, write the new status and, on `delivered`,
    the gamification deltas for cook and courier. Returns the updated order.
    Raises NotFoundError, InvalidTransitionError, UnauthorizedError or TransientError.
    """
    async with store.transaction() as tx:
        order = await tx.fetch_order_for_update(order_id)
        try:
            updated = plan_transition(order, principal, new_status)
        except (InvalidTransitionError, UnauthorizedError) as e:
            order_transitions_rejected_total.labels(reason=type(e).__name__, to_status=new_status.value).inc()
            logger.info(
                "Rejected order_id=%s %s -> %s by user_id=%s: %s",
                order_id, order.status.value, new_status.value, principal.id, e,
            )
            raise
        await tx.write_order_status(updated.id, updated.status, updated.delivery_id, updated.updated_at)
        if updated.status is OrderStatus.DELIVERED:
            records: list[GamificationRecord] = []
            for user_id, delta in deltas_for_delivered(updated).items():
                records.append(await tx.write_gamification(user_id, delta))
            gamification_updates_total.inc(len(records))
            logger.info("Gamification updated for order_id=%s users=%s", order_id, [r.user_id for r in records])

    order_transitions_total.labels(from_status=order.status.value, to_status=updated.status.value).inc()
    logger.info(
        "Order order_id=%s %s -> %s by user_id=%s",
        order_id, order.status.value, updated.status.value, principal.id,
    )
    return updated
