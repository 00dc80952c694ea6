"""
Order lifecycle state machine. Each edge names the roles allowed to traverse it.
"""
from hometaste.domain import OrderStatus, Role

_CANCELLERS = frozenset({Role.CUSTOMER, Role.COOK})

# Current status -> {next status: roles allowed to make the move}
VALID_TRANSITIONS: dict[OrderStatus, dict[OrderStatus, frozenset[Role]]] = {
    OrderStatus.PENDING: {
        OrderStatus.ACCEPTED: frozenset({Role.COOK}),
        OrderStatus.CANCELLED: _CANCELLERS,
    },
    OrderStatus.ACCEPTED: {
        OrderStatus.PREPARING: frozenset({Role.COOK}),
        OrderStatus.CANCELLED: _CANCELLERS,
    },
    OrderStatus.PREPARING: {
        OrderStatus.READY: frozenset({Role.COOK}),
        OrderStatus.CANCELLED: _CANCELLERS,
    },
    OrderStatus.READY: {
        OrderStatus.IN_DELIVERY: frozenset({Role.DELIVERY}),
        OrderStatus.CANCELLED: _CANCELLERS,
    },
    OrderStatus.IN_DELIVERY: {
        OrderStatus.DELIVERED: frozenset({Role.DELIVERY}),
        OrderStatus.CANCELLED: _CANCELLERS,
    },
    OrderStatus.DELIVERED: {},  # terminal
    OrderStatus.CANCELLED: {},  # terminal
}


def is_terminal(status: OrderStatus) -> bool:
    return not VALID_TRANSITIONS[status]


def is_valid_transition(current_state: OrderStatus, new_state: OrderStatus) -> bool:
    """True if an edge leads from current_state to new_state."""
    return new_state in VALID_TRANSITIONS[current_state]


def allowed_roles(current_state: OrderStatus, new_state: OrderStatus) -> frozenset[Role]:
    return VALID_TRANSITIONS[current_state].get(new_state, frozenset())


def can_act_on(current_state: OrderStatus, role: Role) -> bool:
    """True if role may traverse at least one edge out of current_state."""
    return any(role in roles for roles in VALID_TRANSITIONS[current_state].values())
