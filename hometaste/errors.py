"""
Error kinds surfaced by the lifecycle core. Each carries the HTTP status the API maps it to.
"""


class LifecycleError(Exception):
    status_code = 500
    kind = "error"


class InvalidTransitionError(LifecycleError):
    """Raised when no edge leads from the order's current status to the requested one."""
    status_code = 409
    kind = "invalid_transition"

    def __init__(self, current_state: str | None = None, requested_state: str | None = None):
        self.current_state = current_state
        self.requested_state = requested_state
        super().__init__(f"cannot move order from {current_state} to {requested_state}")


class UnauthorizedError(LifecycleError):
    """Raised on role or ownership mismatch. redirect_to is where the caller should be sent."""
    status_code = 403
    kind = "unauthorized"

    def __init__(self, message: str = "not allowed", redirect_to: str = "/"):
        self.redirect_to = redirect_to
        super().__init__(message)


class NotFoundError(LifecycleError):
    status_code = 404
    kind = "not_found"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class TransientError(LifecycleError):
    """Store unreachable or timed out. Never retried here; callers decide whether to back off."""
    status_code = 503
    kind = "transient"


class UnauthenticatedError(UnauthorizedError):
    """No usable session. Sends the caller to sign-in."""
    status_code = 401
    kind = "unauthenticated"

    def __init__(self, message: str = "sign-in required"):
        super().__init__(message, redirect_to="/auth")
