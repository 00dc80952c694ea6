from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from hometaste.access import home_route
from hometaste.deps import get_current_principal
from hometaste.domain import Principal

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/redirect")
async def post_sign_in_redirect(principal: Principal = Depends(get_current_principal)) -> JSONResponse:
    """Where the caller lands after signing in: its role's home page, or / without a profile."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "user_id": principal.id,
            "role": principal.role.value if principal.role else None,
            "redirect_to": home_route(principal.role),
        },
    )
