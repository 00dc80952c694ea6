import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from hometaste.config import settings
from hometaste.db import close_pool, get_pool, init_schema
from hometaste.errors import LifecycleError, UnauthorizedError
from hometaste.metrics import get_metrics_bytes, get_metrics_content_type
from hometaste.redis_client import close_redis, get_redis
from hometaste.routes import auth, dashboard, orders

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    pool = await get_pool()
    if settings.init_schema_on_startup:
        await init_schema(pool)
        logger.info("Schema ready.")
    await get_redis()
    yield
    await close_redis()
    await close_pool()


app = FastAPI(title="HomeTaste Orders", lifespan=lifespan)
app.include_router(auth.router)
app.include_router(orders.router)
app.include_router(dashboard.router)


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    content = {"status": "error", "error": exc.kind, "detail": str(exc)}
    if isinstance(exc, UnauthorizedError):
        content["redirect_to"] = exc.redirect_to
    return JSONResponse(status_code=exc.status_code, content=content)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint: transitions applied/rejected, gamification updates, access denials."""
    return Response(
        content=get_metrics_bytes(),
        media_type=get_metrics_content_type(),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
