#main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse

from deps.services import shutdown_services
from middleware import RequestContextMiddleware
from routes.health import router as health_router
from routes.payouts import router as payouts_router
from services.observability import configure_logging
from settings import settings, validate_env_settings

logger = logging.getLogger("creatorpay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    shutdown_services()


def create_app() -> FastAPI:
    configure_logging(settings.LOG_LEVEL)
    validate_env_settings()

    app = FastAPI(title="CreatorPay Settlement API", version="1.0.0", lifespan=lifespan)

    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------

    app.include_router(health_router)
    app.include_router(payouts_router)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()
