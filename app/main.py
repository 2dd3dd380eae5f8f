from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.routes.orders import router as orders_router
from app.services.dependencies import get_served_orders_router
from app.services.router_service import OrdersRouter, RouterAssemblyError

logger = logging.getLogger(__name__)


def _ensure_logging() -> None:
    formatter = logging.Formatter("%(levelname)s: %(message)s")
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    else:
        root.setLevel(logging.INFO)
        for handler in root.handlers:
            handler.setFormatter(formatter)


def create_app(router: Optional[OrdersRouter] = None) -> FastAPI:
    """Build the Request Router app.

    Without an explicit router the lifespan assembles one from the environment
    and the last deploy's outputs (ORDERS_TABLE, ORDERS_HANDLER_BACKEND,
    ORDERS_API_KEY, DEPLOYMENT_OUTPUTS_PATH, ...).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure_logging()
        if getattr(app.state, "orders_router", None) is None:
            try:
                app.state.orders_router = get_served_orders_router()
            except RouterAssemblyError:
                logger.exception("Orders router not assembled; queries will answer 503")
        yield

    app = FastAPI(lifespan=lifespan)
    app.state.orders_router = router
    app.include_router(orders_router)

    @app.exception_handler(RouterAssemblyError)
    async def router_assembly_error_handler(request: Request, exc: RouterAssemblyError) -> JSONResponse:
        """Map a missing or unassembled router to 503 with a JSON body: {"detail": "..."}."""
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": str(exc)},
        )

    @app.get("/")
    async def root():
        return {"message": "Hello World! Orders API is running."}

    return app


app = create_app()
