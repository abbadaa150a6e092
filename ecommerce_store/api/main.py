import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from ecommerce_store.api.routes import orders
from ecommerce_store.db.session import db_healthcheck, init_default_store
from ecommerce_store.errors import OrderItemNotFoundError, OrderNotFoundError

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Schema is normally owned by the Alembic migrations; this is for local runs.
    if os.getenv("STORE_AUTO_INIT", "").lower() in ("1", "true", "yes"):
        init_default_store()
    yield


openapi_tags = [
    {"name": "Health", "description": "Service and dependency health checks."},
    {"name": "Orders", "description": "Orders and their items. Item writes keep order totals current."},
]

app = FastAPI(
    title="E-Commerce Store API",
    description="Order and order-item write path for the e-commerce store schema.",
    version="0.1.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(orders.router, prefix="/orders", tags=["Orders"])


@app.exception_handler(OrderNotFoundError)
@app.exception_handler(OrderItemNotFoundError)
async def not_found_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.info("Constraint violation on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=409, content={"detail": "Constraint violation", "error": str(exc.orig)})


@app.get("/", tags=["Health"], summary="Service health check")
def health_check():
    """Basic health check for the backend service (no external dependencies)."""
    return {"message": "Healthy"}


@app.get("/health/db", tags=["Health"], summary="Database health check")
def health_db_check():
    """
    Check database connectivity.

    Returns a JSON payload indicating whether the database is reachable.
    """
    ok = db_healthcheck()
    return {"database": "ok" if ok else "unreachable", "ok": ok}
