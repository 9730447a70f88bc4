from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.config import settings
from app.errors import ReconciliationError
from app.logging_setup import configure_logging
from app.routes.system import router as system_router
from app.routes.admin import router as admin_router
from app.routes.wallet import router as wallet_router
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha,
             store_configured=bool(settings.database_url))
    yield
    # Shutdown
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for wallet ledger and collection reconciliation",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(system_router)
app.include_router(admin_router)
app.include_router(wallet_router)

@app.exception_handler(ReconciliationError)
async def reconciliation_error_handler(request: Request, exc: ReconciliationError):
    log.warning("request_failed", path=request.url.path, error_type=exc.__class__.__name__,
                status=exc.status_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # runs outside add_request_id, so echo the id here
    rid = getattr(request.state, "request_id", None) or request.headers.get("x-request-id") or str(uuid.uuid4())
    log.error("unhandled_exception", path=request.url.path, method=request.method, request_id=rid,
              error=str(exc), exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"}, headers={"X-Request-ID": rid})

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    try:
        response: Response = await call_next(request)
    finally:
        structlog.contextvars.clear_contextvars()
    response.headers["X-Request-ID"] = rid
    return response
