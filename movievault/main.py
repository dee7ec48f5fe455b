# movievault/main.py — app wiring: CORS, request logging, envelope error handlers, routers

from __future__ import annotations

import logging
import os
import time
import traceback
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from movievault.core import responses
from movievault.core.errors import AppError
from movievault.core.settings import settings
from movievault.database import async_engine
from movievault.routes import auth, health, movies, tags

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("startup")
access_log = logging.getLogger("movievault.access")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.is_production and settings.auth_secret == "dev_change_me":
        raise RuntimeError("AUTH_SECRET must be set in production")
    os.makedirs(os.path.join(settings.upload_dir, "movies"), exist_ok=True)
    log.info("movievault starting (env=%s, uploads=%s)", settings.app_env, os.path.abspath(settings.upload_dir))
    yield
    await async_engine.dispose()
    log.info("Database disconnected")


app = FastAPI(
    title="movievault API",
    version="1.0.0",
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=None,
    lifespan=lifespan,
)

# ───────────────── CORS ─────────────────
# Bearer tokens (Authorization header), not cookies, so no credentials.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ───────────────── Request logging ─────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    access_log.info("%s %s -> %s (%.1fms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# ───────────────── Error envelope ─────────────────
def _detail(exc: BaseException) -> str | None:
    if not settings.is_development:
        return None
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    log_fn = log.error if exc.status_code >= 500 else log.warning
    log_fn("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, type(exc).__name__)
    return responses.error(exc.message, exc.status_code, _detail(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = [
        f"{'.'.join(str(p) for p in e.get('loc', ()) if p not in ('body', 'query', 'path'))}: {e.get('msg')}"
        for e in exc.errors()
    ]
    message = "Invalid request: " + "; ".join(problems)
    log.warning("%s %s rejected: %s", request.method, request.url.path, message)
    return responses.error(message, 400)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route {request.url.path} not found"
    else:
        message = str(exc.detail)
    log.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, message)
    return responses.error(message, exc.status_code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return responses.error(
        "Internal server error",
        500,
        f"{type(exc).__name__}: {exc}" if settings.is_development else None,
    )


# ───────────────── Routes ─────────────────
app.include_router(health.router)


@app.get(f"{settings.api_prefix}", tags=["default"])
async def api_info():
    return responses.success({"version": app.version, "message": "API is running"})


# Single API namespace prefix
api = APIRouter(prefix=settings.api_prefix)
for _router in (auth.router, movies.router, tags.router):
    api.include_router(_router)
    log.info("Mounted router: %s%s", settings.api_prefix, _router.prefix)
app.include_router(api)

# Stored images, read-only
app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")
