from __future__ import annotations

import math
import time
from collections.abc import Callable, Mapping
from typing import Annotated, Any, cast

import structlog
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from limits import RateLimitItemPerSecond
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import Limiter

from apps.api.auth import authenticate_user, create_access_token, get_current_user, get_user_profile
from apps.api.db.init import init_db
from apps.api.metrics import ERROR_COUNTER, REQUEST_COUNTER, REQUEST_LATENCY
from apps.api.middleware import RequestIDMiddleware
from apps.api.routes import books_router, dashboard_router
from apps.api.schemas import LoginRequest
from core.catalog import CatalogError
from core.config import settings
from utils.logging import configure_logging

configure_logging()

log = structlog.get_logger(__name__)

ERROR_STATUS: dict[str, int] = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "unauthenticated": status.HTTP_401_UNAUTHORIZED,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "storage_failure": status.HTTP_503_SERVICE_UNAVAILABLE,
    "repository_failure": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _client_identifier(request: Request) -> str:
    headers = cast(Mapping[str, str], getattr(request, "headers", {}))
    forwarded = headers.get("x-forwarded-for")
    if isinstance(forwarded, str):
        return forwarded.split(",", 1)[0].strip()
    real_ip = headers.get("x-real-ip")
    if isinstance(real_ip, str):
        return real_ip
    client = getattr(request, "client", None)
    host = getattr(client, "host", None) if client else None
    if isinstance(host, str):
        return host
    return "127.0.0.1"


app = FastAPI(title="Bookstall API")

rate_limit_qps = settings.rate_limit_qps
limiter_enabled = bool(rate_limit_qps and rate_limit_qps > 0)

limiter = Limiter(
    key_func=_client_identifier,
    headers_enabled=False,
    enabled=limiter_enabled,
)
app.state.limiter = limiter

_GLOBAL_RATE_LIMIT: RateLimitItemPerSecond | None = None
if limiter_enabled and rate_limit_qps:
    _GLOBAL_RATE_LIMIT = RateLimitItemPerSecond(max(1, math.ceil(rate_limit_qps)), 1)

app.add_middleware(RequestIDMiddleware)

cors_allow_origins = settings.cors_allow_origins or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["x-csrf-token"],
)


@app.on_event("startup")
def _on_startup() -> None:
    init_db()
    log.info("api.started", rate_limited=limiter_enabled)


def _error_payload(error_type: str, message: str) -> dict[str, Any]:
    return {"error": {"type": error_type, "message": message}}


@app.exception_handler(CatalogError)
async def _catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.error_type, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        log.warning("api.catalog_error", error_type=exc.error_type, error=exc.message)
    return JSONResponse(_error_payload(exc.error_type, exc.message), status_code=status_code)


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in {"query", "body"})
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(
        _error_payload("validation", "; ".join(messages) or "Invalid request"),
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def _rate_limit_response(retry_after: int) -> JSONResponse:
    response = JSONResponse(
        _error_payload("rate_limit", "Too many requests"),
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    )
    response.headers["Retry-After"] = str(max(1, retry_after))
    return response


def _enforce_limit(limit: RateLimitItemPerSecond | None, request: Request) -> int | None:
    if not limiter.enabled or limit is None:
        return None
    key = _client_identifier(request)
    if limiter.limiter.hit(limit, key):
        return None
    reset_time, _remaining = limiter.limiter.get_window_stats(limit, key)
    return max(1, int(math.ceil(reset_time - time.time())))


@app.middleware("http")
async def _metrics_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    path = request.url.path
    method = request.method
    start = time.perf_counter()
    try:
        retry_after = _enforce_limit(_GLOBAL_RATE_LIMIT, request)
        if retry_after is not None:
            duration = time.perf_counter() - start
            REQUEST_COUNTER.labels(path=path, method=method, status="429").inc()
            REQUEST_LATENCY.labels(path=path, method=method).observe(duration)
            return _rate_limit_response(retry_after)
        response = await call_next(request)
    except Exception:
        duration = time.perf_counter() - start
        ERROR_COUNTER.labels(path=path, method=method).inc()
        REQUEST_COUNTER.labels(path=path, method=method, status="500").inc()
        REQUEST_LATENCY.labels(path=path, method=method).observe(duration)
        raise

    duration = time.perf_counter() - start
    status_code = getattr(response, "status_code", 500)
    REQUEST_COUNTER.labels(path=path, method=method, status=str(status_code)).inc()
    REQUEST_LATENCY.labels(path=path, method=method).observe(duration)
    if status_code >= 500:
        ERROR_COUNTER.labels(path=path, method=method).inc()
    return response


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/ready")
def ready() -> dict[str, str]:
    return {"status": "ready"}


def _csrf_headers(request: Request) -> dict[str, str]:
    token = request.cookies.get("access_token")
    if isinstance(token, str) and token:
        return {"x-csrf-token": token}
    return {}


@app.post("/auth/login")
def login(req: LoginRequest) -> JSONResponse:
    record = authenticate_user(req.email, req.password)
    token = create_access_token({"sub": record["id"], "email": record["email"]})
    profile = get_user_profile(record["id"])
    max_age = settings.jwt_expiration_seconds
    cookie_parts = [f"access_token={token}", "HttpOnly", "Path=/", "SameSite=Lax"]
    if max_age:
        cookie_parts.append(f"Max-Age={int(max_age)}")
    headers = {
        "set-cookie": "; ".join(cookie_parts),
        "x-csrf-token": token,
    }
    log.info("auth.login", user_id=record["id"])
    return JSONResponse({"user": profile, "access_token": token}, headers=headers)


@app.get("/me")
def me(
    request: Request,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
) -> JSONResponse:
    return JSONResponse(current_user, headers=_csrf_headers(request))


@app.post("/auth/logout")
def logout() -> JSONResponse:
    response = JSONResponse({"status": "ok"}, headers={"x-csrf-token": ""})
    response.delete_cookie("access_token", path="/")
    return response


@app.get("/metrics")
def metrics() -> Response:
    return Response(generate_latest(), headers={"content-type": CONTENT_TYPE_LATEST})


app.include_router(books_router)
app.include_router(dashboard_router)


__all__ = ["app", "limiter"]
