import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Uvicorn nereden çalışırsa çalışsın .env proje kökünden yüklensin
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.api.admin import router as admin_router
from app.api.security import router as security_router
from app.core.config import settings
from app.core.database import engine, init_db, ping_db
from app.core.errors import SecurityServiceError
from app.core.rate_limit import get_client_ip, limiter
from app.logging import setup_logging
from app.models import SecurityLog

setup_logging(level=logging.INFO)
log = logging.getLogger("kalkan")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info("Kalkan started: environment=%s admin_secret=%s", settings.environment, "yes" if settings.admin_secret else "NO")
    yield


app = FastAPI(
    title="Kalkan API",
    description="Login denemesi kaydı, hesap kilitleme ve rate limiting",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, detail: str) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {"error": detail, "status_code": status_code}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    try:
        with Session(engine) as db:
            db.add(SecurityLog(event="rate_limit", ip=get_client_ip(request), endpoint=request.url.path, detail="Per-IP limit exceeded"))
            db.commit()
    except SQLAlchemyError as e:
        log.warning("SecurityLog rate_limit write failed: %s", e)
    return _error_response(request, 429, "Çok fazla istek. Lütfen bir dakika bekleyin.")


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(SecurityServiceError)
def security_error_handler(request: Request, exc: SecurityServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("Security service error: path=%s %s: %s", request.url.path, type(exc).__name__, exc.message)
    else:
        log.info("Security request rejected: path=%s %s", request.url.path, type(exc).__name__)
    return _error_response(request, exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.info("Request validation error (422): path=%s method=%s detail=%s", request.url.path, request.method, errs)
    first = errs[0] if errs else {}
    field = str((list(first.get("loc") or []) or [""])[-1])
    if first.get("type") == "missing":
        user_msg = f"Eksik alan: {field}." if field else "Geçersiz istek."
    else:
        user_msg = first.get("msg") or "Geçersiz istek."
    rid = getattr(request.state, "request_id", None)
    body = {"error": user_msg, "status_code": 422, "detail": jsonable_errors(errs)}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=422, content=body)


def jsonable_errors(errs) -> list[dict]:
    # ctx içinde exception nesneleri olabilir; JSON'a çevrilebilir alanlar kalsın
    return [{"loc": list(e.get("loc") or []), "msg": e.get("msg"), "type": e.get("type")} for e in errs]


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    response = _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Beklenmeyen sunucu hatası."})


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.include_router(security_router)
app.include_router(admin_router)


@app.get("/health")
def health():
    try:
        database = "ok" if ping_db() else "error"
    except SQLAlchemyError as e:
        log.warning("Health check database error: %s", e)
        database = "error"
    return {"status": "ok", "database": database, "environment": settings.environment}
