import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# .env se carga desde la raíz del proyecto sin importar desde dónde corra uvicorn
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlmodel import Session

from app.api.coupons import router as coupons_router
from app.api.inventory import router as inventory_router
from app.api.orders import router as orders_router
from app.api.products import router as products_router
from app.core.config import cors_origins_list, settings
from app.core.database import engine, get_db, init_db
from app.core.rate_limit import limiter
from app.logging import request_id_var, setup_logging
from app.models import ErrorLog
from app.services.inventory import InvalidStockAction

setup_logging(level=logging.INFO)
log = logging.getLogger("ropastore")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info(
        "App lista: environment=%s shipping_cost=%s currency=%s",
        settings.environment,
        settings.shipping_cost,
        settings.currency,
    )
    yield


app = FastAPI(
    title=settings.app_name,
    description="Cupones, inventario y checkout de RopaStore",
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
    log.warning("Rate limit: path=%s detail=%s", request.url.path, exc.detail)
    return _error_response(request, 429, "Demasiadas solicitudes. Espera un minuto e intenta de nuevo.")


def _validation_error_message(exc: RequestValidationError) -> str:
    errs = exc.errors()
    if not errs:
        return "Solicitud inválida."
    first = errs[0]
    loc = [str(p) for p in (first.get("loc") or []) if p != "body"]
    field = ".".join(loc) if loc else None
    if first.get("type") == "missing":
        return f"Falta el campo requerido: {field}" if field else "Faltan datos en la solicitud."
    msg = first.get("msg") or "Solicitud inválida."
    # Los ValueError de los validators llegan como "Value error, <mensaje>"
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{field}: {msg}" if field else msg


def _jsonable_errors(errs: list) -> list:
    # ctx puede traer la excepción original, que no es serializable
    return [{k: v for k, v in e.items() if k != "ctx"} for e in errs]


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.warning(
        "Request validation error (422): path=%s method=%s detail=%s",
        request.url.path,
        request.method,
        errs,
    )
    rid = getattr(request.state, "request_id", None)
    body = {"error": _validation_error_message(exc), "status_code": 422, "detail": _jsonable_errors(errs)}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=422, content=body)


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))


@app.exception_handler(InvalidStockAction)
def invalid_stock_action_handler(request: Request, exc: InvalidStockAction) -> JSONResponse:
    return _error_response(request, 400, str(exc))


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc, exc_info=True)
    try:
        with Session(engine) as db:
            db.add(ErrorLog(
                request_id=getattr(request.state, "request_id", None),
                endpoint=request.url.path,
                method=request.method,
                error_message=str(exc)[:2000],
                stack_trace=traceback.format_exc()[:10000],
            ))
            db.commit()
    except Exception as e:
        log.warning("ErrorLog write failed: %s", e)
    return _error_response(request, 500, "Error interno del servidor")


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    token = request_id_var.set(request.state.request_id)
    try:
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request.state.request_id
        log.info(
            "method=%s path=%s status=%s latency_ms=%.2f",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
        )
        return response
    finally:
        request_id_var.reset(token)


app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(products_router)
app.include_router(coupons_router)
app.include_router(inventory_router)
app.include_router(orders_router)


@app.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.connection().execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        log.warning("Health check: base de datos no disponible: %s", e)
        database = "error"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "environment": settings.environment,
    }
