import time
import logging
import structlog
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import RedirectResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import settings
from .domain.errors import ForbiddenRole, LoginRequired, PersistenceError
from .infrastructure.db import engine
from .infrastructure.models import Base
from .infrastructure.metrics import (
    metrics_endpoint,
    http_requests_total,
    http_request_duration_seconds
)
from .interfaces.http.routers import auth as auth_router
from .interfaces.http.routers import student as student_router
from .interfaces.http.routers import teacher as teacher_router
from .interfaces.http.schemas import HealthOut
from .interfaces.http.session import session_middleware
from .interfaces.http.views import render

# Настройка структурированного логирования
log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(log_level),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

app = FastAPI(title="Coursehub", version=__version__)

# сессия нужна обработчикам и обработчикам ошибок, поэтому регистрируется первой
app.middleware("http")(session_middleware)


@app.middleware("http")
async def observe_requests(request: Request, call_next):
    start_time = time.time()
    method = request.method

    response = await call_next(request)

    # шаблон маршрута вместо сырого пути, чтобы не плодить метки
    route = request.scope.get("route")
    path = route.path if route is not None else request.url.path

    # Метрики
    duration = time.time() - start_time
    status_code = response.status_code
    http_requests_total.labels(method=method, endpoint=path, status=status_code).inc()
    http_request_duration_seconds.labels(method=method, endpoint=path).observe(duration)

    # Логирование
    logger.info(
        "http_request",
        method=method,
        path=request.url.path,
        status_code=status_code,
        duration_ms=round(duration * 1000, 2)
    )

    return response


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse("/login", status_code=302)


@app.exception_handler(ForbiddenRole)
async def forbidden_handler(request: Request, exc: ForbiddenRole):
    return render(request, "errors/403.html", status_code=403)


@app.exception_handler(StarletteHTTPException)
async def not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return render(request, "errors/404.html", status_code=404)
    return await http_exception_handler(request, exc)


@app.exception_handler(PersistenceError)
@app.exception_handler(SQLAlchemyError)
@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled_error",
        method=request.method,
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return render(request, "errors/500.html", status_code=500)


@app.on_event("startup")
def on_startup():
    logger.info("Starting coursehub", version=__version__)
    Base.metadata.create_all(bind=engine)

    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Database connection established")


@app.get("/health", response_model=HealthOut)
def health():
    return HealthOut()


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint"""
    return metrics_endpoint()


app.include_router(auth_router.router)
app.include_router(student_router.router)
app.include_router(teacher_router.router)
