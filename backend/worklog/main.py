"""FastAPI application entry point."""
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from worklog.config import settings
from worklog.database import Base, engine, get_db
from worklog.errors import AppError, InternalError, PayloadTooLargeError, ValidationError
from worklog.security import apply_security_headers, check_origin, global_rate_limit

# Import routers
from worklog.routers import auth, timer

# Import all models so Base.metadata knows about them
from worklog.models.user import User                       # noqa: F401
from worklog.models.work_entry import WorkEntry            # noqa: F401
from worklog.models.day_adjustment import DayAdjustment    # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Work Hours Tracker",
    description="Multi-user work timer with weekly totals, leave days and permission minutes",
    version="0.1.0",
    dependencies=[Depends(check_origin), Depends(global_rate_limit)],
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "X-CSRF-Token", "Authorization"],
)


@app.middleware("http")
async def limit_body_size(request: Request, call_next):
    """Refuse bodies whose declared length exceeds MAX_BODY_BYTES."""
    declared = request.headers.get("content-length")
    if declared is not None:
        try:
            length = int(declared)
        except ValueError:
            return JSONResponse(status_code=400, content={"error": ValidationError().message})
        if length > settings.MAX_BODY_BYTES:
            logger.warning("Rejected %d-byte body on %s %s", length, request.method, request.url.path)
            error = PayloadTooLargeError()
            return JSONResponse(status_code=error.status_code, content={"error": error.message})
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    apply_security_headers(response)
    return response


# Error handlers, every failure renders as {"error": message}
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request."
    if errors:
        loc = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"Invalid request: {loc} {errors[0].get('msg', '')}".strip()
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = "Endpoint not found." if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": InternalError().message})


# Register routers
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(timer.router, prefix="/api/timer", tags=["Timer"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    logger.info("Work Hours Tracker started (env=%s, tz=%s)", settings.APP_ENV, settings.TIMEZONE)


@app.get("/api/health")
def health_check(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"ok": True, "env": settings.APP_ENV}
