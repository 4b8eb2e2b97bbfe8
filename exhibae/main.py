import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError

from . import models  # noqa: F401 - registers tables with Base
from .config import ALLOWED_ORIGINS, REALTIME_REDIS_ENABLED
from .database import Base, engine
from .domain.applications import router as applications_router
from .domain.chat import router as chat_router
from .domain.coupons import router as coupons_router
from .domain.email import router as email_router
from .domain.exhibitions import router as exhibitions_router
from .domain.notifications import router as notifications_router
from .domain.payments import router as payments_router
from .errors import ErrorCode, ExhibaeError
from .realtime import broker
from .realtime.router import router as realtime_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    relay = None
    if REALTIME_REDIS_ENABLED:
        from .realtime.relay import RedisRelay

        try:
            relay = RedisRelay(broker)
            relay.start()
            logger.info("Realtime Redis relay started")
        except Exception as e:
            relay = None
            logger.warning(f"Realtime Redis relay unavailable - changes stay in-process: {e}")

    yield

    if relay:
        await relay.stop()
    logger.info("Application shutting down...")


app = FastAPI(title="ExhiBae API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(ExhibaeError)
async def exhibae_error_handler(request: Request, exc: ExhibaeError):
    logger.warning(f"{request.method} {request.url.path} - {exc.code.value}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code.value})


@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    """A concurrent writer changed the row first; the client should reload and retry"""
    logger.warning(f"{request.method} {request.url.path} - concurrent update: {exc}")
    return JSONResponse(
        status_code=409,
        content={
            "detail": "This record was changed by someone else. Reload and try again.",
            "code": ErrorCode.INVALID_TRANSITION.value,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors()), "code": ErrorCode.VALIDATION_FAILED.value},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)

# Routes
app.include_router(exhibitions_router)
app.include_router(applications_router)
app.include_router(payments_router)
app.include_router(coupons_router)
app.include_router(notifications_router)
app.include_router(chat_router)
app.include_router(email_router)
app.include_router(realtime_router)


@app.get("/")
def root():
    return {"message": "ExhiBae API is running"}


@app.get("/health")
def health():
    return {"status": "healthy", "realtime_subscriptions": broker.subscription_count()}
