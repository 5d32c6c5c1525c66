from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv
from contextlib import asynccontextmanager
import os
import logging
import traceback

from app.config import Capabilities, get_env_presence
from app.auth_routes import router as auth_router
from app.tiktok_routes import router as tiktok_router
from app.campaigns import router as campaigns_router
from app.exchange import router as exchange_router
from app.action_credits import router as action_credits_router
from app.profile import router as profile_router
from app.rate_limit import limiter
from core.store import StoreUnavailable
from scraper import tiktok_scraper
from slowapi.errors import RateLimitExceeded
from slowapi import _rate_limit_exceeded_handler
import psycopg2

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application lifecycle events."""
    tikgrow_env = os.getenv("TIKGROW_ENV", "production").lower()
    if tikgrow_env == "dev":
        logger.info("[tikgrow] env: TIKGROW_ENV=dev (detailed errors, non-secure cookies)")
    else:
        logger.info(f"[tikgrow] env: TIKGROW_ENV={tikgrow_env}")

    presence = get_env_presence()
    missing = [name for name in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_DB_URL") if not presence[name]]
    if missing:
        logger.warning(f"[tikgrow] Unset environment variables: {', '.join(missing)}")

    yield

    removed = tiktok_scraper.cache.cleanup()
    logger.info(f"[tikgrow] Shutdown, dropped {removed} expired cache entries")


app = FastAPI(title="TikGrow API", version="0.1.0", lifespan=lifespan)

# Add rate limiter state
app.state.limiter = limiter

# Rate limit exceeded handler
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def _envelope(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "data": None, "error": error},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _envelope(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid {field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return _envelope(400, message)


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.warning(f"[tikgrow] {request.url.path}: {exc}")
    return _envelope(503, "Database not configured")


@app.exception_handler(psycopg2.Error)
async def database_error_handler(request: Request, exc: psycopg2.Error):
    logger.error(f"[tikgrow] Database error on {request.url.path}: {exc}", exc_info=exc)
    return _envelope(500, "Database error")


# Error masking middleware
@app.middleware("http")
async def error_masking_middleware(request: Request, call_next):
    """Mask detailed errors in production; show full errors in dev."""
    try:
        response = await call_next(request)
        return response
    except HTTPException:
        raise
    except Exception as e:
        is_dev = os.getenv("TIKGROW_ENV", "").lower() == "dev"

        logger.error(f"Unhandled error: {str(e)}")
        if is_dev:
            logger.error(traceback.format_exc())

        if is_dev:
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "data": None,
                    "error": str(e),
                    "traceback": traceback.format_exc(),
                },
            )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "data": None,
                "error": "An internal error occurred. Please try again later.",
            },
        )


app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5000",
    ],
    # Vercel deployments (production and preview)
    allow_origin_regex=r"https://.*\.vercel\.app",
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(tiktok_router)
app.include_router(campaigns_router)
app.include_router(exchange_router)
app.include_router(action_credits_router)
app.include_router(profile_router)


@app.get("/api/healthz")
async def healthz():
    return Capabilities.get_status()


@app.get("/api/capabilities")
async def capabilities():
    return Capabilities.get_capabilities()
