"""
FastAPI application entry point for the UniClips payments service.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from uniclips.config import settings
from uniclips.database import create_tables
from uniclips.logging_config import setup_logging
from uniclips.routers import purchases, webhooks, connect, admin
from uniclips.services.stripe_processor import is_live_key

# Get logger for request logging
logger = logging.getLogger(__name__)

# Configure logging
setup_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info("Starting up UniClips payments API...")
    if not is_live_key(settings.STRIPE_SECRET_KEY):
        logger.warning("STRIPE_SECRET_KEY is not set; checkout and payouts are disabled")

    # Local SQLite runs have no migrations
    if settings.DATABASE_URL.startswith("sqlite"):
        await create_tables()

    yield
    # Shutdown
    logger.info("Shutting down UniClips payments API...")


app = FastAPI(
    title="UniClips Payments API",
    description="Bundle checkout, revenue split and scholar payouts for UniClips",
    version="0.1.0",
    lifespan=lifespan
)

# Configure rate limiter
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Parse CORS origins from config
# In development mode, allow all origins for easier local development
if settings.ENVIRONMENT == "development" or settings.DEBUG:
    cors_origins = ["*"]
else:
    cors_origins = (
        ["*"] if settings.CORS_ORIGINS == "*"
        else [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
    )

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with method, path and response status."""
    logger.info(f"Request: {request.method} {request.url.path}")

    response = await call_next(request)

    logger.info(f"Response: {request.method} {request.url.path} | Status: {response.status_code}")
    return response


# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


# Register routers
app.include_router(purchases.router, tags=["purchases"])
app.include_router(webhooks.router, tags=["webhooks"])
app.include_router(connect.router, tags=["stripe-connect"])
app.include_router(admin.router, tags=["admin"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
