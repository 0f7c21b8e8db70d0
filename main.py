"""Main FastAPI application"""
import os
import logging
import logging.config
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from starlette.middleware.sessions import SessionMiddleware
from routes import router as api_router, pages as page_router
from services.carousel import CarouselRegistry

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from utils.rate_limit import limiter

# --- Unified Logging Configuration with Rich ---
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(name)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "default": {
            "class": "rich.logging.RichHandler",
            "formatter": "default",
            "level": "DEBUG",
            "rich_tracebacks": True,
            "show_time": True,
            "show_path": False,
            "log_time_format": "%Y-%m-%d %H:%M:%S",
            "markup": True
        },
    },
    "loggers": {
        "uvicorn": {
             "handlers": ["default"],
             "level": "INFO",
             "propagate": False,
        },
        "uvicorn.error": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "uvicorn.access": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "": { # Root logger for our application
            "handlers": ["default"],
            "level": os.getenv("LOG_LEVEL", "INFO").upper(),
            "propagate": False,
        },
    },
}

logging.config.dictConfig(LOGGING_CONFIG)

logger = logging.getLogger(__name__)

load_dotenv() # Searches the current dir and parents for .env

MONGODB_URI = os.getenv("MONGODB_URI")
DB_NAME = os.getenv("DB_NAME", "receipts_db")
SESSION_SECRET = os.getenv("SESSION_SECRET")
CAROUSEL_WINDOW_SIZE = int(os.getenv("CAROUSEL_WINDOW_SIZE", "3"))
CAROUSEL_WINDOW_MODE = os.getenv("CAROUSEL_WINDOW_MODE", "centered").lower()
CAROUSEL_CACHE_SIZE = int(os.getenv("CAROUSEL_CACHE_SIZE", "256"))
PUBLIC_DIR = Path(__file__).resolve().parent / "public"

if not MONGODB_URI:
    logger.error("MONGODB_URI environment variable not set! Database connection will fail.")

if not SESSION_SECRET:
    logger.warning("SESSION_SECRET not set; using an insecure development key for session cookies.")
    SESSION_SECRET = "dev-insecure-session-key"

# Application state to hold the database client, collections and carousels
app_state = {
    "carousels": CarouselRegistry(
        window_size=CAROUSEL_WINDOW_SIZE,
        mode=CAROUSEL_WINDOW_MODE,
        capacity=CAROUSEL_CACHE_SIZE,
    ),
}

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Connect to MongoDB
    logger.info(f"Connecting to MongoDB at {MONGODB_URI}...")
    try:
        app_state["db_client"] = AsyncIOMotorClient(MONGODB_URI)
        app_state["db"] = app_state["db_client"][DB_NAME]
        app_state["receipts_collection"] = app_state["db"].get_collection("receipts")
        app_state["users_collection"] = app_state["db"].get_collection("users")
        await app_state["db_client"].admin.command('ping')
        logger.info(f"Successfully connected to MongoDB database: {DB_NAME}")
        await app_state["users_collection"].create_index("email", unique=True)
        await app_state["receipts_collection"].create_index([("user_id", 1), ("date", 1), ("created_at", 1)])
        logger.info("MongoDB indexes ensured.")
    except Exception as e:
        logger.error(f"Failed to connect to MongoDB: {e}")
        app_state["db_client"] = None
        app_state["db"] = None
        app_state["receipts_collection"] = None
        app_state["users_collection"] = None
    logger.info(f"Configuration: carousel window {CAROUSEL_WINDOW_SIZE} ({CAROUSEL_WINDOW_MODE}), cache {CAROUSEL_CACHE_SIZE}")

    yield # Application runs here

    # Shutdown: Close MongoDB connection
    if app_state.get("db_client"):
        logger.info("Closing MongoDB connection...")
        app_state["db_client"].close()
        logger.info("MongoDB connection closed.")
    app_state["carousels"].clear()

app = FastAPI(
    title="Receipt Calendar API",
    description="Monthly receipt calendar with per-day receipt carousels.",
    version="0.1.0",
    lifespan=lifespan
)

# --- Rate Limiter State and Handler ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unexpected error handling {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "An unexpected server error occurred."})

# --- Middleware (Order Matters) ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], # Adjust in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET, same_site="lax")

app.include_router(api_router, prefix="/api", tags=["api"])
app.include_router(page_router)

app.mount("/static", StaticFiles(directory=PUBLIC_DIR), name="static")

# Make app state accessible via middleware
@app.middleware("http")
async def add_app_config_to_request(request: Request, call_next):
    """Adds the store collections and the carousel registry to the request state."""
    request.state.db_client = app_state.get("db_client")
    request.state.receipts_collection = app_state.get("receipts_collection")
    request.state.users_collection = app_state.get("users_collection")
    request.state.carousels = app_state["carousels"]
    response = await call_next(request)
    return response

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True
    )
