"""Main FastAPI application"""
import os
import logging
import logging.config
from pathlib import Path
from typing import Optional, Union
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from routes import router as api_router
from services.errors import PersistenceError
from services.expenses_service import ExpenseStore
from utils.json_storage import JsonFileStorage

# Load environment variables from .env before anything reads them
load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

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
            "markup": False,
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
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}

logging.config.dictConfig(LOGGING_CONFIG)

logger = logging.getLogger(__name__)

EXPENSES_FILE = os.getenv("EXPENSES_FILE", "data/expenses.json")
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
MAX_BODY_SIZE = int(os.getenv("MAX_BODY_SIZE", str(1 * 1024 * 1024)))  # 1MB limit
EXPENSES_ENDPOINT_PATH = "/api/expenses"
PUBLIC_DIR = Path(__file__).resolve().parent / "public"

# --- Middleware for Request Body Size Limit ---
class LimitBodySizeMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_body_size: int = MAX_BODY_SIZE):
        super().__init__(app)
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith(EXPENSES_ENDPOINT_PATH):
            content_length_header = request.headers.get("content-length")
            if content_length_header:
                try:
                    content_length = int(content_length_header)
                except ValueError:
                    logger.warning("Request rejected: Invalid Content-Length header.")
                    return JSONResponse({"error": "Invalid Content-Length header."}, status_code=400)
                if content_length > self.max_body_size:
                    logger.warning(f"Request rejected: Body size {content_length} exceeds limit {self.max_body_size}.")
                    return JSONResponse(
                        {"error": f"Maximum request size limit ({self.max_body_size} bytes) exceeded."},
                        status_code=413,
                    )

        response = await call_next(request)
        return response

# --- Error Handlers ---
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Renders every HTTP error as {"error": ...} like the rest of the API."""
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))

async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(f"Invalid request body for {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


def create_app(
    expenses_file: Optional[Union[str, Path]] = None,
    max_body_size: Optional[int] = None,
) -> FastAPI:
    """Builds the application around its own expense store backed by expenses_file."""
    data_path = Path(expenses_file or EXPENSES_FILE)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: load the expense collection from disk
        logger.info(f"Loading expenses from {data_path}...")
        store = ExpenseStore(JsonFileStorage(data_path))
        try:
            store.load()
            app.state.expense_store = store
            logger.info(f"Expense store ready, backed by {store.storage.path}.")
        except PersistenceError as e:
            logger.error(f"Failed to load expenses from {data_path}: {e}")
            app.state.expense_store = None

        yield # Application runs here

        # Shutdown: the file already holds every accepted mutation
        logger.info("Shutting down expense store.")
        app.state.expense_store = None

    app = FastAPI(
        title="Smart Expense Tracker API",
        description="API for adding, listing and deleting personal expenses.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.expense_store = None

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # --- Add Middleware (Order Matters) ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LimitBodySizeMiddleware, max_body_size=max_body_size or MAX_BODY_SIZE)

    app.include_router(api_router, prefix="/api", tags=["api"])

    # Mount static files directory (MUST be after API router)
    if PUBLIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=str(PUBLIC_DIR), html=True), name="static")
    else:
        logger.warning(f"Static directory {PUBLIC_DIR} not found; UI will not be served.")

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
        reload=os.getenv("RELOAD", "false").lower() == "true",
    )
