import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .db.base import SessionLocal, engine
from .orchestration.classify import close_classifier

# Get settings
settings = get_settings()

# Ensure logs directory exists
logs_dir = Path(settings.LOG_DIR)
if not logs_dir.is_absolute():
    logs_dir = Path(__file__).parent.parent / logs_dir
logs_dir.mkdir(exist_ok=True)

# Configure both file and console logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.FileHandler(logs_dir / "moderation.log", encoding="utf-8"),
        logging.StreamHandler(),
    ],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting %s (environment=%s, classifier=%s)",
        settings.PROJECT_NAME,
        settings.ENVIRONMENT,
        "enabled" if settings.OPENAI_API_KEY else "disabled, failing open",
    )
    try:
        yield
    finally:
        try:
            await close_classifier()
        except Exception as e:
            logger.warning("Classifier client close failed: %s", e)
        # Ensure DB sessions and engine are properly cleaned up to avoid ResourceWarning
        try:
            SessionLocal.remove()
        except Exception as e:
            logger.warning("SessionLocal.remove() failed: %s", e)
        try:
            engine.dispose()
        except Exception as e:
            logger.warning("engine.dispose() failed: %s", e)


# Initialize FastAPI app with lifespan
app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="Message moderation for buyer/creator chat",
    version=settings.VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# Set up CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_origin_regex=getattr(settings, "CORS_ORIGIN_REGEX", None),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "environment": get_settings().ENVIRONMENT,
    }


# Import and include routers
from .api.v1.routers import chat  # noqa: E402
from .api.v1.routers import moderation  # noqa: E402

# API v1 routes
app.include_router(chat.router, prefix="/api/v1")
app.include_router(moderation.router, prefix="/api/v1")


# Error handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )
