"""
News Vote API Service - FastAPI Application.

Community moderation of news items: users vote Fake / Not Fake and the
aggregated valid votes decide each item's status.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from newsvote.config import get_settings
from newsvote.database import init_db
from newsvote.errors import VoteServiceError
from newsvote.routes import comments_router, news_router, users_router, votes_router


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting News Vote API Service...")
    init_db()
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down News Vote API Service...")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="""
## News Vote API

Users submit news items and the community judges them.

### API Flow

1. A user submits a news item (POST /api/news); it starts **Pending**
2. Other users vote **Fake** or **Not Fake** (POST /api/votes), one valid vote each
3. After every vote event the valid votes are recounted and the status re-resolved:
   below the minimum vote count the item stays Pending, otherwise the fake
   ratio decides between Fake, Not Fake and Pending
4. Administrators can invalidate votes and force recalculation
    """,
    version=settings.app_version,
    lifespan=lifespan,
)

# Configure CORS
origins = settings.allowed_origins.split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Error envelope
# =============================================================================


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "statusCode": status_code},
    )


@app.exception_handler(VoteServiceError)
async def vote_service_error_handler(request: Request, exc: VoteServiceError):
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return error_response(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return error_response(400, "Validation failed: " + "; ".join(messages))


# Include routers
app.include_router(news_router, prefix="/api")
app.include_router(votes_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(comments_router, prefix="/api")


# Root endpoint
@app.get("/")
def root():
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs_url": "/docs",
        "openapi_url": "/openapi.json",
        "endpoints": {
            "news": "/api/news",
            "votes": "/api/votes",
            "users": "/api/users",
            "health": "/health",
        }
    }


@app.get("/health")
def health():
    """Quick health check."""
    return {"status": "ok", "version": settings.app_version}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "newsvote.app:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.debug
    )
