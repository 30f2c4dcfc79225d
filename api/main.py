"""
SEO Audit Engine API

FastAPI application that:
1. Authenticates users and manages their projects
2. Queues crawl sessions and runs audits in the background
3. Serves analyses, issues, recommendations and trend data
4. Generates reports and bulk exports
5. Exposes cache monitoring and maintenance
6. Aggregates cross-project dashboard figures

Run locally:
    uvicorn api.main:app --reload
"""

import logging
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.database import init_db, check_db_connection, get_db_info
from src.utils.config import configure_logging, get_settings
from src.utils.errors import SEOAuditError

from api import auth, projects, crawl, analyses, trends, reports, cache, dashboard

API_VERSION = "0.4.0"

configure_logging()
logger = logging.getLogger(__name__)

settings = get_settings()

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Crawl websites, score their SEO, track issues and trends",
    version=API_VERSION,
)

app.include_router(auth.router)
app.include_router(projects.router)
app.include_router(crawl.router)
app.include_router(analyses.router)
app.include_router(trends.router)
app.include_router(reports.router)
app.include_router(cache.router)
app.include_router(dashboard.router)


# ============================================================================
# STARTUP - Initialize Database
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    logger.info("Initializing database...")
    try:
        init_db()
        if check_db_connection():
            logger.info("Database connection verified")
        else:
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")


# ============================================================================
# ERROR HANDLERS
# ============================================================================

def _error(status_code: int, message, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, exc.detail, getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else err.get("msg"))
    return _error(422, "; ".join(messages) or "Invalid request")


@app.exception_handler(SEOAuditError)
async def domain_exception_handler(request: Request, exc: SEOAuditError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _error(exc.status_code, exc.message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return _error(500, "Internal server error")


# ============================================================================
# HEALTH
# ============================================================================

@app.get("/")
async def root():
    return {"service": settings.APP_NAME, "version": API_VERSION, "docs": "/docs"}


@app.get("/api/health")
async def health():
    """Health check including database status."""
    try:
        db_connected = check_db_connection()
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        db_connected = False

    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": API_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": "connected" if db_connected else "disconnected",
    }


@app.get("/api/database")
async def database_status():
    """
    Get detailed database status.

    Returns database type, connection status and tables created.
    """
    return get_db_info()
