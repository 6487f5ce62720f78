"""
Main Application - Advanced Reports API

FastAPI web application serving the advanced reports endpoint, a health
check, request logging and consistent JSON error handling.

Author: Waqqas Hanafi
Copyright: © 2025 Calaveras County Health and Human Services Agency
"""

# ============================================================================
# IMPORTS
# ============================================================================
import logging
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from . import __version__
from .config import config, setup_logging
from .errors import ReportError, error_response
from .reports import reports_router
from .reports.router import get_es_client
from .reports.service import ElasticsearchClient

# Global state
app_state = {
    "es_client": None
}

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: logging setup and the shared Elasticsearch client"""
    setup_logging()
    app_state["es_client"] = ElasticsearchClient()
    app_state["es_client"].open()
    logger.info(
        f"Advanced reports API started ({config.environment.value}) - "
        f"index {config.elasticsearch.index} at {config.elasticsearch.url}"
    )

    yield

    logger.info("Shutting down application...")
    if app_state.get("es_client"):
        app_state["es_client"].close()
        app_state["es_client"] = None
        logger.info("Elasticsearch session closed")


app = FastAPI(
    title="Advanced Reports API",
    description="Per-user statistics, counts and recorded taxa lists from the occurrence index",
    version=__version__,
    lifespan=lifespan
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests with status and duration"""
    start_time = datetime.now()

    # Skip logging health checks unless they fail (reduce noise)
    is_health_check = request.url.path == "/api/health"
    query_string = f"?{request.url.query}" if request.url.query else ""

    if not is_health_check:
        logger.info(f"Request: {request.method} {request.url.path}{query_string}")

    response = await call_next(request)
    duration = (datetime.now() - start_time).total_seconds()

    if response.status_code >= 500:
        logger.error(
            f"SERVER ERROR: {request.method} {request.url.path}{query_string} - "
            f"Status: {response.status_code} - Duration: {duration:.3f}s - "
            f"Client: {request.client.host if request.client else 'unknown'}"
        )
    elif response.status_code == 401:
        logger.debug(
            f"Unauthorized: {request.method} {request.url.path}{query_string} - "
            f"Status: {response.status_code} - Duration: {duration:.3f}s"
        )
    elif response.status_code >= 400:
        logger.warning(
            f"CLIENT ERROR: {request.method} {request.url.path}{query_string} - "
            f"Status: {response.status_code} - Duration: {duration:.3f}s"
        )
    elif not is_health_check:
        logger.info(f"Response: {request.method} {request.url.path} - Status: {response.status_code} - Duration: {duration:.3f}s")

    return response


# ============================================================================
# HEALTH CHECK
# ============================================================================

@app.get("/api/health")
def health_check():
    """Health check reporting Elasticsearch reachability"""
    client = get_es_client()
    es_healthy = client.ping()
    return {
        "status": "healthy" if es_healthy else "unhealthy",
        "elasticsearch": "connected" if es_healthy else "disconnected",
        "timestamp": datetime.now().isoformat()
    }


# ============================================================================
# REPORTS API
# ============================================================================

app.include_router(reports_router)


@app.exception_handler(ReportError)
async def report_error_handler(request: Request, exc: ReportError):
    """Render report validation failures as the JSON error envelope"""
    logger.info(
        f"Report request rejected: {request.method} {request.url.path} - "
        f"Status: {exc.code} - {exc.title}"
    )
    return error_response(exc)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler for unhandled errors"""
    logger.error(
        f"Unhandled Exception: {request.method} {request.url.path}\n"
        f"  Exception Type: {type(exc).__name__}\n"
        f"  Message: {str(exc)}",
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "errors": [
                {"status": "500", "title": "An unexpected error occurred"}
            ]
        }
    )


# ============================================================================
# MAIN APPLICATION ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "advanced_reports.app:app",
        host=config.web.host,
        port=config.web.port,
        reload=config.web.reload,
        log_level=config.web.log_level
    )
