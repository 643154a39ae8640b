"""
FastAPI application serving the book catalog GraphQL API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Optional

import structlog
from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from strawberry.fastapi import GraphQLRouter

from api.cache import CacheManager
from api.config import config as api_config
from api.database import APIDatabaseService
from api.models import ErrorResponse, HealthResponse
from api.rate_limit import RateLimiter
from api.schema import schema
from api.service import BooksService
from catalog.database import DatabaseManager
from utilities.config import config
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)

# Global services, built on startup
db_manager: Optional[DatabaseManager] = None
cache_manager: Optional[CacheManager] = None
books_service: Optional[BooksService] = None

rate_limiters: Dict[str, RateLimiter] = {
    "search": RateLimiter(api_config.search_rate_limit, api_config.search_rate_window),
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global db_manager, cache_manager, books_service

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Book Catalog API")

    try:
        db_manager = DatabaseManager(
            config.database_url,
            echo=config.database_echo,
            pool_size=config.database_pool_size
        )
        await db_manager.connect()

        cache_manager = CacheManager.from_url(
            config.get_redis_url(),
            default_ttl=config.redis_ttl,
            prefix=config.cache_prefix
        )
        cache_health = await cache_manager.health_check()
        if cache_health["status"] != "healthy":
            logger.warning("Cache unavailable at startup; searches will hit the database", **cache_health)

        books_service = BooksService(APIDatabaseService(db_manager.session_factory), cache_manager)

    except Exception as e:
        logger.error("Failed to initialize services", error=str(e))
        raise

    yield

    logger.info("Shutting down Book Catalog API")
    if cache_manager:
        await cache_manager.close()
    if db_manager:
        await db_manager.disconnect()


async def get_context() -> Dict:
    """GraphQL context: services and limiters."""
    return {
        "books_service": books_service,
        "rate_limiters": rate_limiters,
    }


graphql_app = GraphQLRouter(
    schema,
    context_getter=get_context,
    graphql_ide="graphiql" if api_config.graphiql else None,
)

# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description=api_config.api_description,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)

app.include_router(graphql_app, prefix=api_config.graphql_path)


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=str(exc.detail),
            status_code=exc.status_code
        ).model_dump(),
        headers=exc.headers
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if api_config.debug else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).model_dump()
    )


# Health check endpoint (not rate limited)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    cache_status = "unavailable"
    try:
        if books_service:
            health_info = await books_service.db_service.health_check()
            db_status = health_info.get("status", "unknown")
        if cache_manager:
            cache_info = await cache_manager.health_check()
            cache_status = cache_info.get("status", "unknown")

        return HealthResponse(
            status="healthy" if db_status == "healthy" and cache_status == "healthy" else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=api_config.api_version,
            database_status=db_status,
            cache_status=cache_status
        )
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return HealthResponse(
            status="unhealthy",
            timestamp=datetime.now(timezone.utc),
            version=api_config.api_version,
            database_status="unhealthy",
            cache_status=cache_status
        )


@app.get("/stats", tags=["Statistics"])
async def get_stats():
    """Get catalog statistics."""
    if not books_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database service not available"
        )
    try:
        return await books_service.db_service.get_stats()
    except Exception as e:
        logger.error("Failed to get stats", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve statistics"
        )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level=api_config.log_level.lower()
    )
