"""
FastAPI application entry point.
Main application setup and configuration.
"""

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from pydantic import ValidationError as PydanticValidationError
from supabase import AsyncClient
import logging

from roomfinder.config import settings
from roomfinder.backend import close_backend, get_backend, init_backend, test_backend_connection
from roomfinder.routers import (
    ROUTE_TABLE,
    auth_router,
    conversations_router,
    dashboard_router,
    listings_router,
)
from roomfinder.utils.dependencies import get_session_registry
from roomfinder.utils.exceptions import APIException
from roomfinder.services.error_handler import ErrorHandlerService

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    await init_backend()
    if not await test_backend_connection():
        logger.error("Failed to reach the backend on startup")

    yield

    logger.info("Shutting down application")
    await get_session_registry().close_all()
    await close_backend()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Room rental marketplace API.

    ## Features

    * **Browse**: Search available rooms by location, filter by rent and facilities
    * **Listings**: Owners create and edit listings with image uploads
    * **Dashboard**: Owners toggle availability and delete their listings
    * **Conversations**: Tenants and owners chat per listing, live over WebSocket

    ## Authentication

    Sign in through `/api/v1/auth/login` to obtain a session token, then send it
    in the Authorization header as `Bearer <token>`.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Authentication",
            "description": "Sign-in, sign-up and session management"
        },
        {
            "name": "Listings",
            "description": "Browse, listing detail and the owner's listing editor"
        },
        {
            "name": "Owner Dashboard",
            "description": "Owner's listings with availability and deletion"
        },
        {
            "name": "Conversations",
            "description": "Tenant/owner messaging"
        },
        {
            "name": "Health",
            "description": "System health endpoints"
        }
    ],
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix=settings.api_v1_prefix)
app.include_router(listings_router, prefix=settings.api_v1_prefix)
app.include_router(dashboard_router, prefix=settings.api_v1_prefix)
app.include_router(conversations_router, prefix=settings.api_v1_prefix)


# Global exception handlers using ErrorHandlerService
@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """Handle application exceptions with structured error responses."""
    return ErrorHandlerService.handle_api_exception(exc, request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI request validation errors with detailed field information."""
    return ErrorHandlerService.handle_validation_error(exc, request)


@app.exception_handler(PydanticValidationError)
async def pydantic_validation_exception_handler(request: Request, exc: PydanticValidationError):
    """Handle Pydantic validation errors with detailed field information."""
    return ErrorHandlerService.handle_validation_error(exc, request)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with structured error responses."""
    return ErrorHandlerService.handle_http_exception(exc, request)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with secure error responses."""
    return ErrorHandlerService.handle_unexpected_error(exc, request)


@app.get("/", tags=["Health"])
async def root():
    """
    Root endpoint providing basic API information.
    """
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.environment,
        "status": "healthy",
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json"
        },
        "api_prefix": settings.api_v1_prefix
    }


@app.get("/health", tags=["Health"])
async def health_check(client: AsyncClient = Depends(get_backend)):
    """
    Health check endpoint with a backend connectivity probe.
    Used by container health checks and load balancers.
    """
    if not await test_backend_connection(client):
        raise HTTPException(
            status_code=503,
            detail="Backend connection failed"
        )

    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "backend": "connected",
        "sessions": len(get_session_registry())
    }


@app.get(f"{settings.api_v1_prefix}/routes", tags=["Health"])
async def get_routes():
    """View route table with the access level each view requires."""
    return {"routes": ROUTE_TABLE}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "roomfinder.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
