"""
FastAPI Application

Main entry point for the health metrics engine web API.
"""

from typing import Dict

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routes import context, metrics, scores, validation
from src.app_logging import configure_logging
from src.config import get_settings, parse_cors_origins
from src.errors import EngineError
from src.schemas import CALCULATIONS_VERSION

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(
    title="Health Metrics Engine API",
    description="Context-aware health metric calculation and tiered goal safety validation",
    version=CALCULATIONS_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=parse_cors_origins(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(context.router, prefix="/api", tags=["Context"])
app.include_router(metrics.router, prefix="/api", tags=["Metrics"])
app.include_router(validation.router, prefix="/api", tags=["Validation"])
app.include_router(scores.router, prefix="/api", tags=["Scores"])


@app.get("/")
async def root() -> Dict[str, str]:
    """Root endpoint - API information."""
    return {
        "name": "Health Metrics Engine API",
        "version": CALCULATIONS_VERSION,
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
async def health_check() -> Dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "health-metrics-engine"}


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "message": str(exc.detail)},
    )


@app.exception_handler(EngineError)
async def engine_exception_handler(request, exc: EngineError):
    """Engine errors carry their own status code (400 for invalid input)."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "message": str(exc),
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
