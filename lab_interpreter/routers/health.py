"""Health check endpoints."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from lab_interpreter.config import settings
from lab_interpreter.database import Database

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "lab-interpreter",
        "version": "0.1.0",
        "environment": settings.ENVIRONMENT,
    }


@router.get("/ready")
async def readiness_check():
    """Readiness check for Kubernetes/Docker."""
    if not await Database.ping():
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": "unreachable"})
    return {"status": "ready"}
