"""Lab Interpretation Service - asynchronous interpretation of lab result PDFs."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lab_interpreter.config import settings
from lab_interpreter.database import Database
from lab_interpreter.core.logging import logger
from lab_interpreter.features.interpretations import (
    InterpretationOrchestrator,
    InterpretationService,
    PipelineRunner,
)
from lab_interpreter.graphs.interpretation import PipelineDependencies
from lab_interpreter.routers import health_router, interpretations_router
from lab_interpreter.services.directory import BeanieClinicalDirectory
from lab_interpreter.services.reasoning_service import OpenAIReasoningService
from lab_interpreter.services.repository import BeanieInterpretationRepository
from lab_interpreter.services.storage import LocalFileStorage


def build_service(deps: PipelineDependencies, storage: LocalFileStorage) -> InterpretationService:
    """Wire the orchestrator, runner and service around the given collaborators."""
    orchestrator = InterpretationOrchestrator(deps)
    runner = PipelineRunner(orchestrator.run)
    return InterpretationService(
        repository=deps.repository,
        directory=deps.directory,
        storage=storage,
        runner=runner,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME}...")

    # Create upload directory
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    logger.info(f"Upload directory: {settings.UPLOAD_DIR}")

    # Connect to database
    await Database.connect_db()

    service: Optional[InterpretationService] = getattr(app.state, "interpretation_service", None)
    if service is None:
        deps = PipelineDependencies(
            repository=BeanieInterpretationRepository(),
            directory=BeanieClinicalDirectory(),
            reasoning=OpenAIReasoningService(),
        )
        service = build_service(deps, LocalFileStorage(settings.UPLOAD_DIR, settings.max_upload_bytes))
        app.state.interpretation_service = service

    logger.info(f"Service started on port {settings.PORT}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    await service.runner.shutdown(settings.SHUTDOWN_GRACE_SECONDS)
    await Database.close_db()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Asynchronous interpretation of lab result PDFs",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router)
app.include_router(interpretations_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
