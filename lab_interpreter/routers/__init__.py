"""FastAPI routers."""

from lab_interpreter.routers.health import router as health_router
from lab_interpreter.features.interpretations.router import router as interpretations_router

__all__ = ["health_router", "interpretations_router"]
