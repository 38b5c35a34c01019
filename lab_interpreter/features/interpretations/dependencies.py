# Interpretations Feature - Dependencies

from fastapi import Request

from lab_interpreter.features.interpretations.service import InterpretationService


def get_interpretation_service(request: Request) -> InterpretationService:
    """Service built in the application lifespan."""
    return request.app.state.interpretation_service
