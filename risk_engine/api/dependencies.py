"""
API Dependencies

FastAPI dependency injection for shared resources.
"""

from fastapi import Request

from ..service import FraudDetectionService


def get_service(request: Request) -> FraudDetectionService:
    """Service instance built in the app lifespan (or injected by create_app)."""
    return request.app.state.service
