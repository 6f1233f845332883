"""FastAPI dependencies resolving application services from app state."""

from fastapi import Request

from src.app.api.http.app_data import ApplicationDependencies
from src.app.core.services.release_service import ReleaseService


def get_app_dependencies(request: Request) -> ApplicationDependencies:
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    return app_deps


def get_release_service(request: Request) -> ReleaseService:
    """Get the ReleaseService built at startup."""
    return get_app_dependencies(request).release_service
