"""FastAPI dependencies."""

from fastapi import Request

from overall.core.services import Services


def get_services(request: Request) -> Services:
    """The services bound to this app by ``create_app``."""
    services: Services = request.app.state.services
    return services
