"""Shared FastAPI dependencies."""

from fastapi import Request

from ..container import Container


def get_container(request: Request) -> Container:
    """The application object graph built during startup."""
    return request.app.state.container
