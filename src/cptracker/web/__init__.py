"""Web API module: FastAPI app factory, routers and schemas."""

from cptracker.web.api import create_app

__all__ = ["create_app"]
