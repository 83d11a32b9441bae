"""Route handlers for Web API."""

from cptracker.web.routes.health import router as health_router
from cptracker.web.routes.students import router as students_router
from cptracker.web.routes.sync import router as sync_router
from cptracker.web.routes.cron import router as cron_router
from cptracker.web.routes.settings import router as settings_router

__all__ = [
    "health_router",
    "students_router",
    "sync_router",
    "cron_router",
    "settings_router",
]
