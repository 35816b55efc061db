"""Route handlers for Web API."""

from ecertify.web.routes.health import router as health_router
from ecertify.web.routes.institutes import router as institutes_router
from ecertify.web.routes.students import router as students_router
from ecertify.web.routes.certificates import router as certificates_router
from ecertify.web.routes.transfers import router as transfers_router
from ecertify.web.routes.events import router as events_router

__all__ = [
    "health_router",
    "institutes_router",
    "students_router",
    "certificates_router",
    "transfers_router",
    "events_router",
]
