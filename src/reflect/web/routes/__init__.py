"""Route handlers for the web API."""

from reflect.web.routes.health import router as health_router
from reflect.web.routes.glossary import router as glossary_router
from reflect.web.routes.certifications import router as certifications_router
from reflect.web.routes.reflections import router as reflections_router
from reflect.web.routes.techniques import router as techniques_router
from reflect.web.routes.resets import router as resets_router
from reflect.web.routes.insights import router as insights_router
from reflect.web.routes.validate import router as validate_router

__all__ = [
    "health_router",
    "glossary_router",
    "certifications_router",
    "reflections_router",
    "techniques_router",
    "resets_router",
    "insights_router",
    "validate_router",
]
