# API endpoints and routers

from .auth_endpoints import router as auth_router
from .traveler_endpoints import router as traveler_router
from .guider_endpoints import router as guider_router
from .admin_endpoints import router as admin_router
from .event_endpoints import router as event_router
from .review_endpoints import router as review_router
from .payment_endpoints import router as payment_router
from .health_endpoints import router as health_router

__all__ = [
    "auth_router",
    "traveler_router",
    "guider_router",
    "admin_router",
    "event_router",
    "review_router",
    "payment_router",
    "health_router",
]
