from .auth_api import router as auth_api_router
from .offices_api import router as offices_api_router
from .categories_api import router as categories_api_router
from .users_api import router as users_api_router
from .assets_api import router as assets_api_router
from .loans_api import router as loans_api_router
from .dashboard_api import router as dashboard_api_router

ALL_ROUTERS = (
    auth_api_router,
    offices_api_router,
    categories_api_router,
    users_api_router,
    assets_api_router,
    loans_api_router,
    dashboard_api_router,
)
