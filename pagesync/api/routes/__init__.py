from pagesync.api.routes.health import router as health_router
from pagesync.api.routes.pages import router as pages_router
from pagesync.api.routes.stats import router as stats_router
from pagesync.api.routes.sync import router as sync_router
from pagesync.api.routes.webhook import router as webhook_router

__all__ = ["health_router", "pages_router", "stats_router", "sync_router", "webhook_router"]
