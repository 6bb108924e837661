"""Route modules."""

from .usage import router as usage_router
from .videos import router as videos_router
from .webhooks import router as webhooks_router

__all__ = ["usage_router", "videos_router", "webhooks_router"]
