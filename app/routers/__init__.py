# Routers package
from . import collection_router
from . import proxy_router

__all__ = [
    "collection_router",
    "proxy_router",
]
