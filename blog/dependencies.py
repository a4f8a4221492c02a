"""
Request-scoped access to shared resources.

Routers receive the cache and the image store through these dependencies
instead of importing module globals, so tests can swap either one via
``app.dependency_overrides``.
"""
from blog.cache import CacheManager, cache
from blog.config import settings
from blog.services.image_service import ImageStore


def get_cache() -> CacheManager:
    """The process-wide cache opened in the application lifespan."""
    return cache


def get_image_store() -> ImageStore:
    """Variant storage rooted at ``settings.STORAGE_ROOT``."""
    return ImageStore(settings.STORAGE_ROOT)
