from functools import lru_cache

from ..config import settings
from .provider import BaaSProvider


@lru_cache(maxsize=1)
def get_baas() -> BaaSProvider:
    """
    Get the backend provider based on configuration.
    Uses the hosted platform in production and the local stand-in for development.
    """
    if settings.baas_provider == "local":
        from .local_provider import LocalProvider
        return LocalProvider()
    from .appwrite_provider import AppwriteProvider
    return AppwriteProvider()
