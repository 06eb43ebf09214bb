"""
Factory functions for dependency injection.

Provides application-scoped singleton providers for core infrastructure services.
"""

from functools import lru_cache

from infrastructure.configuration import Settings


@lru_cache
def get_settings() -> Settings:
    """
    Get application-scoped settings singleton.

    This is the single source of truth for settings across the entire process.
    The @lru_cache decorator ensures only ONE instance is created per process.

    Infrastructure packages should use this directly:
        from infrastructure.services.providers import get_settings
        settings = get_settings()

    Tests that need different values clear the cache with
    ``get_settings.cache_clear()`` after patching the environment, or pass
    a Settings instance explicitly to ``jobs.runtime.build_runtime``.

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return Settings()
