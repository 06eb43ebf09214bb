"""Singleton providers.

Provides application-scoped provider functions for infrastructure services.
"""

from infrastructure.services.providers import get_settings

__all__ = [
    "get_settings",
]
