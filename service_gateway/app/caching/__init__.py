"""
Gateway caching package.

Provides the in-process metadata cache used to shield upstream registries
from redundant lookups. Entries are short-lived; confirmed absences are
kept longer than positive answers.
"""

from .registry_cache import NOT_FOUND, RegistryCache

__all__ = ["NOT_FOUND", "RegistryCache"]
