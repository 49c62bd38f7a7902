"""
Package resolution: metadata lookups through the shared cache and
uncached tarball streams.
"""

from .metadata_resolver import MetadataResolver, clean_package_config
from .tarball_resolver import TarballResolver

__all__ = [
    "MetadataResolver",
    "TarballResolver",
    "clean_package_config",
]
