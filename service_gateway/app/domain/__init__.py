"""
Domain models and upstream selection for the Gateway Service.
"""

from .models import FetchResult, FetchStatus, RegistryClass, UpstreamTarget, VersionsAndTags
from .upstream_selector import UpstreamSelector, encode_package_name

__all__ = [
    "FetchResult",
    "FetchStatus",
    "RegistryClass",
    "UpstreamTarget",
    "UpstreamSelector",
    "VersionsAndTags",
    "encode_package_name",
]
