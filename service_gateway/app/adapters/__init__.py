"""
Adapters package for the Gateway Service.

Contains the HTTP client for the upstream package registries. Adapters
encapsulate:

- Connection pools per registry class
- Response classification (found, not found, upstream error)
- Decompressing tarball streams

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .registry_client import RegistryClient
from .tarball_stream import GunzipMaybe, TarballStream

__all__ = [
    "RegistryClient",
    "GunzipMaybe",
    "TarballStream",
]
