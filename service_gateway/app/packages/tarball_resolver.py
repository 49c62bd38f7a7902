"""
Tarball resolution. Tarballs are streamed straight from upstream and never cached.
"""

from typing import Any

from ..adapters.registry_client import RegistryClient
from ..adapters.tarball_stream import TarballStream
from ..domain.models import FetchResult, FetchStatus
from ..domain.upstream_selector import UpstreamSelector
from .metadata_resolver import require_logger


class TarballResolver:
    """Opens decompressed tarball streams for ``package@version``."""

    def __init__(self, selector: UpstreamSelector, client: RegistryClient) -> None:
        self.selector = selector
        self.client = client

    async def get_package(self, package_name: str, version: str, log: Any) -> FetchResult[TarballStream]:
        """Return a single-consumer stream of the tarball contents.

        The caller owns the returned stream and must drain or close it.
        """
        require_logger(log)
        registry_class = self.selector.classify(package_name)
        target = self.selector.build_tarball_target(package_name, version, registry_class)

        log.debug(
            "Fetching package tarball",
            package=package_name,
            version=version,
            registry=registry_class.value,
            url=target.url,
        )
        result = await self.client.fetch_tarball_stream(target, log)

        if result.status is FetchStatus.UPSTREAM_ERROR:
            log.error(
                "Error fetching tarball",
                package=package_name,
                version=version,
                status_code=result.status_code,
            )
        return result
