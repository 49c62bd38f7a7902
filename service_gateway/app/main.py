"""
Registry gateway service.

Wires the process-scoped upstream selector, registry connection pools and
metadata cache at startup and exposes package lookups over HTTP.
"""

import os
from typing import Any, Dict, Optional

import httpx
from fastapi import Query
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import PackageNotFoundError, UpstreamRegistryError, ValidationError
from shared.logging import get_logger
from .adapters.registry_client import RegistryClient
from .caching.registry_cache import RegistryCache
from .domain.models import FetchResult
from .domain.upstream_selector import UpstreamSelector
from .packages import MetadataResolver, TarballResolver


DEFAULT_PORT = 8090


class GatewayService(BaseService):
    """Registry gateway service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        port = config.port if config else int(os.getenv("PORT", DEFAULT_PORT))
        super().__init__("gateway", port, config=config or get_config("gateway", port))

        self.selector = UpstreamSelector(
            self.config.public_registry_url,
            self.config.private_registry_url,
            self.config.private_scopes,
        )
        self.registry_client = RegistryClient(
            self.config.upstream_timeout,
            self.config.upstream_max_connections,
            self.config.upstream_max_keepalive,
            metrics=self.metrics,
            transport=transport,
        )
        self.registry_cache = RegistryCache(
            self.config.cache_max_bytes,
            self.config.cache_ttl_seconds,
        )
        self.metadata_resolver = MetadataResolver(
            self.selector,
            self.registry_client,
            self.registry_cache,
            metrics=self.metrics,
        )
        self.tarball_resolver = TarballResolver(self.selector, self.registry_client)
        self.package_logger = get_logger("gateway.packages")

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.registry_client.close()

        self._setup_package_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.gateway_service = self

    def _setup_package_routes(self):
        """Set up package lookup routes."""

        @self.app.get("/api/v1/packages/versions")
        async def get_versions(name: str = Query(..., min_length=1)):
            """List published versions and dist-tags of a package."""
            self._validate_package_request(name)
            result = await self.metadata_resolver.resolve_versions_and_tags(name, self.package_logger)
            return self._unwrap(result, name).model_dump()

        @self.app.get("/api/v1/packages/config")
        async def get_config_for_version(
            name: str = Query(..., min_length=1),
            version: str = Query(..., min_length=1),
        ):
            """Return the cleaned manifest of one package version."""
            self._validate_package_request(name, version)
            result = await self.metadata_resolver.resolve_package_config(name, version, self.package_logger)
            return self._unwrap(result, name, version)

        @self.app.get("/api/v1/packages/tarball")
        async def get_tarball(
            name: str = Query(..., min_length=1),
            version: str = Query(..., min_length=1),
        ):
            """Stream the decompressed tarball of one package version."""
            self._validate_package_request(name, version)
            result = await self.tarball_resolver.get_package(name, version, self.package_logger)
            stream = self._unwrap(result, name, version)
            return StreamingResponse(
                stream,
                media_type="application/x-tar",
                background=BackgroundTask(stream.aclose),
            )

    def _validate_package_request(self, name: str, version: Optional[str] = None) -> None:
        """Reject names and versions that would escape the registry path."""
        if not name.isprintable() or name != name.strip():
            raise ValidationError("Invalid package name", details={"name": name})
        if name.startswith(".") or ".." in name:
            raise ValidationError("Invalid package name", details={"name": name})
        if name.count("/") > (1 if name.startswith("@") else 0):
            raise ValidationError("Invalid package name", details={"name": name})
        if version is not None and (
            "/" in version or not version.isprintable() or version != version.strip()
        ):
            raise ValidationError("Invalid package version", details={"version": version})

    def _unwrap(self, result: FetchResult, name: str, version: Optional[str] = None) -> Any:
        """Turn a lookup result into a value or a gateway error."""
        details: Dict[str, Any] = {"package": name}
        if version is not None:
            details["version"] = version

        if result.found:
            return result.value
        if result.not_found:
            raise PackageNotFoundError(details=details)

        details["upstream_status"] = result.status_code
        raise UpstreamRegistryError(
            self.selector.classify(name).value,
            result.detail or "Upstream registry unavailable",
            details=details,
        )

    async def _check_dependencies(self) -> Dict[str, Any]:
        """Report cache occupancy and configured upstreams."""
        return {
            "registry_cache": self.registry_cache.stats(),
            "public_registry": self.config.public_registry_url,
            "private_registry": self.config.private_registry_url,
        }


def create_app(config: Optional[ServiceConfig] = None, *, transport: Optional[httpx.AsyncBaseTransport] = None):
    """Create FastAPI app instance."""
    return GatewayService(config, transport=transport).app


if __name__ == "__main__":
    GatewayService().run()
