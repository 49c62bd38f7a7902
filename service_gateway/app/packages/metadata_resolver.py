"""
Package metadata resolution backed by the shared registry cache.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Mapping, Optional, TYPE_CHECKING

from pydantic import ValidationError as ModelValidationError

from ..adapters.registry_client import RegistryClient
from ..caching.registry_cache import NOT_FOUND, RegistryCache
from ..domain.models import FetchResult, FetchStatus, PackageConfig, PackageInfoDoc, VersionsAndTags
from ..domain.upstream_selector import UpstreamSelector

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


# Keys that show up in per-version manifests but are of no use to clients
PACKAGE_CONFIG_EXCLUDE_KEYS = frozenset({
    "browserify",
    "bugs",
    "directories",
    "engines",
    "files",
    "homepage",
    "keywords",
    "maintainers",
    "scripts",
})
INTERNAL_KEY_PREFIX = "_"


def require_logger(log: Any) -> None:
    if log is None:
        raise ValueError("A logger is required for registry lookups")


def clean_package_config(config: Mapping[str, Any]) -> PackageConfig:
    """Drop excluded and internal (``_``-prefixed) keys from a version manifest."""
    return {
        key: value
        for key, value in config.items()
        if not key.startswith(INTERNAL_KEY_PREFIX) and key not in PACKAGE_CONFIG_EXCLUDE_KEYS
    }


class MetadataResolver:
    """Answers version listings and per-version manifests for packages.

    Each query shape has its own cache namespace. Confirmed absences are
    cached for longer than positive answers; upstream failures are never
    cached. Every cache miss fetches the full package document.
    """

    def __init__(
        self,
        selector: UpstreamSelector,
        client: RegistryClient,
        cache: RegistryCache,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        self.selector = selector
        self.client = client
        self.cache = cache
        self.metrics = metrics

    async def get_versions_and_tags(self, package_name: str, log: Any) -> Optional[VersionsAndTags]:
        """Return ``{versions, tags}`` for a package, or None when it cannot be answered."""
        return (await self.resolve_versions_and_tags(package_name, log)).value

    async def get_package_config(self, package_name: str, version: str, log: Any) -> Optional[PackageConfig]:
        """Return the cleaned manifest for ``package_name@version``, or None."""
        return (await self.resolve_package_config(package_name, version, log)).value

    async def resolve_versions_and_tags(self, package_name: str, log: Any) -> FetchResult[VersionsAndTags]:
        require_logger(log)
        cache_key = f"versions-{package_name}"

        cached = self._read_cache("versions", cache_key, VersionsAndTags.model_validate_json)
        if cached is not None:
            return cached

        info = await self._fetch_package_info(package_name, log)
        if info.status is FetchStatus.UPSTREAM_ERROR:
            return FetchResult.failed(info.detail, status_code=info.status_code)

        versions = info.value.get("versions") if info.found else None
        if versions is None:
            self.cache.set_not_found(cache_key)
            return FetchResult.missing()
        if not isinstance(versions, Mapping):
            return self._malformed(package_name, log, "versions is not an object")

        try:
            value = VersionsAndTags(
                versions=list(versions),
                tags=info.value.get("dist-tags") or {},
            )
        except ModelValidationError as exc:
            return self._malformed(package_name, log, str(exc))

        self.cache.set_found(cache_key, value.model_dump_json())
        return FetchResult.ok(value)

    async def resolve_package_config(self, package_name: str, version: str, log: Any) -> FetchResult[PackageConfig]:
        require_logger(log)
        cache_key = f"config-{package_name}-{version}"

        cached = self._read_cache("config", cache_key, json.loads)
        if cached is not None:
            return cached

        info = await self._fetch_package_info(package_name, log)
        if info.status is FetchStatus.UPSTREAM_ERROR:
            return FetchResult.failed(info.detail, status_code=info.status_code)

        versions = info.value.get("versions") if info.found else None
        if versions is not None and not isinstance(versions, Mapping):
            return self._malformed(package_name, log, "versions is not an object")
        if versions is None or version not in versions:
            self.cache.set_not_found(cache_key)
            return FetchResult.missing()

        manifest = versions[version]
        if not isinstance(manifest, Mapping):
            return self._malformed(package_name, log, f"manifest for {version} is not an object")

        value = clean_package_config(manifest)
        self.cache.set_found(cache_key, json.dumps(value))
        return FetchResult.ok(value)

    async def _fetch_package_info(self, package_name: str, log: Any) -> FetchResult[PackageInfoDoc]:
        registry_class = self.selector.classify(package_name)
        target = self.selector.build_metadata_target(package_name, registry_class)

        log.debug(
            "Fetching package info",
            package=package_name,
            registry=registry_class.value,
            url=target.url,
        )
        result = await self.client.fetch_metadata(target, log)

        if result.status is FetchStatus.UPSTREAM_ERROR:
            log.error(
                "Error fetching package info",
                package=package_name,
                status_code=result.status_code,
            )
        return result

    def _read_cache(
        self,
        namespace: str,
        cache_key: str,
        decode: Callable[[str], Any],
    ) -> Optional[FetchResult[Any]]:
        cached = self.cache.get(cache_key)
        if cached is None:
            self._record_lookup(namespace, "miss")
            return None

        if cached == NOT_FOUND:
            self._record_lookup(namespace, "negative_hit")
            return FetchResult.missing()

        self._record_lookup(namespace, "hit")
        return FetchResult.ok(decode(cached))

    def _record_lookup(self, namespace: str, result: str) -> None:
        if self.metrics:
            self.metrics.record_cache_lookup(namespace, result)

    @staticmethod
    def _malformed(package_name: str, log: Any, reason: str) -> FetchResult[Any]:
        log.error("Malformed package info document", package=package_name, reason=reason)
        return FetchResult.failed(f"Malformed package info document: {reason}")
