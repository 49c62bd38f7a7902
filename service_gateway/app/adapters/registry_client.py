"""
Registry client for Gateway.

Issues GET requests against the private and public package registries and
classifies each response as found, not found, or upstream error.
"""

import time
from typing import Any, Dict, Optional, TYPE_CHECKING

import httpx

from shared.logging import get_logger
from shared.errors import MalformedDocumentError, PackageNotFoundError, UpstreamRegistryError
from ..domain.models import FetchResult, PackageInfoDoc, RegistryClass, UpstreamTarget
from .tarball_stream import TarballStream

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class RegistryClient:
    """Client for fetching package documents and tarballs from upstream registries.

    Each registry class owns a long-lived ``httpx.AsyncClient`` so private
    and public traffic never share a connection pool. Upstream failures are
    logged through the caller's logger and returned as results, never raised.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        max_connections: int = 100,
        max_keepalive_connections: int = 20,
        *,
        metrics: Optional["MetricsCollector"] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.logger = get_logger("gateway.registry_client")
        self.metrics = metrics

        limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
        )
        self._pools: Dict[RegistryClass, httpx.AsyncClient] = {
            registry_class: httpx.AsyncClient(timeout=timeout, limits=limits, transport=transport)
            for registry_class in RegistryClass
        }

    def pool(self, registry_class: RegistryClass) -> httpx.AsyncClient:
        """Connection pool bound to a registry class."""
        return self._pools[registry_class]

    async def fetch_metadata(self, target: UpstreamTarget, log: Any) -> FetchResult[PackageInfoDoc]:
        """Fetch and parse a package info document."""
        start = time.perf_counter()
        try:
            document = await self._get_document(target)
            result = FetchResult.ok(document)
        except PackageNotFoundError:
            result = FetchResult.missing(404)
        except UpstreamRegistryError as exc:
            result = self._report_failure(exc, target, log)

        self._record(target, "metadata", result, time.perf_counter() - start)
        return result

    async def fetch_tarball_stream(self, target: UpstreamTarget, log: Any) -> FetchResult[TarballStream]:
        """Open a streaming tarball download; the body is not read here."""
        start = time.perf_counter()
        try:
            stream = await self._open_tarball(target)
            result = FetchResult.ok(stream)
        except PackageNotFoundError:
            result = FetchResult.missing(404)
        except UpstreamRegistryError as exc:
            result = self._report_failure(exc, target, log)

        self._record(target, "tarball", result, time.perf_counter() - start)
        return result

    async def _get_document(self, target: UpstreamTarget) -> PackageInfoDoc:
        registry = target.registry_class.value
        try:
            response = await self.pool(target.registry_class).get(
                target.url,
                headers={"Accept": "application/json"},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise self._network_error(registry, target, exc)

        if response.status_code == 200:
            try:
                document = response.json()
            except ValueError as exc:
                raise MalformedDocumentError(
                    registry,
                    "Response body is not valid JSON",
                    details={"url": target.url, "status_code": 200, "error": str(exc)},
                )
            if not isinstance(document, dict):
                raise MalformedDocumentError(
                    registry,
                    "Response body is not a JSON object",
                    details={"url": target.url, "status_code": 200},
                )
            return document

        if response.status_code == 404:
            raise PackageNotFoundError(details={"url": target.url})

        raise UpstreamRegistryError(
            registry,
            f"Unexpected status {response.status_code}",
            details={"url": target.url, "status_code": response.status_code, "body": response.text},
        )

    async def _open_tarball(self, target: UpstreamTarget) -> TarballStream:
        registry = target.registry_class.value
        pool = self.pool(target.registry_class)
        try:
            response = await pool.send(pool.build_request("GET", target.url), stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise self._network_error(registry, target, exc)

        if response.status_code == 200:
            return TarballStream(response)

        try:
            if response.status_code == 404:
                raise PackageNotFoundError(details={"url": target.url})
            await response.aread()
            body = response.text
        except httpx.HTTPError as exc:
            raise self._network_error(registry, target, exc)
        finally:
            await response.aclose()

        raise UpstreamRegistryError(
            registry,
            f"Unexpected status {response.status_code}",
            details={"url": target.url, "status_code": response.status_code, "body": body},
        )

    @staticmethod
    def _network_error(registry: str, target: UpstreamTarget, exc: Exception) -> UpstreamRegistryError:
        return UpstreamRegistryError(
            registry,
            f"Request failed: {exc.__class__.__name__}",
            details={"url": target.url, "error": str(exc)},
        )

    @staticmethod
    def _report_failure(exc: UpstreamRegistryError, target: UpstreamTarget, log: Any) -> FetchResult:
        status_code = exc.details.get("status_code")
        log.error(
            "Upstream registry request failed",
            registry=target.registry_class.value,
            url=target.url,
            status_code=status_code,
            code=exc.code,
            error=exc.message,
        )
        body = exc.details.get("body")
        if body:
            log.error(body)
        return FetchResult.failed(exc.message, status_code=status_code)

    def _record(self, target: UpstreamTarget, kind: str, result: FetchResult, duration: float) -> None:
        if not self.metrics:
            return
        self.metrics.record_upstream_request(
            registry=target.registry_class.value,
            kind=kind,
            outcome=result.status.value,
            duration=duration,
        )

    async def close(self) -> None:
        """Release every pooled connection."""
        for pool in self._pools.values():
            await pool.aclose()
        self.logger.info("Registry client pools closed")
