"""
Unit tests for Gateway Registry Client.
"""

import gzip
import pytest
import httpx

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_gateway.app.adapters.registry_client import RegistryClient
from service_gateway.app.domain.models import FetchStatus, RegistryClass, UpstreamTarget
from shared.metrics import MetricsCollector
from shared.test_helpers import FakeRegistry, RecordingLogger, TestDataFactory


PUBLIC_HOST = "registry.npmjs.org"
PRIVATE_HOST = "10.0.0.5"


def public_target(path: str) -> UpstreamTarget:
    return UpstreamTarget(RegistryClass.PUBLIC, "https", PUBLIC_HOST, path)


def private_target(path: str) -> UpstreamTarget:
    return UpstreamTarget(RegistryClass.PRIVATE, "http", PRIVATE_HOST, path, port=4873)


class TestRegistryClient:
    """Test cases for RegistryClient."""

    @pytest.fixture
    def registry(self):
        return FakeRegistry()

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("gateway")

    @pytest.fixture
    def client(self, registry, metrics):
        """Create RegistryClient bound to the fake upstream."""
        return RegistryClient(metrics=metrics, transport=registry.transport)

    @pytest.fixture
    def log(self):
        return RecordingLogger()

    def test_separate_pool_per_registry_class(self, client):
        private_pool = client.pool(RegistryClass.PRIVATE)
        public_pool = client.pool(RegistryClass.PUBLIC)

        assert private_pool is not public_pool
        assert client.pool(RegistryClass.PRIVATE) is private_pool

    @pytest.mark.asyncio
    async def test_fetch_metadata_success(self, client, registry, log):
        document = TestDataFactory.package_document("react", {"18.2.0": {}})
        registry.add_json(PUBLIC_HOST, "/react", document)

        result = await client.fetch_metadata(public_target("/react"), log)

        assert result.status is FetchStatus.FOUND
        assert result.value["name"] == "react"
        assert result.status_code == 200
        assert registry.requests[0].headers["Accept"] == "application/json"
        assert log.events("error") == []

    @pytest.mark.asyncio
    async def test_fetch_metadata_not_found_is_not_logged(self, client, log):
        result = await client.fetch_metadata(public_target("/missing"), log)

        assert result.status is FetchStatus.NOT_FOUND
        assert result.value is None
        assert log.events("error") == []

    @pytest.mark.asyncio
    async def test_fetch_metadata_server_error(self, client, registry, log):
        registry.add_bytes(PUBLIC_HOST, "/react", b"registry exploded", status_code=503)

        result = await client.fetch_metadata(public_target("/react"), log)

        assert result.status is FetchStatus.UPSTREAM_ERROR
        assert result.status_code == 503
        assert "Unexpected status 503" in result.detail
        errors = log.events("error")
        assert "Upstream registry request failed" in errors
        assert "registry exploded" in errors

    @pytest.mark.asyncio
    async def test_fetch_metadata_redirect_is_upstream_error(self, client, registry, log):
        registry.add(
            PUBLIC_HOST,
            "/react",
            lambda request: httpx.Response(302, headers={"Location": "https://elsewhere/react"}),
        )

        result = await client.fetch_metadata(public_target("/react"), log)

        assert result.status is FetchStatus.UPSTREAM_ERROR
        assert result.status_code == 302

    @pytest.mark.asyncio
    async def test_fetch_metadata_malformed_body(self, client, registry, log):
        registry.add_bytes(PUBLIC_HOST, "/react", b"<html>not json</html>")

        result = await client.fetch_metadata(public_target("/react"), log)

        assert result.status is FetchStatus.UPSTREAM_ERROR
        assert "not valid JSON" in result.detail

    @pytest.mark.asyncio
    async def test_fetch_metadata_non_object_body(self, client, registry, log):
        registry.add_json(PUBLIC_HOST, "/react", ["1.0.0"])

        result = await client.fetch_metadata(public_target("/react"), log)

        assert result.status is FetchStatus.UPSTREAM_ERROR
        assert "not a JSON object" in result.detail

    @pytest.mark.asyncio
    async def test_fetch_metadata_network_failure(self, registry, log):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        registry.add(PRIVATE_HOST, "/@corp%2Flib", refuse)
        client = RegistryClient(transport=registry.transport)

        result = await client.fetch_metadata(private_target("/@corp%2Flib"), log)

        assert result.status is FetchStatus.UPSTREAM_ERROR
        assert result.status_code is None
        assert "ConnectError" in result.detail
        assert "Upstream registry request failed" in log.events("error")

    @pytest.mark.asyncio
    async def test_fetch_metadata_timeout(self, registry, log):
        def stall(request):
            raise httpx.ReadTimeout("timed out", request=request)

        registry.add(PUBLIC_HOST, "/slow", stall)
        client = RegistryClient(transport=registry.transport)

        result = await client.fetch_metadata(public_target("/slow"), log)

        assert result.status is FetchStatus.UPSTREAM_ERROR
        assert "ReadTimeout" in result.detail

    @pytest.mark.asyncio
    async def test_unencodable_tarball_url_is_upstream_error(self, client, registry, log):
        result = await client.fetch_tarball_stream(public_target("/react/-/react-1.0.0\x01.tgz"), log)

        assert result.status is FetchStatus.UPSTREAM_ERROR
        assert result.status_code is None
        assert "InvalidURL" in result.detail
        assert registry.requests == []
        assert "Upstream registry request failed" in log.events("error")

    @pytest.mark.asyncio
    async def test_overlong_metadata_url_is_upstream_error(self, client, registry, log):
        result = await client.fetch_metadata(public_target("/" + "a" * 70000), log)

        assert result.status is FetchStatus.UPSTREAM_ERROR
        assert "InvalidURL" in result.detail
        assert registry.requests == []

    @pytest.mark.asyncio
    async def test_private_target_uses_private_host_and_port(self, client, registry, log):
        registry.add_json(PRIVATE_HOST, "/@corp%2Flib", {"versions": {}})

        await client.fetch_metadata(private_target("/@corp%2Flib"), log)

        request = registry.requests[0]
        assert request.url.host == PRIVATE_HOST
        assert request.url.port == 4873
        assert request.url.scheme == "http"

    @pytest.mark.asyncio
    async def test_fetch_tarball_stream_decompresses(self, client, registry, log):
        archive = TestDataFactory.tarball({"package.json": b"{}"}, compress=False)
        registry.add_bytes(PUBLIC_HOST, "/react/-/react-18.2.0.tgz", gzip.compress(archive))

        result = await client.fetch_tarball_stream(public_target("/react/-/react-18.2.0.tgz"), log)

        assert result.status is FetchStatus.FOUND
        assert await result.value.read() == archive
        assert result.value.closed

    @pytest.mark.asyncio
    async def test_fetch_tarball_not_found(self, client, log):
        result = await client.fetch_tarball_stream(public_target("/react/-/react-0.0.0.tgz"), log)

        assert result.status is FetchStatus.NOT_FOUND
        assert log.events("error") == []

    @pytest.mark.asyncio
    async def test_fetch_tarball_server_error_captures_body(self, client, registry, log):
        registry.add_bytes(PUBLIC_HOST, "/react/-/react-18.2.0.tgz", b"bad gateway", status_code=502)

        result = await client.fetch_tarball_stream(public_target("/react/-/react-18.2.0.tgz"), log)

        assert result.status is FetchStatus.UPSTREAM_ERROR
        assert result.status_code == 502
        assert "bad gateway" in log.events("error")

    @pytest.mark.asyncio
    async def test_records_upstream_metrics(self, client, registry, metrics, log):
        registry.add_json(PUBLIC_HOST, "/react", {"versions": {}})

        await client.fetch_metadata(public_target("/react"), log)
        await client.fetch_metadata(public_target("/missing"), log)

        counter = metrics.get_metric("upstream_requests_total")
        assert counter.labels(registry="public", kind="metadata", outcome="found")._value.get() == 1
        assert counter.labels(registry="public", kind="metadata", outcome="not_found")._value.get() == 1

    @pytest.mark.asyncio
    async def test_close_releases_pools(self, client):
        await client.close()

        assert client.pool(RegistryClass.PRIVATE).is_closed
        assert client.pool(RegistryClass.PUBLIC).is_closed
