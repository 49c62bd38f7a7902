"""
Unit tests for Gateway main service.
"""

import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_gateway.app.domain.models import RegistryClass
from service_gateway.app.main import GatewayService
from shared.config import get_config
from shared.test_helpers import FakeRegistry, TestDataFactory


PUBLIC_HOST = "registry.npmjs.org"
PRIVATE_HOST = "10.0.0.5"


class TestGatewayService:
    """Test cases for GatewayService."""

    @pytest.fixture
    def registry(self):
        """Fake upstream with one public and one private package."""
        registry = FakeRegistry()
        registry.add_json(
            PUBLIC_HOST,
            "/react",
            TestDataFactory.package_document(
                "react",
                {"18.2.0": {"main": "index.js", "scripts": {"test": "jest"}}},
            ),
        )
        registry.add_bytes(
            PUBLIC_HOST,
            "/react/-/react-18.2.0.tgz",
            TestDataFactory.tarball({"package.json": TestDataFactory.package_json("react", "18.2.0")}),
        )
        registry.add_json(
            PRIVATE_HOST,
            "/@digitalzz%2Fui",
            TestDataFactory.package_document("@digitalzz/ui", {"1.0.0": {}}),
        )
        registry.add_bytes(PUBLIC_HOST, "/broken", b"upstream down", status_code=500)
        return registry

    @pytest.fixture
    def gateway_service(self, registry):
        """Create GatewayService bound to the fake upstream."""
        config = get_config(
            "gateway",
            8090,
            public_registry_url="https://registry.npmjs.org",
            private_registry_url="http://10.0.0.5:4873",
            private_scopes=["@digitalzz"],
        )
        return GatewayService(config, transport=registry.transport)

    @pytest.fixture
    def client(self, gateway_service):
        """Create test client."""
        with TestClient(gateway_service.app) as client:
            yield client

    def test_health_endpoint(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "gateway"
        assert data["status"] == "ok"
        assert data["dependencies"]["registry_cache"]["negative_ttl_seconds"] == 300.0
        assert data["dependencies"]["public_registry"] == "https://registry.npmjs.org"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_versions_endpoint(self, client):
        response = client.get("/api/v1/packages/versions", params={"name": "react"})

        assert response.status_code == 200
        assert response.json() == {"versions": ["18.2.0"], "tags": {"latest": "18.2.0"}}

    def test_private_versions_endpoint(self, client, registry):
        response = client.get("/api/v1/packages/versions", params={"name": "@digitalzz/ui"})

        assert response.status_code == 200
        assert response.json()["versions"] == ["1.0.0"]
        assert registry.calls_to(PUBLIC_HOST) == []

    def test_versions_not_found(self, client):
        response = client.get("/api/v1/packages/versions", params={"name": "nope"})

        assert response.status_code == 404
        assert response.json()["code"] == "PACKAGE_NOT_FOUND"
        assert response.json()["details"] == {"package": "nope"}

    def test_versions_upstream_error(self, client):
        response = client.get("/api/v1/packages/versions", params={"name": "broken"})

        assert response.status_code == 502
        data = response.json()
        assert data["code"] == "UPSTREAM_REGISTRY_ERROR"
        assert data["details"]["upstream_status"] == 500

    def test_config_endpoint(self, client):
        response = client.get("/api/v1/packages/config", params={"name": "react", "version": "18.2.0"})

        assert response.status_code == 200
        assert response.json() == {"name": "react", "version": "18.2.0", "main": "index.js"}

    def test_config_missing_version(self, client):
        response = client.get("/api/v1/packages/config", params={"name": "react", "version": "0.0.1"})

        assert response.status_code == 404
        assert response.json()["details"] == {"package": "react", "version": "0.0.1"}

    def test_tarball_endpoint_streams_decompressed_tar(self, client):
        response = client.get("/api/v1/packages/tarball", params={"name": "react", "version": "18.2.0"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/x-tar"
        expected = TestDataFactory.tarball(
            {"package.json": TestDataFactory.package_json("react", "18.2.0")},
            compress=False,
        )
        assert response.content == expected

    def test_tarball_not_found(self, client):
        response = client.get("/api/v1/packages/tarball", params={"name": "react", "version": "1.0.0"})
        assert response.status_code == 404

    @pytest.mark.parametrize("name", ["../etc/passwd", "a/b", "@scope/a/b", " react", "a\x01b"])
    def test_invalid_package_name_rejected(self, client, name):
        response = client.get("/api/v1/packages/versions", params={"name": name})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_invalid_version_rejected(self, client):
        response = client.get("/api/v1/packages/tarball", params={"name": "react", "version": "1.0.0/../x"})
        assert response.status_code == 400

    def test_control_character_in_version_rejected(self, client, registry):
        response = client.get("/api/v1/packages/tarball", params={"name": "react", "version": "1.0.0\x01"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert registry.requests == []

    def test_missing_query_parameter(self, client):
        response = client.get("/api/v1/packages/config", params={"name": "react"})
        assert response.status_code == 422

    def test_metrics_endpoint(self, client):
        client.get("/api/v1/packages/versions", params={"name": "react"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "upstream_requests_total" in response.text
        assert "registry_cache_lookups_total" in response.text

    def test_shutdown_closes_registry_pools(self, gateway_service):
        with TestClient(gateway_service.app):
            pass

        for registry_class in RegistryClass:
            assert gateway_service.registry_client.pool(registry_class).is_closed
