"""Tests for the HTTP API."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from ycworkers.adapters.registry import NodeRegistry
from ycworkers.app.main import app
from ycworkers.control.provisioner import ProvisionerPool
from ycworkers.core.domain.instance import ProvisionOption
from ycworkers.core.errors import CredentialError, TemplateNotFoundError
from ycworkers.core.models.template import Template, build_template


@pytest.fixture
def pool(template: Template) -> MagicMock:
    pool = MagicMock(spec=ProvisionerPool)
    pool.templates = [template, build_template("windows", instance_cap=2)]
    pool.get.return_value.pending = 1
    pool.provision = AsyncMock(return_value=None)
    return pool


@pytest.fixture
def client(pool: MagicMock, registry: NodeRegistry) -> TestClient:
    # No context manager: the lifespan (real gateway wiring) does not run
    app.state.pool = pool
    app.state.registry = registry
    return TestClient(app)


class TestTemplates:
    def test_list(self, client: TestClient) -> None:
        resp = client.get("/api/v1/templates")

        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 2
        linux, windows = body["items"]
        assert linux["name"] == "linux"
        assert linux["labels"] == ["docker", "linux"]
        assert linux["remote_admin"] == "alice"
        assert linux["instance_cap"] is None
        assert linux["pending_requests"] == 1
        assert windows["remote_admin"] == "root"
        assert windows["instance_cap"] == 2


class TestProvision:
    def test_provision_returns_workers(self, client: TestClient, pool: MagicMock, make_node) -> None:
        node = make_node("fhm-1")
        pool.provision.return_value = [node]

        resp = client.post("/api/v1/templates/linux/provision", json={"number": 3, "allow_create": True})

        assert resp.status_code == 200
        workers = resp.json()["workers"]
        assert [w["instance_id"] for w in workers] == ["fhm-1"]
        assert workers[0]["launch_state"] == "PENDING_LAUNCH"
        pool.provision.assert_awaited_once_with(
            "linux", 3, frozenset({ProvisionOption.ALLOW_CREATE})
        )

    def test_reuse_only_by_default(self, client: TestClient, pool: MagicMock) -> None:
        resp = client.post("/api/v1/templates/linux/provision", json={})

        assert resp.status_code == 200
        assert resp.json() == {"workers": None}
        pool.provision.assert_awaited_once_with("linux", 1, frozenset())

    def test_rejects_non_positive_number(self, client: TestClient, pool: MagicMock) -> None:
        resp = client.post("/api/v1/templates/linux/provision", json={"number": 0})

        assert resp.status_code == 422
        pool.provision.assert_not_awaited()

    def test_unknown_template(self, client: TestClient, pool: MagicMock) -> None:
        pool.provision.side_effect = TemplateNotFoundError("Template 'macos' not found")

        resp = client.post("/api/v1/templates/macos/provision", json={})

        assert resp.status_code == 404
        assert resp.json() == {
            "error": {"code": "TEMPLATE_NOT_FOUND", "message": "Template 'macos' not found"}
        }

    def test_credential_error(self, client: TestClient, pool: MagicMock) -> None:
        pool.provision.side_effect = CredentialError()

        resp = client.post("/api/v1/templates/linux/provision", json={"allow_create": True})

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "CREDENTIAL_UNAVAILABLE"


class TestWorkers:
    def test_list(self, client: TestClient, make_node) -> None:
        make_node("fhm-1", name="a")
        make_node("fhm-2", name="b")

        resp = client.get("/api/v1/workers")

        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 2
        assert [w["name"] for w in body["items"]] == ["a", "b"]
        assert body["items"][0]["template_name"] == "linux"

    def test_trace_id_is_echoed(self, client: TestClient) -> None:
        resp = client.get("/api/v1/workers", headers={"X-Trace-ID": "trace-123"})

        assert resp.headers["X-Trace-ID"] == "trace-123"


class TestHealth:
    def test_ok(self, client: TestClient) -> None:
        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["cloud_circuit"] == "closed"

    def test_metrics(self, client: TestClient) -> None:
        resp = client.get("/metrics")

        assert resp.status_code == 200
        assert "ycworkers_" in resp.text
