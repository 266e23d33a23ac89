"""
Tests for the instance control endpoints.
"""
import pytest
from httpx import AsyncClient
from fastapi import status
from fake_store import make_instance

from database_operator.core.naming import ResourceKind
from database_operator.exceptions import StoreError


@pytest.mark.asyncio
async def test_preview_children(test_client: AsyncClient, seeded_store):
    response = await test_client.get("/api/v1/instances/default/orders/children")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["instance"] == "DatabaseInstance/default/orders"
    assert data["image"] == "registry.zwjk.com/middleware/mysql:8.0"
    assert data["credential"] == {"name": "mysql-secret", "namespace": "default"}
    assert data["deployment"]["kind"] == "Deployment"
    assert data["service"]["spec"]["ports"][0]["port"] == 3306
    assert data["cronjob"] is None
    assert seeded_store.writes == []


@pytest.mark.asyncio
async def test_preview_unknown_instance(test_client: AsyncClient):
    response = await test_client.get("/api/v1/instances/default/ghost/children")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    error = response.json()["error"]
    assert error["message"] == "DatabaseInstance 'default/ghost' not found"
    assert error["details"]["name"] == "ghost"


@pytest.mark.asyncio
async def test_reconcile_endpoint(test_client: AsyncClient, seeded_store):
    response = await test_client.post("/api/v1/instances/default/orders/reconcile")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["found"] is True
    assert data["children"]["workload"] == "created"
    assert data["status"]["phase"] == "Running"
    assert seeded_store.stored(ResourceKind.SERVICE, "default", "orders") is not None

    response = await test_client.post("/api/v1/instances/default/orders/reconcile")
    assert response.json()["children"] == {
        "workload": "unchanged",
        "endpoint": "unchanged",
        "scheduled-job": "absent",
    }


@pytest.mark.asyncio
async def test_reconcile_unknown_instance(test_client: AsyncClient):
    response = await test_client.post("/api/v1/instances/default/ghost/reconcile")
    assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_reconcile_unsupported_kind(test_client: AsyncClient, seeded_store):
    seeded_store.seed(make_instance(name="legacy", database_type="unknown-db"))

    response = await test_client.post("/api/v1/instances/default/legacy/reconcile")

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["error"]["message"] == "unsupported database type: unknown-db"


@pytest.mark.asyncio
async def test_reconcile_store_failure(test_client: AsyncClient, seeded_store):
    seeded_store.fail_next("create", ResourceKind.DEPLOYMENT, StoreError("admission webhook denied", api_status=400))

    response = await test_client.post("/api/v1/instances/default/orders/reconcile")

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    error = response.json()["error"]
    assert error["message"] == "Kubernetes error: admission webhook denied"
    assert error["details"]["api_status"] == 400


@pytest.mark.asyncio
async def test_reconcile_invalid_instance(test_client: AsyncClient, seeded_store):
    seeded_store.seed(make_instance(name="broken", replicas=-1))

    response = await test_client.post("/api/v1/instances/default/broken/reconcile")

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    error = response.json()["error"]
    assert error["details"]["errors"][0]["loc"] == "spec.replicas"
    assert seeded_store.stored(ResourceKind.DEPLOYMENT, "default", "broken") is None
