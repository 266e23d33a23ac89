"""
Tests for the DatabaseInstance model and settings validation.
"""
import pytest
from pydantic import ValidationError

from database_operator.config.settings import Settings
from database_operator.models.database_instance import DatabaseInstance


def test_parses_crd_field_names():
    instance = DatabaseInstance.from_object(
        {
            "apiVersion": "apps.zwjk.com/v1",
            "kind": "DatabaseInstance",
            "metadata": {"name": "orders", "namespace": "shop", "uid": "u-1", "resourceVersion": "7"},
            "spec": {
                "databaseType": "postgres",
                "version": "15",
                "resources": {"requests": {"memory": "1Gi", "cpu": "500m"}},
                "backupPolicy": {"enabled": True, "schedule": "@daily", "backupImage": "bk:1"},
                "somethingNew": "ignored",
            },
        }
    )
    assert instance.name == "orders"
    assert instance.namespace == "shop"
    assert instance.metadata.resource_version == "7"
    assert instance.spec.database_type == "postgres"
    assert instance.spec.replicas == 1
    assert instance.spec.resources.requests.cpu == "500m"
    assert instance.spec.backup_policy.backup_image == "bk:1"


def test_to_object_uses_crd_field_names():
    instance = DatabaseInstance.from_object(
        {"metadata": {"name": "orders", "resourceVersion": "3"}, "spec": {"databaseType": "mysql"}}
    )
    obj = instance.to_object()
    assert obj["apiVersion"] == "apps.zwjk.com/v1"
    assert obj["metadata"]["resourceVersion"] == "3"
    assert obj["spec"]["databaseType"] == "mysql"
    assert obj["spec"]["backupPolicy"]["enabled"] is False
    assert "phase" not in obj["status"]


def test_negative_replicas_rejected():
    with pytest.raises(ValidationError):
        DatabaseInstance.from_object({"metadata": {"name": "x"}, "spec": {"replicas": -1}})


def test_owner_reference_requires_uid():
    assert DatabaseInstance.from_object({"metadata": {"name": "x"}}).owner_reference() is None


def test_settings_validation():
    assert Settings(credential_scope="INSTANCE").credential_scope == "instance"
    with pytest.raises(ValidationError):
        Settings(credential_scope="cluster")
    with pytest.raises(ValidationError):
        Settings(log_level="verbose")
