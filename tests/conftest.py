"""
Test configuration and fixtures for pytest.

Provides a mocked KubernetesClient, cluster/task factories and helpers for
building Kubernetes API objects used across the console operator tests.
"""

import base64
import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

# Add the repository root to sys.path
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))


def pytest_configure(config):
    """
    Pytest hook called before test collection.
    Sets up test environment variables and registers custom markers.
    """
    # Set test environment variables BEFORE any settings are loaded
    os.environ["EVENTS_ADDRESS"] = ""
    os.environ["TEMPLATE_DIR"] = ""
    os.environ["DEBUG"] = "false"
    os.environ["CONSOLE_IMAGE_OVERRIDE"] = ""

    from console_operator.config import get_settings
    get_settings.cache_clear()

    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def encode(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def make_secret(name: str, username=None, password=None):
    """Build a V1Secret-like object with base64 encoded data."""
    data = {}
    if username is not None:
        data["username"] = encode(username)
    if password is not None:
        data["password"] = encode(password)
    secret = Mock()
    secret.metadata.name = name
    secret.data = data
    return secret


def make_deployment(replicas=1, ready_replicas=None):
    deployment = Mock()
    deployment.spec.replicas = replicas
    deployment.status.ready_replicas = ready_replicas
    return deployment


def cluster_resource(name="acme", namespace="ns1", labels=None, resource_version="100"):
    return {
        "apiVersion": "crunchydata.com/v1",
        "kind": "Pgcluster",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": dict(labels or {"pg-cluster": name}),
            "resourceVersion": resource_version,
            "uid": f"uid-{name}",
        },
        "spec": {"ccpimagetag": "centos8-13.1-4.6.0"},
    }


def task_resource(task_type="add-console", cluster_name="acme", namespace="ns1", name=None):
    return {
        "apiVersion": "crunchydata.com/v1",
        "kind": "Pgtask",
        "metadata": {
            "name": name or f"{cluster_name}-{task_type}",
            "namespace": namespace,
            "labels": {"pgouser": "admin"},
            "uid": f"uid-{cluster_name}-{task_type}",
        },
        "spec": {
            "namespace": namespace,
            "tasktype": task_type,
            "parameters": {"console-task-cluster": cluster_name},
            "storagespec": {
                "storageclass": "standard",
                "accessmode": "ReadWriteOnce",
                "size": "1G",
                "storagetype": "dynamic",
            },
        },
    }


@pytest.fixture
def mock_k8s():
    """A KubernetesClient stand-in with every API call as an AsyncMock."""
    k8s = Mock()
    k8s.read_pvc = AsyncMock(return_value=None)
    k8s.create_pvc = AsyncMock(return_value=True)
    k8s.delete_pvc = AsyncMock()
    k8s.create_deployment = AsyncMock()
    k8s.read_deployment = AsyncMock()
    k8s.delete_deployment = AsyncMock()
    k8s.create_service = AsyncMock()
    k8s.read_service = AsyncMock(return_value=None)
    k8s.delete_service = AsyncMock()
    k8s.list_secrets = AsyncMock(return_value=[])
    k8s.list_pods = AsyncMock(return_value=[])
    k8s.exec_in_pod = AsyncMock(return_value="")
    k8s.get_cluster = AsyncMock(side_effect=lambda name, namespace: cluster_resource(name, namespace))
    k8s.replace_cluster = AsyncMock(side_effect=lambda body: body)
    k8s.delete_task = AsyncMock()
    return k8s


@pytest.fixture
def cluster():
    from console_operator.schemas import ClusterRecord
    return ClusterRecord.from_resource(cluster_resource())


@pytest.fixture
def storage_spec():
    from console_operator.schemas import StorageSpec
    return StorageSpec(storage_class="standard", size="1G")


@pytest.fixture
def secret_factory():
    return make_secret


@pytest.fixture
def deployment_factory():
    return make_deployment


@pytest.fixture
def task_factory():
    """Build a ProvisioningTask from a task resource."""
    from console_operator.schemas import ProvisioningTask

    def build(**kwargs):
        return ProvisioningTask.from_resource(task_resource(**kwargs))
    return build
