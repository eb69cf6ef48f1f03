# ABOUTME: Pytest fixtures and configuration for Kubernetes MCP Server tests
# ABOUTME: Provides fake cluster clients, kubeconfig files and a wired registry

from pathlib import Path

import pytest

from k8s_mcp.cluster.clients import ClusterClients
from k8s_mcp.cluster.registry import ConnectionRegistry
from k8s_mcp.cluster.resources import ResourceTranslator
from k8s_mcp.cluster.retry import Deadlines, RetryPolicy
from tests.fakes import KUBECONFIG_TEMPLATE, FakeGenericOps, FakeTypedOps, loaded_config


@pytest.fixture
def kubeconfig_path(tmp_path: Path) -> Path:
    """A kubeconfig file with contexts dev, prod and broken; current context dev."""
    path = tmp_path / "config"
    path.write_text(KUBECONFIG_TEMPLATE.format(current="dev"))
    return path


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Three attempts without any backoff."""
    return RetryPolicy(max_attempts=3, backoff=0.0, jitter=0.0)


@pytest.fixture
def typed_ops() -> FakeTypedOps:
    return FakeTypedOps(namespaces=("default", "prod"))


@pytest.fixture
def generic_ops(typed_ops: FakeTypedOps) -> FakeGenericOps:
    return FakeGenericOps(typed_ops)


@pytest.fixture
def cluster_clients(typed_ops: FakeTypedOps, generic_ops: FakeGenericOps) -> ClusterClients:
    return ClusterClients(typed=typed_ops, generic=generic_ops)


@pytest.fixture
def registry(cluster_clients: ClusterClients) -> ConnectionRegistry:
    """An empty registry whose connector hands out the fake clients."""
    return ConnectionRegistry(connector=lambda _loaded: cluster_clients, probe_timeout=1.0)


@pytest.fixture
async def connected_registry(registry: ConnectionRegistry) -> ConnectionRegistry:
    """The registry with cluster "test" registered and current."""
    await registry.register_loaded("test", loaded_config("test"))
    return registry


@pytest.fixture
def translator(connected_registry: ConnectionRegistry, fast_policy: RetryPolicy) -> ResourceTranslator:
    return ResourceTranslator(
        connected_registry,
        policy=fast_policy,
        deadlines=Deadlines(read=2.0, mutation=2.0, logs=2.0),
    )
