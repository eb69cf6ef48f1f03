# ABOUTME: Integration tests for cluster sessions and resource operations against a live cluster
# ABOUTME: Skipped unless K8S_MCP_INTEGRATION_KUBECONFIG points at a disposable cluster (e.g. Kind)

"""Integration tests against a live Kubernetes cluster.

These tests require:
- K8S_MCP_INTEGRATION_KUBECONFIG set to a kubeconfig for a throwaway cluster
- permission to create and delete Deployments in the 'default' namespace

They create a small nginx Deployment, read it back through the typed and
generic paths, and delete it again.
"""

from __future__ import annotations

import os
import uuid
from typing import TYPE_CHECKING

import pytest

from k8s_mcp.cluster.deployment import DeploymentParams
from k8s_mcp.cluster.registry import ConnectionRegistry
from k8s_mcp.cluster.resources import ResourceDescriptor, ResourceTranslator
from k8s_mcp.errors import NotFoundError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

KUBECONFIG = os.environ.get("K8S_MCP_INTEGRATION_KUBECONFIG", "")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not KUBECONFIG, reason="K8S_MCP_INTEGRATION_KUBECONFIG not set"),
]


@pytest.fixture
async def live_registry() -> ConnectionRegistry:
    registry = ConnectionRegistry()
    await registry.register("live", KUBECONFIG)
    return registry


@pytest.fixture
def live_translator(live_registry: ConnectionRegistry) -> ResourceTranslator:
    return ResourceTranslator(live_registry)


@pytest.fixture
async def deployment(live_translator: ResourceTranslator) -> AsyncIterator[str]:
    name = f"k8s-mcp-it-{uuid.uuid4().hex[:6]}"
    await live_translator.create_deployment(
        DeploymentParams(name=name, image="nginx:alpine", namespace="default", replicas=1, container_port="80")
    )
    yield name
    try:
        await live_translator.delete_resource(
            ResourceDescriptor("deployments", name=name, namespace="default"), force=True
        )
    except NotFoundError:
        pass


async def test_registration_probe(live_registry: ConnectionRegistry):
    assert live_registry.get_current_context() == "live"
    assert live_registry.describe("live").server_url


async def test_namespaces_listed_generically(live_translator: ResourceTranslator):
    namespaces = await live_translator.list_resources(ResourceDescriptor("namespaces"))
    assert "default" in {ns["metadata"]["name"] for ns in namespaces}


async def test_deployment_round_trip(live_translator: ResourceTranslator, deployment: str):
    typed = await live_translator.get_deployment(deployment, "default")
    generic = await live_translator.get_resource(
        ResourceDescriptor("Deployment", name=deployment, namespace="default")
    )

    assert typed["spec"]["replicas"] == 1
    assert generic["metadata"]["labels"]["app"] == deployment


async def test_missing_namespace(live_translator: ResourceTranslator):
    with pytest.raises(NotFoundError, match="namespace 'k8s-mcp-missing' not found"):
        await live_translator.list_pods("k8s-mcp-missing")
