# ABOUTME: FastMCP server initialization and main entry point
# ABOUTME: Exposes cluster session, resource, pod, log and deployment tools over MCP

"""Kubernetes MCP Server - cluster sessions and resource operations."""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import structlog
import yaml
from mcp.server.fastmcp import Context, FastMCP
from pydantic import BaseModel, Field

from k8s_mcp.cluster.deployment import DeploymentParams, DeploymentUpdate
from k8s_mcp.cluster.kubeconfig import ContextInfo
from k8s_mcp.cluster.logs import LogRequest, LogStreamReader, parse_duration
from k8s_mcp.cluster.registry import ConnectionRegistry
from k8s_mcp.cluster.resources import (
    DeploymentSummary,
    PodSummary,
    ResourceDescriptor,
    ResourceTranslator,
)
from k8s_mcp.config import ServerSettings, load_settings
from k8s_mcp.errors import KubernetesMcpError
from k8s_mcp.utils.logging import (
    AuditLogger,
    configure_logging,
    new_correlation_id,
    set_correlation_id,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

MCPContext = Context[Any, Any]
logger = structlog.get_logger(__name__)

# Global state (initialized in lifespan)
_settings: ServerSettings | None = None
_registry: ConnectionRegistry | None = None
_translator: ResourceTranslator | None = None
_log_reader: LogStreamReader | None = None
_audit_logger: AuditLogger | None = None


def init_state(settings: ServerSettings, registry: ConnectionRegistry | None = None) -> None:
    """Build the registry, translator, log reader and audit logger from settings."""
    global _settings, _registry, _translator, _log_reader, _audit_logger

    _settings = settings
    _registry = registry or ConnectionRegistry(
        probe_timeout=settings.retry.read_timeout,
        default_namespace=settings.default_namespace,
    )
    _translator = ResourceTranslator(
        _registry,
        policy=settings.retry.policy(),
        deadlines=settings.retry.deadlines(),
    )
    _log_reader = LogStreamReader(_translator)
    _audit_logger = AuditLogger(settings.audit_log)


async def register_configured_clusters(settings: ServerSettings, registry: ConnectionRegistry) -> list[str]:
    """
    Register every cluster named in the settings.

    A cluster that cannot be registered is logged and skipped; the server
    still starts and clusters can be added later with ``load_kubeconfig``.
    Returns the names that were registered.
    """
    registered = []
    if settings.in_cluster:
        try:
            await registry.register_in_cluster(settings.cluster_name)
            registered.append(settings.cluster_name)
        except KubernetesMcpError as e:
            logger.warning("In-cluster registration failed", cluster=settings.cluster_name, error=str(e))

    for entry in settings.all_clusters:
        try:
            await registry.register(entry.name, entry.kubeconfig)
            registered.append(entry.name)
        except KubernetesMcpError as e:
            logger.warning("Cluster registration failed", cluster=entry.name, error=str(e))
    return registered


@asynccontextmanager
async def lifespan(_server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage server lifecycle: load config, register clusters, log shutdown."""
    settings = load_settings()
    configure_logging(level=settings.log_level, json_output=settings.json_logs)
    logger.info("Starting Kubernetes MCP Server", server=settings.server_name)

    init_state(settings)
    registered = await register_configured_clusters(settings, get_registry())
    logger.info("Clusters registered at start-up", clusters=registered)

    yield {"settings": settings, "registry": get_registry()}

    logger.info("Kubernetes MCP Server stopped")


mcp = FastMCP("k8s-mcp", lifespan=lifespan)


def get_settings() -> ServerSettings:
    """Get server settings."""
    if not _settings:
        raise RuntimeError("Server not initialized")
    return _settings


def get_registry() -> ConnectionRegistry:
    if not _registry:
        raise RuntimeError("Server not initialized")
    return _registry


def get_translator() -> ResourceTranslator:
    if not _translator:
        raise RuntimeError("Server not initialized")
    return _translator


def get_log_reader() -> LogStreamReader:
    if not _log_reader:
        raise RuntimeError("Server not initialized")
    return _log_reader


def get_audit_logger() -> AuditLogger:
    """Get audit logger for recording operations."""
    if not _audit_logger:
        raise RuntimeError("Server not initialized")
    return _audit_logger


def _start_request(ctx: MCPContext) -> None:
    request_id = getattr(ctx, "request_id", None)
    if request_id:
        set_correlation_id(str(request_id))
    else:
        new_correlation_id()


def _failed(action: str, target: str, error: KubernetesMcpError) -> str:
    get_audit_logger().log_error(action, target, str(error))
    return str(error)


def _format_context(info: ContextInfo) -> list[str]:
    return [
        f"Context: {info.name}{' (current)' if info.is_active else ''}",
        f"  Cluster: {info.cluster or 'N/A'}",
        f"  User: {info.user or 'N/A'}",
        f"  Namespace: {info.namespace or 'default'}",
        f"  Server: {info.server_url or 'N/A'}",
        f"  Kubeconfig: {info.config_path or 'in-cluster'}",
    ]


def _list_namespace(namespace: str, all_namespaces: bool) -> str | None:
    """Tool params to translator namespace: "" is every namespace, None the current one."""
    if all_namespaces:
        return ""
    return namespace or None


# =============================================================================
# CLUSTER SESSIONS AND CONTEXTS
# =============================================================================


class LoadKubeconfigParams(BaseModel):
    """Parameters for load_kubeconfig tool."""

    name: str = Field(description="Name to register the cluster under")
    path: str = Field(default="", description="Kubeconfig path; empty means ~/.kube/config")


@mcp.tool()
async def load_kubeconfig(params: LoadKubeconfigParams, ctx: MCPContext) -> str:
    """
    Register a cluster from a kubeconfig file.

    The cluster is contacted once to verify it is reachable. Registering an
    existing name replaces that session.
    """
    _start_request(ctx)
    try:
        session = await get_registry().register(params.name, params.path)
        get_audit_logger().log_write("load_kubeconfig", params.name, "success", {"path": session.source_path})
        return (
            f"Cluster '{session.name}' registered from '{session.source_path}' "
            f"(server {session.info.server_url})"
        )
    except KubernetesMcpError as e:
        return _failed("load_kubeconfig", params.name, e)


class EmptyParams(BaseModel):
    """Tools that take no parameters."""


@mcp.tool()
async def list_clusters(params: EmptyParams, ctx: MCPContext) -> str:
    """List the names of all registered clusters."""
    _start_request(ctx)
    registry = get_registry()
    names = sorted(registry.list_registered())
    get_audit_logger().log_read("list_clusters", "all")

    if not names:
        return "No clusters registered"

    current = registry.get_current_context()
    lines = [f"Found {len(names)} cluster(s):", ""]
    lines.extend(f"- {name}{' (current)' if name == current else ''}" for name in names)
    return "\n".join(lines)


@mcp.tool()
async def list_contexts(params: EmptyParams, ctx: MCPContext) -> str:
    """List every registered context with its cluster, user, namespace and server."""
    _start_request(ctx)
    contexts = get_registry().list_contexts()
    get_audit_logger().log_read("list_contexts", "all")

    if not contexts:
        return "No contexts available"

    lines = [f"Found {len(contexts)} context(s):", ""]
    for info in contexts:
        marker = "*" if info.is_active else " "
        lines.append(
            f"{marker} {info.name}  cluster={info.cluster or 'N/A'}  "
            f"user={info.user or 'N/A'}  namespace={info.namespace or 'default'}  "
            f"server={info.server_url or 'N/A'}"
        )
    return "\n".join(lines)


class ContextNameParams(BaseModel):
    """Parameters for tools addressing one context."""

    name: str = Field(default="", description="Context (cluster) name; empty means current")


@mcp.tool()
async def describe_context(params: ContextNameParams, ctx: MCPContext) -> str:
    """Show details of one context, or of the current one when no name is given."""
    _start_request(ctx)
    registry = get_registry()
    name = params.name or registry.get_current_context()
    try:
        info = registry.describe(name)
        get_audit_logger().log_read("describe_context", name)
        return "\n".join(_format_context(info))
    except KubernetesMcpError as e:
        return _failed("describe_context", name, e)


@mcp.tool()
async def get_current_context(params: EmptyParams, ctx: MCPContext) -> str:
    """Show the name of the current context."""
    _start_request(ctx)
    current = get_registry().get_current_context()
    get_audit_logger().log_read("get_current_context", current or "none")
    if not current:
        return "No current context set"
    return f"Current context: {current}"


class SwitchContextParams(BaseModel):
    """Parameters for switch_context tool."""

    name: str = Field(description="Context (cluster) name to make current")


@mcp.tool()
async def switch_context(params: SwitchContextParams, ctx: MCPContext) -> str:
    """Make another registered cluster the current one."""
    _start_request(ctx)
    try:
        get_registry().set_current_context(params.name)
        get_audit_logger().log_write("switch_context", params.name, "success")
        return f"Switched to context '{params.name}'"
    except KubernetesMcpError as e:
        return _failed("switch_context", params.name, e)


@mcp.tool()
async def delete_context(params: SwitchContextParams, ctx: MCPContext) -> str:
    """Remove a registered cluster. Another cluster becomes current if it was current."""
    _start_request(ctx)
    registry = get_registry()
    try:
        registry.remove(params.name)
        get_audit_logger().log_write("delete_context", params.name, "success")
        current = registry.get_current_context()
        suffix = f"; current context is now '{current}'" if current else "; no clusters remain"
        return f"Context '{params.name}' deleted{suffix}"
    except KubernetesMcpError as e:
        return _failed("delete_context", params.name, e)


class RenameContextParams(BaseModel):
    """Parameters for rename_context tool."""

    old_name: str = Field(description="Current context name")
    new_name: str = Field(description="New context name")


@mcp.tool()
async def rename_context(params: RenameContextParams, ctx: MCPContext) -> str:
    """Rename a registered cluster; the current context follows the rename."""
    _start_request(ctx)
    target = f"{params.old_name}->{params.new_name}"
    try:
        get_registry().rename(params.old_name, params.new_name)
        get_audit_logger().log_write("rename_context", target, "success")
        return f"Context '{params.old_name}' renamed to '{params.new_name}'"
    except KubernetesMcpError as e:
        return _failed("rename_context", target, e)


class SetNamespaceParams(BaseModel):
    """Parameters for set_namespace tool."""

    namespace: str = Field(default="", description='Namespace to make current; empty means "default"')


@mcp.tool()
async def set_namespace(params: SetNamespaceParams, ctx: MCPContext) -> str:
    """Set the namespace used when a tool call does not name one."""
    _start_request(ctx)
    registry = get_registry()
    registry.set_current_namespace(params.namespace)
    current = registry.get_current_namespace()
    get_audit_logger().log_write("set_namespace", current, "success")
    return f"Current namespace set to '{current}'"


@mcp.tool()
async def get_current_namespace(params: EmptyParams, ctx: MCPContext) -> str:
    """Show the namespace used when a tool call does not name one."""
    _start_request(ctx)
    current = get_registry().get_current_namespace()
    get_audit_logger().log_read("get_current_namespace", current)
    return f"Current namespace: {current}"


# =============================================================================
# GENERIC RESOURCES
# =============================================================================


class ResourceParams(BaseModel):
    """Parameters addressing one resource."""

    resource_type: str = Field(description='Resource type, e.g. "pods", "deployment", "ConfigMap"')
    name: str = Field(description="Resource name")
    namespace: str = Field(default="", description="Namespace; empty means current")
    group: str = Field(default="", description='API group, e.g. "apps"; empty to discover')
    version: str = Field(default="", description='API version, e.g. "v1"; empty to discover')


@mcp.tool()
async def get_resource(params: ResourceParams, ctx: MCPContext) -> str:
    """Get any resource by type and name, returned as YAML."""
    _start_request(ctx)
    descriptor = ResourceDescriptor(
        resource_kind=params.resource_type,
        name=params.name,
        namespace=params.namespace,
        group=params.group,
        version=params.version,
    )
    target = f"{params.resource_type}/{params.name}"
    try:
        document = await get_translator().get_resource(descriptor)
        get_audit_logger().log_read("get_resource", target)
        return yaml.safe_dump(document, sort_keys=False)
    except KubernetesMcpError as e:
        return _failed("get_resource", target, e)


class ListResourcesParams(BaseModel):
    """Parameters for list_resources tool."""

    resource_type: str = Field(description='Resource type, e.g. "pods", "services"')
    namespace: str = Field(default="", description="Namespace; empty means current")
    all_namespaces: bool = Field(default=False, description="List across all namespaces")
    label_selector: str = Field(default="", description='Label selector, e.g. "app=web"')
    field_selector: str = Field(default="", description='Field selector, e.g. "status.phase=Running"')
    limit: int | None = Field(default=None, ge=1, description="Maximum number of items")
    group: str = Field(default="", description="API group; empty to discover")
    version: str = Field(default="", description="API version; empty to discover")


@mcp.tool()
async def list_resources(params: ListResourcesParams, ctx: MCPContext) -> str:
    """List resources of one type, optionally filtered by label and field selectors."""
    _start_request(ctx)
    descriptor = ResourceDescriptor(
        resource_kind=params.resource_type,
        namespace=_list_namespace(params.namespace, params.all_namespaces),
        group=params.group,
        version=params.version,
    )
    try:
        items = await get_translator().list_resources(
            descriptor,
            limit=params.limit,
            label_selector=params.label_selector,
            field_selector=params.field_selector,
        )
        get_audit_logger().log_read("list_resources", params.resource_type)

        lines = [f"Found {len(items)} {params.resource_type}:", ""]
        for item in items:
            metadata = item.get("metadata") or {}
            ns = metadata.get("namespace")
            lines.append(f"- {ns}/{metadata.get('name', '')}" if ns else f"- {metadata.get('name', '')}")
        return "\n".join(lines)
    except KubernetesMcpError as e:
        return _failed("list_resources", params.resource_type, e)


class DeleteResourceParams(ResourceParams):
    """Parameters for delete_resource tool."""

    force: bool = Field(default=False, description="Delete immediately with a zero grace period")


@mcp.tool()
async def delete_resource(params: DeleteResourceParams, ctx: MCPContext) -> str:
    """Delete any resource by type and name."""
    _start_request(ctx)
    descriptor = ResourceDescriptor(
        resource_kind=params.resource_type,
        name=params.name,
        namespace=params.namespace,
        group=params.group,
        version=params.version,
    )
    target = f"{params.resource_type}/{params.name}"
    try:
        message = await get_translator().delete_resource(descriptor, force=params.force)
        get_audit_logger().log_write("delete_resource", target, "success", {"force": params.force})
        return message
    except KubernetesMcpError as e:
        return _failed("delete_resource", target, e)


# =============================================================================
# PODS AND LOGS
# =============================================================================


class PodParams(BaseModel):
    """Parameters addressing one pod."""

    name: str = Field(description="Pod name")
    namespace: str = Field(default="", description="Namespace; empty means current")


@mcp.tool()
async def get_pod(params: PodParams, ctx: MCPContext) -> str:
    """Get a pod's phase, node, containers and restart counts."""
    _start_request(ctx)
    target = f"{params.namespace or '-'}/{params.name}"
    try:
        pod = PodSummary.from_document(await get_translator().get_pod(params.name, params.namespace))
        get_audit_logger().log_read("get_pod", target)
        return "\n".join(
            [
                f"Pod: {pod.name}",
                f"Namespace: {pod.namespace}",
                f"Phase: {pod.phase}",
                f"Node: {pod.node or 'N/A'}",
                f"IP: {pod.pod_ip or 'N/A'}",
                f"Containers: {', '.join(pod.containers) or 'none'}",
                f"Ready: {pod.ready}/{len(pod.containers)}",
                f"Restarts: {pod.restarts}",
                f"Created: {pod.created or 'N/A'}",
            ]
        )
    except KubernetesMcpError as e:
        return _failed("get_pod", target, e)


class ListPodsParams(BaseModel):
    """Parameters for list_pods tool."""

    namespace: str = Field(default="", description="Namespace; empty means current")
    all_namespaces: bool = Field(default=False, description="List pods in all namespaces")
    label_selector: str = Field(default="", description="Label selector")
    field_selector: str = Field(default="", description="Field selector")
    limit: int | None = Field(default=None, ge=1, description="Maximum number of pods")


@mcp.tool()
async def list_pods(params: ListPodsParams, ctx: MCPContext) -> str:
    """List pods with their phase, readiness and restarts."""
    _start_request(ctx)
    namespace = _list_namespace(params.namespace, params.all_namespaces)
    target = "all" if namespace == "" else namespace or "current"
    try:
        pods = await get_translator().list_pods(
            namespace,
            limit=params.limit,
            label_selector=params.label_selector,
            field_selector=params.field_selector,
        )
        get_audit_logger().log_read("list_pods", target)

        lines = [f"Found {len(pods)} pod(s):", ""]
        lines.extend(f"- {PodSummary.from_document(pod).line()}" for pod in pods)
        return "\n".join(lines)
    except KubernetesMcpError as e:
        return _failed("list_pods", target, e)


class DeletePodParams(PodParams):
    """Parameters for delete_pod tool."""

    force: bool = Field(default=False, description="Delete immediately with a zero grace period")


@mcp.tool()
async def delete_pod(params: DeletePodParams, ctx: MCPContext) -> str:
    """Delete a pod, gracefully unless force is set."""
    _start_request(ctx)
    target = f"{params.namespace or '-'}/{params.name}"
    try:
        message = await get_translator().delete_pod(params.name, params.namespace, force=params.force)
        get_audit_logger().log_write("delete_pod", target, "success", {"force": params.force})
        return message
    except KubernetesMcpError as e:
        return _failed("delete_pod", target, e)


class StreamLogsParams(BaseModel):
    """Parameters for stream_logs tool."""

    pod_name: str = Field(description="Pod name")
    namespace: str = Field(default="", description="Namespace; empty means current")
    container_name: str = Field(default="", description="Container; empty means the first one")
    tail_lines: int | None = Field(default=None, description="Only the last N lines")
    previous: bool = Field(default=False, description="Logs of the previous (crashed) container")
    since: str = Field(default="", description='Only logs newer than this, e.g. "5m" or "1h"')


@mcp.tool()
async def stream_logs(params: StreamLogsParams, ctx: MCPContext) -> str:
    """
    Fetch a point-in-time snapshot of a container's logs.

    Output is limited to 100 KiB; use tail_lines or since to narrow it down.
    """
    _start_request(ctx)
    target = f"{params.namespace or '-'}/{params.pod_name}"
    try:
        request = LogRequest(
            pod_name=params.pod_name,
            namespace=params.namespace,
            container_name=params.container_name,
            tail_lines=params.tail_lines,
            previous=params.previous,
            since=parse_duration(params.since) if params.since else None,
        )
        result = await get_log_reader().read(request)
        get_audit_logger().log_read("stream_logs", f"{target}/{result.container}")
        return result.text
    except KubernetesMcpError as e:
        return _failed("stream_logs", target, e)


# =============================================================================
# DEPLOYMENTS
# =============================================================================


class ListDeploymentsParams(BaseModel):
    """Parameters for list_deployments tool."""

    namespace: str = Field(default="", description="Namespace; empty means current")
    all_namespaces: bool = Field(default=False, description="List deployments in all namespaces")
    label_selector: str = Field(default="", description="Label selector")


@mcp.tool()
async def list_deployments(params: ListDeploymentsParams, ctx: MCPContext) -> str:
    """List deployments with their replica counts."""
    _start_request(ctx)
    namespace = _list_namespace(params.namespace, params.all_namespaces)
    target = "all" if namespace == "" else namespace or "current"
    try:
        deployments = await get_translator().list_deployments(namespace, label_selector=params.label_selector)
        get_audit_logger().log_read("list_deployments", target)

        lines = [f"Found {len(deployments)} deployment(s):", ""]
        lines.extend(f"- {DeploymentSummary.from_document(d).line()}" for d in deployments)
        return "\n".join(lines)
    except KubernetesMcpError as e:
        return _failed("list_deployments", target, e)


class DeploymentNameParams(BaseModel):
    """Parameters for describe_deployment tool."""

    name: str = Field(description="Deployment name")
    namespace: str = Field(default="", description="Namespace; empty means current")


@mcp.tool()
async def describe_deployment(params: DeploymentNameParams, ctx: MCPContext) -> str:
    """Show a deployment's replicas, images and labels."""
    _start_request(ctx)
    target = f"{params.namespace or '-'}/{params.name}"
    try:
        document = await get_translator().get_deployment(params.name, params.namespace)
        deployment = DeploymentSummary.from_document(document)
        get_audit_logger().log_read("describe_deployment", target)

        lines = [
            f"Deployment: {deployment.name}",
            f"Namespace: {deployment.namespace}",
            f"Replicas: {deployment.ready}/{deployment.replicas} ready, "
            f"{deployment.updated} up-to-date, {deployment.available} available",
            f"Images: {', '.join(deployment.images) or 'none'}",
            f"Created: {deployment.created or 'N/A'}",
        ]
        if deployment.labels:
            lines.append("Labels:")
            lines.extend(f"  {k}={v}" for k, v in sorted(deployment.labels.items()))
        return "\n".join(lines)
    except KubernetesMcpError as e:
        return _failed("describe_deployment", target, e)


@mcp.tool()
async def create_deployment(params: DeploymentParams, ctx: MCPContext) -> str:
    """
    Create a Deployment running one container.

    Labels default to app=<name>. container_port takes "8080" or "8080/UDP".
    """
    _start_request(ctx)
    target = f"{params.namespace or '-'}/{params.name}"
    try:
        created = await get_translator().create_deployment(params)
        get_audit_logger().log_write(
            "create_deployment",
            f"{created.namespace}/{created.name}",
            "success",
            {"image": params.image, "replicas": params.replicas},
        )
        return created.message
    except KubernetesMcpError as e:
        return _failed("create_deployment", target, e)


@mcp.tool()
async def update_deployment(params: DeploymentUpdate, ctx: MCPContext) -> str:
    """
    Change a deployment's image and/or replica count.

    The image applies to the container named after the deployment, or the
    first container. Fields left empty are not changed.
    """
    _start_request(ctx)
    target = f"{params.namespace or '-'}/{params.name}"
    try:
        message = await get_translator().update_deployment(params)
        get_audit_logger().log_write(
            "update_deployment",
            target,
            "success",
            {"image": params.image or None, "replicas": params.replicas},
        )
        return message
    except KubernetesMcpError as e:
        return _failed("update_deployment", target, e)


class ScaleDeploymentParams(DeploymentNameParams):
    replicas: int = Field(ge=0, description="Desired number of replicas")


@mcp.tool()
async def scale_deployment(params: ScaleDeploymentParams, ctx: MCPContext) -> str:
    """Set the number of replicas of a deployment."""
    _start_request(ctx)
    target = f"{params.namespace or '-'}/{params.name}"
    try:
        message = await get_translator().scale_deployment(params.name, params.replicas, params.namespace)
        get_audit_logger().log_write("scale_deployment", target, "success", {"replicas": params.replicas})
        return message
    except KubernetesMcpError as e:
        return _failed("scale_deployment", target, e)


@mcp.tool()
async def rollout_status(params: DeploymentNameParams, ctx: MCPContext) -> str:
    """Report whether a deployment's rollout has finished, with its conditions."""
    _start_request(ctx)
    target = f"{params.namespace or '-'}/{params.name}"
    try:
        status = await get_translator().rollout_status(params.name, params.namespace)
        get_audit_logger().log_read("rollout_status", target)
        return status.text
    except KubernetesMcpError as e:
        return _failed("rollout_status", target, e)


@mcp.tool()
async def rollout_restart(params: DeploymentNameParams, ctx: MCPContext) -> str:
    """Restart every pod of a deployment through a rolling update."""
    _start_request(ctx)
    target = f"{params.namespace or '-'}/{params.name}"
    try:
        message = await get_translator().rollout_restart(params.name, params.namespace)
        get_audit_logger().log_write("rollout_restart", target, "success")
        return message
    except KubernetesMcpError as e:
        return _failed("rollout_restart", target, e)


# =============================================================================
# MCP RESOURCES
# =============================================================================


@mcp.resource("k8s://clusters")
async def get_clusters_resource() -> str:
    """Get information about registered clusters."""
    contexts = get_registry().list_contexts()

    if not contexts:
        return "No clusters registered"

    lines = ["Registered Clusters:", ""]
    for info in contexts:
        lines.append(f"- {info.name}: {info.server_url or 'N/A'}{' (current)' if info.is_active else ''}")
    return "\n".join(lines)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def main() -> None:
    """Run the Kubernetes MCP server."""
    configure_logging(level="INFO")
    logger.info("Kubernetes MCP Server starting")

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server interrupted")
        sys.exit(0)
    except Exception as e:
        logger.error("Server error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
