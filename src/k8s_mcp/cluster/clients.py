# ABOUTME: Typed and generic capability sets over the Kubernetes API client
# ABOUTME: Adapts CoreV1Api/AppsV1Api and DynamicClient to plain-document operations

"""
Cluster API capabilities.

=============================================================================
TWO PATHS TO THE SAME RESOURCES
=============================================================================

The Kubernetes Python client offers two ways to talk to the API server:

1. TYPED: generated API classes (``CoreV1Api``, ``AppsV1Api``) that return
   model objects (``V1Pod``, ``V1Deployment``). Only well-known kinds.

2. GENERIC: ``kubernetes.dynamic.DynamicClient``, addressed by
   group/version/resource and returning schema-less documents. Works for
   any kind the server advertises, including custom resources.

Rather than branching on resource kind throughout the code, each path is a
capability set (a ``Protocol``) and a call site picks the one it needs:

    TypedResourceOps    namespace checks, pods, pod logs, deployments (incl. patches)
    GenericResourceOps  get/list/create/delete by ResourceDescriptor

The typed adapter marshals model objects into plain ``dict`` documents
(camelCase keys, exactly as the API serves them), so both paths hand the rest
of the code the same representation.

Every method here is BLOCKING and performs at most one round trip (plus
discovery for the generic path). Retries and deadlines are applied by the
caller through ``k8s_mcp.cluster.retry.run_remote``; each method accepts a
``timeout`` that is forwarded as the client's ``_request_timeout``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from kubernetes import client as k8s_client
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ResourceNotFoundError

from k8s_mcp.errors import NotFoundError

if TYPE_CHECKING:
    from k8s_mcp.cluster.kubeconfig import LoadedKubeconfig

logger = structlog.get_logger(__name__)

Document = dict[str, Any]


@dataclass(frozen=True)
class ResolvedResource:
    """A resource type as the API server knows it."""

    group: str
    version: str
    plural: str
    kind: str
    namespaced: bool

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version


class LogStream(Protocol):
    """An open, finite stream of log bytes."""

    def read(self, amt: int) -> bytes: ...

    def close(self) -> None: ...


class TypedResourceOps(Protocol):
    """Strongly-shaped access to the kinds the core works with directly."""

    def list_namespaces(self, *, limit: int | None = None, timeout: float | None = None) -> list[Document]: ...

    def namespace_exists(self, namespace: str, *, timeout: float | None = None) -> bool: ...

    def get_pod(self, name: str, namespace: str, *, timeout: float | None = None) -> Document: ...

    def list_pods(
        self,
        namespace: str,
        *,
        limit: int | None = None,
        label_selector: str = "",
        field_selector: str = "",
        timeout: float | None = None,
    ) -> list[Document]: ...

    def delete_pod(
        self,
        name: str,
        namespace: str,
        *,
        grace_period_seconds: int | None = None,
        timeout: float | None = None,
    ) -> None: ...

    def open_pod_logs(
        self,
        name: str,
        namespace: str,
        *,
        container: str,
        previous: bool = False,
        tail_lines: int | None = None,
        since_seconds: int | None = None,
        timeout: float | None = None,
    ) -> LogStream: ...

    def list_deployments(
        self,
        namespace: str,
        *,
        label_selector: str = "",
        timeout: float | None = None,
    ) -> list[Document]: ...

    def get_deployment(self, name: str, namespace: str, *, timeout: float | None = None) -> Document: ...

    def patch_deployment(
        self, name: str, namespace: str, patch: Document, *, timeout: float | None = None
    ) -> Document: ...


class GenericResourceOps(Protocol):
    """Schema-less access addressed by group/version/resource."""

    def resolve(
        self,
        resource_kind: str,
        group: str = "",
        version: str = "",
        *,
        timeout: float | None = None,
    ) -> ResolvedResource: ...

    def get(
        self, resource: ResolvedResource, name: str, namespace: str, *, timeout: float | None = None
    ) -> Document: ...

    def list(
        self,
        resource: ResolvedResource,
        namespace: str,
        *,
        limit: int | None = None,
        label_selector: str = "",
        field_selector: str = "",
        timeout: float | None = None,
    ) -> list[Document]: ...

    def create(
        self,
        resource: ResolvedResource,
        namespace: str,
        document: Document,
        *,
        timeout: float | None = None,
    ) -> Document: ...

    def delete(
        self,
        resource: ResolvedResource,
        name: str,
        namespace: str,
        *,
        grace_period_seconds: int | None = None,
        timeout: float | None = None,
    ) -> None: ...


@dataclass(frozen=True)
class ClusterClients:
    """The capability set of one cluster connection."""

    typed: TypedResourceOps
    generic: GenericResourceOps


def _list_kwargs(
    limit: int | None, label_selector: str, field_selector: str, timeout: float | None
) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"_request_timeout": timeout}
    if limit and limit > 0:
        kwargs["limit"] = limit
    if label_selector:
        kwargs["label_selector"] = label_selector
    if field_selector:
        kwargs["field_selector"] = field_selector
    return kwargs


class PodLogStream:
    """Wraps the raw urllib3 response returned with ``_preload_content=False``."""

    def __init__(self, response: Any) -> None:
        self._response = response

    def read(self, amt: int) -> bytes:
        return self._response.read(amt) or b""

    def close(self) -> None:
        self._response.close()
        self._response.release_conn()


class KubernetesTypedOps:
    """``TypedResourceOps`` backed by the generated CoreV1/AppsV1 APIs."""

    def __init__(self, api_client: k8s_client.ApiClient) -> None:
        self._api_client = api_client
        self._core = k8s_client.CoreV1Api(api_client)
        self._apps = k8s_client.AppsV1Api(api_client)

    def _to_document(self, obj: Any) -> Document:
        return self._api_client.sanitize_for_serialization(obj)

    def list_namespaces(self, *, limit: int | None = None, timeout: float | None = None) -> list[Document]:
        result = self._core.list_namespace(**_list_kwargs(limit, "", "", timeout))
        return [self._to_document(ns) for ns in result.items]

    def namespace_exists(self, namespace: str, *, timeout: float | None = None) -> bool:
        try:
            self._core.read_namespace(namespace, _request_timeout=timeout)
        except ApiException as e:
            if e.status == 404:
                return False
            raise
        return True

    def get_pod(self, name: str, namespace: str, *, timeout: float | None = None) -> Document:
        pod = self._core.read_namespaced_pod(name, namespace, _request_timeout=timeout)
        return self._to_document(pod)

    def list_pods(
        self,
        namespace: str,
        *,
        limit: int | None = None,
        label_selector: str = "",
        field_selector: str = "",
        timeout: float | None = None,
    ) -> list[Document]:
        kwargs = _list_kwargs(limit, label_selector, field_selector, timeout)
        if namespace:
            result = self._core.list_namespaced_pod(namespace, **kwargs)
        else:
            result = self._core.list_pod_for_all_namespaces(**kwargs)
        return [self._to_document(pod) for pod in result.items]

    def delete_pod(
        self,
        name: str,
        namespace: str,
        *,
        grace_period_seconds: int | None = None,
        timeout: float | None = None,
    ) -> None:
        kwargs: dict[str, Any] = {"_request_timeout": timeout}
        if grace_period_seconds is not None:
            kwargs["grace_period_seconds"] = grace_period_seconds
        self._core.delete_namespaced_pod(name, namespace, **kwargs)

    def open_pod_logs(
        self,
        name: str,
        namespace: str,
        *,
        container: str,
        previous: bool = False,
        tail_lines: int | None = None,
        since_seconds: int | None = None,
        timeout: float | None = None,
    ) -> LogStream:
        kwargs: dict[str, Any] = {
            "container": container,
            "previous": previous,
            "follow": False,
            "_preload_content": False,
            "_request_timeout": timeout,
        }
        if tail_lines:
            kwargs["tail_lines"] = tail_lines
        if since_seconds is not None:
            kwargs["since_seconds"] = since_seconds
        response = self._core.read_namespaced_pod_log(name, namespace, **kwargs)
        return PodLogStream(response)

    def list_deployments(
        self,
        namespace: str,
        *,
        label_selector: str = "",
        timeout: float | None = None,
    ) -> list[Document]:
        kwargs = _list_kwargs(None, label_selector, "", timeout)
        if namespace:
            result = self._apps.list_namespaced_deployment(namespace, **kwargs)
        else:
            result = self._apps.list_deployment_for_all_namespaces(**kwargs)
        return [self._to_document(d) for d in result.items]

    def get_deployment(self, name: str, namespace: str, *, timeout: float | None = None) -> Document:
        deployment = self._apps.read_namespaced_deployment(name, namespace, _request_timeout=timeout)
        return self._to_document(deployment)

    def patch_deployment(
        self, name: str, namespace: str, patch: Document, *, timeout: float | None = None
    ) -> Document:
        # A dict body is sent as a strategic merge patch.
        deployment = self._apps.patch_namespaced_deployment(name, namespace, patch, _request_timeout=timeout)
        return self._to_document(deployment)


class KubernetesGenericOps:
    """
    ``GenericResourceOps`` backed by ``kubernetes.dynamic.DynamicClient``.

    The dynamic client runs API discovery in its constructor, which is a
    network round trip, so it is built on first use instead of at connect
    time. Construction is guarded by a lock because sessions are shared
    between concurrent callers.
    """

    def __init__(self, api_client: k8s_client.ApiClient) -> None:
        self._api_client = api_client
        self._dynamic: DynamicClient | None = None
        self._lock = threading.Lock()

    @property
    def dynamic(self) -> DynamicClient:
        with self._lock:
            if self._dynamic is None:
                self._dynamic = DynamicClient(self._api_client)
            return self._dynamic

    def resolve(
        self,
        resource_kind: str,
        group: str = "",
        version: str = "",
        *,
        timeout: float | None = None,  # noqa: ARG002 - discovery uses client defaults
    ) -> ResolvedResource:
        scope: dict[str, str] = {}
        if group:
            scope["group"] = group
        if version:
            scope["api_version"] = version

        # Match by plural name ("deployments"), then singular ("deployment"),
        # then Kind ("Deployment"). Subresources such as "pods/log" are skipped.
        candidates: list[Any] = []
        for key in ("name", "singular_name", "kind"):
            try:
                results = self.dynamic.resources.search(**scope, **{key: resource_kind})
            except ResourceNotFoundError:
                results = []
            candidates = [r for r in results if "/" not in (getattr(r, "name", "") or "/")]
            if candidates:
                break

        if not candidates:
            where = f" in {group or 'core'}/{version}" if version else ""
            raise NotFoundError(f"resource type '{resource_kind}' not found{where}")

        # Without an explicit group, prefer the core group ("events" exists
        # in both v1 and events.k8s.io/v1).
        candidates.sort(key=lambda r: bool(r.group))
        found = candidates[0]

        return ResolvedResource(
            group=found.group or "",
            version=found.api_version,
            plural=found.name,
            kind=found.kind,
            namespaced=bool(found.namespaced),
        )

    def _resource(self, resource: ResolvedResource) -> Any:
        return self.dynamic.resources.get(api_version=resource.api_version, name=resource.plural)

    def get(
        self, resource: ResolvedResource, name: str, namespace: str, *, timeout: float | None = None
    ) -> Document:
        ns = namespace if resource.namespaced else None
        obj = self._resource(resource).get(name=name, namespace=ns, _request_timeout=timeout)
        return obj.to_dict()

    def list(
        self,
        resource: ResolvedResource,
        namespace: str,
        *,
        limit: int | None = None,
        label_selector: str = "",
        field_selector: str = "",
        timeout: float | None = None,
    ) -> list[Document]:
        ns = namespace if resource.namespaced and namespace else None
        kwargs = _list_kwargs(limit, label_selector, field_selector, timeout)
        result = self._resource(resource).get(namespace=ns, **kwargs)
        return list(result.to_dict().get("items") or [])

    def create(
        self,
        resource: ResolvedResource,
        namespace: str,
        document: Document,
        *,
        timeout: float | None = None,
    ) -> Document:
        ns = namespace if resource.namespaced else None
        obj = self._resource(resource).create(body=document, namespace=ns, _request_timeout=timeout)
        return obj.to_dict()

    def delete(
        self,
        resource: ResolvedResource,
        name: str,
        namespace: str,
        *,
        grace_period_seconds: int | None = None,
        timeout: float | None = None,
    ) -> None:
        ns = namespace if resource.namespaced else None
        kwargs: dict[str, Any] = {"_request_timeout": timeout}
        if grace_period_seconds is not None:
            kwargs["grace_period_seconds"] = grace_period_seconds
        self._resource(resource).delete(name=name, namespace=ns, **kwargs)


def connect(loaded: LoadedKubeconfig) -> ClusterClients:
    """
    Build typed and generic clients for a parsed kubeconfig.

    No network traffic happens here; the registry probes the connection
    afterwards.
    """
    api_client = k8s_client.ApiClient(configuration=loaded.configuration)
    logger.debug("Cluster clients created", host=loaded.configuration.host)
    return ClusterClients(
        typed=KubernetesTypedOps(api_client),
        generic=KubernetesGenericOps(api_client),
    )
