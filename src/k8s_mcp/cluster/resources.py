# ABOUTME: Resource translator turning descriptors into retried, deadline-bound cluster calls
# ABOUTME: Covers generic get/list/create/delete plus typed pod and deployment operations (incl. rollouts)

"""
Resource translator.

Every operation follows the same shape:

1. resolve the current session from the registry (no lock held afterwards)
2. fill in the namespace (current namespace when the caller left it out)
3. for namespaced targets, check the namespace exists
4. run the remote call through ``run_remote`` under the right deadline
5. turn "not found" and empty results into messages naming what was missing

The namespace check in step 3 is a best-effort, user-facing validation. It is
a separate round trip and holds no lock, so a namespace deleted between the
check and the real call surfaces as the real call's own NotFoundError.

Namespace defaults:

    get / delete / create   ""  -> current namespace
    list                    None -> current namespace, "" -> all namespaces
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog

from k8s_mcp.cluster.clients import Document, ResolvedResource
from k8s_mcp.cluster.deployment import (
    DEPLOYMENTS,
    DeploymentParams,
    DeploymentUpdate,
    build_deployment_spec,
    build_restart_patch,
    build_update_patch,
    parse_deployment_params,
    parse_deployment_update,
)
from k8s_mcp.cluster.retry import DEFAULT_RETRY_POLICY, Deadlines, RetryPolicy, run_remote
from k8s_mcp.errors import InputValidationError, NotFoundError

if TYPE_CHECKING:
    from collections.abc import Callable

    from k8s_mcp.cluster.registry import ClusterSession, ConnectionRegistry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    Address of a cluster resource.

    ``resource_kind`` may be a plural ("deployments"), singular ("deployment")
    or Kind ("Deployment"). ``group`` and ``version`` narrow discovery and may
    be left empty.
    """

    resource_kind: str
    name: str = ""
    namespace: str | None = None
    group: str = ""
    version: str = ""


@dataclass(frozen=True)
class PodSummary:
    name: str
    namespace: str
    phase: str
    node: str
    pod_ip: str
    containers: tuple[str, ...]
    ready: int
    restarts: int
    created: str

    @classmethod
    def from_document(cls, doc: Document) -> PodSummary:
        metadata = doc.get("metadata") or {}
        spec = doc.get("spec") or {}
        status = doc.get("status") or {}
        statuses = status.get("containerStatuses") or []
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            phase=status.get("phase", "Unknown"),
            node=spec.get("nodeName", ""),
            pod_ip=status.get("podIP", ""),
            containers=tuple(c.get("name", "") for c in spec.get("containers") or []),
            ready=sum(1 for s in statuses if s.get("ready")),
            restarts=sum(int(s.get("restartCount") or 0) for s in statuses),
            created=str(metadata.get("creationTimestamp") or ""),
        )

    def line(self) -> str:
        return (
            f"{self.namespace}/{self.name}  {self.phase}  "
            f"ready {self.ready}/{len(self.containers)}  restarts {self.restarts}"
        )


@dataclass(frozen=True)
class DeploymentSummary:
    name: str
    namespace: str
    replicas: int
    ready: int
    updated: int
    available: int
    images: tuple[str, ...]
    labels: dict[str, str] = field(default_factory=dict)
    created: str = ""

    @classmethod
    def from_document(cls, doc: Document) -> DeploymentSummary:
        metadata = doc.get("metadata") or {}
        spec = doc.get("spec") or {}
        status = doc.get("status") or {}
        pod_spec = ((spec.get("template") or {}).get("spec")) or {}
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            replicas=int(spec.get("replicas") or 0),
            ready=int(status.get("readyReplicas") or 0),
            updated=int(status.get("updatedReplicas") or 0),
            available=int(status.get("availableReplicas") or 0),
            images=tuple(c.get("image", "") for c in pod_spec.get("containers") or []),
            labels=dict(metadata.get("labels") or {}),
            created=str(metadata.get("creationTimestamp") or ""),
        )

    def line(self) -> str:
        return (
            f"{self.namespace}/{self.name}  ready {self.ready}/{self.replicas}  "
            f"up-to-date {self.updated}  available {self.available}"
        )


@dataclass(frozen=True)
class RolloutStatus:
    """
    Progress of a Deployment rollout.

    Complete once the controller has seen the latest spec and every replica
    runs the new template and is available.
    """

    name: str
    namespace: str
    desired: int
    updated: int
    total: int
    available: int
    unavailable: int
    generation: int
    observed_generation: int
    conditions: tuple[tuple[str, str, str, str], ...] = ()

    @classmethod
    def from_document(cls, doc: Document) -> RolloutStatus:
        metadata = doc.get("metadata") or {}
        spec = doc.get("spec") or {}
        status = doc.get("status") or {}
        desired = spec.get("replicas")
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            desired=1 if desired is None else int(desired),
            updated=int(status.get("updatedReplicas") or 0),
            total=int(status.get("replicas") or 0),
            available=int(status.get("availableReplicas") or 0),
            unavailable=int(status.get("unavailableReplicas") or 0),
            generation=int(metadata.get("generation") or 0),
            observed_generation=int(status.get("observedGeneration") or 0),
            conditions=tuple(
                (c.get("type", ""), c.get("status", ""), c.get("reason", ""), c.get("message", ""))
                for c in status.get("conditions") or []
            ),
        )

    @property
    def complete(self) -> bool:
        return (
            self.observed_generation >= self.generation
            and self.updated == self.desired
            and self.total == self.updated
            and self.available == self.updated
        )

    @property
    def text(self) -> str:
        lines = [
            f"deployment '{self.name}' rollout status:",
            f"  Replicas: {self.desired} desired | {self.updated} updated | {self.total} total | "
            f"{self.available} available | {self.unavailable} unavailable",
        ]
        lines.extend(
            f"  {kind}: {state} (Reason: {reason}) - {message}" for kind, state, reason, message in self.conditions
        )
        lines.append("")
        lines.append("Rollout complete" if self.complete else "Rollout in progress")
        return "\n".join(lines)


@dataclass(frozen=True)
class CreatedResource:
    """Outcome of a create call."""

    kind: str
    name: str
    namespace: str
    document: Document
    replicas: int | None = None

    @property
    def message(self) -> str:
        text = f'{self.kind} "{self.name}" created successfully'
        if self.namespace:
            text += f' in namespace "{self.namespace}"'
        if self.replicas is not None:
            text += f" with {self.replicas} replica(s)"
        return text


def _scope(namespace: str, namespaced: bool = True) -> str:
    if not namespaced:
        return ""
    return f" in namespace '{namespace}'" if namespace else " across all namespaces"


def _empty_result(plural: str, namespace: str, selectors: bool, namespaced: bool = True) -> NotFoundError:
    if selectors:
        return NotFoundError(f"no {plural} found{_scope(namespace, namespaced)} matching the specified selectors")
    return NotFoundError(f"no {plural} found{_scope(namespace, namespaced)}")


class ResourceTranslator:
    """
    Cluster operations against the registry's current session.

    Holds no cluster state of its own; every call round-trips to the API.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        deadlines: Deadlines | None = None,
    ) -> None:
        self._registry = registry
        self._policy = policy
        self._deadlines = deadlines or Deadlines()

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def deadlines(self) -> Deadlines:
        return self._deadlines

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    # -------------------------------------------------------------------------
    # Shared plumbing
    # -------------------------------------------------------------------------

    def namespace_or_current(self, namespace: str | None) -> str:
        return namespace or self._registry.get_current_namespace()

    def _list_namespace(self, namespace: str | None) -> str:
        if namespace is None:
            return self._registry.get_current_namespace()
        return namespace

    async def call(
        self,
        action: str,
        fn: Callable[..., Any],
        *args: Any,
        deadline: float,
        **kwargs: Any,
    ) -> Any:
        """Run one remote call with this translator's policy, passing the deadline down."""
        return await run_remote(
            action,
            fn,
            *args,
            policy=self._policy,
            deadline=deadline,
            timeout=deadline,
            **kwargs,
        )

    async def ensure_namespace(self, session: ClusterSession, namespace: str, deadline: float) -> None:
        """Raise NotFoundError unless ``namespace`` exists on the session's cluster."""
        exists = await self.call(
            f"check namespace '{namespace}'",
            session.typed.namespace_exists,
            namespace,
            deadline=deadline,
        )
        if not exists:
            raise NotFoundError(f"namespace '{namespace}' not found")

    async def _resolve(self, session: ClusterSession, descriptor: ResourceDescriptor) -> ResolvedResource:
        if not descriptor.resource_kind:
            raise InputValidationError("resource type must be specified")
        return await self.call(
            f"resolve resource type '{descriptor.resource_kind}'",
            session.generic.resolve,
            descriptor.resource_kind,
            descriptor.group,
            descriptor.version,
            deadline=self._deadlines.read,
        )

    # -------------------------------------------------------------------------
    # Generic path
    # -------------------------------------------------------------------------

    async def get_resource(self, descriptor: ResourceDescriptor) -> Document:
        """
        Fetch one resource by name.

        Raises:
            InputValidationError: No name or resource type given.
            NotFoundError: Unknown resource type, namespace, or object.
        """
        if not descriptor.name:
            raise InputValidationError("resource name must be specified")

        session = self._registry.current()
        namespace = self.namespace_or_current(descriptor.namespace)
        resource = await self._resolve(session, descriptor)
        if resource.namespaced:
            await self.ensure_namespace(session, namespace, self._deadlines.read)

        where = _scope(namespace, resource.namespaced)
        try:
            return await self.call(
                f"get {resource.kind} '{descriptor.name}'{where}",
                session.generic.get,
                resource,
                descriptor.name,
                namespace,
                deadline=self._deadlines.read,
            )
        except NotFoundError as e:
            raise NotFoundError(f"{resource.kind} '{descriptor.name}' not found{where}") from e

    async def list_resources(
        self,
        descriptor: ResourceDescriptor,
        *,
        limit: int | None = None,
        label_selector: str = "",
        field_selector: str = "",
    ) -> list[Document]:
        """
        List resources of one type.

        ``descriptor.namespace`` of None means the current namespace and ""
        means every namespace. An empty result raises NotFoundError.
        """
        session = self._registry.current()
        namespace = self._list_namespace(descriptor.namespace)
        resource = await self._resolve(session, descriptor)
        if resource.namespaced and namespace:
            await self.ensure_namespace(session, namespace, self._deadlines.read)

        items = await self.call(
            f"list {resource.plural}{_scope(namespace, resource.namespaced)}",
            session.generic.list,
            resource,
            namespace,
            limit=limit,
            label_selector=label_selector,
            field_selector=field_selector,
            deadline=self._deadlines.read,
        )
        if not items:
            raise _empty_result(
                resource.plural,
                namespace,
                bool(label_selector or field_selector),
                resource.namespaced,
            )
        return items

    async def create_resource(self, document: Document, namespace: str | None = None) -> CreatedResource:
        """
        Create a resource from a full document (``apiVersion``, ``kind``, ``metadata.name``).

        The namespace comes from the argument, then ``metadata.namespace``,
        then the current namespace.
        """
        api_version = str(document.get("apiVersion") or "")
        kind = str(document.get("kind") or "")
        metadata = document.get("metadata") or {}
        name = str(metadata.get("name") or "")
        if not api_version or not kind:
            raise InputValidationError("resource document must set apiVersion and kind")
        if not name:
            raise InputValidationError("resource document must set metadata.name")

        group, _, version = api_version.rpartition("/")
        session = self._registry.current()
        resource = await self._resolve(
            session, ResourceDescriptor(resource_kind=kind, group=group, version=version)
        )
        return await self._create(session, resource, document, namespace or metadata.get("namespace"))

    async def _create(
        self,
        session: ClusterSession,
        resource: ResolvedResource,
        document: Document,
        namespace: str | None,
        replicas: int | None = None,
    ) -> CreatedResource:
        target = self.namespace_or_current(namespace) if resource.namespaced else ""
        body = dict(document)
        if target:
            body["metadata"] = {**(document.get("metadata") or {}), "namespace": target}
        name = body["metadata"]["name"]

        created = await self.call(
            f"create {resource.kind} '{name}'{_scope(target, resource.namespaced)}",
            session.generic.create,
            resource,
            target,
            body,
            deadline=self._deadlines.mutation,
        )
        logger.info("Resource created", kind=resource.kind, name=name, namespace=target)
        return CreatedResource(
            kind=resource.kind,
            name=name,
            namespace=target,
            document=created,
            replicas=replicas,
        )

    async def delete_resource(self, descriptor: ResourceDescriptor, *, force: bool = False) -> str:
        """
        Delete one resource after checking that it and its namespace exist.

        ``force`` sets a zero grace period. Returns a confirmation message.
        """
        if not descriptor.name:
            raise InputValidationError("resource name must be specified")

        session = self._registry.current()
        namespace = self.namespace_or_current(descriptor.namespace)
        resource = await self._resolve(session, descriptor)
        if resource.namespaced:
            await self.ensure_namespace(session, namespace, self._deadlines.mutation)

        where = _scope(namespace, resource.namespaced)
        try:
            await self.call(
                f"get {resource.kind} '{descriptor.name}'{where}",
                session.generic.get,
                resource,
                descriptor.name,
                namespace,
                deadline=self._deadlines.mutation,
            )
        except NotFoundError as e:
            raise NotFoundError(f"{resource.kind} '{descriptor.name}' not found{where}") from e

        await self.call(
            f"delete {resource.kind} '{descriptor.name}'{where}",
            session.generic.delete,
            resource,
            descriptor.name,
            namespace,
            grace_period_seconds=0 if force else None,
            deadline=self._deadlines.mutation,
        )
        logger.info(
            "Resource deleted", kind=resource.kind, name=descriptor.name, namespace=namespace, force=force
        )
        return f"{resource.kind} '{descriptor.name}' deleted successfully{where}"

    # -------------------------------------------------------------------------
    # Typed path: pods
    # -------------------------------------------------------------------------

    async def fetch_pod(self, session: ClusterSession, name: str, namespace: str, deadline: float) -> Document:
        """Namespace check plus pod fetch, with "pod 'x' not found in namespace 'y'" on a miss."""
        await self.ensure_namespace(session, namespace, deadline)
        try:
            return await self.call(
                f"get pod '{name}' in namespace '{namespace}'",
                session.typed.get_pod,
                name,
                namespace,
                deadline=deadline,
            )
        except NotFoundError as e:
            raise NotFoundError(f"pod '{name}' not found in namespace '{namespace}'") from e

    async def get_pod(self, name: str, namespace: str = "") -> Document:
        if not name:
            raise InputValidationError("pod name must be specified")
        session = self._registry.current()
        return await self.fetch_pod(session, name, self.namespace_or_current(namespace), self._deadlines.read)

    async def list_pods(
        self,
        namespace: str | None = None,
        *,
        limit: int | None = None,
        label_selector: str = "",
        field_selector: str = "",
    ) -> list[Document]:
        session = self._registry.current()
        ns = self._list_namespace(namespace)
        if ns:
            await self.ensure_namespace(session, ns, self._deadlines.read)

        pods = await self.call(
            f"list pods{_scope(ns)}",
            session.typed.list_pods,
            ns,
            limit=limit,
            label_selector=label_selector,
            field_selector=field_selector,
            deadline=self._deadlines.read,
        )
        if not pods:
            raise _empty_result("pods", ns, bool(label_selector or field_selector))
        return pods

    async def delete_pod(self, name: str, namespace: str = "", *, force: bool = False) -> str:
        if not name:
            raise InputValidationError("pod name must be specified")
        session = self._registry.current()
        ns = self.namespace_or_current(namespace)
        await self.fetch_pod(session, name, ns, self._deadlines.mutation)

        await self.call(
            f"delete pod '{name}' in namespace '{ns}'",
            session.typed.delete_pod,
            name,
            ns,
            grace_period_seconds=0 if force else None,
            deadline=self._deadlines.mutation,
        )
        logger.info("Pod deleted", pod=name, namespace=ns, force=force)
        return f"pod '{name}' deleted successfully from namespace '{ns}'"

    # -------------------------------------------------------------------------
    # Typed path: deployments
    # -------------------------------------------------------------------------

    async def list_deployments(self, namespace: str | None = None, *, label_selector: str = "") -> list[Document]:
        session = self._registry.current()
        ns = self._list_namespace(namespace)
        if ns:
            await self.ensure_namespace(session, ns, self._deadlines.read)

        deployments = await self.call(
            f"list deployments{_scope(ns)}",
            session.typed.list_deployments,
            ns,
            label_selector=label_selector,
            deadline=self._deadlines.read,
        )
        if not deployments:
            raise _empty_result("deployments", ns, bool(label_selector))
        return deployments

    async def _fetch_deployment(
        self, session: ClusterSession, name: str, namespace: str, deadline: float
    ) -> Document:
        await self.ensure_namespace(session, namespace, deadline)
        try:
            return await self.call(
                f"get deployment '{name}' in namespace '{namespace}'",
                session.typed.get_deployment,
                name,
                namespace,
                deadline=deadline,
            )
        except NotFoundError as e:
            raise NotFoundError(f"deployment '{name}' not found in namespace '{namespace}'") from e

    async def get_deployment(self, name: str, namespace: str = "") -> Document:
        if not name:
            raise InputValidationError("deployment name must be specified")
        session = self._registry.current()
        return await self._fetch_deployment(
            session, name, self.namespace_or_current(namespace), self._deadlines.read
        )

    async def create_deployment(self, params: DeploymentParams | dict[str, Any]) -> CreatedResource:
        """
        Build a Deployment from ``params`` and submit it through the generic create path.

        Raw dictionaries are validated first; problems raise InputValidationError.
        """
        if not isinstance(params, DeploymentParams):
            params = parse_deployment_params(params)
        session = self._registry.current()
        namespace = self.namespace_or_current(params.namespace)
        spec = build_deployment_spec(params, namespace)
        return await self._create(
            session, DEPLOYMENTS, spec.to_document(), namespace, replicas=spec.replicas
        )

    async def _patch_deployment(
        self, session: ClusterSession, action: str, name: str, namespace: str, patch: Document
    ) -> Document:
        try:
            return await self.call(
                f"{action} deployment '{name}' in namespace '{namespace}'",
                session.typed.patch_deployment,
                name,
                namespace,
                patch,
                deadline=self._deadlines.mutation,
            )
        except NotFoundError as e:
            raise NotFoundError(f"deployment '{name}' not found in namespace '{namespace}'") from e

    async def update_deployment(self, update: DeploymentUpdate | dict[str, Any]) -> str:
        """
        Change the image of the main container and/or the replica count.

        The image goes to the container named after the Deployment, or the
        first container when none matches.

        Raises:
            InputValidationError: Invalid parameters or nothing to change.
            NotFoundError: Namespace or Deployment missing.
        """
        if not isinstance(update, DeploymentUpdate):
            update = parse_deployment_update(update)
        if not update.has_changes:
            raise InputValidationError("nothing to update", "set image and/or replicas")

        session = self._registry.current()
        ns = self.namespace_or_current(update.namespace)
        current = await self._fetch_deployment(session, update.name, ns, self._deadlines.mutation)
        await self._patch_deployment(session, "update", update.name, ns, build_update_patch(update, current))

        changes = []
        if update.image:
            changes.append(f"image={update.image}")
        if update.replicas is not None:
            changes.append(f"replicas={update.replicas}")
        logger.info("Deployment updated", deployment=update.name, namespace=ns, changes=changes)
        return f"deployment '{update.name}' updated in namespace '{ns}' ({', '.join(changes)})"

    async def scale_deployment(self, name: str, replicas: Any, namespace: str = "") -> str:
        """Set the replica count; ``replicas`` must be a whole number >= 0."""
        update = parse_deployment_update({"name": name, "namespace": namespace, "replicas": replicas})
        if update.replicas is None:
            raise InputValidationError("replicas must be specified")

        session = self._registry.current()
        ns = self.namespace_or_current(namespace)
        await self._fetch_deployment(session, name, ns, self._deadlines.mutation)
        await self._patch_deployment(session, "scale", name, ns, {"spec": {"replicas": update.replicas}})
        logger.info("Deployment scaled", deployment=name, namespace=ns, replicas=update.replicas)
        return f"deployment '{name}' scaled to {update.replicas} replica(s) in namespace '{ns}'"

    async def rollout_status(self, name: str, namespace: str = "") -> RolloutStatus:
        document = await self.get_deployment(name, namespace)
        return RolloutStatus.from_document(document)

    async def rollout_restart(self, name: str, namespace: str = "", *, now: datetime | None = None) -> str:
        """Roll every pod of the Deployment by stamping its pod template."""
        if not name:
            raise InputValidationError("deployment name must be specified")
        session = self._registry.current()
        ns = self.namespace_or_current(namespace)
        await self._fetch_deployment(session, name, ns, self._deadlines.mutation)

        patch = build_restart_patch(now or datetime.now(timezone.utc))
        await self._patch_deployment(session, "restart", name, ns, patch)
        logger.info("Deployment restarted", deployment=name, namespace=ns)
        return f"deployment '{name}' restarted in namespace '{ns}'"
