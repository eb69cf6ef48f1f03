# ABOUTME: Deployment parameter validation and apps/v1 Deployment document builder
# ABOUTME: Separates "what is a valid Deployment shape" from how it is submitted

"""
Deployment builder.

Caller parameters arrive loosely typed (they come from an agent). They are
validated by a pydantic model, normalized into a small intermediate
``DeploymentSpec``, and only then serialized into the ``apps/v1`` Deployment
document that the generic create path submits.

Normalization rules, applied silently rather than as errors:

* labels: ``{"app": name}`` merged with caller labels; the caller only
  overrides ``app`` by setting that key explicitly
* container port: ``"8080"`` or ``"8080/UDP"``; the protocol is kept only if
  it is TCP, UDP or SCTP, and an unparsable port drops the ports field
* image pull policy: kept only if Always, IfNotPresent or Never
* image pull secrets: non-empty strings only
* env: string values only

Changes to an existing Deployment (image, replicas, restart) are sent as
strategic merge patches built here, so only the touched fields travel.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError

from k8s_mcp.cluster.clients import ResolvedResource
from k8s_mcp.errors import InputValidationError

MIN_PORT = 1
MAX_PORT = 65535
_PORT_DIGITS = re.compile(r"[0-9]+")

VALID_PROTOCOLS = frozenset({"TCP", "UDP", "SCTP"})
VALID_PULL_POLICIES = frozenset({"Always", "IfNotPresent", "Never"})
RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"

DEPLOYMENTS = ResolvedResource(
    group="apps",
    version="v1",
    plural="deployments",
    kind="Deployment",
    namespaced=True,
)


class DeploymentParams(BaseModel):
    """Parameters for creating a Deployment."""

    model_config = {"extra": "ignore"}

    name: str = Field(min_length=1, description="Deployment name (also the container name)")
    image: str = Field(min_length=1, description="Container image")
    namespace: str = Field(default="", description="Target namespace; empty means current")
    # Whole numbers only: 3 and 3.0 are accepted, 2.5 is rejected.
    replicas: int = Field(default=1, ge=0, description="Number of replicas")
    labels: dict[str, Any] = Field(default_factory=dict, description="Extra labels")
    container_port: str = Field(default="", description='Container port, "port[/protocol]"')
    env: dict[str, Any] = Field(default_factory=dict, description="Environment variables")
    image_pull_policy: str = Field(default="", description="Always, IfNotPresent or Never")
    image_pull_secrets: list[Any] = Field(default_factory=list, description="Pull secret names")


class DeploymentUpdate(BaseModel):
    """Changes to an existing Deployment; fields left unset are not touched."""

    model_config = {"extra": "ignore"}

    name: str = Field(min_length=1, description="Deployment name")
    namespace: str = Field(default="", description="Namespace; empty means current")
    image: str = Field(default="", description="New image for the main container")
    replicas: int | None = Field(default=None, ge=0, description="New replica count")

    @property
    def has_changes(self) -> bool:
        return bool(self.image) or self.replicas is not None


_M = TypeVar("_M", bound=BaseModel)


@dataclass(frozen=True)
class ContainerPort:
    container_port: int
    protocol: str | None = None

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"containerPort": self.container_port}
        if self.protocol:
            doc["protocol"] = self.protocol
        return doc


@dataclass(frozen=True)
class DeploymentSpec:
    """A Deployment shape that has already passed every check."""

    name: str
    namespace: str
    image: str
    replicas: int
    labels: dict[str, str]
    port: ContainerPort | None = None
    env: tuple[tuple[str, str], ...] = ()
    image_pull_policy: str | None = None
    image_pull_secrets: tuple[str, ...] = field(default_factory=tuple)

    def to_document(self) -> dict[str, Any]:
        container: dict[str, Any] = {"name": self.name, "image": self.image}
        if self.port is not None:
            container["ports"] = [self.port.to_document()]
        if self.env:
            container["env"] = [{"name": k, "value": v} for k, v in self.env]
        if self.image_pull_policy:
            container["imagePullPolicy"] = self.image_pull_policy

        pod_spec: dict[str, Any] = {"containers": [container]}
        if self.image_pull_secrets:
            pod_spec["imagePullSecrets"] = [{"name": s} for s in self.image_pull_secrets]

        return {
            "apiVersion": f"{DEPLOYMENTS.group}/{DEPLOYMENTS.version}",
            "kind": DEPLOYMENTS.kind,
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": dict(self.labels),
            },
            "spec": {
                "replicas": self.replicas,
                "selector": {"matchLabels": dict(self.labels)},
                "template": {
                    "metadata": {"labels": dict(self.labels)},
                    "spec": pod_spec,
                },
            },
        }


def parse_container_port(value: str) -> ContainerPort | None:
    """
    Parse ``"port[/protocol]"``.

    >>> parse_container_port("8080/UDP")
    ContainerPort(container_port=8080, protocol='UDP')
    >>> parse_container_port("80/HTTP")
    ContainerPort(container_port=80, protocol=None)
    >>> parse_container_port("notanumber") is None
    True
    >>> parse_container_port("0") is None
    True
    """
    port_part, _, protocol = value.strip().partition("/")
    if not _PORT_DIGITS.fullmatch(port_part):
        return None
    port = int(port_part)
    if not MIN_PORT <= port <= MAX_PORT:
        return None
    return ContainerPort(container_port=port, protocol=protocol if protocol in VALID_PROTOCOLS else None)


def build_deployment_spec(params: DeploymentParams, namespace: str) -> DeploymentSpec:
    """Normalize validated parameters into a ``DeploymentSpec`` for ``namespace``."""
    labels = {"app": params.name}
    labels.update({str(k): str(v) for k, v in params.labels.items() if v is not None})

    env = tuple((str(k), v) for k, v in params.env.items() if isinstance(v, str))
    secrets = tuple(s for s in params.image_pull_secrets if isinstance(s, str) and s)
    policy = params.image_pull_policy if params.image_pull_policy in VALID_PULL_POLICIES else None

    return DeploymentSpec(
        name=params.name,
        namespace=namespace,
        image=params.image,
        replicas=params.replicas,
        labels=labels,
        port=parse_container_port(params.container_port) if params.container_port else None,
        env=env,
        image_pull_policy=policy,
        image_pull_secrets=secrets,
    )


def _validate(model: type[_M], data: dict[str, Any]) -> _M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}" for err in e.errors()
        )
        raise InputValidationError("invalid deployment parameters", problems) from e


def parse_deployment_params(data: dict[str, Any]) -> DeploymentParams:
    """Validate raw parameters, reporting problems as ``InputValidationError``."""
    return _validate(DeploymentParams, data)


def parse_deployment_update(data: dict[str, Any]) -> DeploymentUpdate:
    """Same as ``parse_deployment_params`` for ``DeploymentUpdate``."""
    return _validate(DeploymentUpdate, data)


def target_container(document: dict[str, Any], deployment_name: str) -> str:
    """
    Name of the container an image change applies to.

    The container named after the Deployment wins, otherwise the first one.
    """
    pod_spec = ((document.get("spec") or {}).get("template") or {}).get("spec") or {}
    names = [c.get("name", "") for c in pod_spec.get("containers") or []]
    if not names:
        raise InputValidationError(f"deployment '{deployment_name}' has no containers to update")
    return deployment_name if deployment_name in names else names[0]


def build_update_patch(update: DeploymentUpdate, current: dict[str, Any]) -> dict[str, Any]:
    """Strategic merge patch applying ``update`` to the ``current`` Deployment document."""
    spec: dict[str, Any] = {}
    if update.replicas is not None:
        spec["replicas"] = update.replicas
    if update.image:
        container = target_container(current, update.name)
        spec["template"] = {"spec": {"containers": [{"name": container, "image": update.image}]}}
    return {"spec": spec}


def build_restart_patch(now: datetime) -> dict[str, Any]:
    """
    Patch that bumps the pod template annotation ``kubectl rollout restart`` uses.

    Any template change makes the controller roll out new pods.
    """
    stamp = now.strftime("%Y-%m-%dT%H:%M:%SZ")
    return {"spec": {"template": {"metadata": {"annotations": {RESTARTED_AT_ANNOTATION: stamp}}}}}
