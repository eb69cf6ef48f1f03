# ABOUTME: Kubeconfig loading, validation, and context extraction
# ABOUTME: Produces ready-to-use client configurations for cluster registration

"""
Kubeconfig loader.

=============================================================================
WHAT IS A KUBECONFIG?
=============================================================================

A kubeconfig is a YAML document describing how to reach one or more clusters:

    clusters:   [{name, cluster: {server, certificate-authority-data, ...}}]
    users:      [{name, user: {token | client-certificate-data | exec ...}}]
    contexts:   [{name, context: {cluster, user, namespace}}]
    current-context: <context name>

A CONTEXT glues a cluster to a user (and optionally a default namespace).
The ``current-context`` names the one kubectl would use.

=============================================================================
WHAT THIS MODULE DOES
=============================================================================

1. RESOLVE the path (empty means ``~/.kube/config``)
2. VALIDATE the file exists, is readable, and is not a directory
3. PARSE the YAML and extract the declared current context plus a summary of
   every context (cluster, user, namespace, server URL)
4. BUILD a ``kubernetes.client.Configuration`` for the active context

Everything that can go wrong here is a ``ConfigError``. Nothing in this module
talks to the network: reachability is checked later by the registry's
liveness probe.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import structlog
import yaml
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.config.config_exception import ConfigException

from k8s_mcp.errors import ConfigError

logger = structlog.get_logger(__name__)

# Written into every pod by the kubelet when a service account is mounted.
SERVICE_ACCOUNT_NAMESPACE_FILE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")

DEFAULT_NAMESPACE = "default"


@dataclass(frozen=True)
class ContextInfo:
    """
    Summary of one kubeconfig context.

    Immutable: the registry hands out copies with ``is_active`` filled in via
    ``dataclasses.replace`` rather than mutating shared instances.
    """

    name: str
    cluster: str
    user: str
    namespace: str
    server_url: str
    config_path: str
    is_active: bool = False


@dataclass(frozen=True)
class LoadedKubeconfig:
    """Parsed kubeconfig plus a client configuration for its active context."""

    source_path: str
    current_context: str
    configuration: k8s_client.Configuration
    contexts: dict[str, ContextInfo] = field(default_factory=dict)

    @property
    def active_context(self) -> ContextInfo | None:
        return self.contexts.get(self.current_context)


def resolve_kubeconfig_path(path: str | None) -> Path:
    """
    Resolve the kubeconfig path, defaulting to ``~/.kube/config``.

    Raises:
        ConfigError: If no path was given and the home directory is unknown.
    """
    if path:
        return Path(path).expanduser()

    home = os.environ.get("HOME") or os.path.expanduser("~")
    if not home or home == "~":
        raise ConfigError("kubeconfig path not provided and home directory not found")
    return Path(home) / ".kube" / "config"


def read_kubeconfig(path: Path) -> bytes:
    """
    Read the kubeconfig file after checking it is a regular, readable file.

    Raises:
        ConfigError: If the path is missing, a directory, or unreadable.
    """
    resolved = path.absolute()
    if not resolved.exists():
        raise ConfigError(f"error accessing kubeconfig file '{resolved}'", "no such file")
    if resolved.is_dir():
        raise ConfigError(f"the provided path '{resolved}' is a directory, not a file")

    try:
        return resolved.read_bytes()
    except OSError as e:
        raise ConfigError(f"error reading kubeconfig file '{resolved}'", str(e)) from e


def _named_entries(raw: dict, key: str, inner: str) -> dict[str, dict]:
    """Index a kubeconfig list section (clusters/users/contexts) by name."""
    entries: dict[str, dict] = {}
    for item in raw.get(key) or []:
        if isinstance(item, dict) and item.get("name"):
            entries[str(item["name"])] = item.get(inner) or {}
    return entries


def _extract_contexts(raw: dict, source_path: str) -> dict[str, ContextInfo]:
    clusters = _named_entries(raw, "clusters", "cluster")
    contexts: dict[str, ContextInfo] = {}

    for name, ctx in _named_entries(raw, "contexts", "context").items():
        cluster_name = str(ctx.get("cluster", ""))
        cluster = clusters.get(cluster_name)
        if cluster is None:
            # A context pointing at an undeclared cluster is unusable.
            logger.debug("Skipping context with missing cluster", context=name, cluster=cluster_name)
            continue
        contexts[name] = ContextInfo(
            name=name,
            cluster=cluster_name,
            user=str(ctx.get("user", "")),
            namespace=str(ctx.get("namespace", "")),
            server_url=str(cluster.get("server", "")),
            config_path=source_path,
        )
    return contexts


def parse_kubeconfig(data: bytes, source_path: str) -> LoadedKubeconfig:
    """
    Parse kubeconfig bytes into a ``LoadedKubeconfig``.

    Args:
        data: Raw kubeconfig document.
        source_path: Where the bytes came from; recorded on every context.

    Raises:
        ConfigError: On YAML errors, a non-mapping document, a missing
                     current-context, or a context the client library
                     cannot turn into a configuration.
    """
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise ConfigError(f"error parsing kubeconfig '{source_path}'", str(e)) from e

    if not isinstance(raw, dict):
        raise ConfigError(f"kubeconfig '{source_path}' is not a mapping document")

    current_context = str(raw.get("current-context") or "")
    if not current_context:
        raise ConfigError(f"no current context found in kubeconfig file '{source_path}'")

    configuration = k8s_client.Configuration()
    try:
        k8s_config.load_kube_config_from_dict(
            config_dict=raw,
            context=current_context,
            client_configuration=configuration,
            persist_config=False,
        )
    except (ConfigException, ValueError, KeyError, TypeError) as e:
        raise ConfigError(f"error building client config from '{source_path}'", str(e)) from e

    return LoadedKubeconfig(
        source_path=source_path,
        current_context=current_context,
        configuration=configuration,
        contexts=_extract_contexts(raw, source_path),
    )


def load_kubeconfig(path: str | None) -> LoadedKubeconfig:
    """Resolve, validate, read and parse a kubeconfig file."""
    resolved = resolve_kubeconfig_path(path)
    data = read_kubeconfig(resolved)
    loaded = parse_kubeconfig(data, str(resolved))
    logger.debug(
        "Kubeconfig parsed",
        path=loaded.source_path,
        current_context=loaded.current_context,
        contexts=len(loaded.contexts),
    )
    return loaded


def detect_in_cluster_namespace(namespace_file: Path = SERVICE_ACCOUNT_NAMESPACE_FILE) -> str:
    """Read the pod's namespace from its service account, or fall back to "default"."""
    try:
        namespace = namespace_file.read_text().strip()
    except OSError as e:
        logger.debug("Service account namespace unavailable", file=str(namespace_file), error=str(e))
        return DEFAULT_NAMESPACE

    if not namespace:
        logger.debug("Service account namespace file is empty", file=str(namespace_file))
        return DEFAULT_NAMESPACE
    return namespace


def load_in_cluster(
    name: str = "in-cluster",
    namespace_file: Path = SERVICE_ACCOUNT_NAMESPACE_FILE,
) -> LoadedKubeconfig:
    """
    Build a configuration from the pod's mounted service account.

    Used when the server itself runs inside a Kubernetes pod. The returned
    object looks like a single-context kubeconfig named ``name``.

    Raises:
        ConfigError: If the process is not running inside a cluster.
    """
    configuration = k8s_client.Configuration()
    try:
        k8s_config.load_incluster_config(client_configuration=configuration)
    except ConfigException as e:
        raise ConfigError("failed to load in-cluster config", str(e)) from e

    info = ContextInfo(
        name=name,
        cluster="in-cluster",
        user="service-account",
        namespace=detect_in_cluster_namespace(namespace_file),
        server_url=configuration.host,
        config_path="",
    )
    return LoadedKubeconfig(
        source_path="",
        current_context=name,
        configuration=configuration,
        contexts={name: info},
    )
