# ABOUTME: Configuration management for the Kubernetes MCP server
# ABOUTME: Uses pydantic-settings for environment variable parsing and validation

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module handles all configuration for the MCP server. It:

1. READS environment variables (like KUBECONFIG, K8S_MCP_LOG_LEVEL)
2. VALIDATES them (log levels from a fixed set, positive timeouts, etc.)
3. PROVIDES typed access to settings throughout the application

Configuration is read once at start-up. Clusters listed here are registered
by the server's lifespan; more can be added at runtime with the
``load_kubeconfig`` tool.

=============================================================================
ARCHITECTURE: THREE CONFIGURATION CLASSES
=============================================================================

1. ClusterEntry: ONE extra cluster to register at start-up
   - registry name + kubeconfig path

2. RetrySettings: retry and deadline knobs (K8S_MCP_RETRY_* prefix)
   - turned into a RetryPolicy and Deadlines for the core

3. ServerSettings: main configuration container (K8S_MCP_* prefix)
   - primary cluster (kubeconfig or in-cluster service account)
   - additional clusters, default namespace
   - logging, audit log, server name
   - contains RetrySettings as a nested object

=============================================================================
ENVIRONMENT VARIABLE MAPPING
=============================================================================

Primary cluster:
    KUBECONFIG                  -> Kubeconfig path (default ~/.kube/config)
    K8S_MCP_CLUSTER_NAME        -> Registry name for it (default "local")
    K8S_MCP_IN_CLUSTER          -> Use the pod's service account instead

Server:
    K8S_MCP_DEFAULT_NAMESPACE   -> Initial current namespace
    K8S_MCP_ADDITIONAL_CLUSTERS -> JSON list of {"name", "kubeconfig"}
    K8S_MCP_LOG_LEVEL           -> DEBUG, INFO, WARNING, ERROR, CRITICAL
    K8S_MCP_JSON_LOGS           -> JSON log lines instead of console output
    K8S_MCP_AUDIT_LOG           -> Path to a JSON-lines audit file

Retry (K8S_MCP_RETRY_ prefix):
    K8S_MCP_RETRY_MAX_ATTEMPTS      -> Attempts per remote call (default 5)
    K8S_MCP_RETRY_BACKOFF_SECONDS   -> Pause between attempts (default 0.01)
    K8S_MCP_RETRY_READ_TIMEOUT      -> Deadline for reads/lists (default 20)
    K8S_MCP_RETRY_MUTATION_TIMEOUT  -> Deadline for create/delete (default 30)
    K8S_MCP_RETRY_LOG_TIMEOUT       -> Deadline for log reads (default 30)
"""

from __future__ import annotations

import os
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import Annotated

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from k8s_mcp.cluster.retry import (
    LOG_TIMEOUT,
    MUTATION_TIMEOUT,
    READ_TIMEOUT,
    Deadlines,
    RetryPolicy,
)


class ClusterEntry(BaseModel):
    """
    One additional cluster registered at start-up.

    A BaseModel rather than BaseSettings: entries arrive as a list inside
    ServerSettings, not from their own environment variables.

        ClusterEntry(name="staging", kubeconfig="~/.kube/staging.yaml")
    """

    model_config = {"extra": "ignore"}

    name: str = Field(min_length=1, description="Registry name for the cluster")
    kubeconfig: str = Field(default="", description="Kubeconfig path; empty means ~/.kube/config")


class RetrySettings(BaseSettings):
    """Retry loop and deadline configuration for remote cluster calls."""

    model_config = SettingsConfigDict(env_prefix="K8S_MCP_RETRY_")

    max_attempts: int = Field(default=5, ge=1, description="Attempts per remote call")
    backoff_seconds: float = Field(default=0.01, ge=0, description="Pause between attempts")
    read_timeout: float = Field(default=READ_TIMEOUT, gt=0, description="Deadline for reads and lists")
    mutation_timeout: float = Field(
        default=MUTATION_TIMEOUT, gt=0, description="Deadline for create and delete"
    )
    log_timeout: float = Field(default=LOG_TIMEOUT, gt=0, description="Deadline for log retrieval")

    def policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            backoff=self.backoff_seconds,
            jitter=self.backoff_seconds / 10,
        )

    def deadlines(self) -> Deadlines:
        return Deadlines(
            read=self.read_timeout,
            mutation=self.mutation_timeout,
            logs=self.log_timeout,
        )


class ServerSettings(BaseSettings):
    """
    Main server configuration.

    USAGE:
    ------
        settings = load_settings()
        for entry in settings.all_clusters:
            await registry.register(entry.name, entry.kubeconfig)
    """

    model_config = SettingsConfigDict(
        env_prefix="K8S_MCP_",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    kubeconfig: str = Field(
        default="",
        validation_alias="KUBECONFIG",
        description="Kubeconfig path for the primary cluster",
    )
    cluster_name: str = Field(
        default="local",
        min_length=1,
        description="Registry name of the primary cluster",
    )
    in_cluster: bool = Field(
        default=False,
        description="Register the cluster this server runs in via its service account",
    )
    default_namespace: str = Field(
        default="default",
        description="Namespace used when a tool call names none",
    )
    additional_clusters: list[ClusterEntry] = Field(
        default_factory=list,
        description="Extra clusters to register at start-up",
    )
    server_name: str = Field(
        default="k8s-mcp",
        description="MCP server name",
    )
    log_level: Annotated[str, Field(pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")] = Field(
        default="INFO",
        description="Logging level",
    )
    json_logs: bool = Field(
        default=False,
        description="Render log lines as JSON",
    )
    audit_log: Path | None = Field(
        default=None,
        description="Path to audit log file",
    )
    retry: RetrySettings = Field(default_factory=RetrySettings)

    @field_validator("kubeconfig")
    @classmethod
    def first_kubeconfig_path(cls, v: str) -> str:
        """KUBECONFIG may hold several paths joined by ':'; the first one is used."""
        return v.split(os.pathsep)[0].strip() if v else v

    @property
    def all_clusters(self) -> list[ClusterEntry]:
        """
        Every cluster to register from a kubeconfig at start-up.

        The primary cluster comes first unless ``in_cluster`` is set, in which
        case it is registered from the service account instead.
        """
        clusters = []
        if not self.in_cluster:
            clusters.append(ClusterEntry(name=self.cluster_name, kubeconfig=self.kubeconfig))
        clusters.extend(self.additional_clusters)
        return clusters


# =============================================================================
# SETTINGS LOADER
# =============================================================================


def load_settings() -> ServerSettings:
    """
    Load settings from environment with validation.

    If K8S_MCP_ENV_FILE is set, variables are also read from that file:

        KUBECONFIG=/home/me/.kube/dev.yaml
        K8S_MCP_LOG_LEVEL=DEBUG

    Raises:
        pydantic.ValidationError: If configuration is invalid.
    """
    return ServerSettings(
        _env_file=os.environ.get("K8S_MCP_ENV_FILE"),
    )
