# ABOUTME: Unit tests for configuration management
# ABOUTME: Tests settings loading, validation, and start-up cluster selection

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from k8s_mcp.cluster.retry import Deadlines
from k8s_mcp.config import ClusterEntry, RetrySettings, ServerSettings, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Keep the developer's own environment out of settings tests."""
    for key in list(os.environ):
        if key == "KUBECONFIG" or key.startswith("K8S_MCP_"):
            monkeypatch.delenv(key, raising=False)


@pytest.mark.unit
class TestClusterEntry:
    """Tests for ClusterEntry configuration."""

    def test_default_kubeconfig_is_empty(self):
        entry = ClusterEntry(name="staging")
        assert entry.kubeconfig == ""

    def test_name_required(self):
        with pytest.raises(ValidationError):
            ClusterEntry(name="")


@pytest.mark.unit
class TestRetrySettings:
    """Tests for RetrySettings configuration."""

    def test_defaults(self):
        settings = RetrySettings()

        assert settings.max_attempts == 5
        assert settings.backoff_seconds == 0.01
        assert settings.deadlines() == Deadlines(read=20.0, mutation=30.0, logs=30.0)

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("K8S_MCP_RETRY_MAX_ATTEMPTS", "2")
        monkeypatch.setenv("K8S_MCP_RETRY_READ_TIMEOUT", "7.5")

        settings = RetrySettings()

        assert settings.policy().max_attempts == 2
        assert settings.deadlines().read == 7.5

    def test_policy_jitter_follows_backoff(self):
        policy = RetrySettings(backoff_seconds=0.5).policy()
        assert policy.backoff == 0.5
        assert policy.jitter == pytest.approx(0.05)

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValidationError):
            RetrySettings(max_attempts=0)

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            RetrySettings(mutation_timeout=0)


@pytest.mark.unit
class TestServerSettings:
    """Tests for ServerSettings configuration."""

    def test_defaults(self):
        settings = ServerSettings()

        assert settings.cluster_name == "local"
        assert settings.default_namespace == "default"
        assert settings.log_level == "INFO"
        assert settings.server_name == "k8s-mcp"
        assert settings.in_cluster is False
        assert settings.audit_log is None

    def test_kubeconfig_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("KUBECONFIG", "/etc/kube/dev.yaml")
        assert ServerSettings().kubeconfig == "/etc/kube/dev.yaml"

    def test_kubeconfig_list_uses_first_path(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("KUBECONFIG", os.pathsep.join(["/a/config", "/b/config"]))
        assert ServerSettings().kubeconfig == "/a/config"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            ServerSettings(log_level="VERBOSE")

    def test_additional_clusters_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv(
            "K8S_MCP_ADDITIONAL_CLUSTERS",
            '[{"name": "staging", "kubeconfig": "/kube/staging.yaml"}]',
        )

        settings = ServerSettings()

        assert settings.additional_clusters == [ClusterEntry(name="staging", kubeconfig="/kube/staging.yaml")]

    def test_nested_retry_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("K8S_MCP_RETRY__MAX_ATTEMPTS", "3")
        assert ServerSettings().retry.max_attempts == 3

    def test_all_clusters_primary_first(self):
        settings = ServerSettings(
            kubeconfig="/kube/main.yaml",
            cluster_name="main",
            additional_clusters=[ClusterEntry(name="dr", kubeconfig="/kube/dr.yaml")],
        )

        clusters = settings.all_clusters

        assert [c.name for c in clusters] == ["main", "dr"]
        assert clusters[0].kubeconfig == "/kube/main.yaml"

    def test_all_clusters_in_cluster_skips_primary(self):
        settings = ServerSettings(
            in_cluster=True,
            additional_clusters=[ClusterEntry(name="dr")],
        )
        assert [c.name for c in settings.all_clusters] == ["dr"]


@pytest.mark.unit
class TestLoadSettings:
    """Tests for load_settings."""

    def test_reads_env_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        env_file = tmp_path / "k8s.env"
        env_file.write_text("K8S_MCP_LOG_LEVEL=DEBUG\nK8S_MCP_DEFAULT_NAMESPACE=team-a\n")
        monkeypatch.setenv("K8S_MCP_ENV_FILE", str(env_file))

        settings = load_settings()

        assert settings.log_level == "DEBUG"
        assert settings.default_namespace == "team-a"

    def test_without_env_file(self):
        assert load_settings().cluster_name == "local"
