# ABOUTME: Unit tests for kubeconfig loading
# ABOUTME: Tests path resolution, file validation, parsing and in-cluster namespace detection

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from kubernetes.config.config_exception import ConfigException

from k8s_mcp.cluster.kubeconfig import (
    DEFAULT_NAMESPACE,
    detect_in_cluster_namespace,
    load_in_cluster,
    load_kubeconfig,
    parse_kubeconfig,
    resolve_kubeconfig_path,
)
from k8s_mcp.errors import ConfigError
from tests.fakes import KUBECONFIG_TEMPLATE


@pytest.mark.unit
class TestResolveKubeconfigPath:
    """Tests for kubeconfig path resolution."""

    def test_explicit_path(self, tmp_path: Path):
        assert resolve_kubeconfig_path(str(tmp_path / "cfg")) == tmp_path / "cfg"

    def test_empty_path_uses_home(self, tmp_path: Path):
        with patch.dict(os.environ, {"HOME": str(tmp_path)}):
            assert resolve_kubeconfig_path("") == tmp_path / ".kube" / "config"
            assert resolve_kubeconfig_path(None) == tmp_path / ".kube" / "config"


@pytest.mark.unit
class TestLoadKubeconfig:
    """Tests for load_kubeconfig."""

    def test_loads_current_context(self, kubeconfig_path: Path):
        loaded = load_kubeconfig(str(kubeconfig_path))

        assert loaded.current_context == "dev"
        assert loaded.source_path == str(kubeconfig_path)
        assert loaded.configuration.host == "https://dev.example.com:6443"

    def test_extracts_contexts(self, kubeconfig_path: Path):
        loaded = load_kubeconfig(str(kubeconfig_path))

        assert set(loaded.contexts) == {"dev", "prod"}
        dev = loaded.contexts["dev"]
        assert dev.cluster == "dev-cluster"
        assert dev.user == "dev-user"
        assert dev.namespace == "dev-ns"
        assert dev.server_url == "https://dev.example.com:6443"
        assert dev.config_path == str(kubeconfig_path)
        assert loaded.active_context == dev

    def test_context_with_missing_cluster_is_skipped(self, kubeconfig_path: Path):
        assert "broken" not in load_kubeconfig(str(kubeconfig_path)).contexts

    def test_other_current_context(self, tmp_path: Path):
        path = tmp_path / "config"
        path.write_text(KUBECONFIG_TEMPLATE.format(current="prod"))

        loaded = load_kubeconfig(str(path))

        assert loaded.current_context == "prod"
        assert loaded.configuration.host == "https://prod.example.com:6443"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="error accessing kubeconfig file"):
            load_kubeconfig(str(tmp_path / "nope"))

    def test_directory(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="is a directory, not a file"):
            load_kubeconfig(str(tmp_path))

    def test_unreadable_file(self, kubeconfig_path: Path):
        with patch.object(Path, "read_bytes", side_effect=PermissionError("permission denied")):
            with pytest.raises(ConfigError, match="error reading kubeconfig file"):
                load_kubeconfig(str(kubeconfig_path))


@pytest.mark.unit
class TestParseKubeconfig:
    """Tests for parse_kubeconfig error handling."""

    def test_invalid_yaml(self):
        with pytest.raises(ConfigError, match="error parsing kubeconfig"):
            parse_kubeconfig(b"clusters: [unclosed", "/cfg")

    def test_not_a_mapping(self):
        with pytest.raises(ConfigError, match="not a mapping"):
            parse_kubeconfig(b"- just\n- a list\n", "/cfg")

    def test_no_current_context(self):
        data = KUBECONFIG_TEMPLATE.format(current="").encode()
        with pytest.raises(ConfigError, match="no current context found"):
            parse_kubeconfig(data, "/cfg")

    def test_current_context_not_declared(self):
        data = KUBECONFIG_TEMPLATE.format(current="staging").encode()
        with pytest.raises(ConfigError, match="error building client config"):
            parse_kubeconfig(data, "/cfg")


@pytest.mark.unit
class TestInCluster:
    """Tests for in-cluster configuration."""

    def test_namespace_from_service_account(self, tmp_path: Path):
        ns_file = tmp_path / "namespace"
        ns_file.write_text("team-a\n")
        assert detect_in_cluster_namespace(ns_file) == "team-a"

    def test_namespace_fallback_when_missing(self, tmp_path: Path):
        assert detect_in_cluster_namespace(tmp_path / "missing") == DEFAULT_NAMESPACE

    def test_namespace_fallback_when_empty(self, tmp_path: Path):
        ns_file = tmp_path / "namespace"
        ns_file.write_text("  \n")
        assert detect_in_cluster_namespace(ns_file) == DEFAULT_NAMESPACE

    def test_load_in_cluster(self, tmp_path: Path):
        ns_file = tmp_path / "namespace"
        ns_file.write_text("team-a")

        def fake_load(client_configuration):
            client_configuration.host = "https://10.0.0.1:443"

        with patch("k8s_mcp.cluster.kubeconfig.k8s_config.load_incluster_config", side_effect=fake_load):
            loaded = load_in_cluster("home", namespace_file=ns_file)

        assert loaded.current_context == "home"
        assert loaded.source_path == ""
        assert loaded.active_context is not None
        assert loaded.active_context.namespace == "team-a"
        assert loaded.active_context.server_url == "https://10.0.0.1:443"

    def test_not_in_cluster(self):
        with patch(
            "k8s_mcp.cluster.kubeconfig.k8s_config.load_incluster_config",
            side_effect=ConfigException("Service host/port is not set."),
        ):
            with pytest.raises(ConfigError, match="failed to load in-cluster config"):
                load_in_cluster()
