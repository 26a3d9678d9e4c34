"""Tests for kubeconfig discovery and context resolution."""

import os
from pathlib import Path

import pytest
import yaml

from kubesafe.errors import ConfigurationError
from kubesafe.kubectl.context import EnvironmentResolver, discover_kubeconfig, resolve_context
from kubesafe.kubectl.types import EnvironmentClass


def write_kubeconfig(path: Path, current: str | None = "prod-eu", contexts: list | None = None) -> Path:
    if contexts is None:
        contexts = [
            {"name": "prod-eu", "context": {"cluster": "eu-1", "user": "admin", "namespace": "shop"}},
            {"name": "dev-local", "context": {"cluster": "kind"}},
            {"name": "broken", "context": {"user": "nobody"}},
        ]
    data = {"apiVersion": "v1", "kind": "Config", "contexts": contexts}
    if current is not None:
        data["current-context"] = current
    path.write_text(yaml.safe_dump(data))
    return path


# ── discover_kubeconfig ─────────────────────────────────────────────


class TestDiscoverKubeconfig:
    def test_explicit_wins(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("KUBECONFIG", str(tmp_path / "env"))
        assert discover_kubeconfig(tmp_path / "explicit") == tmp_path / "explicit"

    def test_first_existing_env_entry(self, tmp_path: Path, monkeypatch):
        second = tmp_path / "second"
        second.write_text("")
        monkeypatch.setenv("KUBECONFIG", os.pathsep.join([str(tmp_path / "missing"), str(second)]))
        assert discover_kubeconfig() == second

    def test_env_entry_even_if_missing(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("KUBECONFIG", str(tmp_path / "missing"))
        assert discover_kubeconfig() == tmp_path / "missing"

    def test_home_default(self, monkeypatch):
        monkeypatch.delenv("KUBECONFIG", raising=False)
        assert discover_kubeconfig() == Path.home() / ".kube" / "config"


# ── EnvironmentResolver ─────────────────────────────────────────────


class TestEnvironmentResolver:
    def test_resolves_current_context(self, tmp_path: Path):
        path = write_kubeconfig(tmp_path / "config")
        ctx = EnvironmentResolver(path).resolve()
        assert ctx.name == "prod-eu"
        assert ctx.cluster == "eu-1"
        assert ctx.user == "admin"
        assert ctx.namespace == "shop"
        assert ctx.environment_class is EnvironmentClass.PRODUCTION

    def test_user_defaults_to_empty(self, tmp_path: Path):
        path = write_kubeconfig(tmp_path / "config", current="dev-local")
        ctx = resolve_context(path)
        assert ctx.user == ""
        assert ctx.namespace is None
        assert ctx.effective_namespace == "default"

    def test_override(self, tmp_path: Path):
        path = write_kubeconfig(tmp_path / "config")
        ctx = EnvironmentResolver(path, context_override="dev-local").resolve()
        assert ctx.environment_class is EnvironmentClass.DEVELOPMENT

    def test_cached_until_refresh(self, tmp_path: Path):
        path = write_kubeconfig(tmp_path / "config")
        resolver = EnvironmentResolver(path)
        first = resolver.resolve()
        write_kubeconfig(path, current="dev-local")
        assert resolver.resolve() is first
        assert resolver.refresh().name == "dev-local"

    def test_switch(self, tmp_path: Path):
        path = write_kubeconfig(tmp_path / "config")
        resolver = EnvironmentResolver(path)
        resolver.resolve()
        ctx = resolver.switch("dev-local")
        assert ctx.name == "dev-local"
        assert resolver.resolve() is ctx

    def test_switch_to_unknown_keeps_current(self, tmp_path: Path):
        path = write_kubeconfig(tmp_path / "config")
        resolver = EnvironmentResolver(path)
        before = resolver.resolve()
        with pytest.raises(ConfigurationError):
            resolver.switch("nope")
        assert resolver.resolve() is before

    def test_available_contexts(self, tmp_path: Path):
        path = write_kubeconfig(tmp_path / "config")
        assert EnvironmentResolver(path).available_contexts() == ["prod-eu", "dev-local", "broken"]


class TestResolverErrors:
    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError) as exc:
            resolve_context(tmp_path / "absent")
        assert exc.value.hint

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "config"
        path.write_text("contexts: [unclosed")
        with pytest.raises(ConfigurationError, match="not valid YAML"):
            resolve_context(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "config"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            resolve_context(path)

    def test_no_contexts(self, tmp_path: Path):
        path = write_kubeconfig(tmp_path / "config", contexts=[])
        with pytest.raises(ConfigurationError, match="No contexts"):
            resolve_context(path)

    def test_no_current_context(self, tmp_path: Path):
        path = write_kubeconfig(tmp_path / "config", current=None)
        with pytest.raises(ConfigurationError, match="No current-context"):
            resolve_context(path)

    def test_named_context_absent(self, tmp_path: Path):
        path = write_kubeconfig(tmp_path / "config", current="ghost")
        with pytest.raises(ConfigurationError, match="not found"):
            resolve_context(path)

    def test_context_without_cluster(self, tmp_path: Path):
        path = write_kubeconfig(tmp_path / "config", current="broken")
        with pytest.raises(ConfigurationError, match="no cluster"):
            resolve_context(path)

    def test_message_and_hint_in_str(self, tmp_path: Path):
        path = write_kubeconfig(tmp_path / "config", current="ghost")
        with pytest.raises(ConfigurationError) as exc:
            resolve_context(path)
        assert "kubectl config get-contexts" in str(exc.value)
