"""Tests for the helm and Argo CD backends."""

import json

import pytest
import yaml

from webapp.backends import get_backend, gitops, helm
from webapp.model.profile import DeploymentBackend
from webapp.model.validation import ValidationError


@pytest.fixture
def cluster(monkeypatch, fake_subprocess):
    """Pretend helm and kubectl are installed and record what they are asked to do."""
    monkeypatch.setattr("webapp.backends.base.missing_tools", lambda *tools: [])
    return fake_subprocess


class TestGetBackend:
    def test_helm(self):
        assert get_backend(DeploymentBackend.HELM) is helm

    def test_argocd(self):
        assert get_backend("argocd") is gitops

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_backend("swarm")

    @pytest.mark.parametrize("module", [helm, gitops])
    def test_protocol_functions(self, module):
        for name in ("render", "generate", "apply", "destroy", "status"):
            assert callable(getattr(module, name))


class TestHelmBackend:
    def test_generate_writes_values(self, tmp_path, create_profile, sample_helm_profile):
        create_profile(sample_helm_profile)
        output = helm.generate_helm("test-helm", base_dir=tmp_path)
        assert output == tmp_path / ".webapp" / "render" / "test-helm"
        values = yaml.safe_load((output / "values.yaml").read_text())
        assert values["image"]["tag"] == "1001"

    def test_generate_custom_output(self, tmp_path, create_profile, sample_helm_profile):
        create_profile(sample_helm_profile)
        output = helm.generate_helm("test-helm", str(tmp_path / "out"), base_dir=tmp_path)
        assert (output / "values.yaml").exists()

    def test_apply_runs_upgrade_install(self, tmp_path, cluster, chart_dir, create_profile, sample_helm_profile):
        create_profile(sample_helm_profile)
        helm.apply_helm("test-helm", base_dir=tmp_path)

        cmd = cluster.calls[-1]
        assert cmd[:5] == ["helm", "upgrade", "--install", "web-app", str(chart_dir)]
        assert cmd[cmd.index("--namespace") + 1] == "test-ns"
        assert "--create-namespace" in cmd
        values_path = cmd[cmd.index("--values") + 1]
        assert values_path == str(tmp_path / ".webapp" / "render" / "test-helm" / "values.yaml")

    def test_apply_uses_kube_context(self, tmp_path, cluster, chart_dir, create_profile, sample_helm_profile):
        create_profile({**sample_helm_profile, "kube_context": "eks-demo"})
        helm.apply_helm("test-helm", base_dir=tmp_path)
        assert cluster.calls[-1][:3] == ["helm", "--kube-context", "eks-demo"]

    def test_apply_failure(self, tmp_path, cluster, chart_dir, create_profile, sample_helm_profile):
        create_profile(sample_helm_profile)
        cluster.respond(("helm", "upgrade"), returncode=1, stderr="UPGRADE FAILED: timed out")
        with pytest.raises(ValidationError) as exc_info:
            helm.apply_helm("test-helm", base_dir=tmp_path)
        assert exc_info.value.code == "HELM_FAILED"
        assert "timed out" in exc_info.value.message

    def test_apply_without_chart(self, tmp_path, cluster, create_profile, sample_helm_profile):
        create_profile(sample_helm_profile)
        with pytest.raises(ValidationError) as exc_info:
            helm.apply_helm("test-helm", base_dir=tmp_path)
        assert exc_info.value.code == "CHART_NOT_FOUND"
        assert cluster.calls == []

    def test_apply_missing_tools(self, tmp_path, monkeypatch, create_profile, sample_helm_profile):
        create_profile(sample_helm_profile)
        monkeypatch.setattr("webapp.backends.base.missing_tools", lambda *tools: ["helm"])
        with pytest.raises(ValidationError) as exc_info:
            helm.apply_helm("test-helm", base_dir=tmp_path)
        assert exc_info.value.code == "PREREQUISITES_MISSING"
        assert "helm" in exc_info.value.message

    def test_destroy_not_installed_is_ok(self, tmp_path, cluster, create_profile, sample_helm_profile):
        create_profile(sample_helm_profile)
        cluster.respond(
            ("helm", "uninstall"),
            returncode=1,
            stderr="Error: uninstall: Release not loaded: web-app: release: not found",
        )
        helm.destroy_helm("test-helm", base_dir=tmp_path)
        assert cluster.calls[-1] == ["helm", "uninstall", "web-app", "--namespace", "test-ns"]

    def test_destroy_removes_files(self, tmp_path, cluster, create_profile, sample_helm_profile):
        create_profile(sample_helm_profile)
        output = helm.generate_helm("test-helm", base_dir=tmp_path)
        helm.destroy_helm("test-helm", remove_files=True, base_dir=tmp_path)
        assert not output.exists()

    def test_destroy_failure(self, tmp_path, cluster, create_profile, sample_helm_profile):
        create_profile(sample_helm_profile)
        cluster.respond(("helm", "uninstall"), returncode=1, stderr="Kubernetes cluster unreachable")
        with pytest.raises(ValidationError) as exc_info:
            helm.destroy_helm("test-helm", base_dir=tmp_path)
        assert exc_info.value.code == "HELM_FAILED"

    def test_status(self, tmp_path, cluster, create_profile, sample_helm_profile):
        create_profile(sample_helm_profile)
        cluster.respond(
            ("helm", "list"),
            stdout=json.dumps(
                [{"name": "web-app", "status": "deployed", "revision": "3", "chart": "web-app-chart-0.1.0"}]
            ),
        )
        cluster.respond(
            ("kubectl", "get", "pods"),
            stdout=json.dumps(
                {
                    "items": [
                        {
                            "metadata": {"name": "web-app-abc", "creationTimestamp": "2024-01-01T00:00:00Z"},
                            "status": {
                                "phase": "Pending",
                                "containerStatuses": [{"state": {"waiting": {"reason": "ImagePullBackOff"}}}],
                            },
                        }
                    ]
                }
            ),
        )

        services = helm.status_helm("test-helm", base_dir=tmp_path)

        assert services[0]["name"] == "web-app"
        assert services[0]["status"] == "deployed"
        assert services[1]["name"] == "pod/web-app-abc"
        assert services[1]["status"] == "Pending"
        assert services[1]["detailed_status"] == "ImagePullBackOff"
        pods_cmd = next(call for call in cluster.calls if call[:3] == ["kubectl", "get", "pods"])
        assert "app.kubernetes.io/instance=web-app" in pods_cmd

    def test_status_nothing_deployed(self, tmp_path, cluster, create_profile, sample_helm_profile):
        create_profile(sample_helm_profile)
        cluster.respond(("helm", "list"), stdout="[]")
        assert helm.status_helm("test-helm", base_dir=tmp_path) == []


class TestGitopsBackend:
    def test_generate_writes_application_and_values(self, tmp_path, create_profile, sample_argocd_profile):
        create_profile(sample_argocd_profile)
        output = gitops.generate_gitops("test-argocd", base_dir=tmp_path)
        app = yaml.safe_load((output / "argocd-application.yaml").read_text())
        assert app["spec"]["source"]["repoURL"] == sample_argocd_profile["repo_url"]
        assert (output / "values.yaml").exists()

    def test_apply_registers_application(self, tmp_path, cluster, create_profile, sample_argocd_profile):
        create_profile(sample_argocd_profile)
        gitops.apply_gitops("test-argocd", base_dir=tmp_path)
        manifest = tmp_path / ".webapp" / "render" / "test-argocd" / "argocd-application.yaml"
        assert cluster.calls == [["kubectl", "apply", "-f", str(manifest)]]
        app = yaml.safe_load(manifest.read_text())
        assert app["spec"]["source"]["helm"]["valuesObject"]["ingress"]["host"] == "web.test.local"

    def test_apply_failure(self, tmp_path, cluster, create_profile, sample_argocd_profile):
        create_profile(sample_argocd_profile)
        cluster.respond(("kubectl", "apply"), returncode=1, stderr='no matches for kind "Application"')
        with pytest.raises(ValidationError) as exc_info:
            gitops.apply_gitops("test-argocd", base_dir=tmp_path)
        assert exc_info.value.code == "KUBECTL_FAILED"

    def test_destroy_deletes_application(self, tmp_path, cluster, create_profile, sample_argocd_profile):
        create_profile(sample_argocd_profile)
        gitops.destroy_gitops("test-argocd", base_dir=tmp_path)
        assert cluster.calls[-1] == [
            "kubectl",
            "delete",
            "application",
            "web-app",
            "--namespace",
            "argocd",
            "--ignore-not-found",
        ]

    def test_destroy_failure(self, tmp_path, cluster, create_profile, sample_argocd_profile):
        create_profile(sample_argocd_profile)
        cluster.respond(("kubectl", "delete"), returncode=1, stderr="forbidden")
        with pytest.raises(ValidationError) as exc_info:
            gitops.destroy_gitops("test-argocd", base_dir=tmp_path)
        assert exc_info.value.code == "KUBECTL_FAILED"
        assert "forbidden" in exc_info.value.message

    def test_status(self, tmp_path, cluster, create_profile, sample_argocd_profile):
        create_profile(sample_argocd_profile)
        cluster.respond(
            ("kubectl", "get", "application"),
            stdout=json.dumps(
                {
                    "metadata": {"name": "web-app"},
                    "status": {
                        "sync": {"status": "OutOfSync", "revision": "def456"},
                        "health": {"status": "Progressing"},
                    },
                }
            ),
        )
        services = gitops.status_gitops("test-argocd", base_dir=tmp_path)
        assert services == [
            {
                "name": "application/web-app",
                "status": "OutOfSync",
                "health": "Progressing",
                "revision": "def456",
            }
        ]

    def test_status_application_missing(self, tmp_path, cluster, create_profile, sample_argocd_profile):
        create_profile(sample_argocd_profile)
        cluster.respond(("kubectl", "get", "application"), returncode=1, stderr="NotFound")
        assert gitops.status_gitops("test-argocd", base_dir=tmp_path) == []
