"""Pytest configuration and shared fixtures."""

import json
import subprocess
from pathlib import Path

import pytest
from typer.testing import CliRunner

REPO_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def cli_runner():
    """CLI runner for typer testing."""
    return CliRunner()


@pytest.fixture
def temp_profiles_dir(tmp_path):
    """Create temporary profiles directory."""
    profiles_dir = tmp_path / ".webapp" / "profiles"
    profiles_dir.mkdir(parents=True)
    return profiles_dir


@pytest.fixture
def sample_helm_profile():
    """Sample profile deploying with helm directly."""
    return {
        "name": "test-helm",
        "backend": "helm",
        "image_repository": "tester/web-app",
        "image_tag": "1001",
        "ingress_host": "web.test.local",
        "namespace": "test-ns",
        "release_name": "web-app",
    }


@pytest.fixture
def sample_argocd_profile():
    """Sample profile deploying through Argo CD."""
    return {
        "name": "test-argocd",
        "backend": "argocd",
        "image_repository": "tester/web-app",
        "image_tag": "1001",
        "ingress_host": "web.test.local",
        "namespace": "test-ns",
        "release_name": "web-app",
        "repo_url": "https://github.com/tester/web-app.git",
    }


@pytest.fixture
def create_profile(temp_profiles_dir):
    """Factory fixture to create profile files."""

    def _create(profile_data: dict):
        profile_path = temp_profiles_dir / f"{profile_data['name']}.json"
        profile_path.write_text(json.dumps(profile_data))
        return profile_path

    return _create


@pytest.fixture
def chart_dir(tmp_path):
    """Minimal chart at the default chart path under tmp_path."""
    chart = tmp_path / "helm" / "web-app-chart"
    chart.mkdir(parents=True)
    (chart / "Chart.yaml").write_text("apiVersion: v2\nname: web-app-chart\nversion: 0.1.0\n")
    return chart


@pytest.fixture
def fake_run():
    """Recorder standing in for run_cmd.

    Responses are matched on the first words of the command; unmatched
    commands succeed with empty output.
    """

    class FakeRun:
        def __init__(self):
            self.calls: list[list[str]] = []
            self.responses: dict[tuple[str, ...], tuple[int, str, str]] = {}

        def respond(self, prefix: tuple[str, ...], returncode: int = 0, stdout: str = "", stderr: str = ""):
            self.responses[prefix] = (returncode, stdout, stderr)

        def __call__(self, cmd, **kwargs):
            self.calls.append(list(cmd))
            returncode, stdout, stderr = 0, "", ""
            best = -1
            for prefix, response in self.responses.items():
                if tuple(cmd[: len(prefix)]) == prefix and len(prefix) > best:
                    best = len(prefix)
                    returncode, stdout, stderr = response
            return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)

    return FakeRun()


@pytest.fixture
def fake_subprocess(monkeypatch, fake_run):
    """Send every run_cmd call to fake_run, keeping run_cmd's error handling."""
    monkeypatch.setattr("webapp.utils.cmd.subprocess.run", fake_run)
    return fake_run
