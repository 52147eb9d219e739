"""Tests for image build/push and DockerHub lookups."""

from pathlib import Path

import pytest
import requests

from webapp.model.validation import ValidationError
from webapp.registry import build_image, get_dockerhub_tag_info, image_ref, push_image


class FakeResponse:
    def __init__(self, status_code: int, payload: dict | None = None):
        self.status_code = status_code
        self._payload = payload or {}

    def json(self):
        return self._payload


@pytest.fixture
def hub(monkeypatch):
    """Route DockerHub requests to canned responses."""
    calls: list[str] = []
    state = {"response": FakeResponse(404)}

    def fake_get(url, timeout=None):
        calls.append(url)
        response = state["response"]
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr("webapp.registry.requests.get", fake_get)
    state["calls"] = calls
    return state


class TestDockerHubTagInfo:
    def test_existing_tag(self, hub):
        hub["response"] = FakeResponse(
            200,
            {"name": "1234", "digest": "sha256:abc", "tag_last_pushed": "2024-05-01T10:00:00Z"},
        )
        info = get_dockerhub_tag_info("tester/web-app", "1234")
        assert info == {"tag": "1234", "digest": "sha256:abc", "last_pushed": "2024-05-01T10:00:00Z"}
        assert hub["calls"] == ["https://hub.docker.com/v2/repositories/tester/web-app/tags/1234"]

    def test_digest_from_images(self, hub):
        hub["response"] = FakeResponse(200, {"name": "1", "images": [{"digest": "sha256:fromimage"}]})
        assert get_dockerhub_tag_info("tester/web-app", "1")["digest"] == "sha256:fromimage"

    def test_official_image_uses_library_namespace(self, hub):
        get_dockerhub_tag_info("nginx", "latest")
        assert hub["calls"] == ["https://hub.docker.com/v2/repositories/library/nginx/tags/latest"]

    def test_missing_tag(self, hub):
        assert get_dockerhub_tag_info("tester/web-app", "nope") is None

    def test_server_error(self, hub):
        hub["response"] = FakeResponse(500)
        with pytest.raises(ValidationError) as exc_info:
            get_dockerhub_tag_info("tester/web-app", "1")
        assert exc_info.value.code == "REGISTRY_UNREACHABLE"

    def test_network_error(self, hub):
        hub["response"] = requests.ConnectionError("connection refused")
        with pytest.raises(ValidationError) as exc_info:
            get_dockerhub_tag_info("tester/web-app", "1")
        assert exc_info.value.code == "REGISTRY_UNREACHABLE"


class TestDockerCommands:
    @pytest.fixture
    def docker(self, fake_subprocess):
        return fake_subprocess

    def test_image_ref(self):
        assert image_ref("tester/web-app", "42") == "tester/web-app:42"

    def test_build(self, docker):
        ref = build_image("tester/web-app", "42")
        assert ref == "tester/web-app:42"
        assert docker.calls == [["docker", "build", "-t", "tester/web-app:42", "."]]

    def test_build_with_dockerfile(self, docker):
        build_image("tester/web-app", "42", context=Path("app"), dockerfile=Path("app/Dockerfile"))
        assert docker.calls == [["docker", "build", "-t", "tester/web-app:42", "-f", "app/Dockerfile", "app"]]

    def test_push(self, docker):
        assert push_image("tester/web-app", "42") == "tester/web-app:42"
        assert docker.calls == [["docker", "push", "tester/web-app:42"]]

    def test_push_denied(self, docker):
        docker.respond(("docker", "push"), returncode=1, stderr="denied: requested access to the resource is denied")
        with pytest.raises(ValidationError) as exc_info:
            push_image("tester/web-app", "42")
        assert exc_info.value.code == "DOCKER_FAILED"
        assert "denied" in exc_info.value.message

    def test_docker_not_installed(self, monkeypatch):
        def missing(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr("webapp.utils.cmd.subprocess.run", missing)
        with pytest.raises(ValidationError) as exc_info:
            build_image("tester/web-app", "42")
        assert exc_info.value.code == "PREREQUISITES_MISSING"
