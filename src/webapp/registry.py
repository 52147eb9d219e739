"""Container image build/push and DockerHub lookups."""

from pathlib import Path

import requests

from webapp.model.validation import ValidationError
from webapp.utils.cmd import run_cmd

DOCKERHUB_API = "https://hub.docker.com/v2"


def image_ref(repository: str, tag: str) -> str:
    """Full image reference, e.g. ``user/web-app:1234``."""
    return f"{repository}:{tag}"


def _docker(cmd: list[str], failure: str, timeout: int) -> None:
    run_cmd(cmd, timeout=timeout, failure=failure, failure_code="DOCKER_FAILED")


def build_image(
    repository: str,
    tag: str,
    context: Path = Path("."),
    dockerfile: Path | None = None,
) -> str:
    """Build the image with ``docker build``.

    Returns:
        The image reference that was built

    Raises:
        ValidationError: DOCKER_FAILED if the build fails
    """
    ref = image_ref(repository, tag)
    cmd = ["docker", "build", "-t", ref]
    if dockerfile is not None:
        cmd.extend(["-f", str(dockerfile)])
    cmd.append(str(context))
    _docker(cmd, f"docker build of {ref} failed", timeout=1800)
    return ref


def push_image(repository: str, tag: str) -> str:
    """Push a previously built image.

    Raises:
        ValidationError: DOCKER_FAILED if the push fails
    """
    ref = image_ref(repository, tag)
    _docker(["docker", "push", ref], f"docker push of {ref} failed", timeout=1800)
    return ref


def get_dockerhub_tag_info(repository: str, tag: str, timeout: int = 30) -> dict | None:
    """Get tag info including digest from DockerHub.

    Args:
        repository: Image name (e.g., 'user/web-app'); bare names map to 'library/'
        tag: Tag name

    Returns:
        Dict with tag, digest and last_pushed, or None if the tag does not exist

    Raises:
        ValidationError: REGISTRY_UNREACHABLE on network errors or unexpected replies
    """
    namespace, name = repository.split("/", 1) if "/" in repository else ("library", repository)
    url = f"{DOCKERHUB_API}/repositories/{namespace}/{name}/tags/{tag}"

    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise ValidationError("REGISTRY_UNREACHABLE", f"Could not query DockerHub: {e}") from e

    if response.status_code == 404:
        return None
    if response.status_code != 200:
        raise ValidationError(
            "REGISTRY_UNREACHABLE",
            f"DockerHub returned HTTP {response.status_code} for {repository}:{tag}",
        )

    data = response.json()
    images = data.get("images") or []
    return {
        "tag": data.get("name", tag),
        "digest": data.get("digest") or (images[0].get("digest") if images else None),
        "last_pushed": data.get("tag_last_pushed"),
    }
