"""Post-deployment acceptance checks.

Each check answers one question about the pipeline's end state: is the
image on DockerHub, does the committed values file point at it, and does
the Ingress host serve the page.
"""

from dataclasses import dataclass
from pathlib import Path

import requests

from webapp.chart import read_values
from webapp.model.validation import ValidationError
from webapp.registry import get_dockerhub_tag_info


@dataclass
class CheckResult:
    """Outcome of a single acceptance check."""

    name: str
    ok: bool
    detail: str = ""


def check_values_tag(values_path: Path, expected: str) -> CheckResult:
    """The chart's image.tag matches the expected tag."""
    name = "values tag"
    try:
        values = read_values(values_path)
    except ValidationError as e:
        return CheckResult(name, False, e.message)

    actual = (values.get("image") or {}).get("tag")
    if actual is None:
        return CheckResult(name, False, f"no image.tag in {values_path}")
    if str(actual) != expected:
        return CheckResult(name, False, f"image.tag is {actual!r}, expected {expected!r}")
    return CheckResult(name, True, f"image.tag = {expected}")


def check_image_published(repository: str, tag: str) -> CheckResult:
    """The image tag exists on DockerHub."""
    name = "image published"
    try:
        info = get_dockerhub_tag_info(repository, tag)
    except ValidationError as e:
        return CheckResult(name, False, e.message)
    if info is None:
        return CheckResult(name, False, f"{repository}:{tag} not found on DockerHub")
    return CheckResult(name, True, f"{repository}:{tag} digest {info.get('digest') or '-'}")


def check_endpoint(url: str, expect_text: str | None = None, timeout: float = 10.0) -> CheckResult:
    """The URL answers 200 with an HTML body (optionally containing expect_text)."""
    name = "endpoint"
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        return CheckResult(name, False, f"{url}: {e}")

    if response.status_code != 200:
        return CheckResult(name, False, f"{url} returned HTTP {response.status_code}")

    content_type = response.headers.get("Content-Type", "")
    if not content_type.startswith("text/html"):
        return CheckResult(name, False, f"{url} returned {content_type or 'no content type'}")

    if expect_text and expect_text not in response.text:
        return CheckResult(name, False, f"{url} body does not contain {expect_text!r}")

    return CheckResult(name, True, f"{url} served {len(response.content)} bytes")
