"""Rewrite the image tag in a chart values file and publish the change.

CI calls this after pushing an image: the ``image.tag`` value in the chart's
values.yaml is replaced with the workflow run id and committed, which is the
change Argo CD picks up. Only the one line holding ``image.tag`` is touched,
so comments and the rest of the file survive the rewrite.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path

from webapp.chart import parse_values
from webapp.model.profile import is_valid_tag
from webapp.model.validation import ValidationError
from webapp.utils.cmd import run_cmd

RUN_ID_ENV = "GITHUB_RUN_ID"
DEFAULT_VALUES_PATH = Path("helm/web-app-chart/values.yaml")
DEFAULT_COMMIT_MESSAGE = "Update tag in Helm chart"

_KEY_LINE = re.compile(r"^(?P<indent>[ ]*)(?P<key>[^\s#:][^:#]*?)[ ]*:(?P<rest>(?:[ \t].*)?)$")
_VALUE_AND_COMMENT = re.compile(r"^\s*(?P<value>\"[^\"]*\"|'[^']*'|[^#]*?)\s*(?P<comment>#.*)?$")


@dataclass
class TagUpdate:
    """Outcome of a tag rewrite."""

    path: Path
    old_tag: str | None
    new_tag: str

    @property
    def changed(self) -> bool:
        return self.old_tag != self.new_tag


def resolve_tag(tag: str | None = None, environ: dict[str, str] | None = None) -> str:
    """Pick the tag to deploy: explicit value first, then the CI run id.

    Raises:
        ValidationError: TAG_REQUIRED when neither is available,
            INVALID_TAG when the value is not a Docker tag
    """
    if environ is None:
        environ = dict(os.environ)
    resolved = tag or environ.get(RUN_ID_ENV)
    if not resolved:
        raise ValidationError(
            "TAG_REQUIRED",
            f"No tag given and {RUN_ID_ENV} is not set",
        )
    if not is_valid_tag(resolved):
        raise ValidationError("INVALID_TAG", f"Invalid image tag: {resolved!r}")
    return resolved


def _is_content(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


def _unquote(key: str) -> str:
    if len(key) >= 2 and key[0] == key[-1] and key[0] in "\"'":
        return key[1:-1]
    return key


def find_image_tag_line(lines: list[str]) -> int | None:
    """Return the index of the ``tag:`` line nested under top-level ``image:``."""
    in_image = False
    child_indent: int | None = None

    for i, raw in enumerate(lines):
        line = raw.rstrip("\r\n")
        if not _is_content(line):
            continue
        match = _KEY_LINE.match(line)
        indent = len(line) - len(line.lstrip(" "))

        if indent == 0:
            # A new top-level key closes any open image block
            in_image = bool(match) and _unquote(match.group("key")) == "image" and not _is_content(match.group("rest"))
            child_indent = None
            continue

        if not in_image or match is None:
            continue
        if child_indent is None:
            child_indent = indent
        if indent == child_indent and _unquote(match.group("key")) == "tag":
            return i

    return None


def _rewrite_line(line: str, tag: str) -> str:
    ending = line[len(line.rstrip("\r\n")):]
    match = _KEY_LINE.match(line.rstrip("\r\n"))
    value = _VALUE_AND_COMMENT.match(match.group("rest"))
    comment = value.group("comment") if value else None
    new_line = f'{match.group("indent")}{match.group("key")}: "{tag}"'
    if comment:
        new_line += f"  {comment}"
    return new_line + ending


def update_image_tag(values_path: Path, tag: str) -> TagUpdate:
    """Set ``image.tag`` in a values file.

    Args:
        values_path: Chart values file
        tag: New image tag, written double-quoted

    Returns:
        TagUpdate with the previous and new tag

    Raises:
        ValidationError: VALUES_NOT_FOUND, VALUES_INVALID, IMAGE_TAG_NOT_FOUND
            or INVALID_TAG
    """
    if not is_valid_tag(tag):
        raise ValidationError("INVALID_TAG", f"Invalid image tag: {tag!r}")
    if not values_path.exists():
        raise ValidationError("VALUES_NOT_FOUND", f"Values file not found: {values_path}")

    # Bytes in and out so line endings survive the rewrite
    raw = values_path.read_bytes()
    data = parse_values(raw, values_path)
    if data is not None and not isinstance(data, dict):
        raise ValidationError("VALUES_INVALID", f"Values file is not a mapping: {values_path}")
    text = raw.decode("utf-8")
    image = (data or {}).get("image")
    if not isinstance(image, dict) or "tag" not in image:
        raise ValidationError(
            "IMAGE_TAG_NOT_FOUND",
            f"No image.tag key in {values_path}",
        )
    old_tag = None if image["tag"] is None else str(image["tag"])

    lines = text.splitlines(keepends=True)
    index = find_image_tag_line(lines)
    if index is None:
        raise ValidationError(
            "IMAGE_TAG_NOT_FOUND",
            f"image.tag in {values_path} is not in block style and cannot be rewritten in place",
        )

    update = TagUpdate(path=values_path, old_tag=old_tag, new_tag=tag)
    if not update.changed:
        return update

    lines[index] = _rewrite_line(lines[index], tag)
    new_text = "".join(lines)

    reparsed = parse_values(new_text.encode("utf-8"), values_path)
    if str(reparsed.get("image", {}).get("tag")) != tag:
        raise ValidationError(
            "IMAGE_TAG_NOT_FOUND",
            f"Rewriting image.tag in {values_path} did not take effect",
        )

    values_path.write_bytes(new_text.encode("utf-8"))
    return update


def _git(args: list[str], cwd: Path | None, failure: str | None = None):
    return run_cmd(["git", *args], check=False, cwd=cwd, timeout=120, failure=failure, failure_code="GIT_FAILED")


def commit_and_push(
    paths: list[Path],
    message: str = DEFAULT_COMMIT_MESSAGE,
    author_name: str | None = None,
    author_email: str | None = None,
    push: bool = True,
    cwd: Path | None = None,
) -> bool:
    """Commit the given files and optionally push.

    Returns:
        False when the files had no staged changes, True once committed

    Raises:
        ValidationError: GIT_FAILED if any git step fails
    """
    str_paths = [str(p) for p in paths]
    _git(["add", "--", *str_paths], cwd, "git add failed")

    # Exit code 0 means nothing staged for these paths
    diff = _git(["diff", "--cached", "--quiet", "--", *str_paths], cwd)
    if diff.returncode == 0:
        return False

    identity: list[str] = []
    if author_name:
        identity.extend(["-c", f"user.name={author_name}"])
    if author_email:
        identity.extend(["-c", f"user.email={author_email}"])
    _git([*identity, "commit", "-m", message, "--", *str_paths], cwd, "git commit failed")

    if push:
        _git(["push"], cwd, "git push failed")
    return True
