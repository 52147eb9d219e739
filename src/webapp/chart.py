"""Helm chart values for the web app."""

import subprocess
from pathlib import Path
from typing import Any

import yaml

from webapp.model.profile import DeploymentProfile
from webapp.model.validation import ValidationError
from webapp.utils.cmd import run_cmd

VALUES_FILE = "values.yaml"

# Defaults shipped in the chart's values.yaml for the AWS Load Balancer Controller
ALB_ANNOTATIONS = {
    "alb.ingress.kubernetes.io/scheme": "internet-facing",
    "alb.ingress.kubernetes.io/target-type": "ip",
}


def resolve_chart_dir(profile: DeploymentProfile, base_dir: Path | None = None) -> Path:
    """Locate the chart referenced by a profile.

    Raises:
        ValidationError: If the directory has no Chart.yaml
    """
    if base_dir is None:
        base_dir = Path.cwd()
    chart_dir = Path(profile.chart_path)
    if not chart_dir.is_absolute():
        chart_dir = base_dir / chart_dir
    if not (chart_dir / "Chart.yaml").exists():
        raise ValidationError(
            "CHART_NOT_FOUND",
            f"Helm chart not found at {chart_dir}",
        )
    return chart_dir


def generate_values(profile: DeploymentProfile) -> dict[str, Any]:
    """Generate values.yaml content for the chart.

    Args:
        profile: Deployment profile

    Returns:
        Values dictionary, keys in the order the chart documents them
    """
    values: dict[str, Any] = {
        "replicaCount": profile.replica_count,
        "image": {
            "repository": profile.image_repository,
            "tag": profile.image_tag,
            "pullPolicy": profile.image_pull_policy.value,
        },
        "containerPort": profile.container_port,
        "service": {
            "type": profile.service_type.value,
            "port": profile.service_port,
        },
        "ingress": {
            "enabled": profile.ingress_enabled,
        },
    }

    if profile.ingress_enabled:
        values["ingress"]["className"] = profile.ingress_class_name
        values["ingress"]["host"] = profile.ingress_host
        annotations: dict[str, str | None] = dict(profile.ingress_annotations)
        for key, value in ALB_ANNOTATIONS.items():
            # Helm merges over the chart defaults; null removes a key
            annotations.setdefault(key, value if profile.ingress_class_name == "alb" else None)
        values["ingress"]["annotations"] = annotations

    return values


def write_yaml(data: dict[str, Any], path: Path) -> Path:
    """Dump a mapping to YAML, preserving key order."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
    return path


def render_chart_values(profile: DeploymentProfile, output_dir: Path) -> Path:
    """Write the profile's values file into output_dir."""
    return write_yaml(generate_values(profile), output_dir / VALUES_FILE)


def parse_values(raw: bytes, source: Path) -> Any:
    """Decode and parse the raw content of a values file.

    Raises:
        ValidationError: VALUES_INVALID if it is not UTF-8 YAML
    """
    try:
        return yaml.safe_load(raw.decode("utf-8"))
    except (UnicodeDecodeError, yaml.YAMLError) as e:
        raise ValidationError("VALUES_INVALID", f"Cannot parse {source}: {e}") from e


def read_values(values_path: Path) -> dict[str, Any]:
    """Load a values file.

    Raises:
        ValidationError: VALUES_NOT_FOUND, or VALUES_INVALID if the file
            does not parse or is not a mapping
    """
    if not values_path.exists():
        raise ValidationError(
            "VALUES_NOT_FOUND",
            f"Values file not found: {values_path}",
        )
    data = parse_values(values_path.read_bytes(), values_path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(
            "VALUES_INVALID",
            f"Values file is not a mapping: {values_path}",
        )
    return data


def lint_chart(chart_dir: Path, values_path: Path | None = None) -> subprocess.CompletedProcess[str]:
    """Run ``helm lint`` on the chart.

    Raises:
        ValidationError: If helm is missing or lint reports errors
    """
    cmd = ["helm", "lint", str(chart_dir)]
    if values_path is not None:
        cmd.extend(["--values", str(values_path)])
    return _run_helm(cmd, "helm lint failed")


def template_chart(
    chart_dir: Path,
    release_name: str,
    namespace: str,
    values_path: Path | None = None,
) -> list[dict[str, Any]]:
    """Render the chart with ``helm template`` and parse the manifests."""
    cmd = ["helm", "template", release_name, str(chart_dir), "--namespace", namespace]
    if values_path is not None:
        cmd.extend(["--values", str(values_path)])
    result = _run_helm(cmd, "helm template failed")
    return [doc for doc in yaml.safe_load_all(result.stdout) if doc]


def _run_helm(cmd: list[str], failure: str) -> subprocess.CompletedProcess[str]:
    return run_cmd(cmd, timeout=120, failure=failure, failure_code="HELM_FAILED")
