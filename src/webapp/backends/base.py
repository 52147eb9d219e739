"""Shared utilities for deployment backends."""

import json
import subprocess
from typing import Any

from webapp.model.profile import DeploymentProfile
from webapp.model.validation import ValidationError
from webapp.utils.cmd import missing_tools, run_cmd


def check_prerequisites(*tools: str) -> None:
    """Fail early when a required CLI is not installed.

    Raises:
        ValidationError: PREREQUISITES_MISSING listing the missing tools
    """
    missing = missing_tools(*tools)
    if missing:
        raise ValidationError(
            "PREREQUISITES_MISSING",
            f"Missing prerequisites: {', '.join(missing)}",
        )


def kubectl(profile: DeploymentProfile, *args: str) -> list[str]:
    """Build a kubectl command honoring the profile's kube context."""
    cmd = ["kubectl"]
    if profile.kube_context:
        cmd.extend(["--context", profile.kube_context])
    cmd.extend(args)
    return cmd


def helm(profile: DeploymentProfile, *args: str) -> list[str]:
    """Build a helm command honoring the profile's kube context."""
    cmd = ["helm"]
    if profile.kube_context:
        cmd.extend(["--kube-context", profile.kube_context])
    cmd.extend(args)
    return cmd


def pod_statuses(profile: DeploymentProfile) -> list[dict[str, Any]]:
    """List the release's pods with phase and the first waiting/terminated reason."""
    try:
        result = run_cmd(
            kubectl(
                profile,
                "get",
                "pods",
                "--namespace",
                profile.namespace,
                "-l",
                f"app.kubernetes.io/instance={profile.release_name}",
                "-o",
                "json",
            ),
            check=False,
            timeout=30,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError):
        return []

    if result.returncode != 0 or not result.stdout.strip():
        return []

    pods = []
    for pod in json.loads(result.stdout).get("items", []):
        metadata = pod.get("metadata", {})
        status = pod.get("status", {})

        detailed_status = None
        for cs in status.get("containerStatuses", []):
            state = cs.get("state", {})
            if "waiting" in state:
                detailed_status = state["waiting"].get("reason", "Waiting")
                break
            if "terminated" in state:
                detailed_status = state["terminated"].get("reason", "Terminated")
                break

        if metadata.get("deletionTimestamp"):
            detailed_status = "Terminating"

        pods.append(
            {
                "name": f"pod/{metadata.get('name', 'unknown')}",
                "status": status.get("phase", "unknown"),
                "detailed_status": detailed_status,
                "creation_timestamp": metadata.get("creationTimestamp"),
                "type": "pod",
            }
        )
    return pods
