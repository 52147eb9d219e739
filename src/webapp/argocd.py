"""Argo CD Application descriptor for the chart."""

from pathlib import Path
from typing import Any

from webapp.chart import VALUES_FILE, generate_values, write_yaml
from webapp.model.profile import DeploymentProfile
from webapp.model.validation import ValidationError

IN_CLUSTER_SERVER = "https://kubernetes.default.svc"
APPLICATION_FILE = "argocd-application.yaml"
RESOURCES_FINALIZER = "resources-finalizer.argocd.argoproj.io"


def application_values(profile: DeploymentProfile) -> dict[str, Any]:
    """Chart values for the Application, without image.tag.

    The tag stays owned by values.yaml in git, where CI commits it.
    """
    values = generate_values(profile)
    del values["image"]["tag"]
    return values


def generate_application(profile: DeploymentProfile) -> dict[str, Any]:
    """Build the Application resource that syncs the chart from git.

    Profile settings travel in ``helm.valuesObject``, which Argo CD layers
    over the chart's values.yaml.

    Args:
        profile: Deployment profile (must carry repo_url)

    Returns:
        Application manifest as a dictionary
    """
    if not profile.repo_url:
        raise ValidationError(
            "REPO_URL_REQUIRED",
            f"Profile '{profile.name}' has no repo_url for Argo CD",
        )

    sync_policy: dict[str, Any] = {
        "automated": {
            "prune": profile.sync_prune,
            "selfHeal": profile.sync_self_heal,
        },
        "syncOptions": ["CreateNamespace=true"],
    }

    return {
        "apiVersion": "argoproj.io/v1alpha1",
        "kind": "Application",
        "metadata": {
            "name": profile.release_name,
            "namespace": profile.argocd_namespace,
            # Deleting the Application also deletes what it deployed
            "finalizers": [RESOURCES_FINALIZER],
        },
        "spec": {
            "project": profile.argocd_project,
            "source": {
                "repoURL": profile.repo_url,
                "targetRevision": profile.target_revision,
                "path": profile.chart_path,
                "helm": {
                    "releaseName": profile.release_name,
                    "valueFiles": [VALUES_FILE],
                    "valuesObject": application_values(profile),
                },
            },
            "destination": {
                "server": IN_CLUSTER_SERVER,
                "namespace": profile.namespace,
            },
            "syncPolicy": sync_policy,
        },
    }


def render_application(profile: DeploymentProfile, output_dir: Path) -> Path:
    """Write the Application manifest into output_dir."""
    return write_yaml(generate_application(profile), output_dir / APPLICATION_FILE)


def parse_application_status(obj: dict[str, Any]) -> dict[str, str]:
    """Pull the sync and health state out of an Application object.

    A freshly created Application has no status yet; missing fields read
    as "Unknown".
    """
    status = obj.get("status") or {}
    sync = status.get("sync") or {}
    health = status.get("health") or {}
    operation = status.get("operationState") or {}
    return {
        "name": obj.get("metadata", {}).get("name", "unknown"),
        "sync": sync.get("status", "Unknown"),
        "health": health.get("status", "Unknown"),
        "revision": sync.get("revision", "-"),
        "operation": operation.get("phase", "-"),
        "message": operation.get("message", ""),
    }
