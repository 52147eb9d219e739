"""Deployment profile model."""

import re
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

DNS_LABEL_PATTERN = r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$"
HOSTNAME_PATTERN = (
    r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
# Docker tag grammar: up to 128 chars, no leading '.' or '-'
TAG_PATTERN = r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$"


def is_valid_tag(tag: str) -> bool:
    """Check a string against the Docker image tag grammar."""
    return bool(re.fullmatch(TAG_PATTERN, tag))


class DeploymentBackend(str, Enum):
    """How a profile is rolled out to the cluster."""

    HELM = "helm"  # helm upgrade --install from this machine
    ARGOCD = "argocd"  # Argo CD Application syncing the chart from git


class PullPolicy(str, Enum):
    """Kubernetes image pull policy."""

    ALWAYS = "Always"
    IF_NOT_PRESENT = "IfNotPresent"
    NEVER = "Never"


class ServiceType(str, Enum):
    """Kubernetes Service type."""

    CLUSTER_IP = "ClusterIP"
    NODE_PORT = "NodePort"
    LOAD_BALANCER = "LoadBalancer"


class DeploymentProfile(BaseModel):
    """Configuration for one deployment target (cluster + host)."""

    name: str = Field(default="dev", min_length=1, max_length=32)
    backend: DeploymentBackend = Field(default=DeploymentBackend.ARGOCD)

    # Image
    image_repository: str = Field(default="webapp/web-app", min_length=1)
    image_tag: str = Field(default="latest")
    image_pull_policy: PullPolicy = Field(default=PullPolicy.IF_NOT_PRESENT)
    replica_count: int = Field(default=1, ge=1)
    container_port: int = Field(default=8080, ge=1, le=65535)

    # Service
    service_type: ServiceType = Field(default=ServiceType.CLUSTER_IP)
    service_port: int = Field(default=80, ge=1, le=65535)

    # Ingress (EKS uses the AWS Load Balancer Controller)
    ingress_enabled: bool = Field(default=True)
    ingress_class_name: str = Field(default="alb")
    ingress_host: str = Field(default="web-app.local")
    ingress_annotations: dict[str, str] = Field(default_factory=dict)

    # Cluster
    namespace: str = Field(default="default")
    release_name: str = Field(default="web-app")
    chart_path: str = Field(default="helm/web-app-chart")
    kube_context: str | None = Field(default=None)

    # Argo CD
    repo_url: str | None = Field(default=None)
    target_revision: str = Field(default="HEAD")
    argocd_namespace: str = Field(default="argocd")
    argocd_project: str = Field(default="default")
    sync_prune: bool = Field(default=True)
    sync_self_heal: bool = Field(default=True)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate profile name: alphanumeric and hyphens only."""
        if not re.match(r"^[a-zA-Z0-9][a-zA-Z0-9-]*$", v):
            msg = "Profile name must be alphanumeric with optional hyphens"
            raise ValueError(msg)
        return v

    @field_validator("image_tag")
    @classmethod
    def validate_image_tag(cls, v: str) -> str:
        if not is_valid_tag(v):
            msg = f"Invalid image tag: {v!r}"
            raise ValueError(msg)
        return v

    @field_validator("ingress_host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Validate ingress host is an RFC 1123 hostname."""
        if not re.match(HOSTNAME_PATTERN, v):
            msg = "Invalid hostname format"
            raise ValueError(msg)
        return v

    @field_validator("namespace", "release_name", "argocd_namespace")
    @classmethod
    def validate_dns_label(cls, v: str) -> str:
        if not re.match(DNS_LABEL_PATTERN, v):
            msg = f"'{v}' is not a valid DNS label (lowercase alphanumeric and hyphens)"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_profile(self) -> "DeploymentProfile":
        """Validate cross-field constraints."""
        if self.backend == DeploymentBackend.ARGOCD and not self.repo_url:
            msg = "Argo CD backend requires repo_url"
            raise ValueError(msg)
        return self

    @property
    def image(self) -> str:
        """Full image reference for the configured tag."""
        return f"{self.image_repository}:{self.image_tag}"
