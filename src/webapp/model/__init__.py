"""Data models for web app deployments."""

from webapp.model.profile import DeploymentBackend, DeploymentProfile
from webapp.model.validation import ValidationError

__all__ = [
    "DeploymentProfile",
    "DeploymentBackend",
    "ValidationError",
]
