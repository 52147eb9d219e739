"""Deployment backends."""

from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from webapp.model.profile import DeploymentBackend

if TYPE_CHECKING:
    from webapp.model.profile import DeploymentProfile


class Backend(Protocol):
    """Backend interface for deployment drivers."""

    def render(self, profile: "DeploymentProfile", output_dir: Path) -> dict[str, Path]:
        """Write deployment artifacts, returning name -> path."""
        ...

    def generate(
        self,
        profile_name: str,
        output_dir: str | None = None,
        base_dir: Path | None = None,
    ) -> Path:
        """Generate deployment files."""
        ...

    def apply(self, profile_name: str, base_dir: Path | None = None) -> None:
        """Apply deployment."""
        ...

    def destroy(
        self,
        profile_name: str,
        remove_files: bool = False,
        base_dir: Path | None = None,
    ) -> None:
        """Destroy deployment."""
        ...

    def status(self, profile_name: str, base_dir: Path | None = None) -> list[dict]:
        """Report deployment status."""
        ...


def get_backend(backend_type: DeploymentBackend | str) -> Any:
    """Get backend module based on type.

    Args:
        backend_type: Backend type (helm or argocd)

    Returns:
        Backend module with render, generate, apply, destroy, status functions
    """
    if isinstance(backend_type, str):
        backend_type = DeploymentBackend(backend_type)

    if backend_type == DeploymentBackend.HELM:
        from webapp.backends import helm

        return helm

    from webapp.backends import gitops

    return gitops


__all__ = [
    "get_backend",
    "Backend",
]
