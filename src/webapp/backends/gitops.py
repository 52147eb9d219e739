"""Argo CD backend: register an Application and let the controller sync."""

import json
import shutil
import subprocess
from pathlib import Path

from rich.console import Console
from rich.table import Table

from webapp.argocd import APPLICATION_FILE, parse_application_status, render_application
from webapp.backends.base import check_prerequisites, kubectl, pod_statuses
from webapp.chart import render_chart_values
from webapp.model.profile import DeploymentProfile
from webapp.model.validation import load_profile, render_dir
from webapp.utils.cmd import run_cmd

console = Console()


def render_gitops(profile: DeploymentProfile, output_dir: Path) -> dict[str, Path]:
    """Write the Application manifest plus the values it implies.

    The Application carries the same values inline, minus image.tag, which
    Argo CD keeps reading from values.yaml in git. The file here is for review.
    """
    return {
        "application": render_application(profile, output_dir),
        "values": render_chart_values(profile, output_dir),
    }


def generate_gitops(
    profile_name: str,
    output_dir: str | None = None,
    base_dir: Path | None = None,
) -> Path:
    """Generate the Argo CD Application for a profile.

    Returns:
        Path to the output directory
    """
    profile = load_profile(profile_name, base_dir)
    target = Path(output_dir) if output_dir else render_dir(profile_name, base_dir)
    target.mkdir(parents=True, exist_ok=True)

    generated_files = render_gitops(profile, target)

    table = Table(title="Argo CD Application Summary")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Profile", profile.name)
    table.add_row("Application", f"{profile.argocd_namespace}/{profile.release_name}")
    table.add_row("Repository", profile.repo_url or "-")
    table.add_row("Revision", profile.target_revision)
    table.add_row("Chart Path", profile.chart_path)
    table.add_row("Destination", profile.namespace)
    table.add_row("Prune / Self-heal", f"{profile.sync_prune} / {profile.sync_self_heal}")
    table.add_row("Output", str(target))
    console.print(table)

    console.print("\n[bold]Generated files:[/bold]")
    for name, path in generated_files.items():
        console.print(f"  - {name}: {path}")

    return target


def apply_gitops(profile_name: str, base_dir: Path | None = None) -> None:
    """Create or update the Application in the Argo CD namespace.

    Raises:
        ValidationError: If kubectl is missing or the apply fails
    """
    profile = load_profile(profile_name, base_dir)
    check_prerequisites("kubectl")

    output_dir = generate_gitops(profile_name, base_dir=base_dir)
    manifest = output_dir / APPLICATION_FILE

    run_cmd(
        kubectl(profile, "apply", "-f", str(manifest)),
        timeout=60,
        failure="Failed to apply Application",
        failure_code="KUBECTL_FAILED",
    )

    console.print(f"[green]Application {profile.release_name} registered with Argo CD[/green]")
    console.print(f"[dim]Argo CD syncs {profile.chart_path}@{profile.target_revision} automatically.[/dim]")


def destroy_gitops(
    profile_name: str,
    remove_files: bool = False,
    base_dir: Path | None = None,
) -> None:
    """Delete the Application; its finalizer removes the deployed resources."""
    profile = load_profile(profile_name, base_dir)
    check_prerequisites("kubectl")

    run_cmd(
        kubectl(
            profile,
            "delete",
            "application",
            profile.release_name,
            "--namespace",
            profile.argocd_namespace,
            "--ignore-not-found",
        ),
        timeout=120,
        failure="Failed to delete Application",
        failure_code="KUBECTL_FAILED",
    )
    console.print(f"[green]Application {profile.release_name} deleted[/green]")

    if remove_files:
        output_dir = render_dir(profile_name, base_dir)
        if output_dir.exists():
            shutil.rmtree(output_dir)
            console.print(f"[yellow]Removed generated files in {output_dir}[/yellow]")


def status_gitops(profile_name: str, base_dir: Path | None = None) -> list[dict]:
    """Get the Application sync/health state and its pods."""
    profile = load_profile(profile_name, base_dir)
    check_prerequisites("kubectl")

    services: list[dict] = []
    try:
        result = run_cmd(
            kubectl(
                profile,
                "get",
                "application",
                profile.release_name,
                "--namespace",
                profile.argocd_namespace,
                "-o",
                "json",
            ),
            check=False,
            timeout=30,
        )
        if result.returncode == 0 and result.stdout.strip():
            app_status = parse_application_status(json.loads(result.stdout))
            services.append(
                {
                    "name": f"application/{app_status['name']}",
                    "status": app_status["sync"],
                    "health": app_status["health"],
                    "revision": app_status["revision"],
                }
            )
    except subprocess.TimeoutExpired:
        pass

    services.extend(pod_statuses(profile))
    return services


# Module-level exports matching Backend protocol
render = render_gitops
generate = generate_gitops
apply = apply_gitops
destroy = destroy_gitops
status = status_gitops
