"""Direct Helm backend: install the chart from this machine."""

import json
import shutil
import subprocess
from pathlib import Path

from rich.console import Console
from rich.table import Table

from webapp.backends.base import check_prerequisites, helm, pod_statuses
from webapp.chart import VALUES_FILE, render_chart_values, resolve_chart_dir
from webapp.model.profile import DeploymentProfile
from webapp.model.validation import ValidationError, load_profile, render_dir
from webapp.utils.cmd import run_cmd

console = Console()


def render_helm(profile: DeploymentProfile, output_dir: Path) -> dict[str, Path]:
    """Write the values file for the profile.

    Returns:
        Mapping of artifact name to written path
    """
    return {"values": render_chart_values(profile, output_dir)}


def generate_helm(
    profile_name: str,
    output_dir: str | None = None,
    base_dir: Path | None = None,
) -> Path:
    """Generate Helm values for a profile.

    Args:
        profile_name: Name of the profile to generate
        output_dir: Optional output directory path
        base_dir: Base directory for .webapp folder

    Returns:
        Path to the output directory
    """
    profile = load_profile(profile_name, base_dir)
    target = Path(output_dir) if output_dir else render_dir(profile_name, base_dir)
    target.mkdir(parents=True, exist_ok=True)

    generated_files = render_helm(profile, target)
    _print_summary(profile, target, generated_files)
    return target


def _print_summary(
    profile: DeploymentProfile,
    output_dir: Path,
    generated_files: dict[str, Path],
) -> None:
    """Print a summary table of the generated configuration."""
    table = Table(title="Helm Deployment Summary")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Profile", profile.name)
    table.add_row("Backend", "Helm")
    table.add_row("Release", profile.release_name)
    table.add_row("Namespace", profile.namespace)
    table.add_row("Image", profile.image)
    table.add_row("Replicas", str(profile.replica_count))
    table.add_row("Ingress Host", profile.ingress_host if profile.ingress_enabled else "(disabled)")
    table.add_row("Output", str(output_dir))

    console.print(table)

    console.print("\n[bold]Generated files:[/bold]")
    for name, path in generated_files.items():
        console.print(f"  - {name}: {path}")


def apply_helm(profile_name: str, base_dir: Path | None = None) -> None:
    """Install or upgrade the release with the profile's values.

    Raises:
        ValidationError: If prerequisites are missing or helm fails
    """
    profile = load_profile(profile_name, base_dir)
    check_prerequisites("helm", "kubectl")
    chart_dir = resolve_chart_dir(profile, base_dir)

    # Always regenerate values so profile edits are applied
    output_dir = generate_helm(profile_name, base_dir=base_dir)
    values_path = output_dir / VALUES_FILE

    console.print(f"[cyan]Installing/upgrading {profile.release_name} in '{profile.namespace}'...[/cyan]")
    run_cmd(
        helm(
            profile,
            "upgrade",
            "--install",
            profile.release_name,
            str(chart_dir),
            "--namespace",
            profile.namespace,
            "--create-namespace",
            "--values",
            str(values_path),
            "--wait",
            "--timeout",
            "5m",
        ),
        timeout=330,
        failure=f"Failed to deploy {profile.release_name}",
        failure_code="HELM_FAILED",
    )

    console.print(f"[green]{profile.release_name} deployed successfully[/green]")
    if profile.ingress_enabled:
        console.print(f"[cyan]Access at: http://{profile.ingress_host}/[/cyan]")


def destroy_helm(
    profile_name: str,
    remove_files: bool = False,
    base_dir: Path | None = None,
) -> None:
    """Uninstall the release.

    Args:
        profile_name: Name of the profile to destroy
        remove_files: Whether to remove generated files
        base_dir: Base directory for .webapp folder
    """
    profile = load_profile(profile_name, base_dir)
    check_prerequisites("helm")

    console.print(f"[yellow]Removing {profile.release_name} from namespace '{profile.namespace}'...[/yellow]")
    try:
        result = run_cmd(
            helm(profile, "uninstall", profile.release_name, "--namespace", profile.namespace),
            check=False,
            timeout=120,
        )
    except subprocess.TimeoutExpired as e:
        raise ValidationError("HELM_FAILED", f"{profile.release_name} uninstall timed out") from e

    if result.returncode == 0:
        console.print(f"[green]Uninstalled {profile.release_name}[/green]")
    elif "not found" in result.stderr:
        console.print(f"[dim]Release {profile.release_name} was not installed[/dim]")
    else:
        raise ValidationError("HELM_FAILED", f"Failed to uninstall {profile.release_name}: {result.stderr.strip()}")

    if remove_files:
        output_dir = render_dir(profile_name, base_dir)
        if output_dir.exists():
            shutil.rmtree(output_dir)
            console.print(f"[yellow]Removed generated files in {output_dir}[/yellow]")


def status_helm(profile_name: str, base_dir: Path | None = None) -> list[dict]:
    """Get the Helm release and its pods.

    Returns:
        List of status dicts (release first, then pods)
    """
    profile = load_profile(profile_name, base_dir)
    check_prerequisites("helm", "kubectl")

    services: list[dict] = []
    try:
        result = run_cmd(
            helm(
                profile,
                "list",
                "--namespace",
                profile.namespace,
                "--filter",
                f"^{profile.release_name}$",
                "--output",
                "json",
            ),
            check=False,
            timeout=30,
        )
        if result.returncode == 0 and result.stdout.strip():
            for release in json.loads(result.stdout):
                services.append(
                    {
                        "name": release.get("name", "unknown"),
                        "status": release.get("status", "unknown"),
                        "revision": release.get("revision", "0"),
                        "chart": release.get("chart", "unknown"),
                    }
                )
    except subprocess.TimeoutExpired:
        pass

    services.extend(pod_statuses(profile))
    return services


# Module-level exports matching Backend protocol
render = render_helm
generate = generate_helm
apply = apply_helm
destroy = destroy_helm
status = status_helm
