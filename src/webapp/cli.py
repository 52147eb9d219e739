"""CLI entry point for the web app and its deployment tooling."""

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Optional

import pydantic
import typer
from rich.console import Console
from rich.live import Live
from rich.prompt import Confirm
from rich.table import Table

from webapp.model.validation import ValidationError
from webapp.tagging import DEFAULT_COMMIT_MESSAGE, DEFAULT_VALUES_PATH

app = typer.Typer(
    name="webapp",
    help="Static web app - serve it, build its image and deploy it with Helm or Argo CD",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.callback()
def main_callback(
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Hide docker/git/kubectl/helm commands being executed"),
    ] = False,
) -> None:
    """Static web app deployment tool."""
    from webapp.utils.cmd import set_show_commands

    set_show_commands(not quiet)


# Subcommand groups
profile_app = typer.Typer(name="profile", help="Manage profiles")
image_app = typer.Typer(name="image", help="Build and publish the container image")

app.add_typer(profile_app)
app.add_typer(image_app)

console = Console()


def _handle_error(error: ValidationError) -> None:
    """Handle validation errors with rich formatting."""
    console.print(f"[red]Error ({error.code}):[/red] {error.message}")
    raise typer.Exit(1)


def _get_available_profiles() -> list[str]:
    """Get list of available profile names for autocomplete."""
    from webapp.model.validation import profiles_dir

    directory = profiles_dir()
    if not directory.exists():
        return []
    return [f.stem for f in directory.glob("*.json")]


def _complete_profile(incomplete: str) -> list[str]:
    """Shell completion for profile names."""
    return [p for p in _get_available_profiles() if p.startswith(incomplete)]


ProfileArg = Annotated[
    str,
    typer.Argument(
        help="Profile name",
        metavar="PROFILE_NAME",
        autocompletion=_complete_profile,
    ),
]


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address [env: WEBAPP_HOST]")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Listen port [env: WEBAPP_PORT]")] = None,
    static_dir: Annotated[
        Optional[Path],
        typer.Option("--static-dir", help="Directory holding the page [env: WEBAPP_STATIC_DIR]"),
    ] = None,
    index_file: Annotated[
        Optional[str],
        typer.Option("--index-file", help="File served on / [env: WEBAPP_INDEX_FILE]"),
    ] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Enable Flask debug mode")] = False,
) -> None:
    """Serve the static page over HTTP (default 0.0.0.0:8080).

    [bold]Example:[/bold]
        webapp serve
        webapp serve --port 9000
    """
    from webapp.server import run_server
    from webapp.settings import ServerSettings

    try:
        settings = ServerSettings.from_env(
            host=host,
            port=port,
            static_dir=static_dir,
            index_file=index_file,
        )
    except pydantic.ValidationError as e:
        console.print(f"[red]Error (SETTINGS_INVALID):[/red] {e}")
        raise typer.Exit(1)

    run_server(settings, debug=debug)


@app.command()
def init(
    name: Annotated[str, typer.Argument(help="Profile name", metavar="PROFILE_NAME")],
    backend: Annotated[str, typer.Option("--backend", "-b", help="helm or argocd")] = "argocd",
    image_repository: Annotated[
        str,
        typer.Option("--image-repository", help="Image repository, e.g. user/web-app"),
    ] = "webapp/web-app",
    image_tag: Annotated[str, typer.Option("--image-tag", help="Image tag")] = "latest",
    host: Annotated[str, typer.Option("--host", help="Ingress host")] = "web-app.local",
    ingress_class: Annotated[str, typer.Option("--ingress-class", help="Ingress class name")] = "alb",
    replicas: Annotated[int, typer.Option("--replicas", help="Replica count")] = 1,
    namespace: Annotated[str, typer.Option("--namespace", "-n", help="Target namespace")] = "default",
    repo_url: Annotated[
        Optional[str],
        typer.Option("--repo-url", help="Git repository Argo CD syncs from"),
    ] = None,
    target_revision: Annotated[str, typer.Option("--revision", help="Git revision to track")] = "HEAD",
    kube_context: Annotated[Optional[str], typer.Option("--kube-context", help="kubectl context")] = None,
    force: Annotated[bool, typer.Option("--force", help="Overwrite an existing profile")] = False,
) -> None:
    """Create a deployment profile.

    [bold]Example:[/bold]
        webapp init prod --repo-url https://github.com/me/web-app --host app.example.com
        webapp init dev --backend helm --host dev.example.com
    """
    from webapp.model.profile import DeploymentProfile
    from webapp.profile_ops import create_profile

    try:
        profile = DeploymentProfile(
            name=name,
            backend=backend,
            image_repository=image_repository,
            image_tag=image_tag,
            ingress_host=host,
            ingress_class_name=ingress_class,
            replica_count=replicas,
            namespace=namespace,
            repo_url=repo_url,
            target_revision=target_revision,
            kube_context=kube_context,
        )
    except pydantic.ValidationError as e:
        console.print(f"[red]Error (PROFILE_INVALID):[/red] {e}")
        raise typer.Exit(1)

    try:
        path = create_profile(profile, overwrite=force)
    except ValidationError as e:
        _handle_error(e)

    console.print(f"[green]Profile '{name}' saved to {path}[/green]")


@app.command(name="list")
def list_profiles_cmd() -> None:
    """List all deployment profiles."""
    from webapp.profile_ops import get_profile_summary, list_profiles

    profiles = list_profiles()

    if not profiles:
        console.print("[yellow]No profiles found.[/yellow]")
        console.print("[dim]Use 'webapp init <name>' to create one.[/dim]")
        raise typer.Exit(0)

    table = Table(title="Profiles")
    table.add_column("Name", style="cyan")
    table.add_column("Backend", style="green")
    table.add_column("Host", style="white")
    table.add_column("Image", style="dim")

    for profile in profiles:
        summary = get_profile_summary(profile)
        table.add_row(summary["name"], summary["backend"], summary["host"], summary["image"])

    console.print(table)


@app.command()
def show(profile: ProfileArg) -> None:
    """Show details of a deployment profile.

    [bold]Example:[/bold]
        webapp show prod
    """
    from webapp.model.validation import load_profile

    try:
        profile_data = load_profile(profile)
    except ValidationError as e:
        _handle_error(e)

    table = Table(title=f"Profile: {profile}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Name", profile_data.name)
    table.add_row("Backend", profile_data.backend.value)
    table.add_row("Image", profile_data.image)
    table.add_row("Pull Policy", profile_data.image_pull_policy.value)
    table.add_row("Replicas", str(profile_data.replica_count))
    table.add_row("Service", f"{profile_data.service_type.value}:{profile_data.service_port}")
    table.add_row("Ingress", "enabled" if profile_data.ingress_enabled else "disabled")
    table.add_row("Ingress Host", profile_data.ingress_host)
    table.add_row("Ingress Class", profile_data.ingress_class_name)
    table.add_row("Namespace", profile_data.namespace)
    table.add_row("Release", profile_data.release_name)
    table.add_row("Chart", profile_data.chart_path)
    table.add_row("Kube Context", profile_data.kube_context or "(current)")

    if profile_data.backend.value == "argocd":
        table.add_row("Repository", profile_data.repo_url or "-")
        table.add_row("Revision", profile_data.target_revision)
        table.add_row("Argo CD Namespace", profile_data.argocd_namespace)
        table.add_row("Prune", str(profile_data.sync_prune))
        table.add_row("Self-heal", str(profile_data.sync_self_heal))

    console.print(table)


@app.command()
def render(
    profile: ProfileArg,
    output: Annotated[
        Optional[str],
        typer.Option("--output", "-o", help="Output directory"),
    ] = None,
) -> None:
    """Generate deployment artifacts without applying.

    [bold]Example:[/bold]
        webapp render prod
        webapp render prod -o ./output
    """
    try:
        from webapp.backends import get_backend
        from webapp.model.validation import load_profile

        profile_data = load_profile(profile)
        backend = get_backend(profile_data.backend)
        backend.generate(profile, output)
    except ValidationError as e:
        _handle_error(e)


@app.command()
def deploy(profile: ProfileArg) -> None:
    """Deploy the profile (helm upgrade, or register the Argo CD Application).

    [bold]Example:[/bold]
        webapp deploy prod
    """
    try:
        from webapp.backends import get_backend
        from webapp.model.validation import load_profile

        profile_data = load_profile(profile)
        backend = get_backend(profile_data.backend)
        backend.apply(profile)
    except ValidationError as e:
        _handle_error(e)


@app.command()
def destroy(
    profile: ProfileArg,
    force: Annotated[
        bool,
        typer.Option("--force", help="Skip confirmation prompt"),
    ] = False,
    remove_files: Annotated[
        bool,
        typer.Option("--remove-files", "-r", help="Remove generated files"),
    ] = False,
) -> None:
    """Remove a deployment.

    [bold]Example:[/bold]
        webapp destroy dev
    """
    try:
        from webapp.backends import get_backend
        from webapp.model.validation import load_profile

        profile_data = load_profile(profile)

        if not force:
            console.print(f"[yellow]Warning: This will remove the deployment for profile '{profile}'.[/yellow]")
            if not Confirm.ask("[cyan]Are you sure?[/cyan]", default=False):
                console.print("[yellow]Cancelled.[/yellow]")
                raise typer.Exit(0)

        backend = get_backend(profile_data.backend)
        backend.destroy(profile, remove_files=remove_files)
    except ValidationError as e:
        _handle_error(e)


_AGE_UNITS = (("d", 86400), ("h", 3600), ("m", 60), ("s", 1))


def _format_age(timestamp_str: str | None, now: datetime | None = None) -> str:
    """Age of a Kubernetes timestamp in at most two units, as kubectl shows it ('2d3h', '5m', '30s')."""
    if not timestamp_str:
        return "-"
    try:
        created = datetime.fromisoformat(timestamp_str.replace("Z", "+00:00"))
        remaining = int(((now or datetime.now(timezone.utc)) - created).total_seconds())
    except (ValueError, TypeError):
        return "-"
    if remaining < 0:
        return "-"

    parts: list[tuple[int, str]] = []
    for suffix, size in _AGE_UNITS:
        count, remaining = divmod(remaining, size)
        if count or parts:
            parts.append((count, suffix))
        if len(parts) == 2:
            break
    if not parts:
        return "0s"
    # "2d0h" reads as "2d"
    return "".join(f"{count}{suffix}" for count, suffix in parts if count)


def _color_status(status_str: str) -> str:
    lowered = status_str.lower()
    if lowered in ("deployed", "running", "synced", "healthy"):
        return f"[green]{status_str}[/green]"
    if lowered in ("failed", "outofsync", "degraded", "missing"):
        return f"[red]{status_str}[/red]"
    if lowered.startswith("pending") or lowered == "progressing":
        return f"[yellow]{status_str}[/yellow]"
    return status_str


def _build_status_display(profile_name: str, profile_data, backend):
    """Build the status display for a profile."""
    from rich.console import Group
    from rich.text import Text

    header_lines = [
        Text.from_markup(f"[bold]Profile:[/bold] {profile_name} ({profile_data.backend.value})"),
        Text.from_markup(f"[bold]Host:[/bold] {profile_data.ingress_host}"),
        Text.from_markup(f"[bold]Namespace:[/bold] {profile_data.namespace}"),
    ]

    services = backend.status(profile_name)
    if not services:
        header_lines.append(Text())
        header_lines.append(Text.from_markup("[yellow]Nothing deployed.[/yellow]"))
        return Group(*header_lines)

    table = Table(title="Resources")
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", style="dim")
    table.add_column("Age", style="dim")

    for svc in services:
        status_str = str(svc.get("status", "unknown"))
        detail = svc.get("detailed_status") or svc.get("health") or ""
        if svc.get("revision") not in (None, "", "-"):
            detail = f"{detail} rev {svc['revision']}".strip()
        table.add_row(
            svc.get("name", "unknown"),
            _color_status(status_str),
            detail,
            _format_age(svc.get("creation_timestamp")),
        )

    header_lines.append(Text())
    return Group(*header_lines, table)


@app.command()
def status(
    profile: ProfileArg,
    follow: Annotated[
        bool,
        typer.Option("--follow", "-f", help="Continuously refresh status"),
    ] = False,
    interval: Annotated[
        int,
        typer.Option("--interval", "-i", help="Refresh interval in seconds"),
    ] = 5,
) -> None:
    """Show the state of a deployment.

    [bold]Example:[/bold]
        webapp status prod
        webapp status prod --follow
    """
    try:
        from webapp.backends import get_backend
        from webapp.model.validation import load_profile

        profile_data = load_profile(profile)
        backend = get_backend(profile_data.backend)

        if follow:
            try:
                with Live(console=console, refresh_per_second=1) as live:
                    while True:
                        live.update(_build_status_display(profile, profile_data, backend))
                        time.sleep(interval)
            except KeyboardInterrupt:
                console.print("\n[yellow]Stopped monitoring.[/yellow]")
        else:
            console.print(_build_status_display(profile, profile_data, backend))
    except ValidationError as e:
        _handle_error(e)


@app.command(name="bump-tag")
def bump_tag(
    tag: Annotated[
        Optional[str],
        typer.Option("--tag", "-t", help="New image tag [default: $GITHUB_RUN_ID]"),
    ] = None,
    values: Annotated[
        Path,
        typer.Option("--values", help="Chart values file to rewrite"),
    ] = DEFAULT_VALUES_PATH,
    commit: Annotated[bool, typer.Option("--commit/--no-commit", help="Commit the change")] = False,
    push: Annotated[bool, typer.Option("--push/--no-push", help="Push after committing")] = False,
    message: Annotated[
        str,
        typer.Option("--message", "-m", help="Commit message"),
    ] = DEFAULT_COMMIT_MESSAGE,
    author_name: Annotated[
        Optional[str],
        typer.Option("--author-name", envvar="GIT_AUTHOR_NAME", help="Commit author name"),
    ] = None,
    author_email: Annotated[
        Optional[str],
        typer.Option("--author-email", envvar="GIT_AUTHOR_EMAIL", help="Commit author email"),
    ] = None,
) -> None:
    """Rewrite image.tag in the chart values file (CI step after image push).

    [bold]Example:[/bold]
        webapp bump-tag --tag 9876543210
        webapp bump-tag --commit --push   # in GitHub Actions
    """
    from webapp.tagging import commit_and_push, resolve_tag, update_image_tag

    try:
        new_tag = resolve_tag(tag)
        update = update_image_tag(values, new_tag)
        if not update.changed:
            console.print(f"[dim]{values} already at tag {new_tag}[/dim]")
        else:
            console.print(f"[green]{values}: image.tag {update.old_tag} -> {new_tag}[/green]")

        if commit:
            committed = commit_and_push(
                [values],
                message=message,
                author_name=author_name,
                author_email=author_email,
                push=push,
            )
            if committed:
                console.print("[green]Committed" + (" and pushed" if push else "") + "[/green]")
            else:
                console.print("[dim]Nothing to commit[/dim]")
    except ValidationError as e:
        _handle_error(e)


@app.command()
def verify(
    profile: ProfileArg,
    tag: Annotated[
        Optional[str],
        typer.Option("--tag", "-t", help="Expected image tag [default: $GITHUB_RUN_ID, then profile]"),
    ] = None,
    values: Annotated[
        Path,
        typer.Option("--values", help="Chart values file that should carry the tag"),
    ] = DEFAULT_VALUES_PATH,
    url: Annotated[
        Optional[str],
        typer.Option("--url", help="URL to probe [default: http://<ingress host>/]"),
    ] = None,
    expect_text: Annotated[
        Optional[str],
        typer.Option("--expect-text", help="Text the page must contain"),
    ] = None,
    skip_image: Annotated[bool, typer.Option("--skip-image", help="Do not query DockerHub")] = False,
    skip_endpoint: Annotated[bool, typer.Option("--skip-endpoint", help="Do not probe the URL")] = False,
) -> None:
    """Check that the pipeline's end state matches the expected tag.

    [bold]Example:[/bold]
        webapp verify prod --tag 9876543210
    """
    from webapp.model.validation import load_profile
    from webapp.tagging import resolve_tag
    from webapp.verify import check_endpoint, check_image_published, check_values_tag

    try:
        profile_data = load_profile(profile)
        try:
            expected = resolve_tag(tag)
        except ValidationError as e:
            if e.code != "TAG_REQUIRED":
                raise
            expected = profile_data.image_tag
    except ValidationError as e:
        _handle_error(e)

    results = [check_values_tag(values, expected)]
    if not skip_image:
        results.append(check_image_published(profile_data.image_repository, expected))
    if not skip_endpoint:
        results.append(check_endpoint(url or f"http://{profile_data.ingress_host}/", expect_text))

    table = Table(title=f"Verify: {profile} @ {expected}")
    table.add_column("Check", style="cyan")
    table.add_column("Result")
    table.add_column("Detail", style="dim")
    for result in results:
        table.add_row(result.name, "[green]ok[/green]" if result.ok else "[red]failed[/red]", result.detail)
    console.print(table)

    if not all(result.ok for result in results):
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from webapp import __version__

    console.print(f"webapp version {__version__}")


@profile_app.command("delete")
def profile_delete(
    profile: ProfileArg,
    force: Annotated[bool, typer.Option("--force", help="Skip confirmation prompt")] = False,
) -> None:
    """Delete a profile."""
    from webapp.profile_ops import delete_profile

    if not force and not Confirm.ask(f"[cyan]Delete profile '{profile}'?[/cyan]", default=False):
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(0)

    try:
        delete_profile(profile)
    except ValidationError as e:
        _handle_error(e)
    console.print(f"[green]Profile '{profile}' deleted[/green]")


@profile_app.command("copy")
def profile_copy(
    src: Annotated[str, typer.Argument(help="Source profile", autocompletion=_complete_profile)],
    dst: Annotated[str, typer.Argument(help="New profile name")],
) -> None:
    """Copy a profile to a new name."""
    from webapp.profile_ops import copy_profile

    try:
        path = copy_profile(src, dst)
    except ValidationError as e:
        _handle_error(e)
    except pydantic.ValidationError as e:
        console.print(f"[red]Error (PROFILE_INVALID):[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]Profile '{src}' copied to {path}[/green]")


RepositoryOpt = Annotated[
    str,
    typer.Option("--repository", "-r", envvar="WEBAPP_IMAGE_REPOSITORY", help="Image repository, e.g. user/web-app"),
]
TagOpt = Annotated[
    Optional[str],
    typer.Option("--tag", "-t", help="Image tag [default: $GITHUB_RUN_ID]"),
]


@image_app.command("build")
def image_build(
    repository: RepositoryOpt,
    tag: TagOpt = None,
    context: Annotated[Path, typer.Option("--context", help="Build context")] = Path("."),
    file: Annotated[Optional[Path], typer.Option("--file", "-f", help="Dockerfile path")] = None,
    push: Annotated[bool, typer.Option("--push", help="Push after building")] = False,
) -> None:
    """Build the server image."""
    from webapp.registry import build_image, push_image
    from webapp.tagging import resolve_tag

    try:
        resolved = resolve_tag(tag)
        ref = build_image(repository, resolved, context=context, dockerfile=file)
        console.print(f"[green]Built {ref}[/green]")
        if push:
            push_image(repository, resolved)
            console.print(f"[green]Pushed {ref}[/green]")
    except ValidationError as e:
        _handle_error(e)


@image_app.command("push")
def image_push(repository: RepositoryOpt, tag: TagOpt = None) -> None:
    """Push a built image to the registry."""
    from webapp.registry import push_image
    from webapp.tagging import resolve_tag

    try:
        ref = push_image(repository, resolve_tag(tag))
    except ValidationError as e:
        _handle_error(e)
    console.print(f"[green]Pushed {ref}[/green]")


@image_app.command("info")
def image_info(repository: RepositoryOpt, tag: TagOpt = None) -> None:
    """Show DockerHub metadata for an image tag."""
    from webapp.registry import get_dockerhub_tag_info
    from webapp.tagging import resolve_tag

    try:
        resolved = resolve_tag(tag)
        info = get_dockerhub_tag_info(repository, resolved)
    except ValidationError as e:
        _handle_error(e)

    if info is None:
        console.print(f"[yellow]{repository}:{resolved} not found on DockerHub[/yellow]")
        raise typer.Exit(1)

    table = Table(title=f"{repository}:{resolved}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Digest", info.get("digest") or "-")
    table.add_row("Last Pushed", info.get("last_pushed") or "-")
    console.print(table)
