"""Profile management operations."""

from pathlib import Path

from webapp.model.profile import DeploymentProfile
from webapp.model.validation import (
    ValidationError,
    load_profile,
    profiles_dir,
    save_profile,
)


def list_profiles(base_dir: Path | None = None) -> list[DeploymentProfile]:
    """
    List all profiles in the profiles directory.

    Args:
        base_dir: Base directory for .webapp folder. Defaults to cwd.

    Returns:
        List of DeploymentProfile objects, sorted by name. Files that fail
        to load are skipped.
    """
    directory = profiles_dir(base_dir)
    if not directory.exists():
        return []

    profiles = []
    for profile_file in directory.glob("*.json"):
        try:
            profiles.append(load_profile(profile_file.stem, base_dir))
        except ValidationError:
            continue

    return sorted(profiles, key=lambda p: p.name)


def create_profile(profile: DeploymentProfile, base_dir: Path | None = None, overwrite: bool = False) -> Path:
    """
    Persist a new profile.

    Raises:
        ValidationError: If a profile with that name exists and overwrite is False.
    """
    profile_path = profiles_dir(base_dir) / f"{profile.name}.json"
    if profile_path.exists() and not overwrite:
        raise ValidationError(
            "PROFILE_EXISTS",
            f"Profile '{profile.name}' already exists",
        )
    return save_profile(profile, base_dir)


def delete_profile(name: str, base_dir: Path | None = None) -> None:
    """
    Delete a profile by name.

    Raises:
        ValidationError: If profile doesn't exist (PROFILE_NOT_FOUND).
    """
    profile_path = profiles_dir(base_dir) / f"{name}.json"
    if not profile_path.exists():
        raise ValidationError(
            "PROFILE_NOT_FOUND",
            f"Profile '{name}' not found",
        )
    profile_path.unlink()


def copy_profile(src: str, dst: str, base_dir: Path | None = None) -> Path:
    """
    Copy a profile to a new name.

    Returns:
        Path to the new profile file.

    Raises:
        ValidationError: If source doesn't exist (PROFILE_NOT_FOUND)
                        or destination already exists (PROFILE_EXISTS).
    """
    source_profile = load_profile(src, base_dir)
    new_profile = source_profile.model_copy(update={"name": dst})
    # model_copy skips validation; round-trip to reject bad names
    new_profile = DeploymentProfile(**new_profile.model_dump())
    return create_profile(new_profile, base_dir)


def get_profile_summary(profile: DeploymentProfile) -> dict[str, str]:
    """
    Get summary information for display in list view.

    Returns:
        Dict with keys: name, backend, host, image.
    """
    return {
        "name": profile.name,
        "backend": profile.backend.value,
        "host": profile.ingress_host if profile.ingress_enabled else "-",
        "image": profile.image,
    }
