"""Profile persistence and the error type shared by every command."""

import json
from pathlib import Path

import pydantic

from webapp.model.profile import DeploymentProfile

STATE_DIR = ".webapp"


class ValidationError(Exception):
    """Validation error with error code."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


def profiles_dir(base_dir: Path | None = None) -> Path:
    """Directory holding profile JSON files."""
    if base_dir is None:
        base_dir = Path.cwd()
    return base_dir / STATE_DIR / "profiles"


def render_dir(profile_name: str, base_dir: Path | None = None) -> Path:
    """Default output directory for rendered artifacts of a profile."""
    if base_dir is None:
        base_dir = Path.cwd()
    return base_dir / STATE_DIR / "render" / profile_name


def validate_profile_exists(profile_name: str, base_dir: Path | None = None) -> Path:
    """Validate that a profile exists and return its path."""
    profile_path = profiles_dir(base_dir) / f"{profile_name}.json"
    if not profile_path.exists():
        raise ValidationError(
            "PROFILE_NOT_FOUND",
            f"Profile '{profile_name}' not found at {profile_path}",
        )
    return profile_path


def load_profile(profile_name: str, base_dir: Path | None = None) -> DeploymentProfile:
    """Load a profile from disk."""
    profile_path = validate_profile_exists(profile_name, base_dir)
    try:
        with profile_path.open() as f:
            data = json.load(f)
        return DeploymentProfile(**data)
    except (json.JSONDecodeError, TypeError, pydantic.ValidationError) as e:
        raise ValidationError(
            "PROFILE_INVALID",
            f"Profile '{profile_name}' is invalid: {e}",
        ) from e


def save_profile(profile: DeploymentProfile, base_dir: Path | None = None) -> Path:
    """Save a profile to disk."""
    target_dir = profiles_dir(base_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    profile_path = target_dir / f"{profile.name}.json"
    with profile_path.open("w") as f:
        json.dump(profile.model_dump(mode="json"), f, indent=2)
    return profile_path
