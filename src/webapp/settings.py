"""HTTP server settings."""

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

PACKAGE_STATIC_DIR = Path(__file__).parent / "static"

ENV_PREFIX = "WEBAPP_"


class ServerSettings(BaseModel):
    """Where the server listens and which file it serves on ``/``."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)
    static_dir: Path = Field(default=PACKAGE_STATIC_DIR)
    index_file: str = Field(default="index.html", min_length=1)

    @field_validator("index_file")
    @classmethod
    def validate_index_file(cls, v: str) -> str:
        """The index must be a bare file name inside static_dir."""
        if "/" in v or "\\" in v or v in (".", ".."):
            msg = "index_file must be a file name, not a path"
            raise ValueError(msg)
        return v

    @property
    def index_path(self) -> Path:
        return self.static_dir / self.index_file

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> "ServerSettings":
        """Build settings from WEBAPP_* environment variables.

        Keyword overrides that are not None win over the environment.
        """
        if environ is None:
            environ = dict(os.environ)

        values: dict = {}
        for field in ("host", "port", "static_dir", "index_file"):
            env_value = environ.get(f"{ENV_PREFIX}{field.upper()}")
            if env_value:
                values[field] = env_value

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
