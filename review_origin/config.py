"""Origin configuration."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Settings are loaded in this priority order (highest to lowest):
    1. Environment variables
    2. .env file (for local development)
    3. Default values

    Command line flags override the resulting values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Gerrit
    # =========================================================================
    # HTTP credentials from the Gerrit settings page. When unset, requests
    # are anonymous and only public changes can be read.
    gerrit_username: str | None = Field(
        default=None,
        description="Gerrit account used for REST calls",
    )
    gerrit_http_password: str | None = Field(
        default=None,
        description="Gerrit HTTP password for gerrit_username",
    )
    gerrit_timeout: float = Field(
        default=30.0,
        description="Gerrit REST request timeout in seconds",
    )

    # =========================================================================
    # Origin
    # =========================================================================
    origin_branch: str | None = Field(
        default=None,
        description="Only migrate changes targeting this branch (all branches when unset)",
    )
    describe_version: bool = Field(
        default=False,
        description="Decorate resolved revisions with `git describe` output",
    )
    first_parent: bool = Field(
        default=True,
        description="Follow only first parents when walking history",
    )
    baseline_label: str = Field(
        default="GitOrigin-RevId",
        description="Label marking commits that were produced by a migration",
    )

    # =========================================================================
    # Local repository
    # =========================================================================
    repo_cache_dir: Path = Field(
        default=Path(".review-origin/repo"),
        description="Bare repository used to fetch origin revisions",
    )


settings = Settings()
