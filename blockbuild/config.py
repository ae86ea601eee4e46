"""Configuration settings for blockbuild.

Two sources feed a run:
- Settings: environment variables (BLOCKBUILD_ prefix, plus the CI-provided
  GPG_SECRET_KEY and GITHUB_JOB_URL) parsed with pydantic-settings.
- BuildConfig: the static build configuration file (config.json or YAML)
  listing modules, the remote host and the signing identities.
"""

import json
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from blockbuild.errors import ConfigError
from blockbuild.types import ModuleDescriptor

# Identity names used for the dual signatures
MAIN_IDENTITY = "main"
TEMP_IDENTITY = "temp"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the BLOCKBUILD_
    prefix. CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="BLOCKBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Paths (relative paths resolve against work_dir)
    work_dir: Path = Field(
        default_factory=Path.cwd,
        description="Orchestrator repository root",
    )
    config_file: Path = Field(
        default=Path("config.json"),
        description="Build configuration file (JSON or YAML)",
    )
    mods_dir: Path = Field(
        default=Path("mods"),
        description="Directory containing one checkout per module",
    )
    out_dir: Path = Field(
        default=Path("out"),
        description="Staging area published after the run",
    )
    tmp_dir: Path = Field(
        default=Path("tmp"),
        description="Scratch directory for downloads and key material",
    )
    gnupg_home: Path | None = Field(
        default=None,
        description="GnuPG home directory (uses the gpg default if not set)",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Timeouts and retries
    build_timeout: int | None = Field(
        default=None,
        ge=1,
        description="Timeout for external commands in seconds (None = no timeout)",
    )
    fetch_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for remote state requests in seconds",
    )
    fetch_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries for remote state requests on transport errors",
    )

    # Directive overrides used when the commit message has no marker
    directive_skip: str | None = None
    directive_force: str | None = None
    directive_build: str | None = None

    # CI-provided values
    gpg_secret_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("BLOCKBUILD_GPG_SECRET_KEY", "GPG_SECRET_KEY"),
        description="Base64-encoded primary signing key",
    )
    job_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BLOCKBUILD_JOB_URL", "GITHUB_JOB_URL"),
        description="CI log URL recorded in info.txt",
    )

    def resolve(self, path: Path) -> Path:
        """Resolve a configured path against the work directory."""
        if path.is_absolute():
            return path
        return (self.work_dir / path).resolve()

    def directive_overrides(self) -> dict[str, str | None]:
        """Return the environment directive overrides keyed by directive name."""
        return {
            "skip": self.directive_skip,
            "force": self.directive_force,
            "build": self.directive_build,
        }


class ModuleEntry(BaseModel):
    """Explicit module entry with a Gradle project path."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, description="Module name")
    project: str = Field(default=".", description="Gradle project path")


class BuildConfig(BaseModel):
    """Schema for the build configuration file.

    Attributes:
        host: Base URL the previous run was published under.
        builds: Modules, each a bare name or a {name, project} entry.
        gpg: Signing identities, name -> email. Must contain 'main'
            and 'temp' when provided.
    """

    model_config = ConfigDict(extra="forbid")

    host: str = Field(description="Remote host base URL")
    builds: list[str | ModuleEntry] = Field(default_factory=list)
    gpg: dict[str, str] = Field(default_factory=dict)

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Ensure the host is an http(s) URL ending with a slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"host must be an http(s) URL, got '{v}'")
        return v if v.endswith("/") else f"{v}/"

    @field_validator("builds")
    @classmethod
    def validate_unique_names(
        cls, v: list[str | ModuleEntry]
    ) -> list[str | ModuleEntry]:
        """Reject duplicate module names."""
        names = [b if isinstance(b, str) else b.name for b in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate module names: {', '.join(duplicates)}")
        return v

    @field_validator("gpg")
    @classmethod
    def validate_identities(cls, v: dict[str, str]) -> dict[str, str]:
        """Require both signing identities when any are configured."""
        if v:
            missing = [k for k in (MAIN_IDENTITY, TEMP_IDENTITY) if k not in v]
            if missing:
                raise ValueError(f"gpg is missing identities: {', '.join(missing)}")
        return v

    def modules(self) -> list[ModuleDescriptor]:
        """Return module descriptors in configured order."""
        return [
            ModuleDescriptor(name=b)
            if isinstance(b, str)
            else ModuleDescriptor(name=b.name, project=b.project)
            for b in self.builds
        ]


def _load_mapping(path: Path) -> dict[str, Any]:
    suffix = path.suffix.lower()
    with open(path, encoding="utf-8") as f:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping, got {type(data).__name__}")
    return data


def load_build_config(path: Path) -> BuildConfig:
    """Load and validate the build configuration file.

    File format is determined by extension (.yaml, .yml for YAML,
    anything else is parsed as JSON).

    Args:
        path: Path to the configuration file.

    Returns:
        Validated BuildConfig instance.

    Raises:
        ConfigError: If the file is missing, unparsable or invalid.
    """
    try:
        data = _load_mapping(path)
        return BuildConfig.model_validate(data)
    except FileNotFoundError as e:
        raise ConfigError(f"Build configuration not found: {path}") from e
    except (json.JSONDecodeError, yaml.YAMLError, ValueError) as e:
        # ValidationError is a ValueError subclass
        detail = e.errors() if isinstance(e, ValidationError) else e
        raise ConfigError(f"Invalid build configuration {path}: {detail}") from e


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings (secrets masked).
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = [
    "MAIN_IDENTITY",
    "TEMP_IDENTITY",
    "BuildConfig",
    "ModuleEntry",
    "Settings",
    "get_settings",
    "load_build_config",
    "print_settings_json",
]
