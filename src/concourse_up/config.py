"""Configuration management for concourse-up using Pydantic."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from concourse_up.core.exceptions import ConfigError
from concourse_up.core.output import OutputFormat
from concourse_up.core.logging import LogLevel


class AWSConfig(BaseModel):
    """AWS configuration."""

    profile: str | None = None
    region: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    session_token: str | None = None
    endpoint_url: str | None = None

    def get_profile(self) -> str | None:
        """Get AWS profile from config or environment."""
        return (
            os.environ.get("CONCOURSE_UP_AWS_PROFILE")
            or os.environ.get("AWS_PROFILE")
            or self.profile
        )

    def get_region(self) -> str | None:
        """Get AWS region from config or environment."""
        return (
            os.environ.get("CONCOURSE_UP_AWS_REGION")
            or os.environ.get("AWS_REGION")
            or os.environ.get("AWS_DEFAULT_REGION")
            or self.region
        )


class StoreConfig(BaseModel):
    """Where deployment configuration and director state are kept."""

    backend: str = "s3"
    local_dir: str | None = None

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in ("s3", "local"):
            raise ValueError("backend must be 's3' or 'local'")
        return v

    def get_local_dir(self) -> Path:
        """Get the local store directory from config or environment."""
        path = os.environ.get("CONCOURSE_UP_STORE_DIR") or self.local_dir
        if path:
            return Path(path).expanduser()
        return Path.home() / ".concourse-up" / "deployments"


class TerraformConfig(BaseModel):
    """Terraform CLI configuration."""

    binary: str = "terraform"
    source_dir: str | None = None

    def get_source_dir(self) -> str | None:
        """Get the terraform stack directory from config or environment."""
        return os.environ.get("CONCOURSE_UP_TERRAFORM_DIR") or self.source_dir


class BoshConfig(BaseModel):
    """BOSH CLI configuration."""

    binary: str = "bosh"
    manifest_dir: str | None = None

    def get_manifest_dir(self) -> str | None:
        """Get the manifest directory from config or environment."""
        return os.environ.get("CONCOURSE_UP_MANIFEST_DIR") or self.manifest_dir


class FlyConfig(BaseModel):
    """Fly CLI and Concourse API configuration."""

    binary: str = "fly"
    timeout: int = 30
    pipeline_name: str = "concourse-up-self-update"


class ProfileConfig(BaseModel):
    """Profile configuration grouping all service settings."""

    aws: AWSConfig = Field(default_factory=AWSConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    terraform: TerraformConfig = Field(default_factory=TerraformConfig)
    bosh: BoshConfig = Field(default_factory=BoshConfig)
    fly: FlyConfig = Field(default_factory=FlyConfig)
    ip_lookup_url: str = "https://ipv4.icanhazip.com"


class GlobalConfig(BaseModel):
    """Global settings."""

    output_format: OutputFormat = OutputFormat.TABLE
    color: str = "auto"  # auto, always, never
    verbosity: LogLevel = LogLevel.WARNING

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        if v not in ("auto", "always", "never"):
            raise ValueError("color must be 'auto', 'always', or 'never'")
        return v


class ConcourseUpConfig(BaseModel):
    """Main configuration model."""

    model_config = {"populate_by_name": True}

    version: str = "1"
    global_settings: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    profiles: dict[str, ProfileConfig] = Field(default_factory=lambda: {"default": ProfileConfig()})

    def get_profile(self, name: str | None = None) -> ProfileConfig:
        """Get a profile by name, defaulting to 'default'."""
        profile_name = name or "default"
        if profile_name not in self.profiles:
            raise ConfigError(f"Profile '{profile_name}' not found")
        return self.profiles[profile_name]


USER_CONFIG_PATH = Path("~/.concourse-up/config.yaml")
PROJECT_CONFIG_NAMES = (
    "concourse-up.yaml",
    "concourse-up.yml",
    ".concourse-up.yaml",
    ".concourse-up.yml",
)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge `override` into a copy of `base`, recursing into nested dicts."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Reads the layered YAML config files and validates the result.

    Later layers override earlier ones: the user file, then the nearest
    project file walking up from the working directory, then an explicit
    file passed with --config.
    """

    def __init__(self, cwd: Path | None = None):
        self._cwd = cwd

    def candidate_paths(self, config_file: str | Path | None = None) -> list[Path]:
        """Config files to read, lowest priority first."""
        paths = []
        user_path = USER_CONFIG_PATH.expanduser()
        if user_path.is_file():
            paths.append(user_path)

        project_path = self.find_project_config()
        if project_path is not None:
            paths.append(project_path)

        if config_file is not None:
            explicit = Path(config_file).expanduser()
            if not explicit.is_file():
                raise ConfigError(f"Config file not found: {config_file}")
            paths.append(explicit)
        return paths

    def find_project_config(self) -> Path | None:
        start = (self._cwd or Path.cwd()).resolve()
        for directory in (start, *start.parents):
            for name in PROJECT_CONFIG_NAMES:
                if (directory / name).is_file():
                    return directory / name
        return None

    def load(self, config_file: str | Path | None = None) -> ConcourseUpConfig:
        merged: dict[str, Any] = {}
        for path in self.candidate_paths(config_file):
            merged = deep_merge(merged, read_yaml(path))

        try:
            return ConcourseUpConfig.model_validate(merged)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def read_yaml(path: Path) -> dict[str, Any]:
    """Parse one config file. An empty file is an empty mapping."""
    try:
        with open(path) as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"Invalid configuration in {path}: expected a mapping")
    return content


def load_config(config_file: str | Path | None = None) -> ConcourseUpConfig:
    """Load concourse-up configuration.

    Args:
        config_file: Optional explicit config file path

    Returns:
        Loaded configuration
    """
    return ConfigLoader().load(config_file)


def get_default_config() -> ConcourseUpConfig:
    """Get default configuration without loading from files."""
    return ConcourseUpConfig()
