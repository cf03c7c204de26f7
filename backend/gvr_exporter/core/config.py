"""
Configuration management: process settings (Pydantic Settings), the
GVR/stub configuration file (YAML) and kubeconfig resolution
"""
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gvr_exporter.core.errors import ConfigError
from gvr_exporter.core.models import PolicyModule, ResourceSelector

DEFAULT_CONFIG_PATH = "./examples/config.yaml"


class Settings(BaseSettings):
    """Process settings, overridable by CLI flags"""

    app_name: str = "gvr-exporter"
    host: str = Field(default="0.0.0.0", description="Listen address")
    port: int = Field(default=8080, ge=1, le=65535, description="Listen port")
    config_path: str = Field(
        default=DEFAULT_CONFIG_PATH,
        description="Path to the GVR/stub configuration file"
    )
    kubeconfig: Optional[str] = Field(
        default=None,
        description="Path to a kubeconfig; only required out of cluster"
    )
    scrape_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Upper bound for one fetch-evaluate cycle"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="json",
        description="Log format: 'json' for structured logging, 'text' for plain text"
    )
    log_sensitive_data: bool = Field(
        default=False,
        description="Disable masking of tokens and secrets in log output - NOT RECOMMENDED"
    )

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()

    model_config = SettingsConfigDict(
        env_prefix="GVR_EXPORTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


class ExporterConfig(BaseModel):
    """Contents of the configuration file"""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    group_version_resource: ResourceSelector = Field(..., alias="groupVersionResource")
    stub: str = Field(..., description="Stub script evaluated on every scrape")

    @field_validator("stub")
    @classmethod
    def stub_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("stub must not be empty")
        return v

    @property
    def selector(self) -> ResourceSelector:
        return self.group_version_resource

    @property
    def policy(self) -> PolicyModule:
        return PolicyModule(source=self.stub)


def load_exporter_config(path: str) -> ExporterConfig:
    """
    Read and validate the configuration file

    Raises:
        ConfigError: file missing or unreadable, YAML malformed, or fields invalid
    """
    config_path = Path(path).expanduser().resolve()
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(
            f"failed to read configuration file {config_path}: {e}",
            metadata={"config_path": str(config_path)},
        ) from e

    try:
        document = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"failed to parse configuration file {config_path}: {e}",
            metadata={"config_path": str(config_path)},
        ) from e

    if not isinstance(document, dict):
        raise ConfigError(
            f"configuration file {config_path} must contain a mapping",
            metadata={"config_path": str(config_path)},
        )

    try:
        return ExporterConfig.model_validate(document)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(
            f"invalid configuration file {config_path}: {problems}",
            metadata={"config_path": str(config_path)},
        ) from e


def resolve_kubeconfig_path(flag_value: Optional[str] = None) -> str:
    """Flag, then $KUBECONFIG, then $HOME/.kube/config"""
    if flag_value:
        return flag_value
    from_env = os.environ.get("KUBECONFIG")
    if from_env:
        return from_env
    home = os.environ.get("HOME") or str(Path.home())
    return os.path.join(home, ".kube", "config")
