"""Typed configuration of the release service.

Mirrors the ``config:`` section of config.yaml. Every section has defaults so
the service starts with an empty configuration file.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AppConfig(BaseModel):
    """Application settings."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Deployment environment"
    )
    host: str = Field(default="0.0.0.0", description="HTTP bind address")
    port: int = Field(default=8080, description="HTTP port")
    version: str = Field(default="0.1.0", description="Reported service version")
    git_commit: str = Field(default="", description="Build commit reported by /version")
    git_tree_state: str = Field(default="", description="Build tree state reported by /version")


class StorageConfig(BaseModel):
    """Release store settings."""

    backend: Literal["memory", "redis"] = Field(
        default="memory", description="Release store backend"
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    key_prefix: str = Field(default="rlsd", description="Prefix of every Redis key")


class CoordinatorConfig(BaseModel):
    """Per-release lease settings."""

    backend: Literal["memory", "redis"] = Field(
        default="memory", description="Lease backend"
    )
    lease_ttl_ms: int = Field(
        default=600_000,
        gt=0,
        description="Expiry of a Redis lease, bounding how long a crashed holder blocks a release",
    )


class ClusterConfig(BaseModel):
    """Cluster access settings."""

    backend: Literal["kr8s", "memory"] = Field(
        default="kr8s", description="Cluster controller backend"
    )
    default_namespace: str = Field(default="default")
    poll_interval: float = Field(
        default=2.0, gt=0, description="Seconds between readiness polls"
    )
    command_timeout: float = Field(
        default=60.0, gt=0, description="Seconds one kubectl invocation may run"
    )


class ReleaseConfig(BaseModel):
    """Release lifecycle settings."""

    default_timeout: int = Field(
        default=300, gt=0, description="Seconds an operation may take when the caller sends 0"
    )
    list_page_size: int = Field(
        default=256, gt=0, description="Page size of list_releases when the caller sends <= 0"
    )
    name_max_length: int = Field(default=53, gt=0, le=63)


class LoggingConfig(BaseModel):
    """Log output settings."""

    model_config = ConfigDict(populate_by_name=True)

    level: str = Field(default="INFO")
    json_logs: bool = Field(default=False, alias="json", description="Emit JSON lines")


class ConfigData(BaseModel):
    """Root configuration object."""

    app: AppConfig = Field(default_factory=AppConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    coordinator: CoordinatorConfig = Field(default_factory=CoordinatorConfig)
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    release: ReleaseConfig = Field(default_factory=ReleaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
