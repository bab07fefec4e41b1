"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class FetchConfig:
    """Repository archive download configuration."""

    github_token: str = ""
    gitlab_token: str = ""
    timeout_seconds: int = 60
    max_attempts: int = 3
    ca_bundle: str = ""  # path to a PEM file used to verify provider endpoints


@dataclass
class BuilderConfig:
    """Graph builder configuration."""

    max_workers: int = 8
    timeout_seconds: int = 300  # 0 = no deadline
    max_depth: int = 0  # 0 = unlimited
    workdir: str = ""
    keep_workdir: bool = False


@dataclass
class CACertConfig:
    """CA trust collector configuration."""

    enabled: bool = True
    ttl_seconds: int = 3600  # 0 disables the chain cache
    handshake_timeout: int = 10
    max_workers: int = 8
    port: int = 443


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class KustomapConfig:
    """Top-level kustomap configuration."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    builder: BuilderConfig = field(default_factory=BuilderConfig)
    cacert: CACertConfig = field(default_factory=CACertConfig)
    log: LogConfig = field(default_factory=LogConfig)
