"""Client configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any

from .connection import (
    DEFAULT_API_ENDPOINT,
    DEFAULT_OPEN_TIMEOUT,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_RETRY_COUNT,
    DEFAULT_TIMEOUT,
)
from .errors import InvalidArgument
from .queue import DEFAULT_PER_REQUEST


@dataclass
class ClientConfig:
    """
    Configuration for the metrics client.

    Can be set via:
    - Constructor arguments
    - Environment variables (APPOPTICS_*)
    - YAML file (ClientConfig.from_yaml)
    """
    # API token
    api_key: str | None = field(
        default_factory=lambda: os.environ.get("APPOPTICS_TOKEN"),
        repr=False,
    )

    # Metrics API base URL
    api_endpoint: str = field(
        default_factory=lambda: os.environ.get("APPOPTICS_API_ENDPOINT", DEFAULT_API_ENDPOINT)
    )

    # Request timeouts (seconds)
    timeout: float = field(
        default_factory=lambda: float(os.environ.get("APPOPTICS_TIMEOUT", DEFAULT_TIMEOUT))
    )
    open_timeout: float = field(
        default_factory=lambda: float(os.environ.get("APPOPTICS_OPEN_TIMEOUT", DEFAULT_OPEN_TIMEOUT))
    )

    # Retries for requests that never reached the server
    retry_count: int = field(
        default_factory=lambda: int(os.environ.get("APPOPTICS_RETRY_COUNT", DEFAULT_RETRY_COUNT))
    )
    retry_backoff: float = DEFAULT_RETRY_BACKOFF

    proxy: str | None = field(
        default_factory=lambda: os.environ.get("APPOPTICS_PROXY")
    )

    # Default batch size for queues created by the client
    per_request: int = field(
        default_factory=lambda: int(os.environ.get("APPOPTICS_PER_REQUEST", DEFAULT_PER_REQUEST))
    )

    # "direct" or "test"
    persistence: str = field(
        default_factory=lambda: os.environ.get("APPOPTICS_PERSISTENCE", "direct")
    )

    custom_headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        """Create config from dictionary; unset keys fall back to the environment."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidArgument(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str) -> ClientConfig:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})
