"""Centralized configuration for babble.

Configuration is loaded from a YAML file, overlaid with environment
variables and validated at startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from babble.fetcher.http import DEFAULT_USER_AGENT
from babble.store import STORE_REGISTRY, KeyedTransitionStore, MemoryTransitionStore
from babble.store.base import TransitionStore
from babble.store.keyed import DEFAULT_COUNTER_KEY
from babble.utils.result import ConfigError, Err, Ok, Result

DEFAULT_CONFIG_PATH = Path("./babble.yaml")

# Environment overrides
ENV_REDIS_URL = "BABBLE_REDIS_URL"
ENV_NAMESPACE = "BABBLE_NAMESPACE"


@dataclass
class ChainConfig:
    """Markov chain settings."""

    order: int = 2


@dataclass
class FetchConfig:
    """External listing source settings."""

    base_url: str = "https://www.reddit.com/r/{category}/new.json"
    # Seconds between requests; the external limit is one request per 2s
    min_interval: float = 2.0
    timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    page_size: int = 100
    cursor_param: str = "after"


@dataclass
class StoreConfig:
    """Transition store backend settings."""

    backend: str = "memory"
    url: str = "redis://localhost:6379/0"
    namespace: str = ""
    counter_key: str = DEFAULT_COUNTER_KEY
    max_key_draws: int = 8


@dataclass
class PipelineSettings:
    """Ingestion pipeline settings."""

    channel_size: int = 1024
    max_documents: Optional[int] = None


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    format: str = "json"


@dataclass
class BabbleConfig:
    """Complete application configuration."""

    chain: ChainConfig = field(default_factory=ChainConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> Result["BabbleConfig", ConfigError]:
        """
        Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Result with loaded config or error
        """
        path = Path(path)

        if not path.exists():
            return Err(ConfigError(
                field="path",
                message=f"Configuration file not found: {path}",
            ))

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            return Err(ConfigError(
                field="yaml",
                message=f"Failed to parse YAML: {e}",
            ))
        except OSError as e:
            return Err(ConfigError(
                field="file",
                message=f"Failed to read config file: {e}",
            ))

        if not isinstance(data, dict):
            return Err(ConfigError(
                field="yaml",
                message="Top level of the configuration must be a mapping",
            ))

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Result["BabbleConfig", ConfigError]:
        """
        Create configuration from a dictionary.

        Missing keys keep their defaults.

        Args:
            data: Configuration dictionary

        Returns:
            Result with loaded config or error
        """
        try:
            chain_data = data.get("chain", {})
            chain = ChainConfig(order=int(chain_data.get("order", 2)))

            fetch_data = data.get("fetch", {})
            defaults = FetchConfig()
            fetch = FetchConfig(
                base_url=fetch_data.get("base_url", defaults.base_url),
                min_interval=float(fetch_data.get("min_interval", defaults.min_interval)),
                timeout=float(fetch_data.get("timeout", defaults.timeout)),
                user_agent=fetch_data.get("user_agent", defaults.user_agent),
                page_size=int(fetch_data.get("page_size", defaults.page_size)),
                cursor_param=fetch_data.get("cursor_param", defaults.cursor_param),
            )

            store_data = data.get("store", {})
            store = StoreConfig(
                backend=store_data.get("backend", "memory"),
                url=store_data.get("url", "redis://localhost:6379/0"),
                namespace=store_data.get("namespace", ""),
                counter_key=store_data.get("counter_key", DEFAULT_COUNTER_KEY),
                max_key_draws=int(store_data.get("max_key_draws", 8)),
            )

            pipeline_data = data.get("pipeline", {})
            max_documents = pipeline_data.get("max_documents")
            pipeline = PipelineSettings(
                channel_size=int(pipeline_data.get("channel_size", 1024)),
                max_documents=int(max_documents) if max_documents is not None else None,
            )

            logging_data = data.get("logging", {})
            logging_config = LoggingConfig(
                level=logging_data.get("level", "info"),
                format=logging_data.get("format", "json"),
            )

            return Ok(cls(
                chain=chain,
                fetch=fetch,
                store=store,
                pipeline=pipeline,
                logging=logging_config,
            ))

        except (TypeError, ValueError, AttributeError) as e:
            return Err(ConfigError(
                field="unknown",
                message=f"Failed to parse configuration: {e}",
            ))

    def validate(self) -> Result[None, ConfigError]:
        """
        Validate configuration values.

        Returns:
            Result indicating success or validation error
        """
        if self.chain.order < 1:
            return Err(ConfigError(
                field="chain.order",
                message=f"Must be at least 1, got {self.chain.order}",
            ))

        if self.fetch.min_interval < 0:
            return Err(ConfigError(
                field="fetch.min_interval",
                message=f"Must be non-negative, got {self.fetch.min_interval}",
            ))
        if "{category}" not in self.fetch.base_url:
            return Err(ConfigError(
                field="fetch.base_url",
                message="Must contain a {category} placeholder",
            ))

        if self.store.backend not in STORE_REGISTRY:
            available = ", ".join(STORE_REGISTRY)
            return Err(ConfigError(
                field="store.backend",
                message=f"Unknown backend '{self.store.backend}'. Available: {available}",
            ))
        if self.store.max_key_draws < 1:
            return Err(ConfigError(
                field="store.max_key_draws",
                message=f"Must be at least 1, got {self.store.max_key_draws}",
            ))

        if self.pipeline.channel_size < 1:
            return Err(ConfigError(
                field="pipeline.channel_size",
                message=f"Must be at least 1, got {self.pipeline.channel_size}",
            ))

        return Ok(None)

    def with_overrides(
        self,
        order: Optional[int] = None,
        backend: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> "BabbleConfig":
        """Return a new config with command-line overrides applied."""
        chain = replace(self.chain, order=order) if order is not None else self.chain
        store = self.store
        if backend is not None:
            store = replace(store, backend=backend)
        if namespace is not None:
            store = replace(store, namespace=namespace)
        return replace(self, chain=chain, store=store)


def load_config(path: Optional[Path] = None) -> Result[BabbleConfig, ConfigError]:
    """
    Load configuration from the standard location.

    Reads ./babble.yaml (or path) if it exists, then applies environment
    overrides and validates the result.

    Args:
        path: Configuration file (defaults to ./babble.yaml)

    Returns:
        Result with loaded config or error
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    path = Path(path)

    if path.exists():
        result = BabbleConfig.from_yaml(path)
        if result.is_err():
            return result
        config = result.unwrap()
    else:
        config = BabbleConfig()

    redis_url = os.environ.get(ENV_REDIS_URL)
    if redis_url:
        config.store = replace(config.store, url=redis_url)
    namespace = os.environ.get(ENV_NAMESPACE)
    if namespace is not None:
        config.store = replace(config.store, namespace=namespace)

    validation_result = config.validate()
    if validation_result.is_err():
        return Err(validation_result.unwrap_err())

    return Ok(config)


def open_store(config: BabbleConfig) -> TransitionStore:
    """Build the transition store described by config."""
    if config.store.backend == "redis":
        return KeyedTransitionStore.from_url(
            config.store.url,
            config.chain.order,
            namespace=config.store.namespace,
            counter_key=config.store.counter_key,
            max_key_draws=config.store.max_key_draws,
        )
    return MemoryTransitionStore(config.chain.order)
