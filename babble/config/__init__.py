"""Configuration module for babble."""

from babble.config.settings import BabbleConfig, load_config, open_store

__all__ = ["BabbleConfig", "load_config", "open_store"]
