"""Configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

from babble.config import BabbleConfig, load_config, open_store
from babble.store import KeyedTransitionStore, MemoryTransitionStore


def test_defaults_are_valid(tmp_path: Path) -> None:
    result = load_config(tmp_path / "absent.yaml")

    assert result.is_ok()
    config = result.unwrap()
    assert config.chain.order == 2
    assert config.fetch.min_interval == 2.0
    assert config.store.backend == "memory"


def test_yaml_values_override_defaults(tmp_path: Path) -> None:
    path = tmp_path / "babble.yaml"
    path.write_text(
        "chain:\n  order: 3\n"
        "fetch:\n  min_interval: 0.5\n"
        "store:\n  backend: redis\n  namespace: blog\n"
        "pipeline:\n  channel_size: 16\n  max_documents: 10\n"
    )

    config = load_config(path).unwrap()

    assert config.chain.order == 3
    assert config.fetch.min_interval == 0.5
    assert config.store.backend == "redis"
    assert config.store.namespace == "blog"
    assert config.pipeline.channel_size == 16
    assert config.pipeline.max_documents == 10
    assert config.logging.format == "json"


def test_environment_overrides_store_location(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("BABBLE_REDIS_URL", "redis://cache:6380/2")
    monkeypatch.setenv("BABBLE_NAMESPACE", "env")

    config = load_config(tmp_path / "absent.yaml").unwrap()

    assert config.store.url == "redis://cache:6380/2"
    assert config.store.namespace == "env"


def test_invalid_values_are_reported(tmp_path: Path) -> None:
    path = tmp_path / "babble.yaml"
    path.write_text("chain:\n  order: 0\n")

    result = load_config(path)

    assert result.is_err()
    assert result.unwrap_err().field == "chain.order"


def test_unknown_backend_is_reported() -> None:
    config = BabbleConfig().with_overrides(backend="cassandra")

    error = config.validate().unwrap_err()

    assert error.field == "store.backend"
    assert "memory" in error.message


def test_malformed_yaml_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "babble.yaml"
    path.write_text("chain: [unclosed\n")

    assert BabbleConfig.from_yaml(path).unwrap_err().field == "yaml"


def test_non_numeric_values_are_reported() -> None:
    result = BabbleConfig.from_dict({"chain": {"order": "two"}})

    assert result.is_err()


def test_open_store_builds_configured_backend() -> None:
    memory = open_store(BabbleConfig().with_overrides(order=3))
    keyed = open_store(BabbleConfig().with_overrides(backend="redis", namespace="x"))

    assert isinstance(memory, MemoryTransitionStore)
    assert memory.order == 3
    assert isinstance(keyed, KeyedTransitionStore)
    assert keyed.namespace == "x"
