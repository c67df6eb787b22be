"""Engine configuration stored as TOML, with built-in defaults."""

from __future__ import annotations

import dataclasses
import logging
import os
import threading
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomli_w

DEFAULT_CONFIG_PATH = "config.toml"

_log = logging.getLogger(__name__)

_instance: TomlConfig | None = None
_instance_lock = threading.Lock()


@dataclass(frozen=True)
class TomlConfig:
    """Tunable parameters of the storage engine and the Redis layer."""

    # LSM core
    lsm_tol_mem_size_limit: int = 64 * 1024 * 1024
    lsm_per_mem_size_limit: int = 4 * 1024 * 1024
    lsm_block_size: int = 32 * 1024
    lsm_sst_level_ratio: int = 4
    # LSM cache
    lsm_block_cache_capacity: int = 1024
    lsm_block_cache_k: int = 8
    # Redis key prefixes and separators
    redis_expire_header: str = "REDIS_EXPIRE_"
    redis_hash_value_preffix: str = "REDIS_HASH_VALUE_"
    redis_field_prefix: str = "REDIS_FIELD_"
    redis_field_separator: str = "$"
    redis_list_separator: str = "#"
    redis_sorted_set_prefix: str = "REDIS_SORTED_SET_"
    redis_sorted_set_score_len: int = 32
    redis_set_prefix: str = "REDIS_SET_"
    # Bloom filter
    bloom_filter_expected_size: int = 65536
    bloom_filter_expected_error_rate: float = 0.1

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> TomlConfig:
        """Load a configuration file; every key must be present.

        Raises OSError if the file cannot be read and ValueError if it is not
        valid TOML or a key is missing or has the wrong type.
        """
        with open(path, "rb") as fh:
            doc = tomllib.load(fh)
        core = _section(doc, "lsm", "core")
        cache = _section(doc, "lsm", "cache")
        redis = _section(doc, "redis")
        bloom = _section(doc, "bloom_filter")
        config = cls(
            lsm_tol_mem_size_limit=_integer(core, "LSM_TOL_MEM_SIZE_LIMIT"),
            lsm_per_mem_size_limit=_integer(core, "LSM_PER_MEM_SIZE_LIMIT"),
            lsm_block_size=_integer(core, "LSM_BLOCK_SIZE"),
            lsm_sst_level_ratio=_integer(core, "LSM_SST_LEVEL_RATIO"),
            lsm_block_cache_capacity=_integer(cache, "LSM_BLOCK_CACHE_CAPACITY"),
            lsm_block_cache_k=_integer(cache, "LSM_BLOCK_CACHE_K"),
            redis_expire_header=_string(redis, "REDIS_EXPIRE_HEADER"),
            redis_hash_value_preffix=_string(redis, "REDIS_HASH_VALUE_PREFFIX"),
            redis_field_prefix=_string(redis, "REDIS_FIELD_PREFIX"),
            redis_field_separator=_char(redis, "REDIS_FIELD_SEPARATOR"),
            redis_list_separator=_char(redis, "REDIS_LIST_SEPARATOR"),
            redis_sorted_set_prefix=_string(redis, "REDIS_SORTED_SET_PREFIX"),
            redis_sorted_set_score_len=_integer(redis, "REDIS_SORTED_SET_SCORE_LEN"),
            redis_set_prefix=_string(redis, "REDIS_SET_PREFIX"),
            bloom_filter_expected_size=_integer(bloom, "BLOOM_FILTER_EXPECTED_SIZE"),
            bloom_filter_expected_error_rate=_floating(
                bloom, "BLOOM_FILTER_EXPECTED_ERROR_RATE"
            ),
        )
        _log.info("Configuration loaded successfully from %s", path)
        return config

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration as the nested tables of the TOML file."""
        return {
            "lsm": {
                "core": {
                    "LSM_TOL_MEM_SIZE_LIMIT": self.lsm_tol_mem_size_limit,
                    "LSM_PER_MEM_SIZE_LIMIT": self.lsm_per_mem_size_limit,
                    "LSM_BLOCK_SIZE": self.lsm_block_size,
                    "LSM_SST_LEVEL_RATIO": self.lsm_sst_level_ratio,
                },
                "cache": {
                    "LSM_BLOCK_CACHE_CAPACITY": self.lsm_block_cache_capacity,
                    "LSM_BLOCK_CACHE_K": self.lsm_block_cache_k,
                },
            },
            "redis": {
                "REDIS_EXPIRE_HEADER": self.redis_expire_header,
                "REDIS_HASH_VALUE_PREFFIX": self.redis_hash_value_preffix,
                "REDIS_FIELD_PREFIX": self.redis_field_prefix,
                "REDIS_FIELD_SEPARATOR": self.redis_field_separator,
                "REDIS_LIST_SEPARATOR": self.redis_list_separator,
                "REDIS_SORTED_SET_PREFIX": self.redis_sorted_set_prefix,
                "REDIS_SORTED_SET_SCORE_LEN": self.redis_sorted_set_score_len,
                "REDIS_SET_PREFIX": self.redis_set_prefix,
            },
            "bloom_filter": {
                "BLOOM_FILTER_EXPECTED_SIZE": self.bloom_filter_expected_size,
                "BLOOM_FILTER_EXPECTED_ERROR_RATE": self.bloom_filter_expected_error_rate,
            },
        }

    def save(self, path: str | os.PathLike[str]) -> None:
        """Write the configuration to ``path`` as TOML."""
        Path(path).write_text(tomli_w.dumps(self.to_dict()), encoding="utf-8")
        _log.info("Configuration saved successfully to %s", path)

    def replace(self, **changes: Any) -> TomlConfig:
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)


def _section(doc: dict[str, Any], *names: str) -> dict[str, Any]:
    table: Any = doc
    for name in names:
        if not isinstance(table, dict) or name not in table:
            raise ValueError(f"missing table [{'.'.join(names)}]")
        table = table[name]
    if not isinstance(table, dict):
        raise ValueError(f"[{'.'.join(names)}] is not a table")
    return table


def _get(table: dict[str, Any], key: str) -> Any:
    try:
        return table[key]
    except KeyError:
        raise ValueError(f"missing key {key}") from None


def _integer(table: dict[str, Any], key: str) -> int:
    value = _get(table, key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{key} must be an integer")
    return value


def _floating(table: dict[str, Any], key: str) -> float:
    value = _get(table, key)
    if not isinstance(value, float):
        raise ValueError(f"{key} must be a float")
    return value


def _string(table: dict[str, Any], key: str) -> str:
    value = _get(table, key)
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _char(table: dict[str, Any], key: str) -> str:
    value = _string(table, key)
    if not value:
        raise ValueError(f"{key} must not be empty")
    return value[0]


def get_instance(config_path: str | os.PathLike[str] = DEFAULT_CONFIG_PATH) -> TomlConfig:
    """Return the process-wide configuration, loading it on first use.

    If ``config_path`` is not a readable file, ``config.toml`` is used instead.
    A file that fails to load leaves the defaults in place, and when the file
    does not exist at all the defaults are written to it.
    """
    global _instance
    with _instance_lock:
        if _instance is not None:
            return _instance
        path = Path(config_path)
        if not (path.is_file() and os.access(path, os.R_OK)):
            _log.warning(
                "Config file not found or unreadable: %s, using default configuration",
                config_path,
            )
            path = Path(DEFAULT_CONFIG_PATH)
        if path.exists():
            try:
                config = TomlConfig.from_file(path)
            except (OSError, ValueError) as exc:
                _log.error("Error loading configuration from %s: %s", path, exc)
                config = TomlConfig()
        else:
            config = TomlConfig()
            try:
                config.save(path)
            except OSError as exc:
                _log.error("Failed to write configuration to %s: %s", path, exc)
        _instance = config
        return config