"""
Entropy protocol configuration.

Typed configuration objects and helpers for:
- the protocol program id (root of every derived signer / vault address)
- the hash primitive used for chains, commitments and random values
- sequence base for new providers and resource-limit fee resolution
- history-oracle retention
- the record store backend

Provides:
- Dataclass-based configs with validation
- Loading from environment variables (prefix configurable)
- Loading from a JSON or YAML file (YAML via PyYAML)
- :func:`open_store` to build the configured :class:`~entropy.store.KeyValue`
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict

import yaml

from .constants import (ADDRESS_LEN, DEFAULT_HASH_FN,
                        DEFAULT_HISTORY_RETENTION, DEFAULT_SEQUENCE_BASE,
                        RESOURCE_LIMIT_RESOLUTION)
from .store import KeyValue
from .utils.bytes import from_hex, is_hex
from .utils.hash import HashFn, get_hash_fn, hash_fn_names

logger = logging.getLogger(__name__)

# Program id used by local/devnet deployments when nothing is configured.
DEFAULT_PROGRAM_ID = "0x" + "e7" * ADDRESS_LEN

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


# -------------------------
# Sub-configs
# -------------------------


@dataclass
class StorageConfig:
    """
    Where protocol records live.

    URIs:
      - ``memory://``          volatile, per-process (tests, demos)
      - ``sqlite:///path.db``  persistent single-file store (CLI, keepers)
    """

    uri: str = "memory://"

    def validate(self) -> None:
        if self.uri == "memory://":
            return
        if not self.uri.startswith("sqlite:///") or len(self.uri) <= len("sqlite:///"):
            raise ValueError("storage uri must be 'memory://' or 'sqlite:///<path>'")

    @property
    def sqlite_path(self) -> str:
        return self.uri[len("sqlite:///"):]


# -------------------------
# Top-level config
# -------------------------


@dataclass
class EntropyConfig:
    """
    program_id:                 0x-hex 32-byte protocol identity
    hash_fn:                    hash primitive name (see entropy.utils.hash)
    sequence_base:              anchor sequence for brand-new providers
    resource_limit_resolution:  unit resource limits are rounded up to
    history_retention:          markers kept by the history oracle
    log_level:                  root log level for the CLI
    """

    program_id: str = DEFAULT_PROGRAM_ID
    hash_fn: str = DEFAULT_HASH_FN
    sequence_base: int = DEFAULT_SEQUENCE_BASE
    resource_limit_resolution: int = RESOURCE_LIMIT_RESOLUTION
    history_retention: int = DEFAULT_HISTORY_RETENTION
    log_level: str = "INFO"

    storage: StorageConfig = field(default_factory=StorageConfig)

    def validate(self) -> None:
        if not is_hex(self.program_id) or len(from_hex(self.program_id)) != ADDRESS_LEN:
            raise ValueError(f"program_id must be {ADDRESS_LEN} bytes of 0x-hex")
        if self.hash_fn.lower() not in hash_fn_names():
            raise ValueError(f"hash_fn must be one of {', '.join(hash_fn_names())}")
        if self.sequence_base < 0:
            raise ValueError("sequence_base must be >= 0")
        if self.resource_limit_resolution <= 0:
            raise ValueError("resource_limit_resolution must be > 0")
        if self.history_retention <= 0:
            raise ValueError("history_retention must be > 0")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        self.storage.validate()

    # -------------------------
    # Derived values
    # -------------------------

    @property
    def program_id_bytes(self) -> bytes:
        return from_hex(self.program_id, name="program_id")

    def hash(self) -> HashFn:
        return get_hash_fn(self.hash_fn)

    # -------------------------
    # Serialization helpers
    # -------------------------

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    # -------------------------
    # Loaders
    # -------------------------

    @staticmethod
    def from_env(prefix: str = "ANIMICA_ENTROPY_") -> "EntropyConfig":
        """
        Load configuration from environment variables. All variables are optional.

        Supported keys:
          - ANIMICA_ENTROPY_PROGRAM_ID=0x…
          - ANIMICA_ENTROPY_HASH_FN=sha256
          - ANIMICA_ENTROPY_SEQUENCE_BASE=0
          - ANIMICA_ENTROPY_RESOURCE_LIMIT_RESOLUTION=10000
          - ANIMICA_ENTROPY_HISTORY_RETENTION=512
          - ANIMICA_ENTROPY_LOG_LEVEL=INFO
          - ANIMICA_ENTROPY_STORE=sqlite:///./data/entropy.db
        """

        def _get(name: str, cast: Any, default: Any) -> Any:
            key = prefix + name
            raw = os.getenv(key)
            if raw is None:
                return default
            try:
                return cast(raw)
            except Exception as e:
                raise ValueError(f"Invalid value for {key}: {raw!r}") from e

        cfg = EntropyConfig(
            program_id=_get("PROGRAM_ID", str, DEFAULT_PROGRAM_ID),
            hash_fn=_get("HASH_FN", str, DEFAULT_HASH_FN),
            sequence_base=_get("SEQUENCE_BASE", int, DEFAULT_SEQUENCE_BASE),
            resource_limit_resolution=_get(
                "RESOURCE_LIMIT_RESOLUTION", int, RESOURCE_LIMIT_RESOLUTION
            ),
            history_retention=_get("HISTORY_RETENTION", int, DEFAULT_HISTORY_RETENTION),
            log_level=_get("LOG_LEVEL", str, "INFO"),
            storage=StorageConfig(uri=_get("STORE", str, "memory://")),
        )
        cfg.validate()
        return cfg

    @staticmethod
    def from_file(path: str) -> "EntropyConfig":
        """
        Load configuration from a JSON or YAML file. Keys mirror the dataclass
        structure. Example (YAML):

            program_id: "0xe7e7…"
            hash_fn: sha256
            resource_limit_resolution: 10000
            storage:
              uri: "sqlite:///./data/entropy.db"
        """
        with open(path, "r", encoding="utf-8") as f:
            data = _parse_json_or_yaml(f.read(), path)

        storage_d = data.pop("storage", {}) or {}
        cfg = EntropyConfig(
            program_id=data.pop("program_id", DEFAULT_PROGRAM_ID),
            hash_fn=data.pop("hash_fn", DEFAULT_HASH_FN),
            sequence_base=int(data.pop("sequence_base", DEFAULT_SEQUENCE_BASE)),
            resource_limit_resolution=int(
                data.pop("resource_limit_resolution", RESOURCE_LIMIT_RESOLUTION)
            ),
            history_retention=int(data.pop("history_retention", DEFAULT_HISTORY_RETENTION)),
            log_level=data.pop("log_level", "INFO"),
            storage=StorageConfig(uri=storage_d.get("uri", "memory://")),
        )
        if data:
            logger.warning("ignoring unknown config keys in %s: %s", path, sorted(data))
        cfg.validate()
        return cfg


# -------------------------
# Utilities
# -------------------------


def _parse_json_or_yaml(text: str, path_hint: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse {path_hint!r} as JSON or YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{path_hint!r} must contain a mapping at the top level")
    return data


def open_store(cfg: EntropyConfig) -> KeyValue:
    """Build the KeyValue backend named by ``cfg.storage.uri``."""
    cfg.storage.validate()
    if cfg.storage.uri == "memory://":
        from .store.memory import MemoryKeyValue

        return MemoryKeyValue()
    from .store.sqlite import SQLiteKeyValue

    return SQLiteKeyValue(cfg.storage.sqlite_path)


DEFAULT: EntropyConfig = EntropyConfig()

__all__ = [
    "DEFAULT_PROGRAM_ID",
    "StorageConfig",
    "EntropyConfig",
    "DEFAULT",
    "open_store",
]
