import json

import pytest

from entropy.config import EntropyConfig, StorageConfig, open_store
from entropy.store.memory import MemoryKeyValue
from entropy.store.sqlite import SQLiteKeyValue
from entropy.utils.hash import blake2b256


def test_defaults_validate():
    cfg = EntropyConfig()
    cfg.validate()
    assert len(cfg.program_id_bytes) == 32
    assert isinstance(open_store(cfg), MemoryKeyValue)
    assert json.loads(cfg.to_json())["storage"]["uri"] == "memory://"


def test_from_env(monkeypatch, tmp_path):
    db = tmp_path / "e.db"
    monkeypatch.setenv("ANIMICA_ENTROPY_HASH_FN", "blake2b256")
    monkeypatch.setenv("ANIMICA_ENTROPY_SEQUENCE_BASE", "100")
    monkeypatch.setenv("ANIMICA_ENTROPY_HISTORY_RETENTION", "8")
    monkeypatch.setenv("ANIMICA_ENTROPY_STORE", f"sqlite:///{db}")
    cfg = EntropyConfig.from_env()
    assert cfg.sequence_base == 100
    assert cfg.history_retention == 8
    assert cfg.hash() is blake2b256
    store = open_store(cfg)
    try:
        assert isinstance(store, SQLiteKeyValue)
    finally:
        store.close()


def test_from_env_rejects_garbage(monkeypatch):
    monkeypatch.setenv("ANIMICA_ENTROPY_SEQUENCE_BASE", "lots")
    with pytest.raises(ValueError):
        EntropyConfig.from_env()


def test_from_yaml_file(tmp_path):
    path = tmp_path / "entropy.yaml"
    path.write_text(
        "hash_fn: sha3_256\n"
        "resource_limit_resolution: 50\n"
        "log_level: debug\n"
        "storage:\n"
        "  uri: memory://\n"
    )
    cfg = EntropyConfig.from_file(str(path))
    assert cfg.hash_fn == "sha3_256"
    assert cfg.resource_limit_resolution == 50


def test_from_json_file(tmp_path):
    path = tmp_path / "entropy.json"
    path.write_text(json.dumps({"sequence_base": 3, "unknown": 1}))
    assert EntropyConfig.from_file(str(path)).sequence_base == 3


@pytest.mark.parametrize(
    "kwargs",
    [
        {"program_id": "0x1234"},
        {"hash_fn": "md5"},
        {"sequence_base": -1},
        {"resource_limit_resolution": 0},
        {"history_retention": 0},
        {"log_level": "LOUD"},
        {"storage": StorageConfig(uri="redis://localhost")},
    ],
)
def test_validate_rejects(kwargs):
    with pytest.raises(ValueError):
        EntropyConfig(**kwargs).validate()
