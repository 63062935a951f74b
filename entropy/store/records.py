"""
Typed record buckets over a raw :class:`~entropy.store.KeyValue` backend.

Buckets
-------
- PROVIDERS:  authority                      -> ProviderRecord
- REQUESTS:   provider || u64_be(sequence)   -> RequestRecord
- CONFIG:     singleton                      -> ConfigRecord
- BALANCES:   account                        -> int
- HISTORY:    u64_be(marker)                 -> 32-byte entropy value
- META:       len(name) || name              -> raw bytes

Sequence numbers and markers are big-endian so prefix scans come back in
numeric order. Records are encoded with ``msgspec.msgpack`` over their
``to_dict()`` form.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

import msgspec

from ..types.records import ConfigRecord, ProviderRecord, RequestRecord
from . import KeyValue

# --- Bucket prefixes (single byte, domain separated) -------------------------

PROVIDERS_PREFIX = b"\x01"
REQUESTS_PREFIX  = b"\x02"
CONFIG_PREFIX    = b"\x03"
BALANCES_PREFIX  = b"\x04"
HISTORY_PREFIX   = b"\x05"
META_PREFIX      = b"\x06"

_CONFIG_KEY = CONFIG_PREFIX + b"config"

_encoder = msgspec.msgpack.Encoder()
_decoder = msgspec.msgpack.Decoder()


def encode_record(d: Dict[str, Any]) -> bytes:
    return _encoder.encode(d)


def decode_record(payload: bytes) -> Dict[str, Any]:
    return _decoder.decode(payload)


def _u64_be(n: int) -> bytes:
    return int(n).to_bytes(8, "big")


@dataclass(frozen=True)
class RecordStore:
    """Namespaced typed view over a byte KV store."""

    kv: KeyValue

    def transaction(self):
        return self.kv.transaction()

    def savepoint(self):
        return self.kv.savepoint()

    # --- Providers -----------------------------------------------------------

    def get_provider(self, authority: bytes) -> Optional[ProviderRecord]:
        raw = self.kv.get(PROVIDERS_PREFIX + bytes(authority))
        return None if raw is None else ProviderRecord.from_dict(decode_record(raw))

    def put_provider(self, rec: ProviderRecord) -> None:
        self.kv.put(PROVIDERS_PREFIX + bytes(rec.authority), encode_record(rec.to_dict()))

    def iter_providers(self) -> Iterator[ProviderRecord]:
        for _, raw in self.kv.iter_prefix(PROVIDERS_PREFIX):
            yield ProviderRecord.from_dict(decode_record(raw))

    # --- Requests ------------------------------------------------------------

    @staticmethod
    def key_request(provider: bytes, sequence: int) -> bytes:
        return REQUESTS_PREFIX + bytes(provider) + _u64_be(sequence)

    def get_request(self, provider: bytes, sequence: int) -> Optional[RequestRecord]:
        raw = self.kv.get(self.key_request(provider, sequence))
        return None if raw is None else RequestRecord.from_dict(decode_record(raw))

    def put_request(self, rec: RequestRecord) -> None:
        self.kv.put(self.key_request(rec.provider, rec.sequence), encode_record(rec.to_dict()))

    def del_request(self, provider: bytes, sequence: int) -> None:
        self.kv.delete(self.key_request(provider, sequence))

    def iter_requests(self, provider: Optional[bytes] = None) -> Iterator[RequestRecord]:
        """Outstanding requests, ordered by (provider, sequence)."""
        prefix = REQUESTS_PREFIX + (bytes(provider) if provider is not None else b"")
        for _, raw in self.kv.iter_prefix(prefix):
            yield RequestRecord.from_dict(decode_record(raw))

    # --- Config --------------------------------------------------------------

    def get_config(self) -> Optional[ConfigRecord]:
        raw = self.kv.get(_CONFIG_KEY)
        return None if raw is None else ConfigRecord.from_dict(decode_record(raw))

    def put_config(self, rec: ConfigRecord) -> None:
        self.kv.put(_CONFIG_KEY, encode_record(rec.to_dict()))

    # --- Balances ------------------------------------------------------------

    def get_balance(self, account: bytes) -> Optional[int]:
        raw = self.kv.get(BALANCES_PREFIX + bytes(account))
        return None if raw is None else int(decode_record(raw))

    def put_balance(self, account: bytes, amount: int) -> None:
        self.kv.put(BALANCES_PREFIX + bytes(account), _encoder.encode(int(amount)))

    # --- History -------------------------------------------------------------

    def get_history(self, marker: int) -> Optional[bytes]:
        return self.kv.get(HISTORY_PREFIX + _u64_be(marker))

    def put_history(self, marker: int, value: bytes) -> None:
        self.kv.put(HISTORY_PREFIX + _u64_be(marker), bytes(value))

    def del_history(self, marker: int) -> None:
        self.kv.delete(HISTORY_PREFIX + _u64_be(marker))

    def iter_history(self) -> Iterator[Tuple[int, bytes]]:
        for k, v in self.kv.iter_prefix(HISTORY_PREFIX):
            yield int.from_bytes(k[len(HISTORY_PREFIX):], "big"), v

    # --- Meta ----------------------------------------------------------------

    @staticmethod
    def key_meta(name: str) -> bytes:
        nb = name.encode("utf-8")
        return META_PREFIX + len(nb).to_bytes(4, "big") + nb

    def get_meta(self, name: str) -> Optional[bytes]:
        return self.kv.get(self.key_meta(name))

    def put_meta(self, name: str, value: bytes) -> None:
        self.kv.put(self.key_meta(name), value)


__all__ = [
    "RecordStore",
    "encode_record",
    "decode_record",
    "PROVIDERS_PREFIX",
    "REQUESTS_PREFIX",
    "CONFIG_PREFIX",
    "BALANCES_PREFIX",
    "HISTORY_PREFIX",
    "META_PREFIX",
]
