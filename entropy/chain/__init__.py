"""
entropy.chain — hash-chain commitment and verification.

Exports:
  - commit(secret, distance, hash_fn=sha256) -> bytes
  - verify(secret, distance, expected_tip, hash_fn=sha256) -> bool
  - verify_linkage(value, sequence, tip, tip_sequence, hash_fn=sha256) -> bool
  - HashChain: provider-side chain generator
"""

from __future__ import annotations

from .hashchain import HashChain, commit, verify, verify_linkage

__all__ = ["HashChain", "commit", "verify", "verify_linkage"]
