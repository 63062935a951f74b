"""
Entropy protocol constants.

This module centralizes:
- Domain separation tags for derived signer/vault addresses
- Fixed capacities of the variable-length record fields
- Sequence and fee-normalisation defaults
- Callback status codes (mirrored by :class:`entropy.types.core.CallbackStatus`)

Deployments may override the operational knobs through
`entropy.config.EntropyConfig`; code that needs stable defaults imports
them from here.
"""

from __future__ import annotations

# -----------------------------
# Domain separation (bytes tags)
# -----------------------------
# Keep these stable; changing them changes every derived address.
DOMAIN_PREFIX: bytes = b"animica.entropy."

DOMAIN_ADDRESS: bytes = DOMAIN_PREFIX + b"address.v1"

# Seeds for derived identities (see entropy.signers)
ENTROPY_SIGNER_SEED: bytes = b"entropy_signer"
REQUESTER_SIGNER_SEED: bytes = b"requester_signer"
PROVIDER_VAULT_SEED: bytes = b"provider_vault"
PLATFORM_FEE_VAULT_SEED: bytes = b"platform_fee_vault"

# -----------------------------
# Sizes
# -----------------------------
ADDRESS_LEN: int = 32
DIGEST_LEN: int = 32
ZERO_ADDRESS: bytes = b"\x00" * ADDRESS_LEN
ZERO_DIGEST: bytes = b"\x00" * DIGEST_LEN

# Capacities of bounded byte fields.
COMMITMENT_METADATA_LEN: int = 64
URI_LEN: int = 256
MAX_CALLBACK_ACCOUNTS: int = 16
CALLBACK_PAYLOAD_PREFIX_LEN: int = 256

# -----------------------------
# Sequencing / fees
# -----------------------------
# First sequence number handed to a brand-new provider (its chain anchor).
DEFAULT_SEQUENCE_BASE: int = 0

# Resource limits are rounded up to this unit before fee scaling.
RESOURCE_LIMIT_RESOLUTION: int = 10_000

# -----------------------------
# History oracle
# -----------------------------
# Number of most recent markers whose entropy values stay retrievable.
DEFAULT_HISTORY_RETENTION: int = 512

# Default hash primitive name (see entropy.utils.hash).
DEFAULT_HASH_FN: str = "sha256"

# -----------------------------
# Callback status codes
# -----------------------------
CALLBACK_NOT_NECESSARY: int = 0
CALLBACK_NOT_STARTED: int = 1
CALLBACK_IN_PROGRESS: int = 2
CALLBACK_FAILED: int = 3

__all__ = [
    "DOMAIN_PREFIX",
    "DOMAIN_ADDRESS",
    "ENTROPY_SIGNER_SEED",
    "REQUESTER_SIGNER_SEED",
    "PROVIDER_VAULT_SEED",
    "PLATFORM_FEE_VAULT_SEED",
    "ADDRESS_LEN",
    "DIGEST_LEN",
    "ZERO_ADDRESS",
    "ZERO_DIGEST",
    "COMMITMENT_METADATA_LEN",
    "URI_LEN",
    "MAX_CALLBACK_ACCOUNTS",
    "CALLBACK_PAYLOAD_PREFIX_LEN",
    "DEFAULT_SEQUENCE_BASE",
    "RESOURCE_LIMIT_RESOLUTION",
    "DEFAULT_HISTORY_RETENTION",
    "DEFAULT_HASH_FN",
    "CALLBACK_NOT_NECESSARY",
    "CALLBACK_NOT_STARTED",
    "CALLBACK_IN_PROGRESS",
    "CALLBACK_FAILED",
]
