# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
Animica Entropy package.

Provider-based commit→reveal randomness:
- providers pre-commit a hash chain and are paid per request,
- requesters bind their own secret into a per-request commitment,
- a reveal combines both secrets (optionally mixed with recent history
  entropy) and may deliver the value to a one-shot callback.

Only light, stable exports are surfaced here to avoid import cycles. The
service facade lives in :mod:`entropy.service`.
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__"]
