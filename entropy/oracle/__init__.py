"""Historical-entropy oracle."""

from __future__ import annotations

from .history import EntropyHistory

__all__ = ["EntropyHistory"]
