"""Reveal orchestration and out-of-band chain-head advancement."""

from __future__ import annotations

from .engine import RevealEngine, RevealOutcome

__all__ = ["RevealEngine", "RevealOutcome"]
