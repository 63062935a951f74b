"""Request ledger: sequence issuance and the request/reveal state machine."""

from __future__ import annotations

from .requests import RequestLedger, request_commitment

__all__ = ["RequestLedger", "request_commitment"]
