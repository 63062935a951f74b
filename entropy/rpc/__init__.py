"""
entropy.rpc
-----------

Convenience re-exports for mounting the entropy REST/JSON-RPC endpoints onto
a host FastAPI app.

Typical use:

    from fastapi import FastAPI
    from entropy.rpc import mount_entropy_rpc
    from entropy.service import EntropyService

    app = FastAPI()
    mount_entropy_rpc(app, service=EntropyService.from_config(cfg))

See :mod:`entropy.rpc.methods` for the method shims and parameter models.
"""

from __future__ import annotations

from .methods import RPC_METHODS
from .mount import create_app, dispatch_jsonrpc, get_router, mount_entropy_rpc

__all__ = [
    "RPC_METHODS",
    "create_app",
    "dispatch_jsonrpc",
    "get_router",
    "mount_entropy_rpc",
]
