"""
entropy.rpc.mount
-----------------

Mount HTTP endpoints for the entropy protocol on a FastAPI app:

- REST (prefix ``/entropy`` by default):
    GET  /config                          → protocol config
    GET  /fee?provider=&resourceLimit=    → required fee
    GET  /providers/{provider}            → provider record
    GET  /requests/{provider}/{sequence}  → outstanding request
    GET  /requests/{provider}             → outstanding requests of a provider
    POST /register                        → register / rotate a provider
    POST /request                         → request without callback
    POST /request_with_callback           → request with callback
    POST /reveal                          → reveal without callback
    POST /reveal_with_callback            → reveal and deliver the callback
    POST /advance_commitment              → move a provider chain head
    GET  /metrics                         → Prometheus exposition

- JSON-RPC 2.0 at ``POST /rpc`` for every method in
  :data:`entropy.rpc.methods.RPC_METHODS`.

Protocol errors become HTTP statuses (REST) or JSON-RPC error objects
carrying the error category, so clients can tell retryable from permanent
failures. This module is transport glue only.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from ..errors import EntropyError
from ..metrics import render_latest
from ..service import EntropyService
from ..utils.bytes import jsonable, parse_address
from .methods import (HTTP_STATUS, RPC_METHODS, AdvanceParams,
                      RegisterParams, RequestParams,
                      RequestWithCallbackParams, RevealParams,
                      RevealWithCallbackParams, entropy_advance_commitment,
                      entropy_get_config, entropy_get_fee,
                      entropy_get_provider, entropy_get_request,
                      entropy_register, entropy_request,
                      entropy_request_with_callback, entropy_reveal,
                      entropy_reveal_with_callback, error_object)

logger = logging.getLogger(__name__)


def _body(model: Any) -> Dict[str, Any]:
    return model.model_dump(by_alias=True)


# --------------------------------------------------------------------------------------
# REST router
# --------------------------------------------------------------------------------------

def get_router(service: EntropyService, prefix: str = "/entropy") -> APIRouter:
    r = APIRouter(prefix=prefix, tags=["entropy"])

    @r.get("/config")
    async def config() -> dict:
        return entropy_get_config(service)

    @r.get("/fee")
    async def fee(
        provider: Optional[str] = Query(None),
        resource_limit: int = Query(0, ge=0, alias="resourceLimit"),
    ) -> dict:
        args: Dict[str, Any] = {"resourceLimit": resource_limit}
        if provider is not None:
            args["provider"] = provider
        return entropy_get_fee(service, args)

    @r.get("/providers/{provider}")
    async def provider_record(provider: str) -> dict:
        return entropy_get_provider(service, {"provider": provider})

    @r.get("/requests/{provider}")
    async def pending(provider: str) -> List[dict]:
        return [jsonable(rec.to_dict()) for rec in service.pending_requests(parse_address(provider))]

    @r.get("/requests/{provider}/{sequence}")
    async def request_record(provider: str, sequence: int) -> dict:
        return entropy_get_request(service, {"provider": provider, "sequence": sequence})

    @r.post("/register")
    async def register(req: RegisterParams) -> dict:
        return entropy_register(service, _body(req))

    @r.post("/request")
    async def request(req: RequestParams) -> dict:
        return entropy_request(service, _body(req))

    @r.post("/request_with_callback")
    async def request_with_callback(req: RequestWithCallbackParams) -> dict:
        return entropy_request_with_callback(service, _body(req))

    @r.post("/reveal")
    async def reveal(req: RevealParams) -> dict:
        return entropy_reveal(service, _body(req))

    @r.post("/reveal_with_callback")
    async def reveal_with_callback(req: RevealWithCallbackParams) -> dict:
        return entropy_reveal_with_callback(service, _body(req))

    @r.post("/advance_commitment")
    async def advance_commitment(req: AdvanceParams) -> dict:
        return entropy_advance_commitment(service, _body(req))

    @r.get("/metrics")
    async def metrics() -> Response:
        payload, content_type = render_latest()
        return Response(content=payload, media_type=content_type)

    return r


# --------------------------------------------------------------------------------------
# JSON-RPC
# --------------------------------------------------------------------------------------

def _rpc_error(req_id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    err: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return {"jsonrpc": "2.0", "id": req_id, "error": err}


def dispatch_jsonrpc(
    service: EntropyService,
    payload: Any,
    methods: Optional[Dict[str, Callable[..., Any]]] = None,
) -> Dict[str, Any]:
    """Execute one JSON-RPC 2.0 call object and return the response object."""
    methods = RPC_METHODS if methods is None else methods
    if not isinstance(payload, dict) or payload.get("jsonrpc") != "2.0":
        return _rpc_error(None, -32600, "Invalid Request")
    req_id = payload.get("id")
    fn = methods.get(payload.get("method", ""))
    if fn is None:
        return _rpc_error(req_id, -32601, "Method not found")

    params = payload.get("params") or {}
    if isinstance(params, list):
        # Positional form: a single object argument.
        params = params[0] if params else {}
    if not isinstance(params, dict):
        return _rpc_error(req_id, -32602, "Invalid params")

    try:
        result = fn(service, params)
    except EntropyError as e:
        return {"jsonrpc": "2.0", "id": req_id, "error": error_object(e)}
    except (ValidationError, TypeError) as e:
        return _rpc_error(req_id, -32602, "Invalid params", str(e))
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


# --------------------------------------------------------------------------------------
# Mount helper
# --------------------------------------------------------------------------------------

def mount_entropy_rpc(
    app: FastAPI,
    *,
    service: EntropyService,
    rest_prefix: str = "/entropy",
    rpc_path: str = "/rpc",
) -> None:
    """
    Mount REST routes, the JSON-RPC endpoint and protocol error handling.

    Parameters
    ----------
    app : FastAPI
        The host application.
    service : EntropyService
        The protocol service every route delegates to.
    rest_prefix : str
        Prefix for REST endpoints (default: '/entropy').
    rpc_path : str
        Path of the JSON-RPC endpoint (default: '/rpc').
    """
    app.include_router(get_router(service, rest_prefix))

    @app.exception_handler(EntropyError)
    async def _entropy_error(_request: Request, exc: EntropyError) -> JSONResponse:
        return JSONResponse(
            status_code=HTTP_STATUS[exc.category],
            content={"error": exc.to_dict(), "retryable": exc.retryable},
        )

    @app.post(rpc_path)
    async def _jsonrpc(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except ValueError:
            return JSONResponse(_rpc_error(None, -32700, "Parse error"))
        if isinstance(payload, list):
            return JSONResponse([dispatch_jsonrpc(service, p) for p in payload])
        return JSONResponse(dispatch_jsonrpc(service, payload))

    logger.info("entropy endpoints mounted at %s and %s", rest_prefix, rpc_path)


def create_app(service: EntropyService) -> FastAPI:
    app = FastAPI(title="Animica Entropy")
    mount_entropy_rpc(app, service=service)
    return app


__all__ = ["get_router", "dispatch_jsonrpc", "mount_entropy_rpc", "create_app"]
