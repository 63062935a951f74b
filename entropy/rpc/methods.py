"""
entropy.rpc.methods
-------------------

JSON-RPC method shims for the entropy protocol.

These are intentionally thin: they validate/normalize inputs with pydantic,
then delegate to an :class:`entropy.service.EntropyService` that owns
persistence and the protocol core.

Exposed methods:

- entropy.getConfig()
- entropy.getProvider(provider)
- entropy.getRequest(provider, sequence)
- entropy.getFee(provider?, resourceLimit?)
- entropy.register(authority, fee, commitment, chainLength, metadata?, uri?)
- entropy.request(caller, payer, requesterProgram, userCommitment, payment, ...)
- entropy.requestWithCallback(caller, payer, requesterProgram, payment, callbackTarget, ...)
- entropy.reveal(caller, provider, sequence, userRandom, providerRandom)
- entropy.revealWithCallback(caller, provider, sequence, providerRandom, capabilities?, userRandom?)
- entropy.advanceCommitment(caller, provider, targetSequence, providerRandom)

All hex-typed inputs/outputs are 0x-prefixed. Identities are 32 bytes.
"""

from __future__ import annotations

from typing import Annotated, Any, Callable, Dict, List, Mapping, Optional

from pydantic import (AfterValidator, BaseModel, ConfigDict, Field,
                      field_validator)

from ..constants import URI_LEN
from ..errors import EntropyError, ErrorCategory, InvalidArgument
from ..reveal.engine import RevealOutcome
from ..service import EntropyService
from ..types.core import CapabilityMeta
from ..utils.bytes import from_hex, jsonable

# ---------- error mapping ----------

JSONRPC_CODES: Dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION: -32602,
    ErrorCategory.NOT_FOUND: -32004,
    ErrorCategory.SEQUENCING: -32010,
    ErrorCategory.AUTHORIZATION: -32011,
    ErrorCategory.PAYMENT: -32012,
    ErrorCategory.INTEGRITY: -32013,
    ErrorCategory.AVAILABILITY: -32014,
}

HTTP_STATUS: Dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.SEQUENCING: 409,
    ErrorCategory.AUTHORIZATION: 403,
    ErrorCategory.PAYMENT: 402,
    ErrorCategory.INTEGRITY: 422,
    ErrorCategory.AVAILABILITY: 410,
}


def error_object(e: EntropyError) -> Dict[str, Any]:
    """JSON-RPC ``error`` member for a protocol error."""
    data = e.to_dict()
    data["retryable"] = e.retryable
    return {"code": JSONRPC_CODES[e.category], "message": str(e), "data": data}


# ---------- helpers ----------

def _hex(v: str) -> str:
    try:
        from_hex(v)
    except InvalidArgument as e:
        raise ValueError(e.message) from None
    return v


def _hex32(v: str) -> str:
    if len(from_hex(_hex(v))) != 32:
        raise ValueError("expected 32 bytes of 0x-hex")
    return v


Hex32 = Annotated[str, AfterValidator(_hex32)]
HexBytes = Annotated[str, AfterValidator(_hex)]


class _Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class CapabilityParam(_Params):
    key: Hex32
    is_signer: bool = Field(default=False, alias="isSigner")
    is_writable: bool = Field(default=False, alias="isWritable")

    def to_meta(self) -> CapabilityMeta:
        return CapabilityMeta(from_hex(self.key), self.is_signer, self.is_writable)


# ---------- request models ----------

class ProviderQuery(_Params):
    provider: Hex32


class RequestQuery(ProviderQuery):
    sequence: int = Field(..., ge=0)


class FeeQuery(_Params):
    provider: Optional[Hex32] = None
    resource_limit: int = Field(default=0, ge=0, alias="resourceLimit")


class RegisterParams(_Params):
    authority: Hex32
    fee: int = Field(..., ge=0)
    commitment: Hex32
    chain_length: int = Field(..., gt=0, alias="chainLength")
    metadata: HexBytes = "0x"
    uri: str = ""

    @field_validator("uri")
    @classmethod
    def uri_fits(cls, v: str) -> str:
        if len(v.encode("utf-8")) > URI_LEN:
            raise ValueError(f"uri must be at most {URI_LEN} bytes")
        return v


class _RequestBase(_Params):
    caller: Hex32
    payer: Hex32
    requester_program: Hex32 = Field(..., alias="requesterProgram")
    payment: int = Field(..., ge=0)
    provider: Optional[Hex32] = None
    resource_limit: int = Field(default=0, ge=0, alias="resourceLimit")
    use_external_entropy: bool = Field(default=False, alias="useExternalEntropy")


class RequestParams(_RequestBase):
    user_commitment: Hex32 = Field(..., alias="userCommitment")


class RequestWithCallbackParams(_RequestBase):
    callback_target: Hex32 = Field(..., alias="callbackTarget")
    capabilities: List[CapabilityParam] = Field(default_factory=list)
    payload_prefix: HexBytes = Field(default="0x", alias="payloadPrefix")
    user_random: Optional[Hex32] = Field(default=None, alias="userRandom")


class RevealParams(_Params):
    caller: Hex32
    provider: Hex32
    sequence: int = Field(..., ge=0)
    user_random: Hex32 = Field(..., alias="userRandom")
    provider_random: Hex32 = Field(..., alias="providerRandom")


class RevealWithCallbackParams(_Params):
    caller: Hex32
    provider: Hex32
    sequence: int = Field(..., ge=0)
    provider_random: Hex32 = Field(..., alias="providerRandom")
    capabilities: List[CapabilityParam] = Field(default_factory=list)
    user_random: Optional[Hex32] = Field(default=None, alias="userRandom")


class AdvanceParams(_Params):
    caller: Hex32
    provider: Hex32
    target_sequence: int = Field(..., ge=0, alias="targetSequence")
    provider_random: Hex32 = Field(..., alias="providerRandom")


# ---------- views ----------

def outcome_view(out: RevealOutcome) -> Dict[str, Any]:
    return {
        "provider": jsonable(out.provider),
        "sequence": out.sequence,
        "random": jsonable(out.random),
        "chainDistance": out.chain_distance,
        "retired": out.retired,
        "callbackStatus": out.callback_status.name,
        "callbackError": out.callback_error,
    }


# ---------- method handlers ----------

def entropy_get_config(service: EntropyService, _args: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    return jsonable(service.get_config().to_dict())


def entropy_get_provider(service: EntropyService, args: Mapping[str, Any]) -> Dict[str, Any]:
    q = ProviderQuery(**args)
    return jsonable(service.get_provider(from_hex(q.provider)).to_dict())


def entropy_get_request(service: EntropyService, args: Mapping[str, Any]) -> Dict[str, Any]:
    q = RequestQuery(**args)
    return jsonable(service.get_request(from_hex(q.provider), q.sequence).to_dict())


def entropy_get_fee(service: EntropyService, args: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    q = FeeQuery(**(args or {}))
    provider = None if q.provider is None else from_hex(q.provider)
    return {"fee": service.get_fee(provider, q.resource_limit), "resourceLimit": q.resource_limit}


def entropy_register(service: EntropyService, args: Mapping[str, Any]) -> Dict[str, Any]:
    p = RegisterParams(**args)
    rec = service.register(
        from_hex(p.authority),
        fee=p.fee,
        commitment=from_hex(p.commitment),
        chain_length=p.chain_length,
        commitment_metadata=from_hex(p.metadata),
        uri=p.uri.encode("utf-8"),
    )
    return jsonable(rec.to_dict())


def entropy_request(service: EntropyService, args: Mapping[str, Any]) -> Dict[str, Any]:
    p = RequestParams(**args)
    rec = service.request(
        from_hex(p.caller),
        payer=from_hex(p.payer),
        requester_program=from_hex(p.requester_program),
        user_commitment=from_hex(p.user_commitment),
        payment=p.payment,
        provider=None if p.provider is None else from_hex(p.provider),
        resource_limit=p.resource_limit,
        use_external_entropy=p.use_external_entropy,
    )
    return jsonable(rec.to_dict())


def entropy_request_with_callback(service: EntropyService, args: Mapping[str, Any]) -> Dict[str, Any]:
    p = RequestWithCallbackParams(**args)
    rec = service.request_with_callback(
        from_hex(p.caller),
        payer=from_hex(p.payer),
        requester_program=from_hex(p.requester_program),
        payment=p.payment,
        callback_target=from_hex(p.callback_target),
        capabilities=[c.to_meta() for c in p.capabilities],
        payload_prefix=from_hex(p.payload_prefix),
        user_random=None if p.user_random is None else from_hex(p.user_random),
        provider=None if p.provider is None else from_hex(p.provider),
        resource_limit=p.resource_limit,
        use_external_entropy=p.use_external_entropy,
    )
    return jsonable(rec.to_dict())


def entropy_reveal(service: EntropyService, args: Mapping[str, Any]) -> Dict[str, Any]:
    p = RevealParams(**args)
    out = service.reveal(
        from_hex(p.caller),
        from_hex(p.provider),
        p.sequence,
        user_random=from_hex(p.user_random),
        provider_random=from_hex(p.provider_random),
    )
    return outcome_view(out)


def entropy_reveal_with_callback(service: EntropyService, args: Mapping[str, Any]) -> Dict[str, Any]:
    p = RevealWithCallbackParams(**args)
    out = service.reveal_with_callback(
        from_hex(p.caller),
        from_hex(p.provider),
        p.sequence,
        provider_random=from_hex(p.provider_random),
        capabilities=[c.to_meta() for c in p.capabilities],
        user_random=None if p.user_random is None else from_hex(p.user_random),
    )
    return outcome_view(out)


def entropy_advance_commitment(service: EntropyService, args: Mapping[str, Any]) -> Dict[str, Any]:
    p = AdvanceParams(**args)
    rec = service.advance_commitment(
        from_hex(p.caller), from_hex(p.provider), p.target_sequence, from_hex(p.provider_random)
    )
    return jsonable(rec.to_dict())


# Public registry mapping JSON-RPC method names to callables.
# Each callable has signature: (service, args_dict) -> result
RPC_METHODS: Dict[str, Callable[..., Any]] = {
    "entropy.getConfig": entropy_get_config,
    "entropy.getProvider": entropy_get_provider,
    "entropy.getRequest": entropy_get_request,
    "entropy.getFee": entropy_get_fee,
    "entropy.register": entropy_register,
    "entropy.request": entropy_request,
    "entropy.requestWithCallback": entropy_request_with_callback,
    "entropy.reveal": entropy_reveal,
    "entropy.revealWithCallback": entropy_reveal_with_callback,
    "entropy.advanceCommitment": entropy_advance_commitment,
}

__all__ = [
    "RPC_METHODS",
    "JSONRPC_CODES",
    "HTTP_STATUS",
    "error_object",
    "outcome_view",
    "CapabilityParam",
    "RegisterParams",
    "RequestParams",
    "RequestWithCallbackParams",
    "RevealParams",
    "RevealWithCallbackParams",
    "AdvanceParams",
]
