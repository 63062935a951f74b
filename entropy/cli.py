"""
entropy.cli
-----------

Command-line client for the entropy protocol.

Commands operate on the configured record store (``--db`` for a SQLite file,
``--config`` for a JSON/YAML :class:`~entropy.config.EntropyConfig`):

  - init            : initialize the protocol config (admin, platform fee)
  - fund            : mint balance into an account (devnet faucet)
  - register        : register or rotate a provider from a chain secret
  - revelation      : print a provider's chain value for a sequence
  - request         : request randomness as a requester program
  - reveal          : reveal a request (requester side)
  - provide         : keeper loop: register if absent, then reveal every
                      pending callback request with the provider's chain
  - provider        : show a provider record
  - request-info    : show an outstanding request
  - call            : send a raw JSON-RPC call to a remote node
  - serve           : run the REST/JSON-RPC API (uvicorn)

Environment:
  ANIMICA_ENTROPY_* variables configure the service (see EntropyConfig.from_env).
  ANIMICA_RPC_URL overrides the default endpoint for ``call``.

Example:
  entropy --db ./entropy.db init --admin 0x… --default-provider 0x…
  entropy --db ./entropy.db provide --authority 0x… --secret 0x… --chain-length 1000 --fee 10
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
import typer

from .chain.hashchain import HashChain
from .config import EntropyConfig, StorageConfig
from .errors import EntropyError
from .service import EntropyService
from .types.core import CallbackStatus, CapabilityMeta
from .types.records import ProviderRecord
from .utils.bytes import from_hex, jsonable, parse_address, to_hex

logger = logging.getLogger(__name__)

_DEFAULT_RPC = os.getenv("ANIMICA_RPC_URL") or "http://127.0.0.1:8545"

app = typer.Typer(
    name="entropy",
    help="Animica entropy CLI (register → request → reveal).",
    no_args_is_help=True,
    add_completion=False,
)


@dataclass
class _State:
    config: EntropyConfig
    service: Optional[EntropyService] = None

    def svc(self) -> EntropyService:
        if self.service is None:
            self.service = EntropyService.from_config(self.config)
        return self.service


def _state(ctx: typer.Context) -> _State:
    return ctx.obj


def _echo(obj: Any) -> None:
    typer.echo(json.dumps(jsonable(obj), indent=2))


def _addr(value: str, name: str) -> bytes:
    return parse_address(value, name=name)


def _chain_for(rec: ProviderRecord, secret: bytes, hash_fn) -> HashChain:
    """Rebuild the provider chain that matches the record's current registration."""
    return HashChain.from_secret(secret, rec.end_sequence - rec.original_sequence, hash_fn)


def _parse_capability(value: str) -> CapabilityMeta:
    """``0xKEY[:s][:w]`` → CapabilityMeta (s = signer, w = writable)."""
    key, *flags = value.split(":")
    return CapabilityMeta(_addr(key, "capability"), "s" in flags, "w" in flags)


@app.callback()
def _main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(None, "--config", "-c", help="JSON/YAML config file."),
    db: Optional[str] = typer.Option(None, "--db", help="SQLite store path (overrides config)."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Root log level."),
) -> None:
    cfg = EntropyConfig.from_file(config) if config else EntropyConfig.from_env()
    if db:
        cfg.storage = StorageConfig(uri=f"sqlite:///{db}")
    if log_level:
        cfg.log_level = log_level.upper()
    cfg.validate()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = _State(config=cfg)


# --------------------------------------------------------------------- admin


@app.command("init")
def cmd_init(
    ctx: typer.Context,
    admin: str = typer.Option(..., "--admin", help="Admin identity (0x-hex, 32 bytes)."),
    default_provider: str = typer.Option(..., "--default-provider", help="Default provider authority."),
    platform_fee: int = typer.Option(0, "--platform-fee", min=0, help="Flat platform fee per request."),
    payer: Optional[str] = typer.Option(None, "--payer", help="Payer identity (defaults to admin)."),
) -> None:
    """Initialize the protocol config."""
    svc = _state(ctx).svc()
    cfg = svc.initialize(
        _addr(payer or admin, "payer"),
        admin=_addr(admin, "admin"),
        platform_fee=platform_fee,
        default_provider=_addr(default_provider, "default_provider"),
    )
    _echo(cfg.to_dict())


@app.command("fund")
def cmd_fund(
    ctx: typer.Context,
    account: str = typer.Argument(..., help="Account to credit."),
    amount: int = typer.Argument(..., min=0),
) -> None:
    """Mint balance into an account (devnet)."""
    balance = _state(ctx).svc().fund(_addr(account, "account"), amount)
    _echo({"account": account, "balance": balance})


# ------------------------------------------------------------------ provider


@app.command("register")
def cmd_register(
    ctx: typer.Context,
    authority: str = typer.Option(..., "--authority", "-a", help="Provider authority."),
    secret: str = typer.Option(..., "--secret", "-s", help="0x-hex chain secret."),
    chain_length: int = typer.Option(..., "--chain-length", "-n", min=1),
    fee: int = typer.Option(0, "--fee", min=0),
    uri: str = typer.Option("", "--uri"),
    metadata: str = typer.Option("0x", "--metadata", help="0x-hex commitment metadata."),
) -> None:
    """Register a provider, or rotate its chain if already registered."""
    svc = _state(ctx).svc()
    chain = HashChain.from_secret(from_hex(secret, name="secret"), chain_length, svc.hash_fn)
    rec = svc.register(
        _addr(authority, "authority"),
        fee=fee,
        commitment=chain.commitment,
        chain_length=chain_length,
        commitment_metadata=from_hex(metadata, name="metadata"),
        uri=uri.encode("utf-8"),
    )
    _echo(rec.to_dict())


@app.command("revelation")
def cmd_revelation(
    ctx: typer.Context,
    provider: str = typer.Option(..., "--provider", "-p"),
    sequence: int = typer.Option(..., "--sequence", min=0),
    secret: str = typer.Option(..., "--secret", "-s", help="0x-hex chain secret."),
) -> None:
    """Print the provider's chain value for ``sequence``."""
    svc = _state(ctx).svc()
    rec = svc.get_provider(_addr(provider, "provider"))
    chain = _chain_for(rec, from_hex(secret, name="secret"), svc.hash_fn)
    _echo({"sequence": sequence, "providerRandom": to_hex(chain.reveal(sequence - rec.original_sequence))})


@app.command("provide")
def cmd_provide(
    ctx: typer.Context,
    authority: str = typer.Option(..., "--authority", "-a"),
    secret: str = typer.Option(..., "--secret", "-s", help="0x-hex chain secret."),
    chain_length: int = typer.Option(..., "--chain-length", "-n", min=1),
    fee: int = typer.Option(0, "--fee", min=0),
    interval: float = typer.Option(2.0, "--interval", help="Seconds between polls."),
    once: bool = typer.Option(False, "--once", help="Run a single pass and exit."),
    tick_history: bool = typer.Option(False, "--tick-history", help="Record a history marker each pass."),
) -> None:
    """
    Keeper loop: register (if absent) and reveal every pending callback request.

    Requests without a callback stay pending; their requester reveals them
    with the value from ``revelation``.
    """
    svc = _state(ctx).svc()
    auth = _addr(authority, "authority")
    raw_secret = from_hex(secret, name="secret")

    if svc.registry.get(auth) is None:
        chain = HashChain.from_secret(raw_secret, chain_length, svc.hash_fn)
        svc.register(auth, fee=fee, commitment=chain.commitment, chain_length=chain_length)

    while True:
        if tick_history:
            svc.advance_history()
        rec = svc.get_provider(auth)
        chain = _chain_for(rec, raw_secret, svc.hash_fn)
        revealed: List[Dict[str, Any]] = []
        for req in svc.pending_requests(auth):
            if req.callback_status not in (CallbackStatus.NOT_STARTED, CallbackStatus.FAILED):
                continue
            if req.sequence >= rec.end_sequence or req.sequence <= rec.original_sequence:
                # Issued against an earlier chain; no longer verifiable.
                logger.warning("skipping request %d from a rotated chain", req.sequence)
                continue
            try:
                out = svc.reveal_with_callback(
                    auth,
                    auth,
                    req.sequence,
                    provider_random=chain.reveal(req.sequence - rec.original_sequence),
                    capabilities=req.capability_list,
                )
            except EntropyError as e:
                logger.warning("reveal of request %d failed: %s", req.sequence, e)
                continue
            revealed.append({"sequence": out.sequence, "retired": out.retired})
        if revealed:
            _echo(revealed)
        if once:
            break
        time.sleep(interval)


@app.command("provider")
def cmd_provider(ctx: typer.Context, provider: str = typer.Argument(...)) -> None:
    """Show a provider record."""
    _echo(_state(ctx).svc().get_provider(_addr(provider, "provider")).to_dict())


# ----------------------------------------------------------------- requester


@app.command("request")
def cmd_request(
    ctx: typer.Context,
    payer: str = typer.Option(..., "--payer"),
    requester_program: str = typer.Option(..., "--requester-program", "-r"),
    user_random: str = typer.Option(..., "--user-random", "-u", help="0x-hex 32-byte secret; keep it."),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Defaults to the config default."),
    payment: Optional[int] = typer.Option(None, "--payment", min=0, help="Defaults to the required fee."),
    resource_limit: int = typer.Option(0, "--resource-limit", min=0),
    external_entropy: bool = typer.Option(False, "--external-entropy"),
    callback_target: Optional[str] = typer.Option(None, "--callback-target"),
    capability: List[str] = typer.Option([], "--capability", help="0xKEY[:s][:w], repeatable."),
    payload_prefix: str = typer.Option("0x", "--payload-prefix"),
) -> None:
    """Request randomness, with a callback if ``--callback-target`` is given."""
    svc = _state(ctx).svc()
    program = _addr(requester_program, "requester_program")
    prov = None if provider is None else _addr(provider, "provider")
    user = from_hex(user_random, name="user_random")
    if payment is None:
        payment = svc.get_fee(prov, resource_limit)

    if callback_target is None:
        rec = svc.request(
            svc.requester_signer(program),
            payer=_addr(payer, "payer"),
            requester_program=program,
            user_commitment=svc.user_commitment(user),
            payment=payment,
            provider=prov,
            resource_limit=resource_limit,
            use_external_entropy=external_entropy,
        )
    else:
        rec = svc.request_with_callback(
            svc.requester_signer(program),
            payer=_addr(payer, "payer"),
            requester_program=program,
            payment=payment,
            callback_target=_addr(callback_target, "callback_target"),
            capabilities=[_parse_capability(c) for c in capability],
            payload_prefix=from_hex(payload_prefix, name="payload_prefix"),
            user_random=user,
            provider=prov,
            resource_limit=resource_limit,
            use_external_entropy=external_entropy,
        )
    _echo(rec.to_dict())


@app.command("reveal")
def cmd_reveal(
    ctx: typer.Context,
    provider: str = typer.Option(..., "--provider", "-p"),
    sequence: int = typer.Option(..., "--sequence", min=0),
    requester_program: str = typer.Option(..., "--requester-program", "-r"),
    user_random: str = typer.Option(..., "--user-random", "-u"),
    provider_random: str = typer.Option(..., "--provider-random"),
) -> None:
    """Reveal a request without callback as its requester."""
    svc = _state(ctx).svc()
    out = svc.reveal(
        svc.requester_signer(_addr(requester_program, "requester_program")),
        _addr(provider, "provider"),
        sequence,
        user_random=from_hex(user_random, name="user_random"),
        provider_random=from_hex(provider_random, name="provider_random"),
    )
    _echo(
        {
            "sequence": out.sequence,
            "random": out.random,
            "chainDistance": out.chain_distance,
            "retired": out.retired,
        }
    )


@app.command("request-info")
def cmd_request_info(
    ctx: typer.Context,
    provider: str = typer.Argument(...),
    sequence: int = typer.Argument(..., min=0),
) -> None:
    """Show an outstanding request."""
    _echo(_state(ctx).svc().get_request(_addr(provider, "provider"), sequence).to_dict())


# ----------------------------------------------------------------- transport


def _rpc_call(url: str, method: str, params: Dict[str, Any], timeout: float = 10.0) -> Any:
    body = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
    try:
        r = requests.post(url, json=body, timeout=timeout)
    except requests.RequestException as e:
        raise SystemExit(f"RPC POST failed: {e}")
    if r.status_code != 200:
        raise SystemExit(f"RPC error HTTP {r.status_code}: {r.text}")
    data = r.json()
    if data.get("error"):
        raise SystemExit(f"RPC error: {json.dumps(data['error'], indent=2)}")
    return data.get("result")


@app.command("call")
def cmd_call(
    method: str = typer.Argument(..., help="e.g. entropy.getProvider"),
    params: str = typer.Argument("{}", help="JSON object of params."),
    rpc: str = typer.Option(_DEFAULT_RPC, "--rpc", help=f"JSON-RPC endpoint (default: {_DEFAULT_RPC})"),
) -> None:
    """Send a JSON-RPC call to a remote entropy node."""
    _echo(_rpc_call(rpc, method, json.loads(params)))


@app.command("serve")
def cmd_serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8545, "--port"),
) -> None:
    """Serve the REST and JSON-RPC API for the configured store."""
    import uvicorn

    from .rpc.mount import create_app

    uvicorn.run(create_app(_state(ctx).svc()), host=host, port=port)


def main() -> None:  # pragma: no cover - thin wrapper
    try:
        app(prog_name="entropy")
    except EntropyError as e:
        typer.echo(str(e), err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        typer.echo("", err=True)
        sys.exit(130)


if __name__ == "__main__":  # pragma: no cover
    main()
