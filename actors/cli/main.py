"""Credlease CLI actor implemented with Typer."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import typer

from packages.credlease_shared.config import load_settings
from packages.credlease_shared.envelope import (
    Envelope,
    EnvelopeKind,
    EnvelopeMeta,
    new_meta,
)
from packages.credlease_shared.errors import ErrorCategory
from packages.credlease_shared.logging import configure_logging
from services.state.credential_authority import (
    ConnectionOutcome,
    CredentialAuthorityService,
    build_credential_authority_service,
)

SUCCESS_EXIT_CODE = 0
DOMAIN_ERROR_EXIT_CODE = 3
DEPENDENCY_ERROR_EXIT_CODE = 4

_MASKED_SECRET = "********"


@dataclass(frozen=True)
class CliConfig:
    """Global CLI runtime options propagated to service calls."""

    config_path: str | None
    principal: str
    source: str
    log_level: str
    as_json: bool
    trace_id: str | None
    parent_id: str | None


def _serialize(value: Any) -> Any:
    """Convert result objects to JSON-serializable structures."""
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date, Path)):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_serialize(item) for item in value]
    if hasattr(value, "model_dump"):
        return _serialize(value.model_dump(mode="python"))
    return str(value)


def _emit_output(result: Any, as_json: bool) -> None:
    """Render command output in requested format."""
    data = _serialize(result)
    if as_json:
        typer.echo(json.dumps(data, sort_keys=True, separators=(",", ":")))
        return
    rendered = _render_human(data)
    if rendered is not None:
        typer.echo(rendered)
        return
    if data is None:
        typer.echo("ok")
        return
    typer.echo(str(data))


def _emit_errors(envelope: Envelope[Any], as_json: bool) -> None:
    """Render envelope errors to stderr."""
    if as_json:
        typer.echo(
            json.dumps(
                {
                    "errors": [
                        {
                            "code": error.code,
                            "message": error.message,
                            "category": error.category.value,
                            "retryable": error.retryable,
                        }
                        for error in envelope.errors
                    ]
                },
                sort_keys=True,
            ),
            err=True,
        )
        return
    for error in envelope.errors:
        typer.echo(f"error: {error.code}: {error.message}", err=True)


def _render_human(data: Any) -> str | None:
    """Return human-oriented rendering for recognized response shapes."""
    if isinstance(data, dict):
        if _looks_like_health(data):
            return _render_health(data)
        if _looks_like_lease(data):
            return _render_lease(data)
        if _looks_like_attempt(data):
            return _render_attempt(data)
        return json.dumps(data, indent=2, sort_keys=True)
    if isinstance(data, list):
        return json.dumps(data, indent=2, sort_keys=True)
    return None


def _looks_like_health(value: dict[str, Any]) -> bool:
    return isinstance(value.get("service_ready"), bool) and isinstance(
        value.get("broker_ready"), bool
    )


def _looks_like_lease(value: dict[str, Any]) -> bool:
    return "lease_id" in value and "generation" in value


def _looks_like_attempt(value: dict[str, Any]) -> bool:
    return "outcome" in value and "attempted_at" in value


def _render_health(data: dict[str, Any]) -> str:
    """Render service and broker readiness for human scanning."""
    service_ready = bool(data["service_ready"])
    broker_ready = bool(data["broker_ready"])
    lines = [
        f"Credential Authority: {_status_icon(service_ready)} {_status_label(service_ready)}",
        f"Secrets Broker: {_status_icon(broker_ready)} {_status_label(broker_ready)}",
    ]
    detail = str(data.get("detail", "")).strip()
    if detail != "" and not broker_ready:
        lines[-1] = f"{lines[-1]} ({detail})"
    return "\n".join(lines)


def _render_lease(data: dict[str, Any]) -> str:
    duration = data.get("lease_duration_seconds")
    expires = "never" if duration == 0 else f"{duration}s after {data.get('issued_at')}"
    return "\n".join(
        [
            f"Lease: {data.get('lease_id')}",
            f"  role: {data.get('role')}",
            f"  username: {data.get('username')}",
            f"  secret: {data.get('secret')}",
            f"  generation: {data.get('generation')}",
            f"  expires: {expires}",
        ]
    )


def _render_attempt(data: dict[str, Any]) -> str:
    outcome = str(data.get("outcome"))
    line = f"{data.get('username')}@{data.get('endpoint')}: {outcome}"
    reason = str(data.get("reason", "")).strip()
    if reason != "":
        line = f"{line} ({reason})"
    return line


def _status_icon(ready: bool) -> str:
    """Return status icon for one readiness value."""
    return "✅" if ready else "⚠️"


def _status_label(ready: bool) -> str:
    """Return status label for one readiness value."""
    return "healthy" if ready else "degraded"


def _build_service(cfg: CliConfig) -> CredentialAuthorityService:
    """Return one service built from layered settings and configure logging."""
    settings = load_settings(config_path=cfg.config_path)
    configure_logging(
        level=cfg.log_level,
        json_output=settings.logging.json_output,
        service=settings.logging.service,
        environment=settings.logging.environment,
    )
    return build_credential_authority_service(settings=settings)


def _meta(cfg: CliConfig) -> EnvelopeMeta:
    return new_meta(
        kind=EnvelopeKind.COMMAND,
        source=cfg.source,
        principal=cfg.principal,
        trace_id=cfg.trace_id,
        parent_id=cfg.parent_id or "",
    )


def _exit_code_for(envelope: Envelope[Any]) -> int:
    """Dependency failures exit 4; every other failure is a domain error."""
    if any(error.category == ErrorCategory.DEPENDENCY for error in envelope.errors):
        return DEPENDENCY_ERROR_EXIT_CODE
    return DOMAIN_ERROR_EXIT_CODE


def _run_command(
    cfg: CliConfig,
    invoke: Callable[[CredentialAuthorityService, EnvelopeMeta], Envelope[Any]],
    *,
    present: Callable[[Any], Any] | None = None,
) -> None:
    """Execute one service call and map envelope outcomes to process semantics."""
    service = _build_service(cfg)
    try:
        envelope = invoke(service, _meta(cfg))
    finally:
        service.close()
    if not envelope.ok:
        _emit_errors(envelope, cfg.as_json)
        raise typer.Exit(code=_exit_code_for(envelope))

    value = envelope.value
    _emit_output(present(value) if present is not None else value, cfg.as_json)
    raise typer.Exit(code=SUCCESS_EXIT_CODE)


def _require_config(ctx: typer.Context) -> CliConfig:
    """Return required CLI config from Typer context."""
    config = ctx.obj
    if not isinstance(config, CliConfig):
        raise RuntimeError("CLI configuration not initialized")
    return config


def _mask_secret(reveal: bool) -> Callable[[Any], Any]:
    def present(lease: Any) -> Any:
        if reveal or lease is None:
            return lease
        return lease.model_copy(update={"secret": _MASKED_SECRET})

    return present


app = typer.Typer(no_args_is_help=True, help="Credential lease manager")
lease_app = typer.Typer(help="Leased credential commands")
root_app = typer.Typer(help="Root credential rotation commands")


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(
        None,
        "--config",
        envvar="CREDLEASE_CONFIG_PATH",
        help="Path to credlease YAML config",
    ),
    principal: str = typer.Option("operator", help="Envelope principal"),
    source: str = typer.Option("cli", help="Envelope source"),
    log_level: str = typer.Option("WARNING", help="Log level for this invocation"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
    trace_id: str | None = typer.Option(None, help="Optional trace id"),
    parent_id: str | None = typer.Option(None, help="Optional parent envelope id"),
) -> None:
    """Store global options for all commands."""
    ctx.obj = CliConfig(
        config_path=config,
        principal=principal,
        source=source,
        log_level=log_level.upper(),
        as_json=as_json,
        trace_id=trace_id,
        parent_id=parent_id,
    )


@lease_app.command("acquire")
def lease_acquire(
    ctx: typer.Context,
    role: str = typer.Argument(..., help="Role name"),
    reveal: bool = typer.Option(False, "--reveal", help="Print the issued secret"),
) -> None:
    """Acquire one leased credential for ROLE."""
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda service, meta: service.acquire_lease(meta=meta, role=role),
        present=_mask_secret(reveal),
    )


@lease_app.command("probe")
def lease_probe(
    ctx: typer.Context,
    role: str = typer.Argument(..., help="Role name"),
) -> None:
    """Acquire a credential for ROLE and try it against its datastore."""
    cfg = _require_config(ctx)
    service = _build_service(cfg)
    meta = _meta(cfg)
    try:
        acquired = service.acquire_lease(meta=meta, role=role)
        if not acquired.ok:
            _emit_errors(acquired, cfg.as_json)
            raise typer.Exit(code=_exit_code_for(acquired))
        probed = service.probe(meta=meta, lease=acquired.value)
    finally:
        service.close()

    if not probed.ok:
        _emit_errors(probed, cfg.as_json)
        raise typer.Exit(code=_exit_code_for(probed))

    attempt = probed.value
    _emit_output(attempt, cfg.as_json)
    if attempt.outcome == ConnectionOutcome.SUCCESS:
        raise typer.Exit(code=SUCCESS_EXIT_CODE)
    if attempt.outcome == ConnectionOutcome.AUTHENTICATION_FAILED:
        raise typer.Exit(code=DOMAIN_ERROR_EXIT_CODE)
    raise typer.Exit(code=DEPENDENCY_ERROR_EXIT_CODE)


@root_app.command("rotate")
def root_rotate(
    ctx: typer.Context,
    datastore: str = typer.Argument(..., help="Datastore name"),
) -> None:
    """Rotate the broker's root credential for DATASTORE.

    Generations are tracked in this process only. Each run starts counting
    at generation 0, so the reported generation is not a durable history.
    """
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda service, meta: service.rotate_root(meta=meta, datastore=datastore),
    )


@root_app.command("status")
def root_status(
    ctx: typer.Context,
    datastore: str = typer.Argument(..., help="Datastore name"),
) -> None:
    """Show rotation status for DATASTORE.

    The local generation is tracked in this process only and is always 0
    for a fresh run. The broker marker reflects the broker's own view.
    """
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda service, meta: service.rotation_status(meta=meta, datastore=datastore),
    )


@app.command("bootstrap")
def bootstrap(ctx: typer.Context) -> None:
    """Write configured datastore connections and roles to the broker."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda service, meta: service.bootstrap(meta=meta))


@app.command("health")
def health(ctx: typer.Context) -> None:
    """Show service and secrets broker readiness."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda service, meta: service.health(meta=meta))


app.add_typer(lease_app, name="lease")
app.add_typer(root_app, name="root")


if __name__ == "__main__":
    app()
