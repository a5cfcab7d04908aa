# tier_router/cli.py
"""
CLI entry point for tier-router.

Available commands:
  tier-router models   [--provider P] [--cost-tier T] [--capability C]
  tier-router suggest  [--capability C] [--max-cost-tier T] [--boost-tier B]
  tier-router health
  tier-router account  BOOST_TIER [--credits]
  tier-router preflight BOOST_TIER [--task-type T] [--capability C]
  tier-router run      PROMPT [--model M] [--capability C] [--boost-tier B]
  tier-router rate     MODEL_ID --field value ...

Every command accepts --config/-c (YAML config) and --verbose/-v.

Requires: pip install "tier-router[cli]"
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

try:
    import typer
    from rich.console import Console
    from rich.table import Table
except ImportError as exc:  # pragma: no cover
    raise ImportError(
        "CLI dependencies missing. Install with: pip install 'tier-router[cli]'"
    ) from exc

from .exceptions import TierRouterError
from .models import HealthState, ModelDescriptor, RunError
from .router import TierRouter

app = typer.Typer(
    name="tier-router",
    help="Cost-tier-aware model routing across free, credit-backed and paid providers.",
    add_completion=False,
)
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Path to router.yaml")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Log to stderr")

_STATUS_STYLE = {
    HealthState.HEALTHY: "[green]healthy[/green]",
    HealthState.DEGRADED: "[yellow]degraded[/yellow]",
    HealthState.DOWN: "[red]down[/red]",
    HealthState.UNKNOWN: "[dim]unknown[/dim]",
}


def _load_router(config_path: Optional[str], verbose: bool = False) -> TierRouter:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    if config_path:
        return TierRouter.from_yaml(config_path)
    return TierRouter.from_env()


def _fail(exc: TierRouterError) -> None:
    console.print(f"[red]{exc.code}[/red] {exc.message}")
    raise typer.Exit(1)


def _models_table(title: str, models: list[ModelDescriptor], score: bool = False) -> Table:
    """Render descriptors as a Rich table."""
    table = Table(title=title, show_lines=False)
    table.add_column("Model", style="bold cyan", no_wrap=True)
    table.add_column("Provider")
    table.add_column("Cost tier")
    if score:
        table.add_column("Score", justify="right")
    table.add_column("Speed", justify="right")
    table.add_column("Capabilities")

    for m in models:
        caps = ", ".join(name for name, on in m.capabilities.model_dump().items() if on)
        row = [m.id, m.provider, m.cost_tier.value]
        if score:
            row.append(str(getattr(m, "score", 0)))
        row += [str(m.rating("speed")), caps]
        table.add_row(*row)
    return table


@app.command()
def models(
    provider: Optional[str] = typer.Option(None, "--provider", "-p"),
    cost_tier: Optional[str] = typer.Option(None, "--cost-tier", "-t"),
    capability: Optional[str] = typer.Option(None, "--capability"),
    config: Optional[str] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """List catalog models, optionally filtered."""
    router = _load_router(config, verbose)
    try:
        found = router.list_models(provider=provider, cost_tier=cost_tier, capability=capability)
    except TierRouterError as exc:
        _fail(exc)
    console.print(_models_table(f"Models ({len(found)})", found))


@app.command()
def suggest(
    capability: Optional[str] = typer.Option(None, "--capability"),
    max_cost_tier: Optional[str] = typer.Option(None, "--max-cost-tier"),
    boost_tier: Optional[str] = typer.Option(None, "--boost-tier", "-b"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p"),
    limit: int = typer.Option(10, "--limit", "-n"),
    config: Optional[str] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Rank models for a capability, cheapest tier first."""
    router = _load_router(config, verbose)
    constraints = {"capability": capability, "max_cost_tier": max_cost_tier, "provider": provider}
    try:
        ranked = router.suggest(constraints, boost_tier=boost_tier)
    except TierRouterError as exc:
        _fail(exc)
    console.print(_models_table("Suggestions", list(ranked[:limit]), score=True))


@app.command()
def health(
    config: Optional[str] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show provider health derived from recorded calls."""
    router = _load_router(config, verbose)
    report = router.provider_health()

    table = Table(title="Provider Health", show_lines=True)
    table.add_column("Provider", style="bold cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Latency")
    table.add_column("Success rate")
    table.add_column("Errors (1h)")
    table.add_column("Models", justify="right")
    for s in report.providers:
        rate = "-" if s.success_rate_last_hour is None else f"{s.success_rate_last_hour:.0%}"
        latency = "-" if s.latency_ms is None else f"{s.latency_ms}ms"
        table.add_row(
            s.provider,
            _STATUS_STYLE[s.status],
            latency,
            rate,
            str(s.error_count_last_hour),
            str(s.models_available),
        )
    console.print(table)
    summary = report.summary
    console.print(
        f"{summary.total_providers} providers: {summary.healthy} healthy, "
        f"{summary.degraded} degraded, {summary.down} down, {summary.unknown} unknown"
    )


async def _account(router: TierRouter, boost_tier: str, include_credits: bool) -> Any:
    async with router:
        return await router.account_status(boost_tier, include_credits=include_credits)


@app.command()
def account(
    boost_tier: str = typer.Argument(..., help="turbo or ultra"),
    credits: bool = typer.Option(False, "--credits", help="Also look up the credit balance"),
    config: Optional[str] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Report whether the boost tiers are exhausted for this account."""
    router = _load_router(config, verbose)
    try:
        status = asyncio.run(_account(router, boost_tier, credits))
    except TierRouterError as exc:
        _fail(exc)

    table = Table(title=f"Account: {status.account}", show_lines=True)
    table.add_column("Tier", style="bold cyan")
    table.add_column("Exhausted")
    table.add_column("Usable", justify="right")
    table.add_column("Message")
    for tier in (status.boost_tier_status, status.other_tier_status):
        exhausted = "[red]yes[/red]" if tier.exhausted else "[green]no[/green]"
        table.add_row(tier.boost_tier, exhausted, f"{tier.usable_models}/{tier.total_models}", tier.message or "")
    console.print(table)
    if status.credits is not None:
        balance = status.credits.balance if status.credits.available else status.credits.error
        console.print(f"Credits: {balance}")
    console.print(status.recommendation)


async def _preflight(router: TierRouter, boost_tier: str, task_type: Optional[str], capability: Optional[str]) -> Any:
    async with router:
        return await router.preflight(boost_tier, task_type=task_type, capability=capability)


@app.command()
def preflight(
    boost_tier: str = typer.Argument(..., help="turbo or ultra"),
    task_type: Optional[str] = typer.Option(None, "--task-type"),
    capability: Optional[str] = typer.Option(None, "--capability"),
    config: Optional[str] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Check whether a task can run in a boost tier right now."""
    router = _load_router(config, verbose)
    try:
        result = asyncio.run(_preflight(router, boost_tier, task_type, capability))
    except TierRouterError as exc:
        _fail(exc)
    verdict = "[green]can run[/green]" if result.can_run else "[red]blocked[/red]"
    console.print(f"{verdict}: {result.message}")
    if result.suggested_model:
        console.print(f"Suggested model: [bold]{result.suggested_model}[/bold]")


async def _run(router: TierRouter, request: dict[str, Any]) -> Any:
    async with router:
        return await router.run(request)


@app.command()
def run(
    prompt: str = typer.Argument(..., help="Prompt text"),
    model: Optional[str] = typer.Option(None, "--model", "-m"),
    capability: Optional[str] = typer.Option(None, "--capability"),
    max_cost_tier: Optional[str] = typer.Option(None, "--max-cost-tier"),
    boost_tier: Optional[str] = typer.Option(None, "--boost-tier", "-b"),
    raw: bool = typer.Option(False, "--raw", help="Print the full JSON result"),
    config: Optional[str] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Select a model and run one prompt against it."""
    router = _load_router(config, verbose)
    request = {
        "input": prompt,
        "model_id": model,
        "capability": capability,
        "max_cost_tier": max_cost_tier,
        "boost_tier": boost_tier,
    }
    try:
        result = asyncio.run(_run(router, request))
    except TierRouterError as exc:
        _fail(exc)

    if raw:
        console.print_json(json.dumps(result.model_dump(mode="json")))
        return
    if isinstance(result, RunError):
        console.print(f"[red]{result.error_type}[/red] ({result.status_code}) {result.error}")
        if result.suggestion:
            console.print(f"Try {result.suggestion.next_best_model} on {result.suggestion.next_best_provider}")
        raise typer.Exit(1)
    console.print(f"[dim]{result.model_id} via {result.provider} ({result.metadata.execution_time_ms}ms)[/dim]")
    console.print(result.output)
    if result.boost_tier_exhausted:
        console.print(f"[yellow]{result.boost_tier_message}[/yellow]")


@app.command()
def rate(
    model_id: str = typer.Argument(...),
    chat: Optional[int] = typer.Option(None, "--chat"),
    reasoning: Optional[int] = typer.Option(None, "--reasoning"),
    speed: Optional[int] = typer.Option(None, "--speed"),
    coding: Optional[int] = typer.Option(None, "--coding"),
    vision: Optional[int] = typer.Option(None, "--vision"),
    notes: Optional[str] = typer.Option(None, "--notes"),
    config: Optional[str] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Override a model's ratings (0-5) and notes."""
    router = _load_router(config, verbose)
    body: dict[str, Any] = {
        f"{name}_rating": value
        for name, value in (
            ("chat", chat),
            ("reasoning", reasoning),
            ("speed", speed),
            ("coding", coding),
            ("vision", vision),
        )
        if value is not None
    }
    if notes is not None:
        body["notes"] = notes
    try:
        override = router.update_rating(model_id, body)
    except TierRouterError as exc:
        _fail(exc)
    console.print(f"Updated {model_id}: {override.model_dump(exclude_none=True)}")
