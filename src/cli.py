"""
Command-line interface for Promo-Opt.

Provides commands for:
  - Allocating a budget across channels
  - Comparing the five scenario profiles
  - Projecting ROI and reach for explicit budget changes
  - Searching touchpoint sequences with the genetic optimizer
  - Sampling a channel's response curve

Channels are read from a YAML file of the form::

    total_budget: 50000000
    channels:
      - id: field_force
        category: personal
        medium: field
        current_budget: 30000000
        actual_spend: 28000000
        base_roi: 3.2
        response_curve: {saturation_point: 40000000}
        constraint: {min_budget: 20000000, max_budget: 40000000}
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import typer
import yaml
from loguru import logger

app = typer.Typer(
    name="promo-opt",
    help="Promotional budget allocation and touchpoint sequence optimization",
    add_completion=False,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _setup(config_path: Optional[Path], verbose: bool):
    """Load config and reset the log sink to the configured level."""
    from config import load_config, set_config

    cfg = load_config(config_path)
    set_config(cfg)
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else cfg.logging.level)
    return cfg


def load_channels(path: Path) -> tuple[list, float | None]:
    """
    Read channels (and an optional total budget) from YAML.

    A response curve given only as points gets its saturation point
    derived from the samples.
    """
    from core.contracts import Channel, ResponseCurve

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    channels = []
    for raw in data.get("channels", []):
        raw = dict(raw)
        curve = raw.get("response_curve") or {}
        if "saturation_point" not in curve and curve.get("points"):
            raw["response_curve"] = ResponseCurve.from_points(
                [(p["spend"], p["response"]) for p in curve["points"]]
            )
        channels.append(Channel.model_validate(raw))
    return channels, data.get("total_budget")


def _read_channels(path: Path) -> tuple[list, float | None]:
    """load_channels for commands: bad files exit with an error code."""
    from core.exceptions import PromoOptError

    try:
        return load_channels(path)
    except (
        OSError, yaml.YAMLError, AttributeError, KeyError, TypeError, ValueError, PromoOptError,
    ) as exc:
        logger.error(f"Could not read channels from {path}")
        _fail(exc)


def _resolve_budget(budget: Optional[float], file_budget: float | None) -> float:
    if budget is not None:
        return budget
    if file_budget is None:
        logger.error("No budget given: pass --budget or set total_budget in the channels file")
        raise typer.Exit(1)
    return float(file_budget)


def _write_json(payload: Any, output: Optional[Path]) -> None:
    text = json.dumps(payload, indent=2, default=str)
    if output is not None:
        output.write_text(text)
        logger.info(f"Results written to {output}")
    else:
        typer.echo(text)


def _fail(exc: Exception) -> None:
    code = getattr(exc, "code", type(exc).__name__)
    logger.error(f"[{code}] {exc}")
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# allocate
# ---------------------------------------------------------------------------

@app.command()
def allocate(
    channels_file: Path = typer.Argument(..., help="YAML file with channels"),
    budget: Optional[float] = typer.Option(
        None, "--budget", "-b", help="Total budget (overrides the file)",
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config.yaml",
    ),
    plan: bool = typer.Option(False, "--plan", help="Also print the implementation plan"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """
    Distribute a budget across channels by greedy marginal ROI.
    """
    from core.exceptions import PromoOptError
    from optimization.allocator import BudgetAllocator, build_implementation_plan

    cfg = _setup(config_path, verbose)
    channels, file_budget = _read_channels(channels_file)
    total = _resolve_budget(budget, file_budget)

    allocator = BudgetAllocator(settings=cfg.allocation, response_settings=cfg.response)
    try:
        result = allocator.allocate(channels, total)
    except PromoOptError as exc:
        _fail(exc)

    steps = build_implementation_plan(result) if plan else []

    if as_json or output is not None:
        payload = result.to_dict()
        if plan:
            payload["implementation_plan"] = [s.to_dict() for s in steps]
        _write_json(payload, output)
        return

    frame = result.to_frame()[[
        "channel_id", "current_budget", "recommended_budget", "change_pct",
        "expected_roi", "expected_marginal_roi", "saturation_level",
    ]]
    typer.echo(frame.to_string(index=False, float_format=lambda v: f"{v:,.2f}"))
    typer.echo(
        f"\nAllocated {result.total_allocated:,.0f} of {result.total_budget:,.0f}  "
        f"ROI={result.expected_roi:.2f} (current {result.current_roi:.2f}, "
        f"{result.roi_improvement:+.1f}%)  incremental={result.incremental_revenue:,.0f}  "
        f"({result.stop_reason})"
    )
    for step in steps:
        typer.echo(f"Phase {step.phase} [{step.timeline}]: {step.description}")
        for ch, change in step.budget_changes.items():
            typer.echo(f"    {ch}: {change:+,.0f}")


# ---------------------------------------------------------------------------
# scenarios
# ---------------------------------------------------------------------------

@app.command()
def scenarios(
    channels_file: Path = typer.Argument(..., help="YAML file with channels"),
    budget: Optional[float] = typer.Option(
        None, "--budget", "-b", help="Total budget (overrides the file)",
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config.yaml",
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """
    Run every scenario profile and recommend the best ones.
    """
    from core.exceptions import PromoOptError
    from optimization.scenarios import ScenarioEngine, compare_scenarios

    cfg = _setup(config_path, verbose)
    channels, file_budget = _read_channels(channels_file)
    total = _resolve_budget(budget, file_budget)

    engine = ScenarioEngine(
        settings=cfg.scenarios,
        allocation_settings=cfg.allocation,
        response_settings=cfg.response,
    )
    try:
        results = engine.run(channels, total)
    except PromoOptError as exc:
        _fail(exc)
    rec = engine.recommend(results)

    if as_json or output is not None:
        _write_json({
            "scenarios": [s.to_dict() for s in results],
            "best_roi": rec.best_roi.name if rec.best_roi else None,
            "most_balanced": rec.most_balanced.name if rec.most_balanced else None,
        }, output)
        return

    table = compare_scenarios(results, engine)[[
        "scenario", "feasible", "expected_roi", "incremental_revenue",
        "risk_score", "feasibility_score", "balance_score",
    ]]
    typer.echo(table.to_string(index=False, float_format=lambda v: f"{v:,.2f}"))
    if rec.best_roi is not None:
        typer.echo(f"\nBest ROI:      {rec.best_roi.name}")
        typer.echo(f"Most balanced: {rec.most_balanced.name}")
    else:
        typer.echo("\nNo feasible scenario")


# ---------------------------------------------------------------------------
# simulate
# ---------------------------------------------------------------------------

@app.command()
def simulate(
    channels_file: Path = typer.Argument(..., help="YAML file with channels"),
    changes: list[str] = typer.Option(
        [], "--set", help="New budget as channel_id=amount (repeatable)",
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config.yaml",
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """
    Project ROI and reach for explicit channel budgets.
    """
    from core.exceptions import PromoOptError
    from optimization.allocator import BudgetAllocator

    cfg = _setup(config_path, verbose)
    channels, _ = _read_channels(channels_file)

    budgets = {}
    for change in changes:
        try:
            channel_id, amount = change.split("=", 1)
            budgets[channel_id.strip()] = float(amount)
        except ValueError:
            logger.error(f"Expected channel_id=amount, got '{change}'")
            raise typer.Exit(1)

    allocator = BudgetAllocator(settings=cfg.allocation, response_settings=cfg.response)
    try:
        result = allocator.simulate(channels, budgets)
    except PromoOptError as exc:
        _fail(exc)

    if as_json or output is not None:
        _write_json(result.to_dict(), output)
        return

    for a in result.allocations:
        typer.echo(f"{a.channel_id:<20} {a.current_budget:>15,.0f} -> {a.recommended_budget:>15,.0f}")
    typer.echo(
        f"\nProjected ROI {result.projected_roi:.2f} (current {result.current_roi:.2f}, "
        f"{result.roi_change:+.1f}%)  reach {result.reach_impact:+,.0f}"
    )


# ---------------------------------------------------------------------------
# sequence
# ---------------------------------------------------------------------------

@app.command()
def sequence(
    population: int = typer.Option(100, "--population", "-p"),
    generations: int = typer.Option(50, "--generations", "-g"),
    max_budget: float = typer.Option(5000.0, "--max-budget", help="Budget per sequence"),
    max_frequency: int = typer.Option(10, "--max-frequency", help="Touchpoints per sequence"),
    channel: list[str] = typer.Option(
        [], "--channel", help="Allowed channel (repeatable); default is the full catalog",
    ),
    signals_file: Optional[Path] = typer.Option(
        None, "--signals", "-s", help="YAML list of {entity_id, score}",
    ),
    seed: Optional[int] = typer.Option(None, "--seed"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config.yaml",
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """
    Search touchpoint sequences with the genetic optimizer.
    """
    from core.contracts import GAConfig, OpportunitySignal, OptimizationConstraints
    from core.exceptions import PromoOptError
    from sequencing.genetic import optimize_sequence

    cfg = _setup(config_path, verbose)

    signals = []
    if signals_file is not None:
        with open(signals_file) as f:
            signals = [OpportunitySignal.model_validate(s) for s in yaml.safe_load(f) or []]

    ga_config = GAConfig(
        population_size=population,
        generations=generations,
        seed=seed,
        constraints=OptimizationConstraints(
            max_budget=max_budget,
            max_frequency=max_frequency,
            allowed_channels=tuple(channel),
        ),
    )
    try:
        result = optimize_sequence(ga_config, signals, settings=cfg.sequence)
    except PromoOptError as exc:
        _fail(exc)

    if as_json or output is not None:
        payload = result.to_dict()
        payload["history"] = result.history.to_dict(orient="records")
        _write_json(payload, output)
        return

    typer.echo(
        f"Best fitness {result.best_fitness:.4f} "
        f"({result.improvement_over_baseline:+.1f}% vs initial mean), "
        f"feasible {result.feasible_fraction:.0%}, "
        f"last improvement at generation {result.convergence_generation}"
    )
    for rank, chrom in enumerate(result.top_sequences, 1):
        steps = " -> ".join(f"{g.channel}:{g.content}@d{g.timing}" for g in chrom.genes)
        flag = "" if chrom.feasible else " [infeasible]"
        typer.echo(f"{rank}. fitness={chrom.fitness:.4f} cost={chrom.total_cost:,.0f}{flag}")
        typer.echo(f"   {steps}")


# ---------------------------------------------------------------------------
# curve
# ---------------------------------------------------------------------------

@app.command()
def curve(
    channels_file: Path = typer.Argument(..., help="YAML file with channels"),
    channel_id: str = typer.Option(..., "--channel", help="Channel to sample"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config.yaml",
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """
    Sample a channel's modelled response curve.
    """
    from optimization.response_curves import (
        ResponseCurveModel,
        find_optimal_spend,
        find_saturation_point,
    )

    cfg = _setup(config_path, verbose)
    channels, _ = _read_channels(channels_file)
    by_id = {c.id: c for c in channels}
    if channel_id not in by_id:
        logger.error(f"Unknown channel '{channel_id}'. Available: {', '.join(by_id)}")
        raise typer.Exit(1)

    model = ResponseCurveModel(cfg.response)
    frame = model.sample_curve(by_id[channel_id])
    saturation = find_saturation_point(frame)
    optimal = find_optimal_spend(frame)

    if as_json or output is not None:
        _write_json({
            "channel_id": channel_id,
            "saturation_point": saturation,
            "optimal_spend": optimal,
            "points": frame.to_dict(orient="records"),
        }, output)
        return

    typer.echo(frame.to_string(index=False, float_format=lambda v: f"{v:,.2f}"))
    typer.echo(f"\nSaturation: {saturation:,.0f}  Optimal spend: {optimal:,.0f}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
