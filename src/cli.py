"""
Command-line interface for the health metrics engine.

Provides commands for:
- Context detection (population group, climate, formula accuracy)
- Full metric calculation
- Goal validation with reasoning traces
- Health and readiness scores
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from src.app_logging import configure_logging
from src.config import get_settings
from src.context import ContextDetector
from src.errors import InvalidInputError, MissingField, load_goal, load_profile
from src.metrics import MetricsCalculator
from src.schemas import (
    CALCULATIONS_VERSION,
    BlockedOutcome,
    CalculatedMetrics,
    DetectionContext,
    Goal,
    GoalType,
    HealthScores,
    Location,
    Season,
    UserBiometricProfile,
    ValidationResult,
    ValidationTier,
)
from src.trace import save_trace_from_result
from src.validator import GoalValidator

app = typer.Typer(
    help="Health Metrics Engine - Transparent metric calculation and goal safety validation"
)
console = Console()

TIER_COLORS = {
    ValidationTier.NONE: "green",
    ValidationTier.CAUTION: "yellow",
    ValidationTier.WARNING: "dark_orange",
    ValidationTier.SEVERE: "red",
    ValidationTier.BLOCKED: "bold red",
}


# ===== INPUT HELPERS =====


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]✗ Failed to read {path}: {e}[/red]")
        raise typer.Exit(1)


def _display_issue(issue) -> None:
    if isinstance(issue, MissingField):
        console.print(f"[red]✗ Missing field:[/red] {issue.field}")
    else:
        console.print(f"[red]✗ Out of range:[/red] {issue.message}")


def _load_profile_file(path: Path) -> UserBiometricProfile:
    """Load a profile JSON file or exit with the typed issue."""
    try:
        profile = load_profile(_read_json(path))
    except InvalidInputError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise typer.Exit(1)
    if not isinstance(profile, UserBiometricProfile):
        _display_issue(profile)
        raise typer.Exit(1)
    return profile


def _load_goal(
    goal_file: Optional[Path],
    goal_types: Optional[List[GoalType]],
    target: Optional[float],
    weeks: Optional[int],
) -> Optional[Goal]:
    """Build a goal from a JSON file or from command-line options."""
    if goal_file is not None:
        data = _read_json(goal_file)
    elif target is not None or weeks is not None or goal_types:
        data = {
            "goal_types": [g.value for g in goal_types or []] or None,
            "target_weight_kg": target,
            "timeline_weeks": weeks,
        }
    else:
        return None

    try:
        goal = load_goal(data)
    except InvalidInputError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise typer.Exit(1)
    if not isinstance(goal, Goal):
        _display_issue(goal)
        raise typer.Exit(1)
    return goal


def _detect(
    profile: UserBiometricProfile,
    season: Optional[Season],
    country: Optional[str],
    region: Optional[str],
) -> DetectionContext:
    settings = get_settings()
    configure_logging(settings.log_level)
    location = None
    if country or region:
        location = Location(
            country=country.upper() if country else None,
            region=region.upper() if region else None,
        )
    return ContextDetector(settings.ask_threshold).detect(profile, season=season, location=location)


def _calculator() -> MetricsCalculator:
    return MetricsCalculator(water_overrides=get_settings().water_overrides)


# ===== DISPLAY HELPER FUNCTIONS =====


def _display_context(context: DetectionContext) -> None:
    table = Table(title="Detection Context", box=box.ROUNDED)
    table.add_column("Detection", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Confidence", justify="right")
    table.add_column("Source")

    table.add_row(
        "Population group",
        context.ethnicity.group.value,
        f"{context.ethnicity.confidence}%",
        context.ethnicity.source,
    )
    table.add_row(
        "Climate zone",
        f"{context.climate.zone.value} (TDEE x{context.climate.tdee_modifier:g}, "
        f"water x{context.climate.water_modifier:g})",
        f"{context.climate.confidence}%",
        context.climate.source,
    )
    table.add_row(
        "BMR formula",
        f"{context.formula_accuracy.bmr_formula.value} "
        f"(+/-{context.formula_accuracy.accuracy_pct:g}%)",
        f"{context.formula_accuracy.confidence}%",
        context.formula_accuracy.rationale,
    )
    if context.season is not None:
        table.add_row("Season", context.season.value, "", "explicit")
    console.print(table)

    for message in (context.ethnicity.message, context.climate.message):
        if message:
            console.print(f"[yellow]? {message}[/yellow]")


def _display_metrics(metrics: CalculatedMetrics) -> None:
    table = Table(title="Calculated Metrics", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")

    table.add_row("BMR", f"{metrics.bmr} kcal")
    table.add_row("TDEE", f"{metrics.tdee} kcal")
    table.add_row("Target calories", f"{metrics.target_calories} kcal")
    table.add_row(
        "Macros",
        f"P {metrics.macros.protein_g} g / C {metrics.macros.carb_g} g / F {metrics.macros.fat_g} g",
    )
    classification = metrics.bmi_classification
    table.add_row("BMI", f"{metrics.bmi:.1f} ({classification.category}, {classification.table.value})")
    table.add_row("Water", f"{metrics.water_ml} ml")
    table.add_row("Max heart rate", f"{metrics.heart_rate.max_heart_rate} bpm")
    if metrics.vo2max is not None:
        table.add_row(
            "VO2 max", f"{metrics.vo2max.vo2max:g} ml/kg/min ({metrics.vo2max.classification})"
        )
    composition = metrics.body_composition
    if composition.lean_mass_kg is not None:
        table.add_row("Lean mass", f"{composition.lean_mass_kg:.1f} kg")
    if composition.estimated_body_fat_pct is not None:
        table.add_row("Estimated body fat", f"{composition.estimated_body_fat_pct:.1f}%")
    table.add_row("Recommended sleep", f"{metrics.sleep.recommended_hours:g} h")
    console.print(table)

    if classification.population_note:
        console.print(f"[yellow]Note:[/yellow] {classification.population_note}")

    zones = Table(title="Heart Rate Zones", box=box.ROUNDED)
    zones.add_column("Zone", justify="center")
    zones.add_column("Name", style="cyan")
    zones.add_column("BPM", justify="right")
    for zone in metrics.heart_rate.zones:
        zones.add_row(str(zone.zone), zone.name, f"{zone.min_bpm}-{zone.max_bpm}")
    console.print(zones)

    console.print("\n[bold]Formulas:[/bold]")
    for selection in metrics.formula_selections:
        console.print(f"  • {selection.metric}: {selection.formula_id} ({selection.accuracy})")


def _display_scores(scores: HealthScores) -> None:
    table = Table(title="Health Scores", box=box.ROUNDED)
    table.add_column("Score", style="cyan")
    table.add_column("Value", justify="right")

    rows = [
        ("Overall health", scores.overall_health),
        ("Diet readiness", scores.diet_readiness),
        ("Fitness readiness", scores.fitness_readiness),
        ("Goal realism", scores.goal_realism),
        ("Sleep efficiency", scores.sleep_efficiency),
    ]
    for name, value in rows:
        if value is None:
            table.add_row(name, "[dim]n/a[/dim]")
            continue
        color = "green" if value >= 70 else "yellow" if value >= 40 else "red"
        table.add_row(name, f"[{color}]{value}[/{color}]")
    console.print(table)

    if scores.recommendations:
        console.print("\n[bold]Recommendations:[/bold]")
        for rec in scores.recommendations:
            console.print(f"  • {rec}")


def _display_validation_result(result: ValidationResult) -> None:
    """Display validation result with color coding and formatting."""
    color = TIER_COLORS[result.tier]
    if isinstance(result.outcome, BlockedOutcome):
        status = f"[{color}]⛔ BLOCKED[/{color}] ({result.outcome.reason.value})"
        detail = result.outcome.detail
    elif result.tier == ValidationTier.NONE:
        status = f"[{color}]✅ ALLOWED[/{color}]"
        detail = "The goal is within sustainable limits."
    else:
        status = f"[{color}]⚠️  ALLOWED - {result.tier.value.upper()}[/{color}]"
        detail = (
            "Acknowledgment required before proceeding."
            if result.requires_acknowledgment
            else "Review the messages below."
        )

    console.print(
        Panel(
            f"{status}\n\n{detail}\n\nRate: {result.weekly_rate_kg:.2f} kg/week "
            f"({result.weekly_rate_pct:.2f}% body weight)",
            title="Goal Validation",
            border_style=color.split()[-1],
        )
    )

    if result.messages:
        console.print("\n[bold]Messages:[/bold]")
        for message in result.messages:
            console.print(f"  • {message}")

    if result.alternatives:
        table = Table(title="Alternatives", box=box.ROUNDED)
        table.add_column("Option", style="cyan")
        table.add_column("kg/week", justify="right")
        table.add_column("Weeks", justify="right")
        for alt in result.alternatives:
            table.add_row(alt.label, f"{alt.weekly_rate_kg:.2f}", str(alt.timeline_weeks))
        console.print(table)

    checks = Table(show_header=True, header_style="bold cyan")
    checks.add_column("Rule", style="cyan")
    checks.add_column("Status", justify="center")
    checks.add_column("Value")
    checks.add_column("Threshold")
    checks.add_column("Tier")
    for check in result.reasoning_trace.checks:
        checks.add_row(
            check.rule,
            "✅" if check.passed else "❌",
            str(check.value),
            str(check.threshold) if check.threshold is not None else "N/A",
            check.tier.value,
        )
    console.print(checks)


# ===== COMMANDS =====


@app.command()
def context(
    profile: Path = typer.Option(..., "--profile", "-p", help="Profile JSON file", exists=True),
    season: Optional[Season] = typer.Option(None, "--season", help="Current season"),
    country: Optional[str] = typer.Option(None, "--country", help="Override country code"),
    region: Optional[str] = typer.Option(None, "--region", help="Override region code"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of tables"),
):
    """Detect population group, climate zone and BMR formula for a profile."""
    user = _load_profile_file(profile)
    detection = _detect(user, season, country, region)
    if as_json:
        console.print_json(detection.model_dump_json())
        return
    _display_context(detection)


@app.command()
def calculate(
    profile: Path = typer.Option(..., "--profile", "-p", help="Profile JSON file", exists=True),
    goal_file: Optional[Path] = typer.Option(None, "--goal", help="Goal JSON file", exists=True),
    goal_types: Optional[List[GoalType]] = typer.Option(None, "--type", "-t", help="Goal type"),
    target: Optional[float] = typer.Option(None, "--target", help="Target weight in kg"),
    weeks: Optional[int] = typer.Option(None, "--weeks", help="Timeline in weeks"),
    season: Optional[Season] = typer.Option(None, "--season", help="Current season"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of tables"),
):
    """Calculate every metric for a profile."""
    user = _load_profile_file(profile)
    goal = _load_goal(goal_file, goal_types, target, weeks)
    detection = _detect(user, season, None, None)
    metrics = _calculator().calculate_all(user, detection, goal)
    if as_json:
        console.print_json(metrics.model_dump_json())
        return
    _display_metrics(metrics)


@app.command()
def validate(
    profile: Path = typer.Option(..., "--profile", "-p", help="Profile JSON file", exists=True),
    goal_file: Optional[Path] = typer.Option(None, "--goal", help="Goal JSON file", exists=True),
    goal_types: Optional[List[GoalType]] = typer.Option(None, "--type", "-t", help="Goal type"),
    target: Optional[float] = typer.Option(None, "--target", help="Target weight in kg"),
    weeks: Optional[int] = typer.Option(None, "--weeks", help="Timeline in weeks"),
    season: Optional[Season] = typer.Option(None, "--season", help="Current season"),
    save_trace: bool = typer.Option(
        False,
        "--save-trace/--no-trace",
        help="Save reasoning trace to file",
    ),
    trace_format: str = typer.Option(
        "json",
        "--trace-format",
        "-f",
        help="Trace output format (json or markdown)",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of tables"),
):
    """
    Validate a goal against physiological safety thresholds.

    Exits with status 1 when the goal is blocked.
    """
    user = _load_profile_file(profile)
    goal = _load_goal(goal_file, goal_types, target, weeks)
    if goal is None:
        console.print("[red]✗ A goal is required: use --goal or --type/--target/--weeks[/red]")
        raise typer.Exit(1)

    detection = _detect(user, season, None, None)
    metrics = _calculator().calculate_all(user, detection, goal)
    result = GoalValidator().validate(goal, metrics, user)

    if as_json:
        console.print_json(result.model_dump_json())
    else:
        _display_validation_result(result)

    if save_trace:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        trace_path = save_trace_from_result(
            result, get_settings().trace_dir, format=trace_format, stamp=stamp
        )
        console.print(f"\n✓ Reasoning trace saved: [cyan]{trace_path}[/cyan]")

    if not result.is_allowed:
        raise typer.Exit(1)


@app.command()
def scores(
    profile: Path = typer.Option(..., "--profile", "-p", help="Profile JSON file", exists=True),
    goal_file: Optional[Path] = typer.Option(None, "--goal", help="Goal JSON file", exists=True),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of tables"),
):
    """Show informational health and readiness scores."""
    user = _load_profile_file(profile)
    goal = _load_goal(goal_file, None, None, None)
    detection = _detect(user, None, None, None)
    metrics = _calculator().calculate_all(user, detection, goal)
    if as_json:
        console.print_json(metrics.scores.model_dump_json())
        return
    _display_scores(metrics.scores)


@app.command()
def version():
    """Show the calculations version stamped on every result."""
    console.print(f"Calculations version: [green]{CALCULATIONS_VERSION}[/green]")


if __name__ == "__main__":
    app()
