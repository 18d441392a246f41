#!/usr/bin/env python3
"""
Quick start script to demonstrate the Health Metrics Engine.

This script shows the complete workflow:
1. Load a user profile
2. Detect calculation context (population group, climate, formula)
3. Calculate metrics
4. Validate goals at increasing rates
5. Review informational scores
6. Save a reasoning trace
"""

import json
from datetime import date
from pathlib import Path

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from src.context import ContextDetector
from src.errors import load_profile
from src.metrics import MetricsCalculator
from src.schemas import BlockedOutcome, Goal, GoalType, Season, UserBiometricProfile
from src.trace import save_trace_from_result
from src.validator import GoalValidator

console = Console()


def print_header(title: str):
    """Print a formatted header."""
    console.print(f"\n[bold cyan]{title}[/bold cyan]")
    console.print("=" * len(title))


def main():
    """Run the complete demonstration workflow."""
    console.print("\n[bold magenta]Health Metrics Engine[/bold magenta]")
    console.print("[dim]Demonstration of complete workflow[/dim]\n")

    # ===== STEP 1: Load User Profile =====
    print_header("Step 1: Load User Profile")

    profile_path = Path("tests/fixtures/profile_reference.json")
    with open(profile_path) as f:
        profile = load_profile(json.load(f))

    if not isinstance(profile, UserBiometricProfile):
        console.print(f"[red]✗ {profile.message}[/red]")
        return

    console.print(f"✓ Loaded: [green]{profile_path.name}[/green]")
    console.print(f"  {profile.age} years, {profile.gender.value}, {profile.weight_kg:g} kg, {profile.height_cm:g} cm")
    console.print(f"  Activity: {profile.activity_level.value}, country: {profile.country}")

    # ===== STEP 2: Detect Context =====
    print_header("Step 2: Detect Context")

    context = ContextDetector().detect(profile, season=Season.SUMMER)

    console.print(f"  Population: {context.ethnicity.group.value} ({context.ethnicity.confidence}%)")
    console.print(f"  Climate: {context.climate.zone.value} ({context.climate.confidence}%)")
    console.print(f"  BMR formula: {context.formula_accuracy.bmr_formula.value}")
    if context.should_ask_user:
        console.print("  [yellow]Low confidence: the app would ask the user to confirm[/yellow]")

    # ===== STEP 3: Calculate Metrics =====
    print_header("Step 3: Calculate Metrics")

    calculator = MetricsCalculator()
    metrics = calculator.calculate_all(profile, context)

    table = Table(title="Metrics", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="yellow")
    table.add_row("BMR", f"{metrics.bmr} kcal")
    table.add_row("TDEE", f"{metrics.tdee} kcal")
    table.add_row("BMI", f"{metrics.bmi:.1f} ({metrics.bmi_classification.category})")
    table.add_row("Water (summer)", f"{metrics.water_ml} ml")
    table.add_row("Max heart rate", f"{metrics.heart_rate.max_heart_rate} bpm")
    console.print(table)

    # ===== STEP 4: Validate Goals =====
    print_header("Step 4: Validate Goals")

    validator = GoalValidator()
    scenarios = [
        ("Sustainable loss", Goal(goal_types=[GoalType.WEIGHT_LOSS], target_weight_kg=73, timeline_weeks=10)),
        ("Fast loss", Goal(goal_types=[GoalType.WEIGHT_LOSS], target_weight_kg=67, timeline_weeks=10)),
        ("Crash diet", Goal(goal_types=[GoalType.WEIGHT_LOSS], target_weight_kg=65, timeline_weeks=5)),
        (
            "Loss and gain",
            Goal(goal_types=[GoalType.WEIGHT_LOSS, GoalType.WEIGHT_GAIN], target_weight_kg=78, timeline_weeks=10),
        ),
    ]

    results = Table(title="Goal Validation", box=box.ROUNDED)
    results.add_column("Scenario", style="cyan")
    results.add_column("kg/week", justify="right")
    results.add_column("Tier")
    results.add_column("Allowed")

    last_result = None
    for name, goal in scenarios:
        goal_metrics = calculator.calculate_all(profile, context, goal)
        result = validator.validate(goal, goal_metrics, profile)
        allowed = "yes" if result.is_allowed else f"no ({result.outcome.reason.value})"
        results.add_row(name, f"{result.weekly_rate_kg:.2f}", result.tier.value, allowed)
        if not isinstance(result.outcome, BlockedOutcome) and result.alternatives:
            last_result = result
    console.print(results)

    if last_result is not None:
        console.print("\n[bold]Safer alternatives for the last flagged goal:[/bold]")
        for alt in last_result.alternatives:
            console.print(f"  • {alt.label}: {alt.weekly_rate_kg:.2f} kg/week over {alt.timeline_weeks} weeks")

    # ===== STEP 5: Scores =====
    print_header("Step 5: Health Scores")

    scores = metrics.scores
    console.print(f"  Overall health: {scores.overall_health}")
    console.print(f"  Diet readiness: {scores.diet_readiness}")
    console.print(f"  Fitness readiness: {scores.fitness_readiness}")
    for rec in scores.recommendations:
        console.print(f"  • {rec}")

    # ===== STEP 6: Save Trace =====
    print_header("Step 6: Save Reasoning Trace")

    trace_path = None
    if last_result is not None:
        trace_path = save_trace_from_result(
            last_result, Path("traces"), format="markdown", stamp=date.today().strftime("%Y%m%d")
        )
        console.print(f"✓ Trace saved to: [cyan]{trace_path}[/cyan]")

    # ===== COMPLETION =====
    console.print("\n")
    panel = Panel(
        "[green]✓[/green] Demonstration complete!\n\n"
        "The engine successfully:\n"
        "  1. Detected population, climate and formula context\n"
        "  2. Calculated metrics\n"
        "  3. Tiered goals by safety instead of refusing them\n"
        "  4. Scored health and readiness\n\n"
        "Every validation decision is documented in a reasoning trace.",
        title="[bold green]Success[/bold green]",
        border_style="green"
    )
    console.print(panel)

    console.print("\n[bold cyan]Next Steps:[/bold cyan]")
    console.print("  • Run CLI: python3 -m src.cli validate --profile <your-profile.json> --goal <goal.json>")
    console.print("  • Start the API: uvicorn src.api.main:app --reload")
    console.print("  • Run tests: python3 -m pytest\n")


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        console.print(f"\n[red]Error: {e}[/red]")
        console.print("\n[dim]Run from the repository root after: pip install -e .[test][/dim]")
        raise
