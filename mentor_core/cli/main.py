"""
Typer CLI for the mentor-core service.

Commands:
    mentor db init                      - Create database tables
    mentor classify <result.json>       - Classify an execution result file
    mentor profile show <user>          - Show a learner's cognitive profile
    mentor profile recompute <user>     - Rebuild a profile from history
    mentor missions generate <user>     - Plan (and optionally save) daily missions
    mentor mistakes patterns <user>     - Show mistake patterns and trend
    mentor info                         - Show configuration

Usage:
    mentor --help
    mentor classify submission.json
    mentor missions generate user-42 --count 3 --save
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from mentor_core import __version__
from mentor_core.core.execution import ExecutionResult
from mentor_core.core.taxonomy import TrendDirection

app = typer.Typer(
    help="mentor-core CLI: classification, cognitive profiles and daily missions",
    no_args_is_help=True,
)

console = Console()


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Create all tables defined in mentor_core.db.models if they don't exist.

    Safe to run multiple times (idempotent).
    """
    from mentor_core.db.database import init_db

    logger.info("Initializing database tables...")
    init_db()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# CLASSIFY
# ========================================


@app.command("classify")
def classify_file(
    path: Path = typer.Argument(..., help="JSON file holding one execution result"),
) -> None:
    """Classify an execution result and print the diagnosis."""
    from mentor_core.diagnosis import Classifier, summarize

    if not path.exists():
        rprint(f"[red]File not found: {path}[/red]")
        raise typer.Exit(code=1)

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        rprint(f"[red]Invalid JSON in {path}: {e}[/red]")
        raise typer.Exit(code=1)

    result = ExecutionResult.from_dict(payload) if isinstance(payload, dict) else payload
    classification = Classifier().classify(result)

    table = Table(title=f"Classification: {path.name}", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Category", classification.category.label)
    table.add_row("Severity", str(classification.severity))
    table.add_row("Signals", "\n".join(classification.key_signals) or "-")
    table.add_row("Patterns", ", ".join(classification.pattern_matches) or "-")
    table.add_row("Focus", classification.suggested_focus)
    analysis = classification.test_analysis
    if analysis.total:
        table.add_row("Tests", f"{analysis.passed}/{analysis.total} passed")
    console.print(table)

    rprint(f"\n[bold]{summarize(classification)}[/bold]")


# ========================================
# PROFILE COMMANDS
# ========================================

profile_app = typer.Typer(help="Cognitive profiles")
app.add_typer(profile_app, name="profile")


def _print_profile(title: str, values: dict) -> None:
    table = Table(title=title, show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    for key, value in values.items():
        if isinstance(value, dict):
            value = ", ".join(f"{k}={v}" for k, v in sorted(value.items())) or "-"
        table.add_row(key, str(value))
    console.print(table)


@profile_app.command("show")
def profile_show(user_id: str = typer.Argument(..., help="Learner id")) -> None:
    """Show the stored cognitive profile."""
    from mentor_core.profile import CognitiveProfileEngine

    profile = CognitiveProfileEngine().get(user_id)
    if profile is None:
        rprint(f"[yellow]No cognitive profile for {user_id}[/yellow]")
        raise typer.Exit(code=1)

    _print_profile(f"Cognitive Profile: {user_id} (v{profile.version})", profile.to_dict())


@profile_app.command("recompute")
def profile_recompute(user_id: str = typer.Argument(..., help="Learner id")) -> None:
    """Rebuild the cognitive profile from the learner's history."""
    from mentor_core.profile import CognitiveProfileEngine

    metrics = CognitiveProfileEngine().recompute(user_id)
    _print_profile(f"Recomputed Profile: {user_id}", metrics.to_dict())
    rprint("[green]✓[/green] Profile recomputed")


# ========================================
# MISSION COMMANDS
# ========================================

missions_app = typer.Typer(help="Daily missions")
app.add_typer(missions_app, name="missions")


@missions_app.command("generate")
def missions_generate(
    user_id: str = typer.Argument(..., help="Learner id"),
    count: int = typer.Option(None, "--count", "-n", min=1, help="Number of missions"),
    save: bool = typer.Option(False, "--save", help="Replace today's active missions"),
) -> None:
    """Plan today's missions, best first."""
    from mentor_core.missions import MissionGenerator, MissionScheduler

    generator = MissionGenerator()
    templates = generator.generate(user_id, count)

    table = Table(title=f"Missions for {user_id}", show_header=True)
    table.add_column("Priority", justify="right", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Title", style="white")
    table.add_column("Target", justify="right")
    table.add_column("XP", justify="right", style="green")
    table.add_column("Reason", style="dim")
    for template in templates:
        table.add_row(
            str(template.priority_score),
            template.mission_type.value,
            template.title,
            str(template.target_value),
            str(template.xp_reward),
            template.generated_reason,
        )
    console.print(table)

    if save:
        missions = MissionScheduler(generator=generator).save(user_id, templates)
        rprint(f"[green]✓[/green] Saved {len(missions)} missions")


# ========================================
# MISTAKE COMMANDS
# ========================================

mistakes_app = typer.Typer(help="Mistake history")
app.add_typer(mistakes_app, name="mistakes")

TREND_STYLES = {
    TrendDirection.IMPROVING: "green",
    TrendDirection.STABLE: "yellow",
    TrendDirection.WORSENING: "red",
}


@mistakes_app.command("patterns")
def mistakes_patterns(user_id: str = typer.Argument(..., help="Learner id")) -> None:
    """Show mistake counts, recurring mistakes and the weekly trend."""
    from mentor_core.mistakes import MistakeStore

    patterns = MistakeStore().get_patterns(user_id)

    table = Table(title=f"Mistakes by Type: {user_id}", show_header=True)
    table.add_column("Type", style="cyan")
    table.add_column("Count", justify="right", style="green")
    for mistake_type, count in patterns.by_type:
        table.add_row(mistake_type, str(count))
    console.print(table)

    if patterns.by_skill_area:
        area_table = Table(title="Mistakes by Skill Area", show_header=True)
        area_table.add_column("Skill Area", style="cyan")
        area_table.add_column("Count", justify="right", style="green")
        for area, count in patterns.by_skill_area:
            area_table.add_row(area, str(count))
        console.print(area_table)

    if patterns.recurring:
        rprint("\n[bold]Recurring:[/bold]")
        for entry in patterns.recurring:
            rprint(f"  • {entry['mistake_type']}: {entry['description']}")

    trend = patterns.trend
    style = TREND_STYLES[trend.direction]
    rprint(
        f"\nTrend: [{style}]{trend.direction.value}[/{style}] "
        f"({trend.recent_week} this week, {trend.previous_week} last week, "
        f"{trend.percent_change:+d}%)"
    )


# ========================================
# INFO
# ========================================


@app.command("info")
def show_info() -> None:
    """Show configuration."""
    settings = get_settings()

    table = Table(title=f"mentor-core {__version__} Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Database URL", settings.database_url)
    table.add_row("Log Level", settings.log_level)
    table.add_row("Log File", settings.log_file or "Not set")
    table.add_row("Recurrence", f"{settings.recurrence_threshold} in {settings.recurrence_window_days} days")
    table.add_row("Profile EMA alpha", str(settings.profile_ema_alpha))
    table.add_row("Missions per day", str(settings.mission_default_count))
    table.add_row("Selector jitter", str(settings.selector_jitter_max))
    table.add_row("Feedback endpoint", settings.feedback_endpoint_url or "Not set (fallback only)")
    table.add_row("Feedback API key", "***" if settings.feedback_api_key else "Not set")

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB")

    app()


if __name__ == "__main__":
    main()
