"""
helpflow command line.

Small terminal front end over the engine: browse and play tutorials, infer a
skill tier from completion times, fetch contextual insights and manage the
YAML configuration.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import click
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from . import __version__
from .catalog import TutorialCatalog
from .config import HelpflowConfig
from .errors import ConfigError, ResourceNotFoundError
from .events import HIGHLIGHT_REQUESTED, TUTORIAL_STEP_CHANGED, WILDCARD, Event
from .logging_config import configure_logging
from .models import HelpContext, Pace, SkillLevel, Tutorial
from .session import HelpSession
from .settings import AppSettings
from .skill import DisclosureProgress, average_time_ms
from .timers import AsyncioScheduler

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "helpflow.yaml"


def _load_config(config_path: Optional[str]) -> HelpflowConfig:
    env = AppSettings()
    path = config_path or env.config_path
    try:
        if path:
            if not Path(path).exists():
                raise ConfigError(f"file {path} does not exist")
            base = HelpflowConfig.from_file(Path(path))
        elif Path(DEFAULT_CONFIG_FILE).exists():
            base = HelpflowConfig.from_file(Path(DEFAULT_CONFIG_FILE))
        else:
            base = HelpflowConfig()
        return env.to_runtime_config(base)
    except (ValidationError, yaml.YAMLError) as e:
        raise ConfigError(f"invalid configuration: {e}") from e


def _load_catalog(catalog_path: Optional[str]) -> TutorialCatalog:
    if not catalog_path:
        return TutorialCatalog.builtin()
    try:
        return TutorialCatalog.from_file(Path(catalog_path))
    except FileNotFoundError as e:
        raise ConfigError(str(e)) from e
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot load tutorials: {e}") from e


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="helpflow")
@click.option("--log-level", default=None, help="Log level (override env)")
@click.option("--log-format", default=None, type=click.Choice(["json", "text"]))
@click.option("--config", "config_path", default=None, help="Path to YAML config")
@click.pass_context
def main(ctx, log_level: Optional[str], log_format: Optional[str], config_path: Optional[str]) -> None:
    """helpflow - adaptive contextual help and interactive tutorials."""
    settings = AppSettings()
    configure_logging(log_level or settings.log_level, log_format or settings.log_format)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@main.command("tutorials")
@click.option("--catalog", "catalog_path", default=None, help="YAML file with tutorial definitions")
@click.option(
    "--skill",
    default=None,
    type=click.Choice([s.value for s in SkillLevel]),
    help="Only show tutorials suited to this skill tier",
)
def tutorials_cmd(catalog_path: Optional[str], skill: Optional[str]) -> None:
    """List available tutorials."""
    catalog = _load_catalog(catalog_path)
    items = catalog.recommend_for(SkillLevel(skill)) if skill else catalog.tutorials

    if not items:
        console.print("[yellow]No tutorials match.[/yellow]")
        return

    table = Table(title="Tutorials")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Level", style="magenta")
    table.add_column("Steps", justify="right")
    table.add_column("Minutes", justify="right")
    for t in items:
        table.add_row(t.id, t.title, t.category.value, str(len(t.steps)), str(t.estimated_minutes))
    console.print(table)


async def _play(config: HelpflowConfig, tutorial: Tutorial, time_scale: float) -> Dict[str, float]:
    loop = asyncio.get_running_loop()
    changed = asyncio.Event()
    session = HelpSession(config=config, scheduler=AsyncioScheduler(time_scale=time_scale))

    def on_step(event: Event) -> None:
        step = tutorial.steps[event.data["step_index"]]
        console.print(f"[bold cyan]{event.data['step_index'] + 1}/{len(tutorial.steps)}[/bold cyan] {step.title}")
        if step.description:
            console.print(f"   {step.description}")

    def on_highlight(event: Event) -> None:
        console.print(f"   [dim]-> look at {event.data['target']}[/dim]")

    session.events.subscribe(TUTORIAL_STEP_CHANGED, on_step)
    session.events.subscribe(HIGHLIGHT_REQUESTED, on_highlight)
    session.events.subscribe(WILDCARD, lambda _e: changed.set())

    async with session:
        player = session.create_tutorial_player()
        player.play()
        player.start(tutorial)
        while player.is_active:
            step = player.current_step
            if step.interaction_required:
                for hint in player.hints_for(step):
                    console.print(f"   [yellow]hint:[/yellow] {hint}")
                done = await loop.run_in_executor(
                    None, lambda: click.confirm(f"   Finished '{step.title}'?", default=True)
                )
                if not done:
                    player.exit()
                elif not player.validate_and_continue():
                    console.print("   [red]Not quite yet, try again.[/red]")
            else:
                changed.clear()
                await changed.wait()
        return player.summary()


@main.command("play")
@click.argument("tutorial_id")
@click.option("--catalog", "catalog_path", default=None, help="YAML file with tutorial definitions")
@click.option("--pace", type=click.Choice([p.value for p in Pace]), default=None, help="Learning pace")
@click.option(
    "--time-scale",
    type=float,
    default=1.0,
    show_default=True,
    help="Multiply step durations by this factor (0.1 plays ten times faster)",
)
@click.pass_context
def play_cmd(ctx, tutorial_id: str, catalog_path: Optional[str], pace: Optional[str], time_scale: float) -> None:
    """Play a tutorial in the terminal, auto-advancing timed steps."""
    if time_scale <= 0:
        raise click.BadParameter("must be positive", param_hint="--time-scale")
    config = _load_config(ctx.obj.get("config_path"))
    if pace:
        config.tutorial.pace = Pace(pace)
    catalog = _load_catalog(catalog_path)
    tutorial = catalog.get(tutorial_id)
    if tutorial is None:
        raise ResourceNotFoundError(
            "tutorial", tutorial_id, known=[t.id for t in catalog.tutorials], cmd="tutorials"
        )

    console.print(f"[bold]{tutorial.title}[/bold] ({tutorial.estimated_minutes} min, {config.tutorial.pace.value} pace)")
    summary = asyncio.run(_play(config, tutorial, time_scale))
    if summary["completed_count"]:
        console.print(f"[green]✅ Completed in {summary['total_time_ms'] / 1000:.1f}s[/green]")
    else:
        console.print("[yellow]Tutorial exited before completion.[/yellow]")


def _parse_completion(text: str) -> Tuple[str, float]:
    level_id, sep, ms = text.partition("=")
    if not sep or not level_id:
        raise click.BadParameter(f"expected LEVEL=MILLISECONDS, got {text!r}")
    try:
        return level_id, float(ms)
    except ValueError:
        raise click.BadParameter(f"{ms!r} is not a number of milliseconds")


@main.command("skill")
@click.argument("completions", nargs=-1)
@click.pass_context
def skill_cmd(ctx, completions: Tuple[str, ...]) -> None:
    """Infer a skill tier from LEVEL=MILLISECONDS completions."""
    config = _load_config(ctx.obj.get("config_path"))
    history: Dict[str, float] = {}
    for item in completions:
        level_id, ms = _parse_completion(item)
        history[level_id] = ms

    progress = DisclosureProgress.from_history(history, config.skill)
    console.print(f"Completed levels: {len(progress.completed_levels)}")
    console.print(f"Average time: {average_time_ms(progress) / 1000:.1f}s")
    console.print(f"Skill level: [bold magenta]{progress.skill_level.value}[/bold magenta]")


async def _insights(config: HelpflowConfig, context: HelpContext, next_steps: bool):
    async with HelpSession(config=config) as session:
        panel = session.create_panel()
        insights = await panel.refresh(context)
        steps = await session.suggest_next_steps(context) if next_steps else []
        return insights, steps


@main.command("insights")
@click.argument("feature")
@click.argument("component")
@click.option("--action", "user_action", default=None, help="What the user is doing")
@click.option("--next-steps", is_flag=True, default=False, help="Also suggest next steps")
@click.pass_context
def insights_cmd(ctx, feature: str, component: str, user_action: Optional[str], next_steps: bool) -> None:
    """Fetch contextual insights for FEATURE/COMPONENT."""
    config = _load_config(ctx.obj.get("config_path"))
    context = HelpContext(feature=feature, component=component, user_action=user_action)
    insights, steps = asyncio.run(_insights(config, context, next_steps))

    table = Table(title=f"Insights for {context.fingerprint}")
    table.add_column("Priority", style="magenta")
    table.add_column("Category")
    table.add_column("Title", style="cyan")
    table.add_column("Content")
    for insight in insights:
        table.add_row(insight.priority.value, insight.category, insight.title, insight.content)
    console.print(table)

    if steps:
        console.print("[bold]Next steps:[/bold]")
        for step in steps:
            console.print(f"  • {step}")


@main.group("config")
def config_group() -> None:
    """Show or create the YAML configuration."""


@config_group.command("show")
@click.pass_context
def config_show(ctx) -> None:
    """Print the effective configuration (file + environment)."""
    config = _load_config(ctx.obj.get("config_path"))
    data = config.model_dump(mode="json")
    if data["gateway"].get("api_key"):
        data["gateway"]["api_key"] = "***"
    click.echo(yaml.safe_dump(data, default_flow_style=False, indent=2))


@config_group.command("init")
@click.option("--path", "path", default=DEFAULT_CONFIG_FILE, show_default=True, help="Where to write")
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing file")
def config_init(path: str, force: bool) -> None:
    """Write a default configuration file."""
    target = Path(path)
    if target.exists() and not force:
        raise ConfigError(f"{target} already exists (use --force to overwrite)")
    HelpflowConfig().save_to_file(target)
    console.print(f"[green]✅ Wrote {target}[/green]")


if __name__ == "__main__":  # pragma: no cover
    main()
