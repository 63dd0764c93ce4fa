"""
CLI interface for StudyBuddy.

Provides command-line access to the tutor server and its heuristics.
"""

import logging
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from study_buddy.config.loader import TutorConfig, default_config, load_tutor_config
from study_buddy.core.prompts import build_system_prompt
from study_buddy.core.topics import classify_topic, is_on_topic

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def setup_rich_logging(log_level: str = "info") -> None:
    """Route root and uvicorn loggers through a single Rich handler."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False


def _load_config(path: Optional[str]) -> TutorConfig:
    if path is None:
        return default_config()
    return load_tutor_config(path)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """StudyBuddy tutor CLI."""
    if ctx.invoked_subcommand is None:
        console.print("StudyBuddy - Use --help to see available commands")


@app.command()
def serve(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    host: str = typer.Option("127.0.0.1", help="Host to bind the server to"),
    port: int = typer.Option(3001, help="Port to bind the server to"),
    log_level: str = typer.Option("info", "--log-level", help="Logging level"),
):
    """Run the tutoring API server."""
    setup_rich_logging(log_level)
    try:
        tutor_config = _load_config(config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    import uvicorn

    from study_buddy.api.app import create_app

    uvicorn.run(create_app(tutor_config), host=host, port=port, log_config=None)


@app.command()
def classify(
    message: str = typer.Argument(..., help="Student message to classify"),
    prior: Optional[str] = typer.Option(None, "--prior", "-p", help="Topic of the ongoing conversation"),
):
    """Show the topic and relevance verdict for a message."""
    topic = classify_topic(message, prior)
    on_topic = is_on_topic(message)
    console.print(f"[bold]Topic:[/bold] {topic}")
    console.print(f"[bold]On topic:[/bold] {'[green]yes[/]' if on_topic else '[red]no[/]'}")


@app.command()
def prompt(
    topic: str = typer.Option("Mathematics", "--topic", "-t", help="Conversation topic"),
    year_level: int = typer.Option(7, "--year-level", "-y", help="Student year level"),
    curriculum: str = typer.Option("NSW", "--curriculum", help="Curriculum tag"),
    selected: Optional[List[str]] = typer.Option(None, "--selected", "-s", help="Selected topic ids"),
    message: str = typer.Option("", "--message", "-m", help="Student message for scaffold matching"),
):
    """Print the system prompt the tutor would send."""
    console.print(build_system_prompt(topic, year_level, curriculum, selected, message), markup=False)


@app.command("check-config")
def check_config(path: str = typer.Argument(..., help="Path to YAML config")):
    """Validate a configuration file and show its effective values."""
    try:
        tutor_config = load_tutor_config(path)
    except Exception as e:
        console.print(f"[red]Invalid configuration:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title="Tutor configuration")
    table.add_column("Section")
    table.add_column("Setting")
    table.add_column("Value", justify="right")
    for section_name in ("tokens", "sessions", "retention", "model", "defaults"):
        section = getattr(tutor_config, section_name)
        for setting in section.__dataclass_fields__:
            table.add_row(section_name, setting, str(getattr(section, setting)))
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


if __name__ == "__main__":
    app()
