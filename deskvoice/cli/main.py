"""
deskvoice CLI - run natural-language commands against the desktop UI.
"""

import asyncio
from functools import wraps
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table
from rich.text import Text

from deskvoice.device import get_capability
from deskvoice.errors import DeskVoiceError, NoIntentMatched, ResolutionError
from deskvoice.language import IntentResolver, LanguageResourceStore
from deskvoice.models import TaskStatus
from deskvoice.service import CommandService
from deskvoice.utils import load_config, setup_logger, setup_utf8_console
from deskvoice.utils.config import AppConfig

console = Console()

STATUS_STYLES = {
    TaskStatus.SUCCEEDED: "green",
    TaskStatus.FAILED: "red",
    TaskStatus.CANCELLED: "yellow",
    TaskStatus.PENDING: "dim",
    TaskStatus.RUNNING: "cyan",
}


def coro(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def _load(config_path: Optional[str], debug: bool) -> AppConfig:
    config = load_config(config_path)
    setup_logger("DEBUG" if debug else config.logging.level, config.logging.file)
    return config


@click.group()
def cli():
    """Natural-language commands for desktop UI automation."""
    setup_utf8_console()


@cli.command()
@click.argument("text")
@click.option("--locale", "-l", help="Phrase table locale (defaults to the configured language)")
@click.option("--config", "-c", "config_path", type=click.Path(exists=True), help="Path to config.yaml")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def resolve(text: str, locale: Optional[str], config_path: Optional[str], debug: bool):
    """Resolve TEXT into an intent without executing it."""
    try:
        config = _load(config_path, debug)
        store = LanguageResourceStore.load(config.lang_dir, config.aliases)
        intents = IntentResolver(store).resolve_all(text, locale or config.language)
    except NoIntentMatched as e:
        console.print(f"[red]{e}[/]")
        console.print(store.message(e.locale, "hint"))
        raise SystemExit(2)
    except ResolutionError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(2)
    except DeskVoiceError as e:
        console.print(f"[red]Error: {e}[/]")
        raise SystemExit(1)

    for intent in intents:
        console.print_json(intent.model_dump_json())


@cli.command()
@click.argument("commands", nargs=-1, required=True)
@click.option("--locale", "-l", help="Phrase table locale (defaults to the configured language)")
@click.option("--config", "-c", "config_path", type=click.Path(exists=True), help="Path to config.yaml")
@click.option("--tree", type=click.Path(exists=True), help="Run against a simulated element tree (YAML)")
@click.option("--timeout", type=float, default=60.0, help="Seconds to wait for each command")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@coro
async def run(
    commands: Tuple[str, ...],
    locale: Optional[str],
    config_path: Optional[str],
    tree: Optional[str],
    timeout: float,
    debug: bool,
):
    """Execute one or more COMMANDS and print their final status."""
    try:
        config = _load(config_path, debug)
        if tree:
            config.backend.kind = "simulated"
            config.backend.tree = None
            config.backend.tree_file = tree
        store = LanguageResourceStore.load(config.lang_dir, config.aliases)
        service = CommandService(config, store, get_capability(config.backend))
    except DeskVoiceError as e:
        console.print(f"[red]Error: {e}[/]")
        raise SystemExit(1)

    table = Table(title="deskvoice")
    table.add_column("#", justify="right")
    table.add_column("Command")
    table.add_column("Status")
    table.add_column("Detail")

    command_locale = locale or config.language
    failed = False
    async with service:
        for text in commands:
            try:
                task_id = service.submit_command(text, locale)
            except NoIntentMatched:
                table.add_row("-", Text(text), "[red]unresolved[/]", Text(store.message(command_locale, "hint")))
                failed = True
                continue
            except DeskVoiceError as e:
                detail = store.message(command_locale, "error", error=e)
                table.add_row("-", Text(text), "[red]unresolved[/]", Text(detail))
                failed = True
                continue

            try:
                report = await service.wait(task_id, timeout=timeout)
            except asyncio.TimeoutError:
                service.cancel(task_id)
                report = service.get_status(task_id)

            style = STATUS_STYLES.get(report.status, "white")
            detail = report.detail or ""
            if report.result is not None:
                detail = str(report.result)
            table.add_row(str(task_id), Text(text), f"[{style}]{report.status.value}[/]", Text(detail))
            failed = failed or report.status != TaskStatus.SUCCEEDED

    console.print(table)
    if failed:
        raise SystemExit(1)


@cli.command()
@click.option("--config", "-c", "config_path", type=click.Path(exists=True), help="Path to config.yaml")
def locales(config_path: Optional[str]):
    """List the configured phrase tables."""
    try:
        config = _load(config_path, False)
        store = LanguageResourceStore.load(config.lang_dir, config.aliases)
    except DeskVoiceError as e:
        console.print(f"[red]Error: {e}[/]")
        raise SystemExit(1)

    for locale in store.locales():
        marker = " (default)" if locale == config.language else ""
        console.print(f"{locale}: {len(store.table(locale).rules)} rules{marker}")


if __name__ == "__main__":
    cli()
