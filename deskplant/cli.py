"""
DeskPlant launcher.

`deskplant run` starts the headless background process: the timer driver,
the slow health check and console notifications. `deskplant status` prints
the plant and today's totals. Timer control belongs to the presentation
layer, not to this launcher.
"""

import asyncio
import logging
import signal

import typer
from rich.console import Console
from rich.table import Table

from deskplant.config import load_config
from deskplant.coordinator import AppCoordinator, build_context
from deskplant.exceptions import ConfigError
from deskplant.notifications import ConsoleNotifier
from deskplant.scheduler import PeriodicTask
from deskplant.storage import SQLiteStore

console = Console()

app = typer.Typer(
    name="deskplant",
    help="Focus timer that grows a desk plant",
    add_completion=False,
)


async def _run_forever(coordinator: AppCoordinator) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    await coordinator.start()
    try:
        await stop.wait()
    finally:
        coordinator.shutdown()


@app.command()
def run(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to the console"),
) -> None:
    """Start DeskPlant in the background."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)

    try:
        config = load_config()
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    with SQLiteStore(config.db_path) as store:
        context = build_context(
            config,
            store=store,
            notify=ConsoleNotifier(console),
            timer_ticker=PeriodicTask(config.tick_interval, name="timer-tick"),
        )
        coordinator = AppCoordinator(context)
        console.print(
            f"[green]DeskPlant running[/green] - {context.plant.display_emoji} "
            f"{context.plant.plant_type.value}, health {context.plant.health:.0f}%"
        )
        asyncio.run(_run_forever(coordinator))


@app.command()
def status() -> None:
    """Show plant health and today's focus totals."""
    try:
        config = load_config()
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    with SQLiteStore(config.db_path) as store:
        context = build_context(config, store=store)
        plant = context.plant
        today = context.stats.today_stats()

        table = Table(title=f"{plant.display_emoji} DeskPlant", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("Plant", plant.plant_type.value)
        table.add_row("Health", f"{plant.health:.0f}% ({plant.health_status.value})")
        table.add_row("Level", str(plant.level))
        table.add_row("Sessions", str(plant.total_sessions))
        table.add_row("Today", f"{today.sessions_completed} sessions, {today.total_minutes} min" if today else "-")
        table.add_row("Streak", f"{context.stats.streak()} days")
        table.add_row("License", "Pro" if context.license.is_licensed else "Free")
        console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
