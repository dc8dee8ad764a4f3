"""Command-line interface for the resource pool."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import config
from .core.models import PoolStats
from .core.pool import BoundedResourcePool
from .examples.banking import MockConnection, TransactionService, mock_connection_factory
from .exceptions import PoolExhaustedError, ResourcePoolError
from .logging import get_logger


app = typer.Typer(
    name="resource-pool",
    help="Bounded resource pool demos and diagnostics",
    add_completion=False
)
console = Console()
logger = get_logger(__name__)


def _stats_table(stats: PoolStats, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Capacity", str(stats.capacity))
    table.add_row("Available", str(stats.available))
    table.add_row("Active", str(stats.active))
    table.add_row("Waiting", str(stats.waiting))
    table.add_row("Created", str(stats.total_created))
    table.add_row("Acquired", str(stats.total_acquired))
    table.add_row("Released", str(stats.total_released))
    table.add_row("Timeouts", str(stats.total_timeouts))
    table.add_row("Invalid releases", str(stats.total_invalid_releases))
    return table


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[green]resource-pool v{__version__}[/green]")


@app.command("show-config")
def show_config() -> None:
    """Show the effective configuration."""
    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("POOL_SIZE", str(config.pool.size))
    table.add_row("POOL_ACQUIRE_TIMEOUT", f"{config.pool.acquire_timeout}s")
    table.add_row("POOL_MAX_RETRIES", str(config.pool.max_retries))
    table.add_row("POOL_RETRY_BACKOFF_BASE", f"{config.pool.retry_backoff_base}s")
    table.add_row("POOL_RETRY_BACKOFF_MAX", f"{config.pool.retry_backoff_max}s")
    table.add_row("ENVIRONMENT", config.app.environment)
    table.add_row("LOG_LEVEL", config.app.log_level)
    table.add_row("LOG_FORMAT", config.app.log_format)

    console.print(table)


@app.command()
def demo(
    size: int = typer.Option(config.pool.size, "--size", "-s", min=1, help="Number of pooled connections"),
    transfers: int = typer.Option(20, "--transfers", "-n", min=1, help="Concurrent transfers to run"),
    timeout: float = typer.Option(config.pool.acquire_timeout, "--timeout", "-t", min=0.0, help="Acquire timeout in seconds"),
) -> None:
    """Run concurrent bank transfers against a pool of mock connections."""
    console.print(Panel(f"Warming up {size} connections for {transfers} transfers", title="Banking demo"))

    pool = BoundedResourcePool.create(size, mock_connection_factory(), name="banking-demo", acquire_timeout=timeout)
    service = TransactionService(pool)
    failures: List[str] = []

    with ThreadPoolExecutor(max_workers=transfers) as executor:
        futures = {
            executor.submit(service.transfer_funds, f"ACC-{i}00", f"ACC-{i}01", 100.0 * i): i
            for i in range(1, transfers + 1)
        }
        for future in as_completed(futures):
            try:
                future.result()
            except ResourcePoolError as e:
                failures.append(f"Transfer {futures[future]}: {e.message}")

    stats = pool.stats()
    pool.close()

    console.print(_stats_table(stats, "Pool after transfers"))
    for failure in failures:
        console.print(f"[yellow]{failure}[/yellow]")

    if stats.active != 0 or stats.available != stats.capacity:
        console.print("❌ Some connections were not returned to the pool")
        raise typer.Exit(1)
    console.print(f"✅ {transfers - len(failures)} of {transfers} transfers committed, all connections returned")


@app.command()
def exhaust(
    size: int = typer.Option(3, "--size", "-s", min=1, help="Number of pooled connections"),
    timeout: float = typer.Option(0.0, "--timeout", "-t", min=0.0, help="Timeout for the extra acquire"),
) -> None:
    """Borrow every connection and show the backpressure error."""
    pool = BoundedResourcePool.create(size, mock_connection_factory(), name="exhaust-demo")
    borrowed: List[MockConnection] = []
    try:
        for _ in range(size):
            borrowed.append(pool.acquire(0))
        console.print(f"Borrowed {len(borrowed)} connections: {', '.join(c.id for c in borrowed)}")

        try:
            extra = pool.acquire(timeout)
        except PoolExhaustedError as e:
            console.print(f"[yellow]Backpressure:[/yellow] {e.message}")
            console.print(f"Active: {e.active_count}, available: {e.available_count}")
        else:
            pool.release(extra)
            console.print("❌ Pool handed out more connections than its capacity")
            raise typer.Exit(1)
    finally:
        for conn in borrowed:
            pool.release(conn)
        stats = pool.stats()
        pool.close()

    console.print(_stats_table(stats, "Pool after release"))


if __name__ == "__main__":
    app()
