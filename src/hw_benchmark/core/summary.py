"""
Console summaries of results, scores and advanced profiles.
"""

from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.table import Table

from .results import BenchmarkResults, CategoryScore, ScoreState
from .scoring import BenchmarkScores

if TYPE_CHECKING:
    from ..profiles.advanced import AdvancedProfileResults


def format_score(score: CategoryScore) -> str:
    """Render a category score: INCOMPLETE if invalid, Failed if zero."""
    if score.state is ScoreState.INVALID:
        return "INCOMPLETE"
    if score.state is ScoreState.NOT_RUN:
        return "Not run"
    return str(int(score.value)) if score.value > 0 else "Failed"


def print_results(results: BenchmarkResults, console: Optional[Console] = None) -> None:
    """Print a table of raw test values per category."""
    console = console or Console()

    if not results.benchmarks:
        console.print("[yellow]No benchmark results available.[/yellow]")
        return

    table = Table(title="Benchmark Results")
    table.add_column("Category", style="cyan")
    table.add_column("Test", style="green")
    table.add_column("Value", style="yellow", justify="right")
    table.add_column("Unit", style="magenta")

    for result in results.benchmarks:
        for test in result.tests:
            value = test.formatted_value if test.is_valid else "[red]invalid[/red]"
            table.add_row(result.category.display_name, test.name, value, test.unit)

    console.print(table)

    if results.had_any_throttling:
        console.print("[yellow]Thermal throttling was detected during the run[/yellow]")


def print_scores(
    scores: BenchmarkScores,
    quick_mode: bool = False,
    console: Optional[Console] = None,
) -> None:
    """Print category scores, the weighted total and any secondary scores.

    Categories that were not run are left out of the table.
    """
    console = console or Console()

    table = Table(title="Benchmark Scores")
    table.add_column("Category", style="cyan")
    table.add_column("Score", style="green", justify="right")

    for category, score in scores.categories.items():
        if score.ran:
            table.add_row(category.display_name, format_score(score))
    total = str(int(scores.total)) if scores.total > 0 else "Failed"
    table.add_section()
    table.add_row("[bold]TOTAL SCORE[/bold]", f"[bold]{total}[/bold]")
    console.print(table)

    secondary = [score for score in scores.secondary.values() if score.ran]
    if secondary:
        extra = Table(title="Separate Scores")
        extra.add_column("Category", style="cyan")
        extra.add_column("Score", style="green", justify="right")
        for score in secondary:
            extra.add_row(score.category.display_name, format_score(score))
        console.print(extra)

    if quick_mode:
        console.print("[yellow]Quick mode: scores may be less accurate[/yellow]")
    if scores.partial_run:
        console.print("[blue]Partial run: total based on selected tests[/blue]")


def print_advanced_profiles(
    profiles: "AdvancedProfileResults", console: Optional[Console] = None
) -> None:
    """Print the sweep series, queue-depth matrix and scaling analysis."""
    from ..profiles.sweep import format_bytes

    console = console or Console()

    if profiles.memory is not None:
        table = Table(title="Memory Block-Size Sweep")
        table.add_column("Block", style="cyan")
        table.add_column("GB/s", style="yellow", justify="right")
        for point in profiles.memory.block_size_sweep:
            table.add_row(format_bytes(point.config_value), f"{point.metric:.2f}")
        console.print(table)

        boundaries = profiles.memory.detected_cache_boundaries
        if boundaries:
            console.print("[cyan]Cache boundaries:[/cyan] " + ", ".join(boundaries))

    if profiles.disk is not None:
        disk = profiles.disk
        table = Table(title="Disk Queue-Depth Matrix")
        table.add_column("QD", style="cyan", justify="right")
        table.add_column("Read IOPS", style="green", justify="right")
        table.add_column("Read MB/s", style="green", justify="right")
        table.add_column("Write IOPS", style="magenta", justify="right")
        table.add_column("Write MB/s", style="magenta", justify="right")
        writes = {p.depth: p for p in disk.write_points}
        for read in disk.read_points:
            write = writes.get(read.depth)
            table.add_row(
                str(read.depth),
                f"{read.iops:.0f}",
                f"{read.mbps:.1f}",
                f"{write.iops:.0f}" if write else "N/A",
                f"{write.mbps:.1f}" if write else "N/A",
            )
        console.print(table)
        console.print(
            f"Optimal QD: read {disk.optimal_read_depth}, write {disk.optimal_write_depth}"
        )

    if profiles.cpu_scaling is not None:
        scaling = profiles.cpu_scaling
        table = Table(title="CPU Thread Scaling")
        table.add_column("Threads", style="cyan", justify="right")
        table.add_column("Throughput (ops/s)", style="yellow", justify="right")
        table.add_column("Efficiency", style="green", justify="right")
        for point in scaling.points:
            table.add_row(
                str(point.workers), f"{point.throughput:,.0f}", f"{point.efficiency_pct:.1f}%"
            )
        console.print(table)

        cliff = scaling.cliff
        if cliff.detected:
            console.print(
                f"[red]Scaling cliff after {cliff.cliff_workers} threads: "
                f"efficiency falls to {cliff.efficiency_after:.1f}%[/red]"
            )
        else:
            console.print(f"Average scaling efficiency: {scaling.scaling_efficiency:.1f}%")
