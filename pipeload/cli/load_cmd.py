"""CLI commands for load calculation, telescoping and packing."""

import json
import math
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pipeload.utils import format_number, format_percentage, format_weight

console = Console()


def _load(order_file: str):
    """Load an order or exit with the validation errors."""
    from pipeload.order import OrderError, load_order

    try:
        return load_order(order_file)
    except OrderError as e:
        console.print(f"[red]Error: {e}[/red]")
        for location, message in e.errors.items():
            console.print(f"  [red]•[/red] {location}: {message}")
        sys.exit(1)


def _count(value) -> str:
    return "∞" if isinstance(value, float) and math.isinf(value) else str(value)


@click.command("calculate")
@click.argument("order_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--min-space", type=float, help="Minimum space between pipes in cm (overrides order)")
@click.option("--allowance", type=float, help="Nesting allowance in cm (overrides order)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def calculate(order_file, min_space, allowance, as_json):
    """Calculate how many transport volumes an order needs."""
    from pipeload.calculator import LoadCalculator, recommendations

    order = _load(order_file)
    calculator = LoadCalculator(
        order.to_volume(),
        min_space=order.config.min_space if min_space is None else min_space,
        allowance=order.config.allowance if allowance is None else allowance,
    )
    report = calculator.calculate(order.to_pipes())

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2, default=str))
        return

    if not report.success:
        console.print(f"[red]Error: {report.error_message}[/red]")
        sys.exit(1)

    plan = report.plan
    summary = f"""[bold cyan]Transport:[/bold cyan] {report.volume.label} ({report.volume.length:g}x{report.volume.width:g}x{report.volume.height:g} cm)
[bold cyan]Total pipes:[/bold cyan] {report.total_pipes} ({format_number(report.total_length_m)} m)
[bold cyan]Total weight:[/bold cyan] {format_weight(report.total_weight)}
[bold cyan]Pipe volume:[/bold cyan] {format_number(report.total_volume_m3)} m³
[bold green]Volumes needed:[/bold green] {_count(plan.total)} (packing {_count(plan.packing_containers)}, weight {plan.weight_containers}, limited by {plan.limiting_factor.value})
"""
    console.print(Panel(summary, title="Load Calculation"))

    table = Table(title="Pipes")
    table.add_column("Pipe", style="cyan")
    table.add_column("Ø ext/int (cm)", justify="right")
    table.add_column("Length (cm)", justify="right")
    table.add_column("Pipes", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Per container", justify="right", style="green")
    table.add_column("Telescoping", style="dim")

    for result in report.pipe_results:
        pipe = result.pipe
        cap = result.capacity
        view = report.telescoping.for_pipe(pipe.id)
        table.add_row(
            pipe.id,
            f"{pipe.external_diameter:g}/{pipe.internal_diameter:g}",
            f"{pipe.standard_length:g}",
            str(result.number_of_pipes),
            format_weight(result.total_weight),
            f"{cap.pipes_per_cross_section}×{cap.pipes_along_length}={cap.capacity}",
            view.telescoping_type.value if view else "-",
        )
    console.print(table)

    if plan.containers:
        containers = Table(title="Containers")
        containers.add_column("Container", style="cyan")
        containers.add_column("Pipe breakdown")
        containers.add_column("Total pipes", justify="right")
        containers.add_column("Total weight", justify="right", style="green")
        for load in plan.containers:
            breakdown = "\n".join(
                f"{'↳ ' if e.nested else ''}{e.count}× {e.template_id}"
                f"{' (nested)' if e.nested else ' (beside)' if e.standalone else ''}"
                for e in load.entries
            )
            containers.add_row(
                f"{load.number}",
                breakdown or "-",
                str(load.total_pipes),
                format_weight(load.total_weight),
            )
        console.print(containers)

    notes = recommendations(report)
    if notes:
        console.print("\n[bold]Recommendations:[/bold]")
        for note in notes:
            colour = "yellow" if note.level == "warning" else "green"
            console.print(f"  [{colour}]•[/{colour}] {note.message}")


@click.command("telescope")
@click.argument("order_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--allowance", type=float, help="Nesting allowance in cm (overrides order)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def telescope(order_file, allowance, as_json):
    """Show which pipes nest inside each other."""
    from pipeload.telescoping import space_saved, telescoping_suggestions, resolve_telescoping

    order = _load(order_file)
    pipes = order.to_pipes()
    allowance = order.config.allowance if allowance is None else allowance

    result = resolve_telescoping(pipes, allowance=allowance)
    suggestions = telescoping_suggestions(pipes, allowance=allowance)

    if as_json:
        data = result.to_dict()
        data["suggestions"] = [s.to_dict() for s in suggestions]
        data["space_saved"] = space_saved(pipes, result).to_dict()
        click.echo(json.dumps(data, indent=2))
        return

    if not suggestions:
        console.print("[yellow]No pipes can be telescoped with this allowance[/yellow]")
        return

    table = Table(title=f"Telescoping (allowance {allowance:g} cm)")
    table.add_column("Outer", style="cyan")
    table.add_column("Nested (innermost last)")
    table.add_column("Type")
    table.add_column("Effective Ø × L (cm)", justify="right")
    table.add_column("Space saved", justify="right", style="green")

    for suggestion in suggestions:
        view = result.for_pipe(suggestion.outer_pipe.id)
        table.add_row(
            suggestion.outer_pipe.id,
            ", ".join(p.id for p in suggestion.inner_pipes),
            suggestion.telescoping_type.value,
            f"{view.effective_diameter:g} × {view.effective_length:g}",
            format_percentage(suggestion.space_saved.percentage_saved),
        )
    console.print(table)

    total = space_saved(pipes, result)
    console.print(
        f"\n[green]Overall space saved: {format_percentage(total.percentage_saved)}[/green]"
    )


@click.command("pack")
@click.argument("order_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--min-space", type=float, help="Minimum space between pipes in cm (overrides order)")
@click.option("--layout", "show_layout", is_flag=True, help="Print every placed circle")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def pack(order_file, min_space, show_layout, as_json):
    """Pack one cross-section of the transport volume."""
    from pipeload.calculator import LoadCalculator
    from pipeload.packing import export_layout
    from pipeload.telescoping import resolve_telescoping

    order = _load(order_file)
    volume = order.to_volume()
    calculator = LoadCalculator(
        volume,
        min_space=order.config.min_space if min_space is None else min_space,
        allowance=order.config.allowance,
    )
    telescoping = resolve_telescoping(order.to_pipes(), allowance=calculator.allowance)
    result = calculator.arrange(telescoping)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if show_layout:
        click.echo(export_layout(result, volume.cross_section))
        return

    table = Table(title=f"Cross-section {volume.width:g}x{volume.height:g} cm")
    table.add_column("Template", style="cyan")
    table.add_column("Members")
    table.add_column("Ø (cm)", justify="right")
    table.add_column("Placed", justify="right", style="green")

    for template in telescoping.templates:
        table.add_row(
            template.template_id,
            ", ".join(template.member_ids),
            f"{template.diameter:g}",
            str(result.counts.get(template.template_id, 0)),
        )
    console.print(table)
    console.print(
        f"Utilization {format_percentage(result.utilization(volume.cross_section))}, "
        f"weight {format_weight(result.total_weight)}"
    )
    if result.weight_capacity_exceeded:
        console.print("[yellow]Weight capacity reached before the section was full[/yellow]")


@click.command("transports")
def transports():
    """List transport volume presets."""
    from pipeload.containers import TRANSPORT_PRESETS

    table = Table(title="Transport Presets")
    table.add_column("Preset", style="cyan")
    table.add_column("Name")
    table.add_column("L × W × H (cm)", justify="right")
    table.add_column("Weight capacity", justify="right", style="green")

    for transport_type, preset in TRANSPORT_PRESETS.items():
        table.add_row(
            transport_type.value,
            preset["label"],
            f"{preset['length']:g} × {preset['width']:g} × {preset['height']:g}",
            format_weight(preset["weight_capacity"]) if preset["weight_capacity"] else "unlimited",
        )
    console.print(table)
