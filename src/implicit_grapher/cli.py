"""
Command-line interface for Implicit Grapher.

Usage:
    implicit-grapher operators          Show supported operators
    implicit-grapher parse SOURCE       Show the parsed expression tree
    implicit-grapher render SOURCE      Render a relation to a raster
    implicit-grapher check SOURCE X Y   Test a relation at a point
"""

import logging
import math
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from implicit_grapher import __version__
from implicit_grapher.algorithms import (
    AdaptiveRenderer,
    Constant,
    Expression,
    ExpressionNode,
    NamedConstant,
    OperatorNode,
    ParseError,
    RelationKind,
    RenderConfig,
    Variable,
    ViewWindow,
    compile_relation,
    get_render_config,
    parse_expression,
)
from implicit_grapher.data import get_spec, list_operators
from implicit_grapher.visualizations import RasterCanvas

app = typer.Typer(
    name="implicit-grapher",
    help="Reliable plotting of implicit relations with interval arithmetic",
    add_completion=False,
)
console = Console()

PREVIEW_COLUMNS = 64


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"implicit-grapher version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich; DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()  # type: ignore[misc]
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Show debug logging from the renderer."),
    ] = False,
) -> None:
    """Implicit Grapher - interval plotting of f(x, y) = 0 and f(x, y) <= 0."""
    configure_logging(verbose)


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/] {escape(str(error))}")
    raise typer.Exit(code=1)


def _node_label(node: ExpressionNode) -> str:
    if isinstance(node, OperatorNode):
        return f"[cyan]{node.operator.value}[/]"
    if isinstance(node, Variable):
        role = "axis" if node.is_axis else "free"
        return f"[green]{node.name}[/] [dim]({role})[/]"
    if isinstance(node, NamedConstant):
        return f"[magenta]{node.name}[/] [dim]= {node.value!r}[/]"
    if isinstance(node, Constant):
        return f"[yellow]{node.value!r}[/]"
    return escape(node.to_source())


def build_tree(expression: Expression) -> Tree:
    """Rich tree view of an expression."""
    root = Tree(_node_label(expression.root))
    stack = [(expression.root, root)]
    while stack:
        node, branch = stack.pop()
        for child in node.children:
            child_branch = branch.add(_node_label(child))
            stack.append((child, child_branch))
    return root


@app.command()  # type: ignore[misc]
def operators() -> None:
    """Display the operators of the relation syntax."""
    table = Table(title="Supported Operators")

    table.add_column("Operator", style="cyan", no_wrap=True)
    table.add_column("Arity", justify="right")
    table.add_column("Description")
    table.add_column("Properties")

    for op in list_operators():
        spec = get_spec(op)
        arity = "≥1" if spec.variadic else str(spec.arity)
        properties = [
            name
            for name, flag in (
                ("associative", spec.associative),
                ("commutative", spec.commutative),
            )
            if flag
        ]
        table.add_row(op.value, arity, spec.description, ", ".join(properties))

    console.print(table)


@app.command()  # type: ignore[misc]
def parse(
    source: Annotated[str, typer.Argument(help="Relation in prefix syntax")],
    fold: Annotated[
        bool, typer.Option("--fold", help="Fold constant subtrees.")
    ] = False,
    strict: Annotated[
        bool, typer.Option("--strict", help="Reject unknown operators.")
    ] = False,
) -> None:
    """Parse a relation and show its expression tree."""
    try:
        expression = parse_expression(source, strict=strict)
    except ParseError as e:
        _fail(e)

    if fold:
        expression = expression.fold_constants()

    console.print(build_tree(expression))
    console.print(f"\n  Source: {escape(expression.to_source())}")
    console.print(f"  Nodes: {expression.node_count()}  Depth: {expression.depth()}")
    free = sorted(expression.free_variables())
    if free:
        console.print(f"  Free variables: {', '.join(free)}")


@app.command()  # type: ignore[misc]
def render(
    source: Annotated[str, typer.Argument(help="Relation in prefix syntax")],
    width: Annotated[int, typer.Option("--width", "-W", help="Canvas width")] = 100,
    height: Annotated[int, typer.Option("--height", "-H", help="Canvas height")] = 100,
    xmin: Annotated[float, typer.Option("--xmin")] = -5.0,
    xmax: Annotated[float, typer.Option("--xmax")] = 5.0,
    ymin: Annotated[float, typer.Option("--ymin")] = -5.0,
    ymax: Annotated[float, typer.Option("--ymax")] = 5.0,
    quality: Annotated[
        float | None,
        typer.Option("--quality", "-q", help="Cell floor multiplier (overrides preset)"),
    ] = None,
    preset: Annotated[
        str,
        typer.Option("--preset", "-p", help="Render preset: exact, interactive, draft"),
    ] = "exact",
    inequality: Annotated[
        bool, typer.Option("--inequality", help="Plot f <= 0 instead of f = 0.")
    ] = False,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Save raster as .npy")
    ] = None,
    preview: Annotated[
        bool, typer.Option("--preview/--no-preview", help="Print a text preview.")
    ] = True,
) -> None:
    """Render a relation onto a raster canvas."""
    kind = RelationKind.INEQUALITY if inequality else RelationKind.EQUATION
    try:
        config: RenderConfig = get_render_config(preset)
        if quality is not None:
            config = config.with_quality(quality)
        view = ViewWindow(width, height, xmin, xmax, ymin, ymax)
        relation = compile_relation(source, kind)
    except ValueError as e:
        _fail(e)

    canvas = RasterCanvas(width, height)
    renderer = AdaptiveRenderer(relation, view, canvas.fill, config)
    stats = renderer.render_to_completion()

    if preview:
        factor = max(1, math.ceil(width / PREVIEW_COLUMNS))
        console.print(Text(canvas.to_text(factor)), soft_wrap=True)

    table = Table(title="Render Statistics")
    table.add_column("Property", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Relation", f"{escape(relation.expression.to_source())} ({kind.value})")
    table.add_row("Status", stats.status.value)
    table.add_row("Quality", f"{config.quality:g}")
    table.add_row("Cells filled", str(stats.cells_filled))
    table.add_row("Rectangles tested", str(stats.rectangles_tested))
    table.add_row("Peak stack", str(stats.peak_stack))
    table.add_row("Slices", str(stats.slices))
    table.add_row("Pixels painted", f"{canvas.filled_count} / {width * height}")
    table.add_row("Elapsed", f"{stats.elapsed * 1000:.1f} ms")
    console.print(table)

    if output is not None:
        saved = canvas.save(output)
        console.print(f"\n[green]Saved raster to[/] {escape(str(saved))}")


@app.command()  # type: ignore[misc]
def check(
    source: Annotated[str, typer.Argument(help="Relation in prefix syntax")],
    x: Annotated[float, typer.Argument(help="x coordinate")],
    y: Annotated[float, typer.Argument(help="y coordinate")],
    radius: Annotated[
        float, typer.Option("--radius", "-r", help="Half-width of the test rectangle")
    ] = 0.1,
    inequality: Annotated[
        bool, typer.Option("--inequality", help="Test f <= 0 instead of f = 0.")
    ] = False,
) -> None:
    """Evaluate a relation at a point and on a small rectangle around it."""
    kind = RelationKind.INEQUALITY if inequality else RelationKind.EQUATION
    try:
        if not radius >= 0.0 or math.isinf(radius):
            raise ValueError(f"Radius must be finite and non-negative, got {radius}")
        expression = parse_expression(source)
    except ValueError as e:
        _fail(e)

    relation = expression.compile(kind)
    value = expression.evaluate(x=x, y=y)
    rect = (x - radius, x + radius, y - radius, y + radius)
    output = relation.evaluate((rect[0], rect[1]), (rect[2], rect[3]))

    table = Table(title=f"Relation at ({x:g}, {y:g})")
    table.add_column("Property", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("f(x, y)", f"{value:.6g}")
    table.add_row("Rectangle", f"[{rect[0]:g}, {rect[1]:g}] × [{rect[2]:g}, {rect[3]:g}]")
    table.add_row("Output union", escape(str(output)))
    table.add_row("Cannot exclude", "yes" if relation(*rect) else "no")
    console.print(table)


if __name__ == "__main__":
    app()
