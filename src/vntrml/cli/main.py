"""Main CLI application for vntrml."""

import json
from enum import Enum
from pathlib import Path
from typing import Optional

import typer

from .commands import simulate as simulate_cmd
from .commands.common import build_model, emit, format_matrix, format_vector
from ..core.likelihood import LikelihoodCalculator
from ..io.repeats import RepeatAlignment
from ..io.trees import Tree

app = typer.Typer(
    name="vntrml",
    help="Repeat-length (VNTR / microsatellite) mutation models on phylogenies",
    no_args_is_help=True,
)

app.add_typer(simulate_cmd.app, name="simulate")


class OutputFormat(str, Enum):
    """Output format."""
    TEXT = "text"
    JSON = "json"


class RootFrequencies(str, Enum):
    """Root state prior for likelihood calculation."""
    STATIONARY = "stationary"
    MODEL = "model"


@app.command(name="rate-matrix")
def rate_matrix(
    rb: float = typer.Option(..., "--rb", help="Force of attraction to the equilibrium repeat length", min=0.0),
    ieq: float = typer.Option(..., "--ieq", help="Equilibrium repeat length"),
    g: float = typer.Option(..., "--g", help="Geometric step-size parameter (1 - g = P(single step))", min=0.0, max=1.0),
    one_on_a1: float = typer.Option(1.0, "--one-on-a1", help="Mutation rate offset below the linear regime", min=0.0),
    start_lin_regime: int = typer.Option(..., "--start-lin-regime", help="Repeat length where the linear regime starts"),
    n_states: Optional[int] = typer.Option(None, "--n-states", "-n", help="Number of repeat-length states", min=2),
    min_repeat: int = typer.Option(0, "--min-repeat", help="Smallest repeat length"),
    data: Optional[Path] = typer.Option(
        None,
        "--data", "-d",
        help="Repeat table to take state bounds from",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: stdout)"),
    format: OutputFormat = typer.Option(OutputFormat.TEXT, "--format", help="Output format"),
):
    """
    Print the Sainudiin rate matrix Q.

    Example:
        vntrml rate-matrix --rb 0.5 --ieq 10 --g 0.7 --start-lin-regime 10 -n 5 --min-repeat 8
    """
    alignment = _load_alignment(data)
    model = build_model(rb, ieq, g, one_on_a1, start_lin_regime, n_states, min_repeat, alignment)
    Q = model.get_rate_matrix()

    if format == OutputFormat.JSON:
        text = json.dumps(
            {
                "parameters": model.get_parameters(),
                "rate_matrix": Q.tolist(),
            },
            indent=2,
        )
    else:
        text = format_matrix(Q, model.min_repeat, "RATE MATRIX Q")
    emit(text, output)


@app.command()
def transition(
    distance: float = typer.Option(..., "--distance", "-t", help="Branch length (expected mutations per locus)", min=0.0),
    rate: float = typer.Option(1.0, "--rate", help="Branch rate multiplier", min=0.0),
    rb: float = typer.Option(..., "--rb", help="Force of attraction to the equilibrium repeat length", min=0.0),
    ieq: float = typer.Option(..., "--ieq", help="Equilibrium repeat length"),
    g: float = typer.Option(..., "--g", help="Geometric step-size parameter (1 - g = P(single step))", min=0.0, max=1.0),
    one_on_a1: float = typer.Option(1.0, "--one-on-a1", help="Mutation rate offset below the linear regime", min=0.0),
    start_lin_regime: int = typer.Option(..., "--start-lin-regime", help="Repeat length where the linear regime starts"),
    n_states: Optional[int] = typer.Option(None, "--n-states", "-n", help="Number of repeat-length states", min=2),
    min_repeat: int = typer.Option(0, "--min-repeat", help="Smallest repeat length"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: stdout)"),
    format: OutputFormat = typer.Option(OutputFormat.TEXT, "--format", help="Output format"),
):
    """
    Print the transition probability matrix P for a branch length.

    Example:
        vntrml transition -t 0.5 --rb 0.5 --ieq 10 --g 0.7 --start-lin-regime 10 -n 5 --min-repeat 8
    """
    model = build_model(rb, ieq, g, one_on_a1, start_lin_regime, n_states, min_repeat)
    try:
        P = model.get_transition_probabilities(distance, 0.0, rate)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if format == OutputFormat.JSON:
        text = json.dumps(
            {
                "parameters": model.get_parameters(),
                "distance": distance,
                "rate": rate,
                "transition_probabilities": P.tolist(),
            },
            indent=2,
        )
    else:
        text = format_matrix(P, model.min_repeat, f"TRANSITION PROBABILITIES (t = {distance * rate:g})")
    emit(text, output)


@app.command()
def stationary(
    rb: float = typer.Option(..., "--rb", help="Force of attraction to the equilibrium repeat length", min=0.0),
    ieq: float = typer.Option(..., "--ieq", help="Equilibrium repeat length"),
    g: float = typer.Option(..., "--g", help="Geometric step-size parameter (1 - g = P(single step))", min=0.0, max=1.0),
    one_on_a1: float = typer.Option(1.0, "--one-on-a1", help="Mutation rate offset below the linear regime", min=0.0),
    start_lin_regime: int = typer.Option(..., "--start-lin-regime", help="Repeat length where the linear regime starts"),
    n_states: Optional[int] = typer.Option(None, "--n-states", "-n", help="Number of repeat-length states", min=2),
    min_repeat: int = typer.Option(0, "--min-repeat", help="Smallest repeat length"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: stdout)"),
    format: OutputFormat = typer.Option(OutputFormat.TEXT, "--format", help="Output format"),
):
    """
    Print the stationary distribution of repeat lengths.

    Example:
        vntrml stationary --rb 0.5 --ieq 10 --g 0.7 --start-lin-regime 10 -n 5 --min-repeat 8
    """
    model = build_model(rb, ieq, g, one_on_a1, start_lin_regime, n_states, min_repeat)
    pi = model.stationary_distribution

    if format == OutputFormat.JSON:
        text = json.dumps(
            {
                "parameters": model.get_parameters(),
                "stationary_distribution": {
                    str(model.min_repeat + i): float(p) for i, p in enumerate(pi)
                },
            },
            indent=2,
        )
    else:
        text = format_vector(pi, model.min_repeat, "STATIONARY DISTRIBUTION")
    emit(text, output)


@app.command()
def loglik(
    data: Path = typer.Option(
        ...,
        "--data", "-d",
        help="Repeat table (taxon followed by one count per locus)",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    tree: Path = typer.Option(
        ...,
        "--tree", "-t",
        help="Phylogenetic tree file (Newick format)",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    rb: float = typer.Option(..., "--rb", help="Force of attraction to the equilibrium repeat length", min=0.0),
    ieq: float = typer.Option(..., "--ieq", help="Equilibrium repeat length"),
    g: float = typer.Option(..., "--g", help="Geometric step-size parameter (1 - g = P(single step))", min=0.0, max=1.0),
    one_on_a1: float = typer.Option(1.0, "--one-on-a1", help="Mutation rate offset below the linear regime", min=0.0),
    start_lin_regime: int = typer.Option(..., "--start-lin-regime", help="Repeat length where the linear regime starts"),
    min_repeat: Optional[int] = typer.Option(None, "--min-repeat", help="Smallest repeat length (default: observed minimum)"),
    max_repeat: Optional[int] = typer.Option(None, "--max-repeat", help="Largest repeat length (default: observed maximum)"),
    rate: float = typer.Option(1.0, "--rate", help="Clock rate", min=0.0),
    root: RootFrequencies = typer.Option(RootFrequencies.STATIONARY, "--root", help="Root state prior"),
    frequencies: Optional[Path] = typer.Option(
        None,
        "--frequencies",
        help="Frequency vector JSON file (used with --root model)",
        exists=True,
    ),
    threads: Optional[int] = typer.Option(None, "--threads", help="Worker threads for branch matrices", min=1),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: stdout)"),
    format: OutputFormat = typer.Option(OutputFormat.TEXT, "--format", help="Output format"),
):
    """
    Compute the log-likelihood of repeat data on a tree.

    Example:
        vntrml loglik -d repeats.txt -t tree.nwk --rb 0.5 --ieq 10 --g 0.7 --start-lin-regime 10
    """
    alignment = _load_alignment(data, min_repeat, max_repeat)
    try:
        tree_obj = Tree.from_file(tree)
        calculator = LikelihoodCalculator(alignment, tree_obj, n_threads=threads)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    model = build_model(
        rb, ieq, g, one_on_a1, start_lin_regime, None, alignment.min_repeat,
        alignment, frequencies,
    )

    try:
        site_lnl = calculator.compute_site_log_likelihoods(model, rate, root.value)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    total = float(site_lnl.sum())

    if format == OutputFormat.JSON:
        text = json.dumps(
            {
                "parameters": model.get_parameters(),
                "log_likelihood": total,
                "locus_log_likelihoods": site_lnl.tolist(),
            },
            indent=2,
        )
    else:
        text = "\n".join([
            "LOG-LIKELIHOOD",
            "==============",
            f"Taxa: {alignment.n_taxa}",
            f"Loci: {alignment.n_loci}",
            f"States: {alignment.n_states} (repeats {alignment.min_repeat}-{alignment.max_repeat})",
            f"Log-likelihood: {total:.6f}",
        ])
    emit(text, output)


def _load_alignment(
    data: Optional[Path],
    min_repeat: Optional[int] = None,
    max_repeat: Optional[int] = None,
) -> Optional[RepeatAlignment]:
    if data is None:
        return None
    try:
        return RepeatAlignment.from_table(data, min_repeat=min_repeat, max_repeat=max_repeat)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
