"""Simulate command for vntrml CLI."""

import typer
from pathlib import Path
from typing import Optional

from .common import build_model
from ...simulate.vntr import VNTRSimulator
from ...simulate.output import SimulationOutput
from ...io.trees import Tree

app = typer.Typer(help="Simulate repeat counts under mutation models")


@app.command(name="sainudiin")
def simulate_sainudiin(
    tree: Path = typer.Option(
        ...,
        "--tree", "-t",
        help="Tree file (Newick format with branch lengths)",
        exists=True,
    ),
    output: Path = typer.Option(
        ...,
        "--output", "-o",
        help="Output repeat table",
    ),
    loci: int = typer.Option(
        ...,
        "--loci", "-l",
        help="Number of loci",
        min=1,
    ),
    n_states: int = typer.Option(
        ...,
        "--n-states", "-n",
        help="Number of repeat-length states",
        min=2,
    ),
    min_repeat: int = typer.Option(
        0,
        "--min-repeat",
        help="Smallest repeat length",
    ),
    rb: float = typer.Option(..., "--rb", help="Force of attraction to the equilibrium repeat length", min=0.0),
    ieq: float = typer.Option(..., "--ieq", help="Equilibrium repeat length"),
    g: float = typer.Option(..., "--g", help="Geometric step-size parameter", min=0.0, max=1.0),
    one_on_a1: float = typer.Option(1.0, "--one-on-a1", help="Mutation rate offset below the linear regime", min=0.0),
    start_lin_regime: int = typer.Option(..., "--start-lin-regime", help="Repeat length where the linear regime starts"),
    rate: float = typer.Option(
        1.0,
        "--rate",
        help="Clock rate",
        min=0.0,
    ),
    replicates: int = typer.Option(
        1,
        "--replicates", "-r",
        help="Number of replicates to simulate",
        min=1,
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Random seed for reproducibility",
    ),
    output_params: bool = typer.Option(
        True,
        "--output-params/--no-output-params",
        help="Write parameters to JSON file",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet", "-q",
        help="Suppress progress messages",
    ),
):
    """
    Simulate repeat counts under the Sainudiin model.

    Each locus evolves independently from a root state drawn from the
    stationary distribution.

    Examples:

        \b
        # Simulate 200 loci over repeat lengths 8-27
        vntrml simulate sainudiin -t tree.nwk -o sim.txt -l 200 -n 20 --min-repeat 8 \\
            --rb 0.5 --ieq 15 --g 0.3 --start-lin-regime 12

        \b
        # Use reproducible seed and 10 replicates
        vntrml simulate sainudiin -t tree.nwk -o sim.txt -l 200 -n 20 --rb 0.5 \\
            --ieq 10 --g 0.3 --start-lin-regime 5 -r 10 --seed 42
    """
    if not quiet:
        typer.echo("vntrml Repeat Simulator - Sainudiin Model")
        typer.echo("=" * 50)
        typer.echo(f"Loading tree from {tree}...")

    try:
        tree_obj = Tree.from_file(tree)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    model = build_model(rb, ieq, g, one_on_a1, start_lin_regime, n_states, min_repeat)

    if not quiet:
        typer.echo(f"Tree: {tree_obj.n_leaves} taxa")
        typer.echo(f"States: {n_states} (repeats {min_repeat}-{min_repeat + n_states - 1})")
        typer.echo(f"Simulating {replicates} replicate(s) of {loci} loci...")

    simulator = VNTRSimulator(tree_obj, model, n_loci=loci, rate=rate, seed=seed)

    for rep in range(replicates):
        counts = simulator.simulate_counts()
        rep_output = SimulationOutput.replicate_path(output, rep + 1, replicates)
        SimulationOutput.write_table(
            counts,
            rep_output,
            replicate_id=rep + 1 if replicates > 1 else None,
        )
        if not quiet:
            typer.echo(f"  Wrote {rep_output}")

    if output_params:
        params = simulator.get_parameters()
        params["seed"] = seed
        params["replicates"] = replicates
        params_output = Path(output).with_suffix(".params.json")
        SimulationOutput.write_parameters(params, params_output)
        if not quiet:
            typer.echo(f"  Wrote {params_output}")

    if not quiet:
        typer.echo("Done.")
