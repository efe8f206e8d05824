"""Helpers shared by vntrml CLI commands."""

import json
from pathlib import Path
from typing import Optional

import numpy as np
import typer

from ...io.repeats import RepeatAlignment
from ...models.sainudiin import SainudiinModel


def build_model(
    rb: float,
    ieq: float,
    g: float,
    one_on_a1: float,
    start_lin_regime: int,
    n_states: Optional[int],
    min_repeat: int,
    data: Optional[RepeatAlignment] = None,
    frequencies_file: Optional[Path] = None,
) -> SainudiinModel:
    """Create a model from CLI options, exiting with code 1 on invalid input."""
    if data is None and n_states is None:
        typer.echo("Error: Provide --n-states or a repeat table with --data", err=True)
        raise typer.Exit(code=1)

    frequencies = None
    if frequencies_file is not None:
        with open(frequencies_file) as f:
            frequencies = np.array(json.load(f), dtype=float)

    try:
        return SainudiinModel(
            rb=rb,
            ieq=ieq,
            g=g,
            one_on_a1=one_on_a1,
            start_lin_regime=start_lin_regime,
            n_states=n_states,
            min_repeat=min_repeat,
            data=data,
            frequencies=frequencies,
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def format_matrix(
    matrix: np.ndarray,
    min_repeat: int,
    title: str,
    precision: int = 6,
) -> str:
    """Format a state-indexed matrix as text with repeat-length labels."""
    n = matrix.shape[0]
    labels = [str(min_repeat + i) for i in range(n)]
    width = max(precision + 8, max(len(label) for label in labels) + 1)

    lines = [title, "=" * len(title)]
    lines.append(" " * 6 + "".join(label.rjust(width) for label in labels))
    for label, row in zip(labels, matrix):
        lines.append(label.rjust(6) + "".join(f"{value:{width}.{precision}f}" for value in row))
    return "\n".join(lines)


def format_vector(vector: np.ndarray, min_repeat: int, title: str, precision: int = 6) -> str:
    """Format a state-indexed vector as a two-column table."""
    lines = [title, "=" * len(title), "repeat\tvalue"]
    for i, value in enumerate(vector):
        lines.append(f"{min_repeat + i}\t{value:.{precision}f}")
    return "\n".join(lines)


def emit(text: str, output: Optional[Path]):
    """Write text to a file, or stdout if no file is given."""
    if output is None:
        typer.echo(text)
    else:
        Path(output).write_text(text + "\n")
