"""
Pytest configuration and shared fixtures.
"""

import pytest
from typer.testing import CliRunner

from vntrml.io.repeats import RepeatAlignment
from vntrml.io.trees import Tree
from vntrml.models.sainudiin import SainudiinModel


# Parameters of the 5-state example: repeats 8-12, equilibrium at 10
EXAMPLE_PARAMS = {
    "rb": 0.5,
    "ieq": 10.0,
    "g": 0.7,
    "one_on_a1": 1.0,
    "start_lin_regime": 10,
}


@pytest.fixture
def example_params():
    """Parameter values of the 5-state example model."""
    return dict(EXAMPLE_PARAMS)


@pytest.fixture
def example_model():
    """Five states (repeats 8-12), equilibrium repeat length 10."""
    return SainudiinModel(n_states=5, min_repeat=8, **EXAMPLE_PARAMS)


@pytest.fixture
def larger_model():
    """Twelve states (repeats 5-16) with a linear regime from repeat 9."""
    return SainudiinModel(
        rb=0.8, ieq=11.0, g=0.4, one_on_a1=0.5, start_lin_regime=9,
        n_states=12, min_repeat=5,
    )


@pytest.fixture
def small_tree():
    """Four-taxon rooted tree."""
    return Tree.from_newick("((A:0.1,B:0.2):0.15,(C:0.3,D:0.1):0.05);")


@pytest.fixture
def small_alignment():
    """Repeat counts for four taxa at three loci (repeats 8-12)."""
    return RepeatAlignment.from_counts(
        {
            "A": [10, 9, 12],
            "B": [10, 8, None],
            "C": [11, 9, 12],
            "D": [10, 10, 11],
        },
        min_repeat=8,
        max_repeat=12,
    )


@pytest.fixture
def repeat_table_file(tmp_path):
    """Repeat table matching small_tree."""
    content = (
        "# taxon  locus1 locus2 locus3\n"
        "A\t10\t9\t12\n"
        "B\t10\t8\t?\n"
        "C\t11\t9\t12\n"
        "D\t10\t10\t11\n"
    )
    path = tmp_path / "repeats.txt"
    path.write_text(content)
    return path


@pytest.fixture
def tree_file(tmp_path):
    """Newick file for small_tree."""
    path = tmp_path / "tree.nwk"
    path.write_text("((A:0.1,B:0.2):0.15,(C:0.3,D:0.1):0.05);\n")
    return path


@pytest.fixture
def cli_runner():
    """CLI test runner for Typer apps."""
    return CliRunner()
