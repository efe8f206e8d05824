"""
Unit tests for repeat table and tree parsing.
"""

import numpy as np
import pytest

from vntrml.io.repeats import MISSING_STATE, RepeatAlignment
from vntrml.io.trees import Tree


class TestRepeatAlignment:
    """Test repeat-length data handling."""

    def test_from_table(self, repeat_table_file):
        """Test parsing a repeat table with comments and missing data."""
        aln = RepeatAlignment.from_table(repeat_table_file)

        assert aln.names == ["A", "B", "C", "D"]
        assert aln.n_taxa == 4
        assert aln.n_loci == 3
        assert aln.min_repeat == 8
        assert aln.max_repeat == 12
        assert aln.counts[1, 2] == MISSING_STATE

    def test_states_shifted(self, small_alignment):
        """Test zero-based states with missing data preserved."""
        states = small_alignment.states

        np.testing.assert_array_equal(states[0], [2, 1, 4])
        np.testing.assert_array_equal(states[1], [2, 0, MISSING_STATE])

    def test_state_bounds(self, small_alignment):
        """Test (n_states, min_repeat) reporting."""
        assert small_alignment.get_state_bounds() == (5, 8)

    def test_explicit_range(self):
        """Test that an explicit range widens the state space."""
        aln = RepeatAlignment.from_counts({"A": [10], "B": [11]}, min_repeat=5, max_repeat=20)
        assert aln.get_state_bounds() == (16, 5)

    def test_counts_outside_range(self):
        """Test that counts outside an explicit range are rejected."""
        with pytest.raises(ValueError, match="must lie in"):
            RepeatAlignment.from_counts({"A": [10], "B": [25]}, min_repeat=5, max_repeat=20)

    def test_single_observed_length(self):
        """Test that a single observed length cannot define a state space."""
        with pytest.raises(ValueError, match="must exceed"):
            RepeatAlignment.from_counts({"A": [10], "B": [10]})

    def test_unequal_loci(self):
        """Test that ragged rows are rejected."""
        with pytest.raises(ValueError, match="same number of loci"):
            RepeatAlignment.from_counts({"A": [10, 11], "B": [10]})

    def test_invalid_token(self, tmp_path):
        """Test that non-integer counts are reported with their line."""
        path = tmp_path / "bad.txt"
        path.write_text("A 10 11\nB 10 x\n")

        with pytest.raises(ValueError, match="line 2"):
            RepeatAlignment.from_table(path)

    def test_duplicate_taxon(self, tmp_path):
        """Test that duplicate taxa are rejected."""
        path = tmp_path / "dup.txt"
        path.write_text("A 10 11\nA 10 12\n")

        with pytest.raises(ValueError, match="Duplicate taxon"):
            RepeatAlignment.from_table(path)

    def test_write_table_round_trip(self, small_alignment, tmp_path):
        """Test that written tables read back identically."""
        path = tmp_path / "out.txt"
        small_alignment.write_table(path)

        aln = RepeatAlignment.from_table(path, min_repeat=8, max_repeat=12)
        np.testing.assert_array_equal(aln.counts, small_alignment.counts)
        assert aln.names == small_alignment.names


class TestTree:
    """Test Newick parsing and node heights."""

    def test_parse(self, small_tree):
        """Test basic tree structure."""
        assert small_tree.n_leaves == 4
        assert small_tree.n_nodes == 7
        assert small_tree.leaf_names == ["A", "B", "C", "D"]

    def test_heights(self, small_tree):
        """Test that parent - child height equals branch length."""
        for parent, child in small_tree.get_branches():
            assert parent.height - child.height == pytest.approx(child.branch_length)

        leaf_heights = [node.height for node in small_tree.postorder() if node.is_leaf]
        assert min(leaf_heights) == pytest.approx(0.0)
        assert small_tree.root.height == pytest.approx(0.35)

    def test_comments_and_whitespace(self):
        """Test that bracketed comments and whitespace are ignored."""
        tree = Tree.from_newick("( A[&rate=1] : 0.1 ,\n B : 0.2 ) ;")
        assert tree.leaf_names == ["A", "B"]
        assert tree.root.height == pytest.approx(0.2)

    def test_from_file(self, tree_file):
        """Test reading a tree from disk."""
        tree = Tree.from_file(tree_file)
        assert tree.n_leaves == 4

    def test_missing_semicolon(self):
        """Test error on missing semicolon."""
        with pytest.raises(ValueError, match="missing semicolon"):
            Tree.from_newick("(A:0.1,B:0.2)")

    def test_negative_branch_length(self):
        """Test error on negative branch length."""
        with pytest.raises(ValueError, match="Negative branch length"):
            Tree.from_newick("(A:-0.1,B:0.2);")

    def test_duplicate_leaves(self):
        """Test error on duplicate leaf names."""
        with pytest.raises(ValueError, match="Duplicate leaf"):
            Tree.from_newick("(A:0.1,A:0.2);")
