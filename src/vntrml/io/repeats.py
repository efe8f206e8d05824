"""
Repeat-length data: VNTR / microsatellite allele sizes per taxon and locus.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np


# Encoded value for missing repeat counts
MISSING_STATE = -1

# Tokens accepted as missing data in repeat tables
MISSING_TOKENS = {"?", "-", "N", "n", "NA", "."}


@dataclass
class RepeatAlignment:
    """
    Repeat counts for a set of taxa at one or more loci.

    Counts are stored as absolute repeat lengths; ``states`` gives them as
    zero-based model states, shifted by ``min_repeat``.

    Attributes
    ----------
    names : list[str]
        Taxon names
    counts : ndarray, shape (n_taxa, n_loci)
        Repeat counts; MISSING_STATE (-1) marks missing data
    n_taxa : int
        Number of taxa
    n_loci : int
        Number of loci
    min_repeat : int
        Smallest repeat length modelled (state 0)
    max_repeat : int
        Largest repeat length modelled
    """

    names: list[str]
    counts: np.ndarray
    n_taxa: int
    n_loci: int
    min_repeat: int
    max_repeat: int

    @classmethod
    def from_counts(
        cls,
        counts: dict[str, list],
        min_repeat: Optional[int] = None,
        max_repeat: Optional[int] = None,
    ) -> "RepeatAlignment":
        """
        Build an alignment from a mapping of taxon name to repeat counts.

        Parameters
        ----------
        counts : dict
            Taxon name -> sequence of repeat counts (None for missing)
        min_repeat, max_repeat : int, optional
            State range; by default the observed range

        Returns
        -------
        RepeatAlignment

        Examples
        --------
        >>> aln = RepeatAlignment.from_counts({"A": [10, 12], "B": [11, None]})
        >>> aln.get_state_bounds()
        (3, 10)
        """
        if not counts:
            raise ValueError("No taxa given")

        names = list(counts)
        lengths = {len(row) for row in counts.values()}
        if len(lengths) != 1:
            raise ValueError(f"All taxa must have the same number of loci, got {sorted(lengths)}")

        matrix = np.array(
            [
                [MISSING_STATE if c is None else int(c) for c in counts[name]]
                for name in names
            ],
            dtype=np.int64,
        ).reshape(len(names), lengths.pop())

        return cls._with_bounds(names, matrix, min_repeat, max_repeat)

    @classmethod
    def from_table(
        cls,
        filepath: Path | str,
        min_repeat: Optional[int] = None,
        max_repeat: Optional[int] = None,
    ) -> "RepeatAlignment":
        """
        Parse a whitespace-delimited repeat table.

        Each non-empty line holds a taxon name followed by one repeat count
        per locus. Lines starting with '#' are comments. Missing counts are
        written as '?', '-', 'N', 'NA' or '.'.

        Parameters
        ----------
        filepath : Path or str
            Path to the table
        min_repeat, max_repeat : int, optional
            State range; by default the observed range

        Returns
        -------
        RepeatAlignment
        """
        filepath = Path(filepath)

        counts = {}
        with open(filepath) as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                fields = line.split()
                name = fields[0]
                if name in counts:
                    raise ValueError(f"Duplicate taxon '{name}' on line {line_number}")
                row = []
                for token in fields[1:]:
                    if token in MISSING_TOKENS:
                        row.append(None)
                        continue
                    try:
                        row.append(int(token))
                    except ValueError:
                        raise ValueError(
                            f"Invalid repeat count '{token}' on line {line_number}"
                        )
                counts[name] = row

        if not counts:
            raise ValueError(f"No repeat data found in {filepath}")

        return cls.from_counts(counts, min_repeat=min_repeat, max_repeat=max_repeat)

    @classmethod
    def _with_bounds(cls, names, matrix, min_repeat, max_repeat) -> "RepeatAlignment":
        observed = matrix[matrix != MISSING_STATE]
        if np.any(observed < 0):
            raise ValueError("Repeat counts must be non-negative")

        if min_repeat is None or max_repeat is None:
            if observed.size == 0:
                raise ValueError("Cannot infer repeat range from data without observations")
            if min_repeat is None:
                min_repeat = int(observed.min())
            if max_repeat is None:
                max_repeat = int(observed.max())

        if max_repeat <= min_repeat:
            raise ValueError(
                f"max_repeat ({max_repeat}) must exceed min_repeat ({min_repeat})"
            )
        if observed.size and (observed.min() < min_repeat or observed.max() > max_repeat):
            raise ValueError(
                f"Repeat counts must lie in [{min_repeat}, {max_repeat}], "
                f"observed [{observed.min()}, {observed.max()}]"
            )

        return cls(
            names=names,
            counts=matrix,
            n_taxa=matrix.shape[0],
            n_loci=matrix.shape[1],
            min_repeat=int(min_repeat),
            max_repeat=int(max_repeat),
        )

    @property
    def n_states(self) -> int:
        """Number of repeat-length states."""
        return self.max_repeat - self.min_repeat + 1

    @property
    def states(self) -> np.ndarray:
        """Zero-based states (count - min_repeat); missing stays MISSING_STATE."""
        return np.where(
            self.counts == MISSING_STATE, MISSING_STATE, self.counts - self.min_repeat
        )

    def get_state_bounds(self) -> tuple[int, int]:
        """Return (n_states, min_repeat) for substitution model setup."""
        return self.n_states, self.min_repeat

    def write_table(self, filepath: Path | str):
        """Write the counts as a whitespace-delimited table."""
        with open(Path(filepath), "w") as f:
            for name, row in zip(self.names, self.counts):
                tokens = ["?" if c == MISSING_STATE else str(c) for c in row]
                f.write(f"{name}\t" + "\t".join(tokens) + "\n")
