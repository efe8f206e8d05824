"""
Output formatting for simulated repeat counts.
"""

import json
from pathlib import Path
from typing import Dict, Optional

import numpy as np


class SimulationOutput:
    """
    Handle output formatting for simulated repeat counts.

    Provides methods to write:
    - Repeat count tables (readable by RepeatAlignment.from_table)
    - Parameters in JSON format
    """

    @staticmethod
    def write_table(
        counts: Dict[str, np.ndarray],
        output_path: Path,
        replicate_id: Optional[int] = None,
    ):
        """
        Write repeat counts as a whitespace-delimited table.

        Parameters
        ----------
        counts : dict
            Mapping from taxon name to repeat counts (one per locus)
        output_path : Path
            Output file path
        replicate_id : int, optional
            Replicate number (written as a comment header if provided)
        """
        output_path = Path(output_path)

        with open(output_path, 'w') as f:
            if replicate_id is not None:
                f.write(f"# replicate={replicate_id}\n")
            for taxon, row in counts.items():
                f.write(taxon + "\t" + "\t".join(str(int(c)) for c in row) + "\n")

    @staticmethod
    def write_parameters(
        params: Dict,
        output_path: Path,
        indent: int = 2
    ):
        """
        Write simulation parameters to JSON file.

        Parameters
        ----------
        params : dict
            Simulation parameters
        output_path : Path
            Output file path
        indent : int
            JSON indentation level
        """
        output_path = Path(output_path)

        with open(output_path, 'w') as f:
            json.dump(params, f, indent=indent)

    @staticmethod
    def replicate_path(output_path: Path, replicate_id: int, n_replicates: int) -> Path:
        """
        Output path for one replicate.

        A single replicate keeps ``output_path``; otherwise the replicate
        number is inserted before the suffix (sim.txt -> sim_rep3.txt).
        """
        output_path = Path(output_path)
        if n_replicates == 1:
            return output_path
        return output_path.with_name(f"{output_path.stem}_rep{replicate_id}{output_path.suffix}")
