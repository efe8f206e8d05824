"""
Sainudiin microsatellite mutation model.

Implements the repeat-length mutation model of Sainudiin et al. (2004) with
the modification of Wu & Drummond (2011) for VNTR evolution:

- mutation steps follow a truncated geometric distribution (parameter g)
- the direction of a mutation is biased toward an equilibrium repeat
  length ieq with strength rb
- the mutation rate grows linearly with repeat length once past
  startLinRegime (slope 1, offset oneOnA1)

References
----------
Raazesh Sainudiin et al. (2004) Microsatellite Mutation Models.
Genetics 168:383-395

Chieh-Hsi Wu and Alexei J. Drummond (2011) Joint Inference of Microsatellite
Mutation Models, Population History and Genealogies Using Transdimensional
Markov Chain Monte Carlo. Genetics 188:151-164
"""

import math
import threading
import warnings
from dataclasses import dataclass
from typing import Optional, Protocol, Union

import numpy as np
from scipy.special import expit

from ..core.matrix import (
    EigenDecomposition,
    eigen_decompose,
    find_stationary_distribution,
    transition_probabilities,
)
from ..io.repeats import RepeatAlignment
from .frequencies import Frequencies
from .parameters import IntegerParameter, Parameter, RealParameter


def _geometric_step_weight(g: float, step: int, n_reachable: int) -> float:
    """
    Probability of a mutation of ``step`` repeat units given a direction.

    Truncated geometric distribution over the ``n_reachable`` states in that
    direction. At g = 1 the formula is 0/0; its limit is the uniform weight.
    """
    if g == 1.0:
        return 1.0 / n_reachable
    return (1.0 - g) * g ** (step - 1) / (1.0 - g ** n_reachable)


def build_sainudiin_Q_matrix(
    rb: float,
    ieq: float,
    g: float,
    one_on_a1: float,
    start_linear_regime: int,
    n_states: int,
    min_repeat: int = 0,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Build the Sainudiin rate matrix Q.

    States are zero-based: index 0 corresponds to a repeat length of
    ``min_repeat``. The repeat-length parameters ``ieq`` and
    ``start_linear_regime`` are absolute and are shifted by ``min_repeat``.

    Parameters
    ----------
    rb : float
        Force of attraction toward the equilibrium repeat length (>= 0)
    ieq : float
        Equilibrium repeat length of the mutational bias
    g : float
        Geometric step-size parameter in [0, 1]; 1 - g is the probability of
        a single-step mutation
    one_on_a1 : float
        Mutation rate offset below the linear regime (>= 0)
    start_linear_regime : int
        Lowest repeat length where the mutation rate grows with length
    n_states : int
        Number of repeat-length states (>= 2)
    min_repeat : int
        Smallest repeat length, mapped to state 0

    Returns
    -------
    Q : ndarray, shape (n_states, n_states)
        Rate matrix; rows sum to zero
    row_sum : ndarray, shape (n_states,)
        Total mutation rate out of each state
    row_sum2 : ndarray, shape (n_states,)
        Sum of rate times step size out of each state

    Notes
    -----
    For state i with x = b0 + b1*i, where b0 = rb*|ieq'|/sqrt(ieq'^2 + 1) and
    b1 = -rb/sqrt(ieq'^2 + 1), the fraction of mutations going up is
    1/(1 + exp(-x)). It is evaluated with ``scipy.special.expit`` so large
    drift forces saturate instead of overflowing.
    """
    if n_states < 2:
        raise ValueError(f"n_states must be at least 2, got {n_states}")
    if not 0.0 <= g <= 1.0:
        raise ValueError(f"g must be in [0, 1], got {g}")
    if rb < 0:
        raise ValueError(f"rb must be non-negative, got {rb}")
    if one_on_a1 < 0:
        raise ValueError(f"one_on_a1 must be non-negative, got {one_on_a1}")

    ieq = ieq - min_repeat
    start_linear_regime = start_linear_regime - min_repeat

    b0 = rb * abs(ieq) / math.sqrt(ieq * ieq + 1.0)
    b1 = -rb / math.sqrt(ieq * ieq + 1.0)

    Q = np.zeros((n_states, n_states))
    row_sum = np.zeros(n_states)
    row_sum2 = np.zeros(n_states)

    for i in range(n_states):
        if i <= start_linear_regime:
            alpha = one_on_a1
        else:
            alpha = one_on_a1 + (i - start_linear_regime)
        up_rate = alpha * expit(b0 + b1 * i)
        down_rate = alpha - up_rate

        for j in range(n_states):
            if j == i:
                continue
            step = abs(i - j)
            if j > i:
                Q[i, j] = up_rate * _geometric_step_weight(g, step, n_states - 1 - i)
            else:
                Q[i, j] = down_rate * _geometric_step_weight(g, step, i)
            row_sum[i] += Q[i, j]
            row_sum2[i] += Q[i, j] * step

        Q[i, i] = -row_sum[i]

    return Q, row_sum, row_sum2


@dataclass(frozen=True)
class RateSystem:
    """
    Everything derived from one set of parameter values.

    Published as a single value so concurrent readers never see a rate
    matrix paired with another matrix's eigensystem.
    """

    Q: np.ndarray
    row_sum: np.ndarray
    row_sum2: np.ndarray
    eigen_decomposition: EigenDecomposition
    stationary_distribution: np.ndarray

    def __post_init__(self):
        for array in (self.Q, self.row_sum, self.row_sum2, self.stationary_distribution):
            array.setflags(write=False)

    def copy(self) -> "RateSystem":
        """Return a deep copy."""
        return RateSystem(
            Q=self.Q.copy(),
            row_sum=self.row_sum.copy(),
            row_sum2=self.row_sum2.copy(),
            eigen_decomposition=self.eigen_decomposition.copy(),
            stationary_distribution=self.stationary_distribution.copy(),
        )


class StateBoundsProvider(Protocol):
    """Anything that can report (n_states, min_repeat), e.g. RepeatAlignment."""

    def get_state_bounds(self) -> tuple[int, int]:
        ...


ParameterLike = Union[Parameter, float, int]


class SainudiinModel:
    """
    Sainudiin repeat-length substitution model with cached eigensystem.

    The rate matrix and its eigendecomposition are rebuilt lazily: any change
    to a parameter marks the model dirty, and the next request for the
    decomposition or a transition matrix rebuilds it. The rebuild is guarded
    by a lock so concurrent likelihood threads rebuild at most once per
    change. ``store``/``restore`` checkpoint the derived state so a rejected
    proposal can be reverted without recomputation.

    Parameters
    ----------
    rb : float or RealParameter
        Force of attraction to the equilibrium repeat length (>= 0)
    ieq : float or RealParameter
        Equilibrium repeat length of the mutational bias
    g : float or RealParameter
        Geometric step-size parameter in [0, 1]
    one_on_a1 : float or RealParameter
        One over the proportionality of mutation rate to repeat length (>= 0)
    start_lin_regime : int or IntegerParameter
        Lowest repeat length where the mutation rate becomes proportional to
        repeat length
    n_states : int, optional
        Number of repeat-length states
    min_repeat : int
        Smallest repeat length (state 0)
    data : StateBoundsProvider, optional
        Source from which n_states and min_repeat are discovered; overrides
        the explicit values
    frequencies : Frequencies or array_like, optional
        Frequency placeholder; resized to uniform if its dimension is wrong
    smoothing : {'clip', 'abs'}
        Post-processing of reconstructed transition probabilities, see
        :func:`vntrml.core.matrix.transition_probabilities`

    Examples
    --------
    >>> model = SainudiinModel(rb=0.5, ieq=10, g=0.7, one_on_a1=1.0,
    ...                        start_lin_regime=10, n_states=5, min_repeat=8)
    >>> P = model.get_transition_probabilities(1.0, 0.0, 1.0)
    >>> P.shape
    (5, 5)
    """

    def __init__(
        self,
        rb: ParameterLike,
        ieq: ParameterLike,
        g: ParameterLike,
        one_on_a1: ParameterLike,
        start_lin_regime: ParameterLike,
        n_states: Optional[int] = None,
        min_repeat: int = 0,
        data: Optional[StateBoundsProvider] = None,
        frequencies=None,
        smoothing: str = "clip",
    ):
        self.rb = _as_parameter("rb", rb, RealParameter)
        self.ieq = _as_parameter("ieq", ieq, RealParameter)
        self.g = _as_parameter("g", g, RealParameter)
        self.one_on_a1 = _as_parameter("oneOnA1", one_on_a1, RealParameter)
        self.start_lin_regime = _as_parameter("startLinRegime", start_lin_regime, IntegerParameter)

        for parameter in self.parameters.values():
            parameter.add_listener(self.requires_recalculation)

        self.n_states = 0 if n_states is None else int(n_states)
        self.min_repeat = int(min_repeat)
        self.data = data
        self.smoothing = smoothing

        if frequencies is None or isinstance(frequencies, Frequencies):
            self.frequencies = frequencies
        else:
            self.frequencies = Frequencies(frequencies)

        self._lock = threading.Lock()
        self._rate_system: Optional[RateSystem] = None
        self._stored_rate_system: Optional[RateSystem] = None
        self._update_matrix = True
        self._stored_update_matrix = True
        self._validated = False
        self.rebuild_count = 0

        self.init_and_validate()

    @property
    def parameters(self) -> dict[str, Parameter]:
        """Model parameters keyed by attribute name."""
        return {
            "rb": self.rb,
            "ieq": self.ieq,
            "g": self.g,
            "one_on_a1": self.one_on_a1,
            "start_lin_regime": self.start_lin_regime,
        }

    def get_parameters(self) -> dict:
        """Current parameter values and state bounds."""
        values = {name: p.value for name, p in self.parameters.items()}
        values["n_states"] = self.n_states
        values["min_repeat"] = self.min_repeat
        return values

    def set_state_bounds_from(self, data: StateBoundsProvider):
        """Discover n_states and min_repeat from a data source."""
        self.n_states, self.min_repeat = data.get_state_bounds()

    def set_n_states(self, n_states: int):
        """Inject the number of states; the model must be re-validated."""
        self.n_states = int(n_states)
        self._validated = False

    def set_min_repeat(self, min_repeat: int):
        """Inject the smallest repeat length; the model must be re-validated."""
        self.min_repeat = int(min_repeat)
        self._validated = False

    def can_handle_data(self, data) -> bool:
        """Only repeat-length data can be modelled."""
        return isinstance(data, RepeatAlignment)

    def init_and_validate(self):
        """
        Resolve dimensions, check frequencies and parameter bounds.

        Raises
        ------
        ValueError
            If the frequencies cannot be brought to ``n_states`` dimensions,
            if fewer than two states are available, or if a parameter value
            lies outside its feasible range
        """
        self._update_matrix = True
        self._rate_system = None
        self._stored_rate_system = None
        self._validated = False

        if self.data is not None:
            self.set_state_bounds_from(self.data)

        if self.frequencies is None and self.n_states != 0:
            self.frequencies = Frequencies.uniform(self.n_states)

        if self.frequencies is not None and self.n_states != 0:
            if self.n_states != len(self.frequencies):
                warnings.warn(
                    f"Frequencies has wrong size. Expected {self.n_states}, but got "
                    f"{len(self.frequencies)}. Will change now to correct dimension "
                    f"and assume uniform distribution for initial values.",
                    UserWarning,
                )
                self.frequencies.assign_from(Frequencies.uniform(self.n_states))

            if self.n_states != len(self.frequencies):
                raise ValueError(
                    f"Frequencies has wrong size. Expected {self.n_states}, but got "
                    f"{len(self.frequencies)}. Attempted correction failed."
                )

        if self.n_states != 0 and self.n_states < 2:
            raise ValueError(f"n_states must be at least 2, got {self.n_states}")

        self.rb.set_bounds(max(0.0, self.rb.lower), self.rb.upper)
        self.g.set_bounds(max(0.0, self.g.lower), min(1.0, self.g.upper))
        self.one_on_a1.set_bounds(max(0.0, self.one_on_a1.lower), self.one_on_a1.upper)

        for parameter in self.parameters.values():
            if not parameter.is_valid():
                raise ValueError(
                    f"{parameter.name} must be in [{parameter.lower}, {parameter.upper}], "
                    f"got {parameter.value}"
                )

        self._validated = True

    def requires_recalculation(self, parameter: Optional[Parameter] = None) -> bool:
        """Mark the rate matrix stale; any parameter change triggers a rebuild."""
        self._update_matrix = True
        return True

    @property
    def is_dirty(self) -> bool:
        """True if the rate matrix must be rebuilt before next use."""
        return self._update_matrix

    def _setup_rate_system(self) -> RateSystem:
        Q, row_sum, row_sum2 = build_sainudiin_Q_matrix(
            rb=self.rb.value,
            ieq=self.ieq.value,
            g=self.g.value,
            one_on_a1=self.one_on_a1.value,
            start_linear_regime=self.start_lin_regime.value,
            n_states=self.n_states,
            min_repeat=self.min_repeat,
        )
        decomposition = eigen_decompose(Q)
        pi = find_stationary_distribution(
            decomposition.eigenvalues, decomposition.inverse_eigenvectors, Q
        )
        return RateSystem(
            Q=Q,
            row_sum=row_sum,
            row_sum2=row_sum2,
            eigen_decomposition=decomposition,
            stationary_distribution=pi,
        )

    def _get_rate_system(self) -> RateSystem:
        if not self._validated:
            raise RuntimeError("Model state bounds changed; call init_and_validate() first")
        if self.n_states == 0:
            raise ValueError("Number of states is unknown; provide n_states or data")

        # Must be locked so that likelihood threads do not rebuild simultaneously
        with self._lock:
            if self._update_matrix:
                self._rate_system = self._setup_rate_system()
                self._update_matrix = False
                self.rebuild_count += 1
            return self._rate_system

    def get_eigen_decomposition(self) -> EigenDecomposition:
        """Return the (cached) eigendecomposition of the rate matrix."""
        return self._get_rate_system().eigen_decomposition

    def get_rate_matrix(self) -> np.ndarray:
        """Return a copy of the rate matrix Q."""
        return self._get_rate_system().Q.copy()

    def get_row_sums(self) -> tuple[np.ndarray, np.ndarray]:
        """Return copies of (row_sum, row_sum2) of the rate matrix."""
        system = self._get_rate_system()
        return system.row_sum.copy(), system.row_sum2.copy()

    @property
    def stationary_distribution(self) -> np.ndarray:
        """Stationary distribution of the rate matrix."""
        return self._get_rate_system().stationary_distribution.copy()

    def get_transition_probabilities(
        self,
        start_time: float,
        end_time: float,
        rate: float,
        matrix: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Compute the transition probability matrix for a branch.

        Parameters
        ----------
        start_time : float
            Height of the parent node
        end_time : float
            Height of the child node
        rate : float
            Branch rate
        matrix : ndarray, shape (n_states * n_states,), optional
            Flat output buffer, filled row-major in place

        Returns
        -------
        P : ndarray, shape (n_states, n_states)
            Transition probabilities, P[i, j] = P(j at end | i at start)
        """
        system = self._get_rate_system()
        P = transition_probabilities(
            system.eigen_decomposition,
            system.stationary_distribution,
            system.row_sum2,
            start_time,
            end_time,
            rate,
            smoothing=self.smoothing,
            Q=system.Q,
        )
        if matrix is not None:
            if matrix.size != P.size:
                raise ValueError(
                    f"Output buffer has {matrix.size} entries, expected {P.size}"
                )
            matrix[:] = P.ravel()
        return P

    def store(self):
        """Checkpoint the derived state, dirty flag and parameter values."""
        self._stored_update_matrix = self._update_matrix
        if self._rate_system is not None:
            self._stored_rate_system = self._rate_system.copy()
        for parameter in self.parameters.values():
            parameter.store()

    def restore(self):
        """Revert to the last checkpoint by swapping, without recomputation."""
        self._update_matrix = self._stored_update_matrix
        if self._stored_rate_system is not None:
            self._rate_system, self._stored_rate_system = (
                self._stored_rate_system,
                self._rate_system,
            )
        for parameter in self.parameters.values():
            parameter.restore()

    def accept(self):
        """Drop the checkpoint after an accepted proposal."""
        self._stored_rate_system = None

    def __repr__(self) -> str:
        values = ", ".join(f"{name}={p.value}" for name, p in self.parameters.items())
        return f"SainudiinModel({values}, n_states={self.n_states}, min_repeat={self.min_repeat})"


def _as_parameter(name: str, value: ParameterLike, parameter_class: type) -> Parameter:
    if isinstance(value, Parameter):
        return value
    return parameter_class(name, value)
