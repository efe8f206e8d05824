"""
Bounded model parameters.

Parameters hold a value plus lower/upper bounds and notify registered
listeners whenever the value changes, which is how a substitution model
learns that its cached rate matrix is stale.
"""

import math
from typing import Callable, Optional


class Parameter:
    """
    Scalar model parameter with bounds and change listeners.

    Parameters
    ----------
    name : str
        Parameter name (used in error messages)
    value : float
        Initial value
    lower, upper : float, optional
        Bounds (default unbounded)
    """

    def __init__(
        self,
        name: str,
        value: float,
        lower: Optional[float] = None,
        upper: Optional[float] = None,
    ):
        self.name = name
        self.lower = -math.inf if lower is None else lower
        self.upper = math.inf if upper is None else upper
        self._value = self._convert(value)
        self._stored_value = self._value
        self._listeners: list[Callable[["Parameter"], None]] = []

    def _convert(self, value):
        return float(value)

    @property
    def value(self):
        """Current value."""
        return self._value

    @value.setter
    def value(self, new_value):
        new_value = self._convert(new_value)
        if not self.is_valid(new_value):
            raise ValueError(
                f"{self.name} must be in [{self.lower}, {self.upper}], got {new_value}"
            )
        self._value = new_value
        for listener in self._listeners:
            listener(self)

    def is_valid(self, value=None) -> bool:
        """Check whether ``value`` (default: the current value) is within bounds."""
        if value is None:
            value = self._value
        return self.lower <= value <= self.upper

    def set_bounds(self, lower: float, upper: float):
        """Replace the bounds; the current value is not changed."""
        if lower > upper:
            raise ValueError(f"{self.name}: lower bound {lower} exceeds upper bound {upper}")
        self.lower = lower
        self.upper = upper

    def add_listener(self, listener: Callable[["Parameter"], None]):
        """Register a callback invoked with the parameter after every change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[["Parameter"], None]):
        """Unregister a previously added callback."""
        self._listeners.remove(listener)

    def store(self):
        """Remember the current value."""
        self._stored_value = self._value

    def restore(self):
        """Return to the stored value without notifying listeners."""
        self._value = self._stored_value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name}={self._value}, [{self.lower}, {self.upper}])"


class RealParameter(Parameter):
    """Real-valued parameter."""


class IntegerParameter(Parameter):
    """Integer-valued parameter; non-integral values are rejected."""

    def _convert(self, value):
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"{self.name} must be an integer, got {value}")
        return int(value)
