# Copyright 2024 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""State manifolds.

The solvers never add or subtract states directly. They go through the
`diff` and `integrate` operators of a state so that non-Euclidean components
(angles, orientations) are handled consistently:

    dx = state.diff(x0, x1)        # x1 ⊖ x0, a tangent vector of size ndx
    x1 = state.integrate(x0, dx)   # x0 ⊕ dx, a state of size nx
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Tuple, Union

import jax
import jax.numpy as jnp
from jax import Array

from shootax.core.exceptions import DimensionMismatchError
from shootax.utils.manifold import get_s1_wrapper


_FIRSTSECOND = ('first', 'second', 'both')

JacobianResult = Union[Array, Tuple[Array, Array]]


def _check_firstsecond(firstsecond: str) -> None:
    if firstsecond not in _FIRSTSECOND:
        raise ValueError(
            f"firstsecond must be one of {_FIRSTSECOND}, got {firstsecond!r}"
        )


class StateAbstract(ABC):
    """Abstract state manifold.

    Attributes:
        nx: Dimension of the state representation.
        ndx: Dimension of the tangent space.
        nq: Dimension of the configuration (position-like) part.
        nv: Dimension of the velocity-like part.
    """

    def __init__(
        self,
        nx: int,
        ndx: int,
        nq: Optional[int] = None,
        nv: Optional[int] = None,
    ):
        if nx < 1 or ndx < 1:
            raise ValueError(f"nx and ndx must be >= 1, got {nx} and {ndx}")
        self.nx = nx
        self.ndx = ndx
        self.nq = nx if nq is None else nq
        self.nv = ndx if nv is None else nv

    @abstractmethod
    def zero(self) -> Array:
        """Return the neutral state."""

    @abstractmethod
    def rand(self, key: Array) -> Array:
        """Return a random state."""

    @abstractmethod
    def diff(self, x0: Array, x1: Array) -> Array:
        """Return the tangent vector x1 ⊖ x0."""

    @abstractmethod
    def integrate(self, x: Array, dx: Array) -> Array:
        """Return the state x ⊕ dx."""

    @abstractmethod
    def jdiff(self, x0: Array, x1: Array, firstsecond: str = 'both') -> JacobianResult:
        """Jacobians of diff(x0, x1) with respect to x0 and/or x1."""

    @abstractmethod
    def jintegrate(self, x: Array, dx: Array, firstsecond: str = 'both') -> JacobianResult:
        """Jacobians of integrate(x, dx) with respect to x and/or dx."""

    def check_state(self, x: Array, name: str = 'x') -> Array:
        """Convert `x` to an array and validate its size."""
        x = jnp.asarray(x)
        if x.shape != (self.nx,):
            raise DimensionMismatchError(
                f"{name} has shape {x.shape}, expected ({self.nx},)"
            )
        return x

    def check_tangent(self, dx: Array, name: str = 'dx') -> Array:
        dx = jnp.asarray(dx)
        if dx.shape != (self.ndx,):
            raise DimensionMismatchError(
                f"{name} has shape {dx.shape}, expected ({self.ndx},)"
            )
        return dx

    def __repr__(self) -> str:
        return f"{type(self).__name__}(nx={self.nx}, ndx={self.ndx})"


class StateVector(StateAbstract):
    """Euclidean state space R^nx."""

    def __init__(self, nx: int):
        super().__init__(nx, nx, nq=nx // 2, nv=nx - nx // 2)

    def zero(self) -> Array:
        return jnp.zeros(self.nx)

    def rand(self, key: Array) -> Array:
        return jax.random.normal(key, (self.nx,))

    def diff(self, x0: Array, x1: Array) -> Array:
        return x1 - x0

    def integrate(self, x: Array, dx: Array) -> Array:
        return x + dx

    def jdiff(self, x0, x1, firstsecond='both'):
        _check_firstsecond(firstsecond)
        eye = jnp.eye(self.ndx)
        if firstsecond == 'first':
            return -eye
        if firstsecond == 'second':
            return eye
        return -eye, eye

    def jintegrate(self, x, dx, firstsecond='both'):
        _check_firstsecond(firstsecond)
        eye = jnp.eye(self.ndx)
        if firstsecond == 'both':
            return eye, eye
        return eye


class StateS1(StateVector):
    """Euclidean state with circular (S¹) components.

    Components listed in `s1_indices` are angles. Differences between them are
    taken along the shortest arc and integrated angles are kept in [-π, π).
    The chart is locally Euclidean, so the Jacobians are those of
    `StateVector`.

    Example:
        >>> state = StateS1(3, s1_indices=(2,))  # planar pose (x, y, theta)
        >>> dx = state.diff(jnp.array([0., 0., 3.0]), jnp.array([0., 0., -3.0]))
        >>> # dx[2] ≈ 2π - 6, the short way around
    """

    def __init__(self, nx: int, s1_indices: Tuple[int, ...] = ()):
        super().__init__(nx)
        for i in s1_indices:
            if not 0 <= i < nx:
                raise ValueError(f"S1 index {i} out of range for nx={nx}")
        self.s1_indices = tuple(s1_indices)
        self._wrap = get_s1_wrapper(self.s1_indices)

    def rand(self, key: Array) -> Array:
        return self._wrap(super().rand(key))

    def diff(self, x0: Array, x1: Array) -> Array:
        return self._wrap(x1 - x0)

    def integrate(self, x: Array, dx: Array) -> Array:
        return self._wrap(x + dx)

    def __repr__(self) -> str:
        return f"StateS1(nx={self.nx}, s1_indices={self.s1_indices})"
