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

"""Trajectory data structures returned by shooting solvers."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

import jax.numpy as jnp
from jax import Array

from shootax.core.types import SolverStatus


@dataclass
class Trajectory:
    """Container for trajectory optimization results.

    States and controls are kept as lists since the control dimension may
    change from stage to stage.

    Attributes:
        xs: T + 1 states. xs[0] is the initial state of the problem.
        us: T controls. us[t] is applied at stage t.
        cost: Total cost of the trajectory.
        status: Solver status indicating convergence or the stopping reason.
        info: Solver-specific information:
            - 'iterations': Number of iterations performed
            - 'steps': Accepted step length per iteration, 0.0 if rejected
            - 'stop': Final value of the stopping criterion
            - 'ffeas': Maximum dynamic infeasibility (gap norm)
            - 'xreg', 'ureg': Final regularization values
            - 'is_feasible': Whether xs is a rollout of us

    Example:
        >>> result = solver.solve(xs0, us0, maxiter=100)
        >>> print(f"Converged: {result.converged} in {result.iterations} iterations")
        >>> u_first = result.us[0]
    """

    xs: List[Array]
    us: List[Array]
    cost: float
    status: SolverStatus = SolverStatus.UNKNOWN
    info: Dict[str, Any] = field(default_factory=dict)

    @property
    def horizon(self) -> int:
        """Return the number of running stages T."""
        return len(self.us)

    @property
    def converged(self) -> bool:
        """Return True if the solver converged."""
        return self.status == SolverStatus.SOLVED

    @property
    def iterations(self) -> int:
        return self.info.get('iterations', 0)

    @property
    def steps(self) -> List[float]:
        return self.info.get('steps', [])

    def stacked(self):
        """States and controls as (T+1, nx) and (T, nu) arrays.

        Only valid when every stage has the same control dimension.
        """
        if len({u.shape for u in self.us}) > 1:
            raise ValueError("controls have different sizes and cannot be stacked")
        return jnp.stack(self.xs), jnp.stack(self.us)

    def __iter__(self):
        """Unpack as (converged, xs, us, cost, iterations)."""
        return iter((self.converged, self.xs, self.us, self.cost, self.iterations))
