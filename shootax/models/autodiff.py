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

"""Action model built from pure JAX functions.

Derivatives are obtained with automatic differentiation, so any stage whose
dynamics and cost can be written with `jax.numpy` plugs into a shooting
problem without hand-written Jacobians.
"""

from typing import Callable, Optional

import jax
import jax.numpy as jnp
from jax import Array

from shootax.core.action import ActionDataAbstract, ActionModelAbstract
from shootax.core.state import StateAbstract
from shootax.core.types import CostFn, DynamicsFn, TerminalCostFn
from shootax.utils.integrators import get_integrator
from shootax.utils.linearize import linearize, linearize_state, quadratize


class ActionModelAutoDiff(ActionModelAbstract):
    """Stage defined by dynamics(x, u) and cost(x, u) JAX functions.

    The state is assumed to use a Euclidean chart (`StateVector` or
    `StateS1`), so derivatives w.r.t. x are derivatives w.r.t. tangent
    perturbations.

    Attributes:
        dynamics: Discrete-time dynamics (x, u) -> x_next.
        cost: Stage cost (x, u) -> scalar.
        terminal_cost: Cost (x) -> scalar used when evaluated with u=None.
            Defaults to cost(x, zeros(nu)).

    Example:
        >>> model = ActionModelAutoDiff(
        ...     StateVector(2), 1,
        ...     dynamics=lambda x, u: x + 0.1 * jnp.array([x[1], u[0]]),
        ...     cost=lambda x, u: x @ x + 0.1 * u @ u,
        ... )
    """

    supports_quasi_static = True

    def __init__(
        self,
        state: StateAbstract,
        nu: int,
        dynamics: DynamicsFn,
        cost: CostFn,
        terminal_cost: Optional[TerminalCostFn] = None,
    ):
        super().__init__(state, nu)
        self.dynamics = dynamics
        self.cost = cost
        if terminal_cost is None:
            unone = jnp.zeros(nu)
            terminal_cost = lambda x: cost(x, unone)
        self.terminal_cost = terminal_cost

        self._dynamics = jax.jit(dynamics)
        self._cost = jax.jit(cost)
        self._terminal_cost = jax.jit(terminal_cost)
        self._dynamics_jacobians = linearize(dynamics)
        self._cost_gradients = linearize(cost)
        self._cost_hessians = quadratize(cost)
        self._terminal_derivatives = linearize_state(terminal_cost)

    @classmethod
    def from_continuous(
        cls,
        state: StateAbstract,
        nu: int,
        dynamics_continuous: Callable,
        cost: CostFn,
        dt: float,
        integrator: str = 'rk4',
        terminal_cost: Optional[TerminalCostFn] = None,
    ) -> 'ActionModelAutoDiff':
        """Discretize continuous dynamics; the running cost is scaled by dt."""
        if dt <= 0:
            raise ValueError(f"dt must be positive, got {dt}")
        dynamics = get_integrator(integrator)(dynamics_continuous, dt)

        def integrated_cost(x, u):
            return dt * cost(x, u)

        return cls(state, nu, dynamics, integrated_cost, terminal_cost)

    def calc(self, data: ActionDataAbstract, x: Array, u: Optional[Array] = None) -> None:
        x, u = self.check_inputs(x, u)
        if u is None:
            data.xnext = x
            data.cost = self._terminal_cost(x)
            return
        data.xnext = self._dynamics(x, u)
        data.cost = self._cost(x, u)

    def calc_diff(
        self, data: ActionDataAbstract, x: Array, u: Optional[Array] = None
    ) -> None:
        x, u = self.check_inputs(x, u)
        if u is None:
            data.Lx, data.Lxx = self._terminal_derivatives(x)
            return
        data.Fx, data.Fu = self._dynamics_jacobians(x, u)
        data.Lx, data.Lu = self._cost_gradients(x, u)
        data.Lxx, data.Luu, data.Lxu = self._cost_hessians(x, u)
