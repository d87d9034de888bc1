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

"""Feasibility-driven DDP (FDDP).

FDDP accepts infeasible initial guesses: states are decision variables and
the gaps fs between predicted and given next states are closed gradually.
The backward pass expands the value function around the predicted next
state (see `SolverDDP.backward_pass`), and the forward pass keeps a fraction
(1 - alpha) of each gap:

    x_t = integrate(f(x_{t-1}, u_{t-1}), (alpha - 1) fs[t]).

A full step (alpha = 1) is a plain rollout and makes the trajectory
feasible. The expected improvement gains terms in the gaps, so it may be
negative; such steps are accepted while the cost does not grow by more than
`th_acceptnegstep` times the expected improvement.
"""

from typing import Tuple

import jax.numpy as jnp
from jax import Array

from shootax.solvers.ddp import SolverDDP


class SolverFDDP(SolverDDP):
    """Feasibility-driven DDP solver.

    Example:
        >>> solver = SolverFDDP(problem, th_stop=1e-10)
        >>> result = solver.solve(xs0, us0, maxiter=100, is_feasible=False)
        >>> result.info['ffeas']
    """

    name = "fddp"

    def update_expected_improvement(self) -> None:
        super().update_expected_improvement()
        if not self.is_feasible:
            dg, dq = self.dg, self.dq
            for f, Vx, Vxx in zip(self.fs, self.Vx, self.Vxx):
                dg -= float(jnp.dot(Vx, f))
                dq += float(f @ Vxx @ f)
            self.dg, self.dq = dg, dq
            self.d = (dg, dq)

    def expected_improvement(self) -> Tuple[float, float]:
        """Coefficients of dVexp for the last candidate.

        When infeasible, the gap terms also depend on how far the candidate
        states moved from xs.
        """
        dv = 0.0
        if not self.is_feasible:
            states = [m.state for m in self.problem.running_models]
            states.append(self.problem.terminal_model.state)
            for state, f, Vxx, x_try, x in zip(
                    states, self.fs, self.Vxx, self.xs_try, self.xs):
                dx = state.diff(x_try, x)
                dv -= float(f @ Vxx @ dx)
        self.d = (self.dg + dv, self.dq - 2.0 * dv)
        return self.d

    def next_candidate_state(self, t: int, xnext: Array, alpha: float) -> Array:
        if self.is_feasible or alpha == 1.0:
            return xnext
        if t < self.problem.T:
            state = self.problem.running_models[t].state
        else:
            state = self.problem.terminal_model.state
        return state.integrate(xnext, self.fs[t] * (alpha - 1.0))

    def accept_step(self) -> bool:
        cfg = self.config
        if self.dVexp >= 0:
            return (abs(self.d[0]) < cfg.th_grad and self.dV >= 0
                    or self.dV > cfg.th_acceptstep * self.dVexp)
        return self.dV > cfg.th_acceptnegstep * self.dVexp

    def candidate_is_feasible(self, alpha: float) -> bool:
        return alpha == 1.0
