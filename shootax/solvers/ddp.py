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

"""Differential Dynamic Programming (DDP) solver.

Each iteration evaluates the derivatives of every stage along the current
trajectory, runs a Riccati-like backward pass producing feedforward terms k
and feedback gains K, and line-searches over closed-loop rollouts

    u_t = us[t] + alpha * k[t] + K[t] (x_t ⊖ xs[t]).

Stages are evaluated through the shooting problem, which may use a thread
pool; the backward and forward passes are sequential over stages.
"""

import time
from typing import List, Optional, Sequence, Tuple

from absl import logging
import jax.numpy as jnp
from jax import Array

from shootax.core.exceptions import (
    BackwardPassError,
    ForwardPassError,
    InvalidNumericValueError,
)
from shootax.core.problem import ShootingProblem
from shootax.core.trajectory import Trajectory
from shootax.core.types import SolverStatus
from shootax.solvers.base import SolverAbstract
from shootax.utils.psd import cho_solve, cholesky, regularize_hessian, symmetrize


def _all_finite(*arrays: Array) -> bool:
    return all(bool(jnp.all(jnp.isfinite(a))) for a in arrays)


class SolverDDP(SolverAbstract):
    """Classical DDP with adaptive regularization and backtracking.

    The forward pass always rolls out the dynamics from x0, so an accepted
    step makes the trajectory feasible. An infeasible initial guess is only
    used as the linearization point of the first iteration.

    Attributes:
        Vx, Vxx: Value function gradient and Hessian per stage (T + 1).
        Qx, Qu, Qxx, Qxu, Quu: Action-value expansion per running stage.
        k, K: Feedforward terms (nu,) and feedback gains (nu, ndx).
        xs_try, us_try, cost_try: Last candidate of the line search.

    Example:
        >>> solver = SolverDDP(problem)
        >>> result = solver.solve(maxiter=50)
        >>> converged, xs, us, cost, iterations = result
    """

    name = "ddp"

    def __init__(self, problem: ShootingProblem, config=None, callbacks=None,
                 **options):
        super().__init__(problem, config=config, callbacks=callbacks, **options)

    def allocate_data(self) -> None:
        super().allocate_data()
        problem = self.problem
        T, ndx = problem.T, problem.ndx
        nus = [model.nu for model in problem.running_models]
        self.Vx: List[Array] = [jnp.zeros(ndx) for _ in range(T + 1)]
        self.Vxx: List[Array] = [jnp.zeros((ndx, ndx)) for _ in range(T + 1)]
        self.Qx: List[Array] = [jnp.zeros(ndx) for _ in range(T)]
        self.Qxx: List[Array] = [jnp.zeros((ndx, ndx)) for _ in range(T)]
        self.Qu: List[Array] = [jnp.zeros(nu) for nu in nus]
        self.Quu: List[Array] = [jnp.zeros((nu, nu)) for nu in nus]
        self.Qxu: List[Array] = [jnp.zeros((ndx, nu)) for nu in nus]
        self.Quuk: List[Array] = [jnp.zeros(nu) for nu in nus]
        self.k: List[Array] = [jnp.zeros(nu) for nu in nus]
        self.K: List[Array] = [jnp.zeros((nu, ndx)) for nu in nus]
        self.xs_try: List[Array] = []
        self.us_try: List[Array] = []
        self.cost_try = 0.0
        self.dg, self.dq = 0.0, 0.0

    def set_candidate(self, xs=None, us=None, is_feasible=False) -> None:
        super().set_candidate(xs, us, is_feasible)
        if [k.shape[0] for k in self.k] != [m.nu for m in self.problem.running_models]:
            self.allocate_data()

    # Derivatives and gaps

    def calc_diff(self) -> float:
        """Evaluate the problem derivatives along (xs, us) and update the gaps.

        Raises:
            InvalidNumericValueError: If a cost or derivative is not finite.
        """
        cost = self.problem.calc_diff(self.xs, self.us)
        self.check_numerics(cost)
        self.cost = cost
        self.compute_gaps()
        self.compute_dynamic_feasibility()
        return self.cost

    def check_numerics(self, cost: float) -> None:
        problem = self.problem
        bad_stage = None
        if not jnp.isfinite(cost):
            bad_stage = 'cost'
        else:
            for t, data in enumerate(problem.running_datas):
                if not _all_finite(data.xnext, *data.derivatives()):
                    bad_stage = t
                    break
            else:
                data = problem.terminal_data
                if not _all_finite(data.Lx, data.Lxx):
                    bad_stage = problem.T
        if bad_stage is not None:
            raise InvalidNumericValueError(
                f"non-finite cost or derivative (stage {bad_stage})",
                trajectory=self.result(),
            )

    # Backward pass

    def backward_pass(self) -> None:
        """Riccati-like sweep from the terminal stage to the first.

        Raises:
            BackwardPassError: If Quu is not positive definite at some stage
                or the value function is not finite.
        """
        problem = self.problem
        T = problem.T

        data = problem.terminal_data
        Vxx = regularize_hessian(symmetrize(data.Lxx), self.xreg)
        Vx = data.Lx
        if not self.is_feasible:
            Vx = Vx + Vxx @ self.fs[T]
        self.Vxx[T], self.Vx[T] = Vxx, Vx

        for t in reversed(range(T)):
            model = problem.running_models[t]
            data = problem.running_datas[t]
            Vx_next, Vxx_next = self.Vx[t + 1], self.Vxx[t + 1]

            FxTVxx = data.Fx.T @ Vxx_next
            Qx = data.Lx + data.Fx.T @ Vx_next
            Qxx = data.Lxx + FxTVxx @ data.Fx
            if model.nu > 0:
                Qu = data.Lu + data.Fu.T @ Vx_next
                Qxu = data.Lxu + FxTVxx @ data.Fu
                Quu = data.Luu + data.Fu.T @ Vxx_next @ data.Fu
                Quu = regularize_hessian(symmetrize(Quu), self.ureg)
                L = cholesky(Quu)
                if L is None:
                    raise BackwardPassError(
                        f"Quu is not positive definite at stage {t}", stage=t)
                sol = cho_solve(L, jnp.column_stack([Qu, Qxu.T]))
                k, K = -sol[:, 0], -sol[:, 1:]
                Vx = Qx + K.T @ Qu
                Vxx = Qxx + Qxu @ K
                self.Qu[t], self.Qxu[t], self.Quu[t] = Qu, Qxu, Quu
                self.k[t], self.K[t] = k, K
                self.Quuk[t] = Quu @ k
            else:
                Vx, Vxx = Qx, Qxx

            Vxx = regularize_hessian(symmetrize(Vxx), self.xreg)
            if not self.is_feasible:
                Vx = Vx + Vxx @ self.fs[t]
            if not _all_finite(Vx, Vxx):
                raise BackwardPassError(
                    f"value function is not finite at stage {t}", stage=t)
            self.Qx[t], self.Qxx[t] = Qx, Qxx
            self.Vx[t], self.Vxx[t] = Vx, Vxx

    def compute_direction(self, recalc_diff: bool = True) -> None:
        if recalc_diff:
            self.calc_diff()
        self.backward_pass()

    # Improvement and stopping

    def stopping_criteria(self) -> float:
        """Sum of squared control gradients of the action-value function."""
        self.stop = sum(float(jnp.dot(Qu, Qu)) for Qu in self.Qu)
        return self.stop

    def update_expected_improvement(self) -> None:
        """Terms of the expected improvement that do not depend on the step."""
        dg, dq = 0.0, 0.0
        for Qu, k, Quuk in zip(self.Qu, self.k, self.Quuk):
            dg -= float(jnp.dot(Qu, k))
            dq -= float(jnp.dot(k, Quuk))
        self.dg, self.dq = dg, dq
        self.d = (dg, dq)

    def expected_improvement(self) -> Tuple[float, float]:
        """Linear and quadratic coefficients of dVexp(alpha)."""
        self.d = (self.dg, self.dq)
        return self.d

    def expected_reduction(self, alpha: float) -> float:
        d0, d1 = self.d
        return alpha * (d0 + 0.5 * d1 * alpha)

    # Forward pass

    def next_candidate_state(self, t: int, xnext: Array, alpha: float) -> Array:
        return xnext

    def forward_pass(self, alpha: float) -> None:
        """Closed-loop rollout of the step of length alpha.

        Raises:
            ForwardPassError: If the candidate cost or a state is not finite.
        """
        problem = self.problem
        xs_try: List[Array] = []
        us_try: List[Array] = []
        cost_try = 0.0
        xnext = problem.x0
        for t, (model, data) in enumerate(
                zip(problem.running_models, problem.running_datas)):
            x = self.next_candidate_state(t, xnext, alpha)
            if model.nu > 0:
                dx = model.state.diff(self.xs[t], x)
                u = self.us[t] + alpha * self.k[t] + self.K[t] @ dx
            else:
                u = self.us[t]
            model.calc(data, x, u)
            cost_try += data.cost
            xnext = data.xnext
            xs_try.append(x)
            us_try.append(u)

        x = self.next_candidate_state(problem.T, xnext, alpha)
        problem.terminal_model.calc(problem.terminal_data, x)
        cost_try += problem.terminal_data.cost
        xs_try.append(x)

        cost_try = float(cost_try)
        if not jnp.isfinite(cost_try) or not _all_finite(*xs_try):
            raise ForwardPassError(
                f"non-finite candidate for step length {alpha}")
        self.xs_try, self.us_try, self.cost_try = xs_try, us_try, cost_try

    def try_step(self, steplength: float = 1.0) -> float:
        self.forward_pass(steplength)
        return self.cost - self.cost_try

    def accept_step(self) -> bool:
        """Acceptance test of the last trial (dV and dVexp already set)."""
        cfg = self.config
        d0 = self.d[0]
        if self.dVexp < 0:
            return False
        return (abs(d0) < cfg.th_grad and self.dV >= 0
                or not self.is_feasible
                or self.dV > cfg.th_acceptstep * self.dVexp)

    def candidate_is_feasible(self, alpha: float) -> bool:
        return True

    def line_search(self) -> bool:
        """Try step lengths from 1 down and keep the first acceptable one."""
        for alpha in self.config.alphas:
            self.steplength = alpha
            try:
                self.dV = self.try_step(alpha)
            except ForwardPassError as e:
                logging.vlog(1, 'Rejected step length %g: %s', alpha, e)
                continue
            self.expected_improvement()
            self.dVexp = self.expected_reduction(alpha)
            if self.accept_step():
                self.was_feasible = self.is_feasible
                self.xs, self.us = self.xs_try, self.us_try
                self.is_feasible = self.is_feasible or self.candidate_is_feasible(alpha)
                self.cost = self.cost_try
                return True
        self.steplength = 0.0
        return False

    # Main loop

    def solve(
        self,
        init_xs: Optional[Sequence[Array]] = None,
        init_us: Optional[Sequence[Array]] = None,
        maxiter: int = 100,
        is_feasible: bool = False,
        init_reg: Optional[float] = None,
    ) -> Trajectory:
        """Solve the problem from an initial guess.

        Args:
            init_xs: T + 1 initial states. Defaults to the rollout of init_us,
                in which case the guess is feasible.
            init_us: T initial controls. Defaults to zero controls.
            maxiter: Iteration budget.
            is_feasible: Whether init_xs is a rollout of init_us.
            init_reg: Initial regularization, clipped to
                [reg_min, reg_max]. Defaults to reg_min.

        Returns:
            Trajectory whose status tells whether the solver converged.

        Raises:
            DimensionMismatchError: If the initial guess has the wrong sizes.
            InvalidNumericValueError: If a cost or derivative along an
                accepted trajectory is not finite.
        """
        cfg = self.config
        self.set_candidate(init_xs, init_us, is_feasible)
        self.reset_regularization(init_reg)
        self.was_feasible = False
        self.steps = []
        self.status = SolverStatus.UNKNOWN
        start = time.perf_counter()

        for self.iter in range(maxiter):
            if (cfg.time_limit is not None
                    and time.perf_counter() - start > cfg.time_limit):
                return self.finish(SolverStatus.TIME_LIMIT, self.iter)

            recalc = True
            while True:
                try:
                    self.compute_direction(recalc)
                    break
                except BackwardPassError as e:
                    recalc = False
                    if self.regularization_saturated:
                        logging.vlog(1, 'Backward pass failed at maximum '
                                     'regularization: %s', e)
                        return self.finish(SolverStatus.MAX_REGULARIZATION, self.iter)
                    self.increase_regularization()
                    logging.vlog(2, 'Backward pass failed (%s), xreg=%g', e, self.xreg)

            self.update_expected_improvement()
            self.stopping_criteria()
            if self.is_feasible and (self.stop < cfg.th_stop
                                     or abs(self.d[0]) < cfg.th_grad):
                return self.finish(SolverStatus.SOLVED, self.iter)

            saturated = self.regularization_saturated
            accepted = self.line_search()
            self.steps.append(self.steplength)

            if accepted and self.steplength > cfg.th_stepdec:
                self.decrease_regularization()
            elif not accepted or self.steplength <= cfg.th_stepinc:
                self.increase_regularization()

            if not accepted:
                logging.vlog(1, 'Iteration %d: no step length accepted', self.iter)
            self.notify()

            if not accepted and saturated:
                return self.finish(SolverStatus.MAX_REGULARIZATION, self.iter + 1)

        return self.finish(SolverStatus.MAX_ITERATIONS, maxiter)

    def finish(self, status: SolverStatus, iterations: int) -> Trajectory:
        self.status = status
        if status is not SolverStatus.SOLVED:
            logging.info('%s stopped with status %s after %d iterations '
                         '(cost %g)', self.name, status.name, iterations, self.cost)
        return self.result(status, iterations)
