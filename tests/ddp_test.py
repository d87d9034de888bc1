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

"""Tests for the classical DDP solver."""

from absl.testing import absltest
from absl.testing import parameterized

import jax
import jax.numpy as jnp
from jax import config
import numpy as np

from shootax.core import ShootingProblem, SolverStatus
from shootax.models import ActionModelLQR, ActionModelUnicycle
from shootax.solvers import CallbackLogger, SolverDDP, SolverFDDP

config.update('jax_enable_x64', True)


def _lq_problem(T=10, seed=0):
    model = ActionModelLQR.random(3, 2, jax.random.PRNGKey(seed), drift_free=False)
    x0 = jnp.array([1.0, -0.5, 0.25])
    return ShootingProblem(x0, [model] * T, model)


class SolverDDPTest(parameterized.TestCase):

    def test_lq_converges_in_one_iteration(self):
        result = SolverDDP(_lq_problem()).solve()
        self.assertTrue(result.converged)
        self.assertEqual(result.iterations, 1)
        self.assertEqual(result.steps, [1.0])

    def test_matches_fddp_on_lq(self):
        problem = _lq_problem(seed=4)
        ddp = SolverDDP(problem).solve()
        fddp = SolverFDDP(problem).solve()
        self.assertAlmostEqual(ddp.cost, fddp.cost, places=9)
        for u_ddp, u_fddp in zip(ddp.us, fddp.us):
            np.testing.assert_allclose(u_ddp, u_fddp, atol=1e-8)

    def test_infeasible_guess_becomes_feasible(self):
        problem = _lq_problem()
        xs0 = [problem.x0] + [jnp.ones(3)] * problem.T
        us0 = [jnp.zeros(2)] * problem.T
        logger = CallbackLogger()
        solver = SolverDDP(problem, callbacks=[logger])
        result = solver.solve(xs0, us0, is_feasible=False)
        self.assertTrue(result.converged)
        self.assertTrue(solver.is_feasible)
        self.assertGreater(logger.ffeas[0], 0.0)
        self.assertEqual(logger.steps[0], 1.0)
        for x, x_roll in zip(result.xs, problem.rollout(result.us)):
            np.testing.assert_allclose(x, x_roll, atol=1e-12)

    def test_unicycle(self):
        model = ActionModelUnicycle(dt=0.1)
        problem = ShootingProblem(jnp.array([1.0, 0.5, -0.3]), [model] * 15, model)
        logger = CallbackLogger()
        result = SolverDDP(problem, callbacks=[logger]).solve(maxiter=100)
        self.assertTrue(result.converged)
        self.assertTrue(np.all(np.diff(logger.costs) <= 1e-12))
        self.assertEqual(logger.iterations, list(range(len(logger.iterations))))

    def test_backward_pass_outputs(self):
        problem = _lq_problem(T=4)
        solver = SolverDDP(problem)
        solver.calc_diff()
        solver.backward_pass()
        for t in range(problem.T):
            self.assertEqual(solver.K[t].shape, (2, 3))
            self.assertEqual(solver.k[t].shape, (2,))
            np.testing.assert_allclose(solver.Quuk[t], solver.Quu[t] @ solver.k[t])
            np.testing.assert_allclose(solver.Vxx[t], solver.Vxx[t].T)
        solver.update_expected_improvement()
        d0, d1 = solver.expected_improvement()
        self.assertGreater(d0, 0.0)
        self.assertLess(d1, 0.0)
        self.assertGreater(solver.stopping_criteria(), 0.0)

    def test_try_step_matches_expected_reduction_on_lq(self):
        problem = _lq_problem(T=5, seed=9)
        solver = SolverDDP(problem, reg_min=1e-12)
        solver.calc_diff()
        solver.backward_pass()
        solver.update_expected_improvement()
        for alpha in (1.0, 0.5, 0.25):
            dV = solver.try_step(alpha)
            solver.expected_improvement()
            self.assertAlmostEqual(dV, solver.expected_reduction(alpha), places=8)

    def test_status_on_budget(self):
        model = ActionModelUnicycle()
        problem = ShootingProblem(jnp.array([1.0, 1.0, 1.0]), [model] * 10, model)
        result = SolverDDP(problem).solve(maxiter=2)
        self.assertEqual(result.status, SolverStatus.MAX_ITERATIONS)
        self.assertLen(result.steps, 2)


if __name__ == '__main__':
    absltest.main()
