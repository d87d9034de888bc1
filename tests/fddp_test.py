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

"""Tests for the feasibility-driven DDP solver."""

from absl.testing import absltest
from absl.testing import parameterized

import jax
import jax.numpy as jnp
from jax import config
import numpy as np

from shootax.core import (
    DimensionMismatchError,
    InvalidNumericValueError,
    ShootingProblem,
    SolverStatus,
    StateVector,
)
from shootax.lqr import tvriccati_affine_backward, tvriccati_backward
from shootax.models import ActionModelAutoDiff, ActionModelLQR, ActionModelUnicycle
from shootax.solvers import (
    CallbackLogger,
    CallbackVerbose,
    SolverConfig,
    SolverDDP,
    SolverFDDP,
    get_solver,
)

config.update('jax_enable_x64', True)


def _lq_problem(T=10, nx=4, nu=2, seed=0, nthreads=1):
    model = ActionModelLQR.random(nx, nu, jax.random.PRNGKey(seed), drift_free=False)
    x0 = jax.random.normal(jax.random.PRNGKey(seed + 100), (nx,))
    return ShootingProblem(x0, [model] * T, model, nthreads=nthreads), model


def _unicycle_problem(T=20, nthreads=1):
    model = ActionModelUnicycle(dt=0.1)
    return ShootingProblem(jnp.array([-1.0, -1.0, 1.0]), [model] * T, model,
                           nthreads=nthreads)


def _double_well_problem(T=5):
    """Scalar problem whose control Hessian is negative at u = 0."""
    model = ActionModelAutoDiff(
        StateVector(1), 1,
        dynamics=lambda x, u: x + 0.1 * u,
        cost=lambda x, u: x @ x + 0.5 * jnp.sum((u ** 2 - 1.0) ** 2),
        terminal_cost=lambda x: x @ x,
    )
    return ShootingProblem(jnp.array([1.0]), [model] * T, model)


class FDDPLinearQuadraticTest(parameterized.TestCase):

    def test_converges_in_one_iteration(self):
        problem, _ = _lq_problem()
        result = SolverFDDP(problem).solve(maxiter=20)
        self.assertTrue(result.converged)
        self.assertEqual(result.status, SolverStatus.SOLVED)
        self.assertEqual(result.iterations, 1)
        self.assertEqual(result.steps, [1.0])

    def test_converges_in_one_iteration_from_any_feasible_guess(self):
        problem, _ = _lq_problem(seed=3)
        us0 = [jnp.array([1.0, -2.0]) * t for t in range(problem.T)]
        xs0 = problem.rollout(us0)
        result = SolverFDDP(problem).solve(xs0, us0, is_feasible=True)
        self.assertTrue(result.converged)
        self.assertEqual(result.iterations, 1)

    def test_gains_match_riccati(self):
        problem, m = _lq_problem(T=8)
        solver = SolverFDDP(problem, reg_min=1e-12)
        result = solver.solve(maxiter=10)
        self.assertTrue(result.converged)

        T = problem.T
        stack = lambda a: jnp.stack([a] * T)
        P, K = tvriccati_backward(stack(m.Q), stack(m.R), stack(m.A), stack(m.B),
                                  m.Q, M=stack(m.N))
        for t in range(T):
            np.testing.assert_allclose(solver.K[t], K[t], rtol=1e-9, atol=1e-10)
        np.testing.assert_allclose(solver.Vxx[0], P[0], rtol=1e-9, atol=1e-10)

    def test_controls_match_affine_riccati(self):
        problem, m = _lq_problem(T=8, seed=5)
        result = SolverFDDP(problem, reg_min=1e-12).solve(maxiter=10)

        T = problem.T
        stack = lambda a: jnp.stack([a] * T)
        K, k = tvriccati_affine_backward(
            stack(m.Q), stack(m.q), stack(m.R), stack(m.r), stack(m.A),
            stack(m.B), stack(m.f), m.Q, m.q, M=stack(m.N))
        x = problem.x0
        for t in range(T):
            u = K[t] @ x + k[t]
            np.testing.assert_allclose(result.us[t], u, rtol=1e-7, atol=1e-9)
            x = m.A @ x + m.B @ u + m.f
        np.testing.assert_allclose(result.xs[-1], x, rtol=1e-7, atol=1e-9)

    def test_single_stage_lqr(self):
        A = jnp.array([[1.0, 0.1], [0.0, 1.0]])
        B = jnp.array([[0.5, 0.0], [0.0, 1.0]])
        Q, R = jnp.eye(2), jnp.eye(2)
        model = ActionModelLQR(A, B, Q, R)
        x0 = jnp.array([1.0, 0.0])
        problem = ShootingProblem(x0, [model], model)

        result = SolverFDDP(problem).solve(
            [x0, x0], [jnp.zeros(2)], maxiter=10, is_feasible=False)

        u_star = -np.linalg.solve(R + B.T @ Q @ B, B.T @ Q @ A @ x0)
        x1 = A @ x0 + B @ u_star
        cost = 0.5 * x0 @ Q @ x0 + 0.5 * u_star @ R @ u_star + 0.5 * x1 @ Q @ x1
        np.testing.assert_allclose(u_star, [-0.4, 0.0], atol=1e-12)
        self.assertTrue(result.converged)
        np.testing.assert_allclose(result.us[0], u_star, atol=1e-6)
        np.testing.assert_allclose(result.xs[1], x1, atol=1e-6)
        self.assertAlmostEqual(result.cost, float(cost), places=6)
        self.assertAlmostEqual(result.cost, 0.9, places=6)

    def test_infeasible_start_closes_gaps(self):
        problem, _ = _lq_problem(seed=2)
        key = jax.random.PRNGKey(11)
        xs0 = list(jax.random.normal(key, (problem.T + 1, problem.nx)))
        us0 = [jnp.zeros(2)] * problem.T
        logger = CallbackLogger()
        solver = SolverFDDP(problem, callbacks=[logger])
        result = solver.solve(xs0, us0, is_feasible=False)

        self.assertTrue(result.converged)
        self.assertGreater(logger.ffeas[0], 0.0)
        self.assertEqual(result.info['ffeas'], 0.0)
        reference = SolverFDDP(problem).solve()
        for x, x_ref in zip(result.xs, reference.xs):
            np.testing.assert_allclose(x, x_ref, atol=1e-8)


class FDDPNonlinearTest(parameterized.TestCase):

    def test_unicycle_converges(self):
        problem = _unicycle_problem()
        logger = CallbackLogger()
        result = SolverFDDP(problem, callbacks=[logger]).solve(maxiter=100)
        self.assertTrue(result.converged)
        self.assertLess(result.cost, logger.costs[0] + 1e-12)
        self.assertLen(result.xs, problem.T + 1)
        np.testing.assert_array_equal(result.xs[0], problem.x0)

    def test_cost_is_monotone(self):
        problem = _unicycle_problem()
        logger = CallbackLogger()
        SolverFDDP(problem, callbacks=[logger]).solve(maxiter=100)
        costs = np.array(logger.costs)
        self.assertTrue(np.all(np.diff(costs) <= 1e-12), costs)

    def test_infeasible_start_gaps_vanish(self):
        problem = _unicycle_problem()
        xs0 = list(jnp.linspace(problem.x0, jnp.zeros(3), problem.T + 1))
        us0 = [jnp.zeros(2)] * problem.T
        logger = CallbackLogger()
        result = SolverFDDP(problem, callbacks=[logger]).solve(
            xs0, us0, maxiter=100, is_feasible=False)
        self.assertGreater(logger.ffeas[0], 0.0)
        self.assertLessEqual(logger.ffeas[-1], logger.ffeas[0])
        self.assertTrue(result.info['is_feasible'])
        self.assertEqual(result.info['ffeas'], 0.0)
        xs_rollout = problem.rollout(result.us)
        for x, x_roll in zip(result.xs, xs_rollout):
            np.testing.assert_allclose(x, x_roll, atol=1e-6)

    @parameterized.parameters(2, 4)
    def test_parallel_matches_sequential(self, nthreads):
        sequential = SolverFDDP(_unicycle_problem()).solve(maxiter=50)
        parallel = SolverFDDP(_unicycle_problem(nthreads=nthreads)).solve(maxiter=50)
        self.assertEqual(sequential.iterations, parallel.iterations)
        for u_seq, u_par in zip(sequential.us, parallel.us):
            np.testing.assert_allclose(u_seq, u_par, rtol=1e-12, atol=1e-14)

    def test_warm_start_from_solution(self):
        problem = _unicycle_problem()
        first = SolverFDDP(problem).solve(maxiter=100)
        self.assertTrue(first.converged)
        second = SolverFDDP(problem).solve(first.xs, first.us, is_feasible=True)
        self.assertTrue(second.converged)
        self.assertLessEqual(second.iterations, 1)
        self.assertAlmostEqual(second.cost, first.cost, places=8)

    def test_heterogeneous_control_dimensions(self):
        A = jnp.array([[1.0, 0.1], [0.0, 1.0]])
        actuated = ActionModelLQR(A, jnp.array([[0.0], [0.1]]), jnp.eye(2), jnp.eye(1))
        passive = ActionModelLQR(A, jnp.zeros((2, 0)), jnp.eye(2), jnp.zeros((0, 0)))
        problem = ShootingProblem(jnp.array([1.0, 0.0]),
                                  [actuated, passive, actuated], actuated)
        self.assertEqual(problem.nu_max, 1)
        result = SolverFDDP(problem).solve(maxiter=10)
        self.assertTrue(result.converged)
        self.assertEqual(result.us[1].shape, (0,))


class FDDPRegularizationTest(parameterized.TestCase):

    @parameterized.parameters(
        (_unicycle_problem, {}),
        (_double_well_problem, {}),
        (_double_well_problem, {'reg_min': 1e-4, 'reg_max': 1e4}),
    )
    def test_regularization_within_bounds(self, make_problem, options):
        logger = CallbackLogger()
        solver = SolverFDDP(make_problem(), callbacks=[logger], **options)
        solver.solve(maxiter=30)
        cfg = solver.config
        for reg in logger.xregs + logger.uregs:
            self.assertGreaterEqual(reg, cfg.reg_min)
            self.assertLessEqual(reg, cfg.reg_max)

    def test_initial_regularization_is_clipped(self):
        logger = CallbackLogger()
        solver = SolverFDDP(_unicycle_problem(), callbacks=[logger], reg_max=1e3)
        solver.solve(maxiter=3, init_reg=1e12)
        self.assertLessEqual(max(logger.xregs), 1e3)

    def test_indefinite_control_hessian_is_regularized(self):
        logger = CallbackLogger()
        solver = SolverFDDP(_double_well_problem(), callbacks=[logger])
        result = solver.solve(maxiter=50)
        self.assertGreaterEqual(logger.uregs[0], 1.0)
        for u in result.us:
            self.assertTrue(bool(jnp.all(jnp.isfinite(u))))

    def test_saturated_regularization_stops(self):
        solver = SolverFDDP(_double_well_problem(), reg_min=1e-8, reg_max=1e-3)
        result = solver.solve(maxiter=50)
        self.assertFalse(result.converged)
        self.assertEqual(result.status, SolverStatus.MAX_REGULARIZATION)
        self.assertEqual(result.iterations, 0)


class FDDPBudgetAndErrorsTest(parameterized.TestCase):

    def test_max_iterations(self):
        result = SolverFDDP(_unicycle_problem()).solve(maxiter=1)
        self.assertEqual(result.status, SolverStatus.MAX_ITERATIONS)
        self.assertFalse(result.converged)
        self.assertEqual(result.iterations, 1)
        self.assertLen(result.steps, 1)

    def test_time_limit(self):
        solver = SolverFDDP(_unicycle_problem(), time_limit=1e-12)
        result = solver.solve(maxiter=100)
        self.assertEqual(result.status, SolverStatus.TIME_LIMIT)
        self.assertEqual(result.iterations, 0)

    @parameterized.parameters(-1, 1)
    def test_wrong_control_count(self, delta):
        problem, _ = _lq_problem()
        solver = SolverFDDP(problem)
        with self.assertRaises(DimensionMismatchError):
            solver.solve(init_us=[jnp.zeros(2)] * (problem.T + delta))

    def test_wrong_state_count(self):
        problem, _ = _lq_problem()
        with self.assertRaises(DimensionMismatchError):
            SolverFDDP(problem).solve(
                [problem.x0] * problem.T, [jnp.zeros(2)] * problem.T)

    def test_invalid_numeric_value(self):
        model = ActionModelAutoDiff(
            StateVector(1), 1,
            dynamics=lambda x, u: x + u,
            cost=lambda x, u: jnp.sum(jnp.sqrt(x)) + u @ u,
        )
        problem = ShootingProblem(jnp.array([-1.0]), [model] * 3, model)
        solver = SolverFDDP(problem)
        with self.assertRaises(InvalidNumericValueError) as cm:
            solver.solve(maxiter=5)
        self.assertIsNotNone(cm.exception.trajectory)
        self.assertLen(cm.exception.trajectory.xs, 4)
        self.assertFalse(cm.exception.trajectory.converged)

    def test_result_unpacks(self):
        converged, xs, us, cost, iterations = SolverFDDP(_lq_problem()[0]).solve()
        self.assertTrue(converged)
        self.assertIsInstance(cost, float)
        self.assertEqual(iterations, 1)


class SolverFactoryTest(parameterized.TestCase):

    @parameterized.parameters(('ddp', SolverDDP), ('FDDP', SolverFDDP))
    def test_get_solver(self, name, cls):
        problem, _ = _lq_problem()
        solver = get_solver(name, problem, th_stop=1e-12)
        self.assertIsInstance(solver, cls)
        self.assertEqual(solver.config.th_stop, 1e-12)

    def test_unknown_solver(self):
        with self.assertRaises(ValueError):
            get_solver('box-fddp', _lq_problem()[0])

    def test_config_object_and_overrides(self):
        problem, _ = _lq_problem()
        solver = SolverFDDP(problem, config=SolverConfig(num_alphas=4), th_grad=1e-10)
        self.assertEqual(solver.config.num_alphas, 4)
        self.assertEqual(solver.config.th_grad, 1e-10)

    def test_verbose_attaches_callback(self):
        problem, _ = _lq_problem()
        solver = SolverFDDP(problem, verbose=True)
        self.assertTrue(any(isinstance(c, CallbackVerbose) for c in solver.callbacks))
        with self.assertLogs(logger='absl', level='INFO') as logs:
            solver.solve()
        self.assertTrue(any('cost' in line for line in logs.output))


if __name__ == '__main__':
    absltest.main()
