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

"""Multiple-shooting problem definition."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, Tuple

from absl import logging
import jax.numpy as jnp
from jax import Array

from shootax.core.action import ActionDataAbstract, ActionModelAbstract
from shootax.core.exceptions import (
    DimensionMismatchError,
    QuasiStaticConvergenceError,
    UnsupportedOperationError,
)


StageFn = Callable[[ActionModelAbstract, ActionDataAbstract, Array, Array], None]


def _calc_stage(model, data, x, u):
    model.calc(data, x, u)


def _calc_diff_stage(model, data, x, u):
    model.calc(data, x, u)
    model.calc_diff(data, x, u)


class ShootingProblem:
    """Sequence of stages to optimize over.

        min  sum_{t=0}^{T-1} l_t(x_t, u_t) + l_T(x_T)
        s.t. x_{t+1} = f_t(x_t, u_t),  x_0 = x0

    The problem owns one running action model per stage, a terminal action
    model, and one data record per stage. Data records are created here, once,
    and overwritten by every evaluation. Stages never read each other's data,
    so `calc`/`calc_diff` may evaluate them on a thread pool.

    Attributes:
        T: Number of running stages (horizon).
        x0: Initial state.
        nthreads: Number of worker threads used by `calc`/`calc_diff`.
            1 evaluates stages sequentially on the calling thread.

    Example:
        >>> model = ActionModelLQR(A, B, Q, R)
        >>> problem = ShootingProblem(x0, [model] * 20, model)
        >>> us = [jnp.zeros(model.nu)] * problem.T
        >>> xs = problem.rollout(us)
        >>> cost = problem.calc(xs, us)
    """

    def __init__(
        self,
        x0: Array,
        running_models: Sequence[ActionModelAbstract],
        terminal_model: ActionModelAbstract,
        nthreads: int = 1,
    ):
        if len(running_models) < 1:
            raise ValueError("a shooting problem needs at least one running model")
        if nthreads < 1:
            raise ValueError(f"nthreads must be >= 1, got {nthreads}")

        nx = terminal_model.state.nx
        for t, model in enumerate(running_models):
            if model.state.nx != nx:
                raise DimensionMismatchError(
                    f"running model {t} has nx={model.state.nx}, "
                    f"terminal model has nx={nx}"
                )

        self._running_models: List[ActionModelAbstract] = list(running_models)
        self._terminal_model = terminal_model
        self._running_datas: List[ActionDataAbstract] = [
            model.create_data() for model in self._running_models
        ]
        self._terminal_data = terminal_model.create_data()
        self._x0 = self._running_models[0].state.check_state(x0, 'x0')
        self.nthreads = nthreads
        self._executor: Optional[ThreadPoolExecutor] = None

    # Properties

    @property
    def T(self) -> int:
        return len(self._running_models)

    @property
    def x0(self) -> Array:
        return self._x0

    @x0.setter
    def x0(self, x0: Array) -> None:
        self._x0 = self._running_models[0].state.check_state(x0, 'x0')

    @property
    def running_models(self) -> Tuple[ActionModelAbstract, ...]:
        return tuple(self._running_models)

    @property
    def running_datas(self) -> Tuple[ActionDataAbstract, ...]:
        return tuple(self._running_datas)

    @property
    def terminal_model(self) -> ActionModelAbstract:
        return self._terminal_model

    @property
    def terminal_data(self) -> ActionDataAbstract:
        return self._terminal_data

    @property
    def nx(self) -> int:
        return self._terminal_model.state.nx

    @property
    def ndx(self) -> int:
        return self._terminal_model.state.ndx

    @property
    def nu_max(self) -> int:
        return max(model.nu for model in self._running_models)

    # Validation

    def check_trajectory(
        self,
        xs: Sequence[Array],
        us: Sequence[Array],
    ) -> Tuple[List[Array], List[Array]]:
        """Validate lengths and per-stage sizes of a trajectory.

        Returns:
            The trajectory converted to lists of arrays.

        Raises:
            DimensionMismatchError: If len(xs) != T + 1, len(us) != T, or any
                state/control has the wrong size for its stage.
        """
        if len(xs) != self.T + 1:
            raise DimensionMismatchError(
                f"expected {self.T + 1} states, got {len(xs)}"
            )
        if len(us) != self.T:
            raise DimensionMismatchError(
                f"expected {self.T} controls, got {len(us)}"
            )
        xs_checked = []
        us_checked = []
        for t, model in enumerate(self._running_models):
            x, u = model.check_inputs(xs[t], us[t])
            xs_checked.append(x)
            us_checked.append(u)
        xs_checked.append(self._terminal_model.state.check_state(xs[-1], 'xs[T]'))
        return xs_checked, us_checked

    def check_controls(self, us: Sequence[Array]) -> List[Array]:
        if len(us) != self.T:
            raise DimensionMismatchError(
                f"expected {self.T} controls, got {len(us)}"
            )
        us_checked = []
        for t, model in enumerate(self._running_models):
            u = jnp.asarray(us[t])
            if u.shape != (model.nu,):
                raise DimensionMismatchError(
                    f"us[{t}] has shape {u.shape}, expected ({model.nu},)"
                )
            us_checked.append(u)
        return us_checked

    # Evaluation

    def _map_stages(self, fn: StageFn, xs: List[Array], us: List[Array]) -> None:
        """Evaluate fn on every running stage, returning once all are done."""
        stages = zip(self._running_models, self._running_datas, xs, us)
        if self.nthreads == 1:
            for model, data, x, u in stages:
                fn(model, data, x, u)
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.nthreads)
        futures = [self._executor.submit(fn, *stage) for stage in stages]
        for future in futures:
            future.result()

    def close(self) -> None:
        """Shut down the worker threads. A later evaluation starts new ones."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def total_cost(self) -> float:
        """Sum of the stage costs currently stored in the data records."""
        cost = sum(float(data.cost) for data in self._running_datas)
        return cost + float(self._terminal_data.cost)

    def calc(self, xs: Sequence[Array], us: Sequence[Array]) -> float:
        """Compute next states and costs of every stage.

        Args:
            xs: T + 1 states.
            us: T controls, us[t] of size running_models[t].nu.

        Returns:
            Total cost of the trajectory.

        Raises:
            DimensionMismatchError: Before any data record is touched.
        """
        xs, us = self.check_trajectory(xs, us)
        self._map_stages(_calc_stage, xs, us)
        self._terminal_model.calc(self._terminal_data, xs[-1])
        return self.total_cost()

    def calc_diff(self, xs: Sequence[Array], us: Sequence[Array]) -> float:
        """Compute costs and derivatives of every stage.

        Each stage runs `calc` followed by `calc_diff` on the same (x, u), so
        derivatives never depend on a previous evaluation.

        Returns:
            Total cost of the trajectory.
        """
        xs, us = self.check_trajectory(xs, us)
        self._map_stages(_calc_diff_stage, xs, us)
        self._terminal_model.calc(self._terminal_data, xs[-1])
        self._terminal_model.calc_diff(self._terminal_data, xs[-1])
        return self.total_cost()

    def rollout(self, us: Sequence[Array]) -> List[Array]:
        """Simulate the dynamics from x0 under the given controls.

        Returns:
            T + 1 states, the first one being x0.
        """
        us = self.check_controls(us)
        xs = [self._x0]
        for model, data, u in zip(self._running_models, self._running_datas, us):
            model.calc(data, xs[-1], u)
            xs.append(data.xnext)
        return xs

    # Initialization

    def quasi_static(
        self,
        t: int,
        x: Array,
        maxiter: int = 100,
        tol: float = 1e-9,
    ) -> Array:
        """Quasi-static control of running stage t at state x.

        Raises:
            UnsupportedOperationError: If the stage model lacks the capability.
            QuasiStaticConvergenceError: If the root-find does not converge.
        """
        if not 0 <= t < self.T:
            raise IndexError(f"stage {t} out of range for T={self.T}")
        return self._running_models[t].quasi_static(
            self._running_datas[t], x, maxiter=maxiter, tol=tol
        )

    def quasi_static_controls(
        self,
        xs: Sequence[Array],
        maxiter: int = 100,
        tol: float = 1e-9,
    ) -> List[Array]:
        """Quasi-static controls for the first T states of xs.

        Stages that do not support the operation, or whose root-find fails,
        get a zero control.
        """
        if len(xs) not in (self.T, self.T + 1):
            raise DimensionMismatchError(
                f"expected {self.T} or {self.T + 1} states, got {len(xs)}"
            )
        us = []
        for t, model in enumerate(self._running_models):
            try:
                us.append(self.quasi_static(t, xs[t], maxiter=maxiter, tol=tol))
            except (QuasiStaticConvergenceError, UnsupportedOperationError) as e:
                logging.warning(
                    'Stage %d: %s. Falling back to zero control.', t, e)
                us.append(model.unone)
        return us

    # Modification

    def update_model(self, i: int, model: ActionModelAbstract) -> None:
        """Replace running stage i and re-create its data record."""
        if not 0 <= i < self.T:
            raise IndexError(f"stage {i} out of range for T={self.T}")
        if model.state.nx != self.nx:
            raise DimensionMismatchError(
                f"model has nx={model.state.nx}, problem has nx={self.nx}"
            )
        self._running_models[i] = model
        self._running_datas[i] = model.create_data()

    def update_terminal_model(self, model: ActionModelAbstract) -> None:
        if model.state.nx != self.nx:
            raise DimensionMismatchError(
                f"model has nx={model.state.nx}, problem has nx={self.nx}"
            )
        self._terminal_model = model
        self._terminal_data = model.create_data()

    def circular_append(
        self,
        model: ActionModelAbstract,
        data: Optional[ActionDataAbstract] = None,
    ) -> None:
        """Drop the first stage and append a new last running stage.

        Used to shift the horizon forward in receding-horizon control.
        """
        if model.state.nx != self.nx:
            raise DimensionMismatchError(
                f"model has nx={model.state.nx}, problem has nx={self.nx}"
            )
        self._running_models.pop(0)
        self._running_datas.pop(0)
        self._running_models.append(model)
        self._running_datas.append(model.create_data() if data is None else data)

    def __repr__(self) -> str:
        return (f"ShootingProblem(T={self.T}, nx={self.nx}, ndx={self.ndx}, "
                f"nu_max={self.nu_max}, nthreads={self.nthreads})")
