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

"""Base class for shooting solvers.

A solver owns the current trajectory (xs, us), the feasibility gaps fs, the
regularization state and the bookkeeping reported to callbacks. Subclasses
implement the search direction, the step and the `solve` loop.
"""

from abc import ABC, abstractmethod
import dataclasses
from typing import List, Optional, Sequence, Tuple

import jax.numpy as jnp
from jax import Array

from shootax.core.problem import ShootingProblem
from shootax.core.trajectory import Trajectory
from shootax.core.types import SolverStatus
from shootax.solvers.callbacks import CallbackAbstract, CallbackVerbose
from shootax.solvers.config import SolverConfig


class SolverAbstract(ABC):
    """Abstract shooting solver.

    Attributes:
        problem: The shooting problem, sole source of dynamics and costs.
        config: Solver constants.
        xs, us: Current trajectory (T + 1 states, T controls).
        fs: Feasibility gaps, fs[0] = x0 ⊖ xs[0] and
            fs[t + 1] = f(xs[t], us[t]) ⊖ xs[t + 1].
        is_feasible: Whether xs is a rollout of us (all gaps are zero).
        cost: Total cost of the current trajectory.
        stop: Value of the stopping criterion.
        d: Linear and quadratic coefficients of the expected improvement.
        dV, dVexp: Actual and expected cost reduction of the last trial.
        xreg, ureg: State and control regularization.
        steplength: Accepted step length of the last iteration, 0.0 when
            the line search rejected every trial.
        iter: Index of the current iteration.
        ffeas: Largest gap (infinity norm).
        steps: Accepted step length per iteration, 0.0 when rejected.
    """

    name: str = "base"

    def __init__(
        self,
        problem: ShootingProblem,
        config: Optional[SolverConfig] = None,
        callbacks: Optional[Sequence[CallbackAbstract]] = None,
        **options,
    ):
        """Initialize the solver.

        Args:
            problem: Shooting problem to solve.
            config: Solver configuration. Defaults to `SolverConfig()`.
            callbacks: Observers called at the end of every iteration.
            **options: Overrides of individual `SolverConfig` fields.
        """
        config = config or SolverConfig()
        if options:
            config = dataclasses.replace(config, **options)
        self.problem = problem
        self.config = config
        self.callbacks: List[CallbackAbstract] = list(callbacks or [])
        if config.verbose:
            self.callbacks.append(CallbackVerbose())

        self.is_feasible = False
        self.was_feasible = False
        self.cost = 0.0
        self.stop = 0.0
        self.d = (0.0, 0.0)
        self.dV = 0.0
        self.dVexp = 0.0
        self.xreg = config.reg_min
        self.ureg = config.reg_min
        self.steplength = 1.0
        self.iter = 0
        self.ffeas = 0.0
        self.steps: List[float] = []
        self.status = SolverStatus.UNKNOWN
        self.allocate_data()
        self.set_candidate()

    def allocate_data(self) -> None:
        """(Re)allocate the per-stage buffers for the current problem size."""
        T, ndx = self.problem.T, self.problem.ndx
        self.fs: List[Array] = [jnp.zeros(ndx) for _ in range(T + 1)]

    def set_candidate(
        self,
        xs: Optional[Sequence[Array]] = None,
        us: Optional[Sequence[Array]] = None,
        is_feasible: bool = False,
    ) -> None:
        """Set the current trajectory.

        Args:
            xs: T + 1 states. If None, xs is the rollout of us from x0 and the
                candidate is feasible regardless of `is_feasible`.
            us: T controls. If None, zero controls.
            is_feasible: Whether xs is already a rollout of us.

        Raises:
            DimensionMismatchError: If sizes do not match the problem.
        """
        if us is None:
            us = [model.unone for model in self.problem.running_models]
        if xs is None:
            us = self.problem.check_controls(us)
            xs = self.problem.rollout(us)
            is_feasible = True
        else:
            xs, us = self.problem.check_trajectory(xs, us)
        if len(self.fs) != self.problem.T + 1:
            self.allocate_data()
        self.xs: List[Array] = list(xs)
        self.us: List[Array] = list(us)
        self.is_feasible = bool(is_feasible)

    def set_callbacks(self, callbacks: Sequence[CallbackAbstract]) -> None:
        self.callbacks = list(callbacks)

    # Regularization

    def increase_regularization(self) -> None:
        self.xreg = min(self.xreg * self.config.reg_incfactor, self.config.reg_max)
        self.ureg = min(self.ureg * self.config.reg_incfactor, self.config.reg_max)

    def decrease_regularization(self) -> None:
        self.xreg = max(self.xreg / self.config.reg_decfactor, self.config.reg_min)
        self.ureg = max(self.ureg / self.config.reg_decfactor, self.config.reg_min)

    def reset_regularization(self, init_reg: Optional[float] = None) -> None:
        reg = self.config.reg_min if init_reg is None else init_reg
        self.xreg = self.ureg = self.config.clip_regularization(float(reg))

    @property
    def regularization_saturated(self) -> bool:
        return self.xreg >= self.config.reg_max

    # Gaps

    def compute_gaps(self) -> None:
        """Update fs from the next states stored in the problem data."""
        if self.is_feasible:
            self.fs = [jnp.zeros_like(f) for f in self.fs]
            return
        problem = self.problem
        models = problem.running_models
        self.fs[0] = models[0].state.diff(self.xs[0], problem.x0)
        for t, (model, data) in enumerate(zip(models, problem.running_datas)):
            self.fs[t + 1] = model.state.diff(self.xs[t + 1], data.xnext)

    def compute_dynamic_feasibility(self) -> float:
        """Largest gap in infinity norm."""
        if self.is_feasible:
            self.ffeas = 0.0
        else:
            self.ffeas = max(float(jnp.max(jnp.abs(f))) for f in self.fs)
        return self.ffeas

    # Reporting

    def result(self, status: Optional[SolverStatus] = None,
               iterations: Optional[int] = None) -> Trajectory:
        """Current trajectory and solver statistics as a `Trajectory`."""
        return Trajectory(
            xs=list(self.xs),
            us=list(self.us),
            cost=float(self.cost),
            status=self.status if status is None else status,
            info={
                'iterations': self.iter if iterations is None else iterations,
                'steps': list(self.steps),
                'stop': float(self.stop),
                'ffeas': 0.0 if self.is_feasible else float(self.ffeas),
                'xreg': float(self.xreg),
                'ureg': float(self.ureg),
                'is_feasible': self.is_feasible,
                'solver': self.name,
            },
        )

    def notify(self) -> None:
        for callback in self.callbacks:
            callback(self)

    # Interface

    @abstractmethod
    def compute_direction(self, recalc_diff: bool = True) -> None:
        """Evaluate derivatives (if requested) and compute the search direction."""

    @abstractmethod
    def try_step(self, steplength: float) -> float:
        """Evaluate a trial step and return the actual cost reduction."""

    @abstractmethod
    def stopping_criteria(self) -> float:
        ...

    @abstractmethod
    def expected_improvement(self) -> Tuple[float, float]:
        ...

    @abstractmethod
    def solve(
        self,
        init_xs: Optional[Sequence[Array]] = None,
        init_us: Optional[Sequence[Array]] = None,
        maxiter: int = 100,
        is_feasible: bool = False,
        init_reg: Optional[float] = None,
    ) -> Trajectory:
        """Solve the shooting problem from an initial guess."""


def get_solver(name: str, problem: ShootingProblem, **kwargs) -> SolverAbstract:
    """Factory function to create a solver by name.

    Args:
        name: Solver name ('ddp' or 'fddp').
        problem: Shooting problem to solve.
        **kwargs: Passed to the solver constructor.

    Raises:
        ValueError: If the solver name is not recognized.
    """
    from shootax.solvers.ddp import SolverDDP
    from shootax.solvers.fddp import SolverFDDP

    _SOLVERS = {
        'ddp': SolverDDP,
        'fddp': SolverFDDP,
    }

    name_lower = name.lower()
    if name_lower not in _SOLVERS:
        raise ValueError(
            f"Unknown solver: {name}. Available: {list(_SOLVERS.keys())}"
        )
    return _SOLVERS[name_lower](problem, **kwargs)
