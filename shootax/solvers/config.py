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

"""Configuration of the DDP-family solvers."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple


@dataclass
class SolverConfig:
    """Tunable constants of DDP and FDDP.

    Attributes:
        reg_incfactor: Factor applied when regularization increases.
        reg_decfactor: Factor applied when regularization decreases.
        reg_min: Lower bound of both regularization values.
        reg_max: Upper bound; reaching it without progress stops the solver.
        th_stop: Convergence threshold on the sum of squared Qu.
        th_grad: Threshold on the expected improvement below which any step
            is accepted.
        th_acceptstep: Minimum ratio of actual over expected cost reduction.
        th_acceptnegstep: FDDP only. Cost-increase tolerance, relative to the
            expected improvement, when the search direction is not a descent
            direction.
        th_stepdec: Accepted step lengths above this decrease regularization.
        th_stepinc: Step lengths at or below this increase regularization.
        num_alphas: Length of the line-search sequence 1, 1/2, ..., 2^-(n-1).
        time_limit: Wall-clock budget in seconds, checked between iterations.
        verbose: Attach a `CallbackVerbose` on construction.
    """
    reg_incfactor: float = 10.0
    reg_decfactor: float = 10.0
    reg_min: float = 1e-9
    reg_max: float = 1e9
    th_stop: float = 1e-9
    th_grad: float = 1e-12
    th_acceptstep: float = 0.1
    th_acceptnegstep: float = 2.0
    th_stepdec: float = 0.5
    th_stepinc: float = 0.01
    num_alphas: int = 10
    time_limit: Optional[float] = None
    verbose: bool = False

    def __post_init__(self):
        """Validate configuration values."""
        if self.reg_incfactor <= 1:
            raise ValueError("reg_incfactor must be greater than 1")
        if self.reg_decfactor <= 1:
            raise ValueError("reg_decfactor must be greater than 1")
        if self.reg_min <= 0:
            raise ValueError("reg_min must be positive")
        if self.reg_max <= self.reg_min:
            raise ValueError("reg_max must be greater than reg_min")
        if self.th_stop <= 0:
            raise ValueError("th_stop must be positive")
        if not 0 < self.th_acceptstep < 1:
            raise ValueError("th_acceptstep must lie in (0, 1)")
        if self.th_acceptnegstep < 0:
            raise ValueError("th_acceptnegstep must be non-negative")
        if not 0 < self.th_stepinc < self.th_stepdec <= 1:
            raise ValueError("expected 0 < th_stepinc < th_stepdec <= 1")
        if self.num_alphas < 1:
            raise ValueError("num_alphas must be >= 1")
        if self.time_limit is not None and self.time_limit <= 0:
            raise ValueError("time_limit must be positive")

    @property
    def alphas(self) -> Tuple[float, ...]:
        """Line-search step lengths, from 1 down."""
        return tuple(2.0 ** (-i) for i in range(self.num_alphas))

    def clip_regularization(self, reg: float) -> float:
        return min(max(reg, self.reg_min), self.reg_max)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
