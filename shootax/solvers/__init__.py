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

"""Shooting solvers.

Available solvers:
- SolverDDP: Classical DDP with regularization and backtracking
- SolverFDDP: Feasibility-driven DDP, accepts infeasible initial guesses

Example:
    >>> from shootax.solvers import get_solver
    >>> solver = get_solver('fddp', problem, th_stop=1e-10)
    >>> result = solver.solve(xs0, us0, maxiter=100)
"""

from shootax.solvers.config import SolverConfig
from shootax.solvers.callbacks import (
    CallbackAbstract,
    CallbackVerbose,
    CallbackLogger,
)
from shootax.solvers.base import SolverAbstract, get_solver
from shootax.solvers.ddp import SolverDDP
from shootax.solvers.fddp import SolverFDDP

__all__ = [
    'SolverConfig',
    'CallbackAbstract',
    'CallbackVerbose',
    'CallbackLogger',
    'SolverAbstract',
    'get_solver',
    'SolverDDP',
    'SolverFDDP',
]
