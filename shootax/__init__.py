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

"""Shootax: multiple-shooting trajectory optimization in JAX.

Differential dynamic programming solvers (DDP and feasibility-driven DDP)
over shooting problems assembled from per-stage action models.

Main modules:
- shootax.core: States, action models, shooting problems, results, errors
- shootax.models: LQ, automatic-differentiation and unicycle action models
- shootax.solvers: DDP/FDDP solvers, configuration and callbacks
- shootax.lqr: Closed-form Riccati recursions
- shootax.utils: Linearization, integrators, manifold and PSD helpers
"""

from . import core
from . import models
from . import solvers
from . import lqr
from . import utils

from shootax.core import (
    ShootingProblem,
    StateVector,
    StateS1,
    Trajectory,
    SolverStatus,
)
from shootax.solvers import SolverDDP, SolverFDDP, SolverConfig, get_solver

__version__ = '0.1.0'
