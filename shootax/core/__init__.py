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

"""Core abstractions for multiple-shooting problems.

- State manifolds (StateAbstract, StateVector, StateS1)
- The action model/data contract evaluated per stage
- ShootingProblem, the container the solvers operate on
- Trajectory, the result of a solve
- Status enums and the exception hierarchy
"""

from shootax.core.types import (
    State,
    Tangent,
    Control,
    Matrix,
    States,
    Controls,
    SolverStatus,
    ErrorCode,
    DynamicsFn,
    CostFn,
    TerminalCostFn,
)
from shootax.core.exceptions import (
    ShootaxError,
    DimensionMismatchError,
    BackwardPassError,
    ForwardPassError,
    QuasiStaticConvergenceError,
    UnsupportedOperationError,
    InvalidNumericValueError,
    error_code_to_string,
)
from shootax.core.state import StateAbstract, StateVector, StateS1
from shootax.core.action import ActionDataAbstract, ActionModelAbstract
from shootax.core.problem import ShootingProblem
from shootax.core.trajectory import Trajectory

__all__ = [
    # Types
    'State',
    'Tangent',
    'Control',
    'Matrix',
    'States',
    'Controls',
    'SolverStatus',
    'ErrorCode',
    'DynamicsFn',
    'CostFn',
    'TerminalCostFn',
    # Exceptions
    'ShootaxError',
    'DimensionMismatchError',
    'BackwardPassError',
    'ForwardPassError',
    'QuasiStaticConvergenceError',
    'UnsupportedOperationError',
    'InvalidNumericValueError',
    'error_code_to_string',
    # States
    'StateAbstract',
    'StateVector',
    'StateS1',
    # Action models
    'ActionDataAbstract',
    'ActionModelAbstract',
    # Problem and result
    'ShootingProblem',
    'Trajectory',
]
