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

"""Type definitions for multiple-shooting trajectory optimization."""

from __future__ import annotations

from enum import Enum, auto
from typing import Callable, List, Protocol, Sequence

from jax import Array


# Type aliases for common shapes
# State: (nx,) array, a point on the state manifold
# Tangent: (ndx,) array, a vector in the tangent space of the state manifold
# Control: (nu,) array, nu may differ between stages
# States: list of T+1 states, Controls: list of T controls

State = Array
Tangent = Array
Control = Array
Matrix = Array

States = Sequence[Array]
Controls = Sequence[Array]
ArrayList = List[Array]


class SolverStatus(Enum):
    """Status codes for shooting solvers."""
    SOLVED = auto()              # Converged to a feasible stationary point
    MAX_ITERATIONS = auto()      # Reached maximum iterations
    MAX_REGULARIZATION = auto()  # Regularization saturated without progress
    TIME_LIMIT = auto()          # Wall-clock budget exhausted
    UNKNOWN = auto()             # Not solved yet


class ErrorCode(Enum):
    """Error categories reported by shootax exceptions."""
    DIMENSION_MISMATCH = "DimensionMismatch"
    BACKWARD_PASS_FAILED = "BackwardPassFailed"
    FORWARD_PASS_FAILED = "ForwardPassFailed"
    LINE_SEARCH_FAILED = "LineSearchFailed"
    QUASI_STATIC_NOT_CONVERGED = "QuasiStaticNotConverged"
    UNSUPPORTED_OPERATION = "UnsupportedOperation"
    INVALID_NUMERIC_VALUE = "InvalidNumericValue"
    INVALID_ARGUMENT = "InvalidArgument"


# Function type protocols

class DynamicsFn(Protocol):
    """Protocol for discrete-time stage dynamics.

    Signature: dynamics(x, u) -> x_next

    Args:
        x: State vector (nx,)
        u: Control vector (nu,)

    Returns:
        x_next: Next state vector (nx,)
    """
    def __call__(self, x: Array, u: Array) -> Array:
        ...


class CostFn(Protocol):
    """Protocol for stage cost functions.

    Signature: cost(x, u) -> scalar
    """
    def __call__(self, x: Array, u: Array) -> Array:
        ...


class TerminalCostFn(Protocol):
    """Protocol for terminal cost functions.

    Signature: terminal_cost(x) -> scalar
    """
    def __call__(self, x: Array) -> Array:
        ...


# Observers receive the solver at the end of every iteration.
CallbackFn = Callable[[object], None]
