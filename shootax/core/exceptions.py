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

"""Exception hierarchy for shooting problems and solvers.

Only malformed input and corrupted numerics surface as exceptions to the
caller. Backward and forward pass failures are raised internally and handled
by the solvers (regularization increase, step rejection); failing to converge
is reported through the returned `Trajectory` status instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from shootax.core.types import ErrorCode

if TYPE_CHECKING:
    from shootax.core.trajectory import Trajectory


class ShootaxError(Exception):
    """Base class for shootax errors."""

    def __init__(self, message: str, error_code: ErrorCode) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"


class DimensionMismatchError(ShootaxError, ValueError):
    """Trajectory lengths or vector sizes disagree with the problem."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.DIMENSION_MISMATCH)


class BackwardPassError(ShootaxError):
    """Control Hessian is not positive definite or value function blew up."""

    def __init__(self, message: str, stage: Optional[int] = None) -> None:
        super().__init__(message, ErrorCode.BACKWARD_PASS_FAILED)
        self.stage = stage


class ForwardPassError(ShootaxError):
    """Candidate rollout produced a non-finite cost or state."""

    def __init__(self, message: str, stage: Optional[int] = None) -> None:
        super().__init__(message, ErrorCode.FORWARD_PASS_FAILED)
        self.stage = stage


class QuasiStaticConvergenceError(ShootaxError):
    """Quasi-static root-find did not reach its tolerance."""

    def __init__(self, message: str, residual: float = float('nan')) -> None:
        super().__init__(message, ErrorCode.QUASI_STATIC_NOT_CONVERGED)
        self.residual = residual


class UnsupportedOperationError(ShootaxError, NotImplementedError):
    """The action model does not provide an optional capability."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.UNSUPPORTED_OPERATION)


class InvalidNumericValueError(ShootaxError, FloatingPointError):
    """A cost or derivative evaluated to NaN or infinity.

    Attributes:
        trajectory: The last valid trajectory reached by the solver, or None
            if the failure happened before any trajectory was accepted.
    """

    def __init__(
        self,
        message: str,
        trajectory: Optional['Trajectory'] = None,
    ) -> None:
        super().__init__(message, ErrorCode.INVALID_NUMERIC_VALUE)
        self.trajectory = trajectory


def error_code_to_string(error_code: ErrorCode) -> str:
    """Human-readable description of an error code."""
    error_messages = {
        ErrorCode.DIMENSION_MISMATCH: "dimension mismatch",
        ErrorCode.BACKWARD_PASS_FAILED:
            "backward pass failed, try increasing regularization",
        ErrorCode.FORWARD_PASS_FAILED: "forward pass produced non-finite values",
        ErrorCode.LINE_SEARCH_FAILED: "no step size satisfied the acceptance test",
        ErrorCode.QUASI_STATIC_NOT_CONVERGED: "quasi-static solve did not converge",
        ErrorCode.UNSUPPORTED_OPERATION: "operation not supported by this model",
        ErrorCode.INVALID_NUMERIC_VALUE: "non-finite cost or derivative",
        ErrorCode.INVALID_ARGUMENT: "invalid argument",
    }
    return error_messages.get(error_code, "unknown error")
