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

"""Tests for the exception hierarchy."""

from absl.testing import absltest
from absl.testing import parameterized

from shootax.core import (
    BackwardPassError,
    DimensionMismatchError,
    ErrorCode,
    ForwardPassError,
    InvalidNumericValueError,
    QuasiStaticConvergenceError,
    ShootaxError,
    UnsupportedOperationError,
    error_code_to_string,
)


class ExceptionsTest(parameterized.TestCase):

    @parameterized.parameters(
        (DimensionMismatchError('x'), ErrorCode.DIMENSION_MISMATCH, ValueError),
        (BackwardPassError('x', stage=3), ErrorCode.BACKWARD_PASS_FAILED, ShootaxError),
        (ForwardPassError('x'), ErrorCode.FORWARD_PASS_FAILED, ShootaxError),
        (QuasiStaticConvergenceError('x', residual=1.0),
         ErrorCode.QUASI_STATIC_NOT_CONVERGED, ShootaxError),
        (UnsupportedOperationError('x'), ErrorCode.UNSUPPORTED_OPERATION,
         NotImplementedError),
        (InvalidNumericValueError('x'), ErrorCode.INVALID_NUMERIC_VALUE,
         FloatingPointError),
    )
    def test_codes_and_bases(self, error, code, base):
        self.assertIsInstance(error, ShootaxError)
        self.assertIsInstance(error, base)
        self.assertEqual(error.error_code, code)
        self.assertEqual(str(error), f"{code.value}: x")

    def test_attributes(self):
        self.assertEqual(BackwardPassError('x', stage=3).stage, 3)
        self.assertEqual(QuasiStaticConvergenceError('x', residual=0.5).residual, 0.5)
        self.assertIsNone(InvalidNumericValueError('x').trajectory)

    def test_error_code_to_string(self):
        for code in ErrorCode:
            self.assertNotEqual(error_code_to_string(code), 'unknown error')


if __name__ == '__main__':
    absltest.main()
