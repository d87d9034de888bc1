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

"""Utility functions for shooting solvers and action models.

- Linearization and quadratization of stage functions
- PSD checks, regularization and Cholesky helpers
- Numerical integrators for continuous-time dynamics
- Manifold utilities for circular state dimensions
"""

# Linearization utilities
from shootax.utils.linearize import (
    linearize,
    quadratize,
    linearize_state,
)

# PSD utilities
from shootax.utils.psd import (
    symmetrize,
    regularize_hessian,
    is_psd,
    cholesky,
    cho_solve,
)

# Integrators
from shootax.utils.integrators import (
    euler,
    rk4,
    get_integrator,
)

# Manifold utilities
from shootax.utils.manifold import (
    wrap_to_pi,
    get_s1_wrapper,
)

__all__ = [
    # Linearization
    'linearize',
    'quadratize',
    'linearize_state',
    # PSD
    'symmetrize',
    'regularize_hessian',
    'is_psd',
    'cholesky',
    'cho_solve',
    # Integrators
    'euler',
    'rk4',
    'get_integrator',
    # Manifold
    'wrap_to_pi',
    'get_s1_wrapper',
]
