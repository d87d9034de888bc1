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

"""Positive definite matrix utilities used by the backward pass."""

from typing import Optional

import jax.numpy as jnp
import jax.scipy as jsp
from jax import Array


def symmetrize(Q: Array) -> Array:
    """Symmetrize a matrix.

    Args:
        Q: Matrix of shape (n, n).

    Returns:
        Symmetric matrix (Q + Q') / 2.
    """
    return 0.5 * (Q + Q.T)


def regularize_hessian(H: Array, reg: float = 1e-6) -> Array:
    """Add reg * I to a square matrix."""
    return H + reg * jnp.eye(H.shape[0])


def is_psd(Q: Array, tol: float = 1e-8) -> bool:
    """Check if a matrix is positive semi-definite.

    Args:
        Q: Matrix to check, shape (n, n).
        tol: Tolerance for eigenvalue comparison.

    Returns:
        True if all eigenvalues are >= -tol.
    """
    eigvals = jnp.linalg.eigvalsh(symmetrize(Q))
    return bool(jnp.all(eigvals >= -tol))


def cholesky(H: Array) -> Optional[Array]:
    """Lower Cholesky factor of H, or None if H is not positive definite.

    JAX signals a failed factorization with NaN entries instead of raising,
    so the factor is checked before being returned.
    """
    L = jsp.linalg.cholesky(H, lower=True)
    if not bool(jnp.all(jnp.isfinite(L))):
        return None
    return L


def cho_solve(L: Array, b: Array) -> Array:
    """Solve H x = b given the lower Cholesky factor L of H."""
    return jsp.linalg.cho_solve((L, True), b)
