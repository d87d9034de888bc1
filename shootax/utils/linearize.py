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

"""Linearization and quadratization of stage functions.

These build the jitted derivative evaluators used by
`shootax.models.ActionModelAutoDiff`. Unlike whole-trajectory linearization,
each stage is differentiated on its own, since the shooting problem
evaluates stages independently.
"""

from typing import Callable, Tuple

import jax
from jax import Array, hessian, jacfwd


def linearize(fun: Callable) -> Callable[[Array, Array], Tuple[Array, Array]]:
    """Jacobian (or gradient) operator of fun(x, u) w.r.t. x and u.

    Args:
        fun: Function with signature fun(x, u). Can be scalar (cost) or
            vector (dynamics) valued.

    Returns:
        A jitted function (x, u) -> (dfun/dx, dfun/du).

    Example:
        >>> A, B = linearize(dynamics)(x, u)   # (n, n), (n, m)
        >>> q, r = linearize(cost)(x, u)       # (n,), (m,)
    """
    jacobian_x = jacfwd(fun)
    jacobian_u = jacfwd(fun, argnums=1)

    def linearizer(x, u):
        return jacobian_x(x, u), jacobian_u(x, u)

    return jax.jit(linearizer)


def quadratize(fun: Callable) -> Callable[[Array, Array], Tuple[Array, Array, Array]]:
    """Hessian operator of a scalar function fun(x, u).

    Returns:
        A jitted function (x, u) -> (Q, R, M) where
            Q = d²fun/dx² of shape (n, n)
            R = d²fun/du² of shape (m, m)
            M = d²fun/dxdu of shape (n, m)
    """
    hessian_x = hessian(fun)
    hessian_u = hessian(fun, argnums=1)
    hessian_x_u = jacfwd(jax.grad(fun), argnums=1)

    def quadratizer(x, u):
        return hessian_x(x, u), hessian_u(x, u), hessian_x_u(x, u)

    return jax.jit(quadratizer)


def linearize_state(fun: Callable) -> Callable[[Array], Tuple[Array, Array]]:
    """Gradient and Hessian of a scalar terminal function fun(x)."""
    grad_x = jax.grad(fun)
    hessian_x = hessian(fun)

    def evaluator(x):
        return grad_x(x), hessian_x(x)

    return jax.jit(evaluator)
