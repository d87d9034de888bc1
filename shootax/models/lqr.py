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

"""Linear-quadratic action model."""

from typing import Optional

import jax
import jax.numpy as jnp
from jax import Array

from shootax.core.action import ActionDataAbstract, ActionModelAbstract
from shootax.core.exceptions import DimensionMismatchError
from shootax.core.state import StateVector


class ActionModelLQR(ActionModelAbstract):
    """Stage with affine dynamics and quadratic cost.

        x' = A x + B u + f
        l(x, u) = 0.5 x'Qx + 0.5 u'Ru + x'Nu + q'x + r'u

    As a terminal stage (u=None) the cost reduces to 0.5 x'Qx + q'x.

    Example:
        >>> model = ActionModelLQR(A, B, Q, R)
        >>> data = model.create_data()
        >>> model.calc(data, x, u)
        >>> data.xnext, data.cost
    """

    supports_quasi_static = True

    def __init__(
        self,
        A: Array,
        B: Array,
        Q: Array,
        R: Array,
        N: Optional[Array] = None,
        f: Optional[Array] = None,
        q: Optional[Array] = None,
        r: Optional[Array] = None,
    ):
        A, B, Q, R = map(jnp.asarray, (A, B, Q, R))
        nx, nu = B.shape
        super().__init__(StateVector(nx), nu)

        self.A = A
        self.B = B
        self.Q = Q
        self.R = R
        self.N = jnp.zeros((nx, nu)) if N is None else jnp.asarray(N)
        self.f = jnp.zeros(nx) if f is None else jnp.asarray(f)
        self.q = jnp.zeros(nx) if q is None else jnp.asarray(q)
        self.r = jnp.zeros(nu) if r is None else jnp.asarray(r)

        expected = {
            'A': (nx, nx), 'Q': (nx, nx), 'R': (nu, nu), 'N': (nx, nu),
            'f': (nx,), 'q': (nx,), 'r': (nu,),
        }
        for name, shape in expected.items():
            if getattr(self, name).shape != shape:
                raise DimensionMismatchError(
                    f"{name} has shape {getattr(self, name).shape}, expected {shape}"
                )

    @classmethod
    def random(cls, nx: int, nu: int, key: Optional[Array] = None,
               drift_free: bool = True) -> 'ActionModelLQR':
        """Random LQ stage with a positive definite cost Hessian."""
        if key is None:
            key = jax.random.PRNGKey(0)
        k_a, k_b, k_h, k_g, k_f = jax.random.split(key, 5)
        A = jnp.eye(nx) + 0.1 * jax.random.normal(k_a, (nx, nx))
        B = jax.random.normal(k_b, (nx, nu))
        L = jax.random.normal(k_h, (nx + nu, nx + nu))
        H = L @ L.T + (nx + nu) * jnp.eye(nx + nu)
        g = jax.random.normal(k_g, (nx + nu,))
        f = None if drift_free else jax.random.normal(k_f, (nx,))
        return cls(A, B, H[:nx, :nx], H[nx:, nx:], N=H[:nx, nx:], f=f,
                   q=g[:nx], r=g[nx:])

    def calc(self, data: ActionDataAbstract, x: Array, u: Optional[Array] = None) -> None:
        x, u = self.check_inputs(x, u)
        if u is None:
            data.xnext = x
            data.cost = 0.5 * x @ self.Q @ x + self.q @ x
            return
        data.xnext = self.A @ x + self.B @ u + self.f
        data.cost = (
            0.5 * x @ self.Q @ x
            + 0.5 * u @ self.R @ u
            + x @ self.N @ u
            + self.q @ x
            + self.r @ u
        )

    def calc_diff(
        self, data: ActionDataAbstract, x: Array, u: Optional[Array] = None
    ) -> None:
        x, u = self.check_inputs(x, u)
        data.Lxx = self.Q
        if u is None:
            data.Lx = self.Q @ x + self.q
            return
        data.Fx = self.A
        data.Fu = self.B
        data.Lx = self.Q @ x + self.N @ u + self.q
        data.Lu = self.R @ u + self.N.T @ x + self.r
        data.Luu = self.R
        data.Lxu = self.N
