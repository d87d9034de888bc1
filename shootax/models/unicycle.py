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

"""Kinematic unicycle with analytical derivatives."""

from typing import Optional

import jax.numpy as jnp
from jax import Array

from shootax.core.action import ActionDataAbstract, ActionModelAbstract
from shootax.core.state import StateS1


class ActionModelUnicycle(ActionModelAbstract):
    """Planar unicycle regulated to the origin.

    State (x, y, theta), theta is an S¹ coordinate. Control (v, w):

        x' = x + v cos(theta) dt
        y' = y + v sin(theta) dt
        theta' = theta + w dt

    Cost 0.5 * ||state_weight * (x ⊖ 0)||² + 0.5 * ||control_weight * u||².
    """

    supports_quasi_static = True

    def __init__(
        self,
        dt: float = 0.1,
        state_weight: float = 10.0,
        control_weight: float = 1.0,
    ):
        super().__init__(StateS1(3, s1_indices=(2,)), 2)
        if dt <= 0:
            raise ValueError(f"dt must be positive, got {dt}")
        self.dt = dt
        self.state_weight = state_weight
        self.control_weight = control_weight

    def calc(self, data: ActionDataAbstract, x: Array, u: Optional[Array] = None) -> None:
        x, u = self.check_inputs(x, u)
        rx = self.state_weight * self.state.diff(self.state.zero(), x)
        data.cost = 0.5 * rx @ rx
        if u is None:
            data.xnext = x
            return
        c, s = jnp.cos(x[2]), jnp.sin(x[2])
        data.xnext = x + self.dt * jnp.array([c * u[0], s * u[0], u[1]])
        ru = self.control_weight * u
        data.cost = data.cost + 0.5 * ru @ ru

    def calc_diff(
        self, data: ActionDataAbstract, x: Array, u: Optional[Array] = None
    ) -> None:
        x, u = self.check_inputs(x, u)
        w_x2 = self.state_weight ** 2
        data.Lx = w_x2 * self.state.diff(self.state.zero(), x)
        data.Lxx = w_x2 * jnp.eye(3)
        if u is None:
            return
        w_u2 = self.control_weight ** 2
        c, s = jnp.cos(x[2]), jnp.sin(x[2])
        dt = self.dt
        data.Fx = jnp.array([
            [1.0, 0.0, -s * u[0] * dt],
            [0.0, 1.0, c * u[0] * dt],
            [0.0, 0.0, 1.0],
        ])
        data.Fu = jnp.array([
            [c * dt, 0.0],
            [s * dt, 0.0],
            [0.0, dt],
        ])
        data.Lu = w_u2 * u
        data.Luu = w_u2 * jnp.eye(2)
        data.Lxu = jnp.zeros((3, 2))
