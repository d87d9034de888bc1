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

"""Action models: the per-stage contract consumed by shooting problems.

An action model owns the behaviour of one stage (dynamics, cost and their
derivatives). Its companion data record owns the mutable buffers written by
each evaluation. Data records are created once, when the problem is built,
and every call to `calc`/`calc_diff` overwrites their fields:

    data = model.create_data()
    model.calc(data, x, u)        # data.xnext, data.cost
    model.calc_diff(data, x, u)   # data.Fx, data.Fu, data.Lx, ..., data.Lxu

Calling `calc`/`calc_diff` with `u=None` evaluates the model as a terminal
stage: only the cost and its state derivatives are filled and `xnext = x`.

All derivatives are taken with respect to tangent-space perturbations of the
state, so `Fx` is (ndx, ndx), `Lx` is (ndx,), and so on.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import jax.numpy as jnp
from jax import Array

from shootax.core.exceptions import (
    DimensionMismatchError,
    QuasiStaticConvergenceError,
    UnsupportedOperationError,
)
from shootax.core.state import StateAbstract


class ActionDataAbstract:
    """Mutable evaluation record of one stage.

    Attributes:
        cost: Stage cost (scalar).
        xnext: Predicted next state (nx,).
        Fx: Dynamics Jacobian w.r.t. the state (ndx, ndx).
        Fu: Dynamics Jacobian w.r.t. the control (ndx, nu).
        Lx: Cost gradient w.r.t. the state (ndx,).
        Lu: Cost gradient w.r.t. the control (nu,).
        Lxx: Cost Hessian w.r.t. the state (ndx, ndx).
        Luu: Cost Hessian w.r.t. the control (nu, nu).
        Lxu: Mixed cost Hessian (ndx, nu).
    """

    def __init__(self, model: 'ActionModelAbstract'):
        ndx, nu = model.state.ndx, model.nu
        self.cost = jnp.zeros(())
        self.xnext = model.state.zero()
        self.Fx = jnp.zeros((ndx, ndx))
        self.Fu = jnp.zeros((ndx, nu))
        self.Lx = jnp.zeros(ndx)
        self.Lu = jnp.zeros(nu)
        self.Lxx = jnp.zeros((ndx, ndx))
        self.Luu = jnp.zeros((nu, nu))
        self.Lxu = jnp.zeros((ndx, nu))

    def derivatives(self) -> Tuple[Array, ...]:
        """Return (Fx, Fu, Lx, Lu, Lxx, Luu, Lxu)."""
        return (self.Fx, self.Fu, self.Lx, self.Lu, self.Lxx, self.Luu, self.Lxu)


class ActionModelAbstract(ABC):
    """Abstract action model.

    Subclasses implement `calc` and `calc_diff`. Models that can compute a
    control holding the system at a given state set `supports_quasi_static`
    to True; the Gauss-Newton routine of `quasi_static` then works for them
    without further code, or they override it with a closed form.

    Attributes:
        state: State manifold of this stage.
        nu: Control dimension (may be 0).
        supports_quasi_static: Whether `quasi_static` is available.
    """

    supports_quasi_static: bool = False

    def __init__(self, state: StateAbstract, nu: int):
        if nu < 0:
            raise ValueError(f"nu must be >= 0, got {nu}")
        self.state = state
        self.nu = nu

    @property
    def unone(self) -> Array:
        """Zero control of this stage."""
        return jnp.zeros(self.nu)

    @abstractmethod
    def calc(self, data: ActionDataAbstract, x: Array, u: Optional[Array] = None) -> None:
        """Compute the next state and the cost into `data`."""

    @abstractmethod
    def calc_diff(
        self, data: ActionDataAbstract, x: Array, u: Optional[Array] = None
    ) -> None:
        """Compute dynamics Jacobians and cost derivatives into `data`.

        `calc` must have been called with the same (x, u) beforehand.
        """

    def create_data(self) -> ActionDataAbstract:
        return ActionDataAbstract(self)

    def check_inputs(self, x: Array, u: Optional[Array] = None):
        """Validate and convert a (state, control) pair."""
        x = self.state.check_state(x)
        if u is None:
            return x, None
        u = jnp.asarray(u)
        if u.shape != (self.nu,):
            raise DimensionMismatchError(
                f"u has shape {u.shape}, expected ({self.nu},)"
            )
        return x, u

    def quasi_static(
        self,
        data: ActionDataAbstract,
        x: Array,
        maxiter: int = 100,
        tol: float = 1e-9,
    ) -> Array:
        """Control that keeps the system at `x`.

        Solves diff(x, f(x, u)) = 0 in the least-squares sense with
        Gauss-Newton steps on u, starting from zero control.

        Args:
            data: Data record of this model, overwritten during the search.
            x: State to hold.
            maxiter: Iteration budget of the root-find.
            tol: Tolerance on the norm of diff(x, f(x, u)).

        Returns:
            Control u of shape (nu,).

        Raises:
            UnsupportedOperationError: If the model does not support it.
            QuasiStaticConvergenceError: If the residual is still above tol
                after maxiter Gauss-Newton steps.
        """
        if not self.supports_quasi_static:
            raise UnsupportedOperationError(
                f"{type(self).__name__} does not implement quasi_static"
            )
        x = self.state.check_state(x)
        u = self.unone
        if self.nu == 0:
            return u

        for _ in range(maxiter):
            self.calc(data, x, u)
            residual = self.state.diff(x, data.xnext)
            if float(jnp.linalg.norm(residual)) <= tol:
                return u
            self.calc_diff(data, x, u)
            Jdiff = self.state.jdiff(x, data.xnext, 'second')
            u = u - jnp.linalg.pinv(Jdiff @ data.Fu) @ residual

        self.calc(data, x, u)
        residual_norm = float(jnp.linalg.norm(self.state.diff(x, data.xnext)))
        if residual_norm <= tol:
            return u
        raise QuasiStaticConvergenceError(
            f"quasi_static did not converge in {maxiter} iterations "
            f"(residual norm {residual_norm:.3e})",
            residual=residual_norm,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(nx={self.state.nx}, nu={self.nu})"
