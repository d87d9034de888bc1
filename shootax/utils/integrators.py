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

"""Numerical integration of continuous-time stage dynamics.

Shooting problems work with discrete-time dynamics x' = f(x, u). If you have
continuous-time dynamics dx/dt = f_cont(x, u), use these integrators to
discretize them, e.g. through `ActionModelAutoDiff.from_continuous`.
"""

from typing import Callable


def euler(dynamics_continuous: Callable, dt: float) -> Callable:
    """Create discrete-time dynamics using explicit Euler integration.

        x' = x + dt * f_cont(x, u)

    Args:
        dynamics_continuous: Continuous-time dynamics (x, u) -> dx/dt.
        dt: Time step for integration.

    Returns:
        Discrete-time dynamics function (x, u) -> x_next.

    Example:
        >>> def pendulum_cont(x, u):
        ...     theta, omega = x
        ...     return jnp.array([omega, -jnp.sin(theta) + u[0]])
        ...
        >>> pendulum_discrete = euler(pendulum_cont, dt=0.01)
    """
    def dynamics_discrete(x, u):
        return x + dt * dynamics_continuous(x, u)

    return dynamics_discrete


def rk4(dynamics_continuous: Callable, dt: float) -> Callable:
    """Create discrete-time dynamics using RK4 integration.

        k1 = f(x, u)
        k2 = f(x + dt/2 * k1, u)
        k3 = f(x + dt/2 * k2, u)
        k4 = f(x + dt * k3, u)
        x' = x + dt/6 * (k1 + 2*k2 + 2*k3 + k4)

    The control is held constant over the step.
    """
    def dynamics_discrete(x, u):
        k1 = dynamics_continuous(x, u)
        k2 = dynamics_continuous(x + 0.5 * dt * k1, u)
        k3 = dynamics_continuous(x + 0.5 * dt * k2, u)
        k4 = dynamics_continuous(x + dt * k3, u)
        return x + dt / 6.0 * (k1 + 2.0 * k2 + 2.0 * k3 + k4)

    return dynamics_discrete


INTEGRATORS = {
    'euler': euler,
    'rk4': rk4,
}


def get_integrator(name: str) -> Callable:
    """Look up an integrator by name ('euler' or 'rk4')."""
    try:
        return INTEGRATORS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown integrator: {name}. Available: {list(INTEGRATORS)}"
        ) from None
