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

"""Manifold utilities for handling circular state components.

Helpers for S¹ (circle) coordinates where angles wrap around at ±π. They
back the difference and integration operators of `shootax.core.state.StateS1`.
"""

from typing import Callable, Optional, Tuple

import jax
import jax.numpy as jnp
from jax import Array


def wrap_to_pi(x: Array) -> Array:
    """Wraps angles to lie within [-π, π) range.

    Args:
        x: Angle(s) in radians, can be scalar or array.

    Returns:
        Wrapped angle(s) in [-π, π) range.

    Example:
        >>> angle = jnp.array(3.5 * jnp.pi)
        >>> wrap_to_pi(angle)  # ≈ -0.5π
    """
    return (x + jnp.pi) % (2 * jnp.pi) - jnp.pi


def get_s1_wrapper(
    s1_ind: Optional[Tuple[int, ...]] = None
) -> Callable[[Array], Array]:
    """Returns a JIT-compiled function that wraps S¹ state components to [-π, π).

    Args:
        s1_ind: Tuple of vector indices corresponding to S¹ (angle) dimensions.
            If None or empty, returns the identity function.

    Returns:
        A JIT-compiled function (vector) -> wrapped_vector.

    Example:
        >>> wrapper = get_s1_wrapper((2,))
        >>> wrapper(jnp.array([1.0, 1.0, 3.5 * jnp.pi]))[2]  # ≈ -0.5π
    """
    if s1_ind is None or len(s1_ind) == 0:
        return jax.jit(lambda x: x)

    idxs = jnp.array(s1_ind, dtype=jnp.int32)

    def state_wrapper(x: Array) -> Array:
        return x.at[idxs].set(wrap_to_pi(x[idxs]))

    return jax.jit(state_wrapper)
