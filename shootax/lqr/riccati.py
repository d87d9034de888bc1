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

"""Closed-form Riccati recursions for linear-quadratic problems.

These are the reference solutions the DDP solvers must reproduce on LQ
problems. Matrices follow the Hessian convention of the action models:

    l(x, u) = 1/2 x'Qx + 1/2 u'Ru + x'Mu + q'x + r'u
    V(x)    = 1/2 x'Px + p'x
    u*(x)   = K x + k
"""

from typing import Optional, Tuple

import jax.numpy as jnp
import jax.scipy as jsp
from jax import Array, jit, lax


def _symmetrize(x):
    return (x + x.T) / 2


@jit
def dare_step(
    P: Array,
    Q: Array,
    R: Array,
    A: Array,
    B: Array,
    M: Optional[Array] = None,
    reg: float = 0.0,
) -> Tuple[Array, Array, Array]:
    """One backward step of the Riccati recursion.

        P_prev = Q + A'PA - (B'PA + M')' (R + B'PB)^{-1} (B'PA + M')

    Args:
        P: Value Hessian of the next stage (n, n).
        Q, R, M: Cost Hessian blocks, M defaults to zeros.
        A, B: Dynamics Jacobians.
        reg: Added to the diagonal of R + B'PB.

    Returns:
        (P_prev, K, dV) with K the feedback gain (m, n) and dV the trace of
        P - P_prev.
    """
    if M is None:
        M = jnp.zeros((A.shape[0], B.shape[1]))

    AtPA = _symmetrize(A.T @ P @ A)
    BtP = B.T @ P
    BtPB = _symmetrize(BtP @ B)

    H = BtP @ A + M.T  # (m, n)
    G = R + BtPB + reg * jnp.eye(R.shape[0])  # (m, m)

    K = -jsp.linalg.solve(G, H, assume_a='pos')
    P_prev = _symmetrize(Q + AtPA + K.T @ H + H.T @ K + K.T @ G @ K)
    dV = jnp.trace(P - P_prev)
    return P_prev, K, dV


@jit
def dare_step_affine(
    P: Array,
    p: Array,
    Q: Array,
    q: Array,
    R: Array,
    r: Array,
    A: Array,
    B: Array,
    c: Array,
    M: Optional[Array] = None,
    reg: float = 0.0,
) -> Tuple[Array, Array, Array, Array]:
    """Riccati step with linear cost terms (q, r) and dynamics offset c.

    Dynamics are x' = A x + B u + c.

    Returns:
        (P_prev, p_prev, K, k).
    """
    if M is None:
        M = jnp.zeros((A.shape[0], B.shape[1]))

    AtP = A.T @ P
    AtPA = _symmetrize(AtP @ A)
    BtP = B.T @ P
    BtPB = _symmetrize(BtP @ B)

    H = BtP @ A + M.T  # (m, n)
    h = B.T @ p + BtP @ c + r  # (m,)
    G = R + BtPB + reg * jnp.eye(R.shape[0])

    K_k = jsp.linalg.solve(G, -jnp.column_stack([H, h[:, None]]), assume_a='pos')
    K = K_k[:, :-1]
    k = K_k[:, -1]

    H_GK = H + G @ K
    P_prev = _symmetrize(Q + AtPA + H_GK.T @ K + K.T @ H)
    p_prev = q + A.T @ p + AtP @ c + H_GK.T @ k + K.T @ h
    return P_prev, p_prev, K, k


def tvriccati_backward(
    Q: Array,
    R: Array,
    A: Array,
    B: Array,
    Q_T: Array,
    M: Optional[Array] = None,
    reg: float = 0.0,
) -> Tuple[Array, Array]:
    """Finite-horizon Riccati recursion over stacked stage matrices.

    Args:
        Q: State cost Hessians (T, n, n).
        R: Control cost Hessians (T, m, m).
        A: Dynamics matrices (T, n, n).
        B: Control matrices (T, n, m).
        Q_T: Terminal cost Hessian (n, n).
        M: Cross terms (T, n, m).
        reg: Regularization of R + B'PB.

    Returns:
        (P, K): value Hessians (T + 1, n, n) and gains (T, m, n).
    """
    T, n = A.shape[0], A.shape[1]
    m = B.shape[2]
    if M is None:
        M = jnp.zeros((T, n, m))

    P = jnp.zeros((T + 1, n, n)).at[-1].set(Q_T)
    K = jnp.zeros((T, m, n))

    def body(tt, carry):
        P, K = carry
        t = T - 1 - tt
        P_t, K_t, _ = dare_step(P[t + 1], Q[t], R[t], A[t], B[t], M[t], reg)
        return P.at[t].set(P_t), K.at[t].set(K_t)

    return lax.fori_loop(0, T, body, (P, K))


def tvriccati_affine_backward(
    Q: Array, q: Array, R: Array, r: Array, A: Array, B: Array, c: Array,
    Q_T: Array, q_T: Array, M: Optional[Array] = None, reg: float = 0.0,
) -> Tuple[Array, Array]:
    """Affine counterpart of `tvriccati_backward`.

    Returns:
        (K, k): gains (T, m, n) and feedforward terms (T, m) of the optimal
        policy u_t = K_t x_t + k_t.
    """
    T, n = A.shape[0], A.shape[1]
    m = B.shape[2]
    if M is None:
        M = jnp.zeros((T, n, m))

    def step(carry, stage):
        P, p = carry
        Q_t, q_t, R_t, r_t, A_t, B_t, c_t, M_t = stage
        P, p, K_t, k_t = dare_step_affine(
            P, p, Q_t, q_t, R_t, r_t, A_t, B_t, c_t, M_t, reg)
        return (P, p), (K_t, k_t)

    _, (K, k) = lax.scan(step, (Q_T, q_T), (Q, q, R, r, A, B, c, M),
                         reverse=True)
    return K, k


__all__ = [
    'dare_step',
    'dare_step_affine',
    'tvriccati_backward',
    'tvriccati_affine_backward',
]
