# math.py

import math
import numpy as np
from numpy import ndarray
from numpy import float64 as np_float64
from numba import njit
from numba.core.errors import NumbaPerformanceWarning
import warnings
warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)


@njit(fastmath=True, inline='always', cache=True)
def det3(M):
    """Determinant of a 3 x 3 (faster than np.linalg.det for tiny mats)."""
    return (
        M[0, 0] * (M[1, 1] * M[2, 2] - M[1, 2] * M[2, 1])
        - M[0, 1] * (M[1, 0] * M[2, 2] - M[1, 2] * M[2, 0])
        + M[0, 2] * (M[1, 0] * M[2, 1] - M[1, 1] * M[2, 0])
    )


@njit(cache=True)
def so3_exp(w: ndarray) -> ndarray:
    """
    Exponential map from a rotation vector to a rotation matrix.

    Rodrigues' formula written out element-wise:

        R = I + A [w]x + B [w]x²,   A = sin θ / θ,   B = (1 - cos θ) / θ²

    with θ = |w|. For θ → 0 the Taylor expansions of A and B are used so the
    map stays accurate (and exactly the identity for w = 0).

    Parameters
    ----------
    w : (3,) float64 array
        Rotation vector (axis * angle, radians).

    Returns
    -------
    (3, 3) float64 array
        Proper rotation matrix.
    """
    wx, wy, wz = w[0], w[1], w[2]
    theta2 = wx*wx + wy*wy + wz*wz
    if theta2 < 1e-16:
        A = 1.0 - theta2 / 6.0
        B = 0.5 - theta2 / 24.0
    else:
        theta = math.sqrt(theta2)
        A = math.sin(theta) / theta
        B = (1.0 - math.cos(theta)) / theta2

    # [w]x² = w wᵀ - θ² I
    diag = 1.0 - B * theta2
    R = np.empty((3, 3), dtype=np_float64)
    R[0, 0] = diag + B*wx*wx
    R[0, 1] = B*wx*wy - A*wz
    R[0, 2] = B*wx*wz + A*wy

    R[1, 0] = B*wx*wy + A*wz
    R[1, 1] = diag + B*wy*wy
    R[1, 2] = B*wy*wz - A*wx

    R[2, 0] = B*wx*wz - A*wy
    R[2, 1] = B*wy*wz + A*wx
    R[2, 2] = diag + B*wz*wz
    return R


@njit(cache=True)
def so3_log(R: ndarray) -> ndarray:
    """
    Logarithm map from a rotation matrix to its rotation vector.

    The angle is taken from atan2(|v|, (tr R - 1) / 2), where v is the vee of
    the antisymmetric part, so it stays well conditioned over [0, π]. Close
    to π the antisymmetric part vanishes and the axis is read off the
    symmetric part instead:

        (R + Rᵀ) / 2 = cos θ I + (1 - cos θ) u uᵀ

    Parameters
    ----------
    R : (3, 3) float64 array
        Proper rotation matrix.

    Returns
    -------
    (3,) float64 array
        Rotation vector with norm in [0, π].
    """
    c = 0.5 * (R[0, 0] + R[1, 1] + R[2, 2] - 1.0)
    if c > 1.0:
        c = 1.0
    elif c < -1.0:
        c = -1.0

    # v = sin θ · u
    vx = 0.5 * (R[2, 1] - R[1, 2])
    vy = 0.5 * (R[0, 2] - R[2, 0])
    vz = 0.5 * (R[1, 0] - R[0, 1])
    s = math.sqrt(vx*vx + vy*vy + vz*vz)
    theta = math.atan2(s, c)

    out = np.empty(3, dtype=np_float64)
    if theta < 1e-8:
        # θ ≈ sin θ
        out[0], out[1], out[2] = vx, vy, vz
        return out

    if c > -0.9:
        k = theta / s
        out[0], out[1], out[2] = vx*k, vy*k, vz*k
        return out

    # near π: u uᵀ = ((R + Rᵀ)/2 - cos θ I) / (1 - cos θ)
    inv = 1.0 / (1.0 - c)
    u00 = (R[0, 0] - c) * inv
    u11 = (R[1, 1] - c) * inv
    u22 = (R[2, 2] - c) * inv
    u01 = 0.5 * (R[0, 1] + R[1, 0]) * inv
    u02 = 0.5 * (R[0, 2] + R[2, 0]) * inv
    u12 = 0.5 * (R[1, 2] + R[2, 1]) * inv

    # pick the best conditioned column
    if u00 >= u11 and u00 >= u22:
        ux = math.sqrt(max(u00, 0.0))
        uy = u01 / ux
        uz = u02 / ux
    elif u11 >= u22:
        uy = math.sqrt(max(u11, 0.0))
        ux = u01 / uy
        uz = u12 / uy
    else:
        uz = math.sqrt(max(u22, 0.0))
        ux = u02 / uz
        uy = u12 / uz

    n = math.sqrt(ux*ux + uy*uy + uz*uz)
    ux, uy, uz = ux/n, uy/n, uz/n

    # the sign of the axis is only observable through sin θ · u
    if ux*vx + uy*vy + uz*vz < 0.0:
        ux, uy, uz = -ux, -uy, -uz

    out[0], out[1], out[2] = ux*theta, uy*theta, uz*theta
    return out
