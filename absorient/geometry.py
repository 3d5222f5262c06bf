# geometry.py
import math
from numpy import float64 as np_float64
from numpy import ndarray
import numpy as np
from numba import njit

from absorient.utils import UNIT_NORM_TOLERANCE, as_rotation

from numba.core.errors import NumbaPerformanceWarning
import warnings
warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)


@njit(cache=True)
def quaternion_to_rotation(quaternion: ndarray) -> ndarray:
    """
    Convert a scalar-first quaternion [w, x, y, z] to a 3x3 rotation matrix.

    No normalization is applied: a quaternion of norm n yields n² times a
    rotation matrix.

    Parameters:
        quaternion (ndarray): A 4-element array representing the quaternion.

    Returns:
        ndarray: A 3x3 rotation matrix corresponding to the input quaternion.
    """
    w, x, y, z = quaternion[0], quaternion[1], quaternion[2], quaternion[3]

    # precompute products
    ww = w*w
    xx = x*x
    yy = y*y
    zz = z*z
    xy = x*y
    xz = x*z
    yz = y*z
    wx = w*x
    wy = w*y
    wz = w*z

    R = np.empty((3, 3), dtype=np_float64)
    R[0, 0] = ww + xx - yy - zz
    R[0, 1] = 2*(xy - wz)
    R[0, 2] = 2*(xz + wy)

    R[1, 0] = 2*(xy + wz)
    R[1, 1] = ww - xx + yy - zz
    R[1, 2] = 2*(yz - wx)

    R[2, 0] = 2*(xz - wy)
    R[2, 1] = 2*(yz + wx)
    R[2, 2] = ww - xx - yy + zz
    return R


@njit(cache=True, fastmath=True)
def rotation_to_quaternion(rotation):
    """
    Converts a 3x3 rotation matrix to a normalized quaternion.

    Depending on the value of the trace of the rotation matrix, the algorithm selects an appropriate
    computation method to extract the quaternion components, ensuring numerical stability by normalizing
    the result. The sign is fixed so the scalar part is non-negative.

    Parameters:
        rotation (array_like): A 3x3 rotation matrix.

    Returns:
        numpy.ndarray: A 1D numpy array of 4 floats, the normalized quaternion [w, x, y, z].
    """
    # unpack to locals (avoids repeated indexing)
    a00, a01, a02 = rotation[0, 0], rotation[0, 1], rotation[0, 2]
    a10, a11, a12 = rotation[1, 0], rotation[1, 1], rotation[1, 2]
    a20, a21, a22 = rotation[2, 0], rotation[2, 1], rotation[2, 2]

    tr = a00 + a11 + a22

    if tr > 0.0:
        S = math.sqrt(tr + 1.0) * 2.0
        qw = 0.25 * S
        qx = (a21 - a12) / S
        qy = (a02 - a20) / S
        qz = (a10 - a01) / S
    else:
        # pick largest diagonal element
        if a00 > a11 and a00 > a22:
            S = math.sqrt(1.0 + a00 - a11 - a22) * 2.0
            qw = (a21 - a12) / S
            qx = 0.25 * S
            qy = (a01 + a10) / S
            qz = (a02 + a20) / S
        elif a11 > a22:
            S = math.sqrt(1.0 + a11 - a00 - a22) * 2.0
            qw = (a02 - a20) / S
            qx = (a01 + a10) / S
            qy = 0.25 * S
            qz = (a12 + a21) / S
        else:
            S = math.sqrt(1.0 + a22 - a00 - a11) * 2.0
            qw = (a10 - a01) / S
            qx = (a02 + a20) / S
            qy = (a12 + a21) / S
            qz = 0.25 * S

    # normalize (guards against numerical drift)
    norm = math.sqrt(qx*qx + qy*qy + qz*qz + qw*qw)
    if qw < 0.0:
        norm = -norm
    qx /= norm
    qy /= norm
    qz /= norm
    qw /= norm

    out = np.empty(4, dtype=np_float64)
    out[0], out[1], out[2], out[3] = qw, qx, qy, qz
    return out


def quaternion_to_matrix(q, normalize: bool = False) -> ndarray:
    """
    Rotation matrix of a unit quaternion given as (q0, qx, qy, qz).

    Args:
        q: 4-vector, scalar part first.
        normalize: if True, scale q to unit norm first; otherwise q must
            already have unit norm.

    Returns:
        The 3x3 rotation matrix.

    Raises:
        ValueError: if q is not a finite 4-vector, is zero, or is not unit
            norm and normalize is False.
    """
    q = np.asarray(q, dtype=np_float64)
    if q.shape != (4,):
        raise ValueError(f"Quaternion must have shape (4,), got {q.shape}")
    if not np.isfinite(q).all():
        raise ValueError(f"Quaternion must be finite, got {q}")
    n = np.linalg.norm(q)
    if normalize:
        if n == 0.0:
            raise ValueError("Cannot normalize a zero quaternion.")
        q = q / n
    elif abs(n - 1.0) > UNIT_NORM_TOLERANCE:
        raise ValueError(f"Quaternion must have unit norm, got norm {n}")
    return quaternion_to_rotation(np.ascontiguousarray(q))


def matrix_to_quaternion(rotation) -> ndarray:
    """
    Unit quaternion (q0, qx, qy, qz) of a rotation matrix, with q0 >= 0.

    Raises:
        ValueError: if rotation is not a proper 3x3 rotation.
    """
    return rotation_to_quaternion(as_rotation(rotation))
