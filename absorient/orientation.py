# orientation.py

"""
Closed-form orientation fitting between corresponding 3D point sets.

The N-point solvers follow Shinji Umeyama, "Least-squares estimation of
transformation parameters between two point patterns", IEEE PAMI 13(4),
376-380, 1991. Each public function validates its input in Python and hands
contiguous float64 arrays to a numba kernel.
"""

import logging
import math
import warnings
import numpy as np
from numpy import ndarray
from numpy import float64 as np_float64
from numpy.linalg import norm as np_norm
from numba import njit

from absorient.exceptions import ConvergenceWarning, DegenerateConfigurationError
from absorient.math import det3, so3_exp, so3_log
from absorient.transform import RigidTransform, Similarity
from absorient.utils import as_correspondences, as_rotations, as_vector

from numba.core.errors import NumbaPerformanceWarning
warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)

logger = logging.getLogger(__name__)

# Karcher mean stops once the mean tangent vector is shorter than this (radians)
DEFAULT_TOLERANCE = 1e-10
DEFAULT_MAX_ITERATIONS = 100

# second singular value of the cross-covariance, relative to the first,
# below which the rotation is not unique
RANK_TOLERANCE = 1e-10

# |a1 x a2| relative to |a1| |a2| below which two rays count as parallel
PARALLEL_TOLERANCE = 1e-10


@njit(cache=True)
def _centroid(points: ndarray) -> ndarray:
    n = points.shape[0]
    c = np.zeros(3, dtype=np_float64)
    for i in range(n):
        c[0] += points[i, 0]
        c[1] += points[i, 1]
        c[2] += points[i, 2]
    return c / n


@njit(cache=True)
def _cross_covariance(a: ndarray, b: ndarray) -> ndarray:
    """Σ = Σ_i b_i a_iᵀ"""
    H = np.zeros((3, 3), dtype=np_float64)
    for i in range(a.shape[0]):
        for r in range(3):
            for c in range(3):
                H[r, c] += b[i, r] * a[i, c]
    return H


@njit(cache=True)
def _umeyama_rotation(H: ndarray):
    """
    Rotation R = U S Vᵀ maximizing trace(Rᵀ H) for H = U D Vᵀ.

    S = diag(1, 1, det(U Vᵀ)) turns the improper solution into the best
    proper one when U Vᵀ is a reflection.

    Returns (R, D, S).
    """
    U, D, Vt = np.linalg.svd(H)
    S = np.ones(3, dtype=np_float64)
    if det3(U @ Vt) < 0.0:
        S[2] = -1.0
    R = (U * S) @ Vt
    return R, D, S


@njit(cache=True)
def _orientation_kernel(a: ndarray, b: ndarray):
    R, D, _ = _umeyama_rotation(_cross_covariance(a, b))
    return R, D


@njit(cache=True)
def _ray_basis(v1: ndarray, v2: ndarray) -> ndarray:
    """Orthonormal right-handed basis (columns) spanned by v1 and v1 x v2."""
    n1 = math.sqrt(v1[0]*v1[0] + v1[1]*v1[1] + v1[2]*v1[2])
    e0x, e0y, e0z = v1[0]/n1, v1[1]/n1, v1[2]/n1

    cx = v1[1]*v2[2] - v1[2]*v2[1]
    cy = v1[2]*v2[0] - v1[0]*v2[2]
    cz = v1[0]*v2[1] - v1[1]*v2[0]
    nc = math.sqrt(cx*cx + cy*cy + cz*cz)
    e1x, e1y, e1z = cx/nc, cy/nc, cz/nc

    B = np.empty((3, 3), dtype=np_float64)
    B[0, 0], B[1, 0], B[2, 0] = e0x, e0y, e0z
    B[0, 1], B[1, 1], B[2, 1] = e1x, e1y, e1z
    # e0 x e1 is already unit length
    B[0, 2] = e0y*e1z - e0z*e1y
    B[1, 2] = e0z*e1x - e0x*e1z
    B[2, 2] = e0x*e1y - e0y*e1x
    return B


@njit(cache=True)
def _ray_orientation_kernel(a1: ndarray, b1: ndarray, a2: ndarray, b2: ndarray) -> ndarray:
    A = _ray_basis(a1, a2)
    B = _ray_basis(b1, b2)
    return B @ np.ascontiguousarray(A.T)


@njit(cache=True)
def _absolute_orientation_kernel(a: ndarray, b: ndarray):
    ma = _centroid(a)
    mb = _centroid(b)
    R, D, _ = _umeyama_rotation(_cross_covariance(a - ma, b - mb))
    t = mb - R @ ma
    return R, t, D


@njit(cache=True)
def _similarity_kernel(a: ndarray, b: ndarray):
    ma = _centroid(a)
    mb = _centroid(b)
    ac = a - ma
    R, D, S = _umeyama_rotation(_cross_covariance(ac, b - mb))

    var_a = 0.0
    for i in range(ac.shape[0]):
        var_a += ac[i, 0]*ac[i, 0] + ac[i, 1]*ac[i, 1] + ac[i, 2]*ac[i, 2]

    scale = 0.0
    if var_a > 0.0:
        scale = (D[0]*S[0] + D[1]*S[1] + D[2]*S[2]) / var_a
    t = mb - scale * (R @ ma)
    return R, t, scale, D, var_a


@njit(cache=True)
def _mean_orientation_kernel(rotations: ndarray, tolerance: float, max_iterations: int):
    n = rotations.shape[0]
    base = rotations[0].copy()
    for iteration in range(max_iterations):
        base_t = np.ascontiguousarray(base.T)
        center = np.zeros(3, dtype=np_float64)
        for i in range(n):
            center += so3_log(base_t @ rotations[i])
        center /= n
        if math.sqrt(center[0]*center[0] + center[1]*center[1] + center[2]*center[2]) < tolerance:
            return base, iteration, True
        base = base @ so3_exp(center)
    return base, max_iterations, False


def _check_rank(D: ndarray, what: str) -> None:
    if D[0] <= 0.0 or D[1] <= RANK_TOLERANCE * D[0]:
        raise DegenerateConfigurationError(
            f"{what} is degenerate: points are collinear or coincident, singular values {D}")


def compute_orientation(a, b, a2=None, b2=None) -> ndarray:
    """
    Rotation R maximizing Σ_i b_i · (R a_i), so that b ≈ R a.

    This is the rotation step of Umeyama's absolute orientation and works on
    the raw points; centering only matters for the translation, see
    compute_absolute_orientation.

    Called with four vectors, ``compute_orientation(a1, b1, a2, b2)``, it
    dispatches to compute_orientation_from_rays.

    Args:
        a: (N, 3) source points.
        b: (N, 3) target points, b[i] corresponding to a[i].

    Returns:
        3x3 proper rotation matrix (det = +1).

    Raises:
        ValueError: on empty or mismatched input.
        DegenerateConfigurationError: with fewer than two correspondences,
            or when all points lie on one line through the origin.
    """
    if a2 is not None or b2 is not None:
        if a2 is None or b2 is None:
            raise TypeError("The ray form needs all four vectors a1, b1, a2, b2")
        return compute_orientation_from_rays(a, b, a2, b2)

    a, b = as_correspondences(a, b)
    if a.shape[0] < 2:
        raise DegenerateConfigurationError(
            "At least two correspondences are required to determine a rotation")
    logger.debug("computing orientation from %d correspondences", a.shape[0])
    R, D = _orientation_kernel(a, b)
    _check_rank(D, "Cross-covariance")
    return R


def compute_orientation_from_rays(a1, b1, a2, b2) -> ndarray:
    """
    Rotation mapping the rays a1, a2 onto b1, b2 without an SVD.

    The first pair is matched exactly in direction (b1 ∝ R a1), as is the
    normal of the plane each pair spans; the second pair is matched as well as
    that constraint allows. The rays need not be unit length.

    Args:
        a1: first source ray.
        b1: first target ray.
        a2: second source ray.
        b2: second target ray.

    Returns:
        3x3 proper rotation matrix.

    Raises:
        DegenerateConfigurationError: if a ray has zero length or a1 is
            parallel to a2 (or b1 to b2).
    """
    a1 = as_vector(a1, "a1")
    b1 = as_vector(b1, "b1")
    a2 = as_vector(a2, "a2")
    b2 = as_vector(b2, "b2")
    for name, (v1, v2) in (("a", (a1, a2)), ("b", (b1, b2))):
        n1, n2 = np_norm(v1), np_norm(v2)
        if n1 == 0.0 or n2 == 0.0:
            raise DegenerateConfigurationError(f"Rays {name}1 and {name}2 must be non-zero")
        if np_norm(np.cross(v1, v2)) <= PARALLEL_TOLERANCE * n1 * n2:
            raise DegenerateConfigurationError(f"Rays {name}1 and {name}2 are parallel")
    return _ray_orientation_kernel(a1, b1, a2, b2)


def compute_absolute_orientation(a, b) -> RigidTransform:
    """
    Computes the rigid transformation between two corresponding point sets.

    The result T maps a onto b in the least-squares sense, b[i] ≈ T @ a[i],
    exactly for three or more non-collinear, noise-free correspondences.

    Args:
        a: (N, 3) source points.
        b: (N, 3) target points.

    Returns:
        RigidTransform with t = mean(b) - R @ mean(a).

    Raises:
        ValueError: on empty or mismatched input.
        DegenerateConfigurationError: with fewer than three
            correspondences or collinear points.
    """
    a, b = as_correspondences(a, b)
    if a.shape[0] < 3:
        raise DegenerateConfigurationError(
            "At least three correspondences are required for a rigid transform")
    logger.debug("computing absolute orientation from %d correspondences", a.shape[0])
    R, t, D = _absolute_orientation_kernel(a, b)
    _check_rank(D, "Centered cross-covariance")
    return RigidTransform(R, t)


def compute_similarity(a, b) -> Similarity:
    """
    Computes the similarity transformation between two corresponding point sets.

    The result (T, s) maps a onto b in the least-squares sense,
    b[i] ≈ T @ (s * a[i]), with s = trace(D S) / Σ_i |a_i - mean(a)|².

    Args:
        a: (N, 3) source points.
        b: (N, 3) target points.

    Returns:
        Similarity(transform, scale), which unpacks as ``T, s``.

    Raises:
        ValueError: on empty or mismatched input.
        DegenerateConfigurationError: with fewer than three
            correspondences, collinear points, or when the points of a
            coincide so the scale is undefined.
    """
    a, b = as_correspondences(a, b)
    if a.shape[0] < 3:
        raise DegenerateConfigurationError(
            "At least three correspondences are required for a similarity transform")
    logger.debug("computing similarity from %d correspondences", a.shape[0])
    R, t, scale, D, var_a = _similarity_kernel(a, b)
    if var_a <= RANK_TOLERANCE * float(np.sum(a * a)):
        raise DegenerateConfigurationError(
            "Source points coincide; the scale is undefined")
    _check_rank(D, "Centered cross-covariance")
    return Similarity(RigidTransform(R, t), float(scale))


def compute_mean_orientation(
    rotations,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> ndarray:
    """
    Karcher mean of a set of rotations.

    Starting from the first rotation, the estimate R is repeatedly moved by
    the average of log(Rᵀ R_i) until that average is shorter than
    `tolerance`. The result minimizes Σ_i |log(Rᵀ R_i)|² for sets that are
    not too widely spread; antipodal sets may not converge.

    Args:
        rotations: sequence of 3x3 rotation matrices, or an (N, 3, 3) array.
        tolerance: convergence threshold on the mean tangent vector, radians.
        max_iterations: iteration cap.

    Returns:
        3x3 mean rotation. If the iteration cap is hit, the last estimate is
        returned and a ConvergenceWarning is issued.

    Raises:
        ValueError: on empty input, non-rotations, or invalid settings.
    """
    if not tolerance > 0.0:
        raise ValueError(f"tolerance must be positive, got {tolerance}")
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
    rotations = as_rotations(rotations)

    mean, iterations, converged = _mean_orientation_kernel(
        rotations, float(tolerance), int(max_iterations))
    if converged:
        logger.debug("mean orientation of %d rotations converged after %d iterations",
                     rotations.shape[0], iterations)
    else:
        warnings.warn(
            f"Mean orientation did not converge within {max_iterations} iterations",
            ConvergenceWarning, stacklevel=2)
    return mean
