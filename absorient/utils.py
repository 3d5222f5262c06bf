# utils.py

import numpy as np
from numpy import ndarray
from numpy import float64 as np_float64
from typing import Tuple
from absorient.math import det3
from numba import njit
from numba.core.errors import NumbaPerformanceWarning
import warnings
warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)
_EYE4 = np.eye(4)

# how far |q| or RᵀR may drift from exact before input is rejected
UNIT_NORM_TOLERANCE = 1e-6


@njit(cache=True)
def to_matrix(translation: np.ndarray, rotation: np.ndarray, scale: float) -> np.ndarray:
    """Convert to a 4x4 transformation matrix. Scale first, then rotate, then translate."""
    m = _EYE4.copy()
    m[:3, :3] = rotation * scale
    m[:3, 3] = translation
    return m


@njit(cache=True)
def is_rotation(R: np.ndarray, tol=1e-6) -> bool:
    """True if R is orthonormal with det ≈ +1."""
    for i in range(3):
        for j in range(3):
            d = R[0, i]*R[0, j] + R[1, i]*R[1, j] + R[2, i]*R[2, j]
            if i == j:
                d -= 1.0
            if abs(d) > tol:
                return False
    return abs(det3(R) - 1.0) <= tol


def as_vector(v, name: str = "vector") -> ndarray:
    """Coerce v to a contiguous float64 3-vector."""
    v = np.ascontiguousarray(v, dtype=np_float64)
    if v.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {v.shape}")
    if not np.isfinite(v).all():
        raise ValueError(f"{name} must be finite, got {v}")
    return v


def as_points(points, name: str = "points") -> ndarray:
    """
    Coerce a sequence of 3D points to a contiguous (N, 3) float64 array.

    Raises:
        ValueError: if the input is empty, not a list of 3-vectors, or not
            finite.
    """
    points = np.ascontiguousarray(points, dtype=np_float64)
    if points.size == 0:
        raise ValueError(f"{name} must not be empty")
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"{name} must have shape (N, 3), got {points.shape}")
    if not np.isfinite(points).all():
        raise ValueError(f"{name} must not contain NaN or inf")
    return points


def as_correspondences(a, b) -> Tuple[ndarray, ndarray]:
    """Coerce two index-aligned point sets, checking they have the same length."""
    a = as_points(a, "a")
    b = as_points(b, "b")
    if a.shape[0] != b.shape[0]:
        raise ValueError(
            f"Point sets must have the same length, got {a.shape[0]} and {b.shape[0]}")
    return a, b


def as_rotation(rotation, name: str = "rotation") -> ndarray:
    """Coerce to a contiguous 3x3 float64 array, rejecting anything that is not a proper rotation."""
    rotation = np.ascontiguousarray(rotation, dtype=np_float64)
    if rotation.shape != (3, 3):
        raise ValueError(f"{name} must have shape (3, 3), got {rotation.shape}")
    if not is_rotation(rotation, UNIT_NORM_TOLERANCE):
        raise ValueError(f"{name} must be orthonormal with determinant +1")
    return rotation


def as_rotations(rotations) -> ndarray:
    """Coerce a sequence of rotation matrices to a contiguous (N, 3, 3) float64 array."""
    rotations = np.ascontiguousarray(rotations, dtype=np_float64)
    if rotations.size == 0:
        raise ValueError("rotations must not be empty")
    if rotations.ndim != 3 or rotations.shape[1:] != (3, 3):
        raise ValueError(
            f"rotations must have shape (N, 3, 3), got {rotations.shape}")
    for i in range(rotations.shape[0]):
        if not is_rotation(rotations[i], UNIT_NORM_TOLERANCE):
            raise ValueError(
                f"rotations[{i}] must be orthonormal with determinant +1")
    return rotations
