"""
absorient: closed-form absolute orientation for 3D correspondences.

Rotations, rigid transforms and similarity transforms that best align two
corresponding point sets (Umeyama's method), a direct two-ray solver, the
Karcher mean of a set of rotations, and quaternion conversion.
"""

__version__ = version = "0.1.0"

# exposing the public API of the package
from absorient.exceptions import (
    ConvergenceWarning,
    DegenerateConfigurationError,
)
from absorient.geometry import (
    matrix_to_quaternion,
    quaternion_to_matrix,
)
from absorient.math import (
    so3_exp,
    so3_log,
)
from absorient.orientation import (
    compute_absolute_orientation,
    compute_mean_orientation,
    compute_orientation,
    compute_orientation_from_rays,
    compute_similarity,
)
from absorient.transform import (
    RigidTransform,
    Similarity,
)

__all__ = [
    "ConvergenceWarning",
    "DegenerateConfigurationError",
    "RigidTransform",
    "Similarity",
    "compute_absolute_orientation",
    "compute_mean_orientation",
    "compute_orientation",
    "compute_orientation_from_rays",
    "compute_similarity",
    "matrix_to_quaternion",
    "quaternion_to_matrix",
    "so3_exp",
    "so3_log",
]
