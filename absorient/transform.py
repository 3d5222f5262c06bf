# transform.py

from typing import NamedTuple, Optional, Union, List, Tuple
from numpy import allclose as np_allclose
from numpy import array2string as np_array2string
from numpy import asarray as np_asarray
from numpy import eye as np_eye
from numpy import shape as np_shape
from numpy import zeros as np_zeros
from numpy import float64 as np_float64
from numpy import ndarray

from absorient.geometry import quaternion_to_matrix, rotation_to_quaternion
from absorient.utils import as_rotation, as_vector, to_matrix


class RigidTransform:
    """
    A rotation followed by a translation, p' = R @ p + t.

    Attributes:
        rotation (ndarray): 3x3 proper rotation matrix.
        translation (ndarray): length-3 translation vector.
    """
    __slots__ = ("rotation", "translation")

    def __init__(
        self,
        rotation: Optional[Union[ndarray, List, Tuple]] = None,
        translation: Optional[Union[ndarray, List, Tuple]] = None,
    ):
        if rotation is None:
            self.rotation = np_eye(3, dtype=np_float64)
        else:
            self.rotation = as_rotation(rotation).copy()
        if translation is None:
            self.translation = np_zeros(3, dtype=np_float64)
        else:
            self.translation = as_vector(translation, "translation").copy()

    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls()

    @classmethod
    def from_matrix(cls, matrix: Union[ndarray, List]) -> "RigidTransform":
        """
        Create a RigidTransform from a 4x4 homogeneous matrix.

        Raises:
            ValueError: if the matrix is not 4x4, its last row is not
                [0, 0, 0, 1], or its upper-left block is not a rotation.
        """
        matrix = np_asarray(matrix, dtype=np_float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Invalid matrix shape: {matrix.shape}")
        if not np_allclose(matrix[3], [0.0, 0.0, 0.0, 1.0]):
            raise ValueError("Last row of a rigid transform must be [0, 0, 0, 1].")
        return cls(matrix[:3, :3], matrix[:3, 3])

    @classmethod
    def from_quaternion(
        cls,
        quaternion: Union[ndarray, List, Tuple],
        translation: Optional[Union[ndarray, List, Tuple]] = None,
    ) -> "RigidTransform":
        """
        Create a RigidTransform from a unit quaternion (q0, qx, qy, qz).

        Args:
            quaternion: 4-element unit quaternion, scalar first.
            translation: length-3 translation, zero if omitted.
        """
        return cls(quaternion_to_matrix(quaternion), translation)

    @property
    def matrix(self) -> ndarray:
        """The 4x4 homogeneous matrix of this transform."""
        return to_matrix(self.translation, self.rotation, 1.0)

    @property
    def quaternion(self) -> ndarray:
        """The rotation as a unit quaternion (q0, qx, qy, qz) with q0 >= 0."""
        return rotation_to_quaternion(self.rotation)

    def transform_point(self, point: Union[ndarray, List, Tuple]) -> ndarray:
        return self.rotation @ np_asarray(point, dtype=np_float64) + self.translation

    def transform_points(self, points: Union[ndarray, List]) -> ndarray:
        """Apply the transform to every row of an (N, 3) array."""
        return np_asarray(points, dtype=np_float64) @ self.rotation.T + self.translation

    def inverse(self) -> "RigidTransform":
        """
        Invert this RigidTransform.

        Returns:
            The transform (Rᵀ, -Rᵀ t).
        """
        R_t = self.rotation.T
        return self.__class__(R_t, -R_t @ self.translation)

    def copy(self) -> "RigidTransform":
        return self.__class__(self.rotation, self.translation)

    def __matmul__(self, other: Union["RigidTransform", ndarray]) -> Union["RigidTransform", ndarray]:
        """
        Compose with another RigidTransform (other is applied first), or
        apply this transform to a point or an (N, 3) array of points.
        """
        if isinstance(other, ndarray):
            if np_shape(other) == (3,):
                return self.transform_point(other)
            else:
                return self.transform_points(other)

        if not isinstance(other, RigidTransform):
            return NotImplemented

        return self.__class__(
            self.rotation @ other.rotation,
            self.rotation @ other.translation + self.translation,
        )

    def __eq__(self, other: object) -> bool:
        """
        True if `other` is a RigidTransform with rotation and translation equal within a small tolerance.
        """
        if not isinstance(other, RigidTransform):
            return False
        return np_allclose(self.rotation, other.rotation) and np_allclose(self.translation, other.translation)

    __hash__ = None

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        rot = np_array2string(self.rotation, precision=6, separator=', ')
        trans = np_array2string(self.translation, precision=6, separator=', ')
        return f"{cls}(rotation=\n{rot},\ntranslation={trans}\n)"

    def __copy__(self) -> "RigidTransform":
        return self.copy()


class Similarity(NamedTuple):
    """
    A rigid transform applied to uniformly scaled points, p' = R @ (s * p) + t.

    Unpacks as the ``(transform, scale)`` pair.
    """
    transform: RigidTransform
    scale: float

    @property
    def rotation(self) -> ndarray:
        return self.transform.rotation

    @property
    def translation(self) -> ndarray:
        return self.transform.translation

    @property
    def matrix(self) -> ndarray:
        """The 4x4 homogeneous matrix, with the scale folded into the rotation block."""
        return to_matrix(self.transform.translation, self.transform.rotation, self.scale)

    def transform_points(self, points: Union[ndarray, List]) -> ndarray:
        return self.transform.transform_points(self.scale * np_asarray(points, dtype=np_float64))

    def inverse(self) -> "Similarity":
        """The similarity mapping p' back to p: (Rᵀ, -Rᵀ t / s, 1 / s)."""
        inv = self.transform.inverse()
        return Similarity(RigidTransform(inv.rotation, inv.translation / self.scale), 1.0 / self.scale)
