import unittest
import numpy as np
from scipy.spatial.transform import Rotation
from absorient import (
    DegenerateConfigurationError,
    RigidTransform,
    Similarity,
    compute_absolute_orientation,
    compute_similarity,
)


def residual(T, a, b, scale=1.0):
    return float(np.sum((b - T.transform_points(scale * a)) ** 2))


class TestComputeAbsoluteOrientation(unittest.TestCase):
    def setUp(self):
        self.rng = np.random.default_rng(21)
        self.rotations = Rotation.from_quat(self.rng.normal(size=(8, 4))).as_matrix()
        self.translations = self.rng.uniform(-10, 10, size=(8, 3))

    def test_recovers_rigid_transform(self):
        a = self.rng.normal(size=(10, 3))
        for R_true, t_true in zip(self.rotations, self.translations):
            b = a @ R_true.T + t_true
            T = compute_absolute_orientation(a, b)
            self.assertIsInstance(T, RigidTransform)
            np.testing.assert_allclose(T.rotation, R_true, atol=1e-10)
            np.testing.assert_allclose(T.translation, t_true, atol=1e-9)

    def test_three_points_are_exact(self):
        a = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 2.0, 0.0]])
        T_true = RigidTransform(self.rotations[2], self.translations[2])
        T = compute_absolute_orientation(a, T_true.transform_points(a))
        self.assertEqual(T, T_true)
        np.testing.assert_allclose(T @ a, T_true @ a, atol=1e-9)

    def test_least_squares_with_noise(self):
        a = self.rng.normal(size=(30, 3))
        T_true = RigidTransform(self.rotations[0], self.translations[0])
        b = T_true.transform_points(a) + self.rng.normal(scale=0.05, size=a.shape)
        T = compute_absolute_orientation(a, b)
        self.assertLessEqual(residual(T, a, b), residual(T_true, a, b))
        np.testing.assert_allclose(T.rotation, T_true.rotation, atol=0.05)

    def test_reflected_points_still_give_proper_rotation(self):
        a = self.rng.normal(size=(10, 3))
        b = a * np.array([-1.0, 1.0, 1.0]) + np.array([1.0, 2.0, 3.0])
        T = compute_absolute_orientation(a, b)
        np.testing.assert_allclose(T.rotation @ T.rotation.T, np.eye(3), atol=1e-12)
        self.assertAlmostEqual(np.linalg.det(T.rotation), 1.0, places=12)

    def test_two_points_are_degenerate(self):
        with self.assertRaises(DegenerateConfigurationError):
            compute_absolute_orientation([[0, 0, 0], [1, 0, 0]], [[0, 0, 0], [0, 1, 0]])

    def test_collinear_points_are_degenerate(self):
        a = [[0.0, 0.0, 0.0], [1.0, 1.0, 1.0], [2.0, 2.0, 2.0], [3.0, 3.0, 3.0]]
        b = [[5.0, 0.0, 0.0], [6.0, 0.0, 0.0], [7.0, 0.0, 0.0], [8.0, 0.0, 0.0]]
        with self.assertRaises(DegenerateConfigurationError):
            compute_absolute_orientation(a, b)

    def test_coincident_targets_are_degenerate(self):
        a = [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
        b = [[1.0, 2.0, 3.0]] * 3
        with self.assertRaises(DegenerateConfigurationError):
            compute_absolute_orientation(a, b)

    def test_invalid_input(self):
        with self.assertRaises(ValueError):
            compute_absolute_orientation([], [])
        with self.assertRaises(ValueError):
            compute_absolute_orientation(np.zeros((4, 3)), np.zeros((5, 3)))


class TestComputeSimilarity(unittest.TestCase):
    def setUp(self):
        self.rng = np.random.default_rng(5)
        self.rotations = Rotation.from_quat(self.rng.normal(size=(6, 4))).as_matrix()
        self.translations = self.rng.uniform(-5, 5, size=(6, 3))
        self.scales = [0.3, 1.0, 2.5, 10.0, 0.01, 4.0]

    def test_recovers_similarity(self):
        a = self.rng.normal(size=(10, 3))
        for R_true, t_true, s_true in zip(self.rotations, self.translations, self.scales):
            b = (s_true * a) @ R_true.T + t_true
            result = compute_similarity(a, b)
            self.assertIsInstance(result, Similarity)
            np.testing.assert_allclose(result.rotation, R_true, atol=1e-10)
            np.testing.assert_allclose(result.translation, t_true, atol=1e-9)
            self.assertAlmostEqual(result.scale, s_true, places=10)

    def test_unpacks_as_transform_and_scale(self):
        a = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
        b = 2.0 * a + np.array([1.0, 1.0, 1.0])
        T, s = compute_similarity(a, b)
        self.assertIsInstance(T, RigidTransform)
        self.assertAlmostEqual(s, 2.0, places=12)
        np.testing.assert_allclose(T.rotation, np.eye(3), atol=1e-12)
        np.testing.assert_allclose(T.translation, [1.0, 1.0, 1.0], atol=1e-12)
        np.testing.assert_allclose(T.transform_points(s * a), b, atol=1e-12)

    def test_least_squares_with_noise(self):
        a = self.rng.normal(size=(40, 3))
        truth = Similarity(RigidTransform(self.rotations[1], self.translations[1]), 1.7)
        b = truth.transform_points(a) + self.rng.normal(scale=0.05, size=a.shape)
        result = compute_similarity(a, b)
        self.assertLessEqual(
            residual(result.transform, a, b, result.scale),
            residual(truth.transform, a, b, truth.scale))

    def test_reflected_points_give_proper_rotation_and_positive_scale(self):
        a = self.rng.normal(size=(10, 3))
        b = 3.0 * (a * np.array([1.0, -1.0, 1.0]))
        T, s = compute_similarity(a, b)
        self.assertGreater(s, 0.0)
        self.assertAlmostEqual(np.linalg.det(T.rotation), 1.0, places=12)

    def test_coincident_sources_are_degenerate(self):
        a = [[1.0, 2.0, 3.0]] * 4
        b = [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]
        with self.assertRaises(DegenerateConfigurationError):
            compute_similarity(a, b)

    def test_too_few_points_are_degenerate(self):
        with self.assertRaises(DegenerateConfigurationError):
            compute_similarity([[0, 0, 0], [1, 0, 0]], [[0, 0, 0], [2, 0, 0]])

    def test_collinear_points_are_degenerate(self):
        a = [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]]
        b = [[0.0, 0.0, 0.0], [0.0, 2.0, 0.0], [0.0, 4.0, 0.0]]
        with self.assertRaises(DegenerateConfigurationError):
            compute_similarity(a, b)


if __name__ == "__main__":
    unittest.main()
