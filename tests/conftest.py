"""
Synthetic scenes shared by the tests.
"""

from dataclasses import dataclass

import cv2
import numpy as np
import pytest


def rotation(rvec) -> np.ndarray:
    R, _ = cv2.Rodrigues(np.asarray(rvec, dtype=np.float64).reshape(3, 1))
    return R


def skew(v) -> np.ndarray:
    x, y, z = v
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def same_up_to_scale(A: np.ndarray, B: np.ndarray, tol: float) -> bool:
    """
    Compare two matrices defined up to a non-zero scale (and sign).
    """
    a = A / np.linalg.norm(A)
    b = B / np.linalg.norm(B)
    return min(np.linalg.norm(a - b), np.linalg.norm(a + b)) < tol


@dataclass
class TwoViewScene:
    K: np.ndarray
    R: np.ndarray
    t: np.ndarray
    x1: np.ndarray      # (N,2) pixels in image 1
    x2: np.ndarray      # (N,2) pixels in image 2
    width: int = 640
    height: int = 480

    @property
    def F(self) -> np.ndarray:
        K_inv = np.linalg.inv(self.K)
        return K_inv.T @ skew(self.t) @ self.R @ K_inv


def make_two_view_scene(n: int, rng: np.random.Generator, K=None) -> TwoViewScene:
    """
    Random 3D points seen by two cameras: P1 = K[I|0], P2 = K[R|t].
    """
    if K is None:
        K = np.array([[500.0, 0.0, 320.0], [0.0, 500.0, 240.0], [0.0, 0.0, 1.0]])
    R = rotation([0.05, -0.1, 0.03])
    t = np.array([1.0, 0.2, 0.1])

    # Random viewing rays of camera 1 (about a 64 x 48 degree field of view)
    # at random depths
    uv = rng.uniform([-0.6, -0.45], [0.6, 0.45], size=(n, 2))
    depth = rng.uniform(4.0, 10.0, size=n)
    X = np.hstack([uv, np.ones((n, 1))]) * depth[:, None]

    def project(P_pts):
        h = P_pts @ K.T
        return h[:, :2] / h[:, 2:3]

    x1 = project(X)
    x2 = project(X @ R.T + t)
    return TwoViewScene(K=K, R=R, t=t, x1=x1, x2=x2)


@pytest.fixture
def rng():
    return np.random.default_rng(2024)


@pytest.fixture
def calibrated_scene(rng):
    """
    Noise-free two-view scene in normalized camera coordinates (K = I).
    """
    return make_two_view_scene(30, rng, K=np.eye(3))


@pytest.fixture
def similarity_truth():
    S = 2.5
    R = rotation([0.3, -0.2, 0.7])
    t = np.array([1.0, -2.0, 0.5])
    return S, t, R
