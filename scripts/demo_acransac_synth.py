import numpy as np

from robustgeo import enable_debug_logging
from robustgeo.ransac import (
    ACRansacParams, ac_ransac_find_rts, ac_ransac_fundamental, apply_rts, compose_rts,
)


def demo_similarity(rng: np.random.Generator) -> None:
    # True similarity
    S_true = 1.7
    R_true, _ = np.linalg.qr(rng.normal(size=(3, 3)))
    if np.linalg.det(R_true) < 0:
        R_true[:, 2] *= -1.0
    t_true = np.array([0.5, -1.0, 2.0])

    # Inliers with a little noise
    n_in = 200
    x1 = rng.uniform(0.0, 10.0, size=(n_in, 3))
    x2 = apply_rts(compose_rts(S_true, t_true, R_true), x1)
    x2 += rng.normal(0.0, 0.02, size=x2.shape)

    # Outliers (wrong matches)
    n_out = 80
    o1 = rng.uniform(0.0, 10.0, size=(n_out, 3))
    o2 = rng.uniform(x2.min(axis=0), x2.max(axis=0), size=(n_out, 3))

    est = ac_ransac_find_rts(
        np.vstack([x1, o1]),
        np.vstack([x2, o2]),
        refine=True,
        params=ACRansacParams(seed=42),
    )

    print("S_true:", S_true)
    if est is None:
        print("AC-RANSAC failed.")
        return
    print("S_est:", est.S)
    print("rotation error:", np.linalg.norm(est.R - R_true))
    print("num_inliers:", len(est.inliers), "/", n_in + n_out)
    print("threshold:", est.threshold, "nfa:", est.nfa, "refined:", est.refined)


def demo_fundamental(rng: np.random.Generator) -> None:
    K = np.array([[500.0, 0.0, 320.0], [0.0, 500.0, 240.0], [0.0, 0.0, 1.0]])
    angle = 0.1
    R = np.array([[np.cos(angle), 0.0, np.sin(angle)],
                  [0.0, 1.0, 0.0],
                  [-np.sin(angle), 0.0, np.cos(angle)]])
    t = np.array([1.0, 0.1, 0.05])

    n_in = 300
    uv = rng.uniform([-0.6, -0.45], [0.6, 0.45], size=(n_in, 2))
    X = np.hstack([uv, np.ones((n_in, 1))]) * rng.uniform(4.0, 10.0, size=(n_in, 1))

    def project(P):
        h = P @ K.T
        return h[:, :2] / h[:, 2:3]

    x1 = project(X) + rng.normal(0.0, 0.5, size=(n_in, 2))
    x2 = project(X @ R.T + t) + rng.normal(0.0, 0.5, size=(n_in, 2))

    n_out = 150
    o1 = rng.uniform([0, 0], [640, 480], size=(n_out, 2))
    o2 = rng.uniform([0, 0], [640, 480], size=(n_out, 2))

    res = ac_ransac_fundamental(
        np.vstack([x1, o1]), np.vstack([x2, o2]), (640, 480), (640, 480),
        params=ACRansacParams(seed=0),
    )
    if res is None:
        print("AC-RANSAC failed.")
        return
    print("F_est:\n", res.model / res.model[2, 2])
    print("num_inliers:", res.num_inliers, "/", n_in + n_out)
    print("threshold (px):", res.threshold, "nfa:", res.nfa, "iterations:", res.iterations)


def main() -> None:
    enable_debug_logging()
    rng = np.random.default_rng(0)
    demo_similarity(rng)
    demo_fundamental(rng)


if __name__ == "__main__":
    main()
