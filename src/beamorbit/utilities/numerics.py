"""
Small dense linear-algebra helpers.

``svd_solve`` is the truncated-SVD pseudo-inverse solve used by the
closed-orbit Newton iteration: singular values below ``rcond`` times the
largest one are dropped, so near-singular systems still produce the
minimum-norm update instead of blowing up.
"""

from typing import Tuple

import numpy as np


def truncated_pinv(matrix, rcond: float = 1e-6) -> Tuple[np.ndarray, int]:
    """Pseudo-inverse of ``matrix`` keeping singular values ``s >= rcond * s_max``.

    Returns:
        The pseudo-inverse and the number of singular values that were dropped.
        A zero matrix drops every singular value.
    """
    matrix = np.asarray(matrix, dtype=float)
    U, s, VT = np.linalg.svd(matrix, full_matrices=False)

    s_max = s[0] if s.size else 0.0
    if s_max > 0.0:
        keep = s >= rcond * s_max
    else:
        keep = np.zeros(s.shape, dtype=bool)

    s_inv = np.zeros_like(s)
    s_inv[keep] = 1.0 / s[keep]
    pinv = VT.T @ np.diag(s_inv) @ U.T
    return pinv, int(np.count_nonzero(~keep))


def svd_solve(matrix, rhs, rcond: float = 1e-6) -> Tuple[np.ndarray, int]:
    """Least-squares, minimum-norm solution of ``matrix @ x = rhs``.

    Returns:
        ``(x, n_dropped)`` where ``n_dropped`` counts the discarded singular values.
    """
    pinv, n_dropped = truncated_pinv(matrix, rcond)
    return pinv @ np.asarray(rhs, dtype=float), n_dropped


def trapezoid_square(previous, current, step: float) -> np.ndarray:
    """Trapezoid-rule increment of the integral of ``z**2`` over a step of length ``step``."""
    mean = (np.asarray(previous, dtype=float) + np.asarray(current, dtype=float)) / 2.0
    return step * mean ** 2


def rms_from_integral(integral, total_length: float) -> np.ndarray:
    """RMS excursion from an accumulated integral of ``z**2`` over ``total_length``."""
    if total_length <= 0.0:
        raise ValueError(f"Total length must be positive, got {total_length}")
    return np.sqrt(np.asarray(integral, dtype=float) / total_length)
