"""Mathematical utilities for headings, frame transforms, signals and interpolation.

Provides the small geometric and signal helpers shared by the reference pose
synthesizer, the goal relocation logic and the residual terms.
"""

import math
from typing import Tuple

import numpy as np
import numpy.typing as npt
from scipy.spatial.transform import Rotation as R
from scipy.special import expit

# Vectors shorter than this are treated as degenerate (MuJoCo's mjMINVAL).
MIN_NORM = 1e-15


def normalize(vec: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Returns `vec` scaled to unit length.

    A degenerate vector is replaced by the first basis vector, matching
    MuJoCo's `mju_normalize`.

    Args:
        vec (npt.ArrayLike): Vector to normalize.

    Returns:
        npt.NDArray[np.float64]: The unit vector.
    """
    vec = np.asarray(vec, dtype=np.float64)
    norm = np.linalg.norm(vec)
    if norm < MIN_NORM:
        unit = np.zeros_like(vec)
        unit[0] = 1.0
        return unit

    return vec / norm


def get_planar_heading(xmat: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Returns the unit heading of a body projected onto the ground plane.

    The heading is the body's local x axis (first column of the rotation
    matrix) with its vertical component dropped.

    Args:
        xmat (npt.ArrayLike): Body orientation, either 3x3 or flattened row-major.

    Returns:
        npt.NDArray[np.float64]: Unit 2-vector [x, y].
    """
    xmat = np.asarray(xmat, dtype=np.float64).reshape(3, 3)
    return normalize(xmat[:2, 0])


def get_heading_angle(xmat: npt.ArrayLike) -> float:
    """Returns the yaw angle of a body's local x axis in the ground plane."""
    xmat = np.asarray(xmat, dtype=np.float64).reshape(3, 3)
    return math.atan2(xmat[1, 0], xmat[0, 0])


def get_local_vec(world_vec: npt.ArrayLike, xmat: npt.ArrayLike) -> npt.NDArray:
    """Transforms a world-frame vector to the local frame of a body.

    Args:
        world_vec: Vector in world coordinates.
        xmat: Body orientation, either 3x3 or flattened row-major.

    Returns:
        Vector expressed in the body frame.
    """
    world_rot = R.from_matrix(np.asarray(xmat, dtype=np.float64).reshape(3, 3))
    return world_rot.inv().apply(np.asarray(world_vec, dtype=np.float64))


def get_perpendicular(vec_2d: npt.ArrayLike, left: bool = True) -> npt.NDArray:
    """Returns `vec_2d` rotated by +90 degrees (left) or -90 degrees (right)."""
    x, y = np.asarray(vec_2d, dtype=np.float64)
    if left:
        return np.array([-y, x])

    return np.array([y, -x])


def get_sine_signal(
    amplitude: float, frequency: float, phase: float, t: float | npt.ArrayLike
) -> float | npt.NDArray:
    """Evaluates `amplitude * sin(2 * pi * frequency * t + phase)`."""
    return amplitude * np.sin(2 * np.pi * frequency * np.asarray(t) + phase)


def logistic(x: float | npt.ArrayLike, center: float, slope: float):
    """Decreasing logistic function `1 / (1 + exp((x - center) / slope))`.

    Evaluated through `scipy.special.expit` so large arguments do not overflow.

    Args:
        x: Input value(s).
        center: Input value mapped to 0.5.
        slope: Width of the transition; larger values give a softer step.

    Returns:
        Value(s) in the open interval (0, 1).
    """
    return expit(-(np.asarray(x, dtype=np.float64) - center) / slope)


def compute_interpolation_values(
    index: float, max_index: int
) -> Tuple[int, int, float, float]:
    """Computes the two keyframes and blend weights around a fractional index.

    The index is clamped to `[0, max_index]`, so nothing is extrapolated past
    the last captured frame.

    Args:
        index (float): Fractional keyframe index.
        max_index (int): Last valid keyframe index.

    Returns:
        Tuple[int, int, float, float]: `(index_0, index_1, weight_0, weight_1)`
        with `weight_0 + weight_1 == 1`.
    """
    clamped = min(max(float(index), 0.0), float(max_index))
    index_0 = int(math.floor(clamped))
    index_1 = min(index_0 + 1, max_index)

    weight_1 = clamped - index_0
    weight_0 = 1.0 - weight_1

    return index_0, index_1, weight_0, weight_1


def rotate_about_anchor(
    points: npt.NDArray, anchor_xy: npt.ArrayLike, heading: float, tilt: float
) -> npt.NDArray:
    """Banks and turns a point set around a vertical axis through an anchor.

    Each point is taken relative to the anchor in x and y (z stays absolute),
    rotated by `tilt` in the x-z plane, then by `heading` about the vertical
    axis, and translated back.

    Args:
        points (npt.NDArray): Array of shape (N, 3).
        anchor_xy (npt.ArrayLike): Anchor position [x, y].
        heading (float): Yaw angle in radians.
        tilt (float): Bank angle in radians.

    Returns:
        npt.NDArray: Rotated points, shape (N, 3).
    """
    anchor_xy = np.asarray(anchor_xy, dtype=np.float64)
    rel = np.array(points, dtype=np.float64)
    rel[:, :2] -= anchor_xy

    # Intrinsic z-y: turn(heading) * bank(-tilt)
    rot = R.from_euler("ZY", [heading, -tilt])
    rotated = rot.apply(rel)
    rotated[:, :2] += anchor_xy

    return rotated
