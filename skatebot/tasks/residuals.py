"""Residual terms for the pushing task.

Each function computes one block of the residual vector from plain arrays, so
the blocks can be evaluated and checked independently of a MuJoCo state.
"""

from typing import Sequence

import numpy as np
import numpy.typing as npt

from skatebot.utils.math_utils import get_local_vec, get_planar_heading, logistic, normalize


def get_tracking_residual(
    ref_pos: npt.ArrayLike,
    sensor_pos: npt.ArrayLike,
    ref_vel: npt.ArrayLike,
    sensor_vel: npt.ArrayLike,
    track_indices: Sequence[int],
) -> npt.NDArray[np.float64]:
    """Pose and velocity tracking against the reference markers.

    Emits, in order: the mean offset between reference and measured positions
    over all bodies (3), the centroid-relative position error of each tracked
    body (3 each), and the velocity error of each tracked body (3 each).

    Args:
        ref_pos: Reference positions of all averaged bodies, shape (N, 3).
        sensor_pos: Measured positions of the same bodies, shape (N, 3).
        ref_vel: Reference velocities of the tracked bodies, shape (K, 3).
        sensor_vel: Measured velocities of the tracked bodies, shape (K, 3).
        track_indices: Rows of `ref_pos` / `sensor_pos` for the tracked bodies.

    Returns:
        npt.NDArray[np.float64]: Vector of length 3 + 6 * K.
    """
    ref_pos = np.asarray(ref_pos, dtype=np.float64).reshape(-1, 3)
    sensor_pos = np.asarray(sensor_pos, dtype=np.float64).reshape(-1, 3)
    track_indices = np.asarray(track_indices, dtype=np.int64)

    if len(ref_pos) == 0:
        ref_mean = np.zeros(3)
        sensor_mean = np.zeros(3)
    else:
        ref_mean = np.mean(ref_pos, axis=0)
        sensor_mean = np.mean(sensor_pos, axis=0)

    pos_error = (ref_pos[track_indices] - ref_mean) - (
        sensor_pos[track_indices] - sensor_mean
    )
    vel_error = np.asarray(ref_vel, dtype=np.float64).reshape(-1, 3) - np.asarray(
        sensor_vel, dtype=np.float64
    ).reshape(-1, 3)

    return np.concatenate([ref_mean - sensor_mean, pos_error.ravel(), vel_error.ravel()])


def get_foot_position_residual(
    foot_pos: Sequence[npt.ArrayLike], target_pos: Sequence[npt.ArrayLike]
) -> npt.NDArray[np.float64]:
    """Foot position minus board-mounted target position, 3 per foot."""
    return np.concatenate(
        [
            np.asarray(foot, dtype=np.float64) - np.asarray(target, dtype=np.float64)
            for foot, target in zip(foot_pos, target_pos)
        ]
    )


def get_heading_residual(
    anchor_pos: npt.ArrayLike, anchor_mat: npt.ArrayLike, goal_pos: npt.ArrayLike
) -> npt.NDArray[np.float64]:
    """Board heading unit vector minus the unit vector from board to goal."""
    heading = get_planar_heading(anchor_mat)
    board_to_goal = normalize(
        np.asarray(goal_pos, dtype=np.float64)[:2]
        - np.asarray(anchor_pos, dtype=np.float64)[:2]
    )
    return heading - board_to_goal


def get_board_velocity_residual(
    target_speed: float,
    global_vel: npt.ArrayLike,
    anchor_mat: npt.ArrayLike,
    tolerance: float = 0.03,
) -> npt.NDArray[np.float64]:
    """Board velocity error against a forward target speed.

    Longitudinal and lateral errors are taken in the board frame; the vertical
    error uses the global vertical velocity. The tolerance is subtracted from
    the longitudinal error.

    Args:
        target_speed (float): Desired forward speed.
        global_vel: Measured board linear velocity in world coordinates.
        anchor_mat: Board orientation (3x3 or flattened).
        tolerance (float, optional): Longitudinal slack. Defaults to 0.03.

    Returns:
        npt.NDArray[np.float64]: The 3-vector residual.
    """
    global_vel = np.asarray(global_vel, dtype=np.float64)
    local_vel = get_local_vec(global_vel, anchor_mat)
    return np.array(
        [
            target_speed - local_vel[0] - tolerance,
            0.0 - local_vel[1],
            0.0 - global_vel[2],
        ]
    )


def get_foot_force_residual(
    contact_force: npt.ArrayLike,
    stance_marker_height: float,
    stance_height: float = 0.05,
    center: float = 500.0,
    slope: float = 80.0,
) -> npt.NDArray[np.float64]:
    """Ground force shaping for the pushing foot.

    The summed absolute force is squashed by a decreasing logistic, so a
    planted foot is rewarded for pressing down. The term is zero unless the
    reference places the foot at or below `stance_height`.

    Args:
        contact_force: Summed contact force of the foot's ground contacts.
        stance_marker_height (float): Reference height of the foot marker.
        stance_height (float, optional): Gate height. Defaults to 0.05.
        center (float, optional): Force mapped to 0.5. Defaults to 500.0.
        slope (float, optional): Logistic width. Defaults to 80.0.

    Returns:
        npt.NDArray[np.float64]: 1-vector in [0, 1).
    """
    if stance_marker_height > stance_height:
        return np.zeros(1)

    force_abs_sum = np.sum(np.abs(np.asarray(contact_force, dtype=np.float64)[:3]))
    return np.array([float(logistic(force_abs_sum, center, slope))])


def get_com_velocity_residual(
    board_vel: npt.ArrayLike, com_vel: npt.ArrayLike
) -> npt.NDArray[np.float64]:
    """Board velocity minus humanoid subtree velocity, x and y only."""
    return (
        np.asarray(board_vel, dtype=np.float64)[:2]
        - np.asarray(com_vel, dtype=np.float64)[:2]
    )
