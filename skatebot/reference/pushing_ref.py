"""Board-anchored reference pose for the skateboard pushing motion.

Takes the interpolated marker set of the pushing clip and re-expresses it
around the moving board: recentred on the board, with a procedural gait on
the pushing foot, sway on the upper body, and the whole pose turned to the
board's heading and banked toward the goal.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

import numpy as np
import numpy.typing as npt

from skatebot.reference.motion_ref import KeyframeLibrary, MotionReference, PlaybackCursor
from skatebot.sim import ConfigurationError
from skatebot.sim.handles import PushingHandles
from skatebot.tasks.task_config import TaskConfig
from skatebot.utils.math_utils import get_heading_angle, get_sine_signal, rotate_about_anchor

# Task parameter names as declared in the model (`residual_<name>` numerics).
PARAMETER_NAMES = {
    "amplitude_z": "Amplitude_z",
    "amplitude_y": "Amplitude_y",
    "frequency_z": "Frequency_z",
    "frequency_y": "Frequency_y",
    "phase_z": "Phase_z",
    "phase_y": "Phase_y",
    "offset_z": "Offset_z",
    "offset_y": "Offset_y",
    "tilt_ratio": "Tilt ratio",
    "velocity": "Velocity",
}


@dataclass(frozen=True)
class PushingParams:
    """Tunable scalars of the pushing task."""

    amplitude_z: float = 0.0
    amplitude_y: float = 0.0
    frequency_z: float = 0.0
    frequency_y: float = 0.0
    phase_z: float = 0.0
    phase_y: float = 0.0
    offset_z: float = 0.0
    offset_y: float = 0.0
    tilt_ratio: float = 0.0
    velocity: float = 0.0

    @classmethod
    def from_dict(cls, parameters: Mapping[str, float]) -> "PushingParams":
        """Builds the parameters from model-declared names.

        Raises:
            ConfigurationError: If any parameter is missing.
        """
        missing = [name for name in PARAMETER_NAMES.values() if name not in parameters]
        if len(missing) > 0:
            raise ConfigurationError(f"task parameters not found: {missing}")

        return cls(
            **{
                field: float(parameters[name])
                for field, name in PARAMETER_NAMES.items()
            }
        )


class PushingReference(MotionReference):
    """Reference marker poses for pushing a skateboard toward a goal."""

    def __init__(
        self,
        library: KeyframeLibrary,
        cfg: TaskConfig,
        handles: PushingHandles,
    ):
        """Initializes the pushing reference.

        Args:
            library (KeyframeLibrary): Keyframes of the pushing clip(s).
            cfg (TaskConfig): Synthesis constants.
            handles (PushingHandles): Resolved lead, trail and sway markers.
        """
        super().__init__("pushing", library)

        self.synthesis_cfg = cfg.synthesis
        self.lead_id = handles.lead_marker_id
        self.trail_id = handles.trail_marker_id
        self.sway_ids = np.array(handles.sway_marker_ids, dtype=np.int64)
        self.sway_scale = np.stack(
            [self.synthesis_cfg.sway_scale_y, self.synthesis_cfg.sway_scale_z], axis=-1
        ).astype(np.float64)

    def get_tilt_angle(
        self,
        anchor_pos: npt.ArrayLike,
        anchor_mat: npt.ArrayLike,
        goal_pos: npt.ArrayLike,
        tilt_ratio: float,
    ) -> Tuple[float, float]:
        """Computes the pose heading and the bank angle from the steering error.

        Both headings are measured from the authored forward axis, which is a
        quarter turn from the board's local x axis.

        Args:
            anchor_pos: Board world position.
            anchor_mat: Board orientation (3x3 or flattened).
            goal_pos: Goal world position.
            tilt_ratio (float): Gain on the bank angle.

        Returns:
            Tuple[float, float]: `(heading, tilt)` in radians.
        """
        anchor_pos = np.asarray(anchor_pos, dtype=np.float64)
        goal_pos = np.asarray(goal_pos, dtype=np.float64)

        heading = get_heading_angle(anchor_mat) - math.pi / 2.0
        goal_heading = (
            math.atan2(goal_pos[1] - anchor_pos[1], goal_pos[0] - anchor_pos[0])
            - math.pi / 2.0
        )

        heading_error = (
            math.sin(goal_heading - heading) / self.synthesis_cfg.heading_error_divisor
        )
        limit = self.synthesis_cfg.heading_error_limit
        heading_error = min(limit, max(-limit, heading_error))
        tilt = heading_error * math.pi / 2.0 * tilt_ratio

        return heading, tilt

    def synthesize(
        self,
        raw_marker_pos: npt.ArrayLike,
        time_curr: float,
        anchor_pos: npt.ArrayLike,
        anchor_mat: npt.ArrayLike,
        goal_pos: npt.ArrayLike,
        params: PushingParams,
    ) -> npt.NDArray[np.float64]:
        """Places the interpolated marker set on the moving board.

        Args:
            raw_marker_pos: Interpolated captured markers, shape (num_markers, 3).
            time_curr (float): Simulation time driving the gait and sway signals.
            anchor_pos: Board world position.
            anchor_mat: Board orientation (3x3 or flattened).
            goal_pos: Goal world position.
            params (PushingParams): Gait, sway and tilt parameters.

        Returns:
            npt.NDArray[np.float64]: Marker positions in world coordinates,
            shape (num_markers, 3).
        """
        raw = np.asarray(raw_marker_pos, dtype=np.float64)
        anchor_pos = np.asarray(anchor_pos, dtype=np.float64)
        cfg = self.synthesis_cfg

        # Recentre on the board, cancelling the capture's own xy drift.
        marker_pos = raw + anchor_pos
        marker_pos[:, 0] += cfg.stance_x_bias
        marker_pos[:, 2] += cfg.stance_z_bias
        marker_pos[:, :2] -= np.mean(raw[:, :2], axis=0)

        # Pushing foot gait.
        lateral = (
            get_sine_signal(params.amplitude_y, params.frequency_y, params.phase_y, time_curr)
            + params.offset_y
        )
        vertical = (
            get_sine_signal(params.amplitude_z, params.frequency_z, params.phase_z, time_curr)
            - params.offset_z
        )
        marker_pos[self.lead_id, 1] += lateral + raw[self.lead_id, 1]
        marker_pos[self.trail_id, 1] = marker_pos[self.lead_id, 1] - cfg.trail_gap
        marker_pos[self.lead_id, 2] = vertical + raw[self.lead_id, 2]
        marker_pos[self.trail_id, 2] = vertical + raw[self.trail_id, 2]

        # Upper body sway, phase-locked to the lateral gait signal.
        sway = get_sine_signal(1.0, params.frequency_y, params.phase_y, time_curr)
        marker_pos[self.sway_ids, 1] += (
            -self.sway_scale[:, 0] * params.amplitude_y * 0.5 * sway
            + raw[self.sway_ids, 1]
            + params.offset_y
            + cfg.sway_y_bias
        )
        marker_pos[self.sway_ids, 2] += -self.sway_scale[:, 1] * sway

        heading, tilt = self.get_tilt_angle(
            anchor_pos, anchor_mat, goal_pos, params.tilt_ratio
        )
        return rotate_about_anchor(marker_pos, anchor_pos[:2], heading, tilt)

    def get_state_ref(
        self,
        time_curr: float,
        cursor: PlaybackCursor,
        anchor_pos: npt.ArrayLike = None,
        anchor_mat: npt.ArrayLike = None,
        goal_pos: npt.ArrayLike = None,
        params: PushingParams = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """Returns the reference for the current time and board pose.

        Args:
            time_curr (float): The current simulation time.
            cursor (PlaybackCursor): Active clip and its start time.
            anchor_pos: Board world position.
            anchor_mat: Board orientation (3x3 or flattened).
            goal_pos: Goal world position.
            params (PushingParams): Task parameters.

        Returns:
            Dict[str, Any]: Interpolation cursor values, the raw interpolated
            markers, their finite-difference velocity and the synthesized
            world-frame markers.
        """
        index_0, index_1, weight_0, weight_1 = self.library.get_interp(
            cursor.motion_id, cursor.get_elapsed(time_curr)
        )
        raw_marker_pos = self.library.get_marker_pos(index_0, index_1, weight_0, weight_1)
        marker_pos = self.synthesize(
            raw_marker_pos, time_curr, anchor_pos, anchor_mat, goal_pos, params
        )

        return {
            "interp": (index_0, index_1, weight_0, weight_1),
            "raw_marker_pos": raw_marker_pos,
            "marker_pos": marker_pos,
            "marker_vel": self.library.get_marker_vel(index_0, index_1),
        }
