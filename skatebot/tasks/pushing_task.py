"""Humanoid skateboard pushing task.

The residual drives a humanoid standing on a skateboard to push it toward a
goal: regularization, tracking of a board-anchored reference pose, foot
placement on the board, board heading and speed, pushing-foot ground force and
centre-of-mass velocity. The transition re-seeds the state on mode or episode
changes, writes the reference markers and relocates the goal once reached.
"""

from collections import OrderedDict
from typing import Any, Dict, Optional

import mujoco
import numpy as np
import numpy.typing as npt

from skatebot.algorithms.goal_relocation import (
    FreshRandomSource,
    GoalRelocator,
    NumpyRandomSource,
    RandomSource,
)
from skatebot.reference.motion_ref import KeyframeLibrary, PlaybackCursor
from skatebot.reference.pushing_ref import PushingParams, PushingReference
from skatebot.sim import ConfigurationError
from skatebot.sim.handles import PushingHandles
from skatebot.sim.mujoco_utils import (
    get_contact_force,
    get_residual_parameters,
    read_sensor,
)
from skatebot.tasks.base_task import ResidualFn, Task
from skatebot.tasks.residuals import (
    get_board_velocity_residual,
    get_com_velocity_residual,
    get_foot_force_residual,
    get_foot_position_residual,
    get_heading_residual,
    get_tracking_residual,
)
from skatebot.tasks.task_config import TaskConfig
from skatebot.utils.misc_utils import log

# Block order of the residual vector; new blocks are appended.
RESIDUAL_TERMS = (
    "joint_vel",
    "control",
    "tracking",
    "foot_pos",
    "heading",
    "board_vel",
    "foot_force",
    "com_vel",
)


class PushingResidual(ResidualFn):
    """Residual of the pushing task for one frozen task state."""

    def __init__(
        self,
        cfg: TaskConfig,
        handles: PushingHandles,
        reference: PushingReference,
        params: PushingParams,
        cursor: PlaybackCursor,
    ):
        super().__init__(handles.residual_dim)
        self.cfg = cfg
        self.handles = handles
        self.reference = reference
        self.params = params
        self.cursor = cursor

        self.body_marker_ids = handles.get_body_marker_indices(handles.body_names)
        self.track_marker_ids = handles.get_body_marker_indices(handles.track_body_names)
        self.track_rows = np.array(
            [handles.body_names.index(name) for name in handles.track_body_names],
            dtype=np.int64,
        )

    def get_state_ref(self, model: mujoco.MjModel, data: mujoco.MjData):
        """Synthesizes the reference for `data` without touching it."""
        handles = self.handles
        return self.reference.get_state_ref(
            data.time,
            self.cursor,
            anchor_pos=data.xpos[handles.anchor_body_id],
            anchor_mat=data.xmat[handles.anchor_body_id],
            goal_pos=data.mocap_pos[handles.goal_mocap_id],
            params=self.params,
        )

    def residual_blocks(
        self, model: mujoco.MjModel, data: mujoco.MjData
    ) -> "OrderedDict[str, npt.NDArray[np.float64]]":
        """Computes every residual block, in layout order."""
        state_ref = self.get_state_ref(model, data)
        return OrderedDict(
            (name, getattr(self, f"_residual_{name}")(model, data, state_ref))
            for name in RESIDUAL_TERMS
        )

    def _residual_joint_vel(
        self, model: mujoco.MjModel, data: mujoco.MjData, state_ref: Dict[str, Any]
    ) -> npt.NDArray[np.float64]:
        """Joint-rate regularization on the humanoid's actuated joints.

        The humanoid root and every board degree of freedom are excluded.

        Args:
            model (mujoco.MjModel): The model, providing the velocity dimension.
            data (mujoco.MjData): The state to evaluate.
            state_ref (Dict[str, Any]): The synthesized reference, not used here.

        Returns:
            npt.NDArray[np.float64]: Joint velocities, one per humanoid joint.
        """
        start = self.cfg.residual.humanoid_qvel_start
        num_joints = model.nv - self.cfg.residual.non_humanoid_dofs
        return np.array(data.qvel[start : start + num_joints])

    def _residual_control(
        self, model: mujoco.MjModel, data: mujoco.MjData, state_ref: Dict[str, Any]
    ) -> npt.NDArray[np.float64]:
        """Control regularization: the raw actuator commands."""
        return np.array(data.ctrl)

    def _residual_tracking(
        self, model: mujoco.MjModel, data: mujoco.MjData, state_ref: Dict[str, Any]
    ) -> npt.NDArray[np.float64]:
        """Pose and velocity tracking of the board-anchored reference markers.

        Args:
            model (mujoco.MjModel): The model.
            data (mujoco.MjData): The state to evaluate; tracking sensors are read
                from `sensordata`.
            state_ref (Dict[str, Any]): The synthesized reference, providing
                `marker_pos` and the keyframe `marker_vel`.

        Returns:
            npt.NDArray[np.float64]: Mean offset (3), centroid-relative position
            errors and velocity errors of the tracked subset (3 each).
        """
        handles = self.handles
        sensor_pos = np.array(
            [read_sensor(data, handles.pos_sensors[name]) for name in handles.body_names]
        ).reshape(-1, 3)
        sensor_vel = np.array(
            [
                read_sensor(data, handles.linvel_sensors[name])
                for name in handles.track_body_names
            ]
        ).reshape(-1, 3)
        return get_tracking_residual(
            state_ref["marker_pos"][self.body_marker_ids],
            sensor_pos,
            state_ref["marker_vel"][self.track_marker_ids],
            sensor_vel,
            self.track_rows,
        )

    def _residual_foot_pos(
        self, model: mujoco.MjModel, data: mujoco.MjData, state_ref: Dict[str, Any]
    ) -> npt.NDArray[np.float64]:
        """Front foot to front plate and rear foot to tail, 3 each."""
        sensors = self.handles.foot_target_sensors
        return get_foot_position_residual(
            [read_sensor(data, foot) for foot, _ in sensors],
            [read_sensor(data, target) for _, target in sensors],
        )

    def _residual_heading(
        self, model: mujoco.MjModel, data: mujoco.MjData, state_ref: Dict[str, Any]
    ) -> npt.NDArray[np.float64]:
        """Board heading against the direction from the board to the goal."""
        handles = self.handles
        return get_heading_residual(
            data.xpos[handles.anchor_body_id],
            data.xmat[handles.anchor_body_id],
            data.mocap_pos[handles.goal_mocap_id],
        )

    def _residual_board_vel(
        self, model: mujoco.MjModel, data: mujoco.MjData, state_ref: Dict[str, Any]
    ) -> npt.NDArray[np.float64]:
        """Board velocity against the `Velocity` parameter.

        Args:
            model (mujoco.MjModel): The model.
            data (mujoco.MjData): The state to evaluate.
            state_ref (Dict[str, Any]): The synthesized reference, not used here.

        Returns:
            npt.NDArray[np.float64]: Longitudinal and lateral errors in the board
            frame and the global vertical error.
        """
        handles = self.handles
        return get_board_velocity_residual(
            self.params.velocity,
            read_sensor(data, handles.board_linvel_sensor),
            data.xmat[handles.anchor_body_id],
            self.cfg.residual.velocity_tolerance,
        )

    def _residual_foot_force(
        self, model: mujoco.MjModel, data: mujoco.MjData, state_ref: Dict[str, Any]
    ) -> npt.NDArray[np.float64]:
        """Ground force shaping of the pushing foot.

        The term is only active while the reference plants the pushing foot,
        which is read from the reference synthesized for this same state.

        Args:
            model (mujoco.MjModel): The model, needed to resolve contact forces.
            data (mujoco.MjData): The state holding the active contacts.
            state_ref (Dict[str, Any]): The synthesized reference markers.

        Returns:
            npt.NDArray[np.float64]: 1-vector in [0, 1).
        """
        handles = self.handles
        residual_cfg = self.cfg.residual
        contact_force = get_contact_force(
            model, data, handles.contact_geom_ids, handles.floor_geom_id
        )
        return get_foot_force_residual(
            contact_force,
            state_ref["marker_pos"][handles.lead_marker_id, 2],
            residual_cfg.stance_height,
            residual_cfg.contact_force_center,
            residual_cfg.contact_force_slope,
        )

    def _residual_com_vel(
        self, model: mujoco.MjModel, data: mujoco.MjData, state_ref: Dict[str, Any]
    ) -> npt.NDArray[np.float64]:
        """Board velocity minus humanoid subtree velocity in the ground plane."""
        handles = self.handles
        return get_com_velocity_residual(
            read_sensor(data, handles.board_linvel_sensor),
            read_sensor(data, handles.com_linvel_sensor),
        )


class PushingTask(Task, task_name="pushing"):
    """Humanoid pushing a skateboard toward a relocating goal."""

    def __init__(
        self,
        cfg: Optional[TaskConfig] = None,
        rng: Optional[RandomSource] = None,
    ):
        """Initializes the pushing task.

        Args:
            cfg (TaskConfig, optional): Task configuration. Defaults to the
                built-in defaults.
            rng (RandomSource, optional): Source of goal side choices. Defaults
                to a generator built from the goal configuration.
        """
        super().__init__("pushing", cfg if cfg is not None else TaskConfig())

        goal_cfg = self.cfg.goal
        if rng is None:
            if goal_cfg.reseed_every_call:
                rng = FreshRandomSource()
            else:
                rng = NumpyRandomSource(goal_cfg.seed)

        self.goal_relocator = GoalRelocator(
            rng,
            goal_cfg.switch_threshold,
            goal_cfg.forward_distance,
            goal_cfg.side_distance,
        )

        self.handles: Optional[PushingHandles] = None
        self.library: Optional[KeyframeLibrary] = None
        self.reference: Optional[PushingReference] = None
        self.parameters: Dict[str, float] = {}

        # -1 forces a reseed on the first transition.
        self.current_mode = -1
        self.reference_time = 0.0

    @property
    def display_name(self) -> str:
        return "Humanoid Skateboard Push"

    def set_parameter(self, name: str, value: float):
        """Overrides a task parameter, e.g. from a planner UI.

        Raises:
            ConfigurationError: If the model does not declare `name`.
        """
        with self._lock:
            if name not in self.parameters:
                raise ConfigurationError(f"parameter '{name}' not found")
            self.parameters[name] = float(value)

    def reset_locked(self, model: mujoco.MjModel):
        """Resolves the scene handles, keyframe library and parameters of `model`.

        Raises:
            ConfigurationError: If the scene lacks an element the task needs.
        """
        motion_cfg = self.cfg.motion

        self.handles = PushingHandles.from_model(model, self.cfg)
        self.library = KeyframeLibrary.from_model(
            model,
            motion_cfg.motion_names,
            motion_cfg.motion_lengths,
            motion_cfg.fps,
            self.handles.goal_mocap_id,
        )
        self.reference = PushingReference(self.library, self.cfg, self.handles)
        self.parameters = get_residual_parameters(model)
        # Validate eagerly so a missing parameter fails at load time.
        PushingParams.from_dict(self.parameters)

        self.current_mode = -1
        self.reference_time = 0.0

    def _check_ready(self):
        if self.handles is None or self.reference is None:
            raise ConfigurationError(f"{self.header_name} task used before reset")

    def transition_locked(self, model: mujoco.MjModel, data: mujoco.MjData):
        """Advances the task state before a physics step.

        Reseeds `qpos` and `qvel` from the start of the requested clip on a mode
        change or at time zero, writes the synthesized reference into the marker
        mocaps, then moves the goal once the board has reached it.

        Args:
            model (mujoco.MjModel): The model.
            data (mujoco.MjData): The canonical state, modified in place.

        Raises:
            ConfigurationError: If the task has not been reset or the mode
                does not name a clip.
        """
        self._check_ready()
        handles = self.handles

        if self.current_mode != self.mode or data.time == 0.0:
            qpos, qvel = self.library.get_init_state(self.mode)
            self.current_mode = self.mode
            self.reference_time = data.time
            data.qpos[:] = qpos
            data.qvel[:] = qvel
            # Board pose must reflect the reseeded configuration.
            mujoco.mj_kinematics(model, data)
            log(
                f"Mode {self.mode} ({self.library.get_clip(self.mode).name}) "
                f"started at t={data.time:.3f}",
                header=self.header_name,
            )

        state_ref = self.residual_fn_locked().get_state_ref(model, data)
        data.mocap_pos[: handles.num_markers] = state_ref["marker_pos"]

        new_goal, relocated = self.goal_relocator.step(
            data.mocap_pos[handles.goal_mocap_id],
            data.xpos[handles.anchor_body_id],
            data.xmat[handles.anchor_body_id],
        )
        if relocated:
            data.mocap_pos[handles.goal_mocap_id] = new_goal
            log(
                f"Goal reached, moved to {np.round(new_goal, 3).tolist()}",
                header=self.header_name,
            )

    def residual_fn_locked(self) -> PushingResidual:
        """Snapshots mode, reference time and parameters for lock-free evaluation."""
        self._check_ready()
        return PushingResidual(
            self.cfg,
            self.handles,
            self.reference,
            PushingParams.from_dict(self.parameters),
            PlaybackCursor(max(self.current_mode, 0), self.reference_time),
        )
