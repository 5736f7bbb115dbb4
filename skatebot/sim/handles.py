"""One-time resolution of model names into integer handles.

Every body, mocap marker, sensor and geom the pushing task touches is looked
up once when a model is loaded. Per-step code then only indexes arrays.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

import mujoco
import numpy as np
import numpy.typing as npt

from skatebot.sim import ConfigurationError
from skatebot.sim.mujoco_utils import (
    SensorSlice,
    get_declared_residual_dim,
    get_mocap_id,
    get_sensor_slice,
    name2id,
)
from skatebot.tasks.task_config import TaskConfig
from skatebot.utils.misc_utils import log


@dataclass(frozen=True)
class PushingHandles:
    """Integer handles for everything the pushing task reads or writes.

    Attributes:
        anchor_body_id: Body id of the board (the moving anchor).
        goal_mocap_id: Mocap index of the goal marker; always the last one.
        num_markers: Number of reference markers (all mocap bodies but the goal).
        marker_ids: Marker index per tracked body name.
        pos_sensors: Position sensor per tracked body name.
        linvel_sensors: Linear velocity sensor per body in the tracked subset.
        body_names: Bodies averaged for the global offset term.
        track_body_names: Bodies with per-body position and velocity terms.
        lead_marker_id: Marker driven by the gait signal.
        trail_marker_id: Marker kept a fixed gap behind the lead marker.
        sway_marker_ids: Markers receiving the upper-body sway overlay.
        foot_target_sensors: (foot sensor, board target sensor) pairs.
        board_linvel_sensor: Global linear velocity of the board.
        com_linvel_sensor: Linear velocity of the humanoid subtree.
        contact_geom_ids: Foot geoms whose ground force is shaped.
        floor_geom_id: The ground geom.
        residual_dim: Residual length declared by the model's user sensors.
    """

    anchor_body_id: int
    goal_mocap_id: int
    num_markers: int
    marker_ids: Dict[str, int]
    pos_sensors: Dict[str, SensorSlice]
    linvel_sensors: Dict[str, SensorSlice]
    body_names: Tuple[str, ...]
    track_body_names: Tuple[str, ...]
    lead_marker_id: int
    trail_marker_id: int
    sway_marker_ids: Tuple[int, ...]
    foot_target_sensors: Tuple[Tuple[SensorSlice, SensorSlice], ...]
    board_linvel_sensor: SensorSlice
    com_linvel_sensor: SensorSlice
    contact_geom_ids: Tuple[int, ...]
    floor_geom_id: int
    residual_dim: int

    @classmethod
    def from_model(cls, model: mujoco.MjModel, cfg: TaskConfig) -> "PushingHandles":
        """Resolves all handles for `model`.

        Args:
            model (mujoco.MjModel): The loaded scene.
            cfg (TaskConfig): Names and layout conventions.

        Returns:
            PushingHandles: The resolved handle table.

        Raises:
            ConfigurationError: If a required name is missing, the goal is not
                the last mocap body, or a marker name does not refer to a
                mocap body.
        """
        model_cfg = cfg.model
        synthesis_cfg = cfg.synthesis
        residual_cfg = cfg.residual

        anchor_body_id = name2id(
            model, mujoco.mjtObj.mjOBJ_XBODY, model_cfg.anchor_body_name
        )
        goal_mocap_id = get_mocap_id(model, model_cfg.goal_body_name)
        if goal_mocap_id != model.nmocap - 1:
            raise ConfigurationError(
                f"mocap '{model_cfg.goal_body_name}' must be the last mocap body, "
                f"got index {goal_mocap_id} of {model.nmocap}"
            )

        def marker_id(body_name: str) -> int:
            return get_mocap_id(model, model_cfg.marker_name_format.format(body_name))

        marker_names: List[str] = list(
            dict.fromkeys(
                list(model_cfg.body_names)
                + list(model_cfg.track_body_names)
                + list(synthesis_cfg.sway_body_names)
                + [synthesis_cfg.lead_foot_name, synthesis_cfg.trail_foot_name]
            )
        )
        marker_ids = {name: marker_id(name) for name in marker_names}

        pos_sensors = {
            name: get_sensor_slice(model, model_cfg.pos_sensor_format.format(name))
            for name in model_cfg.body_names
        }
        linvel_sensors = {
            name: get_sensor_slice(model, model_cfg.linvel_sensor_format.format(name))
            for name in model_cfg.track_body_names
        }
        for name in model_cfg.track_body_names:
            if name not in pos_sensors:
                pos_sensors[name] = get_sensor_slice(
                    model, model_cfg.pos_sensor_format.format(name)
                )

        if len(synthesis_cfg.sway_scale_y) != len(synthesis_cfg.sway_body_names) or len(
            synthesis_cfg.sway_scale_z
        ) != len(synthesis_cfg.sway_body_names):
            raise ConfigurationError("sway scale tables must match sway body names")

        foot_target_sensors = tuple(
            (get_sensor_slice(model, foot), get_sensor_slice(model, target))
            for foot, target in residual_cfg.foot_target_sensor_pairs
        )

        handles = cls(
            anchor_body_id=anchor_body_id,
            goal_mocap_id=goal_mocap_id,
            num_markers=model.nmocap - 1,
            marker_ids=marker_ids,
            pos_sensors=pos_sensors,
            linvel_sensors=linvel_sensors,
            body_names=tuple(model_cfg.body_names),
            track_body_names=tuple(model_cfg.track_body_names),
            lead_marker_id=marker_ids[synthesis_cfg.lead_foot_name],
            trail_marker_id=marker_ids[synthesis_cfg.trail_foot_name],
            sway_marker_ids=tuple(
                marker_ids[name] for name in synthesis_cfg.sway_body_names
            ),
            foot_target_sensors=foot_target_sensors,
            board_linvel_sensor=get_sensor_slice(model, residual_cfg.board_linvel_sensor),
            com_linvel_sensor=get_sensor_slice(model, residual_cfg.com_linvel_sensor),
            contact_geom_ids=tuple(
                name2id(model, mujoco.mjtObj.mjOBJ_GEOM, name)
                for name in residual_cfg.contact_foot_geom_names
            ),
            floor_geom_id=name2id(
                model, mujoco.mjtObj.mjOBJ_GEOM, residual_cfg.floor_geom_name
            ),
            residual_dim=get_declared_residual_dim(model),
        )

        log(
            f"Resolved {handles.num_markers} markers, "
            f"{len(pos_sensors) + len(linvel_sensors)} tracking sensors, "
            f"residual dim {handles.residual_dim}",
            header="Model",
        )
        return handles

    def get_body_marker_indices(self, body_names: Tuple[str, ...]) -> npt.NDArray:
        """Returns the marker indices of `body_names` as an integer array."""
        return np.array([self.marker_ids[name] for name in body_names], dtype=np.int64)
