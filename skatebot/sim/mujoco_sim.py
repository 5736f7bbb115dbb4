import copy
import os
from collections import OrderedDict
from typing import Dict, List, Optional

import mujoco
import numpy as np
import numpy.typing as npt

from skatebot.tasks.base_task import Task
from skatebot.utils.misc_utils import log


def resolve_xml_path(xml_path: str) -> str:
    """Returns `xml_path` as is if it exists, otherwise relative to the install root."""
    if os.path.isabs(xml_path) or os.path.exists(xml_path):
        return xml_path

    package_root = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
    return os.path.join(package_root, xml_path)


class MuJoCoSim:
    """MuJoCo stepping loop that hosts a planner task.

    The host owns the canonical `MjData`. Each accepted step first runs the
    task transition (which may reseed the state, move the reference markers
    and relocate the goal), then applies the control and integrates. Planner
    rollouts run on shallow clones so the canonical state is never disturbed.
    """

    def __init__(self, task: Task, xml_path: str = "", n_frames: int = 1):
        """Initialize the simulation around a task.

        Args:
            task: The task whose transition runs once per step.
            xml_path: Path to the MuJoCo XML scene. If empty, uses the task's
                configured scene. Defaults to "".
            n_frames: Physics steps per control step. Defaults to 1.
        """
        self.task = task
        self.n_frames = n_frames

        if len(xml_path) == 0:
            xml_path = task.xml_path

        self.xml_path = resolve_xml_path(xml_path)
        self.model = mujoco.MjModel.from_xml_path(self.xml_path)
        self.data = mujoco.MjData(self.model)
        self.dt = float(self.model.opt.timestep)
        self.control_dt = n_frames * self.dt

        log(
            f"Loaded {os.path.basename(self.xml_path)} for {task.display_name}: "
            f"nq={self.model.nq} nv={self.model.nv} nu={self.model.nu}",
            header="MuJoCo",
        )

        self.task.reset(self.model)
        mujoco.mj_forward(self.model, self.data)

    def set_mode(self, mode: int):
        """Selects the motion clip; the next step reseeds the state."""
        self.task.mode = mode

    def forward(self):
        """Recomputes derived quantities (kinematics, contacts, sensors)."""
        mujoco.mj_forward(self.model, self.data)

    def step(self, ctrl: Optional[npt.ArrayLike] = None):
        """Runs the task transition, applies `ctrl` and integrates `n_frames` steps."""
        self.task.transition(self.model, self.data)
        if ctrl is not None:
            self.data.ctrl[:] = ctrl

        for _ in range(self.n_frames):
            mujoco.mj_step(self.model, self.data)

    def get_residual(self, data: Optional[mujoco.MjData] = None) -> npt.NDArray:
        """Evaluates the task residual on `data` (the canonical state by default)."""
        if data is None:
            data = self.data

        return self.task.residual(self.model, data)

    def get_residual_blocks(
        self, data: Optional[mujoco.MjData] = None
    ) -> "OrderedDict[str, npt.NDArray[np.float64]]":
        """Evaluates the named residual blocks on `data`."""
        if data is None:
            data = self.data

        return self.task.get_residual_fn().residual_blocks(self.model, data)

    def clone_data(self) -> mujoco.MjData:
        """Returns an independent copy of the canonical data."""
        return copy.copy(self.data)

    def rollout(self, ctrl_traj: npt.ArrayLike) -> Dict[str, npt.NDArray]:
        """Rolls a control sequence forward on a clone of the canonical data.

        The residual function is snapshotted once, so the whole rollout sees a
        single task state, as a planner thread would.

        Args:
            ctrl_traj: Controls, shape (horizon, nu).

        Returns:
            Dict[str, npt.NDArray]: `time` (horizon,), `qpos` (horizon, nq) and
            `residual` (horizon, residual_dim) after each control step.
        """
        residual_fn = self.task.get_residual_fn()
        data = self.clone_data()

        time_list: List[float] = []
        qpos_list: List[npt.NDArray] = []
        residual_list: List[npt.NDArray] = []
        for ctrl in np.atleast_2d(np.asarray(ctrl_traj, dtype=np.float64)):
            data.ctrl[:] = ctrl
            for _ in range(self.n_frames):
                mujoco.mj_step(self.model, data)

            mujoco.mj_forward(self.model, data)
            time_list.append(float(data.time))
            qpos_list.append(data.qpos.copy())
            residual_list.append(residual_fn.residual(self.model, data))

        return {
            "time": np.array(time_list),
            "qpos": np.array(qpos_list),
            "residual": np.array(residual_list),
        }

    def close(self):
        log("Simulation closed", header="MuJoCo")
