"""Keyframe motion library and abstract motion reference.

Indexes a flat table of captured keyframes by motion clip, maps elapsed time to
a blended pair of keyframes, and defines the interface shared by reference
generators.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

import mujoco
import numpy as np
import numpy.typing as npt

from skatebot.sim import ConfigurationError
from skatebot.utils.math_utils import compute_interpolation_values
from skatebot.utils.misc_utils import log


@dataclass(frozen=True)
class MotionClip:
    """A contiguous, half-open range `[start_index, start_index + length)` of keyframes."""

    motion_id: int
    name: str
    start_index: int
    length: int

    @property
    def last_index(self) -> int:
        return self.start_index + self.length - 1


@dataclass(frozen=True)
class PlaybackCursor:
    """Position of playback inside a clip.

    Attributes:
        motion_id: Clip being played.
        reference_time: Simulation time at which the clip started.
    """

    motion_id: int
    reference_time: float

    def get_elapsed(self, time_curr: float) -> float:
        return time_curr - self.reference_time


class KeyframeLibrary:
    """Captured keyframes (configuration, velocity, marker positions) grouped into clips."""

    def __init__(
        self,
        key_qpos: npt.ArrayLike,
        key_qvel: npt.ArrayLike,
        key_marker_pos: npt.ArrayLike,
        motion_names: Sequence[str],
        motion_lengths: Sequence[int],
        fps: float = 30.0,
    ):
        """Builds the clip index over the keyframe tables.

        Keyframes past the last clip are kept in the table but never played.

        Args:
            key_qpos (npt.ArrayLike): Configurations, shape (num_keys, nq).
            key_qvel (npt.ArrayLike): Velocities, shape (num_keys, nv).
            key_marker_pos (npt.ArrayLike): Marker positions without the goal,
                shape (num_keys, num_markers, 3).
            motion_names (Sequence[str]): Clip names in table order.
            motion_lengths (Sequence[int]): Number of keyframes per clip.
            fps (float, optional): Playback rate in frames per simulated second.
                Defaults to 30.0.

        Raises:
            ConfigurationError: If the clip layout does not fit the table.
        """
        self.key_qpos = np.asarray(key_qpos, dtype=np.float64)
        self.key_qvel = np.asarray(key_qvel, dtype=np.float64)
        self.key_marker_pos = np.asarray(key_marker_pos, dtype=np.float64)
        self.fps = fps

        if len(motion_names) != len(motion_lengths):
            raise ConfigurationError("motion_names and motion_lengths differ in length")
        if any(length < 1 for length in motion_lengths):
            raise ConfigurationError(f"motion lengths must be positive: {motion_lengths}")

        num_keys = self.key_marker_pos.shape[0]
        total_length = int(sum(motion_lengths))
        if total_length > num_keys or total_length > self.key_qpos.shape[0]:
            raise ConfigurationError(
                f"motion clips need {total_length} keyframes, model has {num_keys}"
            )
        if total_length < num_keys:
            log(
                f"{num_keys - total_length} trailing keyframe(s) not covered by any clip",
                header="Motion",
                level="warning",
            )

        self.clips: List[MotionClip] = []
        start = 0
        for motion_id, (name, length) in enumerate(zip(motion_names, motion_lengths)):
            self.clips.append(MotionClip(motion_id, name, start, int(length)))
            start += int(length)

    @classmethod
    def from_model(
        cls,
        model: mujoco.MjModel,
        motion_names: Sequence[str],
        motion_lengths: Sequence[int],
        fps: float = 30.0,
        goal_mocap_id: int = -1,
    ) -> "KeyframeLibrary":
        """Reads the keyframe tables of a MuJoCo model.

        Args:
            model (mujoco.MjModel): The loaded scene.
            motion_names (Sequence[str]): Clip names in table order.
            motion_lengths (Sequence[int]): Number of keyframes per clip.
            fps (float, optional): Playback rate. Defaults to 30.0.
            goal_mocap_id (int, optional): Mocap index excluded from the marker
                table. Defaults to -1 (the last mocap body).

        Returns:
            KeyframeLibrary: The library.
        """
        key_mpos = np.asarray(model.key_mpos, dtype=np.float64).reshape(
            model.nkey, model.nmocap, 3
        )
        key_marker_pos = np.delete(key_mpos, goal_mocap_id % model.nmocap, axis=1)
        return cls(
            np.asarray(model.key_qpos).reshape(model.nkey, model.nq),
            np.asarray(model.key_qvel).reshape(model.nkey, model.nv),
            key_marker_pos,
            motion_names,
            motion_lengths,
            fps,
        )

    @property
    def num_markers(self) -> int:
        return self.key_marker_pos.shape[1]

    def get_clip(self, motion_id: int) -> MotionClip:
        """Returns the clip with id `motion_id`.

        Raises:
            ConfigurationError: If the id is out of range.
        """
        if motion_id < 0 or motion_id >= len(self.clips):
            raise ConfigurationError(
                f"unknown motion {motion_id}, library has {len(self.clips)} clips"
            )
        return self.clips[motion_id]

    def get_frame_index(self, motion_id: int, elapsed: float) -> float:
        """Returns the fractional keyframe index reached after `elapsed` seconds."""
        return elapsed * self.fps + self.get_clip(motion_id).start_index

    def get_interp(self, motion_id: int, elapsed: float) -> Tuple[int, int, float, float]:
        """Returns `(index_0, index_1, weight_0, weight_1)` for a clip at `elapsed`.

        Playback holds the final keyframe once the clip has run out.
        """
        clip = self.get_clip(motion_id)
        return compute_interpolation_values(
            self.get_frame_index(motion_id, elapsed), clip.last_index
        )

    def get_marker_pos(
        self, index_0: int, index_1: int, weight_0: float, weight_1: float
    ) -> npt.NDArray[np.float64]:
        """Blends the marker positions of two keyframes, shape (num_markers, 3)."""
        return (
            weight_0 * self.key_marker_pos[index_0]
            + weight_1 * self.key_marker_pos[index_1]
        )

    def get_marker_vel(self, index_0: int, index_1: int) -> npt.NDArray[np.float64]:
        """Finite-difference marker velocity between two consecutive keyframes."""
        return (self.key_marker_pos[index_1] - self.key_marker_pos[index_0]) * self.fps

    def get_init_state(
        self, motion_id: int
    ) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Returns copies of the configuration and velocity at a clip's first keyframe."""
        start = self.get_clip(motion_id).start_index
        return self.key_qpos[start].copy(), self.key_qvel[start].copy()


class MotionReference(ABC):
    """Abstract class for generating reference motions from a keyframe library."""

    def __init__(self, name: str, library: KeyframeLibrary):
        """Initializes the reference generator.

        Args:
            name (str): The name of the reference.
            library (KeyframeLibrary): Keyframes the reference is built from.
        """
        self.name = name
        self.library = library

    @abstractmethod
    def get_state_ref(
        self, time_curr: float, cursor: PlaybackCursor, **kwargs: Any
    ) -> Dict[str, Any]:
        pass
