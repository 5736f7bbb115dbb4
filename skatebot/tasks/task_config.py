"""Configuration classes for SkateBot tasks.

This module defines gin-configurable dataclasses for the pushing task,
including motion clip layout, model naming conventions, reference pose
synthesis constants, goal relocation geometry and residual shaping.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import gin


@gin.configurable
@dataclass
class TaskConfig:
    """Configuration class for a SkateBot task."""

    @gin.configurable
    @dataclass
    class MotionConfig:
        # Keyframes were captured at this rate (CMU mocap).
        fps: float = 30.0
        motion_names: List[str] = field(default_factory=lambda: ["pushing"])
        motion_lengths: List[int] = field(default_factory=lambda: [1])

    @gin.configurable
    @dataclass
    class ModelConfig:
        xml_path: str = "skatebot/descriptions/pushing-task.xml"
        anchor_body_name: str = "skateboard"
        goal_body_name: str = "goal"
        marker_name_format: str = "mocap[{}]"
        pos_sensor_format: str = "tracking_pos[{}]"
        linvel_sensor_format: str = "tracking_linvel[{}]"
        body_names: List[str] = field(
            default_factory=lambda: [
                "pelvis",
                "head",
                "ltoe",
                "rtoe",
                "lheel",
                "rheel",
                "lknee",
                "rknee",
                "lhand",
                "rhand",
                "lelbow",
                "relbow",
                "lshoulder",
                "rshoulder",
                "lhip",
                "rhip",
            ]
        )
        track_body_names: List[str] = field(
            default_factory=lambda: [
                "pelvis",
                "ltoe",
                "rtoe",
                "lheel",
                "rheel",
                "lhand",
                "rhand",
                "lshoulder",
                "rshoulder",
                "lhip",
                "rhip",
            ]
        )

    @gin.configurable
    @dataclass
    class SynthesisConfig:
        stance_x_bias: float = -0.1
        stance_z_bias: float = -0.1
        lead_foot_name: str = "ltoe"
        trail_foot_name: str = "lheel"
        trail_gap: float = 0.2
        sway_body_names: List[str] = field(
            default_factory=lambda: [
                "pelvis",
                "lhip",
                "rhip",
                "lknee",
                "head",
                "lshoulder",
                "rshoulder",
            ]
        )
        sway_scale_y: List[float] = field(
            default_factory=lambda: [-0.25, -0.5, -0.5, -1.0, 1.3, 1.3, 1.3]
        )
        sway_scale_z: List[float] = field(
            default_factory=lambda: [-0.05, 0.05, 0.05, -0.1, -0.15, -0.15, -0.15]
        )
        sway_y_bias: float = 0.2
        heading_error_divisor: float = 3.0
        heading_error_limit: float = 0.5

    @gin.configurable
    @dataclass
    class GoalConfig:
        switch_threshold: float = 0.5
        forward_distance: float = 8.0
        side_distance: float = 2.0
        # None draws a fresh OS-entropy seed.
        seed: Optional[int] = None
        # Build a new generator for every side choice instead of one per task.
        reseed_every_call: bool = False

    @gin.configurable
    @dataclass
    class ResidualConfig:
        humanoid_qvel_start: int = 6
        # humanoid root (6) + board free joint (6) + board joints (7)
        non_humanoid_dofs: int = 19
        velocity_tolerance: float = 0.03
        contact_force_center: float = 500.0
        contact_force_slope: float = 80.0
        stance_height: float = 0.05
        contact_foot_geom_names: List[str] = field(
            default_factory=lambda: ["foot1_left", "foot2_left"]
        )
        floor_geom_name: str = "floor"
        foot_target_sensor_pairs: List[List[str]] = field(
            default_factory=lambda: [
                ["tracking_pos[rtoe]", "track-front-plate"],
                ["tracking_pos[ltoe]", "track-tail"],
            ]
        )
        board_linvel_sensor: str = "skateboard_framelinvel"
        com_linvel_sensor: str = "torso_subtreelinvel"

    def __init__(self):
        """Initialize all configuration sections with their default values."""
        self.motion = self.MotionConfig()
        self.model = self.ModelConfig()
        self.synthesis = self.SynthesisConfig()
        self.goal = self.GoalConfig()
        self.residual = self.ResidualConfig()
