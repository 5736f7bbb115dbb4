"""Goal relocation for the pushing task.

The goal stays put until the board comes within a switch threshold. It is then
moved ahead of the board along the board's current heading and sideways to a
uniformly chosen side.
"""

from typing import Optional, Protocol, Tuple

import numpy as np
import numpy.typing as npt

from skatebot.utils.math_utils import get_perpendicular, get_planar_heading


class RandomSource(Protocol):
    """Source of the binary side choice."""

    def uniform_bool(self) -> bool: ...


class NumpyRandomSource:
    """Process-wide generator; pass a seed for reproducible runs."""

    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.default_rng(seed)

    def uniform_bool(self) -> bool:
        return bool(self.rng.integers(0, 2))


class FreshRandomSource:
    """Draws every choice from a newly constructed, entropy-seeded generator."""

    def uniform_bool(self) -> bool:
        return bool(np.random.default_rng().integers(0, 2))


class FixedRandomSource:
    """Replays a fixed sequence of choices, cycling when exhausted."""

    def __init__(self, choices=(True,)):
        self.choices = tuple(bool(choice) for choice in choices)
        self.count = 0

    def uniform_bool(self) -> bool:
        choice = self.choices[self.count % len(self.choices)]
        self.count += 1
        return choice


class GoalRelocator:
    """Moves the goal ahead of the board whenever the board reaches it."""

    def __init__(
        self,
        rng: RandomSource,
        switch_threshold: float = 0.5,
        forward_distance: float = 8.0,
        side_distance: float = 2.0,
    ):
        """Initializes the relocator.

        Args:
            rng (RandomSource): Source of the left/right choice.
            switch_threshold (float, optional): Board-to-goal distance that
                triggers a relocation. Defaults to 0.5.
            forward_distance (float, optional): Offset along the board heading.
                Defaults to 8.0.
            side_distance (float, optional): Offset perpendicular to the heading.
                Defaults to 2.0.
        """
        self.rng = rng
        self.switch_threshold = switch_threshold
        self.forward_distance = forward_distance
        self.side_distance = side_distance

    def should_relocate(self, goal_pos: npt.ArrayLike, anchor_pos: npt.ArrayLike) -> bool:
        distance = np.linalg.norm(
            np.asarray(goal_pos, dtype=np.float64) - np.asarray(anchor_pos, dtype=np.float64)
        )
        return bool(distance < self.switch_threshold)

    def get_new_goal(
        self, goal_pos: npt.ArrayLike, anchor_pos: npt.ArrayLike, anchor_mat: npt.ArrayLike
    ) -> npt.NDArray[np.float64]:
        """Returns a goal ahead of and beside the board, keeping the goal height.

        The offsets are taken in the board's heading frame at this instant.
        """
        heading = get_planar_heading(anchor_mat)
        side = get_perpendicular(heading, left=self.rng.uniform_bool())

        new_goal = np.array(goal_pos, dtype=np.float64)
        new_goal[:2] = (
            np.asarray(anchor_pos, dtype=np.float64)[:2]
            + self.forward_distance * heading
            + self.side_distance * side
        )
        return new_goal

    def step(
        self, goal_pos: npt.ArrayLike, anchor_pos: npt.ArrayLike, anchor_mat: npt.ArrayLike
    ) -> Tuple[npt.NDArray[np.float64], bool]:
        """Runs one relocation check.

        Args:
            goal_pos: Current goal position.
            anchor_pos: Board world position.
            anchor_mat: Board orientation (3x3 or flattened).

        Returns:
            Tuple[npt.NDArray[np.float64], bool]: The goal after this step and
            whether it was moved.
        """
        if not self.should_relocate(goal_pos, anchor_pos):
            return np.array(goal_pos, dtype=np.float64), False

        return self.get_new_goal(goal_pos, anchor_pos, anchor_mat), True
