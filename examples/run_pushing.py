"""Run the skateboard pushing task in MuJoCo and plot its residual blocks.

This script hosts the pushing task in a plain MuJoCo stepping loop with zero
control, so the reference markers, goal relocation and each residual block can
be inspected without a planner attached.
"""

import argparse
import logging
import math
from typing import Dict, List

import matplotlib.pyplot as plt
import numpy as np
from tqdm import tqdm

from skatebot.sim.mujoco_sim import MuJoCoSim
from skatebot.tasks.base_task import get_task_class, get_task_config


def main(sim: MuJoCoSim, num_steps: int, block_names: List[str]) -> None:
    """Step the simulation and plot the norm of the selected residual blocks."""
    ctrl = np.zeros(sim.model.nu)
    block_dict: Dict[str, List[float]] = {name: [] for name in block_names}
    goal_list: List[np.ndarray] = []

    for _ in tqdm(range(num_steps), desc="Running simulation"):
        sim.step(ctrl)
        sim.forward()

        blocks = sim.get_residual_blocks()
        for name in block_names:
            block_dict[name].append(float(np.linalg.norm(blocks[name])))

        goal_list.append(sim.data.mocap_pos[-1].copy())

    sim.close()

    goals = np.unique(np.round(np.array(goal_list), 3), axis=0)
    print(f"Visited {len(goals)} goal(s): {goals.tolist()}")

    num_plots = len(block_names)
    num_cols = 3
    num_rows = math.ceil(num_plots / num_cols)

    fig, axes = plt.subplots(num_rows, num_cols, figsize=(10, 2 * num_rows))
    axes = np.atleast_1d(axes).flatten()

    time_seq = np.arange(1, num_steps + 1) * sim.control_dt
    for i, name in enumerate(block_names):
        ax = axes[i]
        ax.plot(time_seq, block_dict[name])
        ax.set_title(name)
        ax.set_ylabel("Norm")

    # Remove unused axes
    for j in range(num_plots, len(axes)):
        fig.delaxes(axes[j])

    for ax in axes[-num_cols:]:
        ax.set_xlabel("Time (s)")

    plt.tight_layout()
    plt.show()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run a SkateBot task in MuJoCo")
    parser.add_argument(
        "--task",
        type=str,
        default="pushing",
        help="Name of the task to instantiate",
    )
    parser.add_argument(
        "--xml-path",
        type=str,
        default="",
        help="Scene to load; defaults to the task's configured scene",
    )
    parser.add_argument(
        "--steps",
        type=int,
        default=300,
        help="Number of control steps",
    )
    parser.add_argument(
        "--n-frames",
        type=int,
        default=4,
        help="Physics steps per control step",
    )
    parser.add_argument(
        "--mode",
        type=int,
        default=0,
        help="Motion clip to play",
    )
    parser.add_argument(
        "--blocks",
        nargs="+",
        default=["tracking", "foot_pos", "heading", "board_vel", "foot_force", "com_vel"],
        help="Residual blocks to plot",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    cfg = get_task_config(args.task)
    task = get_task_class(args.task)(cfg)
    sim = MuJoCoSim(task, xml_path=args.xml_path, n_frames=args.n_frames)
    sim.set_mode(args.mode)

    main(sim, args.steps, args.blocks)
