"""Base classes for SkateBot planner tasks.

This module provides the task registry, gin configuration loading, and the
`Task` / `ResidualFn` split: the residual function is an immutable snapshot
that planner threads evaluate concurrently, while state-mutating calls on the
task itself are serialized by a lock.
"""

import os
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Dict, Optional, Type

import gin
import mujoco
import numpy as np
import numpy.typing as npt

from skatebot.sim import ConfigurationError
from skatebot.tasks.task_config import TaskConfig
from skatebot.utils.misc_utils import log, snake2camel

# Global registry to store task names and their corresponding classes
task_registry: Dict[str, Type["Task"]] = {}


def get_task_config(task: str) -> TaskConfig:
    """Retrieves and parses the configuration for a specified task.

    Args:
        task (str): The name of the task whose gin file is parsed.

    Returns:
        TaskConfig: An instance of TaskConfig initialized with the parsed configuration.

    Raises:
        FileNotFoundError: If the configuration file for the specified task does not exist.
    """
    gin_file_path = os.path.join(os.path.dirname(__file__), task + ".gin")
    if not os.path.exists(gin_file_path):
        raise FileNotFoundError(f"File {gin_file_path} not found.")

    gin.parse_config_file(gin_file_path)
    return TaskConfig()


def get_task_class(task_name: str) -> Type["Task"]:
    """Returns the task class associated with the given task name.

    Raises:
        ValueError: If the task name is not found in the registry.
    """
    if task_name not in task_registry:
        raise ValueError(f"Unknown task: {task_name}")

    return task_registry[task_name]


class ResidualFn(ABC):
    """Read-only residual evaluator built from a task snapshot."""

    def __init__(self, residual_dim: int):
        self.residual_dim = residual_dim

    @abstractmethod
    def residual_blocks(
        self, model: mujoco.MjModel, data: mujoco.MjData
    ) -> "OrderedDict[str, npt.NDArray[np.float64]]":
        pass

    def residual(
        self, model: mujoco.MjModel, data: mujoco.MjData
    ) -> npt.NDArray[np.float64]:
        """Concatenates the residual blocks into the planner's cost vector.

        Raises:
            ConfigurationError: If the length differs from the declared length.
        """
        residual = np.concatenate(list(self.residual_blocks(model, data).values()))
        if residual.shape[0] != self.residual_dim:
            log(
                f"Residual has {residual.shape[0]} entries, model declares "
                f"{self.residual_dim}",
                header="Residual",
                level="error",
            )
            raise ConfigurationError(
                f"mismatch between residual length {residual.shape[0]} "
                f"and declared sensor dimension {self.residual_dim}"
            )

        return residual


class Task(ABC):
    """Base planner task with lock-serialized reset and transition."""

    def __init_subclass__(cls, task_name: Optional[str] = None, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        if task_name is not None:
            task_registry[task_name] = cls

    def __init__(self, name: str, cfg: TaskConfig):
        """Initializes the task.

        Args:
            name (str): The registry name of the task.
            cfg (TaskConfig): Task configuration.
        """
        self.name = name
        self.cfg = cfg
        self.header_name = snake2camel(name)
        self.xml_path = cfg.model.xml_path
        self.mode = 0
        self._lock = threading.Lock()

    @property
    def display_name(self) -> str:
        return self.header_name

    def reset(self, model: mujoco.MjModel):
        """Prepares the task for a (new) model."""
        with self._lock:
            self.reset_locked(model)

    def transition(
        self, model: mujoco.MjModel, data: mujoco.MjData, mode: Optional[int] = None
    ):
        """Advances task state on the canonical data; call once per accepted step.

        Args:
            model (mujoco.MjModel): The model.
            data (mujoco.MjData): The canonical simulation state.
            mode (int, optional): Requested motion mode. Defaults to the current
                `mode` attribute.
        """
        with self._lock:
            if mode is not None:
                self.mode = mode
            self.transition_locked(model, data)

    def get_residual_fn(self) -> ResidualFn:
        """Returns an immutable residual evaluator for the current task state."""
        with self._lock:
            return self.residual_fn_locked()

    def residual(
        self, model: mujoco.MjModel, data: mujoco.MjData
    ) -> npt.NDArray[np.float64]:
        return self.get_residual_fn().residual(model, data)

    def modify_scene(self, model: mujoco.MjModel, data: mujoco.MjData, scene: Any):
        """Hook for adding visual geometry to a scene. Draws nothing."""
        pass

    @abstractmethod
    def reset_locked(self, model: mujoco.MjModel):
        pass

    @abstractmethod
    def transition_locked(self, model: mujoco.MjModel, data: mujoco.MjData):
        pass

    @abstractmethod
    def residual_fn_locked(self) -> ResidualFn:
        pass
