import os

import mujoco
import pytest

from skatebot.algorithms.goal_relocation import FixedRandomSource
from skatebot.tasks.pushing_task import PushingTask
from skatebot.tasks.task_config import TaskConfig

XML_PATH = os.path.join(
    os.path.dirname(os.path.dirname(__file__)),
    "skatebot",
    "descriptions",
    "pushing-task.xml",
)


def load_xml_text() -> str:
    with open(XML_PATH, "r") as f:
        return f.read()


def load_model_from_text(xml_text: str) -> mujoco.MjModel:
    return mujoco.MjModel.from_xml_string(xml_text)


@pytest.fixture
def xml_text():
    return load_xml_text()


@pytest.fixture
def model():
    return mujoco.MjModel.from_xml_path(XML_PATH)


@pytest.fixture
def data(model):
    data = mujoco.MjData(model)
    mujoco.mj_forward(model, data)
    return data


@pytest.fixture
def task(model):
    task = PushingTask(TaskConfig(), rng=FixedRandomSource([True]))
    task.reset(model)
    return task
