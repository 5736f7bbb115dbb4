import mujoco
import numpy as np
import pytest
from conftest import load_model_from_text

from skatebot.algorithms.goal_relocation import FixedRandomSource
from skatebot.sim import ConfigurationError
from skatebot.tasks.base_task import get_task_class
from skatebot.tasks.pushing_task import RESIDUAL_TERMS, PushingResidual, PushingTask
from skatebot.tasks.task_config import TaskConfig

BLOCK_SIZES = {
    "joint_vel": 4,
    "control": 4,
    "tracking": 69,
    "foot_pos": 6,
    "heading": 2,
    "board_vel": 3,
    "foot_force": 1,
    "com_vel": 2,
}

SECOND_KEY = """    <key name="pushing_2"
      qpos="0 0 1.0 1 0 0 0  0 0 0 0  1 0 0.1 1 0 0 0  0 0 0 0 0 0 0"
      qvel="0 0 0 0 0 0  0 0 0 0  0.5 0 0 0 0 0.1  0 0 0 0 0 0 0"/>
  </keyframe>"""


def make_task(model, cfg=None, choices=(True,)):
    task = PushingTask(cfg, rng=FixedRandomSource(choices))
    task.reset(model)
    return task


def start(task, model, data):
    task.transition(model, data)
    mujoco.mj_forward(model, data)


def test_registered_by_name():
    assert get_task_class("pushing") is PushingTask
    with pytest.raises(ValueError):
        get_task_class("kickflip")


def test_display_name(task):
    assert task.display_name == "Humanoid Skateboard Push"
    assert task.header_name == "Pushing"


def test_parameters_read_from_model(task):
    assert len(task.parameters) == 10
    assert "select_Motion" not in task.parameters
    assert task.parameters["Tilt ratio"] == pytest.approx(0.5)
    assert task.parameters["Velocity"] == pytest.approx(1.0)


def test_residual_matches_declared_dimension(task, model, data):
    start(task, model, data)
    residual = task.residual(model, data)
    assert residual.shape == (91,)
    assert np.all(np.isfinite(residual))

    blocks = task.get_residual_fn().residual_blocks(model, data)
    assert list(blocks.keys()) == list(BLOCK_SIZES.keys())
    assert {name: len(block) for name, block in blocks.items()} == BLOCK_SIZES


def test_residual_terms_are_documented():
    for name in RESIDUAL_TERMS:
        method = getattr(PushingResidual, f"_residual_{name}")
        assert method.__doc__
        assert set(method.__annotations__) == {"model", "data", "state_ref", "return"}
    for method in (
        PushingTask.reset_locked,
        PushingTask.transition_locked,
        PushingTask.residual_fn_locked,
    ):
        assert method.__doc__


def test_residual_blocks_at_start(task, model, data):
    data.ctrl[:] = [0.1, -0.2, 0.3, -0.4]
    start(task, model, data)
    blocks = task.get_residual_fn().residual_blocks(model, data)

    np.testing.assert_allclose(blocks["control"], [0.1, -0.2, 0.3, -0.4])
    np.testing.assert_allclose(blocks["joint_vel"], 0.0)
    # Board faces the goal straight ahead.
    np.testing.assert_allclose(blocks["heading"], 0.0, atol=1e-9)
    np.testing.assert_allclose(blocks["board_vel"], [1.0 - 0.03, 0.0, 0.0], atol=1e-9)
    # Pushing foot is planted in the reference but has no ground contact.
    assert 0.99 < blocks["foot_force"][0] < 1.0


def test_transition_reseeds_at_time_zero(task, model, data):
    data.qpos[:] = 0.5
    data.qvel[:] = 3.0
    task.transition(model, data)

    np.testing.assert_allclose(data.qpos, model.key_qpos[0])
    np.testing.assert_allclose(data.qvel, 0.0)
    assert task.current_mode == 0
    assert task.reference_time == 0.0


def test_transition_writes_reference_markers(task, model, data):
    task.transition(model, data)
    state_ref = task.get_residual_fn().get_state_ref(model, data)

    np.testing.assert_allclose(data.mocap_pos[:16], state_ref["marker_pos"])
    np.testing.assert_allclose(data.mocap_pos[16], [10.0, 0.0, 0.0])


def test_transition_keeps_state_within_clip(task, model, data):
    start(task, model, data)
    data.time = 0.5
    data.qpos[0] = 0.25
    task.transition(model, data)

    assert data.qpos[0] == 0.25
    assert task.reference_time == 0.0


def test_mode_change_reseeds_from_clip_start(xml_text):
    model = load_model_from_text(xml_text.replace("  </keyframe>", SECOND_KEY))
    cfg = TaskConfig()
    cfg.motion.motion_names = ["pushing", "pushing_2"]
    cfg.motion.motion_lengths = [1, 1]
    task = make_task(model, cfg)
    data = mujoco.MjData(model)

    start(task, model, data)
    data.time = 0.5
    task.transition(model, data, mode=1)

    assert task.current_mode == 1
    assert task.reference_time == 0.5
    # Second clip starts with the board shifted forward.
    assert data.qpos[11] == pytest.approx(1.0)
    np.testing.assert_allclose(data.qpos, model.key_qpos[1])
    np.testing.assert_allclose(data.qvel, model.key_qvel[1])
    assert data.qvel[10] == pytest.approx(0.5)


def test_unknown_mode_is_fatal(task, model, data):
    start(task, model, data)
    data.time = 0.1
    task.mode = 3
    with pytest.raises(ConfigurationError):
        task.transition(model, data)


def test_goal_relocates_when_reached(task, model, data):
    start(task, model, data)
    data.time = 0.1
    data.qpos[11:14] = [9.8, 0.0, 0.1]
    mujoco.mj_forward(model, data)
    task.transition(model, data)

    np.testing.assert_allclose(data.mocap_pos[16], [17.8, 2.0, 0.0], atol=1e-6)


def test_foot_force_drops_with_ground_contact(task, model, data):
    start(task, model, data)
    free_blocks = task.get_residual_fn().residual_blocks(model, data)

    data.qpos[2] = 0.88
    mujoco.mj_forward(model, data)
    pressed_blocks = task.get_residual_fn().residual_blocks(model, data)

    assert 0.0 <= pressed_blocks["foot_force"][0] < free_blocks["foot_force"][0]


def test_residual_snapshot_ignores_later_parameter_changes(task, model, data):
    start(task, model, data)
    residual_fn = task.get_residual_fn()
    assert isinstance(residual_fn, PushingResidual)

    task.set_parameter("Velocity", 3.0)
    old_blocks = residual_fn.residual_blocks(model, data)
    new_blocks = task.get_residual_fn().residual_blocks(model, data)

    assert old_blocks["board_vel"][0] == pytest.approx(1.0 - 0.03, abs=1e-9)
    assert new_blocks["board_vel"][0] == pytest.approx(3.0 - 0.03, abs=1e-9)


def test_unknown_parameter_is_rejected(task):
    with pytest.raises(ConfigurationError):
        task.set_parameter("Speed", 1.0)


def test_residual_before_reset_is_fatal(model, data):
    task = PushingTask(rng=FixedRandomSource([True]))
    with pytest.raises(ConfigurationError):
        task.residual(model, data)


def test_declared_dimension_mismatch_is_fatal(xml_text):
    model = load_model_from_text(
        xml_text.replace('<user name="COM Vel" dim="2"/>', '<user name="COM Vel" dim="3"/>')
    )
    task = make_task(model)
    data = mujoco.MjData(model)
    start(task, model, data)

    with pytest.raises(ConfigurationError):
        task.residual(model, data)


@pytest.mark.parametrize(
    "old, new",
    [
        ('<framepos name="track-tail" objtype="site" objname="tail"/>', ""),
        (
            '<framelinvel name="tracking_linvel[rhip]" objtype="xbody" objname="rhip"/>',
            "",
        ),
        ('<numeric name="residual_Velocity" data="1.0 0 4"/>', ""),
        ('name="mocap[head]"', 'name="mocap[skull]"'),
        ('name="foot2_left"', 'name="foot2_l"'),
    ],
)
def test_missing_model_element_is_fatal(xml_text, old, new):
    assert old in xml_text
    model = load_model_from_text(xml_text.replace(old, new))
    task = PushingTask(rng=FixedRandomSource([True]))
    with pytest.raises(ConfigurationError):
        task.reset(model)


def test_goal_must_be_last_mocap(xml_text):
    goal = '<body name="goal" mocap="true" pos="10 0 0"><site size="0.1" rgba="0.2 0.9 0.2 0.5"/></body>'
    first_marker = '<body name="mocap[pelvis]" mocap="true"><site/></body>'
    reordered = xml_text.replace(goal, "").replace(first_marker, goal + first_marker)
    model = load_model_from_text(reordered)

    task = PushingTask(rng=FixedRandomSource([True]))
    with pytest.raises(ConfigurationError):
        task.reset(model)
