import math

import numpy as np
import pytest

from skatebot.reference.motion_ref import KeyframeLibrary, PlaybackCursor
from skatebot.reference.pushing_ref import PushingParams, PushingReference
from skatebot.sim import ConfigurationError
from skatebot.sim.handles import PushingHandles
from skatebot.tasks.task_config import TaskConfig

# Board turned a quarter turn, so the synthesized pose is not rotated.
UNROTATED_MAT = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])


@pytest.fixture
def cfg():
    return TaskConfig()


@pytest.fixture
def handles(model, cfg):
    return PushingHandles.from_model(model, cfg)


@pytest.fixture
def reference(model, cfg, handles):
    library = KeyframeLibrary.from_model(model, ["pushing"], [1], 30.0, handles.goal_mocap_id)
    return PushingReference(library, cfg, handles)


@pytest.fixture
def raw(reference):
    return reference.library.key_marker_pos[0]


def test_params_from_dict_requires_every_name():
    params = PushingParams.from_dict(
        {
            "Amplitude_z": 1.0,
            "Amplitude_y": 2.0,
            "Frequency_z": 3.0,
            "Frequency_y": 4.0,
            "Phase_z": 5.0,
            "Phase_y": 6.0,
            "Offset_z": 7.0,
            "Offset_y": 8.0,
            "Tilt ratio": 9.0,
            "Velocity": 10.0,
        }
    )
    assert params.tilt_ratio == 9.0
    assert params.velocity == 10.0

    with pytest.raises(ConfigurationError):
        PushingParams.from_dict({"Velocity": 1.0})


def test_tilt_zero_when_goal_ahead(reference):
    heading, tilt = reference.get_tilt_angle(
        [0.0, 0.0, 0.1], np.eye(3), [10.0, 0.0, 0.0], 1.0
    )
    assert heading == pytest.approx(-math.pi / 2)
    assert tilt == pytest.approx(0.0)


def test_tilt_sign_follows_goal_side(reference):
    _, tilt_left = reference.get_tilt_angle([0.0, 0.0, 0.0], np.eye(3), [0.0, 10.0, 0.0], 1.0)
    _, tilt_right = reference.get_tilt_angle([0.0, 0.0, 0.0], np.eye(3), [0.0, -10.0, 0.0], 1.0)
    assert tilt_left == pytest.approx(math.pi / 6)
    assert tilt_right == pytest.approx(-math.pi / 6)


def test_tilt_error_is_clamped(model):
    cfg = TaskConfig()
    cfg.synthesis.heading_error_divisor = 1.0
    handles = PushingHandles.from_model(model, cfg)
    library = KeyframeLibrary.from_model(model, ["pushing"], [1], 30.0, handles.goal_mocap_id)
    reference = PushingReference(library, cfg, handles)

    _, tilt = reference.get_tilt_angle([0.0, 0.0, 0.0], np.eye(3), [0.0, 10.0, 0.0], 2.0)
    assert tilt == pytest.approx(0.5 * math.pi / 2 * 2.0)


def test_synthesis_recentres_on_board(reference, raw, handles):
    anchor_pos = np.array([3.0, -1.0, 0.1])
    marker_pos = reference.synthesize(
        raw, 0.0, anchor_pos, UNROTATED_MAT, [3.0, 10.0, 0.0], PushingParams()
    )

    expected = raw + anchor_pos
    expected[:, :2] -= np.mean(raw[:, :2], axis=0)
    expected[:, 0] -= 0.1
    expected[:, 2] -= 0.1

    knee = handles.marker_ids["rknee"]
    np.testing.assert_allclose(marker_pos[knee], expected[knee], atol=1e-12)


def test_synthesis_gait_on_pushing_foot(reference, raw, handles):
    params = PushingParams(
        amplitude_z=0.1, frequency_z=1.0, phase_z=math.pi / 2, offset_z=0.02, offset_y=0.05
    )
    marker_pos = reference.synthesize(
        raw, 0.0, [0.0, 0.0, 0.1], UNROTATED_MAT, [0.0, 10.0, 0.0], params
    )

    lead = handles.lead_marker_id
    trail = handles.trail_marker_id
    vertical = 0.1 - 0.02
    assert marker_pos[lead, 2] == pytest.approx(vertical + raw[lead, 2])
    assert marker_pos[trail, 2] == pytest.approx(vertical + raw[trail, 2])
    assert marker_pos[trail, 1] == pytest.approx(marker_pos[lead, 1] - 0.2)

    recentred_y = raw[lead, 1] - np.mean(raw[:, 1])
    assert marker_pos[lead, 1] == pytest.approx(recentred_y + 0.05 + raw[lead, 1])


def test_synthesis_sway_offsets_upper_body(reference, raw, handles):
    params = PushingParams(amplitude_y=0.2, frequency_y=1.0, phase_y=math.pi / 2)
    marker_pos = reference.synthesize(
        raw, 0.0, [0.0, 0.0, 0.0], UNROTATED_MAT, [0.0, 10.0, 0.0], params
    )

    head = handles.marker_ids["head"]
    mean_y = np.mean(raw[:, 1])
    expected_y = (raw[head, 1] - mean_y) + (-1.3 * 0.2 * 0.5) + raw[head, 1] + 0.2
    expected_z = raw[head, 2] - 0.1 + 0.15
    assert marker_pos[head, 1] == pytest.approx(expected_y)
    assert marker_pos[head, 2] == pytest.approx(expected_z)


def test_synthesis_follows_board_translation(reference, raw):
    params = PushingParams(amplitude_y=0.1, frequency_y=1.0, tilt_ratio=0.5)
    base = reference.synthesize(raw, 0.3, [0.0, 0.0, 0.1], np.eye(3), [5.0, 3.0, 0.0], params)
    moved = reference.synthesize(raw, 0.3, [2.0, -4.0, 0.1], np.eye(3), [7.0, -1.0, 0.0], params)
    np.testing.assert_allclose(moved[:, :2] - base[:, :2], [[2.0, -4.0]] * len(raw), atol=1e-9)
    np.testing.assert_allclose(moved[:, 2], base[:, 2], atol=1e-9)


def test_state_ref_contents(reference):
    state_ref = reference.get_state_ref(
        0.0,
        PlaybackCursor(0, 0.0),
        anchor_pos=[0.0, 0.0, 0.1],
        anchor_mat=np.eye(3),
        goal_pos=[10.0, 0.0, 0.0],
        params=PushingParams(),
    )
    assert state_ref["interp"] == (0, 0, 1.0, 0.0)
    assert state_ref["marker_pos"].shape == (reference.library.num_markers, 3)
    np.testing.assert_allclose(state_ref["marker_vel"], 0.0)
    np.testing.assert_allclose(
        state_ref["raw_marker_pos"], reference.library.key_marker_pos[0]
    )


def test_marker_ids_come_from_handles(reference, handles):
    assert reference.lead_id == handles.lead_marker_id
    assert reference.trail_id == handles.trail_marker_id
    np.testing.assert_array_equal(reference.sway_ids, handles.sway_marker_ids)
