import math

import numpy as np
import pytest

from skatebot.utils.math_utils import (
    compute_interpolation_values,
    get_heading_angle,
    get_local_vec,
    get_perpendicular,
    get_planar_heading,
    logistic,
    normalize,
    rotate_about_anchor,
)


def yaw_mat(yaw):
    c, s = math.cos(yaw), math.sin(yaw)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def test_normalize_degenerate_vector():
    np.testing.assert_allclose(normalize(np.zeros(2)), [1.0, 0.0])
    np.testing.assert_allclose(normalize([3.0, 4.0]), [0.6, 0.8])


def test_planar_heading_from_flat_xmat():
    xmat = yaw_mat(math.pi / 2).ravel()
    np.testing.assert_allclose(get_planar_heading(xmat), [0.0, 1.0], atol=1e-12)
    assert get_heading_angle(xmat) == pytest.approx(math.pi / 2)


def test_local_vec_undoes_rotation():
    local = get_local_vec([0.0, 2.0, 1.0], yaw_mat(math.pi / 2))
    np.testing.assert_allclose(local, [2.0, 0.0, 1.0], atol=1e-12)


def test_perpendicular_sides():
    np.testing.assert_allclose(get_perpendicular([1.0, 0.0], left=True), [0.0, 1.0])
    np.testing.assert_allclose(get_perpendicular([1.0, 0.0], left=False), [0.0, -1.0])


def test_logistic_center_and_limits():
    assert logistic(500.0, 500.0, 80.0) == pytest.approx(0.5)
    assert logistic(1e6, 500.0, 80.0) == pytest.approx(0.0, abs=1e-12)
    assert 0.99 < logistic(0.0, 500.0, 80.0) < 1.0


@pytest.mark.parametrize(
    "index, expected",
    [
        (-2.0, (0, 1, 1.0, 0.0)),
        (0.25, (0, 1, 0.75, 0.25)),
        (3.0, (3, 3, 1.0, 0.0)),
        (7.5, (3, 3, 1.0, 0.0)),
    ],
)
def test_interpolation_values_are_clamped(index, expected):
    index_0, index_1, weight_0, weight_1 = compute_interpolation_values(index, 3)
    assert (index_0, index_1) == expected[:2]
    assert weight_0 == pytest.approx(expected[2])
    assert weight_1 == pytest.approx(expected[3])
    assert weight_0 + weight_1 == pytest.approx(1.0)


def test_rotate_about_anchor_turns_in_plane():
    points = np.array([[2.0, 1.0, 0.7], [1.0, 1.0, 0.2]])
    rotated = rotate_about_anchor(points, [1.0, 1.0], math.pi / 2, 0.0)
    np.testing.assert_allclose(rotated, [[1.0, 2.0, 0.7], [1.0, 1.0, 0.2]], atol=1e-12)


def test_rotate_about_anchor_tilt_banks_height():
    points = np.array([[0.0, 0.0, 1.0]])
    rotated = rotate_about_anchor(points, [0.0, 0.0], 0.0, 0.3)
    # Bank only moves the point within the x-z plane.
    assert rotated[0, 1] == pytest.approx(0.0)
    assert np.linalg.norm(rotated[0]) == pytest.approx(1.0)
    assert rotated[0, 0] == pytest.approx(-math.sin(0.3))
    assert rotated[0, 2] == pytest.approx(math.cos(0.3))
