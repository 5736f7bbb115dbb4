"""Helpers over MuJoCo models and data.

Name resolution with fatal errors, sensor slicing, task parameter and residual
dimension lookups from the model, and contact force accumulation.
"""

from typing import Dict, Iterable, NamedTuple

import mujoco
import numpy as np
import numpy.typing as npt

from skatebot.sim import ConfigurationError
from skatebot.utils.misc_utils import log

PARAMETER_PREFIX = "residual_"
SELECT_PREFIX = "residual_select_"


class SensorSlice(NamedTuple):
    """Address and dimension of a sensor inside `MjData.sensordata`."""

    adr: int
    dim: int


def name2id(model: mujoco.MjModel, obj_type: mujoco.mjtObj, name: str) -> int:
    """Looks up an object id by name.

    Raises:
        ConfigurationError: If no object of `obj_type` is called `name`.
    """
    obj_id = mujoco.mj_name2id(model, obj_type, name)
    if obj_id < 0:
        type_name = obj_type.name.replace("mjOBJ_", "").lower()
        log(f"{type_name} '{name}' not found", header="Model", level="error")
        raise ConfigurationError(f"{type_name} '{name}' not found")

    return obj_id


def get_mocap_id(model: mujoco.MjModel, body_name: str) -> int:
    """Returns the mocap index of a body.

    Raises:
        ConfigurationError: If the body is missing or is not a mocap body.
    """
    body_id = name2id(model, mujoco.mjtObj.mjOBJ_BODY, body_name)
    mocap_id = int(model.body_mocapid[body_id])
    if mocap_id < 0:
        raise ConfigurationError(f"body '{body_name}' is not mocap")

    return mocap_id


def get_sensor_slice(model: mujoco.MjModel, sensor_name: str) -> SensorSlice:
    """Returns where a named sensor's output lives in `sensordata`."""
    sensor_id = name2id(model, mujoco.mjtObj.mjOBJ_SENSOR, sensor_name)
    return SensorSlice(int(model.sensor_adr[sensor_id]), int(model.sensor_dim[sensor_id]))


def read_sensor(data: mujoco.MjData, sensor: SensorSlice) -> npt.NDArray[np.float64]:
    """Returns a copy of a sensor reading."""
    return np.array(data.sensordata[sensor.adr : sensor.adr + sensor.dim])


def get_declared_residual_dim(model: mujoco.MjModel) -> int:
    """Returns the residual length declared by the model's user sensors."""
    user_mask = model.sensor_type == int(mujoco.mjtSensor.mjSENS_USER)
    return int(np.sum(model.sensor_dim[user_mask]))


def get_residual_parameters(model: mujoco.MjModel) -> Dict[str, float]:
    """Reads the tunable task parameters declared as custom numerics.

    Every numeric named `residual_<Name>` contributes `<Name>` with its first
    data element as the default value; `residual_select_*` entries are mode
    selectors, not parameters, and are skipped.

    Args:
        model (mujoco.MjModel): The loaded model.

    Returns:
        Dict[str, float]: Parameter values in declaration order.
    """
    parameters: Dict[str, float] = {}
    for i in range(model.nnumeric):
        name = mujoco.mj_id2name(model, mujoco.mjtObj.mjOBJ_NUMERIC, i)
        if name is None or not name.startswith(PARAMETER_PREFIX):
            continue
        if name.startswith(SELECT_PREFIX):
            continue

        parameters[name[len(PARAMETER_PREFIX) :]] = float(
            model.numeric_data[model.numeric_adr[i]]
        )

    return parameters


def get_contact_force(
    model: mujoco.MjModel,
    data: mujoco.MjData,
    geom_ids: Iterable[int],
    other_geom_id: int,
) -> npt.NDArray[np.float64]:
    """Sums the contact-frame forces between any of `geom_ids` and another geom.

    All active contacts are scanned; a geom with no matching contact simply
    contributes nothing, so an airborne foot yields a zero force.

    Args:
        model (mujoco.MjModel): The model.
        data (mujoco.MjData): The data holding the active contact list.
        geom_ids (Iterable[int]): Geoms whose contacts are accumulated.
        other_geom_id (int): The geom they must touch (e.g. the floor).

    Returns:
        npt.NDArray[np.float64]: Summed [normal, tangent1, tangent2] force.
    """
    geom_ids = set(geom_ids)
    total = np.zeros(3)
    wrench = np.zeros(6)
    for i in range(data.ncon):
        contact = data.contact[i]
        pair = (int(contact.geom1), int(contact.geom2))
        if (pair[0] in geom_ids and pair[1] == other_geom_id) or (
            pair[1] in geom_ids and pair[0] == other_geom_id
        ):
            mujoco.mj_contactForce(model, data, i, wrench)
            total += wrench[:3]

    return total
