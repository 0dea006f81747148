from __future__ import annotations

import math
from pathlib import Path
from types import SimpleNamespace

import pytest  # type: ignore[import]
import yaml

from armkin.core.drivers import pybullet_driver
from armkin.core.ik import ArmModel, GeometricIKSolver
from armkin.core.ik.chain import chain_from_dict
from armkin.core.ik.transforms import matrix_from_quaternion
from armkin.utils.config_manager import DEFAULT_CONFIG_PATH


def joint(name, parent, child, xyz, axis, lo=-math.pi, hi=math.pi, **extra):
    data = {
        "name": name,
        "type": extra.pop("type", "revolute"),
        "parent": parent,
        "child": child,
        "origin": {"xyz": list(xyz), "rpy": [0.0, 0.0, 0.0]},
        "axis": list(axis),
        "limits": {"min": lo, "max": hi, "velocity": 1.0},
    }
    data.update(extra)
    return data


def arm_chain_dict(shoulder_y=0.0, base_limits=(-3.0, 3.0), shoulder_limits=(-1.5, 1.5),
                   elbow_limits=(-2.5, 2.5), with_fingers=False):
    """Base (z) -> shoulder (y) -> elbow (y) -> wrist (z) arm, 0.3 m upper arm, 0.25 m forearm."""
    joints = [
        joint("base", "world", "mount", (0.0, 0.0, 0.1), (0, 0, 1), *base_limits),
        joint("shoulder", "mount", "upper", (0.0, shoulder_y, 0.05), (0, 1, 0), *shoulder_limits),
        joint("elbow", "upper", "fore", (0.0, 0.0, 0.3), (0, 1, 0), *elbow_limits),
        joint("wrist", "fore", "hand", (0.0, 0.0, 0.25), (0, 0, 1)),
    ]
    tip = "hand"
    if with_fingers:
        joints.append(joint("finger", "hand", "finger", (0, 0, 0), (1, 0, 0), 0.0, 0.02, type="prismatic"))
        joints.append(joint("finger_mirror", "finger", "finger_mirror", (0, 0, 0), (1, 0, 0), -0.02, 0.0,
                            type="prismatic", mimic={"joint": "finger", "factor": -1.0}))
        tip = "finger_mirror"
    return {"base_link": "world", "tip_link": tip, "joints": joints}


def make_solver(**kwargs) -> GeometricIKSolver:
    chain_kwargs = {k: kwargs.pop(k) for k in list(kwargs) if k in
                    ("shoulder_y", "base_limits", "shoulder_limits", "elbow_limits", "with_fingers")}
    chain = chain_from_dict(arm_chain_dict(**chain_kwargs))
    solver = GeometricIKSolver(**kwargs)
    assert solver.initialize(ArmModel("arm", (chain,)), "world", [chain.tip_link])
    return solver


@pytest.fixture
def arm_chain():
    return chain_from_dict(arm_chain_dict())


@pytest.fixture
def solver_factory():
    return make_solver


@pytest.fixture
def chain_factory():
    return lambda **kwargs: chain_from_dict(arm_chain_dict(**kwargs))


@pytest.fixture
def chain_dict_factory():
    return arm_chain_dict


@pytest.fixture
def solver():
    return make_solver()


@pytest.fixture
def finger_solver():
    return make_solver(with_fingers=True)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Writable copy of the packaged default config."""
    path = tmp_path / "config.yml"
    with open(DEFAULT_CONFIG_PATH, "r") as f:
        config = yaml.safe_load(f)
    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
    return path


REVOLUTE, PRISMATIC, FIXED = 0, 1, 4
IDENTITY_QUAT = (0.0, 0.0, 0.0, 1.0)


def joint_info(index, name, joint_type, link, parent, pos, axis=(0.0, 0.0, 0.0), lower=0.0, upper=-1.0,
               velocity=0.0, orn=IDENTITY_QUAT):
    return (
        index, name.encode(), joint_type, -1, -1, 0, 0.0, 0.0,
        lower, upper, 0.0, velocity, link.encode(), axis, pos, orn, parent,
    )


class FakePyBullet:
    """Just enough of the pybullet module for a fixed-base arm."""

    DIRECT = 2
    GUI = 1
    JOINT_REVOLUTE = REVOLUTE
    JOINT_PRISMATIC = PRISMATIC
    JOINT_FIXED = FIXED

    joint_info = staticmethod(joint_info)

    def __init__(self):
        self.joints = [
            joint_info(0, "base", REVOLUTE, "mount", -1, (0.0, 0.0, 0.1), (0, 0, 1), -3.0, 3.0, 1.5),
            joint_info(1, "mount_bracket", FIXED, "bracket", 0, (0.0, 0.0, 0.02)),
            joint_info(2, "shoulder", REVOLUTE, "upper", 1, (0.0, 0.0, 0.03), (0, 1, 0), -1.5, 1.5, 1.0),
            joint_info(3, "elbow", REVOLUTE, "fore", 2, (0.0, 0.0, 0.3), (0, 1, 0)),
            joint_info(4, "wrist", REVOLUTE, "hand", 3, (0.0, 0.0, 0.25), (0, 0, 1), -2.0, 2.0),
            joint_info(5, "tool_mount", FIXED, "tool0", 4, (0.0, 0.0, 0.05)),
            joint_info(6, "finger", PRISMATIC, "finger", 4, (0.0, 0.0, 0.0), (1, 0, 0), 0.0, 0.02),
        ]
        self.states = {}
        self.lines = {}
        self.removed = []
        self.connected = False
        self.load_error = None
        self._next_item = 100

    def connect(self, mode):
        self.connected = True
        return 7

    def disconnect(self, client):
        self.connected = False

    def setAdditionalSearchPath(self, path, physicsClientId=None):
        pass

    def loadURDF(self, path, useFixedBase=False, physicsClientId=None):
        assert useFixedBase
        if self.load_error is not None:
            raise self.load_error
        return 1

    def getMatrixFromQuaternion(self, q):
        return tuple(matrix_from_quaternion(q)[:3, :3].flatten())

    def getEulerFromQuaternion(self, q):
        x, y, z, w = q
        roll = math.atan2(2 * (w * x + y * z), 1 - 2 * (x * x + y * y))
        pitch = math.asin(max(-1.0, min(1.0, 2 * (w * y - z * x))))
        yaw = math.atan2(2 * (w * z + x * y), 1 - 2 * (y * y + z * z))
        return (roll, pitch, yaw)

    def getNumJoints(self, robot_id, physicsClientId=None):
        return len(self.joints)

    def getJointInfo(self, robot_id, index, physicsClientId=None):
        return self.joints[index]

    def getBodyInfo(self, robot_id, physicsClientId=None):
        return (b"world", b"arm")

    def getDynamicsInfo(self, robot_id, link_index, physicsClientId=None):
        return (1.0, 0.5, (0.0, 0.0, 0.0), (0.0, 0.0, 0.0), IDENTITY_QUAT)

    def resetJointState(self, robot_id, index, targetValue, physicsClientId=None):
        self.states[index] = targetValue

    def getJointState(self, robot_id, index, physicsClientId=None):
        return (self.states.get(index, 0.0), 0.0, (0.0,) * 6, 0.0)

    def addUserDebugLine(self, start, end, lineColorRGB, lineWidth, replaceItemUniqueId=-1,
                         physicsClientId=None):
        item = replaceItemUniqueId
        if item < 0:
            item = self._next_item
            self._next_item += 1
        self.lines[item] = (tuple(start), tuple(end))
        return item

    def removeUserDebugItem(self, item, physicsClientId=None):
        self.removed.append(item)


@pytest.fixture
def fake_pybullet(monkeypatch):
    fake = FakePyBullet()
    monkeypatch.setattr(pybullet_driver, "p", fake)
    monkeypatch.setattr(pybullet_driver, "pybullet_data", SimpleNamespace(getDataPath=lambda: "/tmp"))
    return fake
