from __future__ import annotations

import math

import numpy as np
import pytest  # type: ignore[import]

from armkin.core.drivers.pybullet_driver import PyBulletDebugSink, PyBulletDriver
from armkin.core.ik import ChainConfigurationError, ForwardKinematics, JointKind
from armkin.core.ik.diagnostics import solution_primitives


@pytest.fixture
def driver(fake_pybullet):
    driver = PyBulletDriver("arm.urdf")
    driver.connect()
    yield driver
    driver.disable()


def test_connect_records_movable_joints(driver):
    assert driver.physics_client == 7
    assert driver.joint_indices == [0, 2, 3, 4, 6]
    assert driver.num_joints == 5


def test_load_chain_folds_fixed_joints(driver):
    chain = driver.load_chain("world", "tool0")

    assert chain.joint_names == ["base", "shoulder", "elbow", "wrist"]
    assert chain.joints[1].origin_xyz == pytest.approx((0.0, 0.0, 0.05))
    assert chain.joints[1].axis == (0.0, 1.0, 0.0)
    assert chain.joints[0].limits.max_velocity == 1.5
    assert chain.tip_origin_xyz == pytest.approx((0.0, 0.0, 0.05))
    assert chain.tip_link == "tool0"
    tip = ForwardKinematics(chain).evaluate([0.0, 0.0, 0.0, 0.0])
    assert np.allclose(tip.position, [0.0, 0.0, 0.75])


def test_unlimited_joints_get_a_full_turn(driver):
    chain = driver.load_chain("world", "tool0")
    elbow = chain.joints[2]

    assert elbow.limits.min_position == -math.pi
    assert elbow.limits.max_position == math.pi


def test_load_chain_with_prismatic_and_mimic(driver, fake_pybullet):
    fake_pybullet.joints.append(
        fake_pybullet.joint_info(7, "finger_mirror", fake_pybullet.JOINT_PRISMATIC, "finger_mirror", 6,
                                 (0.0, 0.0, 0.0), (1, 0, 0), -0.02, 0.0)
    )
    chain = driver.load_chain("world", "finger_mirror",
                              mimics={"finger_mirror": {"joint": "finger", "factor": -1.0}})

    assert chain.joint_names == ["base", "shoulder", "elbow", "wrist", "finger", "finger_mirror"]
    assert chain.joints[4].kind is JointKind.PRISMATIC
    assert chain.joints[5].mimic.joint == "finger"
    assert chain.joints[5].mimic.factor == -1.0


def test_load_chain_rejects_disconnected_tip(driver):
    with pytest.raises(ChainConfigurationError):
        driver.load_chain("world", "ghost_link")


def test_send_targets_and_feedback(driver, fake_pybullet):
    driver.send_joint_targets([0.1, 0.2, 0.3, 0.4, 0.01])
    assert driver.get_feedback() == {"q": [0.1, 0.2, 0.3, 0.4, 0.01]}

    driver.send_joint_targets([0.5], joint_names=["elbow"])
    assert fake_pybullet.states[3] == 0.5

    with pytest.raises(ValueError):
        driver.send_joint_targets([0.1, 0.2])


def test_disable_disconnects(fake_pybullet):
    driver = PyBulletDriver("arm.urdf")
    driver.connect()
    driver.disable()

    assert not fake_pybullet.connected
    assert driver.physics_client is None


def test_debug_sink_replaces_existing_lines(fake_pybullet):
    sink = PyBulletDebugSink(physics_client=7)

    sink.publish(solution_primitives([0, 0, 0], [1, 0, 0], [0, 0, 0.1], [0.3, 0, 0.1], [0.5, 0, 0]))
    first_items = set(fake_pybullet.lines)
    sink.publish(solution_primitives([0, 0, 0], [0, 1, 0], [0, 0, 0.1], [0, 0.3, 0.1], [0, 0.5, 0]))

    assert set(fake_pybullet.lines) == first_items
    assert len(first_items) == 3
    assert fake_pybullet.removed == []
    assert (0.0, 1.0, 0.0) in [end for _, end in fake_pybullet.lines.values()]


def test_rotated_joint_origin_is_imported_as_rpy(driver, fake_pybullet):
    quarter_turn = (0.0, 0.0, math.sin(math.pi / 4), math.cos(math.pi / 4))
    fake_pybullet.joints[2] = fake_pybullet.joint_info(
        2, "shoulder", fake_pybullet.JOINT_REVOLUTE, "upper", 1, (0.0, 0.0, 0.03), (0, 1, 0), -1.5, 1.5,
        orn=quarter_turn,
    )

    chain = driver.load_chain("world", "tool0")

    assert chain.joints[1].origin_rpy == pytest.approx((0.0, 0.0, math.pi / 2))
    assert chain.joints[1].origin_xyz == pytest.approx((0.0, 0.0, 0.05))
    assert chain.joints[2].origin_rpy == pytest.approx((0.0, 0.0, 0.0))
