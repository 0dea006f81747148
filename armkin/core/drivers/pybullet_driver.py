import math
import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pybullet as p
import pybullet_data

from ..ik.base import ChainConfigurationError
from ..ik.chain import JointKind, JointLimits, JointSpec, KinematicChain, MimicSpec
from ..ik.diagnostics import DebugPrimitive
from ..ik.transforms import quaternion_from_matrix

logger = logging.getLogger(__name__)


def _decode(value) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


def _pos_orn_matrix(position: Sequence[float], orientation: Sequence[float]) -> np.ndarray:
    T = np.eye(4)
    T[:3, :3] = np.array(p.getMatrixFromQuaternion(orientation)).reshape(3, 3)
    T[:3, 3] = position
    return T


def _rpy(T: np.ndarray):
    return tuple(float(a) for a in p.getEulerFromQuaternion(quaternion_from_matrix(T).tolist()))


class PyBulletDriver:
    """
    Loads the arm URDF into PyBullet to import its kinematic chain and to show
    solver output. Runs headless (DIRECT) unless `gui` is set.
    """

    def __init__(self, urdf_path: str, gui: bool = False):
        """
        :param urdf_path: Path to the robot URDF file.
        :param gui: If True, launches PyBullet GUI; else runs headless.
        """
        self.urdf_path = urdf_path
        self.gui = gui
        self.physics_client: Optional[int] = None
        self.robot_id: Optional[int] = None
        self.num_joints: int = 0
        self.joint_indices: List[int] = []
        self._joint_by_name: Dict[str, int] = {}
        logger.info("PyBulletDriver created with URDF: %s, GUI: %s", urdf_path, gui)

    def connect(self):
        if self.gui:
            self.physics_client = p.connect(p.GUI)
        else:
            self.physics_client = p.connect(p.DIRECT)

        p.setAdditionalSearchPath(pybullet_data.getDataPath(), physicsClientId=self.physics_client)

        self.robot_id = p.loadURDF(
            self.urdf_path,
            useFixedBase=True,
            physicsClientId=self.physics_client,
        )

        total = p.getNumJoints(self.robot_id, physicsClientId=self.physics_client)
        self._joint_by_name = {}
        self.joint_indices = []
        for j in range(total):
            info = self._joint_info(j)
            self._joint_by_name[_decode(info[1])] = j
            if info[2] in (p.JOINT_REVOLUTE, p.JOINT_PRISMATIC):
                self.joint_indices.append(j)
        self.num_joints = len(self.joint_indices)

        logger.info("Loaded URDF with %d movable joints", self.num_joints)

    def disable(self):
        if self.physics_client is not None:
            p.disconnect(self.physics_client)
            self.physics_client = None
            logger.info("PyBullet session closed")

    def _require_robot(self):
        if self.robot_id is None:
            raise RuntimeError("PyBulletDriver is not connected")

    def _joint_info(self, index: int):
        return p.getJointInfo(self.robot_id, index, physicsClientId=self.physics_client)

    def _inertial_frame(self, link_index: int) -> np.ndarray:
        # Joint frames are reported relative to the parent's inertial frame
        info = p.getDynamicsInfo(self.robot_id, link_index, physicsClientId=self.physics_client)
        return _pos_orn_matrix(info[3], info[4])

    def load_chain(self, base_link: str, tip_link: str,
                   mimics: Optional[Dict[str, Dict[str, Any]]] = None) -> KinematicChain:
        """
        Build a KinematicChain from `base_link` to `tip_link`.

        Fixed joints are folded into the next movable joint's origin (or the tip
        offset). Joints without limits (continuous) get [-pi, pi]. PyBullet does
        not load URDF mimic tags, so mimic relations are passed in as
        `{joint: {joint: master, factor: f, offset: o}}`.
        """
        self._require_robot()
        mimics = mimics or {}

        base_name = _decode(p.getBodyInfo(self.robot_id, physicsClientId=self.physics_client)[0])
        infos = {}
        joint_of_link: Dict[str, int] = {}
        link_names: Dict[int, str] = {-1: base_name}
        for j in range(p.getNumJoints(self.robot_id, physicsClientId=self.physics_client)):
            info = self._joint_info(j)
            infos[j] = info
            child = _decode(info[12])
            joint_of_link[child] = j
            link_names[j] = child

        # Walk from the tip back to the base
        path: List[int] = []
        current = tip_link
        while current != base_link:
            if current not in joint_of_link:
                raise ChainConfigurationError(f"Link {tip_link} is not connected to {base_link}")
            j = joint_of_link[current]
            path.append(j)
            current = link_names[infos[j][16]]
        path.reverse()

        joints: List[JointSpec] = []
        parent = base_link
        pending = np.eye(4)
        for j in path:
            info = infos[j]
            origin = self._inertial_frame(info[16]) @ _pos_orn_matrix(info[14], info[15])
            pending = pending @ origin
            joint_type = info[2]
            if joint_type == p.JOINT_FIXED:
                continue

            name = _decode(info[1])
            if joint_type == p.JOINT_REVOLUTE:
                kind = JointKind.REVOLUTE
            elif joint_type == p.JOINT_PRISMATIC:
                kind = JointKind.PRISMATIC
            else:
                raise ChainConfigurationError(f"Joint {name} is not a single DOF joint")

            lower, upper = float(info[8]), float(info[9])
            if lower > upper:
                lower, upper = -math.pi, math.pi

            mimic = None
            if name in mimics:
                mimic_data = mimics[name]
                mimic = MimicSpec(
                    joint=mimic_data["joint"],
                    factor=float(mimic_data.get("factor", 1.0)),
                    offset=float(mimic_data.get("offset", 0.0)),
                )

            child = _decode(info[12])
            joints.append(JointSpec(
                name=name,
                kind=kind,
                parent=parent,
                child=child,
                axis=tuple(float(a) for a in info[13]),
                limits=JointLimits(lower, upper, float(info[11])),
                origin_xyz=tuple(float(v) for v in pending[:3, 3]),
                origin_rpy=_rpy(pending),
                mimic=mimic,
            ))
            logger.debug("Imported joint %s (%s) %s -> %s", name, kind.value, parent, child)
            parent = child
            pending = np.eye(4)

        return KinematicChain(
            base_link=base_link,
            tip_link=tip_link,
            joints=tuple(joints),
            tip_origin_xyz=tuple(float(v) for v in pending[:3, 3]),
            tip_origin_rpy=_rpy(pending),
        )

    def send_joint_targets(self, q: Sequence[float], joint_names: Optional[Sequence[str]] = None):
        """
        Snap the model to a joint vector for visualization. `joint_names`
        selects joints by name; otherwise `q` follows the movable joint order.
        """
        self._require_robot()
        if joint_names is None:
            if len(q) != self.num_joints:
                logger.error(f"Expected {self.num_joints} joints, got {len(q)}")
                raise ValueError(f"Expected {self.num_joints} joints, got {len(q)}")
            indices = self.joint_indices
        else:
            if len(q) != len(joint_names):
                raise ValueError(f"Expected {len(joint_names)} joints, got {len(q)}")
            indices = [self._joint_by_name[name] for name in joint_names]

        for j, value in zip(indices, q):
            p.resetJointState(self.robot_id, j, targetValue=float(value),
                              physicsClientId=self.physics_client)

    def get_feedback(self) -> Dict[str, Any]:
        """Return current joint positions of the movable joints."""
        self._require_robot()
        q = []
        for j in self.joint_indices:
            joint_state = p.getJointState(self.robot_id, j, physicsClientId=self.physics_client)
            q.append(joint_state[0])
        return {"q": q}


class PyBulletDebugSink:
    """Draws solver diagnostics as PyBullet debug lines; arrows are drawn as plain segments."""

    def __init__(self, physics_client: int, line_width: float = 3.0):
        self.physics_client = physics_client
        self.line_width = line_width
        self._items: Dict[int, List[int]] = {}

    def publish(self, primitives: Sequence[DebugPrimitive]) -> None:
        for primitive in primitives:
            previous = self._items.get(primitive.id, [])
            items = []
            segments = list(zip(primitive.points[:-1], primitive.points[1:]))
            for k, (start, end) in enumerate(segments):
                items.append(p.addUserDebugLine(
                    start,
                    end,
                    lineColorRGB=list(primitive.color),
                    lineWidth=self.line_width,
                    replaceItemUniqueId=previous[k] if k < len(previous) else -1,
                    physicsClientId=self.physics_client,
                ))
            for stale in previous[len(items):]:
                p.removeUserDebugItem(stale, physicsClientId=self.physics_client)
            self._items[primitive.id] = items
