# core/ik/chain.py
"""
Kinematic chain descriptor.

A chain is an ordered list of single-DOF joints leading from a fixed base link
to exactly one tip frame. Descriptors are immutable once built; reloading the
model replaces the whole chain.
"""
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .base import ChainConfigurationError
from .transforms import origin_matrix, rotation_matrix, translation_matrix

logger = logging.getLogger(__name__)

Vector3 = Tuple[float, float, float]


class JointKind(Enum):
    REVOLUTE = "revolute"
    PRISMATIC = "prismatic"

    @classmethod
    def parse(cls, value: str) -> "JointKind":
        if value == "continuous":
            return cls.REVOLUTE
        try:
            return cls(value)
        except ValueError:
            raise ChainConfigurationError(
                f"Unsupported joint type '{value}' (only single DOF revolute/prismatic joints)"
            )


@dataclass(frozen=True)
class JointLimits:
    min_position: float
    max_position: float
    max_velocity: float = 0.0

    def contains(self, value: float) -> bool:
        return self.min_position <= value <= self.max_position


@dataclass(frozen=True)
class MimicSpec:
    joint: str
    factor: float = 1.0
    offset: float = 0.0


@dataclass(frozen=True)
class JointSpec:
    name: str
    kind: JointKind
    parent: str
    child: str
    axis: Vector3
    limits: JointLimits
    origin_xyz: Vector3 = (0.0, 0.0, 0.0)
    origin_rpy: Vector3 = (0.0, 0.0, 0.0)
    mimic: Optional[MimicSpec] = None

    def __post_init__(self):
        norm = math.sqrt(sum(a * a for a in self.axis))
        if norm < 1e-12:
            raise ChainConfigurationError(f"Joint {self.name} has a zero-length axis")
        if self.limits.min_position > self.limits.max_position:
            raise ChainConfigurationError(
                f"Joint {self.name} limits are inverted: "
                f"min {self.limits.min_position} > max {self.limits.max_position}"
            )
        object.__setattr__(self, "axis", tuple(float(a) / norm for a in self.axis))

    @property
    def is_mimic(self) -> bool:
        return self.mimic is not None

    def origin(self) -> np.ndarray:
        return origin_matrix(self.origin_xyz, self.origin_rpy)

    def motion(self, value: float) -> np.ndarray:
        """Local transform produced by moving this joint to `value`."""
        if self.kind is JointKind.REVOLUTE:
            return rotation_matrix(self.axis, value)
        if self.kind is JointKind.PRISMATIC:
            return translation_matrix([a * value for a in self.axis])
        raise ChainConfigurationError(f"Unhandled joint kind {self.kind}")

    def default_position(self) -> float:
        if self.limits.contains(0.0):
            return 0.0
        return (self.limits.min_position + self.limits.max_position) / 2.0


@dataclass(frozen=True)
class KinematicChain:
    base_link: str
    tip_link: str
    joints: Tuple[JointSpec, ...]
    tip_origin_xyz: Vector3 = (0.0, 0.0, 0.0)
    tip_origin_rpy: Vector3 = (0.0, 0.0, 0.0)

    def __post_init__(self):
        object.__setattr__(self, "joints", tuple(self.joints))
        self._validate()

    def _validate(self):
        if not self.joints:
            raise ChainConfigurationError("Chain has no joints")

        names = [j.name for j in self.joints]
        if len(set(names)) != len(names):
            raise ChainConfigurationError(f"Duplicate joint names in chain: {names}")

        expected_parent = self.base_link
        for joint in self.joints:
            if joint.parent != expected_parent:
                raise ChainConfigurationError(
                    f"Chain is not a simple path: joint {joint.name} has parent "
                    f"{joint.parent}, expected {expected_parent}"
                )
            expected_parent = joint.child

        index = {name: i for i, name in enumerate(names)}
        for joint in self.joints:
            if joint.mimic is None:
                continue
            if joint.mimic.joint not in index:
                raise ChainConfigurationError(
                    f"Joint {joint.name} mimics {joint.mimic.joint}, which is not in the chain"
                )
            # Walk up the mimic relation to catch cycles
            seen = {joint.name}
            master = self.joints[index[joint.mimic.joint]]
            while master is not None:
                if master.name in seen:
                    raise ChainConfigurationError(
                        f"Cyclic mimic relation through joint {joint.name}"
                    )
                seen.add(master.name)
                master = self.joints[index[master.mimic.joint]] if master.mimic else None

    def __len__(self) -> int:
        return len(self.joints)

    @property
    def joint_names(self) -> List[str]:
        return [j.name for j in self.joints]

    @property
    def link_names(self) -> List[str]:
        links = [self.base_link] + [j.child for j in self.joints]
        if self.tip_link not in links:
            links.append(self.tip_link)
        return links

    def index_of(self, joint_name: str) -> int:
        for i, joint in enumerate(self.joints):
            if joint.name == joint_name:
                return i
        raise KeyError(joint_name)

    def tip_origin(self) -> np.ndarray:
        return origin_matrix(self.tip_origin_xyz, self.tip_origin_rpy)


@dataclass(frozen=True)
class ArmModel:
    """Joint-model group: a named set of chains loaded from the host model."""
    name: str
    chains: Tuple[KinematicChain, ...] = field(default_factory=tuple)


def _vector(value: Optional[Sequence[float]], default: Vector3 = (0.0, 0.0, 0.0)) -> Vector3:
    if value is None:
        return default
    if len(value) != 3:
        raise ChainConfigurationError(f"Expected a 3-vector, got {value}")
    return tuple(float(v) for v in value)


def joint_from_dict(data: Dict[str, Any]) -> JointSpec:
    try:
        name = data["name"]
        kind = JointKind.parse(data.get("type", "revolute"))
        # Missing limits (continuous joints) default to one full turn
        limits_data = data.get("limits", {}) or {}
        limits = JointLimits(
            float(limits_data.get("min", -math.pi)),
            float(limits_data.get("max", math.pi)),
            float(limits_data.get("velocity", 0.0)),
        )
        mimic_data = data.get("mimic")
        mimic = None
        if mimic_data:
            mimic = MimicSpec(
                joint=mimic_data["joint"],
                factor=float(mimic_data.get("factor", 1.0)),
                offset=float(mimic_data.get("offset", 0.0)),
            )
        origin = data.get("origin", {}) or {}
        return JointSpec(
            name=name,
            kind=kind,
            parent=data["parent"],
            child=data["child"],
            axis=_vector(data.get("axis"), (0.0, 0.0, 1.0)),
            limits=limits,
            origin_xyz=_vector(origin.get("xyz")),
            origin_rpy=_vector(origin.get("rpy")),
            mimic=mimic,
        )
    except KeyError as e:
        raise ChainConfigurationError(f"Joint description is missing {e}: {data}")


def chain_from_dict(data: Dict[str, Any]) -> KinematicChain:
    joints = [joint_from_dict(j) for j in data.get("joints", [])]
    if "base_link" not in data:
        if not joints:
            raise ChainConfigurationError("Chain has no joints")
        base_link = joints[0].parent
    else:
        base_link = data["base_link"]
    tip_origin = data.get("tip_origin", {}) or {}
    return KinematicChain(
        base_link=base_link,
        tip_link=data.get("tip_link", joints[-1].child if joints else base_link),
        joints=tuple(joints),
        tip_origin_xyz=_vector(tip_origin.get("xyz")),
        tip_origin_rpy=_vector(tip_origin.get("rpy")),
    )


def model_from_config(kinematics: Dict[str, Any]) -> ArmModel:
    """Build an ArmModel from the `kinematics` section of the YAML config."""
    chains = tuple(chain_from_dict(c) for c in kinematics.get("chains", []))
    return ArmModel(name=kinematics.get("group", "arm"), chains=chains)
