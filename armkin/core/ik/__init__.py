from .base import (
    ChainConfigurationError,
    ErrorCode,
    IKResult,
    IKSolver,
    KinematicsError,
    SolveOptions,
)
from .chain import ArmModel, JointKind, JointLimits, JointSpec, KinematicChain, MimicSpec
from .fk import ForwardKinematics
from .solver import GeometricIKSolver
from .transforms import Pose

__all__ = [
    "ArmModel",
    "ChainConfigurationError",
    "ErrorCode",
    "ForwardKinematics",
    "GeometricIKSolver",
    "IKResult",
    "IKSolver",
    "JointKind",
    "JointLimits",
    "JointSpec",
    "KinematicChain",
    "KinematicsError",
    "MimicSpec",
    "Pose",
    "SolveOptions",
]
