# core/ik/base.py
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

from .transforms import Pose

DEFAULT_TIMEOUT = 1.0


class KinematicsError(Exception):
    """Raised for invalid kinematic queries (bad prefix, unknown link, ...)."""


class ChainConfigurationError(KinematicsError):
    """Raised when a chain descriptor cannot be used by the solver."""


class ErrorCode(IntEnum):
    SUCCESS = 1
    NO_SOLUTION = -31


SolutionCallback = Callable[[Pose, Tuple[float, ...], ErrorCode], None]


@dataclass(frozen=True)
class SolveOptions:
    """Per-call options. None falls back to the solver's configured default."""
    position_only: Optional[bool] = None
    debug: Optional[bool] = None
    # Accepted for interface compatibility; the solver is closed-form.
    timeout: float = DEFAULT_TIMEOUT
    on_solution: Optional[SolutionCallback] = None


@dataclass(frozen=True)
class IKResult:
    solution: Tuple[float, ...]
    error_code: ErrorCode

    @property
    def success(self) -> bool:
        return self.error_code == ErrorCode.SUCCESS

    def to_dict(self, joint_names: Optional[List[str]] = None) -> dict:
        result = {
            "joints": list(self.solution),
            "success": self.success,
            "error_code": self.error_code.name,
        }
        if joint_names is not None:
            result["joint_names"] = list(joint_names)
        return result


class IKSolver(Protocol):
    def solve(self, target: Any, seed: Sequence[float],
              options: Optional[SolveOptions] = None) -> IKResult:
        """Given a target pose and a seed configuration,
        return the joint solution together with a status code.
        """
        ...

    def forward_kinematics(self, joint_values: Sequence[float]) -> Pose:
        ...

    def get_joint_names(self) -> List[str]:
        ...

    def get_link_names(self) -> List[str]:
        ...
