# core/ik/validator.py
import logging
import numbers
from typing import Any, List, Sequence

from .chain import KinematicChain
from .transforms import Pose

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def coerce_targets(target: Any) -> List[Pose]:
    """
    Normalize a solve target into a list of poses.

    Accepts a Pose, a pose dict, a 3-element position, or a sequence of any of
    those. Raises ValueError for anything else.
    """
    if isinstance(target, Pose):
        return [target]
    if isinstance(target, dict):
        return [Pose.from_dict(target)]
    if isinstance(target, (str, bytes)):
        raise ValueError(f"Unsupported IK target {target!r}")
    if hasattr(target, "__len__"):
        items = list(target)
        if len(items) == 3 and all(_is_number(v) for v in items):
            return [Pose.from_position([float(v) for v in items])]
        return [p for item in items for p in coerce_targets(item)]
    raise ValueError(f"Unsupported IK target {target!r}")


class RequestValidator:
    def __init__(self, chain: KinematicChain, tip_frames: Sequence[str]):
        self.chain = chain
        self.tip_frames = list(tip_frames)

    def validate_seed_state(self, seed: Sequence[float]) -> bool:
        if len(seed) != len(self.chain.joints):
            logger.error(
                "Expected seed state for %d supported joints, received state for %d",
                len(self.chain.joints),
                len(seed),
            )
            return False

        logger.debug("Received seed state for %d joints", len(seed))
        for joint, value in zip(self.chain.joints, seed):
            logger.debug("\t%s (%s): %g", joint.name, "mimic" if joint.is_mimic else "active", value)
        return True

    def validate_target(self, poses: Sequence[Pose]) -> bool:
        if len(poses) != 1 or len(self.tip_frames) != len(poses):
            logger.error(
                "Found %d tips and %d poses (expected one pose and one tip)",
                len(self.tip_frames),
                len(poses),
            )
            return False
        return True
