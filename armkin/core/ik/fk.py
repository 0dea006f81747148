# core/ik/fk.py
import logging
from typing import List, Optional, Sequence

import numpy as np

from .base import KinematicsError
from .chain import KinematicChain
from .transforms import Pose

logger = logging.getLogger(__name__)


class ForwardKinematics:
    """
    Pure forward kinematics over a KinematicChain.

    Transforms are expressed in the chain's base link frame. Joint origins and
    the tip offset are precomputed once; evaluation never touches shared state.
    """

    def __init__(self, chain: KinematicChain):
        self.chain = chain
        self._origins = [joint.origin() for joint in chain.joints]
        self._tip_origin = chain.tip_origin()
        self._link_index = {chain.base_link: 0}
        for i, joint in enumerate(chain.joints):
            self._link_index[joint.child] = i + 1

    def _check_prefix(self, values: Sequence[float], length: int):
        if length < 0 or length > len(self.chain):
            raise KinematicsError(
                f"Prefix length {length} outside chain of {len(self.chain)} joints"
            )
        if len(values) < length:
            raise KinematicsError(
                f"Expected at least {length} joint values, received {len(values)}"
            )

    def joint_frames(self, values: Sequence[float], length: Optional[int] = None) -> List[np.ndarray]:
        """World frame of each joint before its own motion is applied."""
        length = len(self.chain) if length is None else length
        self._check_prefix(values, length)

        frames = []
        T = np.eye(4)
        for i in range(length):
            frame = T @ self._origins[i]
            frames.append(frame)
            T = frame @ self.chain.joints[i].motion(values[i])
        return frames

    def link_transforms(self, values: Sequence[float], length: Optional[int] = None) -> List[np.ndarray]:
        """World transforms of the base link followed by each joint's child link."""
        length = len(self.chain) if length is None else length
        self._check_prefix(values, length)

        transforms = [np.eye(4)]
        T = np.eye(4)
        for i in range(length):
            T = T @ self._origins[i] @ self.chain.joints[i].motion(values[i])
            transforms.append(T)
        return transforms

    def tip_transform(self, values: Sequence[float]) -> np.ndarray:
        return self.link_transforms(values)[-1] @ self._tip_origin

    def evaluate(self, values: Sequence[float], length: Optional[int] = None) -> Pose:
        """
        Pose of the tip frame, or of the child link of joint `length - 1` when a
        prefix length is given (0 is the base link).
        """
        if length is None:
            return Pose.from_matrix(self.tip_transform(values))
        return Pose.from_matrix(self.link_transforms(values, length)[-1])

    def link_transform(self, link_name: str, values: Sequence[float]) -> np.ndarray:
        if link_name == self.chain.tip_link and link_name not in self._link_index:
            return self.tip_transform(values)
        if link_name not in self._link_index:
            raise KinematicsError(f"Unknown link {link_name}")
        return self.link_transforms(values, self._link_index[link_name])[-1]

    def get_position_fk(self, link_names: Sequence[str], values: Sequence[float]) -> List[Pose]:
        return [Pose.from_matrix(self.link_transform(name, values)) for name in link_names]
