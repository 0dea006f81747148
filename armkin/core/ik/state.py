# core/ik/state.py
from typing import List, Sequence, Union

import numpy as np

from .fk import ForwardKinematics
from .mimic import MimicPropagator


class KinematicState:
    """
    Joint positions over a chain plus transform queries.

    The solver keeps one default state and works on `copy()` for every solve,
    so concurrent calls never observe each other's transient writes.
    """

    def __init__(self, fk: ForwardKinematics, mimic: MimicPropagator, positions: Sequence[float] = None):
        self.fk = fk
        self.mimic = mimic
        self.chain = fk.chain
        if positions is None:
            positions = [joint.default_position() for joint in self.chain.joints]
        self.positions: List[float] = [float(v) for v in positions]

    def copy(self) -> "KinematicState":
        return KinematicState(self.fk, self.mimic, list(self.positions))

    def set_to_default_values(self):
        self.positions = [joint.default_position() for joint in self.chain.joints]
        self.mimic.enforce(self.positions)

    def _index(self, joint: Union[int, str]) -> int:
        return joint if isinstance(joint, int) else self.chain.index_of(joint)

    def set_joint_position(self, joint: Union[int, str], value: float) -> float:
        """Store a clamped joint value and propagate mimic relations."""
        return self.mimic.set_joint(self.positions, self._index(joint), value)

    def set_joint_positions(self, values: Sequence[float]):
        """Raw write of a full vector; bounds are not enforced."""
        if len(values) != len(self.positions):
            raise ValueError(f"Expected {len(self.positions)} joint values, got {len(values)}")
        self.positions = [float(v) for v in values]

    def enforce_bounds(self):
        for index, joint in enumerate(self.chain.joints):
            limits = joint.limits
            self.positions[index] = min(max(self.positions[index], limits.min_position),
                                        limits.max_position)
        self.mimic.enforce(self.positions)

    def get_joint_position(self, joint: Union[int, str]) -> float:
        return self.positions[self._index(joint)]

    def global_link_transform(self, link_name: str) -> np.ndarray:
        return self.fk.link_transform(link_name, self.positions)
