# core/ik/mimic.py
import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, MutableSequence

from .chain import KinematicChain
from .geometry import clamp_joint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MimicRelation:
    master: int
    factor: float
    offset: float


class MimicPropagator:
    """
    Keeps mimic joints consistent with their masters.

    Relations are stored by joint index: `relations[i]` is the relation of
    mimic joint i, `dependents[m]` lists the joints directly mimicking m.
    """

    def __init__(self, chain: KinematicChain):
        self.chain = chain
        self.relations: Dict[int, MimicRelation] = {}
        self.dependents: Dict[int, List[int]] = {}

        for index, joint in enumerate(chain.joints):
            if joint.mimic is None:
                continue
            master = chain.index_of(joint.mimic.joint)
            self.relations[index] = MimicRelation(master, joint.mimic.factor, joint.mimic.offset)
            self.dependents.setdefault(master, []).append(index)

    def is_mimic(self, index: int) -> bool:
        return index in self.relations

    def has_dependents(self, index: int) -> bool:
        return bool(self.dependents.get(index))

    def root_of(self, index: int) -> int:
        while index in self.relations:
            index = self.relations[index].master
        return index

    def _write(self, states: MutableSequence[float], index: int, value: float) -> float:
        state = clamp_joint(value, self.chain.joints[index].limits)
        states[index] = state
        return state

    def _forward(self, states: MutableSequence[float], master: int):
        queue = deque([master])
        while queue:
            current = queue.popleft()
            for dependent in self.dependents.get(current, []):
                relation = self.relations[dependent]
                state = self._write(states, dependent, states[current] * relation.factor + relation.offset)
                logger.debug(
                    "Mimic %s = %g from %s = %g",
                    self.chain.joints[dependent].name,
                    state,
                    self.chain.joints[current].name,
                    states[current],
                )
                queue.append(dependent)

    def _resolve_master(self, states: MutableSequence[float], index: int, value: float) -> int:
        """Walk back from a mimic joint to its root master, writing each master state."""
        while index in self.relations:
            relation = self.relations[index]
            master_joint = self.chain.joints[relation.master]
            if relation.factor == 0.0:
                # Master cannot be recovered from a constant mimic
                logger.debug("Mimic %s has zero factor; keeping master %s",
                             self.chain.joints[index].name, master_joint.name)
                return self.root_of(relation.master)
            value = (value - relation.offset) / relation.factor
            value = self._write(states, relation.master, value)
            index = relation.master
        return index

    def set_joint(self, states: MutableSequence[float], index: int, value: float) -> float:
        """
        Clamp and store `value` for joint `index`, then bring every joint related
        through a mimic chain to the same fixed point. Returns the stored state,
        which for a mimic joint is re-derived from its resolved master.
        """
        state = self._write(states, index, value)
        if index in self.relations:
            root = self._resolve_master(states, index, state)
            self._forward(states, root)
        elif self.has_dependents(index):
            self._forward(states, index)
        return states[index]

    def enforce(self, states: MutableSequence[float]):
        """Re-derive every mimic joint from its root master."""
        for index in range(len(self.chain.joints)):
            if index not in self.relations and self.has_dependents(index):
                self._forward(states, index)

    def is_consistent(self, states: MutableSequence[float], tolerance: float = 1e-9) -> bool:
        for index, relation in self.relations.items():
            expected = clamp_joint(states[relation.master] * relation.factor + relation.offset,
                                   self.chain.joints[index].limits)
            if abs(expected - states[index]) > tolerance:
                return False
        return True
