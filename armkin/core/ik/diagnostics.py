# core/ik/diagnostics.py
"""
Debug primitives emitted by the solver when debug mode is on.

Sinks are best-effort: the solver logs and drops any exception a sink raises.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Protocol, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Color = Tuple[float, float, float]

MOUNT_COLOR: Color = (1.0, 0.0, 1.0)
UPPER_ARM_COLOR: Color = (1.0, 0.0, 1.0)
FOREARM_COLOR: Color = (0.0, 1.0, 1.0)


class PrimitiveKind(Enum):
    LINE = "line"
    ARROW = "arrow"


@dataclass(frozen=True)
class DebugPrimitive:
    id: int
    kind: PrimitiveKind
    points: Tuple[Tuple[float, float, float], ...]
    color: Color

    @classmethod
    def create(cls, id: int, kind: PrimitiveKind, points: Sequence[Sequence[float]], color: Color):
        return cls(id, kind, tuple(tuple(float(v) for v in np.asarray(p).reshape(3)) for p in points), color)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "points": [list(p) for p in self.points],
            "color": list(self.color),
        }


class DiagnosticsSink(Protocol):
    def publish(self, primitives: Sequence[DebugPrimitive]) -> None: ...


class NullSink:
    def publish(self, primitives: Sequence[DebugPrimitive]) -> None:
        pass


class RecordingSink:
    """Keeps every published batch; used by tests and the probe script."""

    def __init__(self):
        self.batches: List[List[DebugPrimitive]] = []

    def publish(self, primitives: Sequence[DebugPrimitive]) -> None:
        self.batches.append(list(primitives))

    @property
    def last(self) -> List[DebugPrimitive]:
        return self.batches[-1] if self.batches else []


class LoggingSink:
    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def publish(self, primitives: Sequence[DebugPrimitive]) -> None:
        for primitive in primitives:
            logger.log(self.level, "Marker %d %s %s color %s", primitive.id,
                       primitive.kind.value, primitive.points, primitive.color)


class CallbackSink:
    """Forwards primitives as plain dicts, e.g. to a Socket.IO emit function."""

    def __init__(self, emit: Callable[[str, Any], None], event: str = "ik_markers"):
        self.emit = emit
        self.event = event

    def publish(self, primitives: Sequence[DebugPrimitive]) -> None:
        self.emit(self.event, [p.to_dict() for p in primitives])


class MultiSink:
    def __init__(self, sinks: Sequence[DiagnosticsSink]):
        self.sinks = list(sinks)

    def publish(self, primitives: Sequence[DebugPrimitive]) -> None:
        for sink in self.sinks:
            try:
                sink.publish(primitives)
            except Exception as e:
                logger.warning(f"Diagnostics sink {sink.__class__.__name__} failed: {e}")


def solution_primitives(origin, target, shoulder, elbow, wrist) -> List[DebugPrimitive]:
    """Mount line to the target plus upper arm and forearm arrows."""
    return [
        DebugPrimitive.create(0, PrimitiveKind.LINE, [origin, target], MOUNT_COLOR),
        DebugPrimitive.create(1, PrimitiveKind.ARROW, [shoulder, elbow], UPPER_ARM_COLOR),
        DebugPrimitive.create(2, PrimitiveKind.ARROW, [elbow, wrist], FOREARM_COLOR),
    ]
